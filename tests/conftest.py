from collections import OrderedDict
from typing import NamedTuple

import pytest
from eth_utils import to_checksum_address

from miplata.chain import AccountProvider, Chain, DeploymentReceipt
from miplata.deployer import Deployer, DeployerAccount, Orchestrator
from miplata.params import Constant, ContractReference, DeployerAddress, DeployStep
from miplata.registry import Registry

# Common constants
CHAIN_ID = 1337
DEPLOYER_ADDRESS = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"
INVESTOR_ADDRESS = "0x70997970C51812dc3A010C7d01b50e0d17dc79C8"

MIPLATA_CONSTANTS = OrderedDict(
    [
        ("USDC", "0x036CbD53842c5426634e7929541eC2318f3dCF7e"),
        ("WETH", "0x4200000000000000000000000000000000000006"),
        ("UNISWAP_ROUTER", "0x94cC0AaC535CCDB3C01d6787D6413C739ae12bc4"),
        ("AAVE_POOL", "0xbE781D7Bdf469f3d94a62Cdcc407aCe106AEcA74"),
        ("ETH_USD_PRICE_FEED", "0x4aDC67696bA383F43DD60A9e78F2C97Fbbfc7cb1"),
        ("UNISWAP_POOL", "0xB39b858e70d1df1d3ec8CEC542189c3b96F13E45"),
        ("POSITION_MANAGER", "0x27F971cb582BF9E50F397e4d29a5C7A34f11faA2"),
        ("FEE_COLLECTOR", "0x7B3B786C36720F0d367F62dDb4e4B98e6f54DffD"),
    ]
)

MIPLATA_PARAMETER_NAMES = [
    "_usdc",
    "_weth",
    "_uniswapRouter",
    "_aavePool",
    "_ethUsdPriceFeed",
    "_uniswapPool",
    "_positionManager",
    "_feeCollector",
]

FAKE_ABI = [
    {"type": "function", "name": "greeting", "inputs": [], "outputs": [], "stateMutability": "view"}
]


class FakeAccount(NamedTuple):
    address: str


class FakeReceipt(NamedTuple):
    txn_hash: str


class FakeChain(Chain):
    """Mines every deployment instantly at a sequential address."""

    def __init__(self, chain_id=CHAIN_ID, fail_on=()):
        self._chain_id = chain_id
        self.fail_on = set(fail_on)
        self.deployments = list()
        self.reads = list()
        self.writes = list()
        self.read_results = dict()

    @property
    def chain_id(self):
        return self._chain_id

    def deploy_contract(self, contract_name, constructor_args, signer):
        self.deployments.append((contract_name, list(constructor_args), signer))
        if contract_name in self.fail_on:
            raise RuntimeError(f"execution reverted while deploying {contract_name}")
        address = to_checksum_address(f"0x{len(self.deployments):040x}")
        return DeploymentReceipt(
            address=address,
            abi=FAKE_ABI,
            tx_hash=f"0x{len(self.deployments):064x}",
            block_number=100 + len(self.deployments),
        )

    def read_call(self, address, abi, function_name, args):
        self.reads.append((address, function_name, list(args)))
        result = self.read_results[function_name]
        return result(*args) if callable(result) else result

    def write_call(self, address, abi, function_name, args, signer):
        self.writes.append((address, function_name, list(args), signer))
        return FakeReceipt(txn_hash=f"0x{len(self.writes):064x}")


class FakeAccountProvider(AccountProvider):
    def __init__(self, account=None):
        self.account = account

    def get_active_account(self):
        return self.account


# Utility functions
def make_step(name, *references, tags=None, constructor=None):
    if constructor is None:
        constructor = OrderedDict(
            (f"_{reference[0].lower()}{reference[1:]}", ContractReference(reference))
            for reference in references
        )
    return DeployStep(
        contract_name=name, constructor=constructor, tags=frozenset(tags or [name])
    )


def miplata_step():
    constructor = OrderedDict(
        (name, Constant(constant, MIPLATA_CONSTANTS))
        for name, constant in zip(MIPLATA_PARAMETER_NAMES, MIPLATA_CONSTANTS)
    )
    return DeployStep(contract_name="MiPlata", constructor=constructor, tags=frozenset({"MiPlata"}))


def your_contract_step():
    return DeployStep(
        contract_name="YourContract",
        constructor=OrderedDict(_owner=DeployerAddress()),
        tags=frozenset({"YourContract"}),
        report=("greeting",),
    )


# Fixtures
@pytest.fixture
def fake_chain():
    return FakeChain()


@pytest.fixture
def registry():
    return Registry(chain_id=CHAIN_ID)


@pytest.fixture
def deployer_account():
    account = FakeAccount(address=DEPLOYER_ADDRESS)
    return DeployerAccount.from_provider(FakeAccountProvider(account))


@pytest.fixture
def deployer(fake_chain, registry, deployer_account):
    return Deployer(chain=fake_chain, registry=registry, account=deployer_account, autosign=True)


@pytest.fixture
def orchestrator(deployer):
    return Orchestrator(deployer)
