import os
from typing import Any, List, Optional, Sequence

from ape import Contract, accounts, networks, project
from ape.api import AccountAPI
from ape.cli.choices import select_account
from ape.contracts import ContractContainer, ContractInstance
from eth_typing import ChecksumAddress
from web3.auto import w3

from miplata.chain import AccountProvider, Chain, DeploymentReceipt
from miplata.constants import LOCAL_NETWORKS
from miplata.params import DeployStep
from miplata.registry import ABI, ChainId, ContractName
from miplata.utils import DeploymentConfigError


class InvalidConstructorArguments(DeploymentConfigError):
    """Raised when constructor arguments do not match the contract's constructor ABI."""


def is_local_network() -> bool:
    return networks.provider.network.name in LOCAL_NETWORKS


def check_chain_id(config_chain_id: ChainId) -> None:
    """Live deployments must target the chain named in the params file."""
    provider_chain_id = networks.provider.chain_id
    chain_mismatch = int(config_chain_id) != provider_chain_id
    if chain_mismatch and not is_local_network():
        raise DeploymentConfigError(
            f"chain_id in params file ({config_chain_id}) does not match "
            f"chain_id of current network ({provider_chain_id})."
        )


def check_etherscan_plugin() -> None:
    """
    Checks that the ape-etherscan plugin is installed and that
    the appropriate API key environment variable is set.
    """
    if is_local_network():
        # unnecessary for local deployment
        return
    try:
        from ape_etherscan.utils import API_KEY_ENV_KEY_MAP
    except ImportError:
        raise ImportError("Please install the ape-etherscan plugin to verify contracts.")
    ecosystem_name = networks.provider.network.ecosystem.name
    explorer_envvar = API_KEY_ENV_KEY_MAP.get(ecosystem_name)
    api_key = os.environ.get(explorer_envvar) if explorer_envvar else None
    if not api_key:
        raise ValueError(f"{explorer_envvar or 'Explorer API key'} is not set.")


def check_plugins() -> None:
    print("Checking plugins...")
    check_etherscan_plugin()


def get_chain_name(chain_id: int) -> str:
    """Returns the name of the chain given its chain ID."""
    for ecosystem_name, ecosystem in networks.ecosystems.items():
        for network_name, network in ecosystem.networks.items():
            if network.chain_id == chain_id:
                return f"{ecosystem_name} {network_name}"
    raise ValueError(f"Chain ID {chain_id} not found in networks.")


def _get_dependency_contract_container(contract: str) -> ContractContainer:
    for dependency_name, dependency_versions in project.dependencies.items():
        if len(dependency_versions) > 1:
            raise ValueError(f"Ambiguous {dependency_name} dependency for {contract}")
        try:
            dependency_api = list(dependency_versions.values())[0]
            contract_container = getattr(dependency_api, contract)
            return contract_container
        except AttributeError:
            continue
    raise ValueError(f"No contract found with name '{contract}'.")


def get_contract_container(contract: str) -> ContractContainer:
    try:
        contract_container = getattr(project, contract)
    except AttributeError:
        # not in root project; check dependencies
        contract_container = _get_dependency_contract_container(contract)

    return contract_container


def _get_abi(contract_instance: ContractInstance) -> ABI:
    """Returns the ABI of a contract instance."""
    contract_abi = list()
    for entry in contract_instance.contract_type.abi:
        contract_abi.append(entry.model_dump(mode="json", by_alias=True))
    return contract_abi


def _validate_constructor_args(
    contract_name: ContractName, abi_inputs: List[Any], resolved_args: Sequence[Any]
) -> None:
    """Validates positional constructor arguments against the constructor ABI."""
    if len(resolved_args) != len(abi_inputs):
        raise InvalidConstructorArguments(
            f"Constructor parameters length mismatch - "
            f"{contract_name} ABI requires {len(abi_inputs)}, Got {len(resolved_args)}."
        )

    for position, (abi_input, value) in enumerate(zip(abi_inputs, resolved_args)):
        if not w3.is_encodable(abi_input.type, value):
            raise InvalidConstructorArguments(
                f"{contract_name} constructor param '{abi_input.name}' at position {position} "
                f"has a value '{value}' whose type does not match expected ABI type "
                f"'{abi_input.type}'"
            )


def validate_constructor_names(steps: Sequence[DeployStep]) -> None:
    """
    Checks that every step lists its constructor parameters under the same
    names and in the same order as the compiled contract's constructor.
    """
    for step in steps:
        abi_inputs = get_contract_container(step.contract_name).constructor.abi.inputs
        if len(step.constructor) != len(abi_inputs):
            raise InvalidConstructorArguments(
                f"Constructor parameters length mismatch - "
                f"{step.contract_name} ABI requires {len(abi_inputs)}, "
                f"Got {len(step.constructor)}."
            )
        for position, (abi_input, name) in enumerate(zip(abi_inputs, step.constructor)):
            if abi_input.name != name:
                raise InvalidConstructorArguments(
                    f"{step.contract_name} constructor parameter '{name}' at position "
                    f"{position} does not match the expected ABI name '{abi_input.name}'."
                )


class ApeChain(Chain):
    """The chain of the provider ape is currently connected to."""

    def __init__(self, publish: bool = False):
        self.publish = publish

    @property
    def chain_id(self) -> ChainId:
        return networks.provider.chain_id

    def deploy_contract(
        self, contract_name: ContractName, constructor_args: List[Any], signer: AccountAPI
    ) -> DeploymentReceipt:
        container = get_contract_container(contract_name)
        _validate_constructor_args(
            contract_name=contract_name,
            abi_inputs=container.constructor.abi.inputs,
            resolved_args=constructor_args,
        )
        instance = signer.deploy(container, *constructor_args, publish=self.publish)
        receipt = instance.receipt
        return DeploymentReceipt(
            address=instance.address,
            abi=_get_abi(instance),
            tx_hash=receipt.txn_hash,
            block_number=receipt.block_number,
        )

    def read_call(
        self, address: ChecksumAddress, abi: ABI, function_name: str, args: Sequence[Any]
    ) -> Any:
        contract = Contract(address, abi=abi)
        return getattr(contract, function_name)(*args)

    def write_call(
        self,
        address: ChecksumAddress,
        abi: ABI,
        function_name: str,
        args: Sequence[Any],
        signer: AccountAPI,
    ) -> Any:
        contract = Contract(address, abi=abi)
        return getattr(contract, function_name)(*args, sender=signer)


class ApeAccountProvider(AccountProvider):
    """
    Resolves the signing account once: an explicit ape account alias, the first
    funded test account on local networks, or an interactive selection.
    """

    def __init__(
        self,
        alias: Optional[str] = None,
        account: Optional[AccountAPI] = None,
        interactive: bool = True,
    ):
        self.alias = alias
        self.interactive = interactive
        self._account = account

    def get_active_account(self) -> Optional[AccountAPI]:
        if self._account is None:
            self._account = self._load_account()
        return self._account

    def _load_account(self) -> Optional[AccountAPI]:
        if self.alias:
            return accounts.load(self.alias)
        if is_local_network():
            return accounts.test_accounts[0]
        if self.interactive:
            return select_account()
        return None
