from collections.abc import Mapping
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, List, NamedTuple, Optional, Union

from eth_typing import ChecksumAddress
from eth_utils import to_checksum_address

from miplata.chain import AccountProvider, Chain
from miplata.composer import compose_invest, compose_withdraw
from miplata.constants import MIPLATA, InvestmentType
from miplata.registry import ABI, ContractName, Registry, RegistryEntry


class _Pending:
    """Marks a binding whose registry entry is not available yet."""

    def __bool__(self):
        return False

    def __repr__(self):
        return "PENDING"


PENDING = _Pending()


class BindingPending(RuntimeError):
    """Raised when a write is attempted before the contract binding is available."""


class ContractBinding(NamedTuple):
    name: ContractName
    address: ChecksumAddress
    abi: ABI

    @classmethod
    def from_entry(cls, entry: RegistryEntry) -> "ContractBinding":
        return cls(name=entry.name, address=entry.address, abi=entry.abi)


class BindingResolver:
    """Looks up the address and ABI of deployed contracts by name."""

    def __init__(self, registry: Registry):
        self.registry = registry

    def get_binding(self, name: ContractName) -> Union[ContractBinding, _Pending]:
        entry = self.registry.get(name)
        if entry is None:
            return PENDING
        return ContractBinding.from_entry(entry)

    def refresh(self) -> None:
        self.registry.refresh()


class ContractQuery:
    """
    A contract read running in the background.

    ``data`` is None while the read is pending. Issuing the query again
    replaces the previous read, whose result is then ignored.
    """

    def __init__(self, executor: ThreadPoolExecutor, read: Callable[[], Any]):
        self._executor = executor
        self._read = read
        self._future: Optional[Future] = None

    def issue(self) -> Future:
        if self._future is not None:
            self._future.cancel()
        self._future = self._executor.submit(self._read)
        return self._future

    @property
    def pending(self) -> bool:
        return self._future is None or not self._future.done()

    @property
    def data(self) -> Any:
        if self.pending:
            return None
        return self._future.result()

    def wait(self, timeout: Optional[float] = None) -> Any:
        if self._future is None:
            self.issue()
        return self._future.result(timeout=timeout)


def _field(struct: Any, name: str) -> Any:
    if isinstance(struct, Mapping):
        return struct[name]
    return getattr(struct, name)


class InvestmentView(NamedTuple):
    investment_id: int
    investment_type: InvestmentType
    usdc_deposited: int

    @classmethod
    def from_struct(cls, struct: Any) -> "InvestmentView":
        """Builds a view from an ``Investment`` struct returned by ``getUserInvestments``."""
        return cls(
            investment_id=int(_field(struct, "investmentId")),
            investment_type=InvestmentType(int(_field(struct, "investmentType"))),
            usdc_deposited=int(_field(struct, "usdcDeposited")),
        )


class MiPlataClient:
    """
    Reads MiPlata's aggregate state and submits investment requests for the
    connected account.

    Reads return None while the MiPlata binding is pending; writes raise
    ``BindingPending`` instead of being sent to an unknown address.
    """

    def __init__(
        self,
        resolver: BindingResolver,
        chain: Chain,
        account_provider: AccountProvider,
        contract_name: ContractName = MIPLATA,
        max_workers: int = 4,
    ):
        self.resolver = resolver
        self.chain = chain
        self.account_provider = account_provider
        self.contract_name = contract_name
        self._executor = ThreadPoolExecutor(max_workers=max_workers)

    @property
    def binding(self) -> Union[ContractBinding, _Pending]:
        return self.resolver.get_binding(self.contract_name)

    def _read(self, binding: ContractBinding, function_name: str, *args) -> Any:
        return self.chain.read_call(binding.address, binding.abi, function_name, list(args))

    def _write(self, function_name: str, args: List[Any], signer: Optional[Any]) -> Any:
        binding = self.binding
        if binding is PENDING:
            raise BindingPending(f"{self.contract_name} is not deployed on this network yet.")
        signer = signer or self.account_provider.get_active_account()
        if signer is None:
            raise ValueError("No connected account to sign the transaction.")
        return self.chain.write_call(binding.address, binding.abi, function_name, args, signer)

    def connected_address(self) -> Optional[ChecksumAddress]:
        account = self.account_provider.get_active_account()
        if account is None:
            return None
        return to_checksum_address(account.address)

    def total_users(self) -> Optional[int]:
        binding = self.binding
        if binding is PENDING:
            return None
        return int(self._read(binding, "getTotalUsers"))

    def user_investments(
        self, address: Optional[ChecksumAddress] = None
    ) -> Optional[List[InvestmentView]]:
        binding = self.binding
        address = address or self.connected_address()
        if binding is PENDING or address is None:
            return None
        investments = self._read(binding, "getUserInvestments", address)
        return [InvestmentView.from_struct(investment) for investment in investments]

    def total_users_query(self) -> ContractQuery:
        return ContractQuery(self._executor, self.total_users)

    def user_investments_query(self, address: Optional[ChecksumAddress] = None) -> ContractQuery:
        return ContractQuery(self._executor, lambda: self.user_investments(address))

    def invest(self, raw_amount: Any, raw_type: Any, signer: Optional[Any] = None) -> Any:
        request = compose_invest(raw_amount, raw_type)
        return self._write("invest", request.args(), signer)

    def withdraw(self, raw_id: Any, signer: Optional[Any] = None) -> Any:
        request = compose_withdraw(raw_id)
        return self._write("withdraw", request.args(), signer)

    def close(self) -> None:
        self._executor.shutdown(wait=False)
