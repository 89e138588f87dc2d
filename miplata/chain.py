from abc import ABC, abstractmethod
from typing import Any, List, NamedTuple, Optional, Sequence

from eth_typing import ChecksumAddress

from miplata.registry import ABI, ChainId, ContractName


class DeploymentReceipt(NamedTuple):
    """The outcome of a mined contract creation transaction."""

    address: ChecksumAddress
    abi: ABI
    tx_hash: str
    block_number: int


class Chain(ABC):
    """Submits deployments, reads and writes to a single connected chain."""

    @property
    @abstractmethod
    def chain_id(self) -> ChainId:
        raise NotImplementedError

    @abstractmethod
    def deploy_contract(
        self, contract_name: ContractName, constructor_args: List[Any], signer: Any
    ) -> DeploymentReceipt:
        """Deploys a contract and blocks until the creation transaction is mined."""
        raise NotImplementedError

    @abstractmethod
    def read_call(
        self, address: ChecksumAddress, abi: ABI, function_name: str, args: Sequence[Any]
    ) -> Any:
        raise NotImplementedError

    @abstractmethod
    def write_call(
        self,
        address: ChecksumAddress,
        abi: ABI,
        function_name: str,
        args: Sequence[Any],
        signer: Any,
    ) -> Any:
        raise NotImplementedError


class AccountProvider(ABC):
    """Supplies the signing account, if any, of the current session."""

    @abstractmethod
    def get_active_account(self) -> Optional[Any]:
        """Returns an account exposing an ``address`` attribute, or None."""
        raise NotImplementedError
