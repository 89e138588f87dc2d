import typing
from collections import OrderedDict
from typing import Any, Iterable, List, NamedTuple, Optional, Sequence, Union

from eth_typing import ChecksumAddress
from eth_utils import to_checksum_address

from miplata.chain import AccountProvider, Chain
from miplata.confirm import _confirm_resolution
from miplata.constants import DEPLOYER_ROLE
from miplata.params import DeploymentPlan, DeployStep, ResolutionContext, resolve_params
from miplata.registry import ContractName, Registry, RegistryEntry

ALL = "all"

TagFilter = Union[str, Iterable[str], None]


class DeploymentFailed(RuntimeError):
    """Raised when a contract creation transaction could not be submitted or mined."""

    def __init__(self, contract_name: ContractName, reason: Any):
        self.contract_name = contract_name
        self.reason = reason
        super().__init__(f"Deployment of {contract_name} failed: {reason}")


class OrchestrationFailed(RuntimeError):
    """Raised when a deploy step fails; no later step has been attempted."""

    def __init__(self, step_name: ContractName, cause: Exception):
        self.step_name = step_name
        self.cause = cause
        super().__init__(f"Deployment halted at {step_name}: {cause}")


class DeployerAccount(NamedTuple):
    address: ChecksumAddress
    role: str
    signer: Any

    @classmethod
    def from_provider(
        cls, provider: AccountProvider, role: str = DEPLOYER_ROLE
    ) -> "DeployerAccount":
        account = provider.get_active_account()
        if account is None:
            raise ValueError(f"No account available for the '{role}' role.")
        return cls(address=to_checksum_address(account.address), role=role, signer=account)


class Deployer:
    """
    Deploys single steps from a deployer account and records them in the registry.

    Deployment is idempotent: a contract that already has a registry entry on
    the active chain is reused, not deployed again, unless its name is in
    ``force``.
    """

    def __init__(
        self,
        chain: Chain,
        registry: Registry,
        account: DeployerAccount,
        autosign: bool = False,
        force: Iterable[ContractName] = (),
    ):
        if registry.chain_id != chain.chain_id:
            raise ValueError(
                f"Registry is for chain {registry.chain_id} but the active chain "
                f"is {chain.chain_id}."
            )
        self.chain = chain
        self.registry = registry
        self.account = account
        self.force = frozenset(force)
        if autosign:
            print("WARNING: Autosign is enabled. Transactions will be signed automatically.")
        self._autosign = autosign

    def resolution_context(self) -> ResolutionContext:
        return ResolutionContext(registry=self.registry, deployer=self.account.address)

    def execute(self, step: DeployStep, resolved_args: Sequence[Any]) -> RegistryEntry:
        contract_name = step.contract_name
        forced = contract_name in self.force

        existing = self.registry.get(contract_name)
        if existing and not forced:
            print(f"Reusing existing deployment of {contract_name} at {existing.address}")
            return existing

        if step.deployer_role != self.account.role:
            raise ValueError(
                f"{contract_name} must be deployed by the '{step.deployer_role}' account, "
                f"got '{self.account.role}'."
            )

        if not self._autosign:
            _confirm_resolution(OrderedDict(zip(step.constructor, resolved_args)), contract_name)

        try:
            receipt = self.chain.deploy_contract(
                contract_name, list(resolved_args), self.account.signer
            )
        except Exception as e:
            raise DeploymentFailed(contract_name, e) from e

        entry = RegistryEntry(
            chain_id=self.registry.chain_id,
            name=contract_name,
            address=to_checksum_address(receipt.address),
            abi=receipt.abi,
            tx_hash=receipt.tx_hash,
            block_number=receipt.block_number,
            deployer=self.account.address,
        )
        self.registry.add(entry, force=forced)
        print(f"{contract_name} deployed at {entry.address}")

        self._report(step, entry)
        return entry

    def _report(self, step: DeployStep, entry: RegistryEntry) -> None:
        """Prints the result of the step's zero-argument view calls."""
        for function_name in step.report:
            value = self.chain.read_call(entry.address, entry.abi, function_name, [])
            print(f"(i) {entry.name}.{function_name}() = {value}")


def _normalize_tags(tags: TagFilter) -> Optional[typing.Set[str]]:
    if tags is None or tags == ALL:
        return None
    if isinstance(tags, str):
        return {tags}
    return set(tags)


class Orchestrator:
    """Runs the steps of a deployment plan, in plan order, one at a time."""

    def __init__(self, deployer: Deployer):
        self.deployer = deployer

    def run(
        self, steps: Union[DeploymentPlan, Sequence[DeployStep]], tags: TagFilter = ALL
    ) -> List[RegistryEntry]:
        """
        Deploys every step whose tags intersect ``tags`` (every step for ``ALL``).

        The first failing step raises ``OrchestrationFailed``; the steps after it
        are never attempted and the registry keeps the entries written so far.
        """
        plan = steps if isinstance(steps, DeploymentPlan) else DeploymentPlan(steps)
        selected = plan.select(_normalize_tags(tags))
        if not selected:
            print("(i) No deploy steps match the requested tags.")
            return []

        print(f"Deploying {', '.join(step.contract_name for step in selected)}")
        entries = list()
        for step in selected:
            try:
                resolved_params = resolve_params(step, self.deployer.resolution_context())
                entry = self.deployer.execute(step, list(resolved_params.values()))
            except Exception as e:
                raise OrchestrationFailed(step.contract_name, e) from e
            entries.append(entry)

        if self.deployer.registry.filepath is not None:
            print(f"(i) Registry written to {self.deployer.registry.filepath}!")
        return entries
