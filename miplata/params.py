import typing
from abc import ABC, abstractmethod
from collections import OrderedDict
from pathlib import Path
from types import MappingProxyType
from typing import Any, FrozenSet, Iterable, List, Mapping, NamedTuple, Optional, Sequence, Tuple

from eth_typing import ChecksumAddress

from miplata.constants import DEPLOYER_ROLE
from miplata.registry import ContractName, Registry
from miplata.utils import (
    DeploymentConfigError,
    _load_yaml,
    get_config_chain_id,
    validate_config,
)

CONTRACT_CONSTRUCTOR_PARAMETER_KEY = "constructor"
CONTRACT_TAGS_KEY = "tags"
CONTRACT_DEPLOYER_KEY = "deployer"
CONTRACT_REPORT_KEY = "report"


class UnresolvedDependency(ValueError):
    """Raised when a referenced contract has no registry entry at resolution time."""

    def __init__(self, contract_name: ContractName):
        self.contract_name = contract_name
        super().__init__(
            f"Unresolved dependency '{contract_name}': no registry entry found. "
            f"It must be deployed before the contracts that reference it."
        )


class CyclicDependency(DeploymentConfigError):
    """Raised when deploy steps reference each other in a cycle."""


class ResolutionContext(NamedTuple):
    registry: Registry
    deployer: Optional[ChecksumAddress] = None


# Variables


class Variable(ABC):
    VARIABLE_PREFIX = "$"

    @abstractmethod
    def resolve(self, context: ResolutionContext) -> Any:
        raise NotImplementedError

    @classmethod
    def is_variable(cls, param: Any) -> bool:
        """Returns True if the param is a variable."""
        result = isinstance(param, str) and param.startswith(cls.VARIABLE_PREFIX)
        return result


class DeployerAddress(Variable):
    DEPLOYER_INDICATOR = "deployer"

    @classmethod
    def is_deployer(cls, value: str) -> bool:
        """Returns True if the variable is a special deployer variable."""
        return value == cls.DEPLOYER_INDICATOR

    def resolve(self, context: ResolutionContext) -> Any:
        if context.deployer is None:
            raise ValueError("A deployer account is required to resolve '$deployer'.")
        return context.deployer

    def __eq__(self, other):
        return isinstance(other, DeployerAddress)

    def __repr__(self):
        return f"{self.VARIABLE_PREFIX}{self.DEPLOYER_INDICATOR}"


class Constant(Variable):
    def __init__(self, constant_name: str, constants: typing.Dict[str, Any]):
        try:
            self.constant_value = constants[constant_name]
        except KeyError:
            raise DeploymentConfigError(f"Constant '{constant_name}' not found in deployment file.")
        self.constant_name = constant_name

    @classmethod
    def is_constant(cls, value: str) -> bool:
        """Returns True if the variable is a deployment constant."""
        return value.isupper()

    def resolve(self, context: ResolutionContext) -> Any:
        return self.constant_value

    def __eq__(self, other):
        return isinstance(other, Constant) and other.constant_name == self.constant_name

    def __repr__(self):
        return f"{self.VARIABLE_PREFIX}{self.constant_name}"


class ContractReference(Variable):
    """The registry address of another contract."""

    def __init__(self, contract_name: ContractName):
        self.contract_name = contract_name

    def resolve(self, context: ResolutionContext) -> Any:
        entry = context.registry.get(self.contract_name)
        if entry is None:
            raise UnresolvedDependency(self.contract_name)
        return entry.address

    def __eq__(self, other):
        return isinstance(other, ContractReference) and other.contract_name == self.contract_name

    def __hash__(self):
        return hash(self.contract_name)

    def __repr__(self):
        return f"{self.VARIABLE_PREFIX}{self.contract_name}"


def _resolve_param(value: Any, context: ResolutionContext) -> Any:
    """Resolves a single parameter value or a list of parameter values."""
    if isinstance(value, list):
        return [_resolve_param(v, context) for v in value]

    if isinstance(value, Variable):
        return value.resolve(context)

    return value  # literally a value


def _variable_from_value(variable: str, constants: typing.Dict[str, Any]) -> Variable:
    variable = variable[len(Variable.VARIABLE_PREFIX) :]
    if DeployerAddress.is_deployer(variable):
        return DeployerAddress()
    elif Constant.is_constant(variable):
        return Constant(variable, constants)
    else:
        return ContractReference(variable)


def _process_raw_value(value: Any, constants: typing.Dict[str, Any]) -> Any:
    if isinstance(value, list):
        return [_process_raw_value(v, constants) for v in value]

    if Variable.is_variable(value):
        value = _variable_from_value(value, constants)

    return value


def _process_raw_values(values: typing.Dict, constants: typing.Dict[str, Any]) -> OrderedDict:
    if not isinstance(values, dict):
        raise DeploymentConfigError("Malformed constructor parameters YAML.")
    processed_parameters = OrderedDict()
    for name, value in values.items():
        processed_parameters[name] = _process_raw_value(value, constants)

    return processed_parameters


def _references(value: Any) -> List[ContractName]:
    if isinstance(value, list):
        return [name for v in value for name in _references(v)]
    if isinstance(value, ContractReference):
        return [value.contract_name]
    return []


# Steps


class DeployStep(NamedTuple):
    """A single contract deployment: its constructor values in signature order and its tags."""

    contract_name: ContractName
    constructor: Mapping[str, Any] = MappingProxyType({})
    tags: FrozenSet[str] = frozenset()
    deployer_role: str = DEPLOYER_ROLE
    report: Tuple[str, ...] = ()

    @property
    def dependencies(self) -> List[ContractName]:
        """Names of the contracts whose addresses this step's constructor needs."""
        dependencies = list()
        for value in self.constructor.values():
            for name in _references(value):
                if name not in dependencies:
                    dependencies.append(name)
        return dependencies

    def matches(self, tags: Iterable[str]) -> bool:
        return not self.tags.isdisjoint(tags)


def _get_step(steps: Sequence[DeployStep], contract_name: ContractName) -> DeployStep:
    for step in steps:
        if step.contract_name == contract_name:
            return step
    raise ValueError(f"No deploy step for '{contract_name}'.")


def resolve_params(step: DeployStep, context: ResolutionContext) -> OrderedDict:
    """Resolves the constructor parameters of a single step, keyed by parameter name."""
    resolved_params = OrderedDict()
    for name, value in step.constructor.items():
        resolved_params[name] = _resolve_param(value, context)
    return resolved_params


def resolve(
    steps: Sequence[DeployStep],
    target_name: ContractName,
    registry: Registry,
    deployer: Optional[ChecksumAddress] = None,
) -> List[Any]:
    """
    Returns the constructor arguments of ``target_name`` in declared order.

    Literals are returned as-is; contract references are looked up in the
    registry and raise ``UnresolvedDependency`` when the referenced
    contract has not been deployed yet.
    """
    step = _get_step(steps, target_name)
    context = ResolutionContext(registry=registry, deployer=deployer)
    return list(resolve_params(step, context).values())


def sort_steps(steps: Sequence[DeployStep]) -> List[DeployStep]:
    """
    Orders steps so that every step comes after the steps it references.
    Declaration order is kept wherever the references allow it; references to
    contracts outside of ``steps`` are left to the registry.
    """
    names = [step.contract_name for step in steps]
    duplicates = sorted({name for name in names if names.count(name) > 1})
    if duplicates:
        raise DeploymentConfigError(f"Duplicate deploy steps for {', '.join(duplicates)}.")

    declared = set(names)
    pending = list(steps)
    placed = set()
    ordered = list()
    while pending:
        for step in pending:
            dependencies = [name for name in step.dependencies if name in declared]
            if all(name in placed for name in dependencies):
                break
        else:
            cycle = ", ".join(step.contract_name for step in pending)
            raise CyclicDependency(f"Cyclic constructor dependencies between {cycle}.")
        pending.remove(step)
        placed.add(step.contract_name)
        ordered.append(step)

    return ordered


class DeploymentPlan:
    """The deploy steps of a deployment params file, in dependency order."""

    def __init__(
        self,
        steps: Sequence[DeployStep],
        chain_id: Optional[int] = None,
        registry_filepath: Optional[Path] = None,
        constants: Optional[typing.Dict[str, Any]] = None,
    ):
        self.steps = sort_steps(steps)
        self.chain_id = chain_id
        self.registry_filepath = registry_filepath
        self.constants = constants or dict()

        moved = [
            step.contract_name
            for declared, step in zip(steps, self.steps)
            if declared.contract_name != step.contract_name
        ]
        if moved:
            print(f"(i) Reordered deploy steps to satisfy dependencies: {', '.join(moved)}")

    @classmethod
    def from_config(cls, config: typing.Dict) -> "DeploymentPlan":
        registry_filepath = validate_config(config=config)
        constants = config.get("constants") or dict()

        steps = list()
        for contract_info in config["contracts"]:
            if isinstance(contract_info, str):
                contract_name, contract_data = contract_info, dict()
            elif isinstance(contract_info, dict) and len(contract_info) == 1:
                contract_name = list(contract_info.keys())[0]  # only one entry
                contract_data = contract_info[contract_name] or dict()
            else:
                raise DeploymentConfigError("Malformed constructor parameters YAML.")
            steps.append(cls._step_from_data(contract_name, contract_data, constants))

        return cls(
            steps=steps,
            chain_id=get_config_chain_id(config),
            registry_filepath=registry_filepath,
            constants=constants,
        )

    @classmethod
    def from_yaml(cls, filepath: Path) -> "DeploymentPlan":
        config = _load_yaml(filepath)
        return cls.from_config(config)

    @staticmethod
    def _step_from_data(contract_name: str, contract_data: typing.Dict, constants) -> DeployStep:
        if not isinstance(contract_data, dict):
            raise DeploymentConfigError(f"Malformed deployment config for {contract_name}.")

        constructor = _process_raw_values(
            contract_data.get(CONTRACT_CONSTRUCTOR_PARAMETER_KEY) or dict(), constants
        )
        tags = contract_data.get(CONTRACT_TAGS_KEY) or [contract_name]
        if isinstance(tags, str):
            tags = [tags]
        report = contract_data.get(CONTRACT_REPORT_KEY) or []

        return DeployStep(
            contract_name=contract_name,
            constructor=constructor,
            tags=frozenset(tags),
            deployer_role=contract_data.get(CONTRACT_DEPLOYER_KEY, DEPLOYER_ROLE),
            report=tuple(report),
        )

    @property
    def contract_names(self) -> List[ContractName]:
        return [step.contract_name for step in self.steps]

    def get(self, contract_name: ContractName) -> DeployStep:
        return _get_step(self.steps, contract_name)

    def select(self, tags: Optional[Iterable[str]] = None) -> List[DeployStep]:
        """Returns the steps matching any of ``tags`` (all steps if None), in plan order."""
        if tags is None:
            return list(self.steps)
        tags = set(tags)
        return [step for step in self.steps if step.matches(tags)]

    def __iter__(self):
        return iter(self.steps)

    def __len__(self):
        return len(self.steps)
