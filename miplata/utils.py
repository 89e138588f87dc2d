import json
from pathlib import Path
from typing import Dict

import yaml

from miplata.constants import ARTIFACTS_DIR


class DeploymentConfigError(ValueError):
    pass


def _load_yaml(filepath: Path) -> dict:
    """Loads a YAML file."""
    with open(filepath, "r") as file:
        return yaml.safe_load(file)


def _load_json(filepath: Path) -> dict:
    """Loads a JSON file."""
    with open(filepath, "r") as file:
        return json.load(file)


def get_artifact_filepath(config: Dict) -> Path:
    """Returns the filepath of the registry file."""
    artifact_config = config.get("artifacts", {})
    artifact_dir = Path(artifact_config.get("dir", ARTIFACTS_DIR))
    filename = artifact_config.get("filename")
    if not filename:
        raise DeploymentConfigError("artifact filename is not set in params file.")
    return artifact_dir / filename


def get_config_chain_id(config: Dict) -> int:
    deployment = config.get("deployment")
    if not deployment:
        raise DeploymentConfigError("deployment is not set in params file.")

    config_chain_id = deployment.get("chain_id")
    if not config_chain_id:
        raise DeploymentConfigError("chain_id is not set in params file.")

    return int(config_chain_id)


def validate_config(config: Dict) -> Path:
    """
    Checks the structure of a deployment params file and
    returns the filepath of the registry it publishes to.
    """
    print("Validating parameters YAML...")

    if not isinstance(config, dict):
        raise DeploymentConfigError("Malformed deployment parameters YAML.")

    get_config_chain_id(config)

    contracts = config.get("contracts")
    if not contracts:
        raise DeploymentConfigError("Constructor parameters file missing 'contracts' field.")

    return get_artifact_filepath(config=config)
