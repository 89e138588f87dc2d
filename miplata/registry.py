import json
from collections import OrderedDict, defaultdict
from pathlib import Path
from typing import Any, Dict, List, NamedTuple, Optional

from eth_typing import ChecksumAddress
from eth_utils import to_checksum_address

from miplata.utils import _load_json

ChainId = int
ContractName = str
ABI = List[Dict[str, Any]]


STANDARD_REGISTRY_JSON_FORMAT = {"indent": 4, "separators": (",", ": ")}


class RegistryEntry(NamedTuple):
    """Represents a single deployment record in a contract registry."""

    chain_id: ChainId
    name: ContractName
    address: ChecksumAddress
    abi: ABI
    tx_hash: str
    block_number: int
    deployer: str


def read_registry(filepath: Path) -> List[RegistryEntry]:
    data = _load_json(filepath)
    registry_entries = list()
    for chain_id, entries in data.items():
        for contract_name, artifacts in entries.items():
            registry_entry = RegistryEntry(
                chain_id=int(chain_id),
                name=contract_name,
                address=to_checksum_address(artifacts["address"]),
                abi=artifacts["abi"],
                tx_hash=artifacts["tx_hash"],
                block_number=artifacts["block_number"],
                deployer=artifacts["deployer"],
            )
            registry_entries.append(registry_entry)
    return registry_entries


def write_registry(entries: List[RegistryEntry], filepath: Path, silent: bool = False) -> Path:
    """
    Writes registry entries to a file. The sections of the chains present in
    ``entries`` are replaced, sections of any other chain are left untouched.
    """

    if not entries:
        print("No entries provided.")
        return filepath

    # Sort registry entries to enforce common order
    entries = sorted(entries, key=lambda entry: (str(entry.chain_id), entry.name))

    data = defaultdict(dict)
    for entry in entries:
        entry_abi = list(entry.abi)
        entry_abi.sort(key=lambda d: (d["type"], d.get("name", "")))

        data[str(entry.chain_id)][entry.name] = {
            "address": entry.address,
            "abi": entry_abi,
            "tx_hash": entry.tx_hash,
            "block_number": int(entry.block_number),
            "deployer": entry.deployer,
        }

    # Create the parent directory if it does not exist
    filepath.parent.mkdir(parents=True, exist_ok=True)

    if filepath.exists():
        if not silent:
            print(f"Updating existing registry at {filepath}.")
        existing_data = _load_json(filepath)
        existing_data.update(data)
        data = {chain_id: existing_data[chain_id] for chain_id in sorted(existing_data)}
    elif not silent:
        print(f"Creating new registry at {filepath}.")

    with open(filepath, "w") as file:
        json.dump(data, file, **STANDARD_REGISTRY_JSON_FORMAT)

    return filepath


class Registry:
    """
    Deployment records of a single chain, keyed by contract name.

    When a filepath is given the registry is loaded from it and every
    addition is written back immediately, so a deployment that fails halfway
    keeps the records of the contracts deployed before the failure.
    Entries of other chains in the same file are never read or modified.
    """

    class Conflict(Exception):
        """Raised when a contract is registered twice without forcing it."""

    def __init__(self, chain_id: ChainId, filepath: Optional[Path] = None):
        self.chain_id = int(chain_id)
        self.filepath = filepath
        self._entries: Dict[ContractName, RegistryEntry] = OrderedDict()
        self.refresh()

    def refresh(self) -> None:
        """Reloads the entries of this chain from the registry file."""
        if self.filepath is None or not self.filepath.exists():
            return
        entries = OrderedDict()
        for entry in read_registry(filepath=self.filepath):
            if entry.chain_id == self.chain_id:
                entries[entry.name] = entry
        self._entries = entries

    def get(self, name: ContractName) -> Optional[RegistryEntry]:
        return self._entries.get(name)

    def entries(self) -> List[RegistryEntry]:
        return list(self._entries.values())

    def add(self, entry: RegistryEntry, force: bool = False) -> RegistryEntry:
        """Records a deployment; an existing record is only replaced when forced."""
        if entry.chain_id != self.chain_id:
            raise ValueError(
                f"Cannot add {entry.name} deployed on chain {entry.chain_id} "
                f"to the registry of chain {self.chain_id}."
            )
        existing = self._entries.get(entry.name)
        if existing and not force:
            raise self.Conflict(
                f"{entry.name} is already registered on chain {self.chain_id} "
                f"at {existing.address}."
            )

        self._entries[entry.name] = entry
        if self.filepath is not None:
            write_registry(entries=self.entries(), filepath=self.filepath, silent=True)
        return entry

    def __contains__(self, name: ContractName) -> bool:
        return name in self._entries

    def __len__(self) -> int:
        return len(self._entries)
