import json

import pytest

from miplata.registry import Registry, RegistryEntry, read_registry, write_registry
from tests.conftest import CHAIN_ID, DEPLOYER_ADDRESS, FAKE_ABI

MIPLATA_ADDRESS = "0x5FbDB2315678afecb367f032d93F642f64180aa3"
OTHER_ADDRESS = "0xe7f1725E7734CE288F8367e1Bb143E90bb3F0512"


def _entry(name="MiPlata", address=MIPLATA_ADDRESS, chain_id=CHAIN_ID, block_number=7):
    return RegistryEntry(
        chain_id=chain_id,
        name=name,
        address=address,
        abi=FAKE_ABI,
        tx_hash="0xabc",
        block_number=block_number,
        deployer=DEPLOYER_ADDRESS,
    )


def test_registry_starts_empty(registry):
    assert len(registry) == 0
    assert registry.get("MiPlata") is None
    assert "MiPlata" not in registry


def test_registry_add_and_get(registry):
    entry = registry.add(_entry())
    assert registry.get("MiPlata") == entry
    assert "MiPlata" in registry
    assert registry.entries() == [entry]


def test_registry_is_write_once(registry):
    registry.add(_entry())
    with pytest.raises(Registry.Conflict, match="already registered"):
        registry.add(_entry(address=OTHER_ADDRESS))
    assert registry.get("MiPlata").address == MIPLATA_ADDRESS


def test_registry_forced_overwrite(registry):
    registry.add(_entry())
    registry.add(_entry(address=OTHER_ADDRESS, block_number=9), force=True)
    assert registry.get("MiPlata").address == OTHER_ADDRESS
    assert registry.get("MiPlata").block_number == 9
    assert len(registry) == 1


def test_registry_rejects_other_chain(registry):
    with pytest.raises(ValueError, match="chain"):
        registry.add(_entry(chain_id=CHAIN_ID + 1))


def test_registry_persists_each_addition(tmp_path):
    filepath = tmp_path / "artifacts" / "registry.json"
    registry = Registry(chain_id=CHAIN_ID, filepath=filepath)
    registry.add(_entry())

    assert filepath.exists()
    data = json.loads(filepath.read_text())
    record = data[str(CHAIN_ID)]["MiPlata"]
    assert record["address"] == MIPLATA_ADDRESS
    assert record["block_number"] == 7
    assert record["abi"] == FAKE_ABI

    reloaded = Registry(chain_id=CHAIN_ID, filepath=filepath)
    assert reloaded.get("MiPlata") == _entry()


def test_registry_is_scoped_to_its_chain(tmp_path):
    filepath = tmp_path / "registry.json"
    Registry(chain_id=84532, filepath=filepath).add(_entry(chain_id=84532, address=OTHER_ADDRESS))

    local = Registry(chain_id=CHAIN_ID, filepath=filepath)
    assert local.get("MiPlata") is None
    local.add(_entry())

    entries = read_registry(filepath)
    assert {(e.chain_id, e.address) for e in entries} == {
        (84532, OTHER_ADDRESS),
        (CHAIN_ID, MIPLATA_ADDRESS),
    }
    assert Registry(chain_id=84532, filepath=filepath).get("MiPlata").address == OTHER_ADDRESS


def test_registry_refresh_sees_new_entries(tmp_path):
    filepath = tmp_path / "registry.json"
    reader = Registry(chain_id=CHAIN_ID, filepath=filepath)
    assert reader.get("MiPlata") is None

    Registry(chain_id=CHAIN_ID, filepath=filepath).add(_entry())
    assert reader.get("MiPlata") is None
    reader.refresh()
    assert reader.get("MiPlata") == _entry()


def test_write_registry_sorts_entries(tmp_path):
    filepath = tmp_path / "registry.json"
    write_registry([_entry(name="Zeta"), _entry(name="Alpha")], filepath=filepath)
    data = json.loads(filepath.read_text())
    assert list(data[str(CHAIN_ID)]) == ["Alpha", "Zeta"]


def test_write_registry_without_entries(tmp_path, capsys):
    filepath = tmp_path / "registry.json"
    assert write_registry([], filepath=filepath) == filepath
    assert not filepath.exists()
    assert "No entries provided" in capsys.readouterr().out


def test_read_registry_checksums_addresses(tmp_path):
    filepath = tmp_path / "registry.json"
    data = {
        str(CHAIN_ID): {
            "MiPlata": {
                "address": MIPLATA_ADDRESS.lower(),
                "abi": [],
                "tx_hash": "0xabc",
                "block_number": 3,
                "deployer": DEPLOYER_ADDRESS,
            }
        }
    }
    filepath.write_text(json.dumps(data))
    (entry,) = read_registry(filepath)
    assert entry.address == MIPLATA_ADDRESS
    assert entry.chain_id == CHAIN_ID
