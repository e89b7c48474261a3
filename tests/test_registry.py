import json

import pytest

from proxy_deployment.exceptions import PersistenceError
from proxy_deployment.registry import AddressRegistry, DeploymentRecord
from tests.conftest import BRIDGE_INIT_ARGS, CHAIN_ID

PROXY = "0x343c43A37D37dfF08AE8C4A11544c718AbB4fCF8"
IMPLEMENTATION = "0xcd234A471b72ba2F1Ccf0A70FCABA648a5eeCD8d"
ADMIN = "0xDE12c7959E1a72bbe8a5f7A1dc8f8EeF9Ab011B3"


@pytest.fixture
def record():
    return DeploymentRecord.create(
        name="bridge",
        contract_name="DeusBridge",
        proxy_address=PROXY.lower(),
        implementation_address=IMPLEMENTATION,
        admin_address=ADMIN,
        init_args=BRIDGE_INIT_ARGS,
    )


def test_create_record(record):
    assert record.version == 0
    assert record.proxy_address == PROXY  # checksummed
    assert record.init_args == BRIDGE_INIT_ARGS
    assert record.init_args_hash.startswith("0x")
    assert len(record.init_args_hash) == 66


def test_init_args_hash_is_stable(record):
    again = DeploymentRecord.create(
        name="other",
        contract_name="DeusBridge",
        proxy_address=PROXY,
        implementation_address=IMPLEMENTATION,
        admin_address=ADMIN,
        init_args=list(BRIDGE_INIT_ARGS),
    )
    assert again.init_args_hash == record.init_args_hash

    different = DeploymentRecord.create(
        name="other",
        contract_name="DeusBridge",
        proxy_address=PROXY,
        implementation_address=IMPLEMENTATION,
        admin_address=ADMIN,
        init_args=[2, 10, "", ADMIN],
    )
    assert different.init_args_hash != record.init_args_hash


def test_bytes_init_args_are_stored_as_hex():
    record = DeploymentRecord.create(
        name="bytes",
        contract_name="DeusBridge",
        proxy_address=PROXY,
        implementation_address=IMPLEMENTATION,
        admin_address=ADMIN,
        init_args=[b"\x01\x02", [b"\xff"]],
    )
    assert record.init_args == ["0x0102", ["0xff"]]


def test_upgraded_record(record):
    upgraded = record.upgraded(contract_name="DeusBridgeV2", implementation_address=ADMIN)
    assert upgraded.version == 1
    assert upgraded.proxy_address == record.proxy_address
    assert upgraded.admin_address == record.admin_address
    assert upgraded.init_args == record.init_args
    assert upgraded.implementation_address == ADMIN
    assert upgraded.contract_name == "DeusBridgeV2"


def test_get_missing_registry(registry):
    assert not registry.filepath.exists()
    assert registry.get("bridge") is None
    assert registry.records() == []


def test_put_and_get(registry, record):
    registry.put("bridge", record)
    assert registry.get("bridge") == record
    assert registry.get("unknown") is None


def test_file_layout(registry, record):
    registry.put("bridge", record)
    with open(registry.filepath) as file:
        data = json.load(file)
    entry = data[str(CHAIN_ID)]["bridge"]
    assert entry["proxy_address"] == PROXY
    assert entry["version"] == 0
    assert "name" not in entry


def test_put_preserves_other_chains(tmp_path, record):
    filepath = tmp_path / "registry.json"
    fantom = AddressRegistry(filepath, chain_id=250)
    local = AddressRegistry(filepath, chain_id=CHAIN_ID)

    fantom.put("bridge", record)
    local.put("bridge", record._replace(version=3))

    assert fantom.get("bridge").version == 0
    assert local.get("bridge").version == 3


def test_records_are_sorted(registry, record):
    registry.put("zeta", record._replace(name="zeta"))
    registry.put("alpha", record._replace(name="alpha"))
    assert [r.name for r in registry.records()] == ["alpha", "zeta"]


def test_put_rejects_mismatched_name(registry, record):
    with pytest.raises(ValueError):
        registry.put("not-bridge", record)


def test_corrupt_registry(registry):
    registry.filepath.write_text("{not json")
    with pytest.raises(PersistenceError) as error:
        registry.get("bridge")
    assert error.value.step == "registry.read"
    assert error.value.cause is not None


def test_malformed_entry(registry):
    registry.filepath.write_text(json.dumps({str(CHAIN_ID): {"bridge": {"version": 0}}}))
    with pytest.raises(PersistenceError):
        registry.get("bridge")


def test_failed_write_leaves_previous_state(registry, record, monkeypatch):
    registry.put("bridge", record)
    before = registry.filepath.read_text()

    def broken_dump(*args, **kwargs):
        raise OSError("disk full")

    monkeypatch.setattr("proxy_deployment.registry.json.dump", broken_dump)
    with pytest.raises(PersistenceError) as error:
        registry.put("bridge", record._replace(version=1))
    monkeypatch.undo()

    assert error.value.step == "registry.write"
    assert registry.filepath.read_text() == before
    assert registry.get("bridge").version == 0
    # no temporary files left behind
    assert [p.name for p in registry.filepath.parent.iterdir()] == [registry.filepath.name]


def test_unwritable_location(tmp_path, record):
    blocker = tmp_path / "blocker"
    blocker.write_text("")
    registry = AddressRegistry(blocker / "registry.json", chain_id=CHAIN_ID)
    with pytest.raises(PersistenceError):
        registry.put("bridge", record)


def test_proxy_admin_address_round_trip(registry, record):
    record = record._replace(proxy_admin_address=ADMIN)
    registry.put("bridge", record)

    with open(registry.filepath) as file:
        entry = json.load(file)[str(CHAIN_ID)]["bridge"]
    assert entry["proxy_admin_address"] == ADMIN
    assert registry.get("bridge").proxy_admin_address == ADMIN
    assert registry.get("bridge").upgraded("DeusBridgeV2", PROXY).proxy_admin_address == ADMIN


def test_entry_without_proxy_admin_address(registry, record):
    entry = record.to_dict()
    del entry["proxy_admin_address"]
    with open(registry.filepath, "w") as file:
        json.dump({str(CHAIN_ID): {"bridge": entry}}, file)

    loaded = registry.get("bridge")
    assert loaded.proxy_admin_address is None
    assert loaded.admin_address == ADMIN
