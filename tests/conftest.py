import json

import pytest
from eth_account import Account

from proxy_deployment.constants import PROXY_CONTRACT_NAME
from proxy_deployment.networks import NetworkProfile
from proxy_deployment.orchestrator import Orchestrator
from proxy_deployment.params import InitializerParameters
from proxy_deployment.registry import AddressRegistry
from proxy_deployment.testing import FakeChainClient
from proxy_deployment.utils import load_artifact

# Common constants
CHAIN_ID = 31337
DEPLOYER_KEY = "0x" + "11" * 32
STRANGER_KEY = "0x" + "22" * 32
MUON_ADDRESS = "0xDE12c7959E1a72bbe8a5f7A1dc8f8EeF9Ab011B3"
BRIDGE_INIT_ARGS = [1, 10, "", MUON_ADDRESS]
FAKE_BYTECODE = "0x6080604052348015600f57600080fd5b50"


def _input(name, type_):
    return {"internalType": type_, "name": name, "type": type_}


def _function(name, inputs, outputs=(), mutability="nonpayable"):
    return {
        "type": "function",
        "name": name,
        "inputs": list(inputs),
        "outputs": list(outputs),
        "stateMutability": mutability,
    }


BRIDGE_ABI = [
    _function(
        "initialize",
        [
            _input("appId", "uint256"),
            _input("minReqSigs", "uint256"),
            _input("network", "string"),
            _input("muon", "address"),
        ],
    ),
    _function("appId", [], [_input("", "uint256")], mutability="view"),
]

BRIDGE_V2_ABI = BRIDGE_ABI + [
    _function("version", [], [_input("", "string")], mutability="pure"),
]

PROXY_ABI = [
    {
        "type": "constructor",
        "inputs": [
            _input("_logic", "address"),
            _input("initialOwner", "address"),
            _input("_data", "bytes"),
        ],
        "stateMutability": "payable",
    },
    {"type": "fallback", "stateMutability": "payable"},
]


def write_artifact(directory, name, abi, bytecode=FAKE_BYTECODE):
    filepath = directory / f"{name}.json"
    with open(filepath, "w") as file:
        json.dump({"contractName": name, "abi": abi, "bytecode": bytecode}, file)
    return filepath


# Fixtures
@pytest.fixture
def artifacts_dir(tmp_path):
    directory = tmp_path / "artifacts"
    directory.mkdir()
    write_artifact(directory, "DeusBridge", BRIDGE_ABI)
    write_artifact(directory, "DeusBridgeV2", BRIDGE_V2_ABI)
    write_artifact(directory, PROXY_CONTRACT_NAME, PROXY_ABI)
    return directory


@pytest.fixture
def bridge_artifact(artifacts_dir):
    return load_artifact(artifacts_dir / "DeusBridge.json")


@pytest.fixture
def bridge_v2_artifact(artifacts_dir):
    return load_artifact(artifacts_dir / "DeusBridgeV2.json")


@pytest.fixture
def proxy_artifact(artifacts_dir):
    return load_artifact(artifacts_dir / f"{PROXY_CONTRACT_NAME}.json")


@pytest.fixture
def deployer():
    return Account.from_key(DEPLOYER_KEY)


@pytest.fixture
def stranger():
    return Account.from_key(STRANGER_KEY)


@pytest.fixture
def profile():
    return NetworkProfile(
        name="hardhat",
        url="http://127.0.0.1:8545",
        chain_id=CHAIN_ID,
        accounts=[DEPLOYER_KEY, STRANGER_KEY],
    )


@pytest.fixture
def chain():
    return FakeChainClient()


@pytest.fixture
def registry(tmp_path):
    return AddressRegistry(filepath=tmp_path / "registry.json", chain_id=CHAIN_ID)


@pytest.fixture
def bridge_params(bridge_artifact):
    return InitializerParameters(artifact=bridge_artifact, raw_args=BRIDGE_INIT_ARGS)


@pytest.fixture
def bridge_v2_params(bridge_v2_artifact):
    return InitializerParameters(artifact=bridge_v2_artifact, raw_args=BRIDGE_INIT_ARGS)


@pytest.fixture
def make_orchestrator(profile, chain, registry, proxy_artifact, deployer):
    def _make(signer=None, timeout=5):
        return Orchestrator(
            profile=profile,
            client=chain,
            registry=registry,
            signer=signer or deployer,
            proxy_artifact=proxy_artifact,
            timeout=timeout,
        )

    return _make


@pytest.fixture
def orchestrator(make_orchestrator):
    return make_orchestrator()
