import json
from pathlib import Path
from typing import Any, Dict, List, NamedTuple, Optional

import yaml
from eth_typing import ChecksumAddress
from eth_utils import is_address, keccak, to_checksum_address
from ethpm_types import ContractType
from ethpm_types.abi import MethodABI

from proxy_deployment.constants import (
    ARTIFACTS_DIR,
    OZ_ARTIFACTS_DIR,
    OZ_CONTRACTS_VERSION,
    PROXY_CONSTRUCTOR_INPUTS,
    PROXY_CONTRACT_NAME,
)


def _load_yaml(filepath: Path) -> dict:
    """Loads a YAML file."""
    with open(filepath, "r") as file:
        return yaml.safe_load(file)


def _load_json(filepath: Path) -> dict:
    """Loads a JSON file."""
    with open(filepath, "r") as file:
        return json.load(file)


class ContractArtifact(NamedTuple):
    """A prebuilt contract: ABI plus creation bytecode."""

    name: str
    abi: List[Dict[str, Any]]
    bytecode: str
    contract_type: ContractType

    @property
    def methods(self) -> List[MethodABI]:
        return list(self.contract_type.methods)

    def method_abis(self, method_name: str) -> List[MethodABI]:
        """Returns all overloads of a method."""
        return [abi for abi in self.methods if abi.name == method_name]


def load_artifact(filepath: Path) -> ContractArtifact:
    """Loads a hardhat-style artifact file (contractName, abi, bytecode)."""
    data = _load_json(filepath)
    try:
        name = data.get("contractName") or Path(filepath).stem
        abi = data["abi"]
        bytecode = data["bytecode"]
    except KeyError as e:
        raise ValueError(f"Malformed contract artifact {filepath}; missing {e}.")
    if isinstance(bytecode, dict):
        # ethpm {"bytecode": ...} or foundry {"object": ...}
        bytecode = bytecode.get("bytecode") or bytecode.get("object")
    if not bytecode or bytecode == "0x":
        raise ValueError(f"Contract artifact {filepath} has no creation bytecode.")

    contract_type = ContractType.model_validate({"contractName": name, "abi": abi})
    return ContractArtifact(name=name, abi=abi, bytecode=bytecode, contract_type=contract_type)


def resolve_artifact_filepath(contract: str, artifacts_dir: Path = ARTIFACTS_DIR) -> Path:
    """Accepts either a path to an artifact file or a bare contract name."""
    filepath = Path(contract)
    if filepath.suffix == ".json":
        return filepath
    filepath = Path(artifacts_dir) / f"{contract}.json"
    if not filepath.exists():
        raise ValueError(f"No artifact found for contract '{contract}' in {artifacts_dir}.")
    return filepath


def resolve_proxy_artifact_filepath(
    configured: Optional[Path] = None,
    artifacts_dir: Path = ARTIFACTS_DIR,
    oz_artifacts_dir: Path = OZ_ARTIFACTS_DIR,
) -> Path:
    """
    The configured proxy artifact if any, otherwise the first of the artifacts
    dir and the @openzeppelin/contracts package build that holds one.
    """
    if configured:
        candidates = [Path(configured)]
    else:
        filename = f"{PROXY_CONTRACT_NAME}.json"
        candidates = [Path(artifacts_dir) / filename, Path(oz_artifacts_dir) / filename]
    for filepath in candidates:
        if filepath.exists():
            return filepath
    raise ValueError(
        f"No {PROXY_CONTRACT_NAME} artifact found at {', '.join(map(str, candidates))}. "
        f"Run `npm install` to fetch @openzeppelin/contracts {OZ_CONTRACTS_VERSION} "
        "or set 'proxy_artifact' in the network config."
    )


def load_proxy_artifact(filepath: Path) -> ContractArtifact:
    """Loads a TransparentUpgradeableProxy artifact, refusing pre-5.x constructors."""
    artifact = load_artifact(filepath)
    constructor = next((abi for abi in artifact.abi if abi.get("type") == "constructor"), None)
    inputs = [(i.get("name"), i.get("type")) for i in (constructor or {}).get("inputs", [])]
    if inputs != PROXY_CONSTRUCTOR_INPUTS:
        raise ValueError(
            f"{filepath} is not an OpenZeppelin 5.x {PROXY_CONTRACT_NAME} artifact; "
            f"its constructor takes {inputs}."
        )
    return artifact


def same_address(a: str, b: str) -> bool:
    if not (is_address(a) and is_address(b)):
        return False
    return to_checksum_address(a) == to_checksum_address(b)


def address_from_slot(slot_value: bytes) -> ChecksumAddress:
    """Extracts an address stored right-aligned in a 32 byte storage slot."""
    return to_checksum_address(bytes(slot_value)[-20:])


def hash_init_args(init_args: List[Any]) -> str:
    """keccak256 of the canonical JSON encoding of initializer arguments."""
    encoded = json.dumps(to_json_value(init_args), sort_keys=True, separators=(",", ":"))
    return "0x" + keccak(text=encoded).hex()


def to_json_value(value: Any) -> Any:
    """Converts initializer values into JSON-serialisable values."""
    if isinstance(value, (list, tuple)):
        return [to_json_value(v) for v in value]
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    return value
