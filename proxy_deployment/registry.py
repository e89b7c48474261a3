import json
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, List, NamedTuple, Optional

from eth_typing import ChecksumAddress
from eth_utils import to_checksum_address

from proxy_deployment.constants import STANDARD_REGISTRY_JSON_FORMAT
from proxy_deployment.exceptions import PersistenceError
from proxy_deployment.utils import hash_init_args, to_json_value

ChainId = int
DeploymentName = str


class DeploymentRecord(NamedTuple):
    """Represents a single proxy-backed deployment in the address registry."""

    name: DeploymentName
    contract_name: str
    proxy_address: ChecksumAddress
    implementation_address: ChecksumAddress
    admin_address: ChecksumAddress
    init_args: List[Any]
    init_args_hash: str
    version: int = 0
    # ProxyAdmin contract held in the EIP-1967 admin slot, owned by `admin_address`
    proxy_admin_address: Optional[ChecksumAddress] = None

    @classmethod
    def create(
        cls,
        name: DeploymentName,
        contract_name: str,
        proxy_address: str,
        implementation_address: str,
        admin_address: str,
        init_args: List[Any],
        proxy_admin_address: Optional[str] = None,
    ) -> "DeploymentRecord":
        init_args = to_json_value(list(init_args))
        if proxy_admin_address is not None:
            proxy_admin_address = to_checksum_address(proxy_admin_address)
        return cls(
            name=name,
            contract_name=contract_name,
            proxy_address=to_checksum_address(proxy_address),
            implementation_address=to_checksum_address(implementation_address),
            admin_address=to_checksum_address(admin_address),
            init_args=init_args,
            init_args_hash=hash_init_args(init_args),
            version=0,
            proxy_admin_address=proxy_admin_address,
        )

    def upgraded(self, contract_name: str, implementation_address: str) -> "DeploymentRecord":
        """Returns the record as it stands after a successful upgrade."""
        return self._replace(
            contract_name=contract_name,
            implementation_address=to_checksum_address(implementation_address),
            version=self.version + 1,
        )

    def to_dict(self) -> Dict[str, Any]:
        data = self._asdict()
        del data["name"]
        return data

    @classmethod
    def from_dict(cls, name: DeploymentName, data: Dict[str, Any]) -> "DeploymentRecord":
        return cls(
            name=name,
            contract_name=data["contract_name"],
            proxy_address=data["proxy_address"],
            implementation_address=data["implementation_address"],
            admin_address=data["admin_address"],
            init_args=data["init_args"],
            init_args_hash=data["init_args_hash"],
            version=int(data["version"]),
            proxy_admin_address=data.get("proxy_admin_address"),
        )


class AddressRegistry:
    """
    Durable JSON store of deployment records for one chain.

    The file layout groups records by chain id so a single registry can hold
    deployments for several networks:

        {"<chain_id>": {"<name>": {...}}}
    """

    def __init__(self, filepath: Path, chain_id: ChainId):
        self.filepath = Path(filepath)
        self.chain_id = int(chain_id)

    def _read(self) -> Dict[str, Dict[str, Any]]:
        if not self.filepath.exists():
            return dict()
        try:
            with open(self.filepath, "r") as file:
                data = json.load(file)
        except (OSError, ValueError) as e:
            raise PersistenceError(
                f"Cannot read registry at {self.filepath}", step="registry.read", cause=e
            ) from e
        if not isinstance(data, dict):
            raise PersistenceError(f"Malformed registry at {self.filepath}", step="registry.read")
        return data

    def get(self, name: DeploymentName) -> Optional[DeploymentRecord]:
        entries = self._read().get(str(self.chain_id), {})
        entry = entries.get(name)
        if entry is None:
            return None
        try:
            return DeploymentRecord.from_dict(name, entry)
        except (KeyError, TypeError, ValueError) as e:
            raise PersistenceError(
                f"Malformed registry entry '{name}' in {self.filepath}",
                step="registry.read",
                cause=e,
            ) from e

    def records(self) -> List[DeploymentRecord]:
        entries = self._read().get(str(self.chain_id), {})
        return [self.get(name) for name in sorted(entries)]

    def put(self, name: DeploymentName, record: DeploymentRecord) -> None:
        """
        Atomically writes a record, preserving every other entry (including
        those of other chains). Readers either see the previous file or the
        new one, never a partial write.
        """
        if record.name != name:
            raise ValueError(f"Record name '{record.name}' does not match key '{name}'.")

        data = self._read()
        data.setdefault(str(self.chain_id), dict())[name] = record.to_dict()

        # Sort to enforce common order
        data = {
            chain_id: dict(sorted(entries.items()))
            for chain_id, entries in sorted(data.items(), key=lambda item: item[0])
        }

        temp_filepath = None
        try:
            self.filepath.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w",
                dir=self.filepath.parent,
                prefix=f".{self.filepath.name}.",
                suffix=".tmp",
                delete=False,
            ) as file:
                temp_filepath = Path(file.name)
                json.dump(data, file, **STANDARD_REGISTRY_JSON_FORMAT)
                file.flush()
                os.fsync(file.fileno())
            os.replace(temp_filepath, self.filepath)
        except (OSError, TypeError, ValueError) as e:
            if temp_filepath is not None and temp_filepath.exists():
                temp_filepath.unlink()
            raise PersistenceError(
                f"Cannot write registry at {self.filepath}", step="registry.write", cause=e
            ) from e
