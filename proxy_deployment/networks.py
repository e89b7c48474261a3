import os
from pathlib import Path
from typing import Any, Dict, List, NamedTuple, Optional, Union

from eth_account import Account
from eth_account.signers.local import LocalAccount

from proxy_deployment.constants import (
    AUTO,
    DEFAULT_CONFIRMATION_TIMEOUT,
    DEFAULT_GAS_MULTIPLIER,
    DEFAULT_HD_PATH,
    LOCAL_NETWORKS,
    NETWORK_ENVVAR,
)
from proxy_deployment.exceptions import NetworkConfigError
from proxy_deployment.utils import _load_yaml

ENVVAR_PREFIX = "$"

GasSetting = Union[str, int]


class HDAccounts(NamedTuple):
    """Accounts derived from a mnemonic, as in a hardhat local network config."""

    mnemonic: str
    path: str = DEFAULT_HD_PATH
    initial_index: int = 0
    count: int = 5


class NetworkProfile(NamedTuple):
    """Static, read-only configuration for a single target network."""

    name: str
    url: str
    chain_id: int
    accounts: Union[List[str], HDAccounts]
    gas: GasSetting = AUTO
    gas_price: GasSetting = AUTO
    gas_multiplier: float = DEFAULT_GAS_MULTIPLIER
    timeout: int = DEFAULT_CONFIRMATION_TIMEOUT

    @property
    def is_local(self) -> bool:
        return self.name in LOCAL_NETWORKS

    def signing_accounts(self) -> List[LocalAccount]:
        """Materializes the configured signing accounts."""
        if isinstance(self.accounts, HDAccounts):
            return _derive_accounts(self.accounts)

        signers = list()
        for key in self.accounts:
            private_key = _resolve_envvar(key, network=self.name)
            signers.append(Account.from_key(private_key))
        return signers

    def signer(self, index: int = 0) -> LocalAccount:
        signers = self.signing_accounts()
        if not signers:
            raise NetworkConfigError(f"No signing accounts configured for network '{self.name}'.")
        try:
            return signers[index]
        except IndexError:
            raise NetworkConfigError(
                f"Account index {index} out of range; "
                f"network '{self.name}' has {len(signers)} account(s)."
            )


def _resolve_envvar(value: str, network: str) -> str:
    if not isinstance(value, str) or not value.startswith(ENVVAR_PREFIX):
        return value
    envvar = value[len(ENVVAR_PREFIX):]
    resolved = os.environ.get(envvar)
    if not resolved:
        raise NetworkConfigError(f"{envvar} is not set (required by network '{network}').")
    return resolved


def _derive_accounts(hd_accounts: HDAccounts) -> List[LocalAccount]:
    Account.enable_unaudited_hdwallet_features()
    accounts = list()
    for index in range(hd_accounts.initial_index, hd_accounts.initial_index + hd_accounts.count):
        account = Account.from_mnemonic(
            hd_accounts.mnemonic, account_path=f"{hd_accounts.path}/{index}"
        )
        accounts.append(account)
    return accounts


def _parse_gas_setting(name: str, field: str, value: Any) -> GasSetting:
    if value is None:
        return AUTO
    if isinstance(value, str) and value.lower() == AUTO:
        return AUTO
    try:
        return int(value)
    except (TypeError, ValueError):
        raise NetworkConfigError(f"'{field}' for network '{name}' must be 'auto' or an integer.")


def _parse_accounts(name: str, accounts: Any) -> Union[List[str], HDAccounts]:
    if accounts is None:
        return list()
    if isinstance(accounts, list):
        return [str(account) for account in accounts]
    if isinstance(accounts, dict):
        if "mnemonic" not in accounts:
            raise NetworkConfigError(f"HD accounts for network '{name}' require a mnemonic.")
        return HDAccounts(
            mnemonic=_resolve_envvar(accounts["mnemonic"], network=name),
            path=accounts.get("path", DEFAULT_HD_PATH),
            initial_index=int(accounts.get("initial_index", 0)),
            count=int(accounts.get("count", 5)),
        )
    raise NetworkConfigError(f"Malformed accounts for network '{name}'.")


def _parse_profile(name: str, data: Dict[str, Any]) -> NetworkProfile:
    if not isinstance(data, dict):
        raise NetworkConfigError(f"Malformed configuration for network '{name}'.")

    url = data.get("url")
    if not url:
        raise NetworkConfigError(f"url is not set for network '{name}'.")

    chain_id = data.get("chain_id")
    if not chain_id:
        raise NetworkConfigError(f"chain_id is not set for network '{name}'.")

    return NetworkProfile(
        name=name,
        url=url,
        chain_id=int(chain_id),
        accounts=_parse_accounts(name, data.get("accounts")),
        gas=_parse_gas_setting(name, "gas", data.get("gas")),
        gas_price=_parse_gas_setting(name, "gas_price", data.get("gas_price")),
        gas_multiplier=float(data.get("gas_multiplier", DEFAULT_GAS_MULTIPLIER)),
        timeout=int(data.get("timeout", DEFAULT_CONFIRMATION_TIMEOUT)),
    )


def load_networks(config: Dict) -> Dict[str, NetworkProfile]:
    networks = config.get("networks") if config else None
    if not networks:
        raise NetworkConfigError("Network configuration missing 'networks' field.")
    return {name: _parse_profile(name, data) for name, data in networks.items()}


def load_networks_file(filepath: Path) -> Dict[str, NetworkProfile]:
    return load_networks(_load_yaml(filepath))


def select_network(
    profiles: Dict[str, NetworkProfile], network: Optional[str] = None
) -> NetworkProfile:
    """
    Selects the target network once per invocation: an explicit name wins,
    then the DEPLOY_NETWORK environment variable.
    """
    network = network or os.environ.get(NETWORK_ENVVAR)
    if not network:
        raise NetworkConfigError(
            f"No network selected; pass --network or set {NETWORK_ENVVAR}. "
            f"Available: {', '.join(sorted(profiles))}"
        )
    try:
        return profiles[network]
    except KeyError:
        raise NetworkConfigError(
            f"Unknown network '{network}'. Available: {', '.join(sorted(profiles))}"
        )
