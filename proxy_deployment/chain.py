from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Callable, Dict, NamedTuple, Optional, Sequence, Tuple

import rlp
from eth_account.signers.local import LocalAccount
from eth_typing import ChecksumAddress
from eth_utils import encode_hex, keccak, to_canonical_address, to_checksum_address
from web3 import Web3
from web3.exceptions import ContractLogicError, TimeExhausted, Web3Exception

from proxy_deployment.constants import (
    ALREADY_INITIALIZED_REASON,
    AUTO,
    EIP1967_ADMIN_SLOT,
    EIP1967_IMPLEMENTATION_SLOT,
    INITIALIZABLE_STORAGE_SLOT,
    INVALID_INITIALIZATION_SELECTOR,
    OWNABLE_UNAUTHORIZED_SELECTOR,
    PROXY_ADMIN_ABI,
    ZERO_ADDRESS,
)
from proxy_deployment.exceptions import (
    AlreadyInitializedError,
    DeployError,
    NetworkConfigError,
    UnauthorizedError,
)
from proxy_deployment.networks import NetworkProfile
from proxy_deployment.utils import ContractArtifact, address_from_slot, same_address


class Confirmation(Enum):
    SUCCESS = "success"
    TIMEOUT = "timeout"
    REVERTED = "reverted"


class TransactionHandle(NamedTuple):
    """Opaque handle used to wait for a submitted transaction."""

    tx_hash: str
    sender: ChecksumAddress
    contract_address: Optional[ChecksumAddress] = None


class Implementation(NamedTuple):
    """A stateless logic contract. Never initialized directly."""

    address: ChecksumAddress
    artifact: ContractArtifact


class Proxy(NamedTuple):
    """
    A storage-holding proxy delegating to an implementation. Typed by the
    artifact of the contract it proxies, so initializer calls encode
    against the implementation ABI but target the proxy address.
    """

    address: ChecksumAddress
    artifact: ContractArtifact


def contract_creation_address(sender: str, nonce: int) -> ChecksumAddress:
    """Address of a contract created by `sender` with the given account nonce."""
    encoded = rlp.encode([to_canonical_address(sender), nonce])
    return to_checksum_address(keccak(encoded)[12:])


class ChainClient(ABC):
    """Submits transactions, reads contract state and waits for confirmation."""

    @abstractmethod
    def deploy_contract(
        self, artifact: ContractArtifact, constructor_args: Sequence[Any], signer: LocalAccount
    ) -> Tuple[ChecksumAddress, TransactionHandle]:
        raise NotImplementedError

    @abstractmethod
    def call_initializer(
        self, proxy: Proxy, initializer: str, init_args: Sequence[Any], signer: LocalAccount
    ) -> TransactionHandle:
        raise NotImplementedError

    @abstractmethod
    def send_admin_upgrade(
        self, proxy: Proxy, implementation: Implementation, signer: LocalAccount
    ) -> TransactionHandle:
        raise NotImplementedError

    @abstractmethod
    def wait_for_confirmation(self, handle: TransactionHandle, timeout: float) -> Confirmation:
        raise NotImplementedError

    @abstractmethod
    def get_implementation(self, proxy_address: str) -> ChecksumAddress:
        raise NotImplementedError

    @abstractmethod
    def get_proxy_admin(self, proxy_address: str) -> ChecksumAddress:
        """The ProxyAdmin contract stored in the EIP-1967 admin slot."""
        raise NotImplementedError

    @abstractmethod
    def is_initialized(self, proxy_address: str) -> bool:
        raise NotImplementedError


def _error_data(error: Exception) -> str:
    data = getattr(error, "data", None)
    if isinstance(data, dict):
        data = data.get("data")
    return data if isinstance(data, str) else ""


def _is_already_initialized(error: Exception) -> bool:
    return _error_data(error).startswith(INVALID_INITIALIZATION_SELECTOR) or (
        ALREADY_INITIALIZED_REASON in str(error)
    )


def _is_unauthorized(error: Exception) -> bool:
    return _error_data(error).startswith(OWNABLE_UNAUTHORIZED_SELECTOR) or (
        "caller is not the owner" in str(error)
    )


class Web3ChainClient(ChainClient):
    """
    Chain client backed by web3.py, signing locally with eth-account
    and applying the gas policy of the selected network profile.
    """

    def __init__(self, w3: Web3, profile: NetworkProfile):
        self.w3 = w3
        self.profile = profile

    @classmethod
    def from_profile(cls, profile: NetworkProfile) -> "Web3ChainClient":
        w3 = Web3(Web3.HTTPProvider(profile.url))
        chain_id = w3.eth.chain_id
        if chain_id != profile.chain_id:
            raise NetworkConfigError(
                f"chain_id in network config ({profile.chain_id}) does not match "
                f"chain_id of {profile.url} ({chain_id})."
            )
        return cls(w3=w3, profile=profile)

    def _tx_params(self, signer: LocalAccount) -> Dict[str, Any]:
        params = {
            "from": signer.address,
            "nonce": self.w3.eth.get_transaction_count(signer.address, "pending"),
            "chainId": self.profile.chain_id,
        }
        if self.profile.gas != AUTO:
            params["gas"] = self.profile.gas
        if self.profile.gas_price != AUTO:
            params["gasPrice"] = self.profile.gas_price
        return params

    def _transact(
        self,
        build: Callable[[Dict[str, Any]], Dict[str, Any]],
        signer: LocalAccount,
        step: str,
        contract_address: Optional[ChecksumAddress] = None,
    ) -> TransactionHandle:
        params = self._tx_params(signer)
        tx = build(params)
        if self.profile.gas == AUTO:
            tx["gas"] = int(tx["gas"] * self.profile.gas_multiplier)
        signed = signer.sign_transaction(tx)
        tx_hash = self.w3.eth.send_raw_transaction(signed.raw_transaction)
        print(f"(i) {step} transaction {encode_hex(tx_hash)}")
        return TransactionHandle(
            tx_hash=encode_hex(tx_hash), sender=signer.address, contract_address=contract_address
        )

    def deploy_contract(
        self, artifact: ContractArtifact, constructor_args: Sequence[Any], signer: LocalAccount
    ) -> Tuple[ChecksumAddress, TransactionHandle]:
        factory = self.w3.eth.contract(abi=artifact.abi, bytecode=artifact.bytecode)
        nonce = self.w3.eth.get_transaction_count(signer.address, "pending")
        address = contract_creation_address(signer.address, nonce)

        def build(params):
            return factory.constructor(*constructor_args).build_transaction(params)

        try:
            handle = self._transact(
                build, signer, step=f"deploy {artifact.name}", contract_address=address
            )
        except (Web3Exception, ValueError) as e:
            raise DeployError(f"Deployment of {artifact.name} rejected", cause=e) from e
        return address, handle

    def call_initializer(
        self, proxy: Proxy, initializer: str, init_args: Sequence[Any], signer: LocalAccount
    ) -> TransactionHandle:
        if not isinstance(proxy, Proxy):
            raise TypeError(f"Initializer must target a Proxy, got {type(proxy).__name__}.")
        contract = self.w3.eth.contract(address=proxy.address, abi=proxy.artifact.abi)
        method = getattr(contract.functions, initializer)

        def build(params):
            return method(*init_args).build_transaction(params)

        try:
            return self._transact(build, signer, step=f"{proxy.artifact.name}.{initializer}")
        except ContractLogicError as e:
            if _is_already_initialized(e):
                raise AlreadyInitializedError(
                    f"Proxy {proxy.address} is already initialized", step="initialize", cause=e
                ) from e
            raise DeployError(
                f"Initializer {initializer} reverted", step="initialize", cause=e
            ) from e
        except (Web3Exception, ValueError) as e:
            raise DeployError(
                f"Initializer {initializer} rejected", step="initialize", cause=e
            ) from e

    def _proxy_admin(self, proxy_address: str):
        admin_address = self.get_proxy_admin(proxy_address)
        if admin_address == ZERO_ADDRESS:
            raise DeployError(
                f"Admin slot for contract at {proxy_address} is empty. "
                "Are you sure this is an EIP1967-compatible proxy?",
                step="upgrade",
            )
        return self.w3.eth.contract(address=admin_address, abi=PROXY_ADMIN_ABI)

    def send_admin_upgrade(
        self, proxy: Proxy, implementation: Implementation, signer: LocalAccount
    ) -> TransactionHandle:
        proxy_admin = self._proxy_admin(proxy.address)
        owner = proxy_admin.functions.owner().call()
        if not same_address(owner, signer.address):
            raise UnauthorizedError(
                f"{signer.address} does not own ProxyAdmin {proxy_admin.address} "
                f"(owner is {owner})",
                step="upgrade",
            )

        def build(params):
            return proxy_admin.functions.upgradeAndCall(
                proxy.address, implementation.address, b""
            ).build_transaction(params)

        try:
            return self._transact(build, signer, step=f"upgrade {proxy.artifact.name}")
        except ContractLogicError as e:
            if _is_unauthorized(e):
                raise UnauthorizedError(
                    f"Upgrade of {proxy.address} not authorized", step="upgrade", cause=e
                ) from e
            raise DeployError(
                f"Upgrade of {proxy.address} reverted", step="upgrade", cause=e
            ) from e
        except (Web3Exception, ValueError) as e:
            raise DeployError(
                f"Upgrade of {proxy.address} rejected", step="upgrade", cause=e
            ) from e

    def wait_for_confirmation(self, handle: TransactionHandle, timeout: float) -> Confirmation:
        try:
            receipt = self.w3.eth.wait_for_transaction_receipt(handle.tx_hash, timeout=timeout)
        except TimeExhausted:
            return Confirmation.TIMEOUT
        if receipt["status"] == 0:
            return Confirmation.REVERTED
        return Confirmation.SUCCESS

    def get_implementation(self, proxy_address: str) -> ChecksumAddress:
        slot = self.w3.eth.get_storage_at(proxy_address, EIP1967_IMPLEMENTATION_SLOT)
        return address_from_slot(slot)

    def get_proxy_admin(self, proxy_address: str) -> ChecksumAddress:
        slot = self.w3.eth.get_storage_at(proxy_address, EIP1967_ADMIN_SLOT)
        return address_from_slot(slot)

    def is_initialized(self, proxy_address: str) -> bool:
        # low 8 bytes hold the uint64 `_initialized` version
        slot = self.w3.eth.get_storage_at(proxy_address, INITIALIZABLE_STORAGE_SLOT)
        return int.from_bytes(bytes(slot)[-8:], "big") != 0
