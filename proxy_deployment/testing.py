"""
In-memory chain client for exercising deployments without a live network.

Addresses follow the CREATE rule (sender, nonce) so they are deterministic
for a given sequence of calls, and every transaction is confirmed instantly
unless a failure has been scheduled with ``fail_next`` or ``reject_next``.
"""

from collections import defaultdict
from typing import Any, Dict, List, NamedTuple, Optional, Sequence, Set, Tuple

from eth_account.signers.local import LocalAccount
from eth_typing import ChecksumAddress
from eth_utils import encode_hex, keccak, to_checksum_address

from proxy_deployment.chain import (
    ChainClient,
    Confirmation,
    Implementation,
    Proxy,
    TransactionHandle,
    contract_creation_address,
)
from proxy_deployment.constants import PROXY_CONTRACT_NAME, ZERO_ADDRESS
from proxy_deployment.exceptions import AlreadyInitializedError, DeployError, UnauthorizedError
from proxy_deployment.utils import ContractArtifact, same_address

DEPLOY_CONTRACT = "deploy_contract"
DEPLOY_PROXY = "deploy_proxy"
CALL_INITIALIZER = "call_initializer"
SEND_ADMIN_UPGRADE = "send_admin_upgrade"


class FakeProxyState:
    def __init__(
        self,
        implementation: ChecksumAddress,
        admin: ChecksumAddress,
        proxy_admin: ChecksumAddress,
    ):
        self.implementation = implementation
        self.admin = admin  # owner of the ProxyAdmin
        self.proxy_admin = proxy_admin
        self.initialized = False
        self.initializer_calls: List[Tuple[str, List[Any]]] = list()


class FakeTransaction(NamedTuple):
    operation: str
    sender: ChecksumAddress
    outcome: Confirmation


class FakeChainClient(ChainClient):
    def __init__(self, proxy_contract_name: str = PROXY_CONTRACT_NAME):
        self.proxy_contract_name = proxy_contract_name
        self.contracts: Dict[ChecksumAddress, ContractArtifact] = dict()
        self.proxies: Dict[ChecksumAddress, FakeProxyState] = dict()
        self.transactions: Dict[str, FakeTransaction] = dict()
        self.nonces: Dict[ChecksumAddress, int] = defaultdict(int)
        self._scheduled_outcomes: Dict[str, Confirmation] = dict()
        self._scheduled_rejections: Set[str] = set()

    #
    # Failure injection
    #

    def fail_next(self, operation: str, outcome: Confirmation = Confirmation.REVERTED) -> None:
        """The next transaction of this kind is submitted but not confirmed."""
        self._scheduled_outcomes[operation] = outcome

    def reject_next(self, operation: str) -> None:
        """The next transaction of this kind is rejected at submission."""
        self._scheduled_rejections.add(operation)

    def _submit(
        self, operation: str, signer: LocalAccount
    ) -> Tuple[TransactionHandle, Confirmation]:
        if operation in self._scheduled_rejections:
            self._scheduled_rejections.discard(operation)
            raise DeployError(f"{operation} rejected by node", step=operation)

        sender = to_checksum_address(signer.address)
        nonce = self.nonces[sender]
        self.nonces[sender] += 1
        tx_hash = encode_hex(keccak(text=f"{sender}:{nonce}"))
        outcome = self._scheduled_outcomes.pop(operation, Confirmation.SUCCESS)
        self.transactions[tx_hash] = FakeTransaction(operation, sender, outcome)

        address = contract_creation_address(sender, nonce)
        return TransactionHandle(tx_hash=tx_hash, sender=sender, contract_address=address), outcome

    #
    # ChainClient
    #

    def deploy_contract(
        self, artifact: ContractArtifact, constructor_args: Sequence[Any], signer: LocalAccount
    ) -> Tuple[ChecksumAddress, TransactionHandle]:
        is_proxy = artifact.name == self.proxy_contract_name
        operation = DEPLOY_PROXY if is_proxy else DEPLOY_CONTRACT
        handle, outcome = self._submit(operation, signer)
        if outcome != Confirmation.SUCCESS:
            return handle.contract_address, handle

        if is_proxy:
            logic, initial_owner, data = constructor_args
            logic = to_checksum_address(logic)
            if logic not in self.contracts:
                # ERC1967InvalidImplementation
                self.transactions[handle.tx_hash] = self.transactions[handle.tx_hash]._replace(
                    outcome=Confirmation.REVERTED
                )
                return handle.contract_address, handle
            # the proxy constructor creates its ProxyAdmin as its first (nonce 1) contract
            state = FakeProxyState(
                implementation=logic,
                admin=to_checksum_address(initial_owner),
                proxy_admin=contract_creation_address(handle.contract_address, 1),
            )
            state.initialized = bool(data)
            self.proxies[handle.contract_address] = state

        self.contracts[handle.contract_address] = artifact
        return handle.contract_address, handle

    def call_initializer(
        self, proxy: Proxy, initializer: str, init_args: Sequence[Any], signer: LocalAccount
    ) -> TransactionHandle:
        if not isinstance(proxy, Proxy):
            raise TypeError(f"Initializer must target a Proxy, got {type(proxy).__name__}.")
        state = self.proxies.get(proxy.address)
        if state is None:
            raise DeployError(f"No proxy deployed at {proxy.address}", step="initialize")
        if state.initialized:
            raise AlreadyInitializedError(
                f"Proxy {proxy.address} is already initialized", step="initialize"
            )
        if not proxy.artifact.method_abis(initializer):
            raise DeployError(
                f"{proxy.artifact.name} has no method '{initializer}'", step="initialize"
            )

        handle, outcome = self._submit(CALL_INITIALIZER, signer)
        if outcome == Confirmation.SUCCESS:
            state.initialized = True
            state.initializer_calls.append((initializer, list(init_args)))
        return handle

    def send_admin_upgrade(
        self, proxy: Proxy, implementation: Implementation, signer: LocalAccount
    ) -> TransactionHandle:
        state = self.proxies.get(proxy.address)
        if state is None:
            raise DeployError(f"No proxy deployed at {proxy.address}", step="upgrade")
        if not same_address(state.admin, signer.address):
            raise UnauthorizedError(
                f"{signer.address} is not the admin of {proxy.address}", step="upgrade"
            )

        handle, outcome = self._submit(SEND_ADMIN_UPGRADE, signer)
        if outcome == Confirmation.SUCCESS:
            if implementation.address not in self.contracts:
                self.transactions[handle.tx_hash] = self.transactions[handle.tx_hash]._replace(
                    outcome=Confirmation.REVERTED
                )
            else:
                state.implementation = implementation.address
        return handle

    def wait_for_confirmation(self, handle: TransactionHandle, timeout: float) -> Confirmation:
        return self.transactions[handle.tx_hash].outcome

    def get_implementation(self, proxy_address: str) -> ChecksumAddress:
        state = self.proxies.get(to_checksum_address(proxy_address))
        if state is None:
            return ZERO_ADDRESS
        return state.implementation

    def is_initialized(self, proxy_address: str) -> bool:
        state = self.proxies.get(to_checksum_address(proxy_address))
        return state is not None and state.initialized

    def get_proxy_admin(self, proxy_address: str) -> ChecksumAddress:
        state = self.proxies.get(to_checksum_address(proxy_address))
        if state is None:
            return ZERO_ADDRESS
        return state.proxy_admin

    def initializer_calls(self, proxy_address: str) -> Optional[List[Tuple[str, List[Any]]]]:
        state = self.proxies.get(to_checksum_address(proxy_address))
        return None if state is None else state.initializer_calls
