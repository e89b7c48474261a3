from contextlib import contextmanager
from typing import Any, NamedTuple, Optional, Sequence

from eth_account.signers.local import LocalAccount
from eth_typing import ChecksumAddress
from eth_utils import to_checksum_address
from web3.exceptions import Web3Exception

from proxy_deployment.chain import (
    ChainClient,
    Confirmation,
    Implementation,
    Proxy,
    TransactionHandle,
)
from proxy_deployment.confirm import _confirm_resolution, _confirm_upgrade
from proxy_deployment.constants import DEFAULT_CONFIRMATION_TIMEOUT, ZERO_ADDRESS
from proxy_deployment.exceptions import (
    AlreadyInitializedError,
    DeployError,
    DeploymentError,
    InvalidParameters,
    UnauthorizedError,
)
from proxy_deployment.params import InitializerParameters
from proxy_deployment.registry import DeploymentRecord
from proxy_deployment.utils import ContractArtifact, same_address


class DeployedProxy(NamedTuple):
    proxy: Proxy
    implementation: Implementation
    admin_address: ChecksumAddress
    proxy_admin_address: ChecksumAddress


@contextmanager
def _step(step: str):
    """Tags errors raised within with the step, wrapping node and client failures."""
    try:
        yield
    except DeploymentError as e:
        e.step = step
        raise
    except InvalidParameters:
        raise
    except OSError as e:
        raise DeployError(f"Node unreachable during {step}", step=step, cause=e) from e
    except (Web3Exception, ValueError) as e:
        raise DeployError(f"Chain call failed during {step}", step=step, cause=e) from e


class Transactor:
    """
    Represents a signing account plus confirmed transaction execution
    against a chain client.
    """

    def __init__(
        self,
        client: ChainClient,
        signer: LocalAccount,
        timeout: float = DEFAULT_CONFIRMATION_TIMEOUT,
        autosign: bool = True,
    ):
        self.client = client
        self.signer = signer
        self.timeout = timeout
        self.autosign = autosign

    def _await(self, handle: TransactionHandle, step: str, description: str) -> None:
        outcome = self.client.wait_for_confirmation(handle, self.timeout)
        if outcome == Confirmation.TIMEOUT:
            raise DeployError(
                f"{description} not confirmed within {self.timeout}s (tx {handle.tx_hash}); "
                "reconcile its fate manually before retrying",
                step=step,
            )
        if outcome == Confirmation.REVERTED:
            raise DeployError(f"{description} reverted (tx {handle.tx_hash})", step=step)

    def _deploy_contract(
        self, artifact: ContractArtifact, constructor_args: Sequence[Any], step: str
    ) -> ChecksumAddress:
        with _step(step):
            address, handle = self.client.deploy_contract(artifact, constructor_args, self.signer)
            self._await(handle, step=step, description=f"Deployment of {artifact.name}")
        return to_checksum_address(address)

    def _deploy_implementation(self, artifact: ContractArtifact, step: str) -> Implementation:
        print(f"Deploying {artifact.name}...")
        address = self._deploy_contract(artifact, constructor_args=[], step=step)
        print(f"{address} {artifact.name} implementation address")
        return Implementation(address=address, artifact=artifact)

    def _verify_implementation(self, proxy: Proxy, implementation: Implementation, step: str):
        with _step(step):
            current = self.client.get_implementation(proxy.address)
        if not same_address(current, implementation.address):
            raise DeployError(
                f"Proxy {proxy.address} points at {current}, expected {implementation.address}",
                step=step,
            )

    def _read_proxy_admin(self, proxy: Proxy, step: str) -> ChecksumAddress:
        with _step(step):
            proxy_admin_address = self.client.get_proxy_admin(proxy.address)
        if proxy_admin_address == ZERO_ADDRESS:
            raise DeployError(
                f"Admin slot of proxy {proxy.address} is empty; not an EIP-1967 proxy",
                step=step,
            )
        return to_checksum_address(proxy_admin_address)


class ProxyDeployer(Transactor):
    """Creates a new logical deployment: implementation, proxy and one-time initialization."""

    def __init__(self, proxy_artifact: ContractArtifact, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.proxy_artifact = proxy_artifact

    def _deploy_proxy(
        self, implementation: Implementation, admin_address: ChecksumAddress
    ) -> Proxy:
        print(
            f"\nDeploying {self.proxy_artifact.name} "
            f"contract to proxy {implementation.artifact.name}."
        )
        # _logic, initialOwner, _data
        constructor_args = [implementation.address, admin_address, b""]
        address = self._deploy_contract(self.proxy_artifact, constructor_args, step="deploy_proxy")
        print(
            f"\nWrapping {implementation.artifact.name} into {self.proxy_artifact.name} "
            f"at {address}."
        )
        return Proxy(address=address, artifact=implementation.artifact)

    def initialize(self, proxy: Proxy, params: InitializerParameters) -> None:
        """Runs the initializer through the proxy. Must only ever happen once per proxy."""
        with _step("initialize"):
            if self.client.is_initialized(proxy.address):
                raise AlreadyInitializedError(
                    f"Proxy {proxy.address} is already initialized", step="initialize"
                )
            handle = self.client.call_initializer(
                proxy, params.initializer, params.resolve(), self.signer
            )
            self._await(
                handle,
                step="initialize",
                description=f"{proxy.artifact.name}.{params.initializer}",
            )

    def deploy(
        self, params: InitializerParameters, admin_address: Optional[str] = None
    ) -> DeployedProxy:
        artifact = params.artifact
        admin_address = to_checksum_address(admin_address or self.signer.address)
        if not self.autosign:
            _confirm_resolution(params.named_args, artifact.name, params.initializer)

        implementation = self._deploy_implementation(artifact, step="deploy_implementation")
        # from here on a failure orphans the implementation
        proxy = self._deploy_proxy(implementation, admin_address)
        self.initialize(proxy, params)
        self._verify_implementation(proxy, implementation, step="verify")
        proxy_admin_address = self._read_proxy_admin(proxy, step="verify")

        print(f"{proxy.address} {artifact.name}(proxy) address")
        print(f"{implementation.address} implementation address")
        print(f"{proxy_admin_address} ProxyAdmin address")
        print(f"{admin_address} ProxyAdmin owner address")
        return DeployedProxy(
            proxy=proxy,
            implementation=implementation,
            admin_address=admin_address,
            proxy_admin_address=proxy_admin_address,
        )


class UpgradeCoordinator(Transactor):
    """Repoints an existing proxy to a new implementation without re-initializing it."""

    def upgrade(self, record: DeploymentRecord, artifact: ContractArtifact) -> DeploymentRecord:
        if not same_address(self.signer.address, record.admin_address):
            raise UnauthorizedError(
                f"Signer {self.signer.address} is not the admin ({record.admin_address}) "
                f"of '{record.name}'",
                step="authorize",
            )
        if not self.autosign:
            _confirm_upgrade(record.name, record.proxy_address)

        implementation = self._deploy_implementation(artifact, step="deploy_implementation")
        proxy = Proxy(address=record.proxy_address, artifact=artifact)

        print(f"\nUpgrading {record.name} at {proxy.address} to {implementation.address}.")
        with _step("upgrade"):
            handle = self.client.send_admin_upgrade(proxy, implementation, self.signer)
            self._await(handle, step="upgrade", description=f"Upgrade of {record.name}")
        self._verify_implementation(proxy, implementation, step="verify")

        upgraded = record.upgraded(
            contract_name=artifact.name, implementation_address=implementation.address
        )
        if upgraded.proxy_admin_address is None:
            # recorded before the ProxyAdmin address was tracked
            proxy_admin_address = self._read_proxy_admin(proxy, step="verify")
            upgraded = upgraded._replace(proxy_admin_address=proxy_admin_address)
        return upgraded
