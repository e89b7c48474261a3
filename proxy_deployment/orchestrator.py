from enum import Enum
from typing import List, NamedTuple, Optional

from eth_account.signers.local import LocalAccount

from proxy_deployment.chain import ChainClient
from proxy_deployment.deployer import ProxyDeployer, UpgradeCoordinator
from proxy_deployment.exceptions import DeploymentNotFound, InvalidParameters
from proxy_deployment.networks import NetworkProfile
from proxy_deployment.params import InitializerParameters
from proxy_deployment.registry import AddressRegistry, DeploymentRecord
from proxy_deployment.utils import ContractArtifact


class DeploymentState(Enum):
    START = "start"
    INITIAL_DEPLOY = "initial_deploy"
    UPGRADE = "upgrade"
    RECORDED = "recorded"
    FAILED = "failed"


class DeploymentResult(NamedTuple):
    record: DeploymentRecord
    path: DeploymentState  # INITIAL_DEPLOY or UPGRADE


class Orchestrator:
    """
    Deploys or upgrades a single logical deployment per run, then records
    the outcome in the address registry.

    Runs for the same name must be serialized by the caller: the registry
    has no compare-and-swap, so concurrent runs race and the last writer wins.
    """

    def __init__(
        self,
        profile: NetworkProfile,
        client: ChainClient,
        registry: AddressRegistry,
        signer: LocalAccount,
        proxy_artifact: ContractArtifact,
        timeout: Optional[float] = None,
        autosign: bool = True,
    ):
        if registry.chain_id != profile.chain_id:
            raise ValueError(
                f"Registry chain_id ({registry.chain_id}) does not match "
                f"network '{profile.name}' ({profile.chain_id})."
            )
        self.profile = profile
        self.client = client
        self.registry = registry
        self.signer = signer
        self.timeout = profile.timeout if timeout is None else timeout
        transactor_kwargs = dict(
            client=client, signer=signer, timeout=self.timeout, autosign=autosign
        )
        self.proxy_deployer = ProxyDeployer(proxy_artifact, **transactor_kwargs)
        self.upgrade_coordinator = UpgradeCoordinator(**transactor_kwargs)
        self.history: List[DeploymentState] = list()

    @property
    def state(self) -> Optional[DeploymentState]:
        return self.history[-1] if self.history else None

    def _transition(self, state: DeploymentState) -> None:
        self.history.append(state)

    def run(
        self,
        name: str,
        artifact: ContractArtifact,
        params: Optional[InitializerParameters] = None,
        admin_address: Optional[str] = None,
        require_existing: bool = False,
    ) -> DeploymentResult:
        """
        Performs an initial deploy of `artifact` if `name` is unknown to the
        registry and an upgrade to it otherwise. `params` are only used by an
        initial deploy; an upgraded proxy is never initialized again. Without
        `params` the initializer is called with no arguments.
        """
        self.history = list()
        self._transition(DeploymentState.START)
        try:
            existing = self.registry.get(name)
            if existing is None:
                if require_existing:
                    raise DeploymentNotFound(
                        f"No deployment named '{name}' on chain {self.registry.chain_id} "
                        f"in {self.registry.filepath}",
                        step="lookup",
                    )
                path = DeploymentState.INITIAL_DEPLOY
                self._transition(path)
                record = self._initial_deploy(name, artifact, params, admin_address)
            else:
                path = DeploymentState.UPGRADE
                self._transition(path)
                if params is not None and params.args:
                    print(
                        f"(!) '{name}' is already deployed; ignoring initializer arguments "
                        "since an upgrade never re-initializes the proxy."
                    )
                record = self.upgrade_coordinator.upgrade(existing, artifact)

            self.registry.put(name, record)
        except Exception:
            self._transition(DeploymentState.FAILED)
            raise

        self._transition(DeploymentState.RECORDED)
        print(f"(i) Registry written to {self.registry.filepath}!")
        return DeploymentResult(record=record, path=path)

    def _initial_deploy(
        self,
        name: str,
        artifact: ContractArtifact,
        params: Optional[InitializerParameters],
        admin_address: Optional[str],
    ) -> DeploymentRecord:
        if params is None:
            params = InitializerParameters(artifact=artifact, raw_args=[])
        elif params.artifact.name != artifact.name:
            raise InvalidParameters(
                f"Initializer parameters are for {params.artifact.name}, not {artifact.name}."
            )
        deployed = self.proxy_deployer.deploy(params, admin_address=admin_address)
        return DeploymentRecord.create(
            name=name,
            contract_name=params.artifact.name,
            proxy_address=deployed.proxy.address,
            implementation_address=deployed.implementation.address,
            admin_address=deployed.admin_address,
            init_args=params.resolve(),
            proxy_admin_address=deployed.proxy_admin_address,
        )
