#!/usr/bin/python3
"""
Deploys DeusBridge behind a TransparentUpgradeableProxy, or upgrades it if
the registry already knows about it.

    DEPLOY_NETWORK=fantom python scripts/deploy_bridge.py
"""

from dotenv import load_dotenv

from proxy_deployment.chain import Web3ChainClient
from proxy_deployment.constants import (
    ARTIFACTS_DIR,
    CONFIG_DIR,
    DEFAULT_NETWORKS_FILEPATH,
    DEFAULT_REGISTRY_FILEPATH,
)
from proxy_deployment.networks import load_networks_file, select_network
from proxy_deployment.orchestrator import Orchestrator
from proxy_deployment.params import InitializerParameters
from proxy_deployment.registry import AddressRegistry
from proxy_deployment.utils import (
    _load_yaml,
    load_artifact,
    load_proxy_artifact,
    resolve_proxy_artifact_filepath,
)

AUTOSIGN = False
PARAMS_FILEPATH = CONFIG_DIR / "bridge.yml"


def main():
    load_dotenv(override=True)
    profile = select_network(load_networks_file(DEFAULT_NETWORKS_FILEPATH))
    signer = profile.signer()

    config = _load_yaml(PARAMS_FILEPATH)
    artifact = load_artifact(ARTIFACTS_DIR / f"{config['deployment']['contract']}.json")
    params = InitializerParameters.from_config(
        config, artifact=artifact, deployer_address=signer.address
    )

    orchestrator = Orchestrator(
        profile=profile,
        client=Web3ChainClient.from_profile(profile),
        registry=AddressRegistry(DEFAULT_REGISTRY_FILEPATH, chain_id=profile.chain_id),
        signer=signer,
        proxy_artifact=load_proxy_artifact(resolve_proxy_artifact_filepath()),
        autosign=AUTOSIGN,
    )
    result = orchestrator.run(config["deployment"]["name"], artifact, params)

    record = result.record
    print(record.proxy_address, " bridge(proxy) address")
    print(record.implementation_address, " getImplementationAddress")
    print(record.proxy_admin_address, " getAdminAddress")
    print(record.admin_address, " ProxyAdmin owner")


if __name__ == "__main__":
    main()
