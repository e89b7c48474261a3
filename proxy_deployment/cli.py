#!/usr/bin/python3
from pathlib import Path
from typing import Dict, Optional

import click
from dotenv import load_dotenv

from proxy_deployment.chain import Web3ChainClient
from proxy_deployment.constants import (
    DEFAULT_INITIALIZER,
    DEFAULT_REGISTRY_FILEPATH,
)
from proxy_deployment.exceptions import DeploymentError, InvalidParameters, NetworkConfigError
from proxy_deployment.networks import NetworkProfile, load_networks, select_network
from proxy_deployment.options import (
    account_index_option,
    admin_option,
    autosign_option,
    config_option,
    contract_option,
    initializer_option,
    network_option,
    params_option,
    registry_option,
    timeout_option,
    upgrade_option,
)
from proxy_deployment.orchestrator import Orchestrator
from proxy_deployment.params import (
    CONSTANTS_KEY,
    DEPLOYMENT_KEY,
    InitializerParameters,
    VariableContext,
)
from proxy_deployment.registry import AddressRegistry, DeploymentRecord
from proxy_deployment.utils import (
    ContractArtifact,
    _load_yaml,
    load_artifact,
    load_proxy_artifact,
    resolve_artifact_filepath,
    resolve_proxy_artifact_filepath,
)


def _config_path(config_filepath: Path, config: Dict, key: str, default: Optional[Path]) -> Path:
    """Resolves a path entry of the config file relative to the config file itself."""
    value = config.get(key)
    if not value:
        return default
    path = Path(value)
    if not path.is_absolute():
        path = config_filepath.parent / path
    return path


def _print_record(record: DeploymentRecord) -> None:
    click.echo(f"proxy: {record.proxy_address}")
    click.echo(f"implementation: {record.implementation_address}")
    click.echo(f"proxy admin: {record.proxy_admin_address}")
    click.echo(f"admin: {record.admin_address}")
    click.echo(f"version: {record.version}")


def _load_artifact(
    params_config: Dict, contract: Optional[str], artifacts_dir: Path
) -> ContractArtifact:
    deployment_config = params_config.get(DEPLOYMENT_KEY) or dict()
    contract = contract or deployment_config.get("contract")
    if not contract:
        raise click.BadOptionUsage(
            option_name="--contract",
            message="Provide --contract or a 'deployment.contract' entry in the params file",
        )
    return load_artifact(resolve_artifact_filepath(contract, artifacts_dir=artifacts_dir))


def _load_initializer_parameters(
    params_config: Dict,
    params_filepath: Optional[Path],
    artifact: ContractArtifact,
    init_args,
    initializer: str,
    deployer_address: str,
) -> Optional[InitializerParameters]:
    """Initializer parameters from the command line or the params file, if any were given."""
    explicit_initializer = initializer if initializer != DEFAULT_INITIALIZER else None
    if not (params_filepath or init_args or explicit_initializer):
        return None
    if params_filepath and not init_args:
        return InitializerParameters.from_config(
            params_config,
            artifact=artifact,
            deployer_address=deployer_address,
            initializer=explicit_initializer,
        )
    deployment_config = params_config.get(DEPLOYMENT_KEY) or dict()
    context = VariableContext(
        deployer_address=deployer_address, constants=params_config.get(CONSTANTS_KEY)
    )
    return InitializerParameters(
        artifact=artifact,
        raw_args=list(init_args),
        initializer=explicit_initializer or deployment_config.get("initializer", initializer),
        context=context,
    )


@click.group()
@config_option
@network_option
@click.pass_context
def cli(ctx, config_filepath, network):
    """Deploy and upgrade proxy-backed contracts."""
    load_dotenv(override=True)
    ctx.ensure_object(dict)
    try:
        config = _load_yaml(config_filepath)
        profiles = load_networks(config)
        profile = select_network(profiles, network=network)
    except NetworkConfigError as e:
        raise click.ClickException(str(e))

    ctx.obj["config"] = config
    ctx.obj["config_filepath"] = config_filepath
    ctx.obj["profile"] = profile
    ctx.obj.setdefault("client_factory", Web3ChainClient.from_profile)


def _registry(ctx, registry_filepath: Optional[Path]) -> AddressRegistry:
    profile: NetworkProfile = ctx.obj["profile"]
    registry_filepath = registry_filepath or _config_path(
        ctx.obj["config_filepath"], ctx.obj["config"], "registry", DEFAULT_REGISTRY_FILEPATH
    )
    return AddressRegistry(filepath=registry_filepath, chain_id=profile.chain_id)


@cli.command()
@click.argument("name", required=False)
@click.argument("init_args", nargs=-1)
@contract_option
@params_option
@initializer_option
@upgrade_option
@admin_option
@account_index_option
@timeout_option
@registry_option
@autosign_option
@click.pass_context
def deploy(
    ctx,
    name,
    init_args,
    contract,
    params_filepath,
    initializer,
    upgrade,
    admin_address,
    account_index,
    timeout,
    registry_filepath,
    autosign,
):
    """Deploy NAME behind a proxy, or upgrade it if it is already deployed."""
    if upgrade and init_args:
        raise click.BadArgumentUsage(
            "INIT_ARGS cannot be combined with --upgrade; an upgrade never re-initializes the proxy"
        )
    profile: NetworkProfile = ctx.obj["profile"]
    config, config_filepath = ctx.obj["config"], ctx.obj["config_filepath"]
    artifacts_dir = _config_path(config_filepath, config, "artifacts", config_filepath.parent)

    try:
        params_config = _load_yaml(params_filepath) if params_filepath else dict()
        name = name or (params_config.get(DEPLOYMENT_KEY) or dict()).get("name")
        if not name:
            raise click.BadArgumentUsage(
                "Provide NAME or a 'deployment.name' entry in the params file"
            )
        signer = profile.signer(account_index)
        artifact = _load_artifact(params_config, contract, artifacts_dir=artifacts_dir)
        params = _load_initializer_parameters(
            params_config=params_config,
            params_filepath=params_filepath,
            artifact=artifact,
            init_args=init_args,
            initializer=initializer,
            deployer_address=signer.address,
        )
        proxy_artifact = load_proxy_artifact(
            resolve_proxy_artifact_filepath(
                _config_path(config_filepath, config, "proxy_artifact", None),
                artifacts_dir=artifacts_dir,
            )
        )
    except (NetworkConfigError, InvalidParameters, ValueError, OSError) as e:
        raise click.ClickException(str(e))

    click.echo(
        "\n".join(
            [
                f"Account: {signer.address}",
                f"Network: {profile.name}{' (local)' if profile.is_local else ''}",
                f"Chain ID: {profile.chain_id}",
                f"Contract: {artifact.name}",
            ]
        )
    )

    try:
        client = ctx.obj["client_factory"](profile)
        orchestrator = Orchestrator(
            profile=profile,
            client=client,
            registry=_registry(ctx, registry_filepath),
            signer=signer,
            proxy_artifact=proxy_artifact,
            timeout=timeout,
            autosign=autosign,
        )
        result = orchestrator.run(
            name, artifact, params, admin_address=admin_address, require_existing=upgrade
        )
    except DeploymentError as e:
        step = f" during {e.step}" if e.step else ""
        click.secho(f"{e.kind}{step}: {e}", fg="red", err=True)
        ctx.exit(1)
    except (NetworkConfigError, ValueError, OSError) as e:
        raise click.ClickException(str(e))

    click.secho(f"\n{name} ({result.path.value})", fg="green")
    _print_record(result.record)


@cli.command()
@click.pass_context
def accounts(ctx):
    """Print the signing accounts of the selected network."""
    profile: NetworkProfile = ctx.obj["profile"]
    try:
        signers = profile.signing_accounts()
    except NetworkConfigError as e:
        raise click.ClickException(str(e))
    for signer in signers:
        click.echo(signer.address)


@cli.command(name="list")
@registry_option
@click.pass_context
def list_deployments(ctx, registry_filepath):
    """List the deployments recorded for the selected network."""
    registry = _registry(ctx, registry_filepath)
    try:
        records = registry.records()
    except DeploymentError as e:
        raise click.ClickException(str(e))

    profile: NetworkProfile = ctx.obj["profile"]
    click.secho(f"\n{profile.name.capitalize()} (chain {profile.chain_id})", fg="green")
    for index, record in enumerate(records, start=1):
        click.secho(
            f"    {index}. {record.name} {record.proxy_address} "
            f"-> {record.implementation_address} (v{record.version})",
            fg="cyan",
        )


if __name__ == "__main__":
    cli()
