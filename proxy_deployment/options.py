from pathlib import Path

import click

from proxy_deployment.constants import DEFAULT_INITIALIZER, DEFAULT_NETWORKS_FILEPATH
from proxy_deployment.types import UpgradeAuthority

config_option = click.option(
    "--config",
    "-c",
    "config_filepath",
    help="Network configuration YAML file",
    type=click.Path(dir_okay=False, exists=True, path_type=Path),
    default=DEFAULT_NETWORKS_FILEPATH,
    show_default=True,
)

network_option = click.option(
    "--network",
    "-n",
    help="Target network; defaults to the DEPLOY_NETWORK environment variable",
    type=str,
    required=False,
)

registry_option = click.option(
    "--registry",
    "-r",
    "registry_filepath",
    help="Address registry file; defaults to the 'registry' entry of the config file",
    type=click.Path(dir_okay=False, path_type=Path),
    required=False,
)

contract_option = click.option(
    "--contract",
    help="Implementation artifact: path to a JSON artifact or a contract name in the artifacts dir",
    type=str,
    required=False,
)

params_option = click.option(
    "--params",
    "-p",
    "params_filepath",
    help="Deployment parameters YAML file (initializer, constants and init_args)",
    type=click.Path(dir_okay=False, exists=True, path_type=Path),
    required=False,
)

initializer_option = click.option(
    "--initializer",
    "-i",
    help="Name of the initializer function invoked through the proxy",
    type=str,
    default=DEFAULT_INITIALIZER,
    show_default=True,
)

upgrade_option = click.option(
    "--upgrade",
    "-u",
    help="Require an existing deployment and upgrade it",
    is_flag=True,
    default=False,
)

admin_option = click.option(
    "--admin",
    "-a",
    "admin_address",
    help="Upgrade authority of a new proxy; defaults to the signing account",
    type=UpgradeAuthority(),
    required=False,
)

account_index_option = click.option(
    "--account-index",
    help="Index of the signing account in the network profile",
    type=click.IntRange(min=0),
    default=0,
    show_default=True,
)

timeout_option = click.option(
    "--timeout",
    "-t",
    help="Seconds to wait for each confirmation; defaults to the network profile",
    type=click.IntRange(min=1),
    required=False,
)

autosign_option = click.option(
    "--yes",
    "-y",
    "autosign",
    help="Skip interactive confirmations",
    is_flag=True,
    default=False,
)
