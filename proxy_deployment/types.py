import click
from eth_utils import is_address, to_checksum_address

from proxy_deployment.constants import ZERO_ADDRESS


class UpgradeAuthority(click.ParamType):
    """
    Owner of a new proxy's ProxyAdmin. Converted to a checksum address; the zero
    address is refused since a ProxyAdmin owned by it can never be upgraded.
    """

    name = "upgrade_authority"

    def convert(self, value, param, ctx):
        if not is_address(value):
            self.fail(f"'{value}' is not an address", param, ctx)
        address = to_checksum_address(value)
        if address == ZERO_ADDRESS:
            self.fail("the zero address cannot be the upgrade authority", param, ctx)
        return address
