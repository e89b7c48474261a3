"""
proxy-deployment: deploy and upgrade proxy-backed contracts and track their addresses
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("proxy-deployment")
except PackageNotFoundError:
    __version__ = None
