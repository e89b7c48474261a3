from pathlib import Path

import proxy_deployment

#
# Filesystem
#

PACKAGE_DIR = Path(proxy_deployment.__file__).parent
PROJECT_ROOT = PACKAGE_DIR.parent
CONFIG_DIR = PROJECT_ROOT / "config"
ARTIFACTS_DIR = CONFIG_DIR / "artifacts"
DEFAULT_NETWORKS_FILEPATH = CONFIG_DIR / "networks.yml"
DEFAULT_REGISTRY_FILEPATH = PROJECT_ROOT / "deployments" / "registry.json"

# prebuilt OpenZeppelin artifacts, installed with `npm install` (see package.json)
OZ_CONTRACTS_VERSION = "5.0.2"
OZ_ARTIFACTS_DIR = (
    PROJECT_ROOT / "node_modules" / "@openzeppelin" / "contracts" / "build" / "contracts"
)

#
# Networks
#

NETWORK_ENVVAR = "DEPLOY_NETWORK"
LOCAL_NETWORKS = ["hardhat", "localhost"]
AUTO = "auto"
DEFAULT_CONFIRMATION_TIMEOUT = 120  # seconds
DEFAULT_GAS_MULTIPLIER = 1.0
DEFAULT_HD_PATH = "m/44'/60'/0'/0"

#
# Contracts
#

ZERO_ADDRESS = "0x" + "0" * 40

PROXY_CONTRACT_NAME = "TransparentUpgradeableProxy"
# TransparentUpgradeableProxy(address _logic, address initialOwner, bytes _data), OZ 5.x
PROXY_CONSTRUCTOR_INPUTS = [
    ("_logic", "address"),
    ("initialOwner", "address"),
    ("_data", "bytes"),
]
DEFAULT_INITIALIZER = "initialize"

# EIP1967 slots - https://eips.ethereum.org/EIPS/eip-1967
EIP1967_IMPLEMENTATION_SLOT = 0x360894A13BA1A3210667C828492DB98DCA3E2076CC3735A920A3CA505D382BBC
EIP1967_ADMIN_SLOT = 0xB53127684A568B3173AE13B9F8A6016E243E63B6E8EE1178D6A717850B5D6103

# OpenZeppelin 5.x Initializable namespaced storage (ERC-7201)
INITIALIZABLE_STORAGE_SLOT = 0xF0C57E16840DF040F15088DC2F81FE391C3923BEC73E23A9662EFC9C229C6A00

# InvalidInitialization() custom error selector (OpenZeppelin 5.x)
INVALID_INITIALIZATION_SELECTOR = "0xf92ee8a9"
# revert reason of OpenZeppelin 4.x Initializable
ALREADY_INITIALIZED_REASON = "Initializable: contract is already initialized"

# OwnableUnauthorizedAccount(address) custom error selector (OpenZeppelin 5.x)
OWNABLE_UNAUTHORIZED_SELECTOR = "0x118cdaa7"

PROXY_ADMIN_ABI = [
    {
        "inputs": [],
        "name": "owner",
        "outputs": [{"internalType": "address", "name": "", "type": "address"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [
            {
                "internalType": "contract ITransparentUpgradeableProxy",
                "name": "proxy",
                "type": "address",
            },
            {"internalType": "address", "name": "implementation", "type": "address"},
            {"internalType": "bytes", "name": "data", "type": "bytes"},
        ],
        "name": "upgradeAndCall",
        "outputs": [],
        "stateMutability": "payable",
        "type": "function",
    },
]

#
# Registry
#

STANDARD_REGISTRY_JSON_FORMAT = {"indent": 4, "separators": (",", ": ")}
