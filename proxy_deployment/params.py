import json
import typing
from abc import ABC, abstractmethod
from collections import OrderedDict
from typing import Any, List, Optional, Sequence

from eth_utils import is_address, to_bytes, to_checksum_address
from ethpm_types.abi import MethodABI
from web3.auto import w3

from proxy_deployment.constants import DEFAULT_INITIALIZER, ZERO_ADDRESS
from proxy_deployment.exceptions import InvalidParameters
from proxy_deployment.utils import ContractArtifact

DEPLOYMENT_KEY = "deployment"
INIT_ARGS_KEY = "init_args"
CONSTANTS_KEY = "constants"


class VariableContext:
    def __init__(
        self,
        deployer_address: Optional[str] = None,
        constants: typing.Dict[str, Any] = None,
    ):
        self.deployer_address = deployer_address
        self.constants = constants or dict()


# Variables


class Variable(ABC):
    VARIABLE_PREFIX = "$"

    @abstractmethod
    def resolve(self) -> Any:
        raise NotImplementedError

    @classmethod
    def is_variable(cls, param: Any) -> bool:
        """Returns True if the param is a variable."""
        return isinstance(param, str) and param.startswith(cls.VARIABLE_PREFIX)


class DeployerAccount(Variable):
    DEPLOYER_INDICATOR = "deployer"

    def __init__(self, context: VariableContext):
        self.deployer_address = context.deployer_address

    @classmethod
    def is_deployer(cls, value: str) -> bool:
        return value == cls.DEPLOYER_INDICATOR

    def resolve(self) -> Any:
        if self.deployer_address is None:
            return ZERO_ADDRESS
        return self.deployer_address


class Constant(Variable):
    def __init__(self, constant_name: str, context: VariableContext):
        try:
            self.constant_value = context.constants[constant_name]
        except KeyError:
            raise InvalidParameters(f"Constant '{constant_name}' not found in deployment file.")

    @classmethod
    def is_constant(cls, value: str) -> bool:
        return value.isupper()

    def resolve(self) -> Any:
        return self.constant_value


def _variable_from_value(variable: str, context: VariableContext) -> Variable:
    variable = variable[len(Variable.VARIABLE_PREFIX):]
    if DeployerAccount.is_deployer(variable):
        return DeployerAccount(context)
    elif Constant.is_constant(variable):
        return Constant(variable, context)
    raise InvalidParameters(f"Variable ${variable} is not resolvable")


def _process_raw_value(value: Any, context: VariableContext) -> Any:
    if isinstance(value, list):
        return [_process_raw_value(v, context) for v in value]
    if Variable.is_variable(value):
        return _variable_from_value(value, context)
    return value


def _resolve_param(value: Any) -> Any:
    """Resolves a single parameter value or a list of parameter values."""
    if isinstance(value, list):
        return [_resolve_param(v) for v in value]
    if isinstance(value, Variable):
        return value.resolve()
    return value  # literally a value


# ABI coercion


def _coerce(abi_type: str, value: Any) -> Any:
    """Converts a raw (typically command-line string) value to its ABI type."""
    if abi_type.endswith("]"):
        if isinstance(value, str):
            try:
                value = json.loads(value)
            except ValueError:
                raise InvalidParameters(f"'{value}' is not a JSON list for type {abi_type}")
        if not isinstance(value, list):
            return value
        element_type = abi_type[: abi_type.rindex("[")]
        return [_coerce(element_type, v) for v in value]

    if not isinstance(value, str):
        return value

    if abi_type.startswith(("uint", "int")):
        try:
            return int(value, 0)
        except ValueError:
            raise InvalidParameters(f"'{value}' is not a valid integer for type {abi_type}")
    if abi_type == "bool":
        lowered = value.lower()
        if lowered in ("true", "1", "yes"):
            return True
        if lowered in ("false", "0", "no"):
            return False
        raise InvalidParameters(f"'{value}' is not a valid boolean")
    if abi_type == "address":
        if not is_address(value):
            raise InvalidParameters(f"'{value}' is not a valid address")
        return to_checksum_address(value)
    if abi_type.startswith("bytes"):
        try:
            return to_bytes(hexstr=value)
        except ValueError:
            raise InvalidParameters(f"'{value}' is not valid hex for type {abi_type}")
    return value


def _validate_method_args(
    method_abis: List[MethodABI], args: Sequence[Any]
) -> typing.Tuple[MethodABI, typing.Dict[str, Any]]:
    """
    Coerces and validates the transaction arguments against the function ABI.
    Returns the matching ABI overload and the named, coerced arguments.
    """
    if len(method_abis) == 0:
        raise InvalidParameters("No method abis provided for validation of args")

    abis_matching_args_length = [abi for abi in method_abis if len(abi.inputs) == len(args)]
    for abi in abis_matching_args_length:
        named_args = OrderedDict()
        try:
            for position, (arg, abi_input) in enumerate(zip(args, abi.inputs)):
                value = _coerce(abi_input.type, arg)
                if not w3.is_encodable(abi_input.type, value):
                    break
                named_args[abi_input.name or f"arg{position}"] = value
            else:
                return abi, named_args
        except InvalidParameters:
            if len(abis_matching_args_length) == 1:
                raise
    raise InvalidParameters(
        f"Could not find ABI for '{method_abis[0].name}' with {len(args)} arg(s) and given type(s)"
    )


class InitializerParameters:
    """Represents the validated initializer call for one proxied contract."""

    def __init__(
        self,
        artifact: ContractArtifact,
        raw_args: Sequence[Any],
        initializer: str = DEFAULT_INITIALIZER,
        context: Optional[VariableContext] = None,
    ):
        self.artifact = artifact
        self.initializer = initializer
        self.context = context or VariableContext()
        self.args = [_process_raw_value(arg, self.context) for arg in raw_args]

        method_abis = artifact.method_abis(initializer)
        if not method_abis:
            raise InvalidParameters(f"{artifact.name} has no initializer named '{initializer}'.")
        self.method_abi, self.named_args = _validate_method_args(
            method_abis=method_abis, args=_resolve_param(self.args)
        )

    @classmethod
    def from_config(
        cls,
        config: typing.Dict,
        artifact: ContractArtifact,
        deployer_address: Optional[str] = None,
        initializer: Optional[str] = None,
    ) -> "InitializerParameters":
        """
        Loads the initializer parameters from a deployment YAML config. An explicit
        `initializer` takes precedence over the config's `deployment.initializer`.
        """
        print("Processing initializer parameters...")
        deployment = config.get(DEPLOYMENT_KEY) or dict()
        raw_args = config.get(INIT_ARGS_KEY) or list()
        if not isinstance(raw_args, list):
            raise InvalidParameters(f"'{INIT_ARGS_KEY}' must be a list.")
        context = VariableContext(
            deployer_address=deployer_address, constants=config.get(CONSTANTS_KEY)
        )
        return cls(
            artifact=artifact,
            raw_args=raw_args,
            initializer=initializer or deployment.get("initializer", DEFAULT_INITIALIZER),
            context=context,
        )

    def resolve(self) -> List[Any]:
        """Resolved, ABI-typed initializer arguments in call order."""
        return list(self.named_args.values())
