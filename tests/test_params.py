import pytest

from proxy_deployment.constants import ZERO_ADDRESS
from proxy_deployment.exceptions import InvalidParameters
from proxy_deployment.params import InitializerParameters, VariableContext
from tests.conftest import BRIDGE_INIT_ARGS, MUON_ADDRESS


def test_literal_arguments(bridge_artifact):
    params = InitializerParameters(artifact=bridge_artifact, raw_args=BRIDGE_INIT_ARGS)
    assert params.initializer == "initialize"
    assert params.resolve() == BRIDGE_INIT_ARGS
    assert list(params.named_args) == ["appId", "minReqSigs", "network", "muon"]


def test_command_line_strings_are_coerced(bridge_artifact):
    raw_args = ["1", "0xa", "", MUON_ADDRESS.lower()]
    params = InitializerParameters(artifact=bridge_artifact, raw_args=raw_args)
    assert params.resolve() == [1, 10, "", MUON_ADDRESS]


def test_deployer_variable(bridge_artifact, deployer):
    context = VariableContext(deployer_address=deployer.address)
    params = InitializerParameters(
        artifact=bridge_artifact, raw_args=[1, 10, "", "$deployer"], context=context
    )
    assert params.resolve()[3] == deployer.address


def test_deployer_variable_without_deployer(bridge_artifact):
    params = InitializerParameters(artifact=bridge_artifact, raw_args=[1, 10, "", "$deployer"])
    assert params.resolve()[3] == ZERO_ADDRESS


def test_constants(bridge_artifact):
    context = VariableContext(constants={"MIN_SIGS": 10, "MUON": MUON_ADDRESS})
    params = InitializerParameters(
        artifact=bridge_artifact, raw_args=[1, "$MIN_SIGS", "", "$MUON"], context=context
    )
    assert params.resolve() == BRIDGE_INIT_ARGS


def test_unknown_constant(bridge_artifact):
    with pytest.raises(InvalidParameters, match="MISSING"):
        InitializerParameters(artifact=bridge_artifact, raw_args=[1, "$MISSING", "", MUON_ADDRESS])


def test_unresolvable_variable(bridge_artifact):
    with pytest.raises(InvalidParameters, match="not resolvable"):
        InitializerParameters(artifact=bridge_artifact, raw_args=[1, "$nope", "", MUON_ADDRESS])


@pytest.mark.parametrize(
    "raw_args",
    [
        [1, 10, ""],  # too few
        [1, 10, "", MUON_ADDRESS, 5],  # too many
        ["one", 10, "", MUON_ADDRESS],  # not an integer
        [1, 10, "", "0x1234"],  # not an address
        [-1, 10, "", MUON_ADDRESS],  # not encodable as uint256
    ],
)
def test_invalid_arguments(bridge_artifact, raw_args):
    with pytest.raises(InvalidParameters):
        InitializerParameters(artifact=bridge_artifact, raw_args=raw_args)


def test_unknown_initializer(bridge_artifact):
    with pytest.raises(InvalidParameters, match="no initializer named 'setup'"):
        InitializerParameters(
            artifact=bridge_artifact, raw_args=BRIDGE_INIT_ARGS, initializer="setup"
        )


def test_from_config(bridge_artifact, deployer):
    config = {
        "deployment": {"name": "bridge", "contract": "DeusBridge", "initializer": "initialize"},
        "constants": {"APP_ID": 1},
        "init_args": ["$APP_ID", 10, "", "$deployer"],
    }
    params = InitializerParameters.from_config(
        config, artifact=bridge_artifact, deployer_address=deployer.address
    )
    assert params.resolve() == [1, 10, "", deployer.address]


def test_from_config_requires_list(bridge_artifact):
    with pytest.raises(InvalidParameters, match="must be a list"):
        InitializerParameters.from_config({"init_args": {"a": 1}}, artifact=bridge_artifact)


def test_from_config_with_explicit_initializer(bridge_artifact):
    config = {"deployment": {"initializer": "initialize"}, "init_args": BRIDGE_INIT_ARGS}
    with pytest.raises(InvalidParameters, match="no initializer named 'setup'"):
        InitializerParameters.from_config(config, artifact=bridge_artifact, initializer="setup")

    params = InitializerParameters.from_config(config, artifact=bridge_artifact, initializer=None)
    assert params.initializer == "initialize"
