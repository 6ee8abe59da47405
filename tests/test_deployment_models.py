import pytest
from deployment_models import (
    CONFLICTING_STATUSES,
    FORWARD_ORDER,
    CommandResult,
    ConnectionSpec,
    DeploymentStatus,
    Endpoints,
    can_transition,
)
from fakes import TEST_KEY

S = DeploymentStatus


@pytest.mark.parametrize("current, new", list(zip(FORWARD_ORDER, FORWARD_ORDER[1:])))
def test_forward_steps_allowed(current, new):
    assert can_transition(current, new)


@pytest.mark.parametrize("current, new, allowed", [
    (S.QUEUED, S.FAILED, True),
    (S.BUILDING, S.FAILED, True),
    (S.INSTALLING, S.INSTALLING, True),
    (S.QUEUED, S.INSTALLING, False),
    (S.VERIFYING, S.STARTING, False),
    (S.COMPLETED, S.FAILED, False),
    (S.FAILED, S.FAILED, False),
    (S.COMPLETED, S.COMPLETED, False),
    (S.FAILED, S.QUEUED, False),
])
def test_transition_table(current, new, allowed):
    assert can_transition(current, new) is allowed


def test_string_statuses_accepted():
    assert can_transition("QUEUED", "CONNECTING")


def test_only_failed_frees_a_chain_name():
    assert S.FAILED not in CONFLICTING_STATUSES
    assert S.COMPLETED in CONFLICTING_STATUSES
    assert S.QUEUED in CONFLICTING_STATUSES


def test_connection_spec_hides_key():
    spec = ConnectionSpec(host="203.0.113.5", username="root", private_key=TEST_KEY)
    assert "PRIVATE KEY" not in repr(spec)
    assert str(spec) == "root@203.0.113.5:22"


def test_command_result_ok():
    assert CommandResult(exit_code=0).ok
    assert not CommandResult(exit_code=1, stderr="boom").ok


def test_endpoints_for_host():
    endpoints = Endpoints.for_host("203.0.113.5")
    assert endpoints.rpc == "http://203.0.113.5:26657"
    assert endpoints.api == "http://203.0.113.5:1317"
    assert Endpoints.for_host("10.0.0.1", 36657, 2317).api == "http://10.0.0.1:2317"
