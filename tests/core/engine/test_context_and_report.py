# tests/core/engine/test_context_and_report.py
"""
Testes do DeployContext e dos tipos de relatório.

Os testes asseguram que:
- transições de estado geram eventos estruturados
- eventos são espelhados no logger `secret_deploy.run`
- warnings são agregados por secret
- RunStatus mapeia para os exit codes 0/2/1
"""

import logging

import pytest

from secret_deploy.core.engine.context import DeployContext
from secret_deploy.core.engine.types import (
    DeploymentOutcome,
    RunReport,
    RunState,
    RunStatus,
    SecretStatus,
)


def test_transition_records_state_event():
    ctx = DeployContext()
    ctx.transition(RunState.RESOLVING)

    assert ctx.state is RunState.RESOLVING
    (event,) = ctx.events
    assert event["event"] == "state"
    assert event["run_id"] == ctx.run_id
    assert "loading -> resolving" in event["message"]


def test_events_are_mirrored_to_logging(caplog):
    ctx = DeployContext()
    with caplog.at_level(logging.INFO, logger="secret_deploy.run"):
        ctx.log(level="warning", message="vault lento", secret="db-password")

    assert any(
        r.levelno == logging.WARNING and "db-password" in r.getMessage() for r in caplog.records
    )


def test_warnings_are_grouped_by_secret():
    ctx = DeployContext()
    ctx.add_warning(secret="a", message="w1")
    ctx.add_warning(secret="a", message="w2")

    assert ctx.warnings_for("a") == ["w1", "w2"]
    assert ctx.warnings_for("b") == []
    assert ctx.events[-1]["level"] == "warning"


@pytest.mark.parametrize(
    "status, code",
    [(RunStatus.SUCCESS, 0), (RunStatus.FAILURE, 1), (RunStatus.PARTIAL_FAILURE, 2)],
)
def test_exit_codes(status, code):
    assert status.exit_code == code


def test_report_lookup_and_filters():
    report = RunReport(
        run_id="r1",
        status=RunStatus.PARTIAL_FAILURE,
        state=RunState.DONE,
        outcomes=(
            DeploymentOutcome("a", SecretStatus.WRITTEN, "/s/a"),
            DeploymentOutcome("b", SecretStatus.FAILED, "/s/b"),
        ),
    )
    assert report.exit_code == 2
    assert report.outcome("a").succeeded
    assert report.by_status(SecretStatus.FAILED) == ["b"]
    with pytest.raises(KeyError):
        report.outcome("missing")
