"""Unit tests for reporting.report."""

from __future__ import annotations

import json

import pytest

from pipeline_orchestrator.domain.models import (
    Environment,
    FailureKind,
    Outcome,
    PipelineRun,
    Platform,
    StepRecord,
    StepStatus,
    TriggerKind,
)
from pipeline_orchestrator.main import ExitCode
from pipeline_orchestrator.reporting.report import (
    REMEDIATION_HINTS,
    exit_status_for,
    remediation_for,
    render,
)


def _run(results: dict[str, StepRecord], *, cancelled: bool = False) -> PipelineRun:
    return PipelineRun(
        trigger=TriggerKind.PUSH,
        platform=Platform.BOTH,
        environment=Environment.STAGING,
        selected_steps=tuple(results),
        ref="refs/heads/main",
        results=results,
        cancelled=cancelled,
    )


def _record(status: StepStatus, outcome: Outcome, attempts: int = 1) -> StepRecord:
    return StepRecord(status=status, outcome=outcome, attempts=attempts)


def _failed_run() -> PipelineRun:
    return _run(
        {
            "install": _record(StepStatus.SUCCEEDED, Outcome.success("npm install completed")),
            "lint": StepRecord(
                status=StepStatus.SOFT_FAILED,
                outcome=Outcome.soft("npm run lint exited with status 1"),
                attempts=1,
                diagnostics=["prettier-config: file .prettierrc not found"],
            ),
            "build": _record(
                StepStatus.HARD_FAILED,
                Outcome.hard("node 18+ is required", failure=FailureKind.VERSION_MISMATCH),
                attempts=2,
            ),
            "deploy": _record(
                StepStatus.SKIPPED,
                Outcome.hard(
                    "prerequisite build hard_failed", failure=FailureKind.PREREQUISITE_FAILED
                ),
                attempts=0,
            ),
        }
    )


def test_every_failure_kind_has_a_hint() -> None:
    assert set(REMEDIATION_HINTS) == set(FailureKind)
    assert remediation_for(FailureKind.TIMEOUT).startswith("The command exceeded")
    assert remediation_for(FailureKind.TIMEOUT, "custom") == "custom"


@pytest.mark.parametrize(
    ("statuses", "cancelled", "expected"),
    [
        ([StepStatus.SUCCEEDED, StepStatus.SUCCEEDED], False, ExitCode.SUCCESS),
        ([StepStatus.SUCCEEDED, StepStatus.SOFT_FAILED], False, ExitCode.SOFT_FAILURES),
        ([StepStatus.SOFT_FAILED, StepStatus.HARD_FAILED], False, ExitCode.PIPELINE_FAILED),
        ([StepStatus.SUCCEEDED, StepStatus.SKIPPED], False, ExitCode.PIPELINE_FAILED),
        ([StepStatus.SUCCEEDED, StepStatus.PENDING], False, ExitCode.PIPELINE_FAILED),
        ([StepStatus.SUCCEEDED], True, ExitCode.PIPELINE_FAILED),
    ],
)
def test_exit_status(statuses: list[StepStatus], cancelled: bool, expected: ExitCode) -> None:
    results = {
        f"step-{index}": _record(status, Outcome.success())
        for index, status in enumerate(statuses)
    }

    assert exit_status_for(_run(results, cancelled=cancelled)) is expected


def test_empty_run_succeeds() -> None:
    report = render(_run({}))

    assert report.ok
    assert "No steps selected." in report.text


def test_payload_reports_steps_blocking_failure_and_warnings() -> None:
    report = render(_failed_run(), next_actions=["Configure Android signing"])
    payload = report.payload

    assert report.exit_status is ExitCode.PIPELINE_FAILED
    assert payload["result"] == "failed"
    assert payload["exit_status"] == 1
    assert payload["counts"] == {
        "pending": 0,
        "running": 0,
        "succeeded": 1,
        "soft_failed": 1,
        "hard_failed": 1,
        "skipped": 1,
    }
    assert [step["id"] for step in payload["steps"]] == ["install", "lint", "build", "deploy"]
    assert payload["steps"][2]["attempts"] == 2
    assert payload["first_blocking_failure"] == {
        "step": "build",
        "status": "hard_failed",
        "failure": "version_mismatch",
        "message": "node 18+ is required",
        "remediation": REMEDIATION_HINTS[FailureKind.VERSION_MISMATCH],
    }
    assert payload["warnings"] == ["lint: prettier-config: file .prettierrc not found"]
    assert payload["next_actions"] == ["Configure Android signing"]


def test_text_rendering_layout() -> None:
    text = render(_failed_run()).text

    lines = text.splitlines()
    assert lines[0] == "Pipeline push @ refs/heads/main (platform=both, environment=staging)"
    assert lines[1] == "Result: failed (exit 1)"
    assert "  STATUS  STEP     ATTEMPTS  DETAIL" in lines
    assert any(line.startswith("  FAIL    build    2") for line in lines)
    assert any(line.startswith("  SKIP    deploy   0") for line in lines)
    assert "First blocking failure: build (version_mismatch)" in lines
    assert f"  Hint: {REMEDIATION_HINTS[FailureKind.VERSION_MISMATCH]}" in lines
    assert text.endswith("\n")


def test_probe_hint_takes_precedence_over_table() -> None:
    run = _run(
        {
            "pods": _record(
                StepStatus.HARD_FAILED,
                Outcome.hard(
                    "blocking probe cocoapods-available failed: pod not found in PATH",
                    failure=FailureKind.MISSING_TOOL,
                    hint="sudo gem install cocoapods",
                ),
            )
        }
    )

    blocking = render(run).payload["first_blocking_failure"]

    assert isinstance(blocking, dict)
    assert blocking["remediation"] == "sudo gem install cocoapods"


def test_soft_failures_only_render_with_warnings_result() -> None:
    run = _run(
        {
            "lint": _record(StepStatus.SOFT_FAILED, Outcome.soft("lint warnings")),
            "build": _record(StepStatus.SUCCEEDED, Outcome.success()),
        }
    )

    report = render(run)

    assert report.exit_status is ExitCode.SOFT_FAILURES
    assert report.payload["result"] == "succeeded_with_warnings"
    assert report.payload["first_blocking_failure"] is None


def test_render_is_deterministic() -> None:
    first = render(_failed_run(), next_actions=["a", "b"])
    second = render(_failed_run(), next_actions=["a", "b"])

    assert first.text == second.text
    assert first.to_json() == second.to_json()
    assert json.loads(first.to_json()) == first.payload


def test_messages_are_redacted() -> None:
    run = _run(
        {
            "upload": _record(
                StepStatus.HARD_FAILED,
                Outcome.hard("upload failed: MATCH_PASSWORD=hunter2 rejected"),
            )
        }
    )

    report = render(run)

    assert "hunter2" not in report.text
    assert "hunter2" not in report.to_json()
    assert "MATCH_PASSWORD=***REDACTED***" in report.text


def test_cancelled_run_is_flagged() -> None:
    run = _run(
        {
            "install": _record(
                StepStatus.SKIPPED,
                Outcome.hard("run cancelled before step started", failure=FailureKind.CANCELLED),
                attempts=0,
            )
        },
        cancelled=True,
    )

    report = render(run)

    assert report.payload["cancelled"] is True
    assert "Run was cancelled before all steps started." in report.text
