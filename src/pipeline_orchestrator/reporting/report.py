"""
Run report generation.

File: src/pipeline_orchestrator/reporting/report.py

Purpose
- Summarize a finished ``PipelineRun`` as a machine-parsable payload, a
  human-readable text rendering, and a process exit status.

Functional requirements
- Per-step status, attempts, and final message in run order.
- The first blocking failure with remediation text from ``REMEDIATION_HINTS``
  (a probe or toolchain hint takes precedence).
- Warning diagnostics and the catalog's next actions.

Non-functional requirements
- ``render`` is pure: no clocks, no IO, no environment lookups. Identical runs
  render byte-identical text and JSON.
- Messages pass through secret redaction before they reach either output.
"""

from __future__ import annotations

import json
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from types import MappingProxyType
from typing import Final

from pipeline_orchestrator.domain.models import (
    TERMINAL_STATUSES,
    FailureKind,
    JSONValue,
    PipelineRun,
    StepRecord,
    StepStatus,
)
from pipeline_orchestrator.main import ExitCode
from pipeline_orchestrator.observability.logging import redact_text

REMEDIATION_HINTS: Final[Mapping[FailureKind, str]] = MappingProxyType(
    {
        FailureKind.NONE: "No action needed.",
        FailureKind.MISSING_FILE: (
            "Make sure the pipeline runs from the project root and the file is committed."
        ),
        FailureKind.MISSING_TOOL: "Install the missing tool and make sure it is on PATH.",
        FailureKind.VERSION_MISMATCH: "Upgrade the tool to the minimum required version.",
        FailureKind.MISSING_SECRET: (
            "Add the secret to the repository or CI environment (see docs/CI_CD_SETUP.md)."
        ),
        FailureKind.COMMAND_FAILED: "Inspect the command output above and fix the reported error.",
        FailureKind.TIMEOUT: (
            "The command exceeded its timeout; check network access or raise timeout_seconds."
        ),
        FailureKind.PROBE_BLOCKED: "Resolve the failing environment check and re-run.",
        FailureKind.PREREQUISITE_FAILED: "Fix the first failing prerequisite step.",
        FailureKind.CANCELLED: "The run was cancelled; re-run the pipeline to complete it.",
        FailureKind.INTERNAL_ERROR: "Unexpected error inside a step; re-run with --verbose.",
    }
)

_STATUS_LABELS: Final[Mapping[StepStatus, str]] = MappingProxyType(
    {
        StepStatus.PENDING: "PENDING",
        StepStatus.RUNNING: "RUNNING",
        StepStatus.SUCCEEDED: "OK",
        StepStatus.SOFT_FAILED: "WARN",
        StepStatus.HARD_FAILED: "FAIL",
        StepStatus.SKIPPED: "SKIP",
    }
)

_BLOCKING_STATUSES: Final[frozenset[StepStatus]] = frozenset(
    {StepStatus.HARD_FAILED, StepStatus.SKIPPED}
)


@dataclass(frozen=True, slots=True)
class Report:
    """Rendered run summary."""

    payload: Mapping[str, JSONValue]
    text: str
    exit_status: ExitCode

    @property
    def ok(self) -> bool:
        return self.exit_status is ExitCode.SUCCESS

    def to_json(self) -> str:
        """Canonical JSON: sorted keys, compact separators."""
        return json.dumps(self.payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def exit_status_for(run: PipelineRun) -> ExitCode:
    """Map run results to an exit code.

    Any hard failure, skip, cancellation, or unfinished step fails the run.
    Soft failures alone still surface as a distinct non-zero status.
    """
    statuses = run.statuses().values()
    if run.cancelled or any(
        status in _BLOCKING_STATUSES or status not in TERMINAL_STATUSES for status in statuses
    ):
        return ExitCode.PIPELINE_FAILED
    if any(status is StepStatus.SOFT_FAILED for status in statuses):
        return ExitCode.SOFT_FAILURES
    return ExitCode.SUCCESS


def remediation_for(failure: FailureKind, hint: str | None = None) -> str:
    return hint or REMEDIATION_HINTS[failure]


def render(run: PipelineRun, *, next_actions: Sequence[str] = ()) -> Report:
    """Render ``run`` into a ``Report``."""
    exit_status = exit_status_for(run)
    steps = [_step_payload(step_id, run.results.get(step_id)) for step_id in run.selected_steps]
    blocking = _first_blocking_failure(run)
    warnings = [
        redact_text(f"{step_id}: {diagnostic}")
        for step_id in run.selected_steps
        for diagnostic in _diagnostics(run.results.get(step_id))
    ]
    counts = {status.value: 0 for status in StepStatus}
    for status in run.statuses().values():
        counts[status.value] += 1

    payload: dict[str, JSONValue] = {
        "trigger": run.trigger.value,
        "ref": run.ref,
        "platform": run.platform.value,
        "environment": run.environment.value,
        "cancelled": run.cancelled,
        "result": _result_label(exit_status),
        "exit_status": int(exit_status),
        "counts": {key: value for key, value in counts.items()},
        "steps": list(steps),
        "first_blocking_failure": blocking,
        "warnings": list(warnings),
        "next_actions": list(next_actions),
    }
    return Report(payload=payload, text=_render_text(payload), exit_status=exit_status)


def _step_payload(step_id: str, record: StepRecord | None) -> dict[str, JSONValue]:
    if record is None:
        record = StepRecord()
    outcome = record.outcome
    return {
        "id": step_id,
        "status": record.status.value,
        "attempts": record.attempts,
        "message": redact_text(outcome.message) if outcome is not None else "",
        "failure": outcome.failure.value if outcome is not None else FailureKind.NONE.value,
        "transient": outcome.transient if outcome is not None else False,
        "hint": outcome.hint if outcome is not None else None,
        "diagnostics": [redact_text(item) for item in record.diagnostics],
    }


def _first_blocking_failure(run: PipelineRun) -> dict[str, JSONValue] | None:
    for step_id in run.selected_steps:
        record = run.results.get(step_id)
        if record is None or record.status not in _BLOCKING_STATUSES:
            continue
        outcome = record.outcome
        failure = outcome.failure if outcome is not None else FailureKind.INTERNAL_ERROR
        return {
            "step": step_id,
            "status": record.status.value,
            "failure": failure.value,
            "message": redact_text(outcome.message) if outcome is not None else "",
            "remediation": remediation_for(failure, outcome.hint if outcome else None),
        }
    return None


def _diagnostics(record: StepRecord | None) -> list[str]:
    return list(record.diagnostics) if record is not None else []


def _result_label(exit_status: ExitCode) -> str:
    if exit_status is ExitCode.SUCCESS:
        return "succeeded"
    if exit_status is ExitCode.SOFT_FAILURES:
        return "succeeded_with_warnings"
    return "failed"


def _render_text(payload: Mapping[str, JSONValue]) -> str:
    lines: list[str] = []
    ref = payload["ref"]
    ref_suffix = f" @ {ref}" if ref else ""
    lines.append(
        f"Pipeline {payload['trigger']}{ref_suffix} "
        f"(platform={payload['platform']}, environment={payload['environment']})"
    )
    lines.append(f"Result: {payload['result']} (exit {payload['exit_status']})")
    if payload["cancelled"]:
        lines.append("Run was cancelled before all steps started.")

    steps = payload["steps"]
    if isinstance(steps, list) and steps:
        rows = [_step_row(item) for item in steps if isinstance(item, dict)]
        headers = ("STATUS", "STEP", "ATTEMPTS", "DETAIL")
        widths = [len(header) for header in headers]
        for row in rows:
            for index, cell in enumerate(row):
                widths[index] = max(widths[index], len(cell))
        lines.append("")
        lines.append("  " + "  ".join(h.ljust(w) for h, w in zip(headers, widths)).rstrip())
        lines.append("  " + "  ".join("-" * w for w in widths))
        for row in rows:
            lines.append("  " + "  ".join(c.ljust(w) for c, w in zip(row, widths)).rstrip())
    else:
        lines.append("")
        lines.append("No steps selected.")

    blocking = payload["first_blocking_failure"]
    if isinstance(blocking, dict):
        lines.append("")
        lines.append(f"First blocking failure: {blocking['step']} ({blocking['failure']})")
        if blocking["message"]:
            lines.append(f"  {blocking['message']}")
        lines.append(f"  Hint: {blocking['remediation']}")

    for title, key in (("Warnings:", "warnings"), ("Next actions:", "next_actions")):
        entries = payload[key]
        if isinstance(entries, list) and entries:
            lines.append("")
            lines.append(title)
            lines.extend(f"  - {entry}" for entry in entries)

    return "\n".join(lines) + "\n"


def _step_row(item: Mapping[str, JSONValue]) -> tuple[str, str, str, str]:
    status = StepStatus(str(item["status"]))
    detail = str(item["message"]).splitlines()[0] if item["message"] else ""
    return (_STATUS_LABELS[status], str(item["id"]), str(item["attempts"]), detail)


__all__ = [
    "REMEDIATION_HINTS",
    "Report",
    "exit_status_for",
    "remediation_for",
    "render",
]
