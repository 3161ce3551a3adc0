"""
Sequential step executor with probe gates, bounded retries, and skip propagation.

Per-step state machine::

    PENDING -> RUNNING -> SUCCEEDED | SOFT_FAILED | HARD_FAILED
    PENDING -> SKIPPED   (a prerequisite hard-failed or was skipped, or the run was cancelled)

Only ``retryable`` steps are re-attempted, only on transient hard failures, and at
most ``retry_bound`` extra times. Step failures never raise; they are recorded
on the ``PipelineRun`` so the caller always gets a complete picture.
"""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING, Any

import structlog

from pipeline_orchestrator.domain.models import (
    FailureKind,
    Outcome,
    OutcomeKind,
    PipelineRun,
    Severity,
    StepRecord,
    StepStatus,
)
from pipeline_orchestrator.errors import ConfigurationError, ToolchainTimeout, UnknownProbeError
from pipeline_orchestrator.observability.logging import correlation_scope

if TYPE_CHECKING:
    from pipeline_orchestrator.domain.models import Step
    from pipeline_orchestrator.planning.dependency_graph import DependencyGraph
    from pipeline_orchestrator.probes.registry import ProbeRegistry

DEFAULT_RETRY_BOUND = 1

_BLOCKING_PREREQUISITE_STATUSES = frozenset({StepStatus.HARD_FAILED, StepStatus.SKIPPED})

_STATUS_FOR_OUTCOME = {
    OutcomeKind.SUCCESS: StepStatus.SUCCEEDED,
    OutcomeKind.SOFT_FAILURE: StepStatus.SOFT_FAILED,
    OutcomeKind.HARD_FAILURE: StepStatus.HARD_FAILED,
}


class CancellationToken:
    """Cooperative cancellation flag checked between steps."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()


class StepExecutor:
    """Run the selected steps of a ``PipelineRun`` in order."""

    def __init__(
        self,
        graph: DependencyGraph,
        registry: ProbeRegistry,
        *,
        retry_bound: int = DEFAULT_RETRY_BOUND,
        logger: Any | None = None,
    ) -> None:
        if retry_bound < 0:
            raise ValueError("retry_bound must be >= 0")
        self._graph = graph
        self._registry = registry
        self._retry_bound = retry_bound
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    @property
    def retry_bound(self) -> int:
        return self._retry_bound

    def execute(self, run: PipelineRun, token: CancellationToken | None = None) -> PipelineRun:
        """Execute ``run.selected_steps`` and record every step's terminal status."""
        self._validate_selection(run)

        for step_id in run.selected_steps:
            record = run.record(step_id)
            if token is not None and token.is_cancelled:
                run.cancelled = True
                cancelled = Outcome.hard(
                    "run cancelled before step started", failure=FailureKind.CANCELLED
                )
                self._finish(step_id, record, StepStatus.SKIPPED, cancelled)
                continue

            with correlation_scope(step_id=step_id):
                self._run_step(run, self._graph.step(step_id), record)

        return run

    def _run_step(self, run: PipelineRun, step: Step, record: StepRecord) -> None:
        for prerequisite in self._graph.prerequisites(step.id):
            status = run.status_of(prerequisite)
            if status in _BLOCKING_PREREQUISITE_STATUSES:
                self._finish(
                    step.id,
                    record,
                    StepStatus.SKIPPED,
                    Outcome.hard(
                        f"prerequisite {prerequisite} {status.value}",
                        failure=FailureKind.PREREQUISITE_FAILED,
                    ),
                )
                return

        record.status = StepStatus.RUNNING
        self._logger.info("step_started", step_id=step.id, category=step.category.value)

        blocked = self._check_probes(run, step, record)
        if blocked is not None:
            self._finish(step.id, record, StepStatus.HARD_FAILED, blocked)
            return

        max_attempts = 1 + self._retry_bound if step.retryable else 1
        outcome = Outcome.hard("step was not attempted", failure=FailureKind.INTERNAL_ERROR)
        while record.attempts < max_attempts:
            outcome = self._invoke(step)
            record.attempts += 1
            if outcome.ok or not (outcome.is_hard and outcome.transient):
                break
            if record.attempts >= max_attempts:
                break
            self._logger.warning(
                "step_retrying",
                step_id=step.id,
                attempt=record.attempts,
                max_attempts=max_attempts,
                reason=outcome.message,
            )

        self._finish(step.id, record, _STATUS_FOR_OUTCOME[outcome.kind], outcome)

    def _check_probes(self, run: PipelineRun, step: Step, record: StepRecord) -> Outcome | None:
        for name in step.probes:
            probe = self._registry.get(name)
            try:
                outcome = self._registry.evaluate(name)
            except Exception as exc:  # noqa: BLE001 - probe errors are recorded, not raised.
                self._logger.exception("probe_error", probe=name)
                outcome = Outcome.hard(
                    f"probe raised {type(exc).__name__}: {exc}",
                    failure=FailureKind.INTERNAL_ERROR,
                )
            run.probe_results[name] = outcome
            if outcome.ok:
                continue
            if probe.severity is Severity.WARNING:
                record.diagnostics.append(f"{name}: {outcome.message}")
                self._logger.warning("probe_warning", probe=name, detail=outcome.message)
                continue
            return Outcome.hard(
                f"blocking probe {name} failed: {outcome.message}",
                failure=outcome.failure
                if outcome.failure is not FailureKind.NONE
                else FailureKind.PROBE_BLOCKED,
                hint=outcome.hint,
            )
        return None

    def _invoke(self, step: Step) -> Outcome:
        try:
            outcome = step.action()
        except ToolchainTimeout as exc:
            return Outcome.hard(str(exc), failure=FailureKind.TIMEOUT, transient=True)
        except Exception as exc:  # noqa: BLE001 - action errors become hard failures.
            self._logger.exception("step_action_error", step_id=step.id)
            return Outcome.hard(
                f"action raised {type(exc).__name__}: {exc}",
                failure=FailureKind.INTERNAL_ERROR,
            )
        if not isinstance(outcome, Outcome):
            return Outcome.hard(
                f"action returned {type(outcome).__name__}, expected Outcome",
                failure=FailureKind.INTERNAL_ERROR,
            )
        return outcome

    def _finish(
        self,
        step_id: str,
        record: StepRecord,
        status: StepStatus,
        outcome: Outcome,
    ) -> None:
        record.status = status
        record.outcome = outcome
        log = self._logger.info if status is StepStatus.SUCCEEDED else self._logger.warning
        log(
            "step_finished",
            step_id=step_id,
            status=status.value,
            attempts=record.attempts,
            detail=outcome.message,
        )

    def _validate_selection(self, run: PipelineRun) -> None:
        seen: set[str] = set()
        for step_id in run.selected_steps:
            if step_id not in self._graph:
                raise ConfigurationError(f"selected step {step_id!r} is not in the catalog")
            if step_id in seen:
                raise ConfigurationError(f"step {step_id!r} is selected twice")
            for probe_name in self._graph.step(step_id).probes:
                if probe_name not in self._registry:
                    raise UnknownProbeError(step_id, probe_name)
            for prerequisite in self._graph.prerequisites(step_id):
                if prerequisite not in seen:
                    raise ConfigurationError(
                        f"step {step_id!r} is selected before or without "
                        f"its prerequisite {prerequisite!r}"
                    )
            seen.add(step_id)


__all__ = ["DEFAULT_RETRY_BOUND", "CancellationToken", "StepExecutor"]
