"""Domain types shared across the orchestrator: probes, steps, outcomes, and runs.

The domain layer stays free of IO side effects.
"""

from pipeline_orchestrator.domain.models import (
    Action,
    Environment,
    FailureKind,
    Outcome,
    OutcomeKind,
    PipelineRun,
    Platform,
    Predicate,
    Probe,
    ProbeKind,
    ProbeQuery,
    Severity,
    Step,
    StepCategory,
    StepRecord,
    StepStatus,
    TriggerEvent,
    TriggerKind,
)

__all__ = [
    "Action",
    "Environment",
    "FailureKind",
    "Outcome",
    "OutcomeKind",
    "PipelineRun",
    "Platform",
    "Predicate",
    "Probe",
    "ProbeKind",
    "ProbeQuery",
    "Severity",
    "Step",
    "StepCategory",
    "StepRecord",
    "StepStatus",
    "TriggerEvent",
    "TriggerKind",
]
