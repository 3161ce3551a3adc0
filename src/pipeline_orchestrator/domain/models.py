"""Dataclass domain models for probes, steps, triggers, and pipeline runs."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TypeAlias

JSONScalar = str | int | float | bool | None
JSONValue = JSONScalar | list["JSONValue"] | dict[str, "JSONValue"]


class OutcomeKind(StrEnum):
    SUCCESS = "success"
    SOFT_FAILURE = "soft_failure"
    HARD_FAILURE = "hard_failure"


class FailureKind(StrEnum):
    """Classification of a failure, used to look up remediation hints."""

    NONE = "none"
    MISSING_FILE = "missing_file"
    MISSING_TOOL = "missing_tool"
    VERSION_MISMATCH = "version_mismatch"
    MISSING_SECRET = "missing_secret"
    COMMAND_FAILED = "command_failed"
    TIMEOUT = "timeout"
    PROBE_BLOCKED = "probe_blocked"
    PREREQUISITE_FAILED = "prerequisite_failed"
    CANCELLED = "cancelled"
    INTERNAL_ERROR = "internal_error"


class Severity(StrEnum):
    BLOCKING = "blocking"
    WARNING = "warning"


class StepStatus(StrEnum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    SOFT_FAILED = "soft_failed"
    HARD_FAILED = "hard_failed"
    SKIPPED = "skipped"


class StepCategory(StrEnum):
    SETUP = "setup"
    VERIFY = "verify"
    BUILD = "build"
    SIGNING = "signing"
    DEPLOY = "deploy"


class TriggerKind(StrEnum):
    PUSH = "push"
    TAG = "tag"
    PULL_REQUEST = "pull_request"
    MANUAL_DISPATCH = "manual_dispatch"


class Platform(StrEnum):
    ANDROID = "android"
    IOS = "ios"
    BOTH = "both"

    def targets(self) -> frozenset[Platform]:
        """Concrete platforms covered by this selection."""
        if self is Platform.BOTH:
            return frozenset({Platform.ANDROID, Platform.IOS})
        return frozenset({self})


class Environment(StrEnum):
    STAGING = "staging"
    PRODUCTION = "production"


class ProbeKind(StrEnum):
    FILE = "file"
    DIRECTORY = "directory"
    COMMAND = "command"
    VERSION = "version"
    SECRET = "secret"


TERMINAL_STATUSES: frozenset[StepStatus] = frozenset(
    {
        StepStatus.SUCCEEDED,
        StepStatus.SOFT_FAILED,
        StepStatus.HARD_FAILED,
        StepStatus.SKIPPED,
    }
)


@dataclass(frozen=True, slots=True)
class Outcome:
    """Tagged result of a probe predicate or step action."""

    kind: OutcomeKind
    message: str = ""
    transient: bool = False
    failure: FailureKind = FailureKind.NONE
    hint: str | None = None

    @classmethod
    def success(cls, message: str = "") -> Outcome:
        return cls(OutcomeKind.SUCCESS, message)

    @classmethod
    def soft(
        cls,
        message: str,
        *,
        failure: FailureKind = FailureKind.COMMAND_FAILED,
        transient: bool = False,
        hint: str | None = None,
    ) -> Outcome:
        return cls(OutcomeKind.SOFT_FAILURE, message, transient, failure, hint)

    @classmethod
    def hard(
        cls,
        message: str,
        *,
        failure: FailureKind = FailureKind.COMMAND_FAILED,
        transient: bool = False,
        hint: str | None = None,
    ) -> Outcome:
        return cls(OutcomeKind.HARD_FAILURE, message, transient, failure, hint)

    @property
    def ok(self) -> bool:
        return self.kind is OutcomeKind.SUCCESS

    @property
    def is_hard(self) -> bool:
        return self.kind is OutcomeKind.HARD_FAILURE

    def to_dict(self) -> dict[str, JSONValue]:
        return {
            "kind": self.kind.value,
            "message": self.message,
            "transient": self.transient,
            "failure": self.failure.value,
            "hint": self.hint,
        }


Predicate: TypeAlias = Callable[[], Outcome]
Action: TypeAlias = Callable[[], Outcome]


@dataclass(frozen=True, slots=True)
class ProbeQuery:
    """Declarative read-only environment check evaluated by a toolchain."""

    kind: ProbeKind
    target: str
    minimum: int | None = None
    pattern: str | None = None

    def __post_init__(self) -> None:
        if not self.target.strip():
            raise ValueError("ProbeQuery.target must be non-empty")
        if self.kind is ProbeKind.VERSION and self.minimum is None:
            raise ValueError("ProbeQuery.minimum is required for version probes")
        if self.pattern is not None and self.kind is not ProbeKind.DIRECTORY:
            raise ValueError("ProbeQuery.pattern is only valid for directory probes")

    def describe(self) -> str:
        if self.kind is ProbeKind.VERSION:
            return f"{self.target} >= {self.minimum}"
        return f"{self.kind.value}:{self.target}"


@dataclass(frozen=True, slots=True)
class Probe:
    """Named read-only environment check with a pass/fail predicate."""

    name: str
    predicate: Predicate = field(compare=False)
    severity: Severity = Severity.BLOCKING
    hint: str | None = None
    query: ProbeQuery | None = None

    def __post_init__(self) -> None:
        if not self.name.strip():
            raise ValueError("Probe.name must be non-empty")


@dataclass(frozen=True, slots=True)
class Step:
    """Unit of work with prerequisites, an action, and retry metadata."""

    id: str
    action: Action = field(compare=False)
    prerequisites: frozenset[str] = frozenset()
    idempotent: bool = True
    retryable: bool = False
    category: StepCategory = StepCategory.SETUP
    platforms: frozenset[Platform] = frozenset()
    environments: frozenset[Environment] = frozenset()
    probes: tuple[str, ...] = ()
    description: str = ""

    def __post_init__(self) -> None:
        if not self.id.strip():
            raise ValueError("Step.id must be non-empty")
        object.__setattr__(self, "prerequisites", frozenset(self.prerequisites))
        object.__setattr__(self, "platforms", frozenset(self.platforms))
        object.__setattr__(self, "environments", frozenset(self.environments))
        object.__setattr__(self, "probes", tuple(self.probes))
        if Platform.BOTH in self.platforms:
            raise ValueError(f"Step {self.id!r}: list concrete platforms, not 'both'")

    def applies_to(self, platform: Platform, environment: Environment) -> bool:
        """Whether the step belongs to a run for ``platform``/``environment``."""
        if self.platforms and not (self.platforms & platform.targets()):
            return False
        return not self.environments or environment in self.environments


@dataclass(frozen=True, slots=True)
class TriggerEvent:
    """External CI event that selects which steps run."""

    kind: TriggerKind
    ref: str = ""
    platform: Platform | None = None
    environment: Environment | None = None


@dataclass(slots=True)
class StepRecord:
    """Execution record for one selected step."""

    status: StepStatus = StepStatus.PENDING
    outcome: Outcome | None = None
    attempts: int = 0
    diagnostics: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, JSONValue]:
        return {
            "status": self.status.value,
            "attempts": self.attempts,
            "outcome": self.outcome.to_dict() if self.outcome is not None else None,
            "diagnostics": list(self.diagnostics),
        }


@dataclass(slots=True)
class PipelineRun:
    """State of one pipeline invocation; owns its results mapping."""

    trigger: TriggerKind
    platform: Platform
    environment: Environment
    selected_steps: tuple[str, ...]
    ref: str = ""
    results: dict[str, StepRecord] = field(default_factory=dict)
    probe_results: dict[str, Outcome] = field(default_factory=dict)
    cancelled: bool = False

    def record(self, step_id: str) -> StepRecord:
        """Return the record for ``step_id``, creating it on first use."""
        if step_id not in self.selected_steps:
            raise KeyError(f"step {step_id!r} is not selected for this run")
        existing = self.results.get(step_id)
        if existing is None:
            existing = StepRecord()
            self.results[step_id] = existing
        return existing

    def status_of(self, step_id: str) -> StepStatus:
        existing = self.results.get(step_id)
        return existing.status if existing is not None else StepStatus.PENDING

    def statuses(self) -> dict[str, StepStatus]:
        return {step_id: self.status_of(step_id) for step_id in self.selected_steps}


def parse_enum_set(
    enum_type: type[Platform] | type[Environment] | type[StepCategory],
    values: Iterable[str] | None,
    path: str,
) -> frozenset[object]:
    """Parse a list of enum values, raising ``ValueError`` with ``path`` context."""
    parsed: set[object] = set()
    for value in values or ():
        try:
            parsed.add(enum_type(value))
        except ValueError as exc:
            allowed = ", ".join(member.value for member in enum_type)
            raise ValueError(f"{path}: unsupported value {value!r} (allowed: {allowed})") from exc
    return frozenset(parsed)


__all__ = [
    "Action",
    "Environment",
    "FailureKind",
    "JSONScalar",
    "JSONValue",
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
    "TERMINAL_STATUSES",
    "TriggerEvent",
    "TriggerKind",
    "parse_enum_set",
]
