"""Exception taxonomy for catalog, planning, and toolchain failures.

Configuration errors are fatal and raised before any step executes. Probe and
step failures are never raised; they travel as ``Outcome`` values.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence


class PipelineError(Exception):
    """Base class for all orchestrator errors."""


class ConfigurationError(PipelineError, ValueError):
    """Catalog or plan request is invalid; nothing has been executed."""


class DuplicateProbeError(ConfigurationError):
    """Raised when a probe name is registered twice."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"probe already registered: {name!r}")


class DuplicateStepError(ConfigurationError):
    """Raised when two steps share an id."""

    def __init__(self, step_id: str) -> None:
        self.step_id = step_id
        super().__init__(f"duplicate step id: {step_id!r}")


class UnknownPrerequisiteError(ConfigurationError):
    """Raised when a step references a prerequisite that is not declared."""

    def __init__(self, step_id: str, prerequisite: str) -> None:
        self.step_id = step_id
        self.prerequisite = prerequisite
        super().__init__(f"step {step_id!r} requires unknown step {prerequisite!r}")


class UnknownProbeError(ConfigurationError):
    """Raised when a step gates on a probe that is not registered."""

    def __init__(self, step_id: str, probe_name: str) -> None:
        self.step_id = step_id
        self.probe_name = probe_name
        super().__init__(f"step {step_id!r} gates on unknown probe {probe_name!r}")


class NonIdempotentRetryError(ConfigurationError):
    """Raised when a step is marked retryable but not idempotent."""

    def __init__(self, step_id: str) -> None:
        self.step_id = step_id
        super().__init__(f"step {step_id!r} is retryable but not idempotent")


class CycleDetectedError(ConfigurationError):
    """Raised when step prerequisites form a cycle."""

    cycles: tuple[tuple[str, ...], ...]

    def __init__(self, cycles: Iterable[Sequence[str]]) -> None:
        normalized: tuple[tuple[str, ...], ...] = tuple(tuple(path) for path in cycles)
        self.cycles = normalized

        if not normalized:
            message = "Step graph contains at least one cycle."
        else:
            preview = ", ".join(" -> ".join(path) for path in normalized[:3])
            suffix = "..." if len(normalized) > 3 else ""
            message = f"Step graph contains cycle(s): {preview}{suffix}"
        super().__init__(message)


class MissingArgumentError(ConfigurationError):
    """Raised when a trigger requires arguments the caller did not supply."""

    def __init__(self, trigger: str, missing: Sequence[str]) -> None:
        self.trigger = trigger
        self.missing = tuple(missing)
        super().__init__(f"trigger {trigger!r} requires: {', '.join(self.missing)}")


class CatalogLoadError(ConfigurationError):
    """Raised when a pipeline catalog file cannot be read or parsed."""


class ToolchainTimeout(PipelineError):
    """Raised by a toolchain when an external command exceeds its timeout."""

    def __init__(self, command: str, timeout_seconds: float) -> None:
        self.command = command
        self.timeout_seconds = timeout_seconds
        super().__init__(f"command timed out after {timeout_seconds:.1f}s: {command}")


__all__ = [
    "CatalogLoadError",
    "ConfigurationError",
    "CycleDetectedError",
    "DuplicateProbeError",
    "DuplicateStepError",
    "MissingArgumentError",
    "NonIdempotentRetryError",
    "PipelineError",
    "ToolchainTimeout",
    "UnknownPrerequisiteError",
    "UnknownProbeError",
]
