"""Shared fixtures: a scripted toolchain standing in for node, gradle, fastlane, and friends."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator, Mapping, Sequence
from dataclasses import dataclass, field

import pytest

from pipeline_orchestrator.domain.models import FailureKind, Outcome, ProbeKind, ProbeQuery, Step
from pipeline_orchestrator.observability.logging import shutdown_logging

_PROBE_FAILURES: Mapping[ProbeKind, FailureKind] = {
    ProbeKind.FILE: FailureKind.MISSING_FILE,
    ProbeKind.DIRECTORY: FailureKind.MISSING_FILE,
    ProbeKind.COMMAND: FailureKind.MISSING_TOOL,
    ProbeKind.VERSION: FailureKind.VERSION_MISMATCH,
    ProbeKind.SECRET: FailureKind.MISSING_SECRET,
}


@dataclass
class ScriptedToolchain:
    """In-memory toolchain.

    Probe targets listed in ``missing`` fail; everything else passes.
    Command results are scripted per display string (``"npm run lint"``) and
    consumed in order; the last scripted result repeats. Unscripted commands
    succeed.
    """

    missing: set[str] = field(default_factory=set)
    results: dict[str, list[Outcome | BaseException]] = field(default_factory=dict)
    invocations: list[tuple[str, str | None, float | None]] = field(default_factory=list)
    probed: list[str] = field(default_factory=list)

    def script(self, display: str, *results: Outcome | BaseException) -> None:
        self.results[display] = list(results)

    def probe(self, query: ProbeQuery) -> Outcome:
        self.probed.append(query.target)
        if query.target in self.missing:
            return Outcome.hard(
                f"{query.describe()} missing", failure=_PROBE_FAILURES[query.kind]
            )
        return Outcome.success(f"{query.describe()} ok")

    def invoke(
        self,
        command: str,
        args: Sequence[str] = (),
        timeout: float | None = None,
        *,
        cwd: str | None = None,
    ) -> Outcome:
        display = " ".join([command, *args])
        self.invocations.append((display, cwd, timeout))
        queue = self.results.get(display)
        if not queue:
            return Outcome.success(f"{display} completed")
        result = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(result, BaseException):
            raise result
        return result

    def commands(self) -> list[str]:
        return [display for display, _, _ in self.invocations]


@pytest.fixture
def toolchain() -> ScriptedToolchain:
    return ScriptedToolchain()


@pytest.fixture(autouse=True)
def _cleanup_logging() -> Iterator[None]:
    yield
    shutdown_logging()


class RecordingLogger:
    """Minimal structlog-compatible logger capturing ``(level, event, fields)``."""

    def __init__(self) -> None:
        self.events: list[tuple[str, str, dict[str, object]]] = []

    def _log(self, level: str) -> Callable[..., None]:
        def emit(event: str, **fields: object) -> None:
            self.events.append((level, event, fields))

        return emit

    def __getattr__(self, name: str) -> Callable[..., None]:
        if name in {"debug", "info", "warning", "error", "exception"}:
            return self._log(name)
        raise AttributeError(name)

    def names(self) -> list[str]:
        return [event for _, event, _ in self.events]


@pytest.fixture
def recording_logger() -> RecordingLogger:
    return RecordingLogger()


def make_step(
    step_id: str,
    *,
    prerequisites: Iterable[str] = (),
    outcomes: Iterable[Outcome] | None = None,
    calls: list[str] | None = None,
    **kwargs: object,
) -> Step:
    """Step whose action replays ``outcomes`` and records its id in ``calls``."""

    script = list(outcomes) if outcomes is not None else [Outcome.success("done")]

    def action() -> Outcome:
        if calls is not None:
            calls.append(step_id)
        return script.pop(0) if len(script) > 1 else script[0]

    return Step(id=step_id, action=action, prerequisites=frozenset(prerequisites), **kwargs)


@pytest.fixture
def step_factory() -> Callable[..., Step]:
    return make_step

