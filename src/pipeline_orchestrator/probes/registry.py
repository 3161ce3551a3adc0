"""Registry of named read-only environment probes."""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from typing import TYPE_CHECKING

from pipeline_orchestrator.domain.models import Outcome, Probe, ProbeQuery, Severity
from pipeline_orchestrator.errors import DuplicateProbeError

if TYPE_CHECKING:
    from pipeline_orchestrator.execution.toolchain import Toolchain


class ProbeSweep:
    """Lazy, restartable sequence of ``(Probe, Outcome)`` pairs.

    Each iteration re-evaluates predicates in registration order, so the same
    sweep can be replayed for diagnostics.
    """

    __slots__ = ("_probes",)

    def __init__(self, probes: tuple[Probe, ...]) -> None:
        self._probes = probes

    def __iter__(self) -> Iterator[tuple[Probe, Outcome]]:
        for probe in self._probes:
            yield probe, evaluate_probe(probe)

    def __len__(self) -> int:
        return len(self._probes)


class ProbeRegistry:
    """Probes keyed by unique name, kept in registration order."""

    __slots__ = ("_probes",)

    def __init__(self, probes: Iterable[Probe] | None = None) -> None:
        self._probes: dict[str, Probe] = {}
        for probe in probes or ():
            self.register(probe)

    def register(self, probe: Probe) -> None:
        if probe.name in self._probes:
            raise DuplicateProbeError(probe.name)
        self._probes[probe.name] = probe

    def get(self, name: str) -> Probe:
        try:
            return self._probes[name]
        except KeyError:
            raise KeyError(f"Unknown probe: {name}") from None

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(self._probes)

    def __contains__(self, name: object) -> bool:
        return name in self._probes

    def __len__(self) -> int:
        return len(self._probes)

    def evaluate(self, name: str) -> Outcome:
        return evaluate_probe(self.get(name))

    def run_all(self) -> ProbeSweep:
        return ProbeSweep(tuple(self._probes.values()))


def evaluate_probe(probe: Probe) -> Outcome:
    """Run a probe predicate, attaching the probe's hint to failures."""
    outcome = probe.predicate()
    if outcome.ok or outcome.hint is not None or probe.hint is None:
        return outcome
    return Outcome(
        kind=outcome.kind,
        message=outcome.message,
        transient=outcome.transient,
        failure=outcome.failure,
        hint=probe.hint,
    )


def query_probe(
    name: str,
    query: ProbeQuery,
    toolchain: Toolchain,
    *,
    severity: Severity = Severity.BLOCKING,
    hint: str | None = None,
    only_if: ProbeQuery | None = None,
    not_applicable: str | None = None,
) -> Probe:
    """Build a probe whose predicate asks ``toolchain`` to evaluate ``query``.

    With ``only_if``, the probe passes as not applicable unless that query
    passes first, so a tool is only required where its inputs exist.
    """

    def predicate() -> Outcome:
        if only_if is not None and not toolchain.probe(only_if).ok:
            return Outcome.success(
                not_applicable or f"not applicable: {only_if.describe()} not present"
            )
        return toolchain.probe(query)

    return Probe(name=name, predicate=predicate, severity=severity, hint=hint, query=query)


def constant_probe(
    name: str,
    outcome: Outcome,
    *,
    severity: Severity = Severity.BLOCKING,
) -> Probe:
    """Probe with a fixed result; handy for dry runs and tests."""
    return Probe(name=name, predicate=lambda: outcome, severity=severity)


__all__ = [
    "ProbeRegistry",
    "ProbeSweep",
    "constant_probe",
    "evaluate_probe",
    "query_probe",
]
