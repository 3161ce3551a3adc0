"""Unit tests for planning.dependency_graph."""

from __future__ import annotations

import random

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from pipeline_orchestrator.domain.models import Outcome, Step
from pipeline_orchestrator.errors import (
    ConfigurationError,
    CycleDetectedError,
    DuplicateStepError,
    NonIdempotentRetryError,
    UnknownPrerequisiteError,
)
from pipeline_orchestrator.planning.dependency_graph import DependencyGraph, detect_cycles


def _step(step_id: str, *prerequisites: str, **kwargs: object) -> Step:
    return Step(
        id=step_id,
        action=lambda: Outcome.success(),
        prerequisites=frozenset(prerequisites),
        **kwargs,
    )


def test_diamond_orders_prerequisites_first() -> None:
    graph = DependencyGraph.build(
        [
            _step("install"),
            _step("lint", "install"),
            _step("test", "install"),
            _step("build", "lint", "test"),
        ]
    )

    assert graph.order == ("install", "lint", "test", "build")
    assert graph.prerequisites("build") == ("lint", "test")
    assert graph.dependents("install") == ("lint", "test")
    assert graph.dependents("install", transitive=True) == ("lint", "test", "build")


def test_independent_steps_keep_declaration_order() -> None:
    graph = DependencyGraph.build([_step("zeta"), _step("alpha"), _step("mid", "zeta")])

    assert graph.order == ("zeta", "alpha", "mid")


def test_dependent_declared_before_prerequisite_is_reordered() -> None:
    graph = DependencyGraph.build([_step("build", "install"), _step("install")])

    assert graph.order == ("install", "build")
    assert [step.id for step in graph.steps] == ["install", "build"]


def test_duplicate_step_id_is_rejected() -> None:
    with pytest.raises(DuplicateStepError, match="install"):
        DependencyGraph.build([_step("install"), _step("install")])


def test_unknown_prerequisite_is_rejected() -> None:
    with pytest.raises(UnknownPrerequisiteError) as error:
        DependencyGraph.build([_step("build", "install", "checkout")])

    assert error.value.step_id == "build"
    assert error.value.prerequisite == "checkout"


def test_retryable_step_must_be_idempotent() -> None:
    with pytest.raises(NonIdempotentRetryError):
        DependencyGraph.build([_step("deploy", retryable=True, idempotent=False)])


def test_cycle_is_reported_without_partial_order() -> None:
    steps = [_step("a", "c"), _step("b", "a"), _step("c", "b"), _step("d")]

    with pytest.raises(CycleDetectedError) as error:
        DependencyGraph.build(steps)

    assert isinstance(error.value, ConfigurationError)
    assert error.value.cycles == (("a", "b", "c", "a"),)
    assert detect_cycles(steps) == (("a", "b", "c", "a"),)


def test_self_dependency_is_a_cycle() -> None:
    with pytest.raises(CycleDetectedError) as error:
        DependencyGraph.build([_step("loop", "loop")])

    assert error.value.cycles == (("loop", "loop"),)


def test_restrict_and_lookups() -> None:
    graph = DependencyGraph.build([_step("a"), _step("b", "a"), _step("c", "b")])

    assert graph.restrict(["c", "a", "unknown"]) == ("a", "c")
    assert "b" in graph
    assert len(graph) == 3
    with pytest.raises(KeyError, match="Unknown step: zzz"):
        graph.step("zzz")


def test_seeded_random_dag_with_500_steps() -> None:
    rng = random.Random(20_261_016)
    ids = [f"step-{index:03d}" for index in range(500)]
    steps: list[Step] = []
    for index, step_id in enumerate(ids):
        parents = rng.sample(ids[:index], min(3, index)) if index else []
        steps.append(_step(step_id, *[p for p in parents if rng.random() < 0.6]))
    rng.shuffle(steps)

    graph = DependencyGraph.build(steps)
    position = {step_id: index for index, step_id in enumerate(graph.order)}

    assert len(position) == 500
    for step in steps:
        for prerequisite in step.prerequisites:
            assert position[prerequisite] < position[step.id]


@st.composite
def _dag(draw: st.DrawFn) -> list[Step]:
    count = draw(st.integers(min_value=1, max_value=8))
    steps: list[Step] = []
    for index in range(count):
        parents = draw(st.sets(st.integers(min_value=0, max_value=max(index - 1, 0)), max_size=3))
        steps.append(_step(f"s{index}", *(f"s{p}" for p in parents if p < index)))
    order = draw(st.permutations(steps))
    return list(order)


@given(steps=_dag())
@settings(max_examples=60, derandomize=True, deadline=None)
def test_property_order_respects_prerequisites_and_is_deterministic(steps: list[Step]) -> None:
    first = DependencyGraph.build(steps).order
    second = DependencyGraph.build(steps).order

    assert first == second
    assert sorted(first) == sorted(step.id for step in steps)
    position = {step_id: index for index, step_id in enumerate(first)}
    for step in steps:
        assert all(position[p] < position[step.id] for p in step.prerequisites)
