"""Deterministic step dependency graph with declaration-order tie-breaking."""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Sequence
from heapq import heapify, heappop, heappush

from pipeline_orchestrator.domain.models import Step
from pipeline_orchestrator.errors import (
    CycleDetectedError,
    DuplicateStepError,
    NonIdempotentRetryError,
    UnknownPrerequisiteError,
)


class DependencyGraph:
    """Validated DAG of steps with a stable topological order.

    Steps with no ordering constraint between them keep their declaration
    order, so identical catalogs always produce identical run sequences.
    """

    __slots__ = ("_steps", "_index", "_children", "_parents", "_order")

    def __init__(self, steps: Sequence[Step], order: tuple[str, ...]) -> None:
        self._steps: dict[str, Step] = {step.id: step for step in steps}
        self._index: dict[str, int] = {step.id: position for position, step in enumerate(steps)}
        self._parents: dict[str, frozenset[str]] = {
            step.id: step.prerequisites for step in steps
        }
        children: dict[str, set[str]] = {step.id: set() for step in steps}
        for step in steps:
            for parent in step.prerequisites:
                children[parent].add(step.id)
        self._children: dict[str, tuple[str, ...]] = {
            node: tuple(sorted(kids, key=self._index.__getitem__))
            for node, kids in children.items()
        }
        self._order = order

    @classmethod
    def build(cls, steps: Iterable[Step]) -> DependencyGraph:
        """Validate ``steps`` and topologically sort them.

        Raises a ``ConfigurationError`` subclass without returning a partial
        ordering when ids repeat, a prerequisite is undeclared, a retryable
        step is not idempotent, or prerequisites form a cycle.
        """
        declared = tuple(steps)
        index: dict[str, int] = {}
        for position, step in enumerate(declared):
            if step.id in index:
                raise DuplicateStepError(step.id)
            index[step.id] = position

        for step in declared:
            for prerequisite in sorted(step.prerequisites):
                if prerequisite not in index:
                    raise UnknownPrerequisiteError(step.id, prerequisite)
            if step.retryable and not step.idempotent:
                raise NonIdempotentRetryError(step.id)

        order = _kahn_order(declared, index)
        if len(order) != len(declared):
            raise CycleDetectedError(detect_cycles(declared))
        return cls(declared, order)

    @property
    def order(self) -> tuple[str, ...]:
        """Step ids in execution order."""
        return self._order

    @property
    def steps(self) -> tuple[Step, ...]:
        """Steps in execution order."""
        return tuple(self._steps[step_id] for step_id in self._order)

    def __contains__(self, step_id: object) -> bool:
        return step_id in self._steps

    def __len__(self) -> int:
        return len(self._steps)

    def step(self, step_id: str) -> Step:
        self._assert_step_exists(step_id)
        return self._steps[step_id]

    def prerequisites(self, step_id: str) -> tuple[str, ...]:
        """Direct prerequisites of ``step_id`` in declaration order."""
        self._assert_step_exists(step_id)
        return tuple(sorted(self._parents[step_id], key=self._index.__getitem__))

    def dependents(self, step_id: str, *, transitive: bool = False) -> tuple[str, ...]:
        """Direct or transitive dependents of ``step_id`` in execution order."""
        self._assert_step_exists(step_id)
        if not transitive:
            return self._children[step_id]

        visited: set[str] = set()
        pending: list[str] = list(self._children[step_id])
        while pending:
            node = pending.pop()
            if node in visited:
                continue
            visited.add(node)
            pending.extend(child for child in self._children[node] if child not in visited)

        return tuple(node for node in self._order if node in visited)

    def restrict(self, step_ids: Iterable[str]) -> tuple[str, ...]:
        """Return ``step_ids`` in execution order, dropping unknown ids."""
        wanted = set(step_ids)
        return tuple(node for node in self._order if node in wanted)

    def _assert_step_exists(self, step_id: str) -> None:
        if step_id not in self._steps:
            raise KeyError(f"Unknown step: {step_id}")


def _kahn_order(steps: Sequence[Step], index: dict[str, int]) -> tuple[str, ...]:
    indegree: dict[str, int] = {step.id: len(step.prerequisites) for step in steps}
    children: dict[str, list[str]] = {step.id: [] for step in steps}
    for step in steps:
        for parent in step.prerequisites:
            children[parent].append(step.id)

    ready: list[tuple[int, str]] = [
        (index[step.id], step.id) for step in steps if indegree[step.id] == 0
    ]
    heapify(ready)

    order: list[str] = []
    while ready:
        _, node = heappop(ready)
        order.append(node)
        for child in children[node]:
            indegree[child] -= 1
            if indegree[child] == 0:
                heappush(ready, (index[child], child))

    return tuple(order)


def detect_cycles(steps: Sequence[Step]) -> tuple[tuple[str, ...], ...]:
    """Detect prerequisite cycles.

    Returns closed paths in dependency direction, e.g. ``("a", "b", "a")``
    where ``b`` requires ``a`` and ``a`` requires ``b``.
    """
    children: dict[str, list[str]] = {step.id: [] for step in steps}
    for step in steps:
        for parent in sorted(step.prerequisites):
            if parent in children:
                children[parent].append(step.id)

    state: dict[str, int] = {}
    stack: list[str] = []
    stack_index: dict[str, int] = {}
    cycles: dict[tuple[str, ...], None] = {}

    for start in children:
        if state.get(start, 0) != 0:
            continue

        state[start] = 1
        stack.append(start)
        stack_index[start] = 0
        frames: list[tuple[str, Iterator[str]]] = [(start, iter(children[start]))]

        while frames:
            node, child_iter = frames[-1]
            try:
                child = next(child_iter)
            except StopIteration:
                frames.pop()
                state[node] = 2
                stack.pop()
                del stack_index[node]
                continue

            child_state = state.get(child, 0)
            if child_state == 0:
                state[child] = 1
                stack_index[child] = len(stack)
                stack.append(child)
                frames.append((child, iter(children[child])))
                continue

            if child_state == 1:
                cycle = tuple(stack[stack_index[child] :] + [child])
                cycles[_canonicalize_cycle(cycle)] = None

    return tuple(sorted(cycles))


def _canonicalize_cycle(cycle: Sequence[str]) -> tuple[str, ...]:
    core = tuple(cycle[:-1])
    if len(core) == 1:
        return (core[0], core[0])

    best = core
    for offset in range(1, len(core)):
        rotated = core[offset:] + core[:offset]
        if rotated < best:
            best = rotated
    return best + (best[0],)


__all__ = ["DependencyGraph", "detect_cycles"]
