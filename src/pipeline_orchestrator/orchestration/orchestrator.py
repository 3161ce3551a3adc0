"""
Pipeline orchestrator: trigger policy, step selection, and run execution.

Each trigger kind maps to a fixed set of step categories and default
platform/environment. Selection filters the catalog by category, platform,
and environment, then keeps graph order. A step whose prerequisite was
filtered out cannot run in isolation, so it is excluded as well and reported
in ``PipelinePlan.excluded``.

Configuration errors (graph problems, unknown probes, missing manual
dispatch arguments) raise before any step executes.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

import structlog

from pipeline_orchestrator.domain.models import (
    Environment,
    JSONValue,
    PipelineRun,
    Platform,
    Step,
    StepCategory,
    TriggerEvent,
    TriggerKind,
)
from pipeline_orchestrator.errors import MissingArgumentError, UnknownProbeError
from pipeline_orchestrator.execution.executor import (
    DEFAULT_RETRY_BOUND,
    CancellationToken,
    StepExecutor,
)
from pipeline_orchestrator.observability.logging import correlation_scope
from pipeline_orchestrator.planning.dependency_graph import DependencyGraph

if TYPE_CHECKING:
    from pipeline_orchestrator.orchestration.catalog import PipelineCatalog
    from pipeline_orchestrator.probes.registry import ProbeRegistry


_ALL_CATEGORIES = frozenset(StepCategory)


@dataclass(frozen=True, slots=True)
class TriggerPolicy:
    """Static step selection rules for one trigger kind."""

    categories: frozenset[StepCategory]
    default_platform: Platform | None = None
    default_environment: Environment | None = None


TRIGGER_POLICIES: Mapping[TriggerKind, TriggerPolicy] = MappingProxyType(
    {
        TriggerKind.PUSH: TriggerPolicy(_ALL_CATEGORIES, Platform.BOTH, Environment.STAGING),
        TriggerKind.TAG: TriggerPolicy(_ALL_CATEGORIES, Platform.BOTH, Environment.PRODUCTION),
        TriggerKind.PULL_REQUEST: TriggerPolicy(
            frozenset({StepCategory.SETUP, StepCategory.VERIFY, StepCategory.BUILD}),
            Platform.BOTH,
            Environment.STAGING,
        ),
        TriggerKind.MANUAL_DISPATCH: TriggerPolicy(_ALL_CATEGORIES),
    }
)


@dataclass(frozen=True, slots=True)
class PipelinePlan:
    """Ordered step selection for one trigger, computed before execution."""

    trigger: TriggerKind
    platform: Platform
    environment: Environment
    selected_steps: tuple[str, ...]
    excluded: tuple[str, ...] = ()
    ref: str = ""

    def new_run(self) -> PipelineRun:
        return PipelineRun(
            trigger=self.trigger,
            platform=self.platform,
            environment=self.environment,
            selected_steps=self.selected_steps,
            ref=self.ref,
        )

    def to_dict(self) -> dict[str, JSONValue]:
        return {
            "trigger": self.trigger.value,
            "ref": self.ref,
            "platform": self.platform.value,
            "environment": self.environment.value,
            "selected_steps": list(self.selected_steps),
            "excluded": list(self.excluded),
        }


class PipelineOrchestrator:
    """Plan and run pipelines over a validated step catalog."""

    def __init__(
        self,
        steps: Iterable[Step],
        registry: ProbeRegistry,
        *,
        retry_bound: int = DEFAULT_RETRY_BOUND,
        logger: Any | None = None,
    ) -> None:
        self._graph = DependencyGraph.build(steps)
        for step in self._graph.steps:
            for probe_name in step.probes:
                if probe_name not in registry:
                    raise UnknownProbeError(step.id, probe_name)
        self._registry = registry
        self._logger = logger if logger is not None else structlog.get_logger(__name__)
        self._executor = StepExecutor(
            self._graph, registry, retry_bound=retry_bound, logger=self._logger
        )

    @classmethod
    def from_catalog(
        cls,
        catalog: PipelineCatalog,
        *,
        retry_bound: int = DEFAULT_RETRY_BOUND,
        logger: Any | None = None,
    ) -> PipelineOrchestrator:
        return cls(catalog.steps, catalog.registry, retry_bound=retry_bound, logger=logger)

    @property
    def graph(self) -> DependencyGraph:
        return self._graph

    @property
    def registry(self) -> ProbeRegistry:
        return self._registry

    def plan(
        self,
        trigger: TriggerKind | str,
        platform: Platform | str | None = None,
        environment: Environment | str | None = None,
        ref: str = "",
    ) -> PipelinePlan:
        """Select and order the steps for ``trigger``.

        Raises ``MissingArgumentError`` when the trigger has no default for an
        omitted platform or environment.
        """
        kind = TriggerKind(trigger)
        policy = TRIGGER_POLICIES[kind]

        resolved_platform = Platform(platform) if platform is not None else policy.default_platform
        resolved_environment = (
            Environment(environment) if environment is not None else policy.default_environment
        )
        missing: list[str] = []
        if resolved_platform is None:
            missing.append("platform")
        if resolved_environment is None:
            missing.append("environment")
        if missing or resolved_platform is None or resolved_environment is None:
            raise MissingArgumentError(kind.value, missing)

        selected: list[str] = []
        excluded: list[str] = []
        chosen: set[str] = set()
        for step in self._graph.steps:
            if step.category not in policy.categories:
                continue
            if not step.applies_to(resolved_platform, resolved_environment):
                continue
            if any(prerequisite not in chosen for prerequisite in step.prerequisites):
                excluded.append(step.id)
                continue
            chosen.add(step.id)
            selected.append(step.id)

        return PipelinePlan(
            trigger=kind,
            platform=resolved_platform,
            environment=resolved_environment,
            selected_steps=tuple(selected),
            excluded=tuple(excluded),
            ref=ref,
        )

    def plan_event(self, event: TriggerEvent) -> PipelinePlan:
        return self.plan(event.kind, event.platform, event.environment, event.ref)

    def execute(self, plan: PipelinePlan, token: CancellationToken | None = None) -> PipelineRun:
        """Run a previously computed plan to completion (or cancellation)."""
        run = plan.new_run()
        with correlation_scope(trigger=plan.trigger.value, ref=plan.ref or None):
            self._logger.info(
                "run_started",
                trigger=plan.trigger.value,
                platform=plan.platform.value,
                environment=plan.environment.value,
                steps=len(plan.selected_steps),
                excluded=list(plan.excluded),
            )
            self._executor.execute(run, token)
            self._logger.info(
                "run_finished",
                cancelled=run.cancelled,
                statuses={step_id: status.value for step_id, status in run.statuses().items()},
            )
        return run

    def run(self, event: TriggerEvent, token: CancellationToken | None = None) -> PipelineRun:
        """Plan and execute the pipeline for ``event``."""
        return self.execute(self.plan_event(event), token)


__all__ = [
    "PipelineOrchestrator",
    "PipelinePlan",
    "TRIGGER_POLICIES",
    "TriggerPolicy",
]
