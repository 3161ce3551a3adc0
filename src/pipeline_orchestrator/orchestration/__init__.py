"""Catalog loading, trigger adapters, and the pipeline orchestrator."""

from pipeline_orchestrator.orchestration.catalog import (
    BUILTIN_CATALOG,
    CommandSpec,
    Condition,
    PipelineCatalog,
    command_action,
    load_catalog,
    parse_catalog,
)
from pipeline_orchestrator.orchestration.orchestrator import (
    TRIGGER_POLICIES,
    PipelineOrchestrator,
    PipelinePlan,
    TriggerPolicy,
)
from pipeline_orchestrator.orchestration.triggers import parse_trigger_event, trigger_from_github

__all__ = [
    "BUILTIN_CATALOG",
    "CommandSpec",
    "Condition",
    "PipelineCatalog",
    "PipelineOrchestrator",
    "PipelinePlan",
    "TRIGGER_POLICIES",
    "TriggerPolicy",
    "command_action",
    "load_catalog",
    "parse_catalog",
    "parse_trigger_event",
    "trigger_from_github",
]
