"""Step ordering: dependency graph construction and validation."""

from pipeline_orchestrator.planning.dependency_graph import DependencyGraph, detect_cycles

__all__ = ["DependencyGraph", "detect_cycles"]
