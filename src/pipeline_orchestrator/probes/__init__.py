"""Read-only environment probes and their registry."""

from pipeline_orchestrator.probes.registry import (
    ProbeRegistry,
    ProbeSweep,
    constant_probe,
    evaluate_probe,
    query_probe,
)

__all__ = ["ProbeRegistry", "ProbeSweep", "constant_probe", "evaluate_probe", "query_probe"]
