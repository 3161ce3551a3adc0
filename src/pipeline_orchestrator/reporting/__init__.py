"""Run reports: structured payload, text rendering, and exit status."""

from pipeline_orchestrator.reporting.report import (
    REMEDIATION_HINTS,
    Report,
    exit_status_for,
    remediation_for,
    render,
)

__all__ = ["REMEDIATION_HINTS", "Report", "exit_status_for", "remediation_for", "render"]
