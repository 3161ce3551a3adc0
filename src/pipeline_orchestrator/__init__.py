"""
pipeline-orchestrator: environment readiness checks and CI pipeline orchestration.

File: src/pipeline_orchestrator/__init__.py

Purpose
- Package root. Verifies a multi-toolchain mobile build environment through
  read-only probes, then runs a dependency graph of setup, verify, build,
  signing, and deploy steps selected by a CI trigger.

Functional requirements
- Must not have side effects at import time (no config loading, no logging init).
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
