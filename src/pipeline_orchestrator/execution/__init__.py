"""Step execution and the external toolchain seam."""

from pipeline_orchestrator.execution.executor import (
    DEFAULT_RETRY_BOUND,
    CancellationToken,
    StepExecutor,
)
from pipeline_orchestrator.execution.toolchain import SubprocessToolchain, Toolchain

__all__ = [
    "DEFAULT_RETRY_BOUND",
    "CancellationToken",
    "StepExecutor",
    "SubprocessToolchain",
    "Toolchain",
]
