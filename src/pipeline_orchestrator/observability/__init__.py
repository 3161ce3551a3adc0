"""Public observability primitives: structured logging and correlation context."""

from pipeline_orchestrator.observability.logging import (
    LoggingConfig,
    StructuredLoggingHandle,
    configure_structlog,
    correlation_scope,
    flush_logging,
    get_active_logging_handle,
    get_correlation_context,
    redact_text,
    redact_value,
    setup_logging,
    setup_structured_logging,
    shutdown_logging,
)

__all__ = [
    "LoggingConfig",
    "StructuredLoggingHandle",
    "configure_structlog",
    "correlation_scope",
    "flush_logging",
    "get_active_logging_handle",
    "get_correlation_context",
    "redact_text",
    "redact_value",
    "setup_logging",
    "setup_structured_logging",
    "shutdown_logging",
]
