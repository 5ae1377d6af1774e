"""Public observability primitives: structured JSON-lines logging and correlation scopes."""

from fluid_diagnose_bundler.observability.logging import (
    LoggingConfig,
    LoggingHandle,
    LogRedactor,
    bundle_scope,
    default_log_redactor,
    get_active_logging_handle,
    get_scope_fields,
    setup_logging,
    shutdown_logging,
)

__all__ = [
    "LogRedactor",
    "LoggingConfig",
    "LoggingHandle",
    "bundle_scope",
    "default_log_redactor",
    "get_active_logging_handle",
    "get_scope_fields",
    "setup_logging",
    "shutdown_logging",
]
