"""Security helpers: redaction of sensitive values before anything is archived."""

from fluid_diagnose_bundler.security.redaction import (
    DEFAULT_REDACTION_CONFIG,
    DEFAULT_SENSITIVE_KEY_TERMS,
    REDACTED_VALUE,
    RedactionConfig,
    RedactionError,
    Redactor,
    SecretFinding,
    is_sensitive_key,
    redact_bytes,
    redact_text,
    scan_for_secrets,
    scrub_structured,
)

__all__ = [
    "DEFAULT_REDACTION_CONFIG",
    "DEFAULT_SENSITIVE_KEY_TERMS",
    "REDACTED_VALUE",
    "RedactionConfig",
    "RedactionError",
    "Redactor",
    "SecretFinding",
    "is_sensitive_key",
    "redact_bytes",
    "redact_text",
    "scan_for_secrets",
    "scrub_structured",
]
