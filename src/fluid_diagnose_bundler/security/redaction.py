"""
fluid-diagnose-bundler — security redaction utilities

File: src/fluid_diagnose_bundler/security/redaction.py

Purpose
- Implements redaction rules for archived diagnostic content and log records.

What should be included in this file
- Key-name heuristics for structured data and marker patterns for raw text/bytes.
- Deterministic, idempotent redaction transforms.

Functional requirements
- Structured values that cannot be normalized fail closed with ``RedactionError``.
- Raw bytes are matched as bytes so content outside the matches is preserved exactly.

Non-functional requirements
- Pure functions; no IO.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Final, TypeAlias

from fluid_diagnose_bundler.constants import REDACTED_VALUE
from fluid_diagnose_bundler.domain.models import JSONValue, to_json_value

PatternLike: TypeAlias = str | re.Pattern[str]

DEFAULT_SENSITIVE_KEY_TERMS: Final[frozenset[str]] = frozenset(
    {
        "authorization",
        "key",
        "password",
        "secret",
        "token",
    }
)

# ASCII semantics so text and bytes agree on what counts as whitespace.
_ASSIGNMENT_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"""(?i)(password|token|key|secret)\s*[:=]\s*["']?([^"'\s]+)["']?""",
    re.ASCII,
)


@dataclass(frozen=True, slots=True)
class SecretFinding:
    """One secret-like match discovered during scanning."""

    rule: str
    start: int
    end: int
    sample: str


@dataclass(frozen=True, slots=True)
class _TextRule:
    name: str
    pattern: re.Pattern[str]
    bytes_pattern: re.Pattern[bytes]
    keeps_marker: bool = False


class RedactionError(RuntimeError):
    """Raised when a structured value cannot be normalized for scrubbing."""


@dataclass(frozen=True, slots=True)
class RedactionConfig:
    """Policy that controls detection/redaction behavior."""

    replacement: str = REDACTED_VALUE
    extra_key_terms: frozenset[str] = frozenset()
    extra_text_patterns: tuple[PatternLike, ...] = field(default_factory=tuple)


DEFAULT_REDACTION_CONFIG: Final[RedactionConfig] = RedactionConfig()


class Redactor:
    """
    Masks sensitive values in structured data, text, and raw bytes.

    Text rule: a field marker (``password``, ``token``, ``key``, ``secret``) followed
    by ``:`` or ``=`` and a value token becomes ``<marker>: [REDACTED]``.
    Structural rule: any mapping key whose lower-cased name contains a sensitive
    term has its whole value replaced, nested content included.
    """

    __slots__ = ("_key_terms", "_replacement", "_replacement_bytes", "_rules")

    def __init__(self, config: RedactionConfig | None = None) -> None:
        resolved = config if config is not None else DEFAULT_REDACTION_CONFIG
        self._replacement = resolved.replacement or REDACTED_VALUE
        self._replacement_bytes = self._replacement.encode("utf-8")
        self._key_terms = tuple(
            sorted(
                term
                for term in (
                    item.strip().lower()
                    for item in DEFAULT_SENSITIVE_KEY_TERMS | resolved.extra_key_terms
                )
                if term
            )
        )
        self._rules = (
            _compile_rule("sensitive_assignment", _ASSIGNMENT_PATTERN, keeps_marker=True),
            *_compile_custom_rules(resolved.extra_text_patterns),
        )

    @property
    def replacement(self) -> str:
        return self._replacement

    def redact(self, data: bytes) -> bytes:
        """Redact raw bytes."""

        if not isinstance(data, (bytes, bytearray)):
            raise TypeError(f"data must be bytes, got {type(data).__name__}")
        redacted = bytes(data)
        for rule in self._rules:
            if rule.keeps_marker:
                redacted = rule.bytes_pattern.sub(
                    lambda match: match.group(1) + b": " + self._replacement_bytes, redacted
                )
            else:
                redacted = rule.bytes_pattern.sub(lambda _match: self._replacement_bytes, redacted)
        return redacted

    def redact_string(self, text: str) -> str:
        """Redact text. Deterministic and idempotent for stable inputs."""

        if not isinstance(text, str):
            raise TypeError(f"text must be a string, got {type(text).__name__}")
        redacted = text
        for rule in self._rules:
            if rule.keeps_marker:
                redacted = rule.pattern.sub(
                    lambda match: f"{match.group(1)}: {self._replacement}", redacted
                )
            else:
                redacted = rule.pattern.sub(lambda _match: self._replacement, redacted)
        return redacted

    def scrub_structured(self, value: object) -> JSONValue:
        """Return a redacted copy of ``value`` in plain mapping/sequence/scalar form."""

        try:
            normalized = to_json_value(value)
        except (TypeError, ValueError) as exc:
            raise RedactionError(f"redaction failed: {exc}") from exc
        return self._scrub(normalized)

    def is_sensitive_key(self, key: str) -> bool:
        lowered = key.lower()
        return any(term in lowered for term in self._key_terms)

    def scan(self, text: str) -> tuple[SecretFinding, ...]:
        """Return every rule match in ``text`` ordered by position."""

        if not isinstance(text, str):
            raise TypeError(f"text must be a string, got {type(text).__name__}")
        findings: list[SecretFinding] = []
        for rule in self._rules:
            group = 2 if rule.keeps_marker else 0
            for match in rule.pattern.finditer(text):
                start, end = match.span(group)
                findings.append(
                    SecretFinding(rule=rule.name, start=start, end=end, sample=match.group(group))
                )
        findings.sort(key=lambda item: (item.start, item.end, item.rule))
        return tuple(findings)

    def _scrub(self, value: JSONValue) -> JSONValue:
        if isinstance(value, dict):
            out: dict[str, JSONValue] = {}
            for key, item in value.items():
                if self.is_sensitive_key(key):
                    out[key] = self._replacement
                else:
                    out[key] = self._scrub(item)
            return out
        if isinstance(value, list):
            return [self._scrub(item) for item in value]
        return value


def redact_bytes(data: bytes, *, config: RedactionConfig | None = None) -> bytes:
    return _redactor_for(config).redact(data)


def redact_text(text: str, *, config: RedactionConfig | None = None) -> str:
    return _redactor_for(config).redact_string(text)


def scrub_structured(value: object, *, config: RedactionConfig | None = None) -> JSONValue:
    return _redactor_for(config).scrub_structured(value)


def is_sensitive_key(key: str, *, config: RedactionConfig | None = None) -> bool:
    """Return whether ``key`` should have its value masked."""

    return _redactor_for(config).is_sensitive_key(key)


def scan_for_secrets(
    text: str, *, config: RedactionConfig | None = None
) -> tuple[SecretFinding, ...]:
    return _redactor_for(config).scan(text)


def _redactor_for(config: RedactionConfig | None) -> Redactor:
    if config is None:
        return _DEFAULT_REDACTOR
    return Redactor(config)


def _compile_rule(name: str, pattern: PatternLike, *, keeps_marker: bool = False) -> _TextRule:
    compiled = pattern if isinstance(pattern, re.Pattern) else re.compile(pattern)
    # Bytes patterns reject the implicit UNICODE flag of str patterns.
    bytes_pattern = re.compile(
        compiled.pattern.encode("utf-8"),
        compiled.flags & ~re.UNICODE,
    )
    return _TextRule(
        name=name,
        pattern=compiled,
        bytes_pattern=bytes_pattern,
        keeps_marker=keeps_marker,
    )


def _compile_custom_rules(patterns: Iterable[PatternLike]) -> tuple[_TextRule, ...]:
    return tuple(
        _compile_rule(f"custom_denylist_{index}", pattern)
        for index, pattern in enumerate(patterns)
    )


_DEFAULT_REDACTOR: Final[Redactor] = Redactor()


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
