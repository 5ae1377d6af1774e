"""Structured logging setup with JSON-lines output and redaction support."""

from __future__ import annotations

import contextvars
import json
import logging
import math
import sys
import threading
from collections.abc import Callable, Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import IO, Final

import structlog

from fluid_diagnose_bundler.constants import REDACTED_VALUE
from fluid_diagnose_bundler.security.redaction import is_sensitive_key, redact_text

JSONScalar = str | int | float | bool | None
JSONValue = JSONScalar | list["JSONValue"] | dict[str, "JSONValue"]
LogRedactor = Callable[[JSONValue], JSONValue]

_DEFAULT_LOGGER_NAME: Final[str] = "fluid_diagnose_bundler"

_STANDARD_LOG_RECORD_FIELDS: Final[frozenset[str]] = frozenset(
    {
        "args",
        "asctime",
        "created",
        "exc_info",
        "exc_text",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "message",
        "module",
        "msecs",
        "msg",
        "name",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "thread",
        "threadName",
        "taskName",
    }
)

_ScopeState = tuple[tuple[str, str], ...]
_SCOPE_CONTEXT: contextvars.ContextVar[_ScopeState] = contextvars.ContextVar(
    "fluid_bundler_log_scope", default=()
)

_ACTIVE_HANDLE_LOCK = threading.Lock()
_ACTIVE_HANDLE: LoggingHandle | None = None


@dataclass(frozen=True, slots=True)
class LoggingConfig:
    """Resolved ``[observability]`` settings."""

    level: int | str = "INFO"
    log_to_stdout: bool = True
    log_file: Path | str | None = None
    redact: bool = True
    logger_name: str = _DEFAULT_LOGGER_NAME
    stream: IO[str] | None = None


class _JsonLineFormatter(logging.Formatter):
    """Formatter that emits one canonical JSON object per log line."""

    def __init__(self, *, redactor: LogRedactor) -> None:
        super().__init__()
        self._redactor = redactor

    def format(self, record: logging.LogRecord) -> str:
        event: dict[str, JSONValue] = {
            "timestamp": _iso8601z_from_epoch(record.created),
            "level": record.levelname,
            "logger": record.name,
            "message": _coerce_log_message(
                self._redactor(_normalize_json_value(record.getMessage()))
            ),
        }

        for key, value in sorted(get_scope_fields().items()):
            event[key] = value

        extras = _extract_extra_fields(record)
        if extras:
            event["fields"] = self._redactor(_normalize_json_value(extras))

        if record.exc_info is not None:
            event["exception"] = _coerce_log_message(
                self._redactor(_normalize_json_value(self.formatException(record.exc_info)))
            )

        return json.dumps(event, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


class LoggingHandle:
    """Runtime handle for an active logging setup."""

    def __init__(self, *, logger: logging.Logger, handlers: tuple[logging.Handler, ...]) -> None:
        self.logger = logger
        self._handlers = handlers
        self._lock = threading.Lock()
        self._is_shutdown = False

    @property
    def is_shutdown(self) -> bool:
        return self._is_shutdown

    def flush(self) -> None:
        for handler in self._handlers:
            handler.flush()

    def shutdown(self) -> None:
        with self._lock:
            if self._is_shutdown:
                return
            for handler in self._handlers:
                handler.flush()
                self.logger.removeHandler(handler)
                handler.close()
            self._is_shutdown = True


def setup_logging(
    observability_config: Mapping[str, object] | LoggingConfig | None = None,
    *,
    stream: IO[str] | None = None,
) -> logging.Logger:
    """
    Configure JSON-lines logging and route ``structlog`` events into it.

    ``observability_config`` is either a ``LoggingConfig`` or a mapping shaped like
    the ``[observability]`` table of ``bundler.toml``.
    """

    config = (
        observability_config
        if isinstance(observability_config, LoggingConfig)
        else _config_from_mapping(observability_config or {}, stream=stream)
    )
    _shutdown_active_handle()

    level = _parse_log_level(config.level)
    redactor = default_log_redactor if config.redact else _identity_redactor
    formatter = _JsonLineFormatter(redactor=redactor)

    handlers: list[logging.Handler] = []
    if config.log_to_stdout or config.stream is not None:
        stream_handler = logging.StreamHandler(
            config.stream if config.stream is not None else sys.stdout
        )
        handlers.append(stream_handler)
    if config.log_file:
        log_path = Path(config.log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path, encoding="utf-8"))

    logger = logging.getLogger(config.logger_name)
    logger.setLevel(level)
    logger.propagate = False
    for existing in list(logger.handlers):
        logger.removeHandler(existing)
        existing.close()
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.render_to_log_kwargs,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )

    handle = LoggingHandle(logger=logger, handlers=tuple(handlers))
    with _ACTIVE_HANDLE_LOCK:
        global _ACTIVE_HANDLE
        _ACTIVE_HANDLE = handle
    return logger


def shutdown_logging() -> None:
    """Flush and close the active handlers and restore ``structlog`` defaults."""
    _shutdown_active_handle()
    structlog.reset_defaults()


def get_active_logging_handle() -> LoggingHandle | None:
    with _ACTIVE_HANDLE_LOCK:
        return _ACTIVE_HANDLE


def get_scope_fields() -> dict[str, str]:
    """Return the fields bound by enclosing ``bundle_scope`` blocks."""
    return dict(_SCOPE_CONTEXT.get())


@contextmanager
def bundle_scope(**fields: str | None) -> Iterator[None]:
    """Temporarily bind correlation fields for every record emitted in scope."""
    state = get_scope_fields()
    for key, value in fields.items():
        key_name = _validate_scope_text(key, "scope key")
        if value is None:
            state.pop(key_name, None)
            continue
        state[key_name] = _validate_scope_text(value, "scope value")
    token = _SCOPE_CONTEXT.set(tuple(state.items()))
    try:
        yield
    finally:
        _SCOPE_CONTEXT.reset(token)


def default_log_redactor(value: JSONValue) -> JSONValue:
    """Mask values under sensitive keys and secret assignments inside strings."""
    if isinstance(value, str):
        return redact_text(value)
    if isinstance(value, list):
        return [default_log_redactor(item) for item in value]
    if isinstance(value, dict):
        return {
            key: REDACTED_VALUE if is_sensitive_key(key) else default_log_redactor(item)
            for key, item in value.items()
        }
    return value


def _config_from_mapping(
    cfg: Mapping[str, object], *, stream: IO[str] | None
) -> LoggingConfig:
    raw_level = cfg.get("log_level", "INFO")
    raw_file = cfg.get("log_file")
    return LoggingConfig(
        level=raw_level if isinstance(raw_level, (int, str)) else "INFO",
        log_to_stdout=bool(cfg.get("log_to_stdout", True)),
        log_file=raw_file if isinstance(raw_file, (str, Path)) and str(raw_file) else None,
        redact=bool(cfg.get("redact_logs", True)),
        stream=stream,
    )


def _shutdown_active_handle() -> None:
    with _ACTIVE_HANDLE_LOCK:
        global _ACTIVE_HANDLE
        existing = _ACTIVE_HANDLE
        _ACTIVE_HANDLE = None
    if existing is not None:
        existing.shutdown()


def _identity_redactor(value: JSONValue) -> JSONValue:
    return value


def _parse_log_level(value: int | str) -> int:
    if isinstance(value, int):
        return value

    normalized = value.strip().upper()
    parsed = logging.getLevelName(normalized)
    if isinstance(parsed, int):
        return parsed

    raise ValueError(f"unsupported logging level {value!r}")


def _validate_scope_text(value: str, label: str) -> str:
    if not isinstance(value, str):
        raise ValueError(f"{label} must be a string, got {type(value).__name__}")
    normalized = value.strip()
    if not normalized:
        raise ValueError(f"{label} must not be empty")
    return normalized


def _iso8601z_from_epoch(epoch_seconds: float) -> str:
    timestamp = datetime.fromtimestamp(epoch_seconds, tz=UTC)
    return timestamp.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _coerce_log_message(value: JSONValue) -> str:
    if isinstance(value, str):
        return value
    if value is None:
        return ""
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def _extract_extra_fields(record: logging.LogRecord) -> dict[str, JSONValue]:
    fields: dict[str, JSONValue] = {}
    for key, value in record.__dict__.items():
        if key in _STANDARD_LOG_RECORD_FIELDS or key.startswith("_"):
            continue
        fields[key] = _normalize_json_value(value)
    return fields


def _normalize_json_value(value: object) -> JSONValue:
    if value is None or isinstance(value, (bool, int, str)):
        return value
    if isinstance(value, float):
        return value if math.isfinite(value) else REDACTED_VALUE
    if isinstance(value, datetime):
        if value.tzinfo is None or value.utcoffset() is None:
            normalized = value.replace(tzinfo=UTC)
        else:
            normalized = value.astimezone(UTC)
        return normalized.isoformat(timespec="microseconds").replace("+00:00", "Z")
    if isinstance(value, Path):
        return str(value)
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    if isinstance(value, Mapping):
        return {str(key): _normalize_json_value(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_normalize_json_value(item) for item in value]
    return repr(value)


__all__ = [
    "JSONScalar",
    "JSONValue",
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
