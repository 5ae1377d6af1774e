"""Dataclass domain models for bundle inputs, manifests, and results."""

from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass, field, fields, is_dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import NoReturn, cast

from fluid_diagnose_bundler.utils.hashing import is_sha256_hex

JSONScalar = str | int | float | bool | None
JSONValue = JSONScalar | list["JSONValue"] | dict[str, "JSONValue"]


@dataclass(frozen=True, slots=True)
class Issue:
    """One finding produced by a diagnosis run."""

    level: str
    message: str

    def to_dict(self) -> dict[str, JSONValue]:
        return {"level": self.level, "message": self.message}

    @classmethod
    def from_dict(cls, data: Mapping[str, object], *, path: str = "issue") -> Issue:
        parsed = _expect_object(data, path, required={"level", "message"})
        return cls(
            level=_as_str(parsed["level"], f"{path}.level"),
            message=_as_str(parsed["message"], f"{path}.message", min_len=0, strip=False),
        )


@dataclass(frozen=True, slots=True)
class DiagnosticResult:
    """Ordered issue list plus the overall diagnosis score."""

    issues: tuple[Issue, ...] = ()
    score: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "issues", tuple(self.issues))

    def to_dict(self) -> dict[str, JSONValue]:
        return {
            "issues": [issue.to_dict() for issue in self.issues],
            "score": self.score,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, object], *, path: str = "diagnosis") -> DiagnosticResult:
        parsed = _expect_object(data, path, required={"issues", "score"})
        raw_issues = parsed["issues"]
        if raw_issues is None:
            raw_issues = []
        if not isinstance(raw_issues, list):
            _fail(f"{path}.issues", f"expected array, got {type(raw_issues).__name__}")
        issues = tuple(
            Issue.from_dict(_as_mapping(item, f"{path}.issues[{index}]"), path=f"{path}.issues[{index}]")
            for index, item in enumerate(raw_issues)
        )
        return cls(issues=issues, score=_as_int(parsed["score"], f"{path}.score"))


@dataclass(frozen=True, slots=True)
class BundleMetadata:
    """Context about the environment the diagnosis was taken in."""

    creation_timestamp: datetime | None = None
    fluid_version: str = ""
    k8s_version: str = ""
    environment: str = ""

    def to_dict(self) -> dict[str, JSONValue]:
        payload: dict[str, JSONValue] = {
            "creationTimestamp": (
                None if self.creation_timestamp is None else format_timestamp(self.creation_timestamp)
            ),
            "fluidVersion": self.fluid_version,
            "k8sVersion": self.k8s_version,
        }
        if self.environment:
            payload["environment"] = self.environment
        return payload

    @classmethod
    def from_dict(cls, data: Mapping[str, object], *, path: str = "metadata") -> BundleMetadata:
        parsed = _expect_object(
            data,
            path,
            required={"creationTimestamp", "fluidVersion", "k8sVersion"},
            optional={"environment"},
        )
        raw_created = parsed["creationTimestamp"]
        return cls(
            creation_timestamp=(
                None
                if raw_created is None
                else parse_timestamp(_as_str(raw_created, f"{path}.creationTimestamp"))
            ),
            fluid_version=_as_str(parsed["fluidVersion"], f"{path}.fluidVersion", min_len=0),
            k8s_version=_as_str(parsed["k8sVersion"], f"{path}.k8sVersion", min_len=0),
            environment=_as_str(parsed.get("environment", ""), f"{path}.environment", min_len=0),
        )


@dataclass(frozen=True, slots=True)
class BundleInput:
    """
    Everything a single bundle is built from.

    ``logs`` maps file names to raw content; ``resources`` maps relative paths to
    exported resource text (bytes and structured mappings are accepted too).
    The pipeline never mutates any of these values.
    """

    graph: Mapping[str, object] = field(default_factory=dict)
    diagnosis: DiagnosticResult = field(default_factory=DiagnosticResult)
    metadata: BundleMetadata = field(default_factory=BundleMetadata)
    logs: Mapping[str, bytes | str] = field(default_factory=dict)
    resources: Mapping[str, object] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class FileEntry:
    """Manifest record for one archived file."""

    path: str
    size: int
    sha256: str

    def to_dict(self) -> dict[str, JSONValue]:
        return {"path": self.path, "size": self.size, "sha256": self.sha256}

    @classmethod
    def from_dict(cls, data: Mapping[str, object], *, path: str = "file") -> FileEntry:
        parsed = _expect_object(data, path, required={"path", "size", "sha256"})
        return cls(
            path=_as_str(parsed["path"], f"{path}.path", strip=False),
            size=_as_int(parsed["size"], f"{path}.size", minimum=0),
            sha256=_as_sha256(parsed["sha256"], f"{path}.sha256"),
        )


@dataclass(frozen=True, slots=True)
class BundleManifest:
    """Index of every archived file plus one aggregate content digest."""

    version: str
    generated_at: datetime
    total_files: int
    files: tuple[FileEntry, ...]
    content_hash: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "files", tuple(self.files))

    def to_dict(self) -> dict[str, JSONValue]:
        return {
            "version": self.version,
            "generatedAt": format_timestamp(self.generated_at),
            "totalFiles": self.total_files,
            "files": [entry.to_dict() for entry in self.files],
            "contentHash": self.content_hash,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, object], *, path: str = "manifest") -> BundleManifest:
        parsed = _expect_object(
            data,
            path,
            required={"version", "generatedAt", "totalFiles", "files", "contentHash"},
        )
        raw_files = parsed["files"]
        if not isinstance(raw_files, list):
            _fail(f"{path}.files", f"expected array, got {type(raw_files).__name__}")
        entries = tuple(
            FileEntry.from_dict(_as_mapping(item, f"{path}.files[{index}]"), path=f"{path}.files[{index}]")
            for index, item in enumerate(raw_files)
        )
        return cls(
            version=_as_str(parsed["version"], f"{path}.version"),
            generated_at=parse_timestamp(_as_str(parsed["generatedAt"], f"{path}.generatedAt")),
            total_files=_as_int(parsed["totalFiles"], f"{path}.totalFiles", minimum=0),
            files=entries,
            content_hash=_as_sha256(parsed["contentHash"], f"{path}.contentHash"),
        )


@dataclass(frozen=True, slots=True)
class BundleResult:
    """Outcome of one successful build; owned by the caller."""

    archive_path: Path
    file_count: int
    manifest: BundleManifest
    size_bytes: int


def format_timestamp(value: datetime) -> str:
    """Render ``value`` as RFC 3339 in UTC; naive datetimes are taken as UTC."""

    return to_utc(value).isoformat().replace("+00:00", "Z")


def parse_timestamp(raw: str) -> datetime:
    """Parse an RFC 3339 timestamp into an aware UTC datetime."""

    try:
        parsed = datetime.fromisoformat(raw.strip())
    except ValueError as exc:
        raise ValueError(f"invalid RFC 3339 timestamp: {raw!r}") from exc
    return to_utc(parsed)


def to_utc(value: datetime) -> datetime:
    if value.tzinfo is None or value.utcoffset() is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def to_json_value(value: object, *, path: str = "$") -> JSONValue:
    """
    Normalize ``value`` into plain mapping/sequence/scalar form.

    Models are serialized through ``to_dict``; other dataclasses field by field.
    Raises ``TypeError`` for unsupported values and ``ValueError`` for
    non-finite floats, reference cycles, or keys that collide once stringified.
    """

    return _normalize(value, path, set())


def _normalize(value: object, path: str, seen: set[int]) -> JSONValue:
    if value is None or isinstance(value, (bool, str)):
        return cast("JSONValue", value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if not math.isfinite(value):
            raise ValueError(f"{path}: float values must be finite")
        return value
    if isinstance(value, datetime):
        return format_timestamp(value)
    if isinstance(value, bytes):
        try:
            return value.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise TypeError(f"{path}: bytes values must be valid UTF-8") from exc

    to_dict = getattr(value, "to_dict", None)
    if callable(to_dict):
        return _normalize(to_dict(), path, seen)

    if isinstance(value, Mapping) or isinstance(value, (list, tuple)) or is_dataclass(value):
        marker = id(value)
        if marker in seen:
            raise ValueError(f"{path}: reference cycle detected")
        seen.add(marker)
        try:
            if isinstance(value, Mapping):
                out: dict[str, JSONValue] = {}
                for key, item in value.items():
                    key_name = _normalize_key(key, path)
                    if key_name in out:
                        raise ValueError(f"{path}: duplicate key {key_name!r} after normalization")
                    out[key_name] = _normalize(item, f"{path}.{key_name}", seen)
                return out
            if isinstance(value, (list, tuple)):
                return [
                    _normalize(item, f"{path}[{index}]", seen) for index, item in enumerate(value)
                ]
            return {
                item.name: _normalize(getattr(value, item.name), f"{path}.{item.name}", seen)
                for item in fields(value)
            }
        finally:
            seen.discard(marker)

    raise TypeError(f"{path}: cannot normalize value of type {type(value).__name__}")


def _normalize_key(key: object, path: str) -> str:
    if isinstance(key, str):
        return key
    if isinstance(key, int) and not isinstance(key, bool):
        return str(key)
    raise TypeError(f"{path}: mapping keys must be strings, got {type(key).__name__}")


def _fail(path: str, message: str) -> NoReturn:
    raise ValueError(f"{path}: {message}")


def _as_mapping(value: object, path: str) -> Mapping[str, object]:
    if not isinstance(value, Mapping):
        _fail(path, f"expected object, got {type(value).__name__}")
    return value


def _expect_object(
    value: object,
    path: str,
    *,
    required: set[str],
    optional: set[str] | None = None,
) -> dict[str, object]:
    if not isinstance(value, Mapping):
        _fail(path, f"expected object, got {type(value).__name__}")

    parsed: dict[str, object] = {}
    for key, item in value.items():
        if not isinstance(key, str):
            _fail(path, f"object keys must be strings, got {type(key).__name__}")
        parsed[key] = item

    allowed = required | (optional or set())
    unknown = sorted(key for key in parsed if key not in allowed)
    if unknown:
        _fail(path, f"unexpected fields: {unknown}")

    missing = sorted(key for key in required if key not in parsed)
    if missing:
        _fail(path, f"missing required fields: {missing}")

    return parsed


def _as_str(value: object, path: str, *, min_len: int = 1, strip: bool = True) -> str:
    if not isinstance(value, str):
        _fail(path, f"expected string, got {type(value).__name__}")
    normalized = value.strip() if strip else value
    if len(normalized) < min_len:
        _fail(path, f"must be at least {min_len} character(s)")
    return normalized


def _as_int(value: object, path: str, *, minimum: int | None = None) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        _fail(path, f"expected integer, got {type(value).__name__}")
    if minimum is not None and value < minimum:
        _fail(path, f"must be >= {minimum}")
    return value


def _as_sha256(value: object, path: str) -> str:
    digest = _as_str(value, path)
    if not is_sha256_hex(digest):
        _fail(path, "expected lowercase SHA-256 hex digest")
    return digest


__all__ = [
    "BundleInput",
    "BundleManifest",
    "BundleMetadata",
    "BundleResult",
    "DiagnosticResult",
    "FileEntry",
    "Issue",
    "JSONScalar",
    "JSONValue",
    "format_timestamp",
    "parse_timestamp",
    "to_json_value",
    "to_utc",
]
