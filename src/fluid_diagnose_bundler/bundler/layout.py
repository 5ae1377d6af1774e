"""
fluid-diagnose-bundler — archive layout

File: src/fluid_diagnose_bundler/bundler/layout.py

Purpose
- Define the fixed logical path scheme inside every bundle.
- Compute the archive root directory name from a timestamp and optional dataset name.

Storage layout
- `<root>/manifest.json`
- `<root>/summary.txt`
- `<root>/graph.json`
- `<root>/diagnosis.json`
- `<root>/metadata/environment.json`
- `<root>/logs/<filename>`
- `<root>/resources/<relative path>`
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from datetime import datetime
from pathlib import PurePosixPath
from typing import Final

from fluid_diagnose_bundler.bundler.errors import BundlePathError
from fluid_diagnose_bundler.domain.models import to_utc

MANIFEST_FILE: Final[str] = "manifest.json"
SUMMARY_FILE: Final[str] = "summary.txt"
GRAPH_FILE: Final[str] = "graph.json"
DIAGNOSIS_FILE: Final[str] = "diagnosis.json"
RESOURCES_DIR: Final[str] = "resources"
LOGS_DIR: Final[str] = "logs"
METADATA_DIR: Final[str] = "metadata"
ENVIRONMENT_FILE: Final[str] = f"{METADATA_DIR}/environment.json"

ROOT_PREFIX: Final[str] = "fluid-diagnose"
ARCHIVE_SUFFIX: Final[str] = ".tar.gz"
TIMESTAMP_FORMAT: Final[str] = "%Y%m%d-%H%M%S"

_NAME_SEGMENT: Final[re.Pattern[str]] = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")


def root_dir_name(
    timestamp: datetime,
    name: str | None = None,
    *,
    prefix: str = ROOT_PREFIX,
) -> str:
    """
    Return ``<prefix>-<YYYYMMDD-HHMMSS>`` or ``<prefix>-<name>-<YYYYMMDD-HHMMSS>``.

    The timestamp is rendered in UTC so the same instant always yields the same name.
    """

    stamp = to_utc(timestamp).strftime(TIMESTAMP_FORMAT)
    parts = [_validate_name_segment(prefix, "prefix")]
    if name is not None and name.strip():
        parts.append(_validate_name_segment(name.strip(), "name"))
    parts.append(stamp)
    return "-".join(parts)


def archive_file_name(root_dir: str) -> str:
    return f"{root_dir}{ARCHIVE_SUFFIX}"


def join_archive_path(*parts: str) -> str:
    """
    Join ``parts`` into one normalized, archive-relative POSIX path.

    Backslashes are treated as separators and ``.``/empty segments dropped; absolute
    paths and ``..`` segments are rejected.
    """

    segments: list[str] = []
    raw_joined = "/".join(parts)
    for part in parts:
        text = part.replace("\\", "/")
        if text.startswith("/"):
            raise BundlePathError("absolute paths are not allowed", logical_path=raw_joined)
        for segment in PurePosixPath(text).parts:
            if segment in {"", "."}:
                continue
            if segment == "..":
                raise BundlePathError(
                    "parent directory segments are not allowed", logical_path=raw_joined
                )
            segments.append(segment)
    if not segments:
        raise BundlePathError("path must not be empty", logical_path=raw_joined)
    return "/".join(segments)


def log_path(filename: str) -> str:
    return join_archive_path(LOGS_DIR, _require_relative(filename, LOGS_DIR))


def resource_path(relative_path: str) -> str:
    return join_archive_path(RESOURCES_DIR, _require_relative(relative_path, RESOURCES_DIR))


def dataset_name_from_graph(graph: Mapping[str, object]) -> str | None:
    """Return ``metadata.name`` when the graph root describes a Dataset."""

    if graph.get("kind") != "Dataset":
        return None
    metadata = graph.get("metadata")
    if not isinstance(metadata, Mapping):
        return None
    name = metadata.get("name")
    if not isinstance(name, str) or not _NAME_SEGMENT.match(name.strip()):
        return None
    return name.strip()


def _require_relative(value: str, directory: str) -> str:
    if not isinstance(value, str):
        raise BundlePathError(
            f"entry names must be strings, got {type(value).__name__}",
            logical_path=f"{directory}/{value!r}",
        )
    # Validated on its own so "" or "." cannot collapse onto the directory itself.
    return join_archive_path(value)


def _validate_name_segment(value: str, label: str) -> str:
    if not _NAME_SEGMENT.match(value):
        raise BundlePathError(f"invalid root directory {label}: {value!r}")
    return value


__all__ = [
    "ARCHIVE_SUFFIX",
    "DIAGNOSIS_FILE",
    "ENVIRONMENT_FILE",
    "GRAPH_FILE",
    "LOGS_DIR",
    "MANIFEST_FILE",
    "METADATA_DIR",
    "RESOURCES_DIR",
    "ROOT_PREFIX",
    "SUMMARY_FILE",
    "TIMESTAMP_FORMAT",
    "archive_file_name",
    "dataset_name_from_graph",
    "join_archive_path",
    "log_path",
    "resource_path",
    "root_dir_name",
]
