"""
fluid-diagnose-bundler — manifest accumulation

File: src/fluid_diagnose_bundler/bundler/manifest.py

Purpose
- Record one size + SHA-256 entry per archived file, in add order.
- Produce the manifest document and its canonical JSON encoding.

Functional requirements
- Digests are computed over the exact bytes that end up in the archive.
- Duplicate paths and size/content mismatches are rejected.
- ``build()`` may be called any number of times and always returns an equal manifest.
"""

from __future__ import annotations

import json
from datetime import datetime

from fluid_diagnose_bundler.bundler.errors import BundlePathError
from fluid_diagnose_bundler.constants import MANIFEST_SCHEMA_VERSION
from fluid_diagnose_bundler.domain.models import BundleManifest, FileEntry, to_utc
from fluid_diagnose_bundler.utils.hashing import aggregate_digest, sha256_bytes


class ManifestBuilder:
    """Accumulates ``FileEntry`` records; the manifest never lists itself."""

    def __init__(self, version: str = MANIFEST_SCHEMA_VERSION, *, generated_at: datetime) -> None:
        if not isinstance(version, str) or not version.strip():
            raise ValueError("version must be a non-empty string")
        self._version = version.strip()
        self._generated_at = to_utc(generated_at)
        self._entries: list[FileEntry] = []
        self._paths: set[str] = set()

    @property
    def paths(self) -> tuple[str, ...]:
        return tuple(entry.path for entry in self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, path: object) -> bool:
        return path in self._paths

    def add_file(self, path: str, size: int, content: bytes) -> FileEntry:
        if path in self._paths:
            raise BundlePathError("duplicate manifest entry", logical_path=path)
        if size != len(content):
            raise ValueError(f"{path}: declared size {size} does not match content length {len(content)}")
        entry = FileEntry(path=path, size=size, sha256=sha256_bytes(content))
        self._entries.append(entry)
        self._paths.add(path)
        return entry

    def build(self) -> BundleManifest:
        files = tuple(self._entries)
        return BundleManifest(
            version=self._version,
            generated_at=self._generated_at,
            total_files=len(files),
            files=files,
            content_hash=aggregate_digest(entry.sha256 for entry in files),
        )


def encode_manifest(manifest: BundleManifest) -> bytes:
    """Canonical JSON bytes for ``manifest``: two-space indent, UTF-8, trailing newline."""

    return (json.dumps(manifest.to_dict(), indent=2, ensure_ascii=False) + "\n").encode("utf-8")


__all__ = ["ManifestBuilder", "aggregate_digest", "encode_manifest"]
