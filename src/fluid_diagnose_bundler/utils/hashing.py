"""
fluid-diagnose-bundler — hashing utilities

File: src/fluid_diagnose_bundler/utils/hashing.py

Purpose
- Provide deterministic SHA-256 helpers for bytes and files.
- Derive the aggregate digest a manifest publishes over its per-file digests.

Non-functional requirements
- Standard library only; behavior is cross-platform deterministic.
"""

from __future__ import annotations

import hashlib
import os
import string
from collections.abc import Iterable
from pathlib import Path

PathLike = str | os.PathLike[str]

_SHA256_HEX_LENGTH = 64
_FILE_READ_CHUNK_BYTES = 1024 * 1024
_HEX_DIGITS = frozenset(string.hexdigits.lower())

__all__ = [
    "aggregate_digest",
    "is_sha256_hex",
    "sha256_bytes",
    "sha256_file",
]


def sha256_bytes(data: bytes) -> str:
    """Return SHA-256 hex digest for raw bytes."""

    return hashlib.sha256(data).hexdigest()


def sha256_file(path: PathLike, *, chunk_size: int = _FILE_READ_CHUNK_BYTES) -> str:
    """Return SHA-256 hex digest for a file read in chunks."""

    if chunk_size <= 0:
        raise ValueError("chunk_size must be > 0")
    digest = hashlib.sha256()
    with Path(path).open("rb") as file_handle:
        while True:
            chunk = file_handle.read(chunk_size)
            if not chunk:
                break
            digest.update(chunk)
    return digest.hexdigest()


def aggregate_digest(digests: Iterable[str]) -> str:
    """
    Hash the concatenation of ``digests`` in the given order.

    Each item must already be a lowercase SHA-256 hex string; the hex text (not the
    raw digest bytes) is what gets fed to the outer hash.
    """

    outer = hashlib.sha256()
    for index, digest in enumerate(digests):
        if not is_sha256_hex(digest):
            raise ValueError(f"digest #{index} is not a lowercase SHA-256 hex string")
        outer.update(digest.encode("ascii"))
    return outer.hexdigest()


def is_sha256_hex(value: object) -> bool:
    return (
        isinstance(value, str)
        and len(value) == _SHA256_HEX_LENGTH
        and set(value).issubset(_HEX_DIGITS)
    )
