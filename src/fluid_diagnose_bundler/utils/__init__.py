"""Utility exports for filesystem and hashing helpers."""

from fluid_diagnose_bundler.utils.fs import atomic_output
from fluid_diagnose_bundler.utils.hashing import (
    aggregate_digest,
    is_sha256_hex,
    sha256_bytes,
    sha256_file,
)

__all__ = [
    "aggregate_digest",
    "atomic_output",
    "is_sha256_hex",
    "sha256_bytes",
    "sha256_file",
]
