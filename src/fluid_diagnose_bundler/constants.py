"""Stable constants shared across the bundler packages."""

from __future__ import annotations

from typing import Final

# Schema versions for persisted contracts.
CONFIG_SCHEMA_VERSION: Final[int] = 1
MANIFEST_SCHEMA_VERSION: Final[str] = "v1"

# Mask literal substituted for every redacted value.
REDACTED_VALUE: Final[str] = "[REDACTED]"

# Archive encoding parameters.
DEFAULT_COMPRESSION_LEVEL: Final[int] = 9
ARCHIVE_FILE_MODE: Final[int] = 0o644

__all__ = [
    "ARCHIVE_FILE_MODE",
    "CONFIG_SCHEMA_VERSION",
    "DEFAULT_COMPRESSION_LEVEL",
    "MANIFEST_SCHEMA_VERSION",
    "REDACTED_VALUE",
]
