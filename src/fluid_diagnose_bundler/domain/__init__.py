"""
fluid-diagnose-bundler — domain types

File: src/fluid_diagnose_bundler/domain/__init__.py

Purpose
- Domain types shared across the bundler: inputs, manifest records, results.

Functional requirements
- Domain objects must be serializable and free of IO side effects.
"""

from fluid_diagnose_bundler.domain.models import (
    BundleInput,
    BundleManifest,
    BundleMetadata,
    BundleResult,
    DiagnosticResult,
    FileEntry,
    Issue,
    JSONScalar,
    JSONValue,
    format_timestamp,
    parse_timestamp,
    to_json_value,
    to_utc,
)

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
