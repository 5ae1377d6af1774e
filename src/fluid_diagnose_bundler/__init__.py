"""
fluid-diagnose-bundler — package root

File: src/fluid_diagnose_bundler/__init__.py

Purpose
- Package root. Turns in-memory Fluid diagnosis data (resource graph, diagnosis
  result, metadata, logs, resource exports) into one redacted, reproducible
  ``.tar.gz`` bundle with a SHA-256 manifest.

Functional requirements
- Must not have side effects at import time (no config loading, no logging init).
"""

from fluid_diagnose_bundler.bundler import (
    BuildOptions,
    BundleBuilder,
    BundleError,
    build_bundle,
    verify_bundle,
)
from fluid_diagnose_bundler.domain import (
    BundleInput,
    BundleManifest,
    BundleMetadata,
    BundleResult,
    DiagnosticResult,
    FileEntry,
    Issue,
)

__version__ = "0.1.0"

__all__ = [
    "BuildOptions",
    "BundleBuilder",
    "BundleError",
    "BundleInput",
    "BundleManifest",
    "BundleMetadata",
    "BundleResult",
    "DiagnosticResult",
    "FileEntry",
    "Issue",
    "__version__",
    "build_bundle",
    "verify_bundle",
]
