"""
fluid-diagnose-bundler config package public API.

File: src/fluid_diagnose_bundler/config/__init__.py

Purpose
- Export config loading/validation entrypoints and public error types.

Functional requirements
- Support loading from ``bundler.toml`` + ``FLUID_BUNDLER_`` env overrides.
- Fail fast with clear structured validation/load errors.
"""

from fluid_diagnose_bundler.config.loader import (
    DEFAULT_CONFIG_FILE,
    ENV_PREFIX,
    ConfigLoadError,
    build_options_from_config,
    load_config,
    normalize_paths,
)
from fluid_diagnose_bundler.config.schema import (
    DEFAULT_CONFIG,
    PATH_FIELDS,
    BundlerConfig,
    ConfigSchemaVersion,
    ConfigValidationError,
    ConfigValidationIssue,
    ConfigValidationResult,
    assert_valid_config,
    default_config,
    merge_config,
    migration_guidance,
    validate_config,
)

__all__ = [
    "DEFAULT_CONFIG",
    "DEFAULT_CONFIG_FILE",
    "ENV_PREFIX",
    "PATH_FIELDS",
    "BundlerConfig",
    "ConfigLoadError",
    "ConfigSchemaVersion",
    "ConfigValidationError",
    "ConfigValidationIssue",
    "ConfigValidationResult",
    "assert_valid_config",
    "build_options_from_config",
    "default_config",
    "load_config",
    "merge_config",
    "migration_guidance",
    "normalize_paths",
    "validate_config",
]
