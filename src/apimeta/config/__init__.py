"""
apimeta config package public API.

File: src/apimeta/config/__init__.py
Last updated: 2026-10-18

Purpose
- Export config loading and validation entrypoints and public error types.

Functional requirements
- Support loading from ``apimeta.toml`` + ``APIMETA_`` env overrides.
- Fail fast with clear structured validation and load errors.
"""

from apimeta.config.loader import (
    DEFAULT_CONFIG_FILE,
    ENV_PREFIX,
    ConfigLoadError,
    dump_effective_config,
    load_config,
    normalize_paths,
)
from apimeta.config.schema import (
    DEFAULT_CONFIG,
    PATH_FIELDS,
    ApimetaConfig,
    ConfigValidationError,
    ConfigValidationIssue,
    ConfigValidationResult,
    assert_valid_config,
    default_config,
    merge_config,
    redact_config,
    validate_config,
)

__all__ = [
    "DEFAULT_CONFIG",
    "DEFAULT_CONFIG_FILE",
    "ENV_PREFIX",
    "PATH_FIELDS",
    "ApimetaConfig",
    "ConfigLoadError",
    "ConfigValidationError",
    "ConfigValidationIssue",
    "ConfigValidationResult",
    "assert_valid_config",
    "default_config",
    "dump_effective_config",
    "load_config",
    "merge_config",
    "normalize_paths",
    "redact_config",
    "validate_config",
]
