"""Stable constants shared across extraction and metadata layers."""

from __future__ import annotations

from typing import Final

# Schema version for the apimeta.toml config contract.
CONFIG_SCHEMA_VERSION: Final[int] = 1

# Default locations (relative to the repository root unless overridden by config).
DEFAULT_METADATA_FILE: Final[str] = "metadata.yaml"
DEFAULT_SOURCE_DIR: Final[str] = "sdk"

# HTTP verbs recognized as literal request methods.
HTTP_VERBS: Final[frozenset[str]] = frozenset(
    {"GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS", "TRACE", "CONNECT"}
)

# Wildcard substituted for ``{param}`` path segments during normalization.
PATH_WILDCARD: Final[str] = "*"

# Upstream layout of the REST description repository.
DEFAULT_API_URL: Final[str] = "https://api.github.com"
DEFAULT_DESCRIPTION_REPOSITORY: Final[str] = "github/rest-api-description"
DEFAULT_DESCRIPTIONS_DIR: Final[str] = "descriptions"
DEFAULT_REMOTE_REF: Final[str] = "main"
DESCRIPTION_PLANS: Final[tuple[str, ...]] = ("api.github.com", "ghec", "ghes")
MIN_GHES_MAJOR_VERSION: Final[int] = 3

# Name of the fix command suggested for non-canonical operation names.
CANONIZE_COMMAND: Final[str] = "apimeta canonize"

__all__ = [
    "CANONIZE_COMMAND",
    "CONFIG_SCHEMA_VERSION",
    "DEFAULT_API_URL",
    "DEFAULT_DESCRIPTIONS_DIR",
    "DEFAULT_DESCRIPTION_REPOSITORY",
    "DEFAULT_METADATA_FILE",
    "DEFAULT_REMOTE_REF",
    "DEFAULT_SOURCE_DIR",
    "DESCRIPTION_PLANS",
    "HTTP_VERBS",
    "MIN_GHES_MAJOR_VERSION",
    "PATH_WILDCARD",
]
