"""
apimeta — metadata document persistence

File: src/apimeta/metadata/store.py
Last updated: 2026-10-18

Purpose
- Load and save the layered metadata document as YAML.

Functional requirements
- A missing file, malformed YAML or wrong-shaped document raises ``MetadataLoadError``.
- Saving re-sorts every layer and each method's operation list, omits empty fields and
  replaces the file wholesale.
"""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Any, Final, cast

import structlog
import yaml

from apimeta.errors import MetadataLoadError, MetadataSaveError
from apimeta.metadata.models import Metadata, method_from_mapping, operation_from_mapping
from apimeta.utils.fs import atomic_write_text

logger = structlog.get_logger(__name__)

_OPERATION_LAYERS: Final[tuple[str, ...]] = (
    "operations",
    "operation_overrides",
    "openapi_operations",
)
_TOP_LEVEL_KEYS: Final[frozenset[str]] = frozenset(
    {"methods", *_OPERATION_LAYERS, "openapi_commit"}
)


def load_metadata(path: Path | str) -> Metadata:
    """Read and decode the metadata document at ``path``."""

    source = Path(path)
    try:
        with source.open("r", encoding="utf-8") as handle:
            loaded = cast("object", yaml.safe_load(handle))
    except FileNotFoundError as exc:
        raise MetadataLoadError(source, "file not found") from exc
    except OSError as exc:
        raise MetadataLoadError(source, str(exc)) from exc
    except yaml.YAMLError as exc:
        raise MetadataLoadError(source, f"invalid YAML ({exc})") from exc

    try:
        metadata = metadata_from_mapping({} if loaded is None else loaded)
    except ValueError as exc:
        raise MetadataLoadError(source, str(exc)) from exc

    logger.debug(
        "metadata_loaded",
        path=str(source),
        methods=len(metadata.methods),
        operations=len(metadata.operations),
        operation_overrides=len(metadata.operation_overrides),
        openapi_operations=len(metadata.openapi_operations),
    )
    return metadata


def save_metadata(path: Path | str, metadata: Metadata) -> None:
    """Sort the layers in place and write the whole document to ``path``."""

    target = Path(path)
    try:
        atomic_write_text(target, dump_metadata(metadata))
    except OSError as exc:
        raise MetadataSaveError(target, str(exc)) from exc
    logger.debug("metadata_saved", path=str(target))


def dump_metadata(metadata: Metadata) -> str:
    metadata.sort_layers()
    rendered = yaml.safe_dump(
        metadata.to_dict(),
        sort_keys=False,
        default_flow_style=False,
        allow_unicode=True,
        indent=2,
        width=120,
    )
    if rendered.strip() == "{}":
        return ""
    if not rendered.endswith("\n"):
        rendered = rendered + "\n"
    return rendered


def metadata_from_mapping(payload: object) -> Metadata:
    if not isinstance(payload, Mapping):
        raise ValueError(f"expected top-level mapping, got {type(payload).__name__}")

    unknown = sorted(str(key) for key in payload if key not in _TOP_LEVEL_KEYS)
    if unknown:
        raise ValueError(f"unknown top-level field(s): {', '.join(unknown)}")

    layers: dict[str, Any] = {}
    for key in _OPERATION_LAYERS:
        items = _as_list(payload.get(key), key)
        layers[key] = [
            operation_from_mapping(_as_mapping(item, f"{key}[{index}]"), location=f"{key}[{index}]")
            for index, item in enumerate(items)
        ]

    methods = [
        method_from_mapping(_as_mapping(item, f"methods[{index}]"), location=f"methods[{index}]")
        for index, item in enumerate(_as_list(payload.get("methods"), "methods"))
    ]

    commit = payload.get("openapi_commit") or ""
    if not isinstance(commit, str):
        raise ValueError("openapi_commit must be a string")

    return Metadata(
        methods=methods,
        operations=layers["operations"],
        operation_overrides=layers["operation_overrides"],
        openapi_operations=layers["openapi_operations"],
        openapi_commit=commit,
    )


def _as_list(value: object, location: str) -> list[object]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValueError(f"{location} must be a list, got {type(value).__name__}")
    return value


def _as_mapping(value: object, location: str) -> Mapping[str, object]:
    if not isinstance(value, Mapping):
        raise ValueError(f"{location} must be a mapping, got {type(value).__name__}")
    return cast("Mapping[str, object]", value)


__all__ = ["dump_metadata", "load_metadata", "metadata_from_mapping", "save_metadata"]
