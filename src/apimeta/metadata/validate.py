"""
apimeta — metadata validation

File: src/apimeta/metadata/validate.py
Last updated: 2026-10-18

Purpose
- Cross-reference discovered SDK methods with the metadata document and report every
  discrepancy as one human-readable line.

Functional requirements
- Checks run in a fixed order: discovered methods missing from metadata, then each
  metadata method entry, then the operation layers.
- A full scan always completes; findings are returned, never raised.
- Inputs are never mutated.
"""

from __future__ import annotations

from collections.abc import Iterable

from apimeta.constants import CANONIZE_COMMAND
from apimeta.extraction.models import ServiceMethod
from apimeta.metadata.canonicalize import normalized_matches
from apimeta.metadata.models import Metadata, MethodEntry, Operation
from apimeta.metadata.normalize import NormalizationCache


def validate_metadata(
    service_methods: Iterable[ServiceMethod | str],
    metadata: Metadata,
    *,
    cache: NormalizationCache | None = None,
    fix_command: str = CANONIZE_COMMAND,
) -> list[str]:
    """Return every issue found between ``service_methods`` and ``metadata``."""

    cache = cache or NormalizationCache()
    names = [item if isinstance(item, str) else item.name for item in service_methods]
    resolved = metadata.resolve()

    issues: list[str] = []
    issues.extend(_missing_from_metadata(names, metadata))
    issues.extend(_metadata_methods(names, metadata, resolved, cache, fix_command))
    issues.extend(_operation_layers(metadata))
    return issues


def _missing_from_metadata(names: Iterable[str], metadata: Metadata) -> list[str]:
    known = {method.name for method in metadata.methods}
    return [
        f"Method {name} does not exist in metadata.yaml. Please add it."
        for name in names
        if name not in known
    ]


def _metadata_methods(
    names: Iterable[str],
    metadata: Metadata,
    resolved: dict[str, Operation],
    cache: NormalizationCache,
    fix_command: str,
) -> list[str]:
    discovered = set(names)
    seen: set[str] = set()
    issues: list[str] = []
    for method in metadata.methods:
        if method.name in seen:
            issues.append(f"Method {method.name} is duplicated in metadata.yaml.")
            continue
        seen.add(method.name)
        if method.name not in discovered:
            issues.append(
                f"Method {method.name} in metadata.yaml does not exist in the source package."
            )
        issues.extend(_method_operations(method, resolved, cache, fix_command))
    return issues


def _method_operations(
    method: MethodEntry,
    resolved: dict[str, Operation],
    cache: NormalizationCache,
    fix_command: str,
) -> list[str]:
    issues: list[str] = []
    if not method.operations:
        issues.append(f"Method {method.name} in metadata.yaml does not have any operations.")
    seen: set[str] = set()
    for name in method.operations:
        if name in seen:
            issues.append(
                f"Method {method.name} in metadata.yaml has duplicate operation: {name}."
            )
        seen.add(name)
        if name in resolved:
            continue
        if normalized_matches(resolved, name, cache):
            issues.append(
                f"Method {method.name} has operation which is does not use the canonical name. "
                f"You may be able to automatically fix this by running '{fix_command}': {name}."
            )
            continue
        issues.append(
            f"Method {method.name} has operation which is not defined in metadata.yaml: {name}."
        )
    return issues


def _operation_layers(metadata: Metadata) -> list[str]:
    issues: list[str] = []
    openapi_names: set[str] = set()
    for operation in metadata.openapi_operations:
        if operation.name in openapi_names:
            issues.append(f"Name duplicated in openapi_operations: {operation.name}")
        openapi_names.add(operation.name)

    manual_names: set[str] = set()
    for operation in metadata.operations:
        if operation.name in manual_names:
            issues.append(f"Name duplicated in operations: {operation.name}")
        manual_names.add(operation.name)
        if operation.name in openapi_names:
            issues.append(
                f"Name exists in both operations and openapi_operations: {operation.name}"
            )

    override_names: set[str] = set()
    for operation in metadata.operation_overrides:
        if operation.name in override_names:
            issues.append(f"Name duplicated in override_operations: {operation.name}")
        override_names.add(operation.name)
        if operation.name not in manual_names and operation.name not in openapi_names:
            issues.append(
                "Name in override_operations does not exist in operations or "
                f"openapi_operations: {operation.name}"
            )
    return issues


__all__ = ["validate_metadata"]
