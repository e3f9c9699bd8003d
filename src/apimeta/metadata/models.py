"""
apimeta — metadata document model

File: src/apimeta/metadata/models.py
Last updated: 2026-10-18

Purpose
- Hold the three operation layers (openapi, manual, override), the method-to-operation
  mapping and the last remote sync commit, and expose the merged (resolved) view.

Functional requirements
- Resolution: openapi entries seed the view, manual entries overwrite by name, overrides
  patch non-empty fields or originate a standalone entry.
- The resolved view is computed once per instance under a lock and handed out as copies.
- Layer ordering is URL template first, then verb.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from apimeta.metadata.normalize import parse_operation_name


@dataclass(slots=True)
class Operation:
    """One remote endpoint, named ``"VERB /path-template"``."""

    name: str
    documentation_url: str = ""
    openapi_files: list[str] = field(default_factory=list)

    @property
    def verb(self) -> str:
        return parse_operation_name(self.name)[0]

    @property
    def url(self) -> str:
        return parse_operation_name(self.name)[1]

    def sort_key(self) -> tuple[str, str]:
        verb, url = parse_operation_name(self.name)
        return (url, verb)

    def plans(self) -> list[str]:
        """Product plans this operation is described for, derived from its files."""

        plans: list[str] = []
        if any(item.endswith("api.github.com.json") for item in self.openapi_files):
            plans.append("public")
        if any(item.endswith("ghec.json") for item in self.openapi_files):
            plans.append("ghec")
        if any("/ghes" in item for item in self.openapi_files):
            plans.append("ghes")
        return plans

    def copy(self) -> Operation:
        return Operation(
            name=self.name,
            documentation_url=self.documentation_url,
            openapi_files=list(self.openapi_files),
        )

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {"name": self.name}
        if self.documentation_url:
            payload["documentation_url"] = self.documentation_url
        if self.openapi_files:
            payload["openapi_files"] = list(self.openapi_files)
        return payload


@dataclass(slots=True)
class MethodEntry:
    """Mapping of one SDK method identity to the operations it calls."""

    name: str
    operations: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {"name": self.name}
        if self.operations:
            payload["operations"] = list(self.operations)
        return payload


def sort_operations(operations: list[Operation]) -> None:
    operations.sort(key=Operation.sort_key)


def sorted_operations(operations: Iterable[Operation]) -> list[Operation]:
    return sorted(operations, key=Operation.sort_key)


class Metadata:
    """Layered metadata document plus a memoized resolved view."""

    def __init__(
        self,
        *,
        methods: Iterable[MethodEntry] = (),
        operations: Iterable[Operation] = (),
        operation_overrides: Iterable[Operation] = (),
        openapi_operations: Iterable[Operation] = (),
        openapi_commit: str = "",
    ) -> None:
        self.methods: list[MethodEntry] = list(methods)
        self.operations: list[Operation] = list(operations)
        self.operation_overrides: list[Operation] = list(operation_overrides)
        self.openapi_operations: list[Operation] = list(openapi_operations)
        self.openapi_commit = openapi_commit
        self._lock = threading.Lock()
        self._resolved: dict[str, Operation] | None = None

    def __repr__(self) -> str:
        return (
            f"Metadata(methods={len(self.methods)}, operations={len(self.operations)}, "
            f"operation_overrides={len(self.operation_overrides)}, "
            f"openapi_operations={len(self.openapi_operations)}, "
            f"openapi_commit={self.openapi_commit!r})"
        )

    def resolve(self) -> dict[str, Operation]:
        """Return the name-keyed merged view; callers receive their own copies."""

        with self._lock:
            if self._resolved is None:
                self._resolved = _resolve_layers(
                    self.openapi_operations, self.operations, self.operation_overrides
                )
            return {name: operation.copy() for name, operation in self._resolved.items()}

    def invalidate(self) -> None:
        """Drop the memoized view after the layers were rebuilt."""

        with self._lock:
            self._resolved = None

    def resolved_operations(self) -> list[Operation]:
        return sorted_operations(self.resolve().values())

    def get_operation(self, name: str) -> Operation | None:
        return self.resolve().get(name)

    def get_method(self, name: str) -> MethodEntry | None:
        for method in self.methods:
            if method.name == name:
                return method
        return None

    def operation_methods(self, operation_name: str) -> list[str]:
        """Names of methods mapped to ``operation_name``."""

        return [method.name for method in self.methods if operation_name in method.operations]

    def sort_layers(self) -> None:
        sort_operations(self.operations)
        sort_operations(self.operation_overrides)
        sort_operations(self.openapi_operations)
        for method in self.methods:
            method.operations.sort()

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {}
        if self.methods:
            payload["methods"] = [method.to_dict() for method in self.methods]
        if self.operations:
            payload["operations"] = [item.to_dict() for item in self.operations]
        if self.operation_overrides:
            payload["operation_overrides"] = [item.to_dict() for item in self.operation_overrides]
        if self.openapi_operations:
            payload["openapi_operations"] = [item.to_dict() for item in self.openapi_operations]
        if self.openapi_commit:
            payload["openapi_commit"] = self.openapi_commit
        return payload


def operations_for_method(metadata: Metadata, method_name: str) -> list[Operation]:
    """Resolved operations mapped to ``method_name``, in layer order.

    Names absent from the resolved view are skipped; validation reports them.
    """

    method = metadata.get_method(method_name)
    if method is None:
        return []
    resolved = metadata.resolve()
    found = [resolved[name] for name in dict.fromkeys(method.operations) if name in resolved]
    return sorted_operations(found)


def _resolve_layers(
    openapi: Iterable[Operation],
    manual: Iterable[Operation],
    overrides: Iterable[Operation],
) -> dict[str, Operation]:
    resolved: dict[str, Operation] = {}
    for operation in openapi:
        resolved[operation.name] = operation.copy()
    for operation in manual:
        resolved[operation.name] = operation.copy()
    for override in overrides:
        base = resolved.get(override.name)
        if base is None:
            resolved[override.name] = override.copy()
            continue
        if override.documentation_url:
            base.documentation_url = override.documentation_url
        if override.openapi_files:
            base.openapi_files = list(override.openapi_files)
    return resolved


def operation_from_mapping(payload: Mapping[str, object], *, location: str) -> Operation:
    name = payload.get("name")
    if not isinstance(name, str) or not name.strip():
        raise ValueError(f"{location}.name must be a non-empty string")
    documentation_url = payload.get("documentation_url") or ""
    if not isinstance(documentation_url, str):
        raise ValueError(f"{location}.documentation_url must be a string")
    files = payload.get("openapi_files") or []
    if not isinstance(files, list) or not all(isinstance(item, str) for item in files):
        raise ValueError(f"{location}.openapi_files must be a list of strings")
    unknown = sorted(set(payload) - {"name", "documentation_url", "openapi_files"})
    if unknown:
        raise ValueError(f"{location} has unknown field(s): {', '.join(map(str, unknown))}")
    return Operation(name=name, documentation_url=documentation_url, openapi_files=list(files))


def method_from_mapping(payload: Mapping[str, object], *, location: str) -> MethodEntry:
    name = payload.get("name")
    if not isinstance(name, str) or not name.strip():
        raise ValueError(f"{location}.name must be a non-empty string")
    operations = payload.get("operations") or []
    if not isinstance(operations, list) or not all(isinstance(item, str) for item in operations):
        raise ValueError(f"{location}.operations must be a list of strings")
    unknown = sorted(set(payload) - {"name", "operations"})
    if unknown:
        raise ValueError(f"{location} has unknown field(s): {', '.join(map(str, unknown))}")
    return MethodEntry(name=name, operations=list(operations))


__all__ = [
    "Metadata",
    "MethodEntry",
    "Operation",
    "method_from_mapping",
    "operation_from_mapping",
    "operations_for_method",
    "sort_operations",
    "sorted_operations",
]
