"""Rewrite method-to-operation mappings to the canonical operation spelling."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass

import structlog

from apimeta.errors import AmbiguousCanonicalNameError, NoCanonicalMatchError
from apimeta.metadata.models import Metadata, Operation
from apimeta.metadata.normalize import NormalizationCache

logger = structlog.get_logger(__name__)


@dataclass(frozen=True, slots=True)
class CanonicalRename:
    method: str
    old_name: str
    new_name: str

    def describe(self) -> str:
        return f"{self.method}: {self.old_name} -> {self.new_name}"


def normalized_matches(
    resolved: Mapping[str, Operation],
    name: str,
    cache: NormalizationCache,
) -> list[str]:
    """Names in ``resolved`` sharing ``name``'s normalized form, sorted."""

    target = cache.normalized_name(name)
    return sorted(candidate for candidate in resolved if cache.normalized_name(candidate) == target)


def canonicalize(
    metadata: Metadata,
    *,
    cache: NormalizationCache | None = None,
) -> list[CanonicalRename]:
    """Rewrite every non-canonical mapping entry in place and return the renames.

    All entries are checked before anything is rewritten, so a failure leaves
    ``metadata`` untouched.
    """

    cache = cache or NormalizationCache()
    resolved = metadata.resolve()
    planned: list[tuple[int, int, CanonicalRename]] = []

    for method_index, method in enumerate(metadata.methods):
        for op_index, name in enumerate(method.operations):
            if name in resolved:
                continue
            matches = normalized_matches(resolved, name, cache)
            if not matches:
                raise NoCanonicalMatchError(method.name, name)
            if len(matches) > 1:
                raise AmbiguousCanonicalNameError(method.name, name, matches)
            planned.append(
                (method_index, op_index, CanonicalRename(method.name, name, matches[0]))
            )

    for method_index, op_index, rename in planned:
        metadata.methods[method_index].operations[op_index] = rename.new_name
        logger.info(
            "operation_canonicalized",
            method=rename.method,
            old_name=rename.old_name,
            new_name=rename.new_name,
        )
    return [rename for _, _, rename in planned]


__all__ = ["CanonicalRename", "canonicalize", "normalized_matches"]
