"""
apimeta — remote OpenAPI description sync

File: src/apimeta/metadata/sync.py
Last updated: 2026-10-18

Purpose
- Rebuild ``openapi_operations`` from the published REST API descriptions at a commit.
- Check that the stored ``openapi_operations`` still match their recorded commit.

Functional requirements
- Only ``api.github.com``, ``ghec`` and ``ghes`` (3.x and later) description directories
  are used, ordered by plan then by version, newest first.
- Description downloads run in parallel; the first failure cancels the rest.
- An operation seen in several descriptions lists every file, except that only the first
  ``ghes`` file is recorded.
"""

from __future__ import annotations

import asyncio
import json
import re
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Final

import structlog

from apimeta.constants import (
    DEFAULT_DESCRIPTIONS_DIR,
    DEFAULT_REMOTE_REF,
    DESCRIPTION_PLANS,
    HTTP_VERBS,
    MIN_GHES_MAJOR_VERSION,
)
from apimeta.errors import OpenAPICommitMismatchError, RemoteFetchError
from apimeta.metadata.docs import same_doc_link
from apimeta.metadata.models import Metadata, Operation, sorted_operations
from apimeta.metadata.normalize import NormalizationCache
from apimeta.remote.contents import ContentsClient
from apimeta.utils.concurrency import CancellationToken, WorkerPool

logger = structlog.get_logger(__name__)

_DIR_PATTERNS: Final[tuple[re.Pattern[str], ...]] = tuple(
    re.compile(rf"^(?P<plan>{re.escape(plan)})(-(?P<major>\d+)\.(?P<minor>\d+))?$")
    for plan in DESCRIPTION_PLANS
)
_GHES_MARKER: Final[str] = "/ghes"
_DEFAULT_DOWNLOAD_WORKERS: Final[int] = 8


@dataclass(slots=True)
class DescriptionFile:
    """One OpenAPI description document and where it sorts among its siblings."""

    filename: str
    plan: str
    plan_index: int
    major: int = 0
    minor: int = 0
    document: Mapping[str, Any] = field(default_factory=dict, repr=False)

    def sort_key(self) -> tuple[int, int, int]:
        return (self.plan_index, -self.major, -self.minor)


def description_from_dir(
    name: str, descriptions_dir: str = DEFAULT_DESCRIPTIONS_DIR
) -> DescriptionFile | None:
    """Match a description directory name; ``None`` when it is not used."""

    for index, pattern in enumerate(_DIR_PATTERNS):
        match = pattern.match(name)
        if match is None:
            continue
        plan = match.group("plan")
        major = int(match.group("major") or 0)
        minor = int(match.group("minor") or 0)
        if plan == "ghes" and major < MIN_GHES_MAJOR_VERSION:
            return None
        prefix = descriptions_dir.strip("/")
        return DescriptionFile(
            filename=f"{prefix}/{name}/{name}.json",
            plan=plan,
            plan_index=index,
            major=major,
            minor=minor,
        )
    return None


async def fetch_descriptions(
    client: ContentsClient,
    ref: str,
    *,
    descriptions_dir: str = DEFAULT_DESCRIPTIONS_DIR,
    max_workers: int | None = None,
    token: CancellationToken | None = None,
) -> list[DescriptionFile]:
    """List, download and decode every usable description at ``ref``.

    Downloads share ``token``; once it is cancelled no further file is listed or
    downloaded.
    """

    entries = await asyncio.to_thread(client.list_directory, descriptions_dir, ref)
    candidates: list[DescriptionFile] = []
    for entry in entries:
        description = description_from_dir(entry.name, descriptions_dir)
        if description is not None:
            candidates.append(description)
    candidates.sort(key=DescriptionFile.sort_key)
    if not candidates:
        raise RemoteFetchError(f"no usable descriptions found in {descriptions_dir!r} at {ref}")

    bound = max(1, min(max_workers or _DEFAULT_DOWNLOAD_WORKERS, len(candidates)))
    token = token or CancellationToken()
    pool: WorkerPool[DescriptionFile] = WorkerPool(bound, token=token)
    loaded = await pool.collect(
        asyncio.to_thread(_load_description, client, description, ref, token)
        for description in candidates
    )
    loaded.sort(key=DescriptionFile.sort_key)
    logger.info("descriptions_fetched", ref=ref, count=len(loaded))
    return loaded


def _load_description(
    client: ContentsClient,
    description: DescriptionFile,
    ref: str,
    token: CancellationToken,
) -> DescriptionFile:
    token.raise_if_cancelled()
    directory, _, basename = description.filename.rpartition("/")
    url = ""
    for entry in client.list_directory(directory, ref):
        if entry.name == basename:
            url = entry.download_url
            break
    if not url:
        raise RemoteFetchError(f"{description.filename} not found at {ref}")

    token.raise_if_cancelled()
    raw = client.download(url)
    try:
        document = json.loads(raw)
    except ValueError as exc:
        raise RemoteFetchError(f"{description.filename} is not valid JSON: {exc}") from exc
    if not isinstance(document, Mapping):
        raise RemoteFetchError(f"{description.filename} is not an OpenAPI document")
    description.document = document
    logger.debug("description_loaded", file=description.filename, bytes=len(raw))
    return description


def operations_from_descriptions(
    descriptions: Iterable[DescriptionFile],
    *,
    cache: NormalizationCache | None = None,
) -> list[Operation]:
    """Flatten ``paths`` of every description into sorted operations."""

    cache = cache or NormalizationCache()
    by_shape: dict[str, Operation] = {}
    for description in descriptions:
        paths = description.document.get("paths") or {}
        if not isinstance(paths, Mapping):
            raise RemoteFetchError(f"{description.filename} has malformed paths")
        for path, item in paths.items():
            if not isinstance(item, Mapping):
                continue
            for key, op_object in item.items():
                verb = str(key).upper()
                if verb not in HTTP_VERBS or not isinstance(op_object, Mapping):
                    continue
                _add_operation(
                    by_shape,
                    cache,
                    description.filename,
                    name=f"{verb} {path}",
                    doc_url=_external_docs_url(op_object),
                )
    return sorted_operations(by_shape.values())


def _external_docs_url(op_object: Mapping[str, Any]) -> str:
    docs = op_object.get("externalDocs")
    if isinstance(docs, Mapping) and isinstance(docs.get("url"), str):
        return docs["url"]
    return ""


def _add_operation(
    by_shape: dict[str, Operation],
    cache: NormalizationCache,
    filename: str,
    *,
    name: str,
    doc_url: str,
) -> None:
    shape = cache.normalized_name(name)
    existing = by_shape.get(shape)
    if existing is None:
        by_shape[shape] = Operation(name=name, documentation_url=doc_url, openapi_files=[filename])
        return
    if _GHES_MARKER in filename and any(_GHES_MARKER in item for item in existing.openapi_files):
        return
    existing.openapi_files.append(filename)


async def operations_at_ref_async(
    client: ContentsClient,
    ref: str,
    *,
    descriptions_dir: str = DEFAULT_DESCRIPTIONS_DIR,
    max_workers: int | None = None,
) -> list[Operation]:
    descriptions = await fetch_descriptions(
        client, ref, descriptions_dir=descriptions_dir, max_workers=max_workers
    )
    return operations_from_descriptions(descriptions)


async def update_from_remote_async(
    metadata: Metadata,
    client: ContentsClient,
    *,
    ref: str = DEFAULT_REMOTE_REF,
    descriptions_dir: str = DEFAULT_DESCRIPTIONS_DIR,
    max_workers: int | None = None,
) -> str:
    """Replace ``openapi_operations`` with the operations published at ``ref``.

    Returns the commit sha the operations were built from. ``metadata`` is left untouched
    when any fetch fails.
    """

    sha = await asyncio.to_thread(client.get_commit, ref)
    operations = await operations_at_ref_async(
        client, sha, descriptions_dir=descriptions_dir, max_workers=max_workers
    )
    metadata.openapi_operations = operations
    metadata.openapi_commit = sha
    metadata.invalidate()
    logger.info("openapi_operations_updated", ref=ref, commit=sha, operations=len(operations))
    return sha


def update_from_remote(
    metadata: Metadata,
    client: ContentsClient,
    *,
    ref: str = DEFAULT_REMOTE_REF,
    descriptions_dir: str = DEFAULT_DESCRIPTIONS_DIR,
    max_workers: int | None = None,
) -> str:
    return asyncio.run(
        update_from_remote_async(
            metadata,
            client,
            ref=ref,
            descriptions_dir=descriptions_dir,
            max_workers=max_workers,
        )
    )


def operations_equal(left: Sequence[Operation], right: Sequence[Operation]) -> bool:
    """Order-insensitive comparison; doc links compare by rendered page."""

    if len(left) != len(right):
        return False
    for a, b in zip(sorted_operations(left), sorted_operations(right)):
        if a.name != b.name or sorted(a.openapi_files) != sorted(b.openapi_files):
            return False
        if not same_doc_link(a.documentation_url, b.documentation_url):
            return False
    return True


def validate_openapi_commit(
    metadata: Metadata,
    client: ContentsClient,
    *,
    descriptions_dir: str = DEFAULT_DESCRIPTIONS_DIR,
    max_workers: int | None = None,
) -> None:
    """Raise ``OpenAPICommitMismatchError`` when the stored layer is stale."""

    if not metadata.openapi_commit:
        raise OpenAPICommitMismatchError("(none)")
    rebuilt = asyncio.run(
        operations_at_ref_async(
            client,
            metadata.openapi_commit,
            descriptions_dir=descriptions_dir,
            max_workers=max_workers,
        )
    )
    if not operations_equal(rebuilt, metadata.openapi_operations):
        raise OpenAPICommitMismatchError(metadata.openapi_commit)
    logger.debug("openapi_commit_verified", commit=metadata.openapi_commit)


__all__ = [
    "DescriptionFile",
    "description_from_dir",
    "fetch_descriptions",
    "operations_equal",
    "operations_from_descriptions",
    "operations_at_ref_async",
    "update_from_remote",
    "update_from_remote_async",
    "validate_openapi_commit",
]
