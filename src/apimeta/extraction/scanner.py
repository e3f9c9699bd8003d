"""
apimeta — SDK source scanner

File: src/apimeta/extraction/scanner.py
Last updated: 2026-10-18

Purpose
- Enumerate SDK modules in one directory, parse them, and analyze every method of the
  service-shaped classes into a ``ServiceMethod`` inventory.

What should be included in this file
- Deterministic file discovery (``*.py`` only, test modules excluded, not recursive).
- Eligibility rules: public top-level classes named ``*Service`` or the client class;
  client-class methods declared in the client core files are skipped.
- Parallel per-file analysis through ``WorkerPool`` with fail-fast cancellation.
- Helper resolution over the complete inventory.

Functional requirements
- A structural error in a public method aborts the scan, naming file and method.
- Method identities are unique; a second definition of the same name is an error.
  @overload stubs are not methods.
- Private methods are analyzed so helpers can be resolved; their errors are only logged.
- Output is sorted by source file, then method identity.
"""

from __future__ import annotations

import ast
import asyncio
import os
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

import structlog

from apimeta.errors import ExtractionError, SourceParseError
from apimeta.extraction.analyzer import BodyAnalyzer, FunctionNode
from apimeta.extraction.models import AnalyzerConfig, EndpointInfo, ServiceMethod
from apimeta.extraction.resolver import resolve_helpers
from apimeta.utils.concurrency import WorkerPool

logger = structlog.get_logger(__name__)

_NON_METHOD_DECORATORS = frozenset(
    {
        "property",
        "cached_property",
        "staticmethod",
        "classmethod",
        "setter",
        "getter",
        "deleter",
        "overload",
    }
)
_TEST_MODULE_NAMES = frozenset({"conftest.py"})


@dataclass(frozen=True, slots=True)
class Inventory:
    """Resolved methods of one scanned source directory."""

    source_dir: Path
    methods: tuple[ServiceMethod, ...]
    scanned_files: tuple[str, ...]

    @property
    def exported(self) -> tuple[ServiceMethod, ...]:
        return tuple(method for method in self.methods if method.exported)

    @property
    def names(self) -> list[str]:
        return [method.name for method in self.exported]

    @property
    def unresolved(self) -> tuple[ServiceMethod, ...]:
        """Public methods for which neither a verb nor a URL template was found."""

        return tuple(
            method
            for method in self.exported
            if not method.http_method and not method.url_templates
        )

    def get(self, name: str) -> ServiceMethod | None:
        for method in self.methods:
            if method.name == name:
                return method
        return None


def collect_source_files(source_dir: Path) -> list[str]:
    if not source_dir.is_dir():
        raise SourceParseError(source_dir, "source directory does not exist")
    discovered: list[str] = []
    for entry in sorted(os.scandir(source_dir), key=lambda item: item.name):
        if not entry.is_file() or not _is_candidate_module(entry.name):
            continue
        discovered.append(entry.name)
    return discovered


def scan_file(
    source_dir: Path,
    rel_path: str,
    *,
    analyzer: BodyAnalyzer | None = None,
) -> list[ServiceMethod]:
    """Parse one module and analyze its eligible methods (without helper resolution)."""

    analyzer = analyzer or BodyAnalyzer()
    path = source_dir / rel_path
    try:
        source = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise SourceParseError(path, f"unable to read source: {exc}") from exc
    try:
        module = ast.parse(source, filename=str(path))
    except SyntaxError as exc:
        raise SourceParseError(path, exc.msg or "invalid syntax", line=exc.lineno) from exc

    config = analyzer.config
    methods: list[ServiceMethod] = []
    for owner in module.body:
        if not isinstance(owner, ast.ClassDef) or not _is_service_class(owner.name, config):
            continue
        if owner.name == config.client_class and rel_path in config.client_core_files:
            continue
        for function in owner.body:
            if not isinstance(function, (ast.FunctionDef, ast.AsyncFunctionDef)):
                continue
            if not _is_candidate_method(function):
                continue
            methods.append(_analyze_method(analyzer, function, owner.name, rel_path))

    logger.debug("source_file_scanned", file=rel_path, methods=len(methods))
    return methods


async def scan_directory_async(
    source_dir: Path,
    *,
    config: AnalyzerConfig | None = None,
    max_workers: int | None = None,
    files: Sequence[str] | None = None,
) -> list[ServiceMethod]:
    """Analyze every candidate module in parallel; the first failure wins.

    ``files`` defaults to :func:`collect_source_files` of ``source_dir``.
    """

    analyzer = BodyAnalyzer(config)
    if files is None:
        files = collect_source_files(source_dir)
    if not files:
        return []
    bound = len(files) if max_workers is None else max(1, min(max_workers, len(files)))
    pool: WorkerPool[list[ServiceMethod]] = WorkerPool(max_concurrency=bound)
    batches = await pool.collect(
        asyncio.to_thread(scan_file, source_dir, rel_path, analyzer=analyzer)
        for rel_path in files
    )
    methods = [method for batch in batches for method in batch]
    methods.sort(key=lambda method: method.sort_key())
    _reject_duplicates(methods)
    return methods


def scan_directory(
    source_dir: Path,
    *,
    config: AnalyzerConfig | None = None,
    max_workers: int | None = None,
    files: Sequence[str] | None = None,
) -> list[ServiceMethod]:
    return asyncio.run(
        scan_directory_async(source_dir, config=config, max_workers=max_workers, files=files)
    )


def build_inventory(
    source_dir: Path | str,
    *,
    config: AnalyzerConfig | None = None,
    max_workers: int | None = None,
) -> Inventory:
    """Scan ``source_dir``, resolve helpers, and return the method inventory."""

    root = Path(source_dir)
    files = collect_source_files(root)
    scanned = scan_directory(root, config=config, max_workers=max_workers, files=files)
    methods = resolve_helpers(scanned)
    inventory = Inventory(source_dir=root, methods=tuple(methods), scanned_files=tuple(files))
    logger.info(
        "inventory_built",
        source_dir=str(root),
        files=len(files),
        methods=len(inventory.exported),
        unresolved=len(inventory.unresolved),
    )
    return inventory


def _analyze_method(
    analyzer: BodyAnalyzer,
    function: FunctionNode,
    owner_type: str,
    rel_path: str,
) -> ServiceMethod:
    exported = not function.name.startswith("_")
    try:
        info = analyzer.analyze(function, owner_type=owner_type)
    except ExtractionError as exc:
        identity = f"{owner_type}.{function.name}"
        if exported:
            raise exc.locate(source_file=rel_path, method=identity)
        logger.warning(
            "private_method_unparsed", file=rel_path, method=identity, error=exc.detail
        )
        info = EndpointInfo()
    return ServiceMethod(
        owner_type=owner_type,
        method_name=function.name,
        source_file=rel_path,
        http_method=info.http_method,
        url_templates=info.url_templates,
        helper_reference=info.helper_reference,
        exported=exported,
    )


def _reject_duplicates(methods: Sequence[ServiceMethod]) -> None:
    first_seen: dict[str, ServiceMethod] = {}
    for method in methods:
        first = first_seen.setdefault(method.name, method)
        if first is not method:
            raise ExtractionError(
                f"defined more than once (first in {first.source_file})",
                source_file=method.source_file,
                method=method.name,
            )


def _is_candidate_module(name: str) -> bool:
    if not name.endswith(".py") or name in _TEST_MODULE_NAMES:
        return False
    return not (name.startswith("test_") or name.endswith("_test.py"))


def _is_service_class(name: str, config: AnalyzerConfig) -> bool:
    if name.startswith("_"):
        return False
    return name == config.client_class or name.endswith(config.service_suffix)


def _is_candidate_method(function: FunctionNode) -> bool:
    if function.name.startswith("__") and function.name.endswith("__"):
        return False
    return not any(name in _NON_METHOD_DECORATORS for name in _decorator_names(function))


def _decorator_names(function: FunctionNode) -> Sequence[str]:
    names: list[str] = []
    for decorator in function.decorator_list:
        target = decorator.func if isinstance(decorator, ast.Call) else decorator
        if isinstance(target, ast.Name):
            names.append(target.id)
        elif isinstance(target, ast.Attribute):
            names.append(target.attr)
    return names


__all__ = [
    "Inventory",
    "build_inventory",
    "collect_source_files",
    "scan_directory",
    "scan_directory_async",
    "scan_file",
]
