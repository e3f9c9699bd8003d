"""Static endpoint extraction from SDK service classes."""

from apimeta.extraction.analyzer import BodyAnalyzer, analyze_body
from apimeta.extraction.models import (
    AnalyzerConfig,
    EndpointInfo,
    HelperReference,
    RequestCallShape,
    ServiceMethod,
    VerbOverride,
)
from apimeta.extraction.resolver import resolve_helpers
from apimeta.extraction.scanner import (
    Inventory,
    build_inventory,
    collect_source_files,
    scan_directory,
    scan_directory_async,
    scan_file,
)

__all__ = [
    "AnalyzerConfig",
    "BodyAnalyzer",
    "EndpointInfo",
    "HelperReference",
    "Inventory",
    "RequestCallShape",
    "ServiceMethod",
    "VerbOverride",
    "analyze_body",
    "build_inventory",
    "collect_source_files",
    "resolve_helpers",
    "scan_directory",
    "scan_directory_async",
    "scan_file",
]
