"""
apimeta — error taxonomy

File: src/apimeta/errors.py
Last updated: 2026-10-18

Purpose
- Define structural (fatal) error types shared by the extraction and metadata layers.

Functional requirements
- Extraction errors carry the responsible file and method identity once known.
- Validation findings are never raised; they are returned as plain strings.
"""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path


class ApimetaError(Exception):
    """Base class for every structural failure raised by apimeta."""


class SourceParseError(ApimetaError):
    """Raised when a source file cannot be read or parsed."""

    def __init__(self, path: Path | str, detail: str, *, line: int | None = None) -> None:
        self.path = Path(path)
        self.detail = detail
        self.line = line
        location = str(self.path) if line is None else f"{self.path}:{line}"
        super().__init__(f"{location}: {detail}")


class ExtractionError(ApimetaError):
    """Structural failure while analyzing one method body.

    ``source_file`` and ``method`` are attached by the scanner after the analyzer
    raises, so the rendered message always names the responsible declaration.
    """

    def __init__(
        self,
        detail: str,
        *,
        line: int | None = None,
        source_file: str | None = None,
        method: str | None = None,
    ) -> None:
        self.detail = detail
        self.line = line
        self.source_file = source_file
        self.method = method
        super().__init__(detail)

    def locate(self, *, source_file: str, method: str) -> ExtractionError:
        self.source_file = source_file
        self.method = method
        return self

    def __str__(self) -> str:
        location = ""
        if self.source_file is not None:
            location = self.source_file
            if self.line is not None:
                location = f"{location}:{self.line}"
        elif self.line is not None:
            location = f"line {self.line}"
        prefix = " ".join(part for part in (location, self.method) if part)
        if not prefix:
            return self.detail
        return f"{prefix}: {self.detail}"


class UnsupportedSyntaxError(ExtractionError):
    """Raised for a statement or expression shape the analyzer has no rule for."""


class ConflictingVerbError(ExtractionError):
    """Raised when one body binds two different HTTP verbs."""

    def __init__(self, first: str, second: str, *, line: int | None = None) -> None:
        self.first = first
        self.second = second
        super().__init__(f"found both {first} and {second}", line=line)


class HelperResolutionError(ApimetaError):
    """Raised when a delegating method's helper cannot supply an HTTP verb."""

    def __init__(self, method: str, helper: str, detail: str) -> None:
        self.method = method
        self.helper = helper
        super().__init__(detail)


class MetadataLoadError(ApimetaError):
    """Raised when the metadata document is missing or malformed."""

    def __init__(self, path: Path | str, detail: str) -> None:
        self.path = Path(path)
        super().__init__(f"unable to load metadata {self.path}: {detail}")


class MetadataSaveError(ApimetaError):
    """Raised when the metadata document cannot be written."""

    def __init__(self, path: Path | str, detail: str) -> None:
        self.path = Path(path)
        super().__init__(f"unable to save metadata {self.path}: {detail}")


class CanonicalizationError(ApimetaError):
    """Base class for canonicalization failures."""

    def __init__(self, method: str, operation: str, detail: str) -> None:
        self.method = method
        self.operation = operation
        super().__init__(detail)


class NoCanonicalMatchError(CanonicalizationError):
    """Raised when a mapped operation matches nothing, even after normalization."""

    def __init__(self, method: str, operation: str) -> None:
        super().__init__(
            method,
            operation,
            f"method {method} has operation {operation!r} with no matching operation "
            "in metadata",
        )


class AmbiguousCanonicalNameError(CanonicalizationError):
    """Raised when a mapped operation normalizes onto more than one operation."""

    def __init__(self, method: str, operation: str, candidates: Sequence[str]) -> None:
        self.candidates = tuple(candidates)
        listed = ", ".join(self.candidates)
        super().__init__(
            method,
            operation,
            f"method {method} has operation {operation!r} matching multiple "
            f"operations: {listed}",
        )


class RemoteFetchError(ApimetaError):
    """Raised by contents clients when the remote description cannot be fetched."""


class OpenAPICommitMismatchError(ApimetaError):
    """Raised when stored openapi_operations differ from the recorded commit."""

    def __init__(self, commit: str) -> None:
        self.commit = commit
        super().__init__(f"openapi_operations does not match operations from git commit {commit}")


__all__ = [
    "AmbiguousCanonicalNameError",
    "ApimetaError",
    "CanonicalizationError",
    "ConflictingVerbError",
    "ExtractionError",
    "HelperResolutionError",
    "MetadataLoadError",
    "MetadataSaveError",
    "NoCanonicalMatchError",
    "OpenAPICommitMismatchError",
    "RemoteFetchError",
    "SourceParseError",
    "UnsupportedSyntaxError",
]
