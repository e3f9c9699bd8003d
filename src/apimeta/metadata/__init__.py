"""Layered operation metadata: model, persistence, canonicalization, validation and sync."""

from apimeta.metadata.canonicalize import CanonicalRename, canonicalize, normalized_matches
from apimeta.metadata.docs import DOC_URL_PREFIX, normalize_doc_url, same_doc_link
from apimeta.metadata.models import (
    Metadata,
    MethodEntry,
    Operation,
    operations_for_method,
    sort_operations,
    sorted_operations,
)
from apimeta.metadata.normalize import NormalizationCache, normalize_url, parse_operation_name
from apimeta.metadata.store import (
    dump_metadata,
    load_metadata,
    metadata_from_mapping,
    save_metadata,
)
from apimeta.metadata.sync import (
    DescriptionFile,
    operations_equal,
    operations_from_descriptions,
    update_from_remote,
    update_from_remote_async,
    validate_openapi_commit,
)
from apimeta.metadata.validate import validate_metadata

__all__ = [
    "DOC_URL_PREFIX",
    "CanonicalRename",
    "DescriptionFile",
    "Metadata",
    "MethodEntry",
    "NormalizationCache",
    "Operation",
    "canonicalize",
    "dump_metadata",
    "load_metadata",
    "metadata_from_mapping",
    "normalize_doc_url",
    "normalize_url",
    "normalized_matches",
    "operations_equal",
    "operations_for_method",
    "operations_from_descriptions",
    "parse_operation_name",
    "same_doc_link",
    "save_metadata",
    "sort_operations",
    "sorted_operations",
    "update_from_remote",
    "update_from_remote_async",
    "validate_metadata",
    "validate_openapi_commit",
]
