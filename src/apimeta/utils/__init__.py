"""Utility exports for concurrency and filesystem helpers."""

from apimeta.utils.concurrency import CancellationToken, WorkerPool
from apimeta.utils.fs import atomic_write_text

__all__ = [
    "CancellationToken",
    "WorkerPool",
    "atomic_write_text",
]
