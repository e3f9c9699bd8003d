"""Fail-fast bounded task pool shared by source scanning and description downloads."""

from __future__ import annotations

import asyncio
import inspect
import threading
from typing import TYPE_CHECKING, Generic, TypeVar

if TYPE_CHECKING:
    from collections.abc import Awaitable, Iterable

T = TypeVar("T")


class CancellationToken:
    """Cancellation flag readable from event-loop tasks and worker threads alike.

    Work offloaded with ``asyncio.to_thread`` cannot be cancelled once started, so
    thread-side code polls :meth:`raise_if_cancelled` between blocking steps.
    """

    def __init__(self) -> None:
        self._flag = threading.Event()

    def cancel(self) -> None:
        self._flag.set()

    @property
    def is_cancelled(self) -> bool:
        return self._flag.is_set()

    def raise_if_cancelled(self) -> None:
        if self._flag.is_set():
            raise asyncio.CancelledError("operation cancelled")


class WorkerPool(Generic[T]):
    """Await coroutines with at most ``max_concurrency`` running at once.

    The first failure cancels ``token`` and every unfinished task, then is re-raised.
    """

    def __init__(self, max_concurrency: int, *, token: CancellationToken | None = None) -> None:
        if max_concurrency <= 0:
            raise ValueError("max_concurrency must be > 0")
        self.max_concurrency = max_concurrency
        self.token = token or CancellationToken()

    async def collect(self, coroutines: Iterable[Awaitable[T]]) -> list[T]:
        """Return every result in completion order."""

        awaitables = list(coroutines)
        if self.token.is_cancelled:
            for awaitable in awaitables:
                _close_unscheduled(awaitable)
            raise asyncio.CancelledError("operation cancelled")

        gate = asyncio.Semaphore(self.max_concurrency)
        pending = {asyncio.create_task(self._guarded(gate, item)) for item in awaitables}
        results: list[T] = []
        try:
            while pending:
                done, pending = await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)
                for task in done:
                    if task.cancelled():
                        raise asyncio.CancelledError("worker task cancelled")
                    failure = task.exception()
                    if failure is not None:
                        self.token.cancel()
                        raise failure
                    results.append(task.result())
        finally:
            await _cancel_all(pending)
        return results

    async def _guarded(self, gate: asyncio.Semaphore, awaitable: Awaitable[T]) -> T:
        async with gate:
            if self.token.is_cancelled:
                _close_unscheduled(awaitable)
                raise asyncio.CancelledError("operation cancelled")
            return await awaitable


async def _cancel_all(tasks: set[asyncio.Task[T]]) -> None:
    for task in tasks:
        task.cancel()
    if tasks:
        await asyncio.gather(*tasks, return_exceptions=True)


def _close_unscheduled(awaitable: Awaitable[object]) -> None:
    # Coroutines that never started warn at GC time unless closed.
    if inspect.iscoroutine(awaitable):
        awaitable.close()


__all__ = ["CancellationToken", "WorkerPool"]
