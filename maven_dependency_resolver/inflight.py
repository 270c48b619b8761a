"""Sharing of in-flight solves and downloads.

The solver keys its work by scope (``solve``) and by ``"{coordinates}.{ext}"``
(file downloads). While a key is being worked on, every other caller with the
same key awaits the same task instead of starting a second walk or a second
HTTP request.

Notes:
- The shared task survives the cancellation of any single waiter.
- A finished task is forgotten, success or failure; the next call for the
  key starts over (the artifact cache is what makes the repeat cheap).
- Work must not ``run`` its own key recursively; it would await itself.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Generic, Hashable, TypeVar

_logger = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


class InFlightDeduper(Generic[K, V]):
    """One running task per key; ``label`` names the kind of work in logs and task names."""

    def __init__(self, label: str = "work") -> None:
        self.label = label
        self._lock = asyncio.Lock()
        self._tasks: dict[K, asyncio.Task[V]] = {}

    def _start(self, key: K, factory: Callable[[], Awaitable[V]]) -> asyncio.Task[V]:
        async def _work() -> V:
            return await factory()

        task = asyncio.create_task(_work(), name=f"{self.label}:{key}")

        def _forget(done: asyncio.Task[V]) -> None:
            # only drop the entry if it still belongs to this task
            if self._tasks.get(key) is done:
                del self._tasks[key]

        task.add_done_callback(_forget)
        self._tasks[key] = task
        return task

    async def run(self, key: K, coro_factory: Callable[[], Awaitable[V]]) -> V:
        """Start the work for ``key`` or join the task already running it."""
        async with self._lock:
            task = self._tasks.get(key)
            if task is None or task.done():
                task = self._start(key, coro_factory)
            else:
                _logger.debug("joining in-flight %s %s", self.label, key)
        return await asyncio.shield(task)

    def has_inflight(self, key: K) -> bool:
        task = self._tasks.get(key)
        return task is not None and not task.done()

    def __len__(self) -> int:
        return sum(1 for task in self._tasks.values() if not task.done())


__all__ = ["InFlightDeduper"]
