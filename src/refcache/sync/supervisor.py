"""Tracking of in-flight fetches and background tasks."""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional, Set

logger = logging.getLogger(__name__)


class TaskSupervisor:
    """Owns the asyncio tasks started on behalf of a SyncOrchestrator.

    Two kinds of work are tracked:
    - fetches, keyed by resource id, so concurrent requests for one resource
      share a single network call
    - background tasks (revalidations, async subscribers), which nobody
      awaits; their failures are logged here

    Must be used from within a running event loop.
    """

    def __init__(self):
        self._fetches: Dict[str, asyncio.Task] = {}
        self._background: Set[asyncio.Task] = set()

    def in_flight(self, key: str) -> bool:
        task = self._fetches.get(key)
        return task is not None and not task.done()

    def fetch(self, key: str, factory: Callable[[], Awaitable]) -> asyncio.Task:
        """Get the in-flight fetch for ``key``, starting one if needed.

        Args:
            key: Resource id the fetch is for
            factory: Called to create the fetch coroutine when none is running

        Returns:
            Task resolving to the fetch result. Await it through
            ``asyncio.shield`` so one cancelled caller does not cancel it for
            the others.
        """
        task = self._fetches.get(key)
        if task is not None and not task.done():
            logger.debug(f"Attaching to in-flight fetch for '{key}'")
            return task

        task = asyncio.ensure_future(factory())
        self._fetches[key] = task
        task.add_done_callback(lambda t: self._fetch_done(key, t))
        return task

    def _fetch_done(self, key: str, task: asyncio.Task) -> None:
        if self._fetches.get(key) is task:
            del self._fetches[key]
        if not task.cancelled():
            # Mark the exception retrieved; callers that await the task still get it
            task.exception()

    def spawn(self, coro: Awaitable, name: Optional[str] = None) -> asyncio.Task:
        """Run a coroutine in the background without awaiting it.

        Args:
            coro: Coroutine or awaitable to run
            name: Task name used in logs

        Returns:
            The background task
        """
        if not asyncio.iscoroutine(coro):
            # Futures and other awaitables have no task name
            coro = _await(coro)
        task = asyncio.ensure_future(coro)
        if name is not None:
            task.set_name(name)
        self._background.add(task)
        task.add_done_callback(self._background_done)
        return task

    def _background_done(self, task: asyncio.Task) -> None:
        self._background.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                f"Background task {task.get_name()} failed: {exc}", exc_info=exc
            )

    @property
    def pending(self) -> int:
        return len(self._background) + sum(
            1 for task in self._fetches.values() if not task.done()
        )

    async def drain(self) -> None:
        """Wait until every tracked task has finished.

        Tasks started while draining (e.g. async subscribers notified by a
        finishing revalidation) are waited for as well.
        """
        while True:
            tasks = [t for t in (*self._background, *self._fetches.values()) if not t.done()]
            if not tasks:
                return
            await asyncio.gather(*tasks, return_exceptions=True)


async def _await(awaitable: Awaitable) -> Any:
    return await awaitable
