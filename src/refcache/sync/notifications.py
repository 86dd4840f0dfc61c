"""Update notifications for refreshed content."""

import asyncio
import inspect
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, List, Optional

from refcache.payload import ContentPayload

logger = logging.getLogger(__name__)

UpdateCallback = Callable[["UpdateEvent"], Any]


@dataclass(frozen=True)
class UpdateEvent:
    """Content for a resource has changed.

    Attributes:
        resource_id: Resource that changed
        payload: The new payload, already written to the cache
        forced: True when the update came from an explicit refresh
    """

    resource_id: str
    payload: ContentPayload
    forced: bool = False


class UpdateNotifier:
    """Observer list delivering UpdateEvents to subscribers.

    Callbacks may be plain functions or coroutine functions. Coroutines are
    handed to ``spawn`` (the orchestrator's task supervisor) so they run in
    the background and are awaited by ``drain()``. A failing subscriber is
    logged and does not stop delivery to the others.
    """

    def __init__(self, spawn: Optional[Callable[[Awaitable], Any]] = None):
        self._subscribers: List[UpdateCallback] = []
        self._spawn = spawn

    def subscribe(self, callback: UpdateCallback) -> Callable[[], None]:
        """Register a callback.

        Args:
            callback: Called with each UpdateEvent

        Returns:
            Function that removes the subscription
        """
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            self.unsubscribe(callback)

        return unsubscribe

    def unsubscribe(self, callback: UpdateCallback) -> None:
        if callback in self._subscribers:
            self._subscribers.remove(callback)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def emit(self, event: UpdateEvent) -> None:
        """Deliver an event to every current subscriber."""
        logger.info(
            f"Content updated for '{event.resource_id}' "
            f"(version {event.payload.version}), "
            f"notifying {self.subscriber_count} subscribers"
        )
        for callback in list(self._subscribers):
            try:
                result = callback(event)
                if inspect.isawaitable(result):
                    if self._spawn is not None:
                        self._spawn(result)
                    else:
                        asyncio.ensure_future(result)
            except Exception:
                logger.exception(
                    f"Update subscriber failed for '{event.resource_id}'"
                )
