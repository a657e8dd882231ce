"""Filters CMS mutation events and feeds the build pipeline from a queue."""

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable

from buildhook.content.hasher import PUBLISH_STATUS
from buildhook.events.models import ChangeEvent, ChangeKind

logger = logging.getLogger(__name__)

EventHandler = Callable[[ChangeEvent], Awaitable[None]]

_CONTENT_KINDS = {ChangeKind.CONTENT_SAVED, ChangeKind.CONTENT_DELETED}


class ChangeObserver:
    """Receives every mutation event and forwards the build-worthy ones.

    Accepted events go onto an in-memory queue drained by a single background
    task, so the request that delivered the event never waits on hashing or
    dispatch. Queued events are not persisted; a restart drops them.
    """

    def __init__(self, handler: EventHandler) -> None:
        self._handler = handler
        self._queue: asyncio.Queue[ChangeEvent] = asyncio.Queue()
        self._running = False
        self._task: asyncio.Task | None = None

    @staticmethod
    def should_forward(event: ChangeEvent) -> bool:
        if event.is_transient:
            return False
        if event.kind in _CONTENT_KINDS:
            # Drafts and private items never reach the static site
            return PUBLISH_STATUS in (event.previous_status, event.resulting_status)
        return True

    def notify(self, event: ChangeEvent) -> bool:
        """Filter and enqueue. Returns False when the event was dropped."""
        if not self.should_forward(event):
            logger.debug(
                "Ignoring %s for %s (transient=%s, status %s -> %s)",
                event.hook, event.entity_id, event.is_transient,
                event.previous_status, event.resulting_status,
            )
            return False
        self._queue.put_nowait(event)
        return True

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    async def start(self) -> None:
        self._running = True
        self._task = asyncio.create_task(self._consume())
        logger.info("Change observer started")

    async def stop(self, timeout: float = 0.0) -> None:
        """Stop consuming; wait up to `timeout` seconds for queued events first."""
        if timeout and self._task:
            try:
                await asyncio.wait_for(self._queue.join(), timeout)
            except TimeoutError:
                logger.warning("Dropping %d queued events on shutdown", self._queue.qsize())
        self._running = False
        if self._task:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None
        logger.info("Change observer stopped")

    async def drain(self) -> None:
        """Wait until every event queued so far has been handled."""
        await self._queue.join()

    async def _consume(self) -> None:
        while self._running:
            event = await self._queue.get()
            try:
                await self._handler(event)
            except Exception:
                logger.exception("Failed to handle %s for %s", event.hook, event.entity_id)
            finally:
                self._queue.task_done()
