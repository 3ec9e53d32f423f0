"""Long-polling loop and its update cursor.

The poller asks ``getUpdates`` for everything after its cursor, advances
the cursor as soon as a batch arrives and hands the batch to a dispatch
task.  The next fetch starts right away, so slow handlers never stall
polling; ``max_inflight`` caps how many batches may be dispatching at once
(1 means fetch, dispatch the whole batch, then fetch again).
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable

from core.logger import TgflowLogger
from sdk.client import TelegramClient
from sdk.exceptions import APIException, TransportError

logger = TgflowLogger.get_logger()

UpdateHandler = Callable[[dict], Awaitable[None]]


class Poller:
    """Fetch-dispatch loop for one bot."""

    def __init__(
        self,
        client: TelegramClient,
        handle_update: UpdateHandler,
        *,
        timeout: int = 50,
        max_inflight: int = 1,
        retry_delay: float = 5.0,
    ) -> None:
        if max_inflight < 1:
            raise ValueError("max_inflight must be at least 1")
        self.client = client
        self.handle_update = handle_update
        self.timeout = timeout
        self.max_inflight = max_inflight
        self.retry_delay = retry_delay
        self.offset = 0
        self._stopping = asyncio.Event()
        self._tasks: set[asyncio.Task[Any]] = set()

    # ── single steps ─────────────────────────────────────────────────────

    def advance(self, updates: list[dict]) -> None:
        """Move the cursor past *updates*; it never moves backwards."""
        if updates:
            self.offset = max(self.offset, max(u["update_id"] for u in updates) + 1)

    async def fetch(self) -> list[dict]:
        """Fetch one batch and advance the cursor.

        Raises:
            TransportError: The request failed before reaching the API.
            APIException: The API rejected the request.
        """
        updates = await self.client.get_updates(offset=self.offset, timeout=self.timeout)
        self.advance(updates)
        if updates:
            logger.debug("Received updates", extra={"count": len(updates), "offset": self.offset})
        return updates

    async def dispatch_batch(self, updates: list[dict]) -> None:
        """Handle *updates* in arrival order, one after another."""
        for update in updates:
            await self.handle_update(update)

    async def poll_once(self) -> int:
        """Fetch one batch and dispatch it completely; returns the batch size."""
        updates = await self.fetch()
        await self.dispatch_batch(updates)
        return len(updates)

    # ── loop ─────────────────────────────────────────────────────────────

    def stop(self) -> None:
        self._stopping.set()

    @property
    def inflight(self) -> int:
        return len(self._tasks)

    async def run(self) -> None:
        """Poll until :meth:`stop` is called, then drain in-flight batches.

        Failed fetches are logged and retried after ``retry_delay`` seconds;
        they never end the loop.
        """
        self._stopping.clear()
        slots = asyncio.Semaphore(self.max_inflight)
        logger.info("Polling started", extra={"offset": self.offset, "max_inflight": self.max_inflight})

        while not self._stopping.is_set():
            await slots.acquire()
            if self._stopping.is_set():
                slots.release()
                break
            try:
                updates = await self.fetch()
            except (TransportError, APIException) as exc:
                slots.release()
                logger.warning("getUpdates failed, retrying", extra={"api_method": "getUpdates", "error": str(exc), "retry_delay": self.retry_delay})
                await asyncio.sleep(self.retry_delay)
                continue

            task = asyncio.create_task(self.dispatch_batch(updates))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
            task.add_done_callback(lambda _: slots.release())

        if self.inflight:
            logger.info("Draining in-flight batches", extra={"inflight": self.inflight})
            await asyncio.gather(*self._tasks, return_exceptions=True)
        logger.info("Polling stopped", extra={"offset": self.offset})
