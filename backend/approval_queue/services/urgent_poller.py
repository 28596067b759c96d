"""Background polling of the urgent-approvals feed.

The poller is owned by whoever starts it: ``start()`` launches an asyncio
task and ``stop()`` cancels it. Sleep and clock are injected so tests drive
time without real timers.
"""
import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import Any

from approval_queue.core.config import settings
from approval_queue.core.errors import TransportError
from approval_queue.schemas.approval import ApprovalItem
from approval_queue.services.contracts import UrgentSource
from approval_queue.services.queue_loader import normalize_page, utcnow

logger = logging.getLogger(__name__)


class UrgentApprovalsPoller:
    def __init__(
        self,
        source: UrgentSource,
        *,
        interval: float | None = None,
        page_size: int | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.source = source
        self.interval = settings.URGENT_POLL_INTERVAL_SECONDS if interval is None else interval
        self.page_size = settings.URGENT_POLL_PAGE_SIZE if page_size is None else page_size
        self._sleep = sleep
        self.clock = clock

        self.urgent_items: list[ApprovalItem] = []
        self.last_polled_at: datetime | None = None
        self.error: str | None = None
        self._task: asyncio.Task | None = None

    @property
    def urgent_count(self) -> int:
        return len(self.urgent_items)

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def poll_once(self) -> list[ApprovalItem]:
        """Fetch the urgent feed once; on failure keep the last good result."""
        try:
            page = normalize_page(
                await self.source.fetch_urgent(0, self.page_size), operation="fetch_urgent"
            )
        except TransportError as exc:
            self.error = str(exc)
            logger.warning("Urgent approvals poll failed: %s", exc)
            return self.urgent_items
        self.urgent_items = list(page.items)
        self.last_polled_at = self.clock()
        self.error = None
        return self.urgent_items

    async def _run(self) -> None:
        while True:
            try:
                await self.poll_once()
            except Exception as exc:
                self.error = str(exc) or type(exc).__name__
                logger.error("Urgent approvals poll crashed: %s", exc, exc_info=True)
            await self._sleep(self.interval)

    def start(self) -> None:
        if self.running:
            return
        logger.info("Starting urgent approvals poller (interval=%ss)", self.interval)
        self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        if self._task is None:
            return
        task, self._task = self._task, None
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("Urgent approvals poller stopped")
