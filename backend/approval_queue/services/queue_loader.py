"""Queue loader: runs the current query against the queue data source.

Each load issues exactly one fetch and never retries. Overlapping loads are
resolved with a monotonically increasing request token: only the most
recently issued load may publish items, pagination or an error. The
superseded fetch is allowed to finish; its response is dropped.
"""
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from pydantic import ValidationError

from approval_queue.core.errors import TransportError
from approval_queue.schemas.approval import ApprovalItem, URGENT_LEVELS
from approval_queue.schemas.queue import Pagination, QueuePage
from approval_queue.services.contracts import QueueDataSource
from approval_queue.services.query_state import QueryState

logger = logging.getLogger(__name__)

LoadListener = Callable[[list[ApprovalItem]], None]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class LoadedPage:
    items: list[ApprovalItem]
    pagination: Pagination


def normalize_page(raw: "QueuePage | Mapping[str, Any]", operation: str = "fetch_queue") -> QueuePage:
    """Coerce a data-source response into a QueuePage of ApprovalItem records.

    Raises:
        TransportError: if the payload cannot be read as a queue page.
    """
    if isinstance(raw, QueuePage):
        return raw
    try:
        return QueuePage.model_validate(raw)
    except ValidationError as exc:
        raise TransportError(operation, f"malformed queue page ({exc.error_count()} errors)") from exc


class QueueLoader:
    def __init__(
        self,
        source: QueueDataSource,
        state: QueryState | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.source = source
        self.state = state or QueryState()
        self.clock = clock

        self.items: list[ApprovalItem] = []
        self.pagination = Pagination(page=self.state.page, size=self.state.size)
        self.loading = False
        self.error: str | None = None

        self._request_seq = 0
        self._listeners: list[LoadListener] = []

    def add_listener(self, listener: LoadListener) -> None:
        """Register a callback run after every published load."""
        self._listeners.append(listener)

    @property
    def urgent_count(self) -> int:
        now = self.clock()
        return sum(1 for item in self.items if item.urgency_level(now) in URGENT_LEVELS)

    def item_by_id(self, item_id: str) -> ApprovalItem | None:
        for item in self.items:
            if item.id == item_id:
                return item
        return None

    async def load(self) -> LoadedPage | None:
        """Fetch the page described by the current query state.

        Returns the published page, or None when the load failed or was
        superseded by a newer one. Failures keep the previous items visible
        and set ``error``.
        """
        self._request_seq += 1
        token = self._request_seq
        params = self.state.as_params()

        self.loading = True
        self.error = None
        try:
            raw = await self.source.fetch_queue(**params)
            page = normalize_page(raw)
        except TransportError as exc:
            if token != self._request_seq:
                logger.debug("Dropping failure from superseded queue load #%d: %s", token, exc)
                return None
            self.error = str(exc)
            logger.warning("Queue load failed (page=%s size=%s): %s", params["page"], params["size"], exc)
            return None
        finally:
            if token == self._request_seq:
                self.loading = False

        if token != self._request_seq:
            logger.debug("Dropping superseded queue load #%d (latest #%d)", token, self._request_seq)
            return None

        pagination = Pagination(page=params["page"], size=params["size"], total=page.total)
        if page.total_pages is not None and page.total_pages != pagination.total_pages:
            logger.warning(
                "Queue source reported totalPages=%s, derived %s from total=%s size=%s",
                page.total_pages, pagination.total_pages, page.total, params["size"],
            )

        self.items = list(page.items)
        self.pagination = pagination
        logger.info(
            "Loaded approval queue page=%s size=%s items=%d total=%d",
            pagination.page, pagination.size, len(self.items), pagination.total,
        )
        for listener in self._listeners:
            listener(self.items)
        return LoadedPage(items=self.items, pagination=pagination)

    async def refresh(self) -> LoadedPage | None:
        """Re-run the current query unchanged; used after every mutation."""
        return await self.load()
