"""One reviewer's queue view: loader, selection, bulk and quick actions.

A session is never shared between reviewers. It owns the wiring between
components:

  - every published load clears the selection
  - dismissing a bulk result resets the orchestrator, clears the selection
    and refreshes the queue once
  - a successful quick action refreshes the queue
"""
import logging
from collections import OrderedDict
from collections.abc import Callable, Mapping
from datetime import datetime, timedelta
from typing import Any

from approval_queue.core.config import settings
from approval_queue.core.errors import DecisionInputError
from approval_queue.schemas.approval import (
    ApprovalHistoryEntry,
    ApprovalItem,
    BulkOperationResult,
    DecisionResult,
)
from approval_queue.schemas.queue import (
    ApprovalFilters,
    ApprovalSummary,
    BulkOperationView,
    QueueSnapshot,
    SortConfig,
)
from approval_queue.services.bulk_orchestrator import BulkOrchestrator
from approval_queue.services.bulk_validator import can_bulk_process
from approval_queue.services.contracts import DecisionExecutor, HistorySource, QueueDataSource
from approval_queue.services.history import HistoryLoader
from approval_queue.services.query_state import QueryState
from approval_queue.services.queue_loader import LoadedPage, QueueLoader, utcnow
from approval_queue.services.quick_actions import QuickActionProcessor
from approval_queue.services.selection import SelectionManager

logger = logging.getLogger(__name__)


class ReviewSession:
    def __init__(
        self,
        source: QueueDataSource,
        executor: DecisionExecutor,
        history_source: HistorySource,
        *,
        state: QueryState | None = None,
        clock: Callable[[], datetime] = utcnow,
        orchestrator: BulkOrchestrator | None = None,
    ):
        self.clock = clock
        self.loader = QueueLoader(source, state=state, clock=clock)
        self.selection = SelectionManager(self.loader)
        self.bulk = orchestrator or BulkOrchestrator(executor)
        self.quick_actions = QuickActionProcessor(executor, self.loader)
        self.history = HistoryLoader(history_source)

    @property
    def state(self) -> QueryState:
        return self.loader.state

    # ─── Query changes (each reloads) ───

    async def load(self) -> LoadedPage | None:
        return await self.loader.load()

    async def refresh(self) -> LoadedPage | None:
        return await self.loader.refresh()

    async def set_filters(self, changes: "Mapping[str, Any] | ApprovalFilters") -> LoadedPage | None:
        self.state.set_filters(changes)
        return await self.loader.load()

    async def reset_filters(self) -> LoadedPage | None:
        self.state.reset_filters()
        return await self.loader.load()

    async def set_sort(self, sort: SortConfig) -> LoadedPage | None:
        self.state.set_sort(sort)
        return await self.loader.load()

    async def set_page(self, page: int) -> LoadedPage | None:
        self.state.set_page(page)
        return await self.loader.load()

    async def set_page_size(self, size: int) -> LoadedPage | None:
        self.state.set_page_size(size)
        return await self.loader.load()

    # ─── Bulk decisions on the current selection ───

    async def bulk_approve(self, comments: str | None = None) -> BulkOperationResult:
        return await self.bulk.approve(self.selection.selected_items, comments=comments)

    async def bulk_reject(self, reason: str, comments: str | None = None) -> BulkOperationResult:
        return await self.bulk.reject(self.selection.selected_items, reason=reason, comments=comments)

    async def bulk_request_changes(self, comments: str) -> BulkOperationResult:
        return await self.bulk.request_changes(self.selection.selected_items, comments=comments)

    async def dismiss_bulk_result(self) -> LoadedPage | None:
        """Close the bulk result panel and pull server truth."""
        self.bulk.reset()
        self.selection.clear()
        return await self.loader.refresh()

    # ─── Single decisions ───

    def _loaded_item(self, quotation_id: str) -> ApprovalItem:
        for item in self.loader.items:
            if item.quotation_id == quotation_id or item.id == quotation_id:
                return item
        raise DecisionInputError(f"Quotation {quotation_id} is not on the loaded page.")

    async def quick_approve(self, quotation_id: str, comments: str | None = None) -> DecisionResult:
        return await self.quick_actions.approve(self._loaded_item(quotation_id), comments=comments)

    async def quick_reject(
        self, quotation_id: str, reason: str, comments: str | None = None
    ) -> DecisionResult:
        return await self.quick_actions.reject(
            self._loaded_item(quotation_id), reason=reason, comments=comments
        )

    async def load_history(self, quotation_id: str) -> list[ApprovalHistoryEntry] | None:
        return await self.history.load(quotation_id)

    # ─── Read side ───

    def selection_summary(self) -> ApprovalSummary:
        return self.selection.summary()

    def bulk_view(self) -> BulkOperationView:
        return BulkOperationView(
            state=self.bulk.state.value,
            progress=self.bulk.progress,
            current_operation=self.bulk.current_operation,
            error=self.bulk.error,
            validation_errors=self.bulk.validation_errors,
            result=self.bulk.result,
            partial_failure=self.bulk.result is not None and self.bulk.result.is_partial_failure,
            summary_message=self.bulk.summary_message,
        )

    def snapshot(self) -> QueueSnapshot:
        now = self.clock()
        return QueueSnapshot(
            items=[item.to_view(now) for item in self.loader.items],
            loading=self.loader.loading,
            error=self.loader.error,
            filters=self.state.filters,
            sort=self.state.sort,
            pagination=self.loader.pagination,
            selected_ids=self.selection.selected_ids,
            is_all_selected=self.selection.is_all_selected,
            is_partially_selected=self.selection.is_partially_selected,
            selected_count=self.selection.selected_count,
            selected_total_amount=self.selection.selected_total_amount,
            urgent_count=self.selection.urgent_count,
            can_bulk_process=can_bulk_process(self.selection.selected_items),
            bulk=self.bulk_view(),
        )


class SessionRegistry:
    """Review sessions keyed by reviewer id, built lazily from a factory.

    Sessions idle for longer than ``idle_ttl`` seconds are dropped, and when
    more than ``max_sessions`` are open the least recently used one goes.
    A session with a bulk batch still processing is never dropped.
    """

    def __init__(
        self,
        factory: Callable[[], ReviewSession],
        *,
        max_sessions: int | None = None,
        idle_ttl: float | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._factory = factory
        self.max_sessions = settings.SESSION_MAX_COUNT if max_sessions is None else max_sessions
        self.idle_ttl = settings.SESSION_IDLE_TTL_SECONDS if idle_ttl is None else idle_ttl
        self.clock = clock
        # least recently used first
        self._sessions: OrderedDict[str, tuple[ReviewSession, datetime]] = OrderedDict()

    def get(self, reviewer_id: str) -> ReviewSession:
        now = self.clock()
        self._evict_idle(now)
        entry = self._sessions.pop(reviewer_id, None)
        if entry is None:
            logger.info("Opening review session for reviewer %s", reviewer_id)
            session = self._factory()
        else:
            session = entry[0]
        self._sessions[reviewer_id] = (session, now)
        self._evict_overflow()
        return session

    def _evict_idle(self, now: datetime) -> None:
        cutoff = now - timedelta(seconds=self.idle_ttl)
        for reviewer_id, (session, last_used) in list(self._sessions.items()):
            if last_used < cutoff and not session.bulk.is_processing:
                del self._sessions[reviewer_id]
                logger.info("Closed idle review session for reviewer %s", reviewer_id)

    def _evict_overflow(self) -> None:
        for reviewer_id, (session, _) in list(self._sessions.items()):
            if len(self._sessions) <= self.max_sessions:
                break
            if session.bulk.is_processing:
                continue
            del self._sessions[reviewer_id]
            logger.info("Closed least recently used review session for reviewer %s", reviewer_id)

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, reviewer_id: object) -> bool:
        return reviewer_id in self._sessions
