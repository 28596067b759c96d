"""Collaborator contracts the approval queue core calls into.

``ApprovalServiceClient`` implements all three over HTTP; tests use
``AsyncMock`` stand-ins.
"""
from typing import Protocol

from approval_queue.schemas.approval import (
    ApprovalAction,
    ApprovalHistoryEntry,
    BulkOperationResult,
    DecisionResult,
)
from approval_queue.schemas.queue import ApprovalFilters, QueuePage, SortConfig


class QueueDataSource(Protocol):
    async def fetch_queue(
        self,
        page: int,
        size: int,
        filters: ApprovalFilters,
        sort: SortConfig,
    ) -> QueuePage: ...


class DecisionExecutor(Protocol):
    async def execute_decision(
        self,
        quotation_id: str,
        action: ApprovalAction,
        comments: str | None = None,
        reason: str | None = None,
    ) -> DecisionResult: ...

    async def execute_bulk_decision(
        self,
        quotation_ids: list[str],
        action: ApprovalAction,
        comments: str | None = None,
        reason: str | None = None,
    ) -> BulkOperationResult: ...


class HistorySource(Protocol):
    async def fetch_history(self, quotation_id: str) -> list[ApprovalHistoryEntry]: ...


class UrgentSource(Protocol):
    async def fetch_urgent(self, page: int, size: int) -> QueuePage: ...
