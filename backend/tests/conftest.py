"""Shared fixtures: a fixed clock, approval item factory and fake collaborators."""
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from approval_queue.schemas.approval import (
    ApprovalAction,
    ApprovalItem,
    ApprovalStatus,
    BulkItemResult,
    BulkOperationResult,
    DecisionResult,
)
from approval_queue.schemas.queue import QueuePage

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


def _make_item(
    n: int = 1,
    *,
    status: ApprovalStatus = ApprovalStatus.PENDING,
    amount: str | int = "1000",
    budget: str | int | None = "100000",
    spent: str | int | None = "0",
    manager_id: str = "mgr-1",
    project_id: str = "prj-1",
    days_ago: float = 0,
) -> ApprovalItem:
    return ApprovalItem(
        id=f"item-{n}",
        quotation_id=f"q-{n}",
        quotation_number=f"QT-{n:04d}",
        project_id=project_id,
        project_name=f"Project {project_id}",
        manager_id=manager_id,
        manager_name=f"Manager {manager_id}",
        total_amount=Decimal(str(amount)),
        currency="SAR",
        submission_date=NOW - timedelta(days=days_ago),
        status=status,
        project_budget=None if budget is None else Decimal(str(budget)),
        spent_amount=None if spent is None else Decimal(str(spent)),
    )


def _page(items: list[ApprovalItem], total: int | None = None) -> QueuePage:
    return QueuePage(items=items, total=len(items) if total is None else total)


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def clock():
    return lambda: NOW


@pytest.fixture
def make_item():
    return _make_item


@pytest.fixture
def make_page():
    return _page


@pytest.fixture
def fake_service():
    """AsyncMock standing in for the approval service (all four contracts)."""
    service = AsyncMock()
    service.fetch_queue.return_value = QueuePage(items=[], total=0)
    service.fetch_urgent.return_value = QueuePage(items=[], total=0)
    service.fetch_history.return_value = []

    async def _bulk(quotation_ids, action, comments=None, reason=None):
        status = {
            ApprovalAction.APPROVE: ApprovalStatus.APPROVED,
            ApprovalAction.REJECT: ApprovalStatus.REJECTED,
            ApprovalAction.REQUEST_CHANGES: ApprovalStatus.RETURNED,
        }[action]
        return BulkOperationResult(
            processed_count=len(quotation_ids),
            failed_count=0,
            per_item_results=[
                BulkItemResult(id=qid, success=True, new_status=status) for qid in quotation_ids
            ],
        )

    async def _single(quotation_id, action, comments=None, reason=None):
        status = ApprovalStatus.APPROVED if action == ApprovalAction.APPROVE else ApprovalStatus.REJECTED
        return DecisionResult(quotation_id=quotation_id, success=True, new_status=status)

    service.execute_bulk_decision.side_effect = _bulk
    service.execute_decision.side_effect = _single
    return service


async def instant_sleep(_seconds: float) -> None:
    """Yield to the event loop without waiting."""
    import asyncio

    await asyncio.sleep(0)


@pytest.fixture
def fast_sleep():
    return instant_sleep
