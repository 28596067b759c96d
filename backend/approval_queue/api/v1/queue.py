"""Approval queue endpoints for one reviewer's session.

Sessions are selected with the ``X-Reviewer-Id`` header.

  GET    /queue                          full queue snapshot
  POST   /queue/load | /queue/refresh
  PATCH  /queue/filters                  merge filters, back to page 0
  PUT    /queue/sort | /queue/page | /queue/page-size
  POST   /queue/selection/toggle/{item_id}
  POST   /queue/selection/select-all | /queue/selection/clear
  GET    /queue/selection/summary
  POST   /queue/bulk/approve | /reject | /request-changes
  GET    /queue/bulk
  POST   /queue/bulk/reset               dismiss result, clear selection, refresh
  POST   /queue/items/{quotation_id}/approve | /reject
  GET    /queue/items/{quotation_id}/history
  GET    /queue/urgent

Domain errors are mapped to HTTP statuses by the handlers in main.py.
"""
import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status

from approval_queue.core.deps import get_review_session, get_urgent_poller
from approval_queue.schemas.approval import (
    ApprovalHistoryEntry,
    BulkDecisionBody,
    DecisionResult,
    QuickApproveRequest,
    QuickRejectRequest,
)
from approval_queue.schemas.queue import (
    ApprovalFilters,
    ApprovalSummary,
    BulkOperationView,
    PageRequest,
    PageSizeRequest,
    QueueSnapshot,
    SortConfig,
    UrgentApprovalsView,
)
from approval_queue.services.session import ReviewSession
from approval_queue.services.urgent_poller import UrgentApprovalsPoller

logger = logging.getLogger(__name__)

router = APIRouter()

SessionDep = Annotated[ReviewSession, Depends(get_review_session)]


def _bad_request(exc: ValueError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))


# ─── Queue state ───

@router.get("", response_model=QueueSnapshot, summary="Current queue snapshot")
async def get_queue(session: SessionDep):
    return session.snapshot()


@router.post("/load", response_model=QueueSnapshot, summary="Load the current page")
async def load_queue(session: SessionDep):
    await session.load()
    return session.snapshot()


@router.post("/refresh", response_model=QueueSnapshot, summary="Reload with unchanged query")
async def refresh_queue(session: SessionDep):
    await session.refresh()
    return session.snapshot()


@router.patch("/filters", response_model=QueueSnapshot, summary="Merge filters and reload page 0")
async def update_filters(body: ApprovalFilters, session: SessionDep):
    await session.set_filters(body)
    return session.snapshot()


@router.delete("/filters", response_model=QueueSnapshot, summary="Clear all filters")
async def clear_filters(session: SessionDep):
    await session.reset_filters()
    return session.snapshot()


@router.put("/sort", response_model=QueueSnapshot, summary="Replace sort and reload page 0")
async def update_sort(body: SortConfig, session: SessionDep):
    await session.set_sort(body)
    return session.snapshot()


@router.put("/page", response_model=QueueSnapshot, summary="Go to a page")
async def update_page(body: PageRequest, session: SessionDep):
    try:
        await session.set_page(body.page)
    except ValueError as exc:
        raise _bad_request(exc)
    return session.snapshot()


@router.put("/page-size", response_model=QueueSnapshot, summary="Change page size and reload page 0")
async def update_page_size(body: PageSizeRequest, session: SessionDep):
    try:
        await session.set_page_size(body.size)
    except ValueError as exc:
        raise _bad_request(exc)
    return session.snapshot()


# ─── Selection ───

@router.post("/selection/toggle/{item_id}", response_model=QueueSnapshot)
async def toggle_selection(item_id: str, session: SessionDep):
    try:
        session.selection.toggle(item_id)
    except KeyError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Item {item_id} is not on the loaded page.",
        )
    return session.snapshot()


@router.post("/selection/select-all", response_model=QueueSnapshot)
async def select_all(session: SessionDep):
    session.selection.select_all()
    return session.snapshot()


@router.post("/selection/clear", response_model=QueueSnapshot)
async def clear_selection(session: SessionDep):
    session.selection.clear()
    return session.snapshot()


@router.get("/selection/summary", response_model=ApprovalSummary)
async def selection_summary(session: SessionDep):
    return session.selection_summary()


# ─── Bulk operations ───

@router.get("/bulk", response_model=BulkOperationView, summary="Bulk operation state")
async def get_bulk(session: SessionDep):
    return session.bulk_view()


@router.post("/bulk/approve", response_model=BulkOperationView)
async def bulk_approve(body: BulkDecisionBody, session: SessionDep):
    await session.bulk_approve(comments=body.comments)
    return session.bulk_view()


@router.post("/bulk/reject", response_model=BulkOperationView)
async def bulk_reject(body: BulkDecisionBody, session: SessionDep):
    await session.bulk_reject(reason=body.reason or "", comments=body.comments)
    return session.bulk_view()


@router.post("/bulk/request-changes", response_model=BulkOperationView)
async def bulk_request_changes(body: BulkDecisionBody, session: SessionDep):
    await session.bulk_request_changes(comments=body.comments or "")
    return session.bulk_view()


@router.post("/bulk/reset", response_model=QueueSnapshot, summary="Dismiss bulk result and refresh")
async def reset_bulk(session: SessionDep):
    await session.dismiss_bulk_result()
    return session.snapshot()


# ─── Single items ───

@router.post("/items/{quotation_id}/approve", response_model=DecisionResult)
async def quick_approve(quotation_id: str, body: QuickApproveRequest, session: SessionDep):
    return await session.quick_approve(quotation_id, comments=body.comments)


@router.post("/items/{quotation_id}/reject", response_model=DecisionResult)
async def quick_reject(quotation_id: str, body: QuickRejectRequest, session: SessionDep):
    return await session.quick_reject(quotation_id, reason=body.reason, comments=body.comments)


@router.get("/items/{quotation_id}/history", response_model=list[ApprovalHistoryEntry])
async def item_history(quotation_id: str, session: SessionDep):
    entries = await session.load_history(quotation_id)
    if entries is None:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=session.history.error or "History unavailable.",
        )
    return entries


# ─── Urgent feed ───

@router.get("/urgent", response_model=UrgentApprovalsView)
async def urgent_approvals(
    poller: Annotated[UrgentApprovalsPoller, Depends(get_urgent_poller)],
):
    now = poller.clock()
    return UrgentApprovalsView(
        items=[item.to_view(now) for item in poller.urgent_items],
        count=poller.urgent_count,
        last_polled_at=poller.last_polled_at,
        error=poller.error,
    )
