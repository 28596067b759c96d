"""Tests for single-item approve/reject and the refresh that follows."""
from unittest.mock import AsyncMock

import pytest

from approval_queue.core.errors import DecisionInputError, TransportError
from approval_queue.schemas.approval import ApprovalAction, ApprovalStatus, DecisionResult
from approval_queue.services.quick_actions import QuickActionProcessor


# ─── Helpers ──────────────────────────────────────────────────────────────────

def _processor(executor) -> tuple[QuickActionProcessor, AsyncMock]:
    loader = AsyncMock()
    return QuickActionProcessor(executor, loader), loader


# ─── Tests ────────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_approve_refreshes_queue(make_item, fake_service):
    processor, loader = _processor(fake_service)
    item = make_item(1)

    result = await processor.approve(item, comments="OK")

    assert result.new_status == ApprovalStatus.APPROVED
    fake_service.execute_decision.assert_awaited_once_with(
        "q-1", ApprovalAction.APPROVE, comments="OK", reason=None
    )
    loader.refresh.assert_awaited_once()


@pytest.mark.asyncio
async def test_approve_does_not_patch_item(make_item, fake_service):
    """The loaded record is left as-is; the refresh is the source of truth."""
    processor, _ = _processor(fake_service)
    item = make_item(1)

    await processor.approve(item)

    assert item.status == ApprovalStatus.PENDING


@pytest.mark.asyncio
async def test_reject_sends_reason(make_item, fake_service):
    processor, loader = _processor(fake_service)

    result = await processor.reject(make_item(2), reason="Missing receipts", comments="see line 4")

    assert result.new_status == ApprovalStatus.REJECTED
    fake_service.execute_decision.assert_awaited_once_with(
        "q-2", ApprovalAction.REJECT, comments="see line 4", reason="Missing receipts"
    )
    loader.refresh.assert_awaited_once()


@pytest.mark.asyncio
async def test_failure_propagates_without_refresh(make_item):
    executor = AsyncMock()
    executor.execute_decision.side_effect = TransportError("execute_decision", "HTTP 502", 502)
    processor, loader = _processor(executor)

    with pytest.raises(TransportError):
        await processor.approve(make_item(1))

    loader.refresh.assert_not_awaited()


@pytest.mark.asyncio
async def test_refused_decision_does_not_refresh(make_item):
    executor = AsyncMock()
    executor.execute_decision.return_value = DecisionResult(
        quotation_id="q-1", success=False, message="Quotation locked by another reviewer"
    )
    processor, loader = _processor(executor)

    result = await processor.approve(make_item(1))

    assert result.success is False
    loader.refresh.assert_not_awaited()


@pytest.mark.asyncio
async def test_non_processable_item_never_reaches_executor(make_item, fake_service):
    processor, loader = _processor(fake_service)

    with pytest.raises(DecisionInputError):
        await processor.approve(make_item(1, status=ApprovalStatus.REJECTED))

    fake_service.execute_decision.assert_not_awaited()
    loader.refresh.assert_not_awaited()


@pytest.mark.asyncio
async def test_reject_without_reason_is_refused(make_item, fake_service):
    processor, _ = _processor(fake_service)

    with pytest.raises(DecisionInputError, match="rejection reason"):
        await processor.reject(make_item(1), reason="   ")

    fake_service.execute_decision.assert_not_awaited()


@pytest.mark.asyncio
async def test_raw_result_payload(make_item):
    executor = AsyncMock()
    executor.execute_decision.return_value = {"success": True, "newStatus": "APPROVED"}
    processor, _ = _processor(executor)

    result = await processor.approve(make_item(7))

    assert result.quotation_id == "q-7"
    assert result.new_status == ApprovalStatus.APPROVED
