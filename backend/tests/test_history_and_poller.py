"""Tests for audit-history loading and the urgent approvals poller."""
import asyncio
from unittest.mock import AsyncMock

import pytest
from pydantic import ValidationError

from approval_queue.core.errors import TransportError
from approval_queue.schemas.approval import ApprovalStatus
from approval_queue.services.history import HistoryLoader
from approval_queue.services.urgent_poller import UrgentApprovalsPoller


# ─── History ──────────────────────────────────────────────────────────────────

def _history_payload() -> list[dict]:
    return [
        {
            "action": "SUBMIT",
            "performedBy": "u-1",
            "oldStatus": None,
            "newStatus": "PENDING",
            "timestamp": "2026-03-01T09:00:00Z",
        },
        {
            "action": "APPROVE",
            "performedBy": "u-9",
            "performedByName": "Finance Lead",
            "oldStatus": "UNDER_REVIEW",
            "newStatus": "APPROVED",
            "comments": "Within budget",
            "timestamp": "2026-03-05T15:30:00Z",
        },
        {
            "action": "REVIEW",
            "performedBy": "u-9",
            "oldStatus": "PENDING",
            "newStatus": "UNDER_REVIEW",
            "timestamp": "2026-03-03T11:00:00Z",
        },
    ]


@pytest.mark.asyncio
async def test_history_sorted_newest_first():
    source = AsyncMock()
    source.fetch_history.return_value = _history_payload()
    loader = HistoryLoader(source)

    entries = await loader.load("q-1")

    assert [e.action for e in entries] == ["APPROVE", "REVIEW", "SUBMIT"]
    assert entries[0].new_status == ApprovalStatus.APPROVED
    assert loader.history == entries
    source.fetch_history.assert_awaited_once_with("q-1")


@pytest.mark.asyncio
async def test_history_entries_are_immutable():
    source = AsyncMock()
    source.fetch_history.return_value = _history_payload()
    entries = await HistoryLoader(source).load("q-1")

    with pytest.raises(ValidationError):
        entries[0].comments = "edited"


@pytest.mark.asyncio
async def test_history_failure_sets_error():
    source = AsyncMock()
    source.fetch_history.side_effect = TransportError("fetch_history", "HTTP 404", 404)
    loader = HistoryLoader(source)

    assert await loader.load("q-404") is None
    assert "HTTP 404" in loader.error
    assert loader.loading is False


@pytest.mark.asyncio
async def test_failed_load_of_other_quotation_drops_previous_trail():
    source = AsyncMock()
    source.fetch_history.side_effect = [
        _history_payload(),
        TransportError("fetch_history", "HTTP 503", 503),
    ]
    loader = HistoryLoader(source)
    await loader.load("q-1")

    assert await loader.load("q-2") is None

    assert loader.quotation_id == "q-2"
    assert loader.history == []
    assert "HTTP 503" in loader.error


@pytest.mark.asyncio
async def test_failed_refresh_keeps_same_quotation_trail():
    source = AsyncMock()
    source.fetch_history.side_effect = [
        _history_payload(),
        TransportError("fetch_history", "timeout"),
    ]
    loader = HistoryLoader(source)
    await loader.load("q-1")

    await loader.refresh()

    assert len(loader.history) == 3


@pytest.mark.asyncio
async def test_history_refresh_reuses_quotation():
    source = AsyncMock()
    source.fetch_history.return_value = []
    loader = HistoryLoader(source)

    assert await loader.refresh() is None
    await loader.load("q-3")
    await loader.refresh()

    assert source.fetch_history.await_args_list[-1].args == ("q-3",)


# ─── Urgent poller ────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_poll_once(make_item, make_page, clock, now):
    source = AsyncMock()
    source.fetch_urgent.return_value = make_page([make_item(1, days_ago=9), make_item(2, days_ago=4)])
    poller = UrgentApprovalsPoller(source, clock=clock, page_size=20)

    items = await poller.poll_once()

    assert len(items) == 2
    assert poller.urgent_count == 2
    assert poller.last_polled_at == now
    source.fetch_urgent.assert_awaited_once_with(0, 20)


@pytest.mark.asyncio
async def test_failed_poll_keeps_last_result(make_item, make_page):
    source = AsyncMock()
    source.fetch_urgent.side_effect = [
        make_page([make_item(1)]),
        TransportError("fetch_urgent", "timeout"),
    ]
    poller = UrgentApprovalsPoller(source)

    await poller.poll_once()
    await poller.poll_once()

    assert poller.urgent_count == 1
    assert "timeout" in poller.error


@pytest.mark.asyncio
async def test_start_and_stop_with_injected_sleep(make_page):
    source = AsyncMock()
    source.fetch_urgent.return_value = make_page([])
    sleeps: list[float] = []

    async def fake_sleep(seconds: float) -> None:
        sleeps.append(seconds)
        await asyncio.sleep(0)

    poller = UrgentApprovalsPoller(source, interval=60, sleep=fake_sleep)
    poller.start()
    for _ in range(10):
        await asyncio.sleep(0)

    assert poller.running is True
    assert source.fetch_urgent.await_count >= 2
    assert set(sleeps) == {60}

    await poller.stop()
    calls = source.fetch_urgent.await_count
    for _ in range(5):
        await asyncio.sleep(0)

    assert poller.running is False
    assert source.fetch_urgent.await_count == calls


@pytest.mark.asyncio
async def test_unexpected_error_does_not_stop_polling(make_item, make_page, caplog):
    calls = []

    async def flaky_urgent(page, size):
        calls.append(page)
        if len(calls) == 1:
            raise RuntimeError("decoder exploded")
        return make_page([make_item(1)])

    source = AsyncMock()
    source.fetch_urgent.side_effect = flaky_urgent

    async def fake_sleep(_seconds: float) -> None:
        await asyncio.sleep(0)

    poller = UrgentApprovalsPoller(source, sleep=fake_sleep)
    poller.start()
    for _ in range(6):
        await asyncio.sleep(0)
    await poller.stop()

    assert source.fetch_urgent.await_count >= 2
    assert poller.urgent_count == 1
    assert poller.error is None
    assert "decoder exploded" in caplog.text


@pytest.mark.asyncio
async def test_start_twice_keeps_one_task(make_page):
    source = AsyncMock()
    source.fetch_urgent.return_value = make_page([])

    async def parked_sleep(_seconds: float) -> None:
        await asyncio.Event().wait()

    poller = UrgentApprovalsPoller(source, sleep=parked_sleep)
    poller.start()
    poller.start()
    await asyncio.sleep(0)

    assert source.fetch_urgent.await_count == 1
    await poller.stop()
