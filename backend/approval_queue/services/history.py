"""Audit-trail loading for a single quotation."""
import logging
from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError

from approval_queue.core.errors import TransportError
from approval_queue.schemas.approval import ApprovalHistoryEntry
from approval_queue.services.contracts import HistorySource

logger = logging.getLogger(__name__)


def normalize_history(raw: "list[ApprovalHistoryEntry | Mapping[str, Any]]") -> list[ApprovalHistoryEntry]:
    """Validate entries and order them newest first."""
    try:
        entries = [
            entry if isinstance(entry, ApprovalHistoryEntry) else ApprovalHistoryEntry.model_validate(entry)
            for entry in raw
        ]
    except ValidationError as exc:
        raise TransportError("fetch_history", "malformed history entry") from exc
    return sorted(entries, key=lambda entry: entry.timestamp, reverse=True)


class HistoryLoader:
    def __init__(self, source: HistorySource):
        self.source = source
        self.quotation_id: str | None = None
        self.history: list[ApprovalHistoryEntry] = []
        self.loading = False
        self.error: str | None = None
        self._request_seq = 0

    async def load(self, quotation_id: str) -> list[ApprovalHistoryEntry] | None:
        """Fetch the audit trail for ``quotation_id``.

        Returns None when the fetch failed or a newer load superseded it.
        """
        self._request_seq += 1
        token = self._request_seq
        if quotation_id != self.quotation_id:
            # another quotation's trail must never show under this one
            self.history = []
        self.quotation_id = quotation_id
        self.loading = True
        self.error = None
        try:
            entries = normalize_history(await self.source.fetch_history(quotation_id))
        except TransportError as exc:
            if token == self._request_seq:
                self.error = str(exc)
                logger.warning("History load for quotation %s failed: %s", quotation_id, exc)
            return None
        finally:
            if token == self._request_seq:
                self.loading = False

        if token != self._request_seq:
            logger.debug("Dropping superseded history load for quotation %s", quotation_id)
            return None
        self.history = entries
        return entries

    async def refresh(self) -> list[ApprovalHistoryEntry] | None:
        if self.quotation_id is None:
            return None
        return await self.load(self.quotation_id)
