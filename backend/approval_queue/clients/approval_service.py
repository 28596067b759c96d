"""HTTP client for the approval service.

Implements the queue data source, decision executor, history source and
urgent feed contracts. Endpoints::

  GET  /approvals/pending
  GET  /approvals/urgent
  POST /approvals/{quotation_id}/approve?comments=
  POST /approvals/{quotation_id}/reject?reason=&comments=
  POST /approvals/process                      (REQUEST_CHANGES)
  POST /approvals/bulk
  GET  /approvals/quotation/{quotation_id}/history

Transport and non-2xx failures become TransportError. Nothing is retried:
decisions are not idempotent.
"""
import logging
from typing import Any

import httpx
from pydantic import ValidationError

from approval_queue.core.config import settings
from approval_queue.core.errors import TransportError
from approval_queue.schemas.approval import (
    ApprovalAction,
    ApprovalHistoryEntry,
    ApprovalStatus,
    BulkOperationRequest,
    BulkOperationResult,
    DecisionResult,
)
from approval_queue.schemas.queue import ApprovalFilters, QueuePage, SortConfig

logger = logging.getLogger(__name__)


def build_queue_params(
    page: int,
    size: int,
    filters: ApprovalFilters,
    sort: SortConfig,
) -> list[tuple[str, str]]:
    """Encode a queue query. Empty filter fields are left out entirely."""
    params: list[tuple[str, str]] = [
        ("page", str(page)),
        ("size", str(size)),
        ("sortBy", sort.field),
        ("sortDir", sort.direction.value),
    ]
    params += [("status", s.value) for s in filters.status]
    params += [("urgency", u.value) for u in filters.urgency]
    params += [("budgetCompliance", b.value) for b in filters.budget_compliance]
    if filters.project_id:
        params.append(("projectId", filters.project_id))
    if filters.manager_id:
        params.append(("managerId", filters.manager_id))
    if filters.search_term and filters.search_term.strip():
        params.append(("search", filters.search_term.strip()))
    if filters.has_documents is not None:
        params.append(("hasDocuments", "true" if filters.has_documents else "false"))
    if filters.amount_range:
        if filters.amount_range.min is not None:
            params.append(("minAmount", str(filters.amount_range.min)))
        if filters.amount_range.max is not None:
            params.append(("maxAmount", str(filters.amount_range.max)))
    if filters.date_range:
        if filters.date_range.start is not None:
            params.append(("startDate", filters.date_range.start.isoformat()))
        if filters.date_range.end is not None:
            params.append(("endDate", filters.date_range.end.isoformat()))
    return params


# Backend approval status -> history action
_ACTION_BY_STATUS = {
    "APPROVED": "APPROVE",
    "REJECTED": "REJECT",
    "UNDER_REVIEW": "REQUEST_CHANGES",
    "RETURNED": "RETURN",
}


def _status_or_none(value: Any) -> str | None:
    return value if isinstance(value, str) and value in ApprovalStatus.__members__ else None


def bulk_result_from_approvals(approvals: list[dict[str, Any]]) -> dict[str, Any]:
    """Build a bulk result from the backend's list of processed approval records.

    The backend only returns the approvals it processed, so everything it
    returns counts as a success.
    """
    return {
        "processedCount": len(approvals),
        "failedCount": 0,
        "message": f"{len(approvals)} approvals processed successfully",
        "results": [
            {
                "id": str(approval.get("quotationId", approval.get("id"))),
                "success": True,
                "newStatus": _status_or_none(approval.get("status")),
            }
            for approval in approvals
        ],
    }


def history_entry_from_approval(approval: dict[str, Any], quotation_id: str) -> dict[str, Any]:
    """Map a backend approval record onto the audit history shape.

    Entries already carrying ``performedBy`` are passed through unchanged.
    """
    if "performedBy" in approval:
        return approval
    status = approval.get("status")
    return {
        "id": None if approval.get("id") is None else str(approval["id"]),
        "quotationId": quotation_id,
        "action": _ACTION_BY_STATUS.get(status, status or "UNKNOWN"),
        "performedBy": approval.get("approverUsername"),
        "performedByName": approval.get("approverName"),
        "newStatus": _status_or_none(status),
        "comments": approval.get("comments"),
        "timestamp": approval.get("approvalDate") or approval.get("createdDate"),
    }


class ApprovalServiceClient:
    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = (base_url or settings.APPROVALS_API_BASE_URL).rstrip("/")
        self.timeout = settings.APPROVALS_API_TIMEOUT_SECONDS if timeout is None else timeout
        self._client = httpx.AsyncClient(
            base_url=self.base_url, timeout=self.timeout, transport=transport
        )

    async def _request(self, operation: str, method: str, url: str, **kwargs: Any) -> Any:
        try:
            resp = await self._client.request(method, url, **kwargs)
            resp.raise_for_status()
            return resp.json()
        except httpx.HTTPStatusError as exc:
            code = exc.response.status_code
            raise TransportError(operation, f"HTTP {code}", status_code=code) from exc
        except httpx.RequestError as exc:
            raise TransportError(operation, str(exc) or type(exc).__name__) from exc
        except ValueError as exc:
            # body was not JSON
            raise TransportError(operation, "response body is not JSON") from exc

    # ─── Queue ───

    async def fetch_queue(
        self,
        page: int,
        size: int,
        filters: ApprovalFilters,
        sort: SortConfig,
    ) -> QueuePage:
        data = await self._request(
            "fetch_queue", "GET", "/approvals/pending",
            params=build_queue_params(page, size, filters, sort),
        )
        return self._parse(QueuePage, data, "fetch_queue")

    async def fetch_urgent(self, page: int, size: int) -> QueuePage:
        data = await self._request(
            "fetch_urgent", "GET", "/approvals/urgent",
            params={"page": page, "size": size},
        )
        if isinstance(data, list):
            data = {"content": data, "totalElements": len(data)}
        return self._parse(QueuePage, data, "fetch_urgent")

    # ─── Decisions ───

    async def execute_decision(
        self,
        quotation_id: str,
        action: ApprovalAction,
        comments: str | None = None,
        reason: str | None = None,
    ) -> DecisionResult:
        params: dict[str, str] = {}
        if comments:
            params["comments"] = comments
        if action == ApprovalAction.APPROVE:
            data = await self._request(
                "execute_decision", "POST", f"/approvals/{quotation_id}/approve", params=params
            )
        elif action == ApprovalAction.REJECT:
            params["reason"] = reason or ""
            data = await self._request(
                "execute_decision", "POST", f"/approvals/{quotation_id}/reject", params=params
            )
        else:
            body = {"quotationId": quotation_id, "action": action.value, "comments": comments, "reason": reason}
            data = await self._request("execute_decision", "POST", "/approvals/process", json=body)

        if isinstance(data, dict):
            data = {"quotationId": quotation_id, **data}
        return self._parse(DecisionResult, data, "execute_decision")

    async def execute_bulk_decision(
        self,
        quotation_ids: list[str],
        action: ApprovalAction,
        comments: str | None = None,
        reason: str | None = None,
    ) -> BulkOperationResult:
        request = BulkOperationRequest(
            quotation_ids=quotation_ids, action=action, comments=comments, reason=reason
        )
        logger.info("Bulk %s request for %d quotations", action.value, len(quotation_ids))
        data = await self._request(
            "execute_bulk_decision", "POST", "/approvals/bulk",
            json=request.model_dump(mode="json", by_alias=True, exclude_none=True),
        )
        if isinstance(data, list) and all(isinstance(approval, dict) for approval in data):
            data = bulk_result_from_approvals(data)
        return self._parse(BulkOperationResult, data, "execute_bulk_decision")

    # ─── History ───

    async def fetch_history(self, quotation_id: str) -> list[ApprovalHistoryEntry]:
        data = await self._request(
            "fetch_history", "GET", f"/approvals/quotation/{quotation_id}/history"
        )
        if not isinstance(data, list):
            raise TransportError("fetch_history", "expected a list of history entries")
        try:
            return [
                ApprovalHistoryEntry.model_validate(
                    history_entry_from_approval(entry, quotation_id) if isinstance(entry, dict) else entry
                )
                for entry in data
            ]
        except ValidationError as exc:
            raise TransportError("fetch_history", "malformed history entry") from exc

    @staticmethod
    def _parse(model: type, data: Any, operation: str) -> Any:
        try:
            return model.model_validate(data)
        except ValidationError as exc:
            raise TransportError(operation, f"malformed response ({exc.error_count()} errors)") from exc

    async def aclose(self) -> None:
        await self._client.aclose()
