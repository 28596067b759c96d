"""Single-item approve/reject from the queue view.

No local status patching: a successful decision triggers a queue refresh and
the refreshed page is the source of truth. A failed decision leaves the
queue untouched and propagates to the caller.
"""
import logging
from typing import Any

from pydantic import ValidationError

from approval_queue.core.errors import DecisionInputError, TransportError
from approval_queue.schemas.approval import ApprovalAction, ApprovalItem, DecisionResult
from approval_queue.services.bulk_validator import decision_input_errors
from approval_queue.services.contracts import DecisionExecutor
from approval_queue.services.queue_loader import QueueLoader

logger = logging.getLogger(__name__)


class QuickActionProcessor:
    def __init__(self, executor: DecisionExecutor, loader: QueueLoader):
        self.executor = executor
        self.loader = loader

    async def approve(self, item: ApprovalItem, comments: str | None = None) -> DecisionResult:
        return await self._decide(item, ApprovalAction.APPROVE, comments=comments)

    async def reject(
        self, item: ApprovalItem, reason: str, comments: str | None = None
    ) -> DecisionResult:
        return await self._decide(item, ApprovalAction.REJECT, comments=comments, reason=reason)

    async def _decide(
        self,
        item: ApprovalItem,
        action: ApprovalAction,
        comments: str | None = None,
        reason: str | None = None,
    ) -> DecisionResult:
        """Send one decision, then refresh the queue.

        Raises:
            DecisionInputError: if the item is not processable or inputs are invalid.
            TransportError: if the decision executor failed; no refresh happens.
        """
        if not item.is_processable:
            raise DecisionInputError(
                f"Quotation {item.quotation_number} is {item.status.value} and cannot be decided."
            )
        errors = decision_input_errors(action, comments, reason)
        if errors:
            raise DecisionInputError("; ".join(errors))

        try:
            raw = await self.executor.execute_decision(
                item.quotation_id, action, comments=comments, reason=reason
            )
        except TransportError as exc:
            logger.warning("%s of quotation %s failed: %s", action.value, item.quotation_id, exc)
            raise
        result = self._normalize_result(raw, item.quotation_id)
        if not result.success:
            # refused by the approval service; nothing changed upstream
            logger.warning(
                "%s of quotation %s refused: %s", action.value, item.quotation_id, result.message
            )
            return result

        logger.info(
            "Quotation %s %s (new status %s)",
            item.quotation_id, action.value, result.new_status.value if result.new_status else "unknown",
        )
        await self.loader.refresh()
        return result

    @staticmethod
    def _normalize_result(raw: Any, quotation_id: str) -> DecisionResult:
        if isinstance(raw, DecisionResult):
            return raw
        if isinstance(raw, dict):
            raw = {"quotationId": quotation_id, **raw}
        try:
            return DecisionResult.model_validate(raw)
        except ValidationError as exc:
            raise TransportError("execute_decision", "malformed decision result") from exc
