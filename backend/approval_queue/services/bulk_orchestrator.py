"""Bulk decision orchestration.

State machine::

    IDLE -> VALIDATING -> PROCESSING -> COMPLETED | FAILED
      ^         |                            |
      +---------+ (invalid)                  +--> reset() --> IDLE

A batch that ran with some failed items is COMPLETED; FAILED is reserved for
transport or server errors that prevented the batch from producing results.
Only one bulk operation may be outstanding: a new run is refused until the
previous one has been reset.
"""
import asyncio
import enum
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from pydantic import ValidationError

from approval_queue.core.config import settings
from approval_queue.core.errors import (
    BulkOperationInProgressError,
    BulkValidationError,
    TransportError,
)
from approval_queue.schemas.approval import (
    ApprovalAction,
    ApprovalItem,
    BulkOperationResult,
)
from approval_queue.services.bulk_validator import validate_bulk_operation
from approval_queue.services.contracts import DecisionExecutor

logger = logging.getLogger(__name__)

COMPLETE_PROGRESS = 100


class BulkOperationState(str, enum.Enum):
    IDLE = "IDLE"
    VALIDATING = "VALIDATING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


StateListener = Callable[[BulkOperationState], None]


class BulkOrchestrator:
    def __init__(
        self,
        executor: DecisionExecutor,
        *,
        progress_step: int | None = None,
        progress_ceiling: int | None = None,
        progress_interval: float | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.executor = executor
        self.progress_step = settings.BULK_PROGRESS_STEP if progress_step is None else progress_step
        self.progress_ceiling = settings.BULK_PROGRESS_CEILING if progress_ceiling is None else progress_ceiling
        self.progress_interval = (
            settings.BULK_PROGRESS_INTERVAL_SECONDS if progress_interval is None else progress_interval
        )
        self._sleep = sleep

        self.state = BulkOperationState.IDLE
        self.progress = 0
        self.current_operation = ""
        self.action: ApprovalAction | None = None
        self.result: BulkOperationResult | None = None
        self.error: str | None = None
        self.validation_errors: list[str] = []
        self.warnings: list[str] = []
        self._listeners: list[StateListener] = []

    def add_listener(self, listener: StateListener) -> None:
        self._listeners.append(listener)

    def _transition(self, state: BulkOperationState) -> None:
        logger.debug("Bulk operation %s -> %s", self.state.value, state.value)
        self.state = state
        for listener in self._listeners:
            listener(state)

    @property
    def is_processing(self) -> bool:
        return self.state == BulkOperationState.PROCESSING

    @property
    def summary_message(self) -> str | None:
        if self.result is None or self.action is None:
            return None
        return self.result.summary_message(self.action)

    async def _advance_progress(self) -> None:
        # Latency is unknown, so this is only an estimate capped below 100
        while self.progress < self.progress_ceiling:
            await self._sleep(self.progress_interval)
            self.progress = min(self.progress + self.progress_step, self.progress_ceiling)

    async def run(
        self,
        items: list[ApprovalItem],
        action: ApprovalAction,
        comments: str | None = None,
        reason: str | None = None,
    ) -> BulkOperationResult:
        """Validate ``items`` and send them to the decision executor as one batch.

        Raises:
            BulkOperationInProgressError: if the previous run was not reset.
            BulkValidationError: if the selection breaks any rule (state is IDLE again).
            TransportError: if the batch could not run (state is FAILED).
        """
        if self.state != BulkOperationState.IDLE:
            raise BulkOperationInProgressError(
                f"Bulk operation is {self.state.value}; reset it before starting another."
            )

        self.action = action
        self.result = None
        self.error = None
        self.validation_errors = []
        self._transition(BulkOperationState.VALIDATING)

        validation = validate_bulk_operation(items, action, comments, reason)
        self.warnings = validation.warnings
        if not validation.is_valid:
            self.validation_errors = validation.errors
            self.action = None
            self._transition(BulkOperationState.IDLE)
            raise BulkValidationError(validation.errors)

        quotation_ids = [item.quotation_id for item in items]
        self.progress = 0
        self.current_operation = (
            f"Processing {action.value.lower()} for {len(quotation_ids)} quotations..."
        )
        self._transition(BulkOperationState.PROCESSING)
        logger.info("Bulk %s started for %d quotations", action.value, len(quotation_ids))

        ticker = asyncio.create_task(self._advance_progress())
        try:
            raw = await self.executor.execute_bulk_decision(
                quotation_ids, action, comments=comments, reason=reason
            )
            result = self._normalize_result(raw)
        except (Exception, asyncio.CancelledError) as exc:
            self.error = str(exc) or type(exc).__name__
            self.progress = 0
            self.current_operation = "Failed"
            self._transition(BulkOperationState.FAILED)
            logger.warning("Bulk %s failed before any result: %s", action.value, exc)
            raise
        finally:
            ticker.cancel()
            try:
                await ticker
            except asyncio.CancelledError:
                pass

        self.progress = COMPLETE_PROGRESS
        self.current_operation = "Completed"
        self.result = result
        self._transition(BulkOperationState.COMPLETED)
        if result.failed_count:
            logger.warning(
                "Bulk %s partially failed: processed=%d failed=%d",
                action.value, result.processed_count, result.failed_count,
            )
        else:
            logger.info("Bulk %s completed: processed=%d", action.value, result.processed_count)
        return result

    @staticmethod
    def _normalize_result(raw: Any) -> BulkOperationResult:
        if isinstance(raw, BulkOperationResult):
            return raw
        try:
            return BulkOperationResult.model_validate(raw)
        except ValidationError as exc:
            raise TransportError("execute_bulk_decision", "malformed bulk result") from exc

    async def approve(self, items: list[ApprovalItem], comments: str | None = None) -> BulkOperationResult:
        return await self.run(items, ApprovalAction.APPROVE, comments=comments)

    async def reject(
        self, items: list[ApprovalItem], reason: str, comments: str | None = None
    ) -> BulkOperationResult:
        return await self.run(items, ApprovalAction.REJECT, comments=comments, reason=reason)

    async def request_changes(self, items: list[ApprovalItem], comments: str) -> BulkOperationResult:
        return await self.run(items, ApprovalAction.REQUEST_CHANGES, comments=comments)

    def reset(self) -> None:
        """Return to IDLE, dropping progress, error and result.

        Raises:
            BulkOperationInProgressError: while a batch is still outstanding.
        """
        if self.state == BulkOperationState.PROCESSING:
            raise BulkOperationInProgressError("Cannot reset while a bulk operation is processing.")
        self.progress = 0
        self.current_operation = ""
        self.action = None
        self.result = None
        self.error = None
        self.validation_errors = []
        self.warnings = []
        if self.state != BulkOperationState.IDLE:
            self._transition(BulkOperationState.IDLE)
