"""Pydantic schemas for approval records, decisions and audit history.

Payloads from the approval service are camelCase; fields are snake_case
with camelCase aliases so records validate from either form.
"""
import enum
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel


# ─── Enumerations ───

class ApprovalStatus(str, enum.Enum):
    PENDING = "PENDING"
    UNDER_REVIEW = "UNDER_REVIEW"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    RETURNED = "RETURNED"


class UrgencyLevel(str, enum.Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class BudgetCompliance(str, enum.Enum):
    COMPLIANT = "COMPLIANT"
    WARNING = "WARNING"
    EXCEEDED = "EXCEEDED"


class ApprovalAction(str, enum.Enum):
    APPROVE = "APPROVE"
    REJECT = "REJECT"
    REQUEST_CHANGES = "REQUEST_CHANGES"


# Only these statuses may be approved, rejected or bulk-processed
PROCESSABLE_STATUSES = frozenset({ApprovalStatus.PENDING, ApprovalStatus.UNDER_REVIEW})
URGENT_LEVELS = frozenset({UrgencyLevel.HIGH, UrgencyLevel.CRITICAL})
BUDGET_ISSUE_LEVELS = frozenset({BudgetCompliance.WARNING, BudgetCompliance.EXCEEDED})


def _as_utc(value: datetime | None) -> datetime | None:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ─── Approval item ───

class ApprovalItem(CamelModel):
    """One quotation waiting for a decision, as loaded from the queue source.

    Urgency, days waiting and budget compliance are not stored: they are
    computed from the submission date and budget figures each time they
    are read.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str
    quotation_id: str
    quotation_number: str
    project_id: str
    project_name: str
    manager_id: str = Field(
        validation_alias=AliasChoices("managerId", "projectManagerId", "manager_id"),
        serialization_alias="managerId",
    )
    manager_name: str = Field(
        default="",
        validation_alias=AliasChoices("managerName", "projectManagerName", "manager_name"),
        serialization_alias="managerName",
    )
    description: str | None = None
    line_item_count: int = 0
    has_documents: bool = False
    total_amount: Decimal = Field(ge=0)
    currency: str = "USD"
    submission_date: datetime
    last_updated: datetime | None = None
    status: ApprovalStatus

    # Budget figures for the owning project; spent_amount excludes this quotation
    project_budget: Decimal | None = Field(default=None, ge=0)
    spent_amount: Decimal | None = Field(default=None, ge=0)

    @model_validator(mode="before")
    @classmethod
    def _derive_spent_amount(cls, data: Any) -> Any:
        """Fill spentAmount from projectBudget - remainingBudget when only those are sent."""
        if not isinstance(data, dict):
            return data
        if data.get("spentAmount") is not None or data.get("spent_amount") is not None:
            return data
        budget = data.get("projectBudget", data.get("project_budget"))
        remaining = data.get("remainingBudget", data.get("remaining_budget"))
        if budget is None or remaining is None:
            return data
        try:
            spent = Decimal(str(budget)) - Decimal(str(remaining))
        except ArithmeticError:
            # left to field validation to report
            return data
        return {**data, "spent_amount": max(spent, Decimal("0"))}

    @field_validator("submission_date", "last_updated")
    @classmethod
    def _ensure_tz(cls, value: datetime | None) -> datetime | None:
        return _as_utc(value)

    @property
    def is_processable(self) -> bool:
        return self.status in PROCESSABLE_STATUSES

    def days_waiting(self, now: datetime) -> int:
        from approval_queue.services.classifier import days_waiting

        return days_waiting(self.submission_date, now)

    def urgency_level(self, now: datetime) -> UrgencyLevel:
        from approval_queue.services.classifier import urgency_of

        return urgency_of(self.submission_date, now)

    @property
    def budget_compliance(self) -> BudgetCompliance:
        from approval_queue.services.classifier import budget_compliance_of

        return budget_compliance_of(
            self.project_budget,
            self.spent_amount or Decimal("0"),
            self.total_amount,
        )

    def to_view(self, now: datetime) -> "ApprovalItemView":
        """Snapshot the item with its derived classifications evaluated at ``now``."""
        return ApprovalItemView(
            **self.model_dump(),
            days_waiting=self.days_waiting(now),
            urgency_level=self.urgency_level(now),
            budget_compliance=self.budget_compliance,
        )


class ApprovalItemView(CamelModel):
    """Read-only presentation copy of an ApprovalItem with derived fields filled in."""

    id: str
    quotation_id: str
    quotation_number: str
    project_id: str
    project_name: str
    manager_id: str
    manager_name: str
    description: str | None
    line_item_count: int
    has_documents: bool
    total_amount: Decimal
    currency: str
    submission_date: datetime
    last_updated: datetime | None
    status: ApprovalStatus
    project_budget: Decimal | None
    spent_amount: Decimal | None
    days_waiting: int
    urgency_level: UrgencyLevel
    budget_compliance: BudgetCompliance


# ─── Single decisions ───

class DecisionResult(CamelModel):
    quotation_id: str
    success: bool = True
    new_status: ApprovalStatus | None = None
    message: str | None = None
    processed_at: datetime | None = None


class QuickApproveRequest(CamelModel):
    comments: str | None = None


class QuickRejectRequest(CamelModel):
    reason: str
    comments: str | None = None


# ─── Bulk operations ───

class BulkOperationRequest(CamelModel):
    quotation_ids: list[str]
    action: ApprovalAction
    comments: str | None = None
    reason: str | None = None


class BulkDecisionBody(CamelModel):
    """Body for the bulk endpoints; ids come from the reviewer's selection."""

    comments: str | None = None
    reason: str | None = None


class BulkItemResult(CamelModel):
    id: str = Field(validation_alias=AliasChoices("id", "quotationId", "quotation_id"))
    success: bool
    new_status: ApprovalStatus | None = None
    error: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _message_as_error(cls, data: Any) -> Any:
        """Per-item failures arrive as ``{success: false, message}``."""
        if isinstance(data, dict) and not data.get("success", True) and not data.get("error"):
            message = data.get("message")
            if message:
                return {**data, "error": message}
        return data


class BulkOperationResult(CamelModel):
    processed_count: int = Field(ge=0)
    failed_count: int = Field(ge=0)
    per_item_results: list[BulkItemResult] = Field(
        default_factory=list,
        validation_alias=AliasChoices("perItemResults", "results", "per_item_results"),
        serialization_alias="perItemResults",
    )
    message: str | None = None

    @property
    def is_partial_failure(self) -> bool:
        return self.failed_count > 0 and self.processed_count > 0

    def summary_message(self, action: ApprovalAction) -> str:
        if self.failed_count > 0:
            return (
                f"{self.processed_count} quotations processed successfully, "
                f"{self.failed_count} failed"
            )
        verb = {
            ApprovalAction.APPROVE: "approved successfully",
            ApprovalAction.REJECT: "rejected successfully",
            ApprovalAction.REQUEST_CHANGES: "returned for changes",
        }[action]
        return f"{self.processed_count} quotations {verb}"


class BulkValidation(CamelModel):
    is_valid: bool
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


# ─── Audit history ───

class ApprovalHistoryEntry(CamelModel):
    """Immutable audit record for one decision on a quotation."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str | None = None
    quotation_id: str | None = None
    action: str
    performed_by: str
    performed_by_name: str | None = None
    old_status: ApprovalStatus | None = None
    new_status: ApprovalStatus | None = None
    comments: str | None = None
    reason: str | None = None
    timestamp: datetime

    @field_validator("timestamp")
    @classmethod
    def _ensure_tz(cls, value: datetime) -> datetime:
        return _as_utc(value)
