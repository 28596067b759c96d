"""Pydantic schemas for queue queries, pagination and session snapshots."""
import enum
import math
from collections.abc import Mapping
from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import AliasChoices, Field, computed_field

from approval_queue.schemas.approval import (
    ApprovalItem,
    ApprovalItemView,
    ApprovalStatus,
    BudgetCompliance,
    BulkOperationResult,
    CamelModel,
    UrgencyLevel,
)


# ─── Filters ───

class AmountRange(CamelModel):
    min: Decimal | None = None
    max: Decimal | None = None


class DateRange(CamelModel):
    start: datetime | None = None
    end: datetime | None = None


class ApprovalFilters(CamelModel):
    """Optional predicates for the queue query.

    An empty list or a missing value means "no constraint", never
    "match nothing".
    """

    status: list[ApprovalStatus] = Field(default_factory=list)
    urgency: list[UrgencyLevel] = Field(default_factory=list)
    budget_compliance: list[BudgetCompliance] = Field(default_factory=list)
    search_term: str | None = None
    amount_range: AmountRange | None = None
    date_range: DateRange | None = None
    has_documents: bool | None = None
    project_id: str | None = None
    manager_id: str | None = None

    def merge(self, changes: "Mapping[str, Any] | ApprovalFilters") -> "ApprovalFilters":
        """Return a copy with only the fields present in ``changes`` replaced."""
        if isinstance(changes, ApprovalFilters):
            parsed = changes
        else:
            parsed = ApprovalFilters.model_validate(dict(changes))
        return self.model_copy(
            update={name: getattr(parsed, name) for name in parsed.model_fields_set}
        )

    @property
    def is_empty(self) -> bool:
        return not (
            self.status
            or self.urgency
            or self.budget_compliance
            or self.search_term
            or self.amount_range
            or self.date_range
            or self.has_documents is not None
            or self.project_id
            or self.manager_id
        )


class SortDirection(str, enum.Enum):
    ASC = "asc"
    DESC = "desc"


class SortConfig(CamelModel):
    field: str = "submissionDate"
    direction: SortDirection = SortDirection.DESC


# ─── Pagination ───

class Pagination(CamelModel):
    """Paging position. Everything except page/size/total is derived."""

    page: int = Field(default=0, ge=0)
    size: int = Field(default=20, gt=0)
    total: int = Field(default=0, ge=0)

    @computed_field
    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.size)

    @computed_field
    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages - 1

    @computed_field
    @property
    def has_previous(self) -> bool:
        return self.page > 0


# ─── Queue source page ───

class QueuePage(CamelModel):
    """One page returned by the queue data source."""

    items: list[ApprovalItem] = Field(
        default_factory=list,
        validation_alias=AliasChoices("items", "content"),
    )
    total: int = Field(default=0, ge=0, validation_alias=AliasChoices("total", "totalElements"))
    total_pages: int | None = None
    has_next: bool | None = None
    has_previous: bool | None = None


# ─── Selection summary ───

class ApprovalSummary(CamelModel):
    total_selected: int = 0
    total_amount: Decimal = Decimal("0")
    projects_count: int = 0
    managers_count: int = 0
    urgent_count: int = 0
    budget_issues_count: int = 0


# ─── Review session snapshot ───

class BulkOperationView(CamelModel):
    state: str
    progress: int
    current_operation: str
    error: str | None = None
    validation_errors: list[str] = Field(default_factory=list)
    result: BulkOperationResult | None = None
    partial_failure: bool = False
    summary_message: str | None = None


class QueueSnapshot(CamelModel):
    items: list[ApprovalItemView]
    loading: bool
    error: str | None = None
    filters: ApprovalFilters
    sort: SortConfig
    pagination: Pagination
    selected_ids: list[str]
    is_all_selected: bool
    is_partially_selected: bool
    selected_count: int
    selected_total_amount: Decimal
    urgent_count: int
    can_bulk_process: bool
    bulk: BulkOperationView


# ─── Request bodies ───

class PageRequest(CamelModel):
    page: int = Field(ge=0)


class PageSizeRequest(CamelModel):
    size: int = Field(gt=0)


class UrgentApprovalsView(CamelModel):
    items: list[ApprovalItemView]
    count: int
    last_polled_at: datetime | None = None
    error: str | None = None
