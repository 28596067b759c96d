"""Eligibility checks for bulk approve/reject/request-changes.

Synchronous and side-effect free. Every rule is evaluated so the reviewer
sees all violations at once:

  1. empty selection
  2. more than BULK_MAX_SELECTION items
  3. items not PENDING/UNDER_REVIEW
  4. APPROVE with WARNING/EXCEEDED budget compliance
  5. mixed managers (warning only)
  6. decision inputs (reason/comments) the approval service would refuse
"""
import logging

from approval_queue.core.config import settings
from approval_queue.schemas.approval import (
    ApprovalAction,
    ApprovalItem,
    BUDGET_ISSUE_LEVELS,
    BulkValidation,
)

logger = logging.getLogger(__name__)


def decision_input_errors(
    action: ApprovalAction,
    comments: str | None = None,
    reason: str | None = None,
    *,
    max_comment_length: int | None = None,
    reason_min_length: int | None = None,
) -> list[str]:
    """Return the problems with a decision's free-text inputs."""
    max_len = settings.MAX_COMMENT_LENGTH if max_comment_length is None else max_comment_length
    min_reason = settings.REJECTION_REASON_MIN_LENGTH if reason_min_length is None else reason_min_length
    errors: list[str] = []

    if action == ApprovalAction.REJECT:
        stripped = (reason or "").strip()
        if not stripped:
            errors.append("A rejection reason is required")
        elif len(stripped) < min_reason:
            errors.append(f"Rejection reason must be at least {min_reason} characters")
    if action == ApprovalAction.REQUEST_CHANGES and not (comments or "").strip():
        errors.append("Comments are required when requesting changes")

    if comments and len(comments) > max_len:
        errors.append(f"Comments cannot exceed {max_len} characters")
    if reason and len(reason) > max_len:
        errors.append(f"Reason cannot exceed {max_len} characters")
    return errors


def validate_bulk_operation(
    items: list[ApprovalItem],
    action: ApprovalAction,
    comments: str | None = None,
    reason: str | None = None,
    *,
    max_selection: int | None = None,
) -> BulkValidation:
    max_selection = settings.BULK_MAX_SELECTION if max_selection is None else max_selection
    errors: list[str] = []
    warnings: list[str] = []

    if not items:
        errors.append("No items selected for bulk operation")

    if len(items) > max_selection:
        errors.append(f"Cannot process more than {max_selection} items at once (max selection)")

    not_processable = [item for item in items if not item.is_processable]
    if not_processable:
        errors.append(f"{len(not_processable)} items are not in a processable status")

    if action == ApprovalAction.APPROVE:
        budget_issues = [item for item in items if item.budget_compliance in BUDGET_ISSUE_LEVELS]
        if budget_issues:
            errors.append(
                f"{len(budget_issues)} items have budget compliance issues and must be reviewed individually"
            )

    managers = {item.manager_id for item in items}
    if len(managers) > 1:
        message = f"Bulk operation spans {len(managers)} different project managers"
        warnings.append(message)
        logger.warning(message)

    errors.extend(decision_input_errors(action, comments, reason))

    return BulkValidation(is_valid=not errors, errors=errors, warnings=warnings)


def can_bulk_process(items: list[ApprovalItem], *, max_selection: int | None = None) -> bool:
    """Quick precheck covering selection size and status only."""
    max_selection = settings.BULK_MAX_SELECTION if max_selection is None else max_selection
    if not items or len(items) > max_selection:
        return False
    return all(item.is_processable for item in items)
