"""Urgency and budget-compliance classification.

Pure functions of dates and amounts. Thresholds come from settings and can
be overridden per call; nothing here touches the network or the clock.
"""
import math
from datetime import datetime
from decimal import Decimal

from approval_queue.core.config import settings
from approval_queue.schemas.approval import BudgetCompliance, UrgencyLevel

SECONDS_PER_DAY = 86400

Amount = Decimal | int | float


def _to_decimal(value: Amount) -> Decimal:
    return value if isinstance(value, Decimal) else Decimal(str(value))


def elapsed_days(submission_date: datetime, now: datetime) -> float:
    """Fractional days between submission and now (never negative)."""
    return max((now - submission_date).total_seconds() / SECONDS_PER_DAY, 0.0)


def days_waiting(submission_date: datetime, now: datetime) -> int:
    return math.floor(elapsed_days(submission_date, now))


def urgency_for_days(
    days: float,
    *,
    medium_days: int | None = None,
    high_days: int | None = None,
    critical_days: int | None = None,
) -> UrgencyLevel:
    """Classify a waiting time in days. Lower bounds are inclusive."""
    medium_days = settings.URGENCY_MEDIUM_DAYS if medium_days is None else medium_days
    high_days = settings.URGENCY_HIGH_DAYS if high_days is None else high_days
    critical_days = settings.URGENCY_CRITICAL_DAYS if critical_days is None else critical_days

    if days >= critical_days:
        return UrgencyLevel.CRITICAL
    if days >= high_days:
        return UrgencyLevel.HIGH
    if days >= medium_days:
        return UrgencyLevel.MEDIUM
    return UrgencyLevel.LOW


def urgency_of(submission_date: datetime, now: datetime, **thresholds: int) -> UrgencyLevel:
    """Urgency of a quotation submitted at ``submission_date`` as seen at ``now``."""
    return urgency_for_days(elapsed_days(submission_date, now), **thresholds)


def budget_compliance_of(
    project_budget: Amount | None,
    spent_amount: Amount,
    candidate_amount: Amount,
    *,
    warning_utilization: float | None = None,
    exceeded_utilization: float | None = None,
) -> BudgetCompliance:
    """Classify a candidate spend against the project's budget.

    utilization = (spent + candidate) / budget. A project with no budget can
    only absorb a zero-amount candidate.

    Raises:
        ValueError: if any amount is negative.
    """
    spent = _to_decimal(spent_amount)
    candidate = _to_decimal(candidate_amount)
    budget = None if project_budget is None else _to_decimal(project_budget)

    if spent < 0 or candidate < 0 or (budget is not None and budget < 0):
        raise ValueError("Budget figures must be non-negative.")

    warning = _to_decimal(
        settings.BUDGET_WARNING_UTILIZATION if warning_utilization is None else warning_utilization
    )
    exceeded = _to_decimal(
        settings.BUDGET_EXCEEDED_UTILIZATION if exceeded_utilization is None else exceeded_utilization
    )

    if budget is None or budget == 0:
        return BudgetCompliance.COMPLIANT if candidate == 0 else BudgetCompliance.EXCEEDED

    utilization = (spent + candidate) / budget
    if utilization > exceeded:
        return BudgetCompliance.EXCEEDED
    if utilization > warning:
        return BudgetCompliance.WARNING
    return BudgetCompliance.COMPLIANT
