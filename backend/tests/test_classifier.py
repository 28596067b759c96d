"""Unit tests for urgency and budget-compliance classification.

Pure functions; no mocks needed.
"""
from datetime import timedelta
from decimal import Decimal

import pytest

from approval_queue.schemas.approval import BudgetCompliance, UrgencyLevel
from approval_queue.services.classifier import (
    budget_compliance_of,
    days_waiting,
    urgency_for_days,
    urgency_of,
)


# ─── Urgency ──────────────────────────────────────────────────────────────────

@pytest.mark.parametrize(
    "days, expected",
    [
        (0, UrgencyLevel.LOW),
        (0.9, UrgencyLevel.LOW),
        (1, UrgencyLevel.MEDIUM),
        (2.9, UrgencyLevel.MEDIUM),
        (3, UrgencyLevel.HIGH),
        (6.9, UrgencyLevel.HIGH),
        (7, UrgencyLevel.CRITICAL),
        (100, UrgencyLevel.CRITICAL),
    ],
)
def test_urgency_thresholds(now, days, expected):
    """Lower bounds are inclusive: exactly 3 days is HIGH, exactly 7 is CRITICAL."""
    submitted = now - timedelta(days=days)
    assert urgency_of(submitted, now) == expected


def test_urgency_thresholds_can_be_overridden():
    """Custom thresholds change classification without touching the logic."""
    assert urgency_for_days(2, high_days=2) == UrgencyLevel.HIGH
    assert urgency_for_days(5, critical_days=5) == UrgencyLevel.CRITICAL
    assert urgency_for_days(0.5, medium_days=0) == UrgencyLevel.MEDIUM


def test_future_submission_is_low(now):
    """A submission date after 'now' (clock skew) counts as zero days waiting."""
    submitted = now + timedelta(hours=5)
    assert days_waiting(submitted, now) == 0
    assert urgency_of(submitted, now) == UrgencyLevel.LOW


def test_days_waiting_floors(now):
    assert days_waiting(now - timedelta(days=2, hours=23), now) == 2
    assert days_waiting(now - timedelta(days=3), now) == 3


# ─── Budget compliance ────────────────────────────────────────────────────────

def test_budget_warning_at_95_percent():
    """(85000 + 10000) / 100000 = 0.95 → WARNING."""
    assert budget_compliance_of(100000, 85000, 10000) == BudgetCompliance.WARNING


def test_budget_exceeded_at_105_percent():
    """(95000 + 10000) / 100000 = 1.05 → EXCEEDED."""
    assert budget_compliance_of(100000, 95000, 10000) == BudgetCompliance.EXCEEDED


def test_budget_compliant_at_60_percent():
    """(50000 + 10000) / 100000 = 0.6 → COMPLIANT."""
    assert budget_compliance_of(100000, 50000, 10000) == BudgetCompliance.COMPLIANT


def test_budget_boundaries_are_exclusive():
    """Exactly 90% is still COMPLIANT and exactly 100% is still WARNING."""
    assert budget_compliance_of(100000, 80000, 10000) == BudgetCompliance.COMPLIANT
    assert budget_compliance_of(100000, 90000, 10000) == BudgetCompliance.WARNING


def test_zero_budget_with_spend_is_exceeded():
    """A project with no allocated budget cannot absorb spend."""
    assert budget_compliance_of(0, 0, 500) == BudgetCompliance.EXCEEDED


def test_zero_budget_with_zero_candidate_is_compliant():
    assert budget_compliance_of(0, 0, 0) == BudgetCompliance.COMPLIANT


def test_missing_budget_treated_like_zero():
    assert budget_compliance_of(None, 0, 500) == BudgetCompliance.EXCEEDED
    assert budget_compliance_of(None, 0, 0) == BudgetCompliance.COMPLIANT


def test_decimal_inputs():
    result = budget_compliance_of(Decimal("1000.00"), Decimal("899.99"), Decimal("0.02"))
    assert result == BudgetCompliance.WARNING


@pytest.mark.parametrize(
    "budget, spent, candidate",
    [(-1, 0, 0), (100, -5, 0), (100, 0, -10)],
)
def test_negative_amounts_are_rejected(budget, spent, candidate):
    """Negative figures are a caller contract violation, never clamped."""
    with pytest.raises(ValueError):
        budget_compliance_of(budget, spent, candidate)


def test_item_compliance_is_derived_from_its_figures(make_item):
    """ApprovalItem.budget_compliance reflects budget, spent and its own amount."""
    ok = make_item(amount="10000", budget="100000", spent="50000")
    warn = make_item(amount="10000", budget="100000", spent="85000")
    no_budget = make_item(amount="500", budget=None, spent=None)

    assert ok.budget_compliance == BudgetCompliance.COMPLIANT
    assert warn.budget_compliance == BudgetCompliance.WARNING
    assert no_budget.budget_compliance == BudgetCompliance.EXCEEDED
