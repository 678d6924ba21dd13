"""Unit tests for fee assignment status derivation and pending amounts."""

from datetime import date
from decimal import Decimal

import pytest

from app.api.v1.fees.lifecycle import (
    AssignmentSnapshot,
    calculate_pending_amount,
    derive_status,
    refresh_status,
    to_money,
)
from app.core.enums import FeeStatus
from app.core.models import FeeAssignment

TODAY = date(2024, 6, 15)
PAST = date(2024, 6, 1)
FUTURE = date(2024, 7, 10)


@pytest.mark.parametrize(
    "paid, final, due, expected",
    [
        ("5000", "5000", FUTURE, FeeStatus.paid),
        ("5000", "5000", PAST, FeeStatus.paid),
        ("6000", "5000", PAST, FeeStatus.paid),
        ("2000", "5000", PAST, FeeStatus.overdue),
        ("2000", "5000", FUTURE, FeeStatus.partially_paid),
        ("0", "5000", PAST, FeeStatus.overdue),
        ("0", "5000", FUTURE, FeeStatus.pending),
        ("0", "5000", TODAY, FeeStatus.pending),
        ("0", "0", PAST, FeeStatus.paid),
    ],
)
def test_status_table(paid: str, final: str, due: date, expected: FeeStatus) -> None:
    snapshot = AssignmentSnapshot(paid_amount=Decimal(paid), final_amount=Decimal(final), due_date=due)
    assert derive_status(snapshot, TODAY) == expected


def test_cancelled_is_terminal() -> None:
    """Cancelled never flips back, even when fully paid or past due."""
    for paid in ("0", "5000"):
        snapshot = AssignmentSnapshot(
            paid_amount=Decimal(paid),
            final_amount=Decimal("5000"),
            due_date=PAST,
            status=FeeStatus.cancelled.value,
        )
        assert derive_status(snapshot, TODAY) == FeeStatus.cancelled


def test_pending_amount_never_negative() -> None:
    assert calculate_pending_amount(Decimal("5000"), Decimal("2000")) == Decimal("3000")
    assert calculate_pending_amount(Decimal("5000"), Decimal("7000")) == Decimal("0")


def test_pending_amount_treats_missing_values_as_zero() -> None:
    assert calculate_pending_amount(None, Decimal("5")) == Decimal("0")
    assert calculate_pending_amount(Decimal("100"), None) == Decimal("100")
    assert calculate_pending_amount("abc", "1") == Decimal("0")


def test_to_money_coercion() -> None:
    assert to_money(None) == Decimal("0")
    assert to_money("12.50") == Decimal("12.50")
    assert to_money(Decimal("NaN")) == Decimal("0")
    assert to_money("not a number") == Decimal("0")
    assert to_money(7) == Decimal("7")


def test_refresh_status_updates_in_place() -> None:
    sfa = FeeAssignment(
        paid_amount=Decimal("1000"),
        final_amount=Decimal("5000"),
        due_date=PAST,
        status=FeeStatus.pending.value,
    )
    assert refresh_status(sfa, TODAY) is True
    assert sfa.status == FeeStatus.overdue.value
    assert refresh_status(sfa, TODAY) is False
