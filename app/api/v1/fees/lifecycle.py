"""
Fee assignment state: status derivation, pending amount, and the single persist path.

Status table (cancelled is terminal and never re-derived):
    paid >= final                    -> paid
    0 < paid < final, due < today    -> overdue
    0 < paid < final, due >= today   -> partially_paid
    paid == 0,        due < today    -> overdue
    paid == 0,        due >= today   -> pending
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.enums import FeeStatus
from app.core.models import FeeAssignment

ZERO = Decimal("0")


def to_money(val) -> Decimal:
    """Coerce a stored amount to Decimal. None, NaN and non-numeric values count as 0."""
    if val is None or isinstance(val, bool):
        return ZERO
    if isinstance(val, Decimal):
        return val if val.is_finite() else ZERO
    try:
        out = Decimal(str(val))
    except (InvalidOperation, ValueError):
        return ZERO
    return out if out.is_finite() else ZERO


@dataclass(frozen=True)
class AssignmentSnapshot:
    paid_amount: Decimal
    final_amount: Decimal
    due_date: date
    status: Optional[str] = None

    @classmethod
    def of(cls, sfa: FeeAssignment) -> "AssignmentSnapshot":
        return cls(
            paid_amount=to_money(sfa.paid_amount),
            final_amount=to_money(sfa.final_amount),
            due_date=sfa.due_date,
            status=sfa.status,
        )


def derive_status(snapshot: AssignmentSnapshot, today: Optional[date] = None) -> FeeStatus:
    if snapshot.status == FeeStatus.cancelled.value:
        return FeeStatus.cancelled
    today = today or date.today()
    paid = snapshot.paid_amount
    past_due = snapshot.due_date is not None and snapshot.due_date < today
    if paid >= snapshot.final_amount:
        return FeeStatus.paid
    if past_due:
        return FeeStatus.overdue
    if paid > ZERO:
        return FeeStatus.partially_paid
    return FeeStatus.pending


def calculate_pending_amount(final_amount, paid_amount) -> Decimal:
    """max(final - paid, 0). Never negative, even when paid_amount is corrupted above final."""
    return max(to_money(final_amount) - to_money(paid_amount), ZERO)


def pending_of(sfa: FeeAssignment) -> Decimal:
    return calculate_pending_amount(sfa.final_amount, sfa.paid_amount)


def refresh_status(sfa: FeeAssignment, today: Optional[date] = None) -> bool:
    """Re-derive sfa.status in place. Returns True when it changed. Does not flush."""
    new_status = derive_status(AssignmentSnapshot.of(sfa), today).value
    if new_status != sfa.status:
        sfa.status = new_status
        return True
    return False


async def apply_assignment_state(db: AsyncSession, sfa: FeeAssignment, today: Optional[date] = None) -> FeeAssignment:
    """
    The one write path for fee assignments: re-derive status, then stage and flush.
    A stale version raises StaleDataError from the flush. Caller commits.
    """
    refresh_status(sfa, today)
    db.add(sfa)
    await db.flush()
    return sfa
