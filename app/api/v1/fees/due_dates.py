"""
Due-date calculation for fee assignments.

one-time / monthly: this month's due day, or next month's if already passed
quarterly:          due day in the quarter's first month (Jan/Apr/Jul/Oct), else 3 months later
half-yearly:        due day in Jan or Jul, else 6 months later
yearly:             due day in April of this year, else next April
anything else:      next month, same day

"Already passed" means strictly before the reference date, so a due day equal to
today stays in the current period. A due day the month lacks (31 in April) is
clamped to the month's last day rather than rolling into the next month.
"""

import calendar
from datetime import date
from typing import Optional

ONE_TIME = "one-time"
MONTHLY = "monthly"
QUARTERLY = "quarterly"
HALF_YEARLY = "half-yearly"
YEARLY = "yearly"

KNOWN_FREQUENCY_CODES = (ONE_TIME, MONTHLY, QUARTERLY, HALF_YEARLY, YEARLY)

# Academic year starts in April
YEARLY_DUE_MONTH = 4


def _on_day(year: int, month: int, day: int) -> date:
    """date(year, month, day) with month overflow rolled into later years and day clamped to month end."""
    year += (month - 1) // 12
    month = (month - 1) % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day, last_day))


def compute_due_date(
    frequency_code: Optional[str],
    day_of_month: int,
    reference_date: Optional[date] = None,
) -> date:
    """Next due date for a fee of the given frequency. Pure: same inputs, same output."""
    today = reference_date or date.today()
    code = (frequency_code or "").strip().lower()
    year, month = today.year, today.month

    if code in (ONE_TIME, MONTHLY):
        due = _on_day(year, month, day_of_month)
        if due < today:
            due = _on_day(year, month + 1, day_of_month)
        return due

    if code == QUARTERLY:
        quarter_start = ((month - 1) // 3) * 3 + 1
        due = _on_day(year, quarter_start, day_of_month)
        if due < today:
            due = _on_day(year, quarter_start + 3, day_of_month)
        return due

    if code == HALF_YEARLY:
        half_start = 1 if month <= 6 else 7
        due = _on_day(year, half_start, day_of_month)
        if due < today:
            due = _on_day(year, half_start + 6, day_of_month)
        return due

    if code == YEARLY:
        due = _on_day(year, YEARLY_DUE_MONTH, day_of_month)
        if due < today:
            due = _on_day(year + 1, YEARLY_DUE_MONTH, day_of_month)
        return due

    return _on_day(year, month + 1, day_of_month)
