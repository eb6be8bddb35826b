from __future__ import annotations

import calendar
from datetime import date, timedelta
from typing import Optional

from taskboard.domain.common.errors import ValidationError
from taskboard.domain.tasks.models import RECURRENCE_TYPES, Recurrence


def add_months(d: date, months: int) -> date:
    """Advance by whole months; a day past the end of the target month clamps to its last day."""
    month_index = d.month - 1 + months
    year = d.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(d.day, last_day))


def compute_next_due(recurrence_type: str, interval: int, from_date: date) -> Optional[date]:
    """
    none    -> None
    daily   -> from + interval days
    weekly  -> from + 7 * interval days
    monthly -> from + interval months (Jan 31 + 1 month = Feb 28/29)
    """
    if recurrence_type not in RECURRENCE_TYPES:
        raise ValidationError(f"Unknown recurrence type: {recurrence_type!r}")
    if recurrence_type == "none":
        return None
    if interval < 1:
        raise ValidationError("Recurrence interval must be a positive integer.")

    if recurrence_type == "daily":
        return from_date + timedelta(days=interval)
    if recurrence_type == "weekly":
        return from_date + timedelta(days=7 * interval)
    return add_months(from_date, interval)


def next_due_for(recurrence: Recurrence, target_date: Optional[date], today: date) -> Optional[date]:
    """nextDue is anchored on the target date, or on today when the task has none."""
    return compute_next_due(recurrence.type, recurrence.interval, target_date or today)
