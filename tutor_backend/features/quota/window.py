"""
tutor_backend/features/quota/window.py

UTC calendar-day window used as the quota reset boundary.
"""

from datetime import datetime, time, timezone

from tutor_backend.core.clock import to_utc
from tutor_backend.models.quota import QuotaWindow


def window_for(now: datetime) -> QuotaWindow:
    """
    Return the UTC calendar day containing `now`.

    `end` is 23:59:59 of that day, not the following midnight; callers
    treat it as inclusive. Naive datetimes are interpreted as UTC.
    """
    day = to_utc(now).date()
    start = datetime.combine(day, time(0, 0, 0), tzinfo=timezone.utc)
    end = datetime.combine(day, time(23, 59, 59), tzinfo=timezone.utc)
    return QuotaWindow(start=start, end=end)
