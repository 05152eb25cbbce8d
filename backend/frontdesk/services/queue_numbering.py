"""
Day-scoped queue numbering.

Numbers restart every clinic day because the lookup is bounded by the
arrival day, not because anything is reset.
"""

from datetime import datetime, timezone, tzinfo
from typing import Iterable
from zoneinfo import ZoneInfo


def _zone(tz_name: str) -> tzinfo:
    if tz_name.upper() == "UTC":
        return timezone.utc
    return ZoneInfo(tz_name)


def queue_day(moment: datetime, tz_name: str = "UTC") -> str:
    """Clinic calendar day (YYYY-MM-DD) of a moment. Naive datetimes are UTC."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(_zone(tz_name)).date().isoformat()


def next_queue_number(numbers_today: Iterable[int]) -> int:
    """Highest number issued today plus one, or 1 for the first arrival."""
    return max(numbers_today, default=0) + 1
