"""
Time helpers.

Journeys, stop completions, school visits and attendance are bucketed by the
calendar day of the service timezone.
"""

from datetime import date, datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from fleet_backend.app.core.config import settings


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """
    Normalize a stored timestamp to aware UTC.

    SQLite drops tzinfo on round trip, PostgreSQL keeps it.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def service_today(now: Optional[datetime] = None) -> date:
    """Calendar date of ``now`` in the configured service timezone."""
    now = now or utcnow()
    return as_utc(now).astimezone(ZoneInfo(settings.service_timezone)).date()


def minutes_between(start: datetime, end: datetime) -> float:
    return (as_utc(end) - as_utc(start)).total_seconds() / 60
