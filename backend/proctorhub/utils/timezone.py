"""
Timezone helpers.

Timestamps are stored as naive UTC; the configured display zone is only used
when rendering times for people.
"""
from datetime import datetime
import pytz

from ..core.config import settings


def get_display_tz():
    return pytz.timezone(settings.default_timezone)


def get_utc_now() -> datetime:
    """Current time as naive UTC, the form stored in the database"""
    return datetime.now(pytz.UTC).replace(tzinfo=None)


def get_timezone_info() -> dict:
    now = datetime.now(get_display_tz())
    return {
        "timezone": settings.default_timezone,
        "offset": now.strftime("%z"),
        "current_time": now.strftime(settings.timezone_display_format)
    }


def seconds_between(start: datetime, end: datetime) -> int:
    return int((end - start).total_seconds())
