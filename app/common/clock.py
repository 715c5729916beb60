"""
Date helpers. Derived statuses compare calendar dates in one timezone.
"""
from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

from app.core.config import settings


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def local_today() -> date:
    """Today's calendar date in the business timezone."""
    return datetime.now(ZoneInfo(settings.TIMEZONE)).date()
