# financial_service/utils/tz.py
from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from flask import current_app, has_app_context

DEFAULT_TZ = "Asia/Kolkata"

def get_zoneinfo(tzname: str | None):
    name = (tzname or DEFAULT_TZ).strip() or DEFAULT_TZ
    try:
        return ZoneInfo(name)
    except ZoneInfoNotFoundError:
        # if tzdata isn’t installed or the key is bad, fall back
        return ZoneInfo("UTC")

def local_today() -> date:
    """Calendar date in the service timezone (TIMEZONE config)."""
    tzname = current_app.config.get("TIMEZONE") if has_app_context() else None
    return datetime.now(get_zoneinfo(tzname)).date()

def utcnow() -> datetime:
    """Naive UTC timestamp, the way rows are stored."""
    return datetime.now(timezone.utc).replace(tzinfo=None)
