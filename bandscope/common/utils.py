from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _plural(value: int, unit: str) -> str:
    return f"1 {unit} ago" if value == 1 else f"{value} {unit}s ago"


def format_relative_time(moment: datetime, now: Optional[datetime] = None) -> str:
    """Human-readable age of ``moment``, e.g. "Just now" or "3 days ago"."""
    now = now or utc_now()
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    seconds = int((now - moment).total_seconds())
    minutes = seconds // 60
    hours = minutes // 60
    days = hours // 24
    weeks = days // 7
    months = max(1, days // 30)

    if seconds < 60:
        return "Just now"
    if minutes < 60:
        return _plural(minutes, "minute")
    if hours < 24:
        return _plural(hours, "hour")
    if days < 7:
        return _plural(days, "day")
    if weeks < 4:
        return _plural(weeks, "week")
    return _plural(months, "month")
