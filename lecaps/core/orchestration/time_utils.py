from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any


def parse_iso(dt_str: str) -> datetime:
    dt = datetime.fromisoformat(dt_str)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def now_iso() -> str:
    return now_utc().astimezone().isoformat()


def today_utc() -> date:
    return now_utc().date()


def to_utc_date(value: Any) -> date | None:
    """Calendar date of ``value`` in UTC; ``None`` when it cannot be read as a date."""
    if value is None:
        return None
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc).date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    if not text:
        return None
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return to_utc_date(parse_iso(text))
    except ValueError:
        return None


def utc_day_diff(later: date, earlier: date) -> int:
    return (later - earlier).days
