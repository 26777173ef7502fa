# tenant_lifecycle/domain/clock.py
from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any


def utcnow() -> datetime:
    return datetime.utcnow()


def as_naive_utc(v: Any) -> datetime:
    """
    Store-side timestamps are naive UTC (DateTime columns without tz).
    Accepts aware/naive datetimes, dates and ISO strings.
    """
    if isinstance(v, str):
        v = datetime.fromisoformat(v)
    if isinstance(v, date) and not isinstance(v, datetime):
        return datetime(v.year, v.month, v.day)
    if not isinstance(v, datetime):
        raise TypeError(f"expected datetime, got {type(v).__name__}")
    if v.tzinfo is not None:
        return v.astimezone(timezone.utc).replace(tzinfo=None)
    return v
