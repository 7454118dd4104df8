from __future__ import annotations

from datetime import date, datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_aware(value: datetime | None) -> datetime | None:
    """
    Some backends (SQLite) hand back naive datetimes even for timezone=True
    columns. Everything we store is UTC, so a naive value is UTC.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def start_of_month(now: datetime) -> datetime:
    now = ensure_aware(now)
    return now.astimezone(timezone.utc).replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def month_key(now: datetime) -> date:
    return start_of_month(now).date()
