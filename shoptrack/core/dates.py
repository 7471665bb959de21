"""Timestamp helpers.

Timestamps are persisted as ISO-8601 UTC strings with a trailing ``Z`` and a
fixed seconds precision, so plain string comparison orders them correctly.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone

__all__ = ["day_end_iso", "day_start_iso", "parse_iso", "to_iso", "utcnow", "utcnow_iso"]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_iso(value: datetime) -> str:
    """Render ``value`` in the storage format. Naive datetimes are taken as UTC."""

    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.replace(microsecond=0, tzinfo=None).isoformat(timespec="seconds") + "Z"


def utcnow_iso() -> str:
    return to_iso(utcnow())


def parse_iso(value: str | None) -> datetime | None:
    """Parse a stored timestamp back into an aware datetime (``None`` if invalid)."""

    if not value:
        return None
    raw = value.strip()
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def day_start_iso(day: date) -> str:
    return to_iso(datetime.combine(day, time.min, tzinfo=timezone.utc))


def day_end_iso(day: date) -> str:
    """Exclusive upper bound covering the whole of ``day``."""

    return day_start_iso(day + timedelta(days=1))
