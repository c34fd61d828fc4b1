from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def epoch_millis(dt: Optional[datetime] = None) -> int:
    """Milliseconds since the epoch for a UTC-naive datetime (default: now)."""
    if dt is None:
        dt = utcnow()
    return int(dt.replace(tzinfo=timezone.utc).timestamp() * 1000)


def parse_iso_date(value: Optional[str]) -> Optional[date]:
    """
    Parse an ISO-8601 date or datetime string into a date.

    - None / "" -> None
    - "YYYY-MM-DD" -> that date
    - "YYYY-MM-DDTHH:MM[:SS][Z|+HH:MM]" -> the UTC calendar date
    """
    if value is None:
        return None
    s = value.strip()
    if not s:
        return None

    if len(s) == 10:
        return date.fromisoformat(s)

    # Accept trailing Z
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"

    dt = datetime.fromisoformat(s)
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc)
    return dt.date()


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """
    Serializes datetime to ISO-8601 with trailing 'Z'.
    If dt is naive, it is treated as UTC.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt_utc = dt.astimezone(timezone.utc).replace(microsecond=0)
    return dt_utc.isoformat().replace("+00:00", "Z")
