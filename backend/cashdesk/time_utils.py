from __future__ import annotations

from datetime import datetime, time, timedelta, timezone
from typing import Optional


def utcnow() -> datetime:
    """Naive UTC timestamp; every stored datetime uses this convention."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Parse query/CLI input into a naive UTC datetime.

    Blank input gives None. Offsets ("Z", "+02:00") are converted to UTC,
    naive input is taken as UTC already. Raises ValueError on bad input.
    """
    if value is None or not value.strip():
        return None

    raw = value.strip()
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"

    parsed = datetime.fromisoformat(raw)
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def parse_range_bound(value: Optional[str], *, end: bool = False) -> Optional[datetime]:
    """
    Parse an inclusive range bound for settlement reports.

    A bare date as the end bound covers that whole day
    ("2026-01-31" -> 2026-01-31 23:59:59.999999).
    """
    parsed = parse_iso_datetime(value)
    if parsed is None:
        return None
    if end and "T" not in value and " " not in value.strip() and parsed.time() == time(0):
        return parsed + timedelta(days=1) - timedelta(microseconds=1)
    return parsed


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """Render as ISO-8601 with a trailing Z, to the second."""
    if dt is None:
        return None
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt.replace(microsecond=0).isoformat() + "Z"
