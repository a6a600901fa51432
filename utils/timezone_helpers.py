from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any
from zoneinfo import ZoneInfo

DEFAULT_TZ = ZoneInfo("Asia/Kolkata")


def parse_iso(value: Any) -> datetime | None:
    """Parse an ISO-8601 string into an aware datetime (naive values are taken as UTC)."""
    if not value:
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        dt = datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def utc_now_iso() -> str:
    """Current UTC time as ISO-8601 with a trailing Z."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def normalize_iso(value: Any) -> str | None:
    """Return ``value`` re-rendered as UTC ISO-8601, or None when unparseable."""
    dt = parse_iso(value)
    if dt is None:
        return None
    return dt.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def to_local(value: Any, tz: str | ZoneInfo | None = None) -> datetime | None:
    dt = parse_iso(value)
    if dt is None:
        return None
    zone = ZoneInfo(tz) if isinstance(tz, str) else (tz or DEFAULT_TZ)
    return dt.astimezone(zone)


def format_local(value: Any, fmt: str = "%Y-%m-%d %H:%M", tz: str | ZoneInfo | None = None) -> str:
    """Format for display; 'N/A' when empty, 'Invalid Date' when unparseable."""
    if not value:
        return "N/A"
    dt = to_local(value, tz)
    if dt:
        return dt.strftime(fmt)
    return "Invalid Date"
