from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any


def utcnow() -> datetime:
    """Naive UTC timestamp, matching how the database columns are declared."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def iso_now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def iso_utc(dt: datetime) -> str:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def safe_text(v: Any) -> str:
    if v is None:
        return ""
    return str(v).strip()


def parse_date(s: Any) -> date | None:
    """Parse the leading YYYY-MM-DD of an ERP date or datetime string."""
    text = safe_text(s)
    if len(text) < 10:
        return None
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        return None


def to_number(v: Any) -> float:
    if v is None or v == "":
        return 0.0
    try:
        return float(v)
    except (TypeError, ValueError):
        return 0.0


def to_timestamp(v: Any) -> float:
    """Epoch seconds for an ERP date/datetime string, 0 when it cannot be parsed."""
    text = safe_text(v)
    if not text:
        return 0.0
    try:
        dt = datetime.fromisoformat(text.replace("Z", "+00:00").replace(" ", "T", 1))
    except ValueError:
        d = parse_date(text)
        if d is None:
            return 0.0
        dt = datetime(d.year, d.month, d.day)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.timestamp()
