from __future__ import annotations

from datetime import date, datetime
from typing import Optional


def ensure_aware(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        raise ValueError("datetime must be timezone-aware")
    return dt


def to_iso(dt: datetime) -> str:
    ensure_aware(dt)
    # store as ISO 8601 with offset
    return dt.isoformat()


def from_iso(s: str) -> datetime:
    return datetime.fromisoformat(s)


def parse_date(raw: Optional[str]) -> Optional[date]:
    """YYYY-MM-DD -> date. Also accepts a full ISO datetime and keeps its date part."""
    if not raw:
        return None
    text = str(raw).strip()
    if not text:
        return None
    return date.fromisoformat(text[:10])


def format_date(d: Optional[date]) -> Optional[str]:
    return d.isoformat() if d else None
