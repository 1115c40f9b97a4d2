"""
Timestamps are stored naive and in UTC; anything timezone-aware is converted
on the way in and rendered with a trailing "Z" on the way out.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _as_naive_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment
    return moment.astimezone(timezone.utc).replace(tzinfo=None)


def parse_iso_datetime(value) -> Optional[datetime]:
    """
    Backend and client timestamps: "2026-10-19", "2026-10-19T12:00",
    "2026-10-19T12:00:00Z" or with an explicit offset. Blank means None;
    a bare date is midnight UTC.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return _as_naive_utc(value)

    text = str(value).strip()
    if not text:
        return None
    if text[-1] in "zZ":
        text = f"{text[:-1]}+00:00"
    return _as_naive_utc(datetime.fromisoformat(text))


def parse_iso_date(value) -> Optional[date]:
    """Calendar date from a date, a datetime or either ISO form."""
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    if len(text) == 10:
        return date.fromisoformat(text)
    return parse_iso_datetime(text).date()


def to_utc_z(moment: Optional[datetime]) -> Optional[str]:
    if moment is None:
        return None
    stamp = _as_naive_utc(moment).replace(microsecond=0)
    return f"{stamp.isoformat()}Z"
