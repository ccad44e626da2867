"""Utilities for working with calendar dates and timestamps."""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Optional


def utc_now() -> datetime:
    """Return the current time as a timezone-aware ``datetime`` in UTC."""

    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime) -> datetime:
    """Normalise ``dt`` to a timezone-aware UTC ``datetime``."""

    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def now_iso() -> str:
    """Return the current UTC instant as ISO 8601 text (``...Z`` suffix)."""

    text = ensure_utc(utc_now()).replace(microsecond=0).isoformat()
    if text.endswith("+00:00"):
        return text[:-6] + "Z"
    return text


def today() -> date:
    return date.today()


def today_iso() -> str:
    """Return today's calendar date as ``YYYY-MM-DD``."""

    return today().isoformat()


def current_year() -> int:
    return today().year


def parse_iso_date(value: Optional[str]) -> Optional[date]:
    """Return a ``date`` for ISO text (date or datetime), ``None`` otherwise."""

    if not value:
        return None
    text = str(value).strip()
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        return None


def parse_local_datetime(day: str, time_of_day: str) -> Optional[datetime]:
    """Combine a ``YYYY-MM-DD`` date and ``HH:MM`` time into a naive datetime."""

    try:
        return datetime.strptime(f"{day} {time_of_day}", "%Y-%m-%d %H:%M")
    except (TypeError, ValueError):
        return None


__all__ = [
    "utc_now",
    "ensure_utc",
    "now_iso",
    "today",
    "today_iso",
    "current_year",
    "parse_iso_date",
    "parse_local_datetime",
]
