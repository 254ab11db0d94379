from __future__ import annotations

import calendar
from datetime import date, datetime, timezone
from typing import Any, Optional
from zoneinfo import ZoneInfo

from ..core.exceptions import ValidationError


def parse_iso_date(value: str) -> date:
    """Parse YYYY-MM-DD string into date."""
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except (TypeError, ValueError):
        raise ValidationError(f"日付の形式が不正です (YYYY-MM-DD): {value!r}")


def parse_iso_datetime(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp coming back from the list store.

    The store returns UTC values with a trailing 'Z'. Anything unparsable is
    treated as missing.
    """

    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str):
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


def format_iso_datetime(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def parse_hhmm(value: str, *, on: date, tz_name: str) -> Optional[datetime]:
    """Combine an 'HH:MM' input with a record date in the facility's timezone."""

    v = (value or "").strip()
    if not v:
        return None
    try:
        t = datetime.strptime(v, "%H:%M").time()
    except ValueError:
        raise ValidationError("時刻の形式が不正です (HH:MM)")
    return datetime.combine(on, t, tzinfo=ZoneInfo(tz_name))


def month_bounds(year: int, month: int) -> tuple[date, date]:
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


def now_utc() -> datetime:
    """Current UTC time.

    Note: Wrapped so tests can patch/mocked easier.
    """
    return datetime.now(timezone.utc)
