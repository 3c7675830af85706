"""
One date policy for every ingestion channel.

Every transaction date is a calendar date pinned to 12:00 wall-clock time,
so later timezone conversion during serialization cannot move it to the
previous or next day.
"""

from __future__ import annotations

import re
from datetime import date, datetime, time
from typing import Any, Optional

from dateutil import parser as date_parser

NOON = time(12, 0)

_ISO_DATE = re.compile(r"^\s*(\d{4})-(\d{1,2})-(\d{1,2})\s*$")


def at_noon(d: date) -> datetime:
    return datetime.combine(d, NOON)


def today_at_noon(today: Optional[date] = None) -> datetime:
    return at_noon(today or date.today())


def _parse_iso(value: str) -> Optional[date]:
    match = _ISO_DATE.match(value)
    if not match:
        return None
    year, month, day = (int(part) for part in match.groups())
    try:
        return date(year, month, day)
    except ValueError:
        return None


def _parse_free_form(value: str) -> Optional[date]:
    try:
        # The calendar date as written; any offset in the string is ignored.
        return date_parser.parse(value).date()
    except (ValueError, OverflowError):
        return None


def parse_date(value: Any) -> Optional[date]:
    """The calendar date of a raw value, or None when it has none."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value.strip():
        if _ISO_DATE.match(value):
            return _parse_iso(value)
        return _parse_free_form(value.strip())
    return None


def resolve_date(value: Any, *, today: Optional[date] = None) -> datetime:
    """
    Resolve a raw date to a noon-pinned datetime.

    - "YYYY-MM-DD" is split into components (never handed to a tz-aware parser)
    - any other string is parsed permissively
    - date / datetime objects keep their calendar date
    - anything unparseable or invalid becomes today at noon
    """
    parsed = parse_date(value)
    if parsed is None:
        return today_at_noon(today)
    return at_noon(parsed)
