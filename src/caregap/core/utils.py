"""Shared date utilities for clinical records.

All dates are handled as ISO ``YYYY-MM-DD`` strings and decoded into integer
components directly, never through a timezone-aware datetime, so a date never
shifts by a day when it is displayed or compared.
"""

from __future__ import annotations

import re
from datetime import date

_ISO_DATE = re.compile(r"(\d{4})-(\d{2})-(\d{2})")

DateParts = tuple[int, int, int]


def parse_iso_date(dt_str: str) -> str:
    """Extract YYYY-MM-DD from ISO datetime string."""
    if not dt_str:
        return ""
    m = re.match(r"(\d{4}-\d{2}-\d{2})", dt_str)
    return m.group(1) if m else dt_str[:10]


def date_parts(dt_str: str) -> DateParts | None:
    """Decode the (year, month, day) prefix of an ISO date string.

    Components are not range-checked: "2025-13-45" decodes to (2025, 13, 45).
    Returns None when the string does not start with YYYY-MM-DD.
    """
    if not dt_str:
        return None
    m = _ISO_DATE.match(dt_str.strip())
    if not m:
        return None
    return int(m.group(1)), int(m.group(2)), int(m.group(3))


def _as_parts(value: DateParts | date) -> DateParts:
    if isinstance(value, date):
        return value.year, value.month, value.day
    return value


def months_between(start: DateParts | date, end: DateParts | date) -> int:
    """Calendar months from start to end, ignoring the day of month.

    2025-01-31 -> 2025-02-01 counts as one month.
    """
    sy, sm, _ = _as_parts(start)
    ey, em, _ = _as_parts(end)
    return (ey - sy) * 12 + (em - sm)


def calculate_age(birth_date: str, today: date | None = None) -> int | None:
    """Whole years elapsed since birth_date as of today.

    Returns None when birth_date is missing or not an ISO date.
    """
    parts = date_parts(birth_date)
    if parts is None:
        return None
    today = today or date.today()
    by, bm, bd = parts
    age = today.year - by
    if (today.month, today.day) < (bm, bd):
        age -= 1
    return age


def format_display_date(dt_str: str) -> str:
    """Format YYYY-MM-DD as M/D/YYYY; anything else is returned unchanged."""
    if not dt_str:
        return ""
    parts = dt_str.split("-")
    if len(parts) != 3:
        return dt_str
    year, month, day = parts
    try:
        return f"{int(month)}/{int(day)}/{year}"
    except ValueError:
        return dt_str


def hl7_date_to_iso(hl7: str) -> str | None:
    """Convert an HL7 YYYYMMDD[hhmmss[...]] timestamp to YYYY-MM-DD.

    Works by fixed-offset slicing only. Non-numeric or out-of-range
    components pass through as-is; short or empty input gives None.
    """
    if not hl7:
        return None
    s = hl7.strip()
    if len(s) < 8:
        return None
    return f"{s[0:4]}-{s[4:6]}-{s[6:8]}"
