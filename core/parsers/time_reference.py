"""Relative-day and explicit-date extraction."""

from __future__ import annotations

import re
from datetime import date, timedelta
from typing import Optional

from core.parsers.types import TimeReference
from core.patterns import EXPLICIT_DATE_LABEL, TIME_REFERENCES

_DATE_PATTERN = re.compile(r"(?<!\d)(?P<day>\d{1,2})[/-](?P<month>\d{1,2})(?:[/-](?P<year>\d{2,4}))?(?!\d)")


def normalize_year(year: int) -> int:
    """Two-digit years belong to the 2000s ("23" -> 2023)."""

    return year + 2000 if year < 100 else year


def extract_time_reference(message: str, today: Optional[date] = None) -> Optional[TimeReference]:
    """Resolve "demain"/"hier"/... or a dd/mm[/yy] date against ``today``.

    Returns None when nothing matches or the numeric date is not a real
    calendar day.
    """

    lowered = (message or "").strip().lower()
    if not lowered:
        return None
    reference_day = today or date.today()

    for label, offset in TIME_REFERENCES.items():
        if re.search(rf"(?<!\w){re.escape(label)}(?!\w)", lowered):
            return TimeReference(label=label, offset=offset, date=reference_day + timedelta(days=offset))

    match = _DATE_PATTERN.search(lowered)
    if not match:
        return None
    day = int(match.group("day"))
    month = int(match.group("month"))
    raw_year = match.group("year")
    year = normalize_year(int(raw_year)) if raw_year else reference_day.year
    try:
        resolved = date(year, month, day)
    except ValueError:
        return None
    return TimeReference(label=EXPLICIT_DATE_LABEL, date=resolved)


__all__ = ["extract_time_reference", "normalize_year"]
