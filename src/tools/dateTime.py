# src/tools/dateTime.py

import calendar
import math
from datetime import date, datetime, time, timedelta
from typing import Optional

TODAY_WORDS = ("hoje", "today")
LITERAL_DATE_FORMATS = ("%Y-%m-%d", "%d/%m/%Y", "%d/%m/%y", "%d-%m-%Y")


def add_months(start: date, months: int) -> date:
    """
    Add calendar months to a date.

    The day is clamped to the length of the target month, so
    2025-01-31 + 1 month is 2025-02-28.
    """
    month = start.month + months
    year = start.year
    while month > 12:
        month -= 12
        year += 1
    while month < 1:
        month += 12
        year -= 1

    day = min(start.day, calendar.monthrange(year, month)[1])
    return start.replace(year=year, month=month, day=day)


def parse_iso_date(value: Optional[str]) -> Optional[date]:
    """Parse a YYYY-MM-DD date (a trailing time part is ignored)."""
    if not value or not isinstance(value, str):
        return None
    try:
        return datetime.strptime(value.strip()[:10], "%Y-%m-%d").date()
    except ValueError:
        return None


def parse_transaction_date(value: Optional[str], today: date) -> date:
    """
    Resolve the date the oracle attached to a transaction.

    "hoje" (or nothing) is today; other values are read as a literal
    date in one of LITERAL_DATE_FORMATS. Values that cannot be read
    fall back to today.
    """
    if value is None:
        return today
    text = str(value).strip()
    if not text or text.lower() in TODAY_WORDS:
        return today

    iso = parse_iso_date(text)
    if iso:
        return iso
    for fmt in LITERAL_DATE_FORMATS[1:]:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return today


def parse_goal_target_date(value: Optional[str], today: date) -> date:
    """ISO target dates are kept; anything else ("dezembro", ...) becomes three months from today."""
    return parse_iso_date(value) or add_months(today, 3)


def start_of_day(day: date) -> datetime:
    return datetime.combine(day, time.min)


def days_until(target: date, now: datetime) -> int:
    """Whole days from now until midnight of the target date, rounded up."""
    delta = start_of_day(target) - now
    return math.ceil(delta.total_seconds() / 86400)


def days_ago(today: date, days: int) -> date:
    return today - timedelta(days=days)
