"""
Week utility functions for mapping dates onto the planner's work week.

This module provides functions for locating the Monday of a reference week,
resolving day-of-month values (as shown by the source pages) to weekday
names, and formatting decimal hours.
"""

from datetime import date, datetime, timedelta
from typing import Dict, Optional, Tuple
import re

from .models import WEEKDAYS


MONTH_NAMES = [
    'january', 'february', 'march', 'april', 'may', 'june',
    'july', 'august', 'september', 'october', 'november', 'december',
]

_MONTH_DAY_NUMERIC = re.compile(r'(\d{1,2})/(\d{1,2})')
_MONTH_DAY_LONG = re.compile(
    r'\b(January|February|March|April|May|June|July|August|September|October|November|December'
    r'|Jan|Feb|Mar|Apr|Jun|Jul|Aug|Sept|Sep|Oct|Nov|Dec)\.?\s+(\d{1,2})(?:st|nd|rd|th)?\b',
    re.IGNORECASE,
)


class WeekParseError(Exception):
    """Exception raised when a week reference cannot be parsed."""
    pass


def parse_week_of(text: str) -> date:
    """
    Parse a ``--week-of`` value into a date.

    Accepted formats:
    - ISO date: "2026-02-09"
    - "today"

    Raises:
        WeekParseError: If the value is not a valid date
    """
    if not text or not text.strip():
        raise WeekParseError("Week reference cannot be empty")

    text = text.strip()
    if text.lower() == 'today':
        return date.today()

    try:
        return datetime.strptime(text, '%Y-%m-%d').date()
    except ValueError:
        raise WeekParseError(f"Invalid date: '{text}'. Expected format: YYYY-MM-DD")


def week_start(reference: date) -> date:
    """
    Get the Monday of the week containing ``reference``.

    Examples:
        >>> week_start(date(2026, 2, 12))
        datetime.date(2026, 2, 9)
    """
    return reference - timedelta(days=reference.weekday())


def build_week_day_map(reference: date) -> Dict[Tuple[int, int], str]:
    """
    Map (month, day) of each work day in the reference week to its weekday.

    Keys carry the month so weeks that span a month boundary
    (e.g. Jan 30 - Feb 3) resolve correctly.
    """
    monday = week_start(reference)
    day_map = {}
    for offset, weekday in enumerate(WEEKDAYS):
        d = monday + timedelta(days=offset)
        day_map[(d.month, d.day)] = weekday
    return day_map


def day_of_month_to_weekday(day: int, month: Optional[int], reference: date) -> Optional[str]:
    """
    Resolve a day of month to a weekday name within the reference week.

    Args:
        day: Day of month (1-31)
        month: Month (1-12), or None to match the day number alone
        reference: Any date in the week being planned

    Returns:
        Weekday name, or None if the date is not a work day of that week
    """
    day_map = build_week_day_map(reference)
    if month is not None:
        return day_map.get((month, day))

    for (_, map_day), weekday in day_map.items():
        if map_day == day:
            return weekday
    return None


def parse_month_name(name: str) -> Optional[int]:
    """
    Convert a full or abbreviated English month name to its number.

    Examples:
        >>> parse_month_name("Feb")
        2
        >>> parse_month_name("September")
        9
    """
    prefix = name.strip().lower()[:3]
    for index, month in enumerate(MONTH_NAMES, 1):
        if month.startswith(prefix):
            return index
    return None


def find_month_day(text: str) -> Optional[Tuple[Optional[int], int]]:
    """
    Find the first date in ``text``.

    Recognizes "2/10" (month/day) and "February 10" / "Feb 10th".

    Returns:
        Tuple of (month, day), or None if no date is present
    """
    if not text:
        return None

    numeric = _MONTH_DAY_NUMERIC.search(text)
    if numeric:
        month = int(numeric.group(1))
        day = int(numeric.group(2))
        if 1 <= month <= 12 and 1 <= day <= 31:
            return (month, day)

    long_form = _MONTH_DAY_LONG.search(text)
    if long_form:
        return (parse_month_name(long_form.group(1)), int(long_form.group(2)))

    return None


def snap_to_half_hour(hour: float) -> float:
    """Snap a decimal hour to the nearest 0.5 increment."""
    return round(hour * 2) / 2


def format_hour(hour: float) -> str:
    """
    Format a decimal hour as a clock time.

    Examples:
        >>> format_hour(13.5)
        '1:30 PM'
        >>> format_hour(8)
        '8:00 AM'
    """
    h = int(hour)
    m = int(round((hour - h) * 60))
    if m == 60:
        h, m = h + 1, 0
    period = 'PM' if h >= 12 else 'AM'
    display = h - 12 if h > 12 else (12 if h == 0 else h)
    return f"{display}:{m:02d} {period}"
