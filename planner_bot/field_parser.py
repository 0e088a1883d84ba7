"""
Field parsing for raw text scraped from the source pages.

Pure functions that turn text fragments (cell labels, ticket descriptions,
calendar labels, column headers) into structured values. No I/O.
"""

import re
from dataclasses import dataclass
from datetime import date
from typing import Dict, List, Optional, Tuple

from .selectors import (
    ReportGridSelectors,
    NAV_CHROME_PATTERNS,
    CAPITALIZED_PAIR_PATTERN,
    CARD_TEXT_MIN_LENGTH,
    CARD_TEXT_MAX_LENGTH,
)
from .week_utils import find_month_day, day_of_month_to_weekday


TIER_ULTIMATE = 'ultimate'
TIER_PREMIUM = 'premium'
TIER_STANDARD = 'standard'

# Estimated setup effort per tier (hours)
SETUP_HOURS = {
    TIER_ULTIMATE: 8,
    TIER_PREMIUM: 6,
    TIER_STANDARD: 3,
}

_TIME_RANGE = re.compile(
    r'(\d{1,2})(?::(\d{2}))?\s*(am|pm)?\s*(?:-|–|to)\s*(\d{1,2})(?::(\d{2}))?\s*(am|pm)',
    re.IGNORECASE,
)
_TIME_AT = re.compile(r'\bat\s+(\d{1,2})(?::(\d{2}))?\s*(am|pm)', re.IGNORECASE)
_CLOCK_TIME = re.compile(r'(\d{1,2}):(\d{2})\s*(AM|PM)', re.IGNORECASE)
_HOURS = re.compile(r'(\d+\.?\d*)\s*hours?', re.IGNORECASE)
_LEADING_NUMBER = re.compile(r'^\s*(\d+(?:\.\d+)?)')
_REVISION_LABEL = re.compile(r'Design\s+Revisions?\s+[\w\-()]+', re.IGNORECASE)
_ASSIGNEES = re.compile(r'\(([^)]+)\)')
_SHAREPOINT_URL = re.compile(r'https://[^\s<>"]+\.sharepoint\.com[^\s<>"]*\b', re.IGNORECASE)
_CAPITALIZED_PAIR = re.compile(CAPITALIZED_PAIR_PATTERN)


@dataclass
class TimeSlot:
    """A day plus a start/end time in decimal hours."""
    day: str
    start_hour: float
    end_hour: float


@dataclass
class CalendarEvent:
    """Structured view of a calendar event label."""
    title: str
    day: str
    start_hour: float
    end_hour: float
    organizer: str
    is_launch: bool


# ── Compound headers and grouped columns ─────────────────

def parse_aria_label(label: str,
                     known_field_names: Optional[List[str]] = None) -> Optional[Tuple[str, str]]:
    """
    Split a report cell label of the form "Header: Value" into its parts.

    Some headers are compound ("Project (Rollup): Project Name"). When the
    label has three or more ": " segments and the middle segment is a known
    field name, the first two segments form the header and everything after
    them is the value. Otherwise only the first segment is the header.

    Args:
        label: aria-label text of a report cell
        known_field_names: Field names that may appear as a header's second part

    Returns:
        Tuple of (normalized header key, value), or None if the label has no header

    Examples:
        >>> parse_aria_label("Project (Rollup): Project Name: Acme | Redesign 2025")
        ('project (rollup): project name', 'Acme | Redesign 2025')
        >>> parse_aria_label("Tag: Launch 2/10 at 1 pm")
        ('tag', 'Launch 2/10 at 1 pm')
    """
    if not label or ':' not in label:
        return None

    if known_field_names is None:
        known_field_names = ReportGridSelectors.KNOWN_FIELD_NAMES

    parts = label.split(': ')
    header = parts[0]
    value = ': '.join(parts[1:])

    if len(parts) >= 3:
        candidate = parts[1].lower().strip()
        if candidate and any(candidate in name or name in candidate for name in known_field_names):
            header = f"{parts[0]}: {parts[1]}"
            value = ': '.join(parts[2:])

    return (header.lower().strip(), value)


def is_group_value(text: Optional[str]) -> bool:
    """A grouped column only carries a new value when it is non-empty and not a subtotal."""
    if not text:
        return False
    text = text.strip()
    return bool(text) and not text.startswith('Total')


class GroupTracker:
    """
    Running value of a group-carrying (rowspan-like) column.

    The value shown once for a block of rows is carried forward to the
    following rows until a new value appears.
    """

    def __init__(self):
        self.current = ''
        self.extra = ''

    def update(self, text: Optional[str], extra: Optional[str] = None) -> bool:
        """
        Offer the column text of the current row.

        Returns:
            True if the tracked value changed
        """
        if not is_group_value(text):
            return False
        self.current = text.strip()
        if extra is not None:
            self.extra = extra
        return True

    @property
    def has_value(self) -> bool:
        return bool(self.current)


def carry_group_values(rows: List[Dict[str, str]], group_fields: List[str]) -> List[Dict[str, str]]:
    """
    Fill group-carrying fields forward through a list of rows.

    Rows seen before every group field has a value are dropped.

    Args:
        rows: Row dicts as read from the table
        group_fields: Keys of the grouped columns

    Returns:
        New row dicts with the group values filled in
    """
    trackers = {name: GroupTracker() for name in group_fields}
    attributed = []
    for row in rows:
        for name, tracker in trackers.items():
            tracker.update(row.get(name))
        if not all(t.has_value for t in trackers.values()):
            continue
        filled = dict(row)
        for name, tracker in trackers.items():
            filled[name] = tracker.current
        attributed.append(filled)
    return attributed


# ── Column header mapping ────────────────────────────────

def map_report_columns(headers: List[str]) -> Dict[str, int]:
    """
    Map report field names to column indexes by header text.

    Args:
        headers: Header cell texts, in column order

    Returns:
        Dict of field name to column index (empty if nothing matched)
    """
    col_map: Dict[str, int] = {}
    for idx, raw in enumerate(headers):
        h = raw.strip().lower()
        if 'end' in h or 'date' in h or 'calculated' in h:
            col_map.setdefault('end_date', idx)
        if 'task' in h and ('name' in h or 'type' in h):
            col_map.setdefault('task_type', idx)
        if 'project' in h and 'name' in h:
            col_map.setdefault('project_name', idx)
        if 'color' in h:
            col_map.setdefault('color_block', idx)
        if 'tag' in h:
            col_map.setdefault('tag', idx)
        if 'setup' in h or 'notes' in h:
            col_map.setdefault('setup_notes', idx)
        if 'owner' in h:
            col_map.setdefault('owner_name', idx)
    return col_map


def map_ticket_columns(headers: List[str]) -> Dict[str, int]:
    """
    Map ticket field names to column indexes by header text.

    Returns an empty dict unless the headers look like a tickets list
    (a due date, a name or title, and a project or account column).
    """
    upper = [h.strip().upper() for h in headers]
    col_map: Dict[str, int] = {}
    for idx, h in enumerate(upper):
        if 'DUE' in h:
            col_map.setdefault('due_date', idx)
        elif 'PROJECT' in h or 'ACCOUNT' in h:
            col_map.setdefault('project_name', idx)
        elif 'NAME' in h or 'TITLE' in h:
            col_map.setdefault('name', idx)
        elif 'DESCRIPTION' in h:
            col_map.setdefault('description', idx)
        elif 'HOUR' in h or 'ESTIMATE' in h:
            col_map.setdefault('estimated_hours', idx)

    if not {'due_date', 'name', 'project_name'} <= set(col_map):
        return {}
    return col_map


def headers_look_like_tickets(header_text: str) -> bool:
    """Quick check on a header row's combined text."""
    text = header_text.upper()
    return (
        'DUE' in text
        and ('NAME' in text or 'TITLE' in text)
        and ('PROJECT' in text or 'ACCOUNT' in text)
    )


# ── Garbage filtering ────────────────────────────────────

def is_nav_chrome(text: str) -> bool:
    """Check text against the app-chrome denylist."""
    lower = text.lower()
    if any(pattern in lower for pattern in NAV_CHROME_PATTERNS):
        return True
    # Repeated chrome labels concatenated by textContent, e.g. "DashboardsDashboards"
    return 'Dashboards' in text and lower.count('dashboards') > 1


def is_plausible_card_text(text: Optional[str]) -> bool:
    """
    Decide whether the text of a card-like element can be a ticket.

    Examples:
        >>> is_plausible_card_text("Acme County – Design Revisions")
        True
        >>> is_plausible_card_text("DashboardsDashboardsDashboardsDashboards")
        False
    """
    if not text:
        return False
    t = text.strip()
    if is_nav_chrome(t):
        return False
    if not (CARD_TEXT_MIN_LENGTH < len(t) < CARD_TEXT_MAX_LENGTH):
        return False
    return _CAPITALIZED_PAIR.search(t) is not None


def record_text(record) -> str:
    """Flatten a raw record into one string for pattern checks."""
    if isinstance(record, dict):
        return ' '.join(str(v) for v in record.values() if v not in (None, ''))
    return str(record)


def is_garbage_record(record) -> bool:
    """Short records mentioning both "dashboards" and "list" are navigation chrome."""
    text = record_text(record).lower()
    return 'dashboards' in text and 'list' in text and len(text) < 50


# ── Names, tiers and hours ───────────────────────────────

def detect_tier(project_name: str) -> str:
    """
    Detect the package tier from a project name.

    Examples:
        >>> detect_tier("Chino Valley AZ | MWC Ultimate Redesign 1125")
        'ultimate'
    """
    lower = project_name.lower()
    if 'ultimate' in lower:
        return TIER_ULTIMATE
    if 'premium' in lower:
        return TIER_PREMIUM
    return TIER_STANDARD


def short_name(full_name: str) -> str:
    """
    Shorten "Chino Valley AZ | MWC Ultimate Redesign 1125" to "Chino Valley AZ".
    """
    return full_name.split('|')[0].strip()


def parse_hours(text: Optional[str]) -> Optional[float]:
    """
    Parse the leading number of an hours cell ("2", "1.5", "2.5 hrs", "1.5h").

    Returns None unless 0 < value < 100.
    """
    if not text:
        return None
    match = _LEADING_NUMBER.match(text)
    if not match:
        return None
    value = float(match.group(1))
    if 0 < value < 100:
        return value
    return None


def parse_revision_description(text: Optional[str]) -> Dict[str, object]:
    """
    Parse a ticket description for hours, revision label, assignees and link.

    Example description:
        "Design Revisions R2 - 2 hours (JD/MK) https://acme.sharepoint.com/x"
    """
    result = {'hours': 0.0, 'revision_label': '', 'web_view_url': '', 'assignees': []}
    if not text or not isinstance(text, str):
        return result

    hours = _HOURS.search(text)
    if hours:
        result['hours'] = float(hours.group(1))

    label = _REVISION_LABEL.search(text)
    if label:
        result['revision_label'] = label.group(0)

    assignees = _ASSIGNEES.search(text)
    if assignees:
        result['assignees'] = [n for n in re.split(r'[/,\s]+', assignees.group(1)) if n]

    url = _SHAREPOINT_URL.search(text)
    if url:
        result['web_view_url'] = url.group(0)

    return result


# ── Dates and times ──────────────────────────────────────

def to_24_hour(hour: int, ampm: str) -> int:
    """Convert a 12-hour clock value to 24-hour."""
    is_pm = ampm.lower() == 'pm'
    if is_pm and hour < 12:
        return hour + 12
    if not is_pm and hour == 12:
        return 0
    return hour


def parse_time_range(text: str) -> Optional[Tuple[float, float]]:
    """
    Find a time range in free text.

    Recognizes "10:00am-11:00am", "10:30 am to 12 pm", "10-11am" and
    "at 1 pm" (one hour long).

    Returns:
        Tuple of (start_hour, end_hour), or None
    """
    if not text:
        return None

    m = _TIME_RANGE.search(text)
    if m:
        end = to_24_hour(int(m.group(4)), m.group(6)) + int(m.group(5) or 0) / 60
        start_ampm = m.group(3) or m.group(6)
        start = to_24_hour(int(m.group(1)), start_ampm) + int(m.group(2) or 0) / 60
        if m.group(3) is None and start > end:
            start -= 12
        return (start, end)

    m = _TIME_AT.search(text)
    if m:
        start = to_24_hour(int(m.group(1)), m.group(3)) + int(m.group(2) or 0) / 60
        return (start, start + 1)

    return None


def parse_tag(tag: Optional[str], reference: date) -> Optional[TimeSlot]:
    """
    Parse a report tag like "Launch 2/10 from 10:00am-11:00am" into a slot.

    The date must fall on a work day of the reference week. A date without
    a time defaults to 10:00-11:00.
    """
    if not tag:
        return None

    found = find_month_day(tag)
    if found is None:
        return None
    month, day_of_month = found

    weekday = day_of_month_to_weekday(day_of_month, month, reference)
    if weekday is None:
        return None

    times = parse_time_range(tag)
    if times is None:
        return TimeSlot(day=weekday, start_hour=10, end_hour=11)
    return TimeSlot(day=weekday, start_hour=times[0], end_hour=times[1])


def parse_calendar_label(label: str, reference: date) -> Optional[CalendarEvent]:
    """
    Parse a calendar event's accessible label.

    Typical formats:
        "Weekly Review, February 10, 2026, 10:00 AM, 10:30 AM, Jane Doe, Room 4"
        "Redesign Launch – Acme, TX, 1:00 PM to 2:00 PM, Tuesday, February 10, 2026"

    Returns:
        CalendarEvent, or None if no date in the reference week is found
    """
    if not label:
        return None

    parts = [p.strip() for p in label.split(',')]
    if len(parts) < 3:
        return None

    title = parts[0]

    found = None
    for part in parts:
        found = find_month_day(part)
        if found is not None and found[0] is not None:
            break
        found = None
    if found is None:
        return None

    weekday = day_of_month_to_weekday(found[1], found[0], reference)
    if weekday is None:
        return None

    times = [
        to_24_hour(int(h), ampm) + int(m) / 60
        for h, m, ampm in _CLOCK_TIME.findall(label)
    ]
    if len(times) >= 2:
        start, end = times[0], times[1]
    elif len(times) == 1:
        start, end = times[0], times[0] + 0.5
    else:
        start, end = 9.0, 10.0

    organizer = parts[-1] if len(parts) > 3 else ''
    is_launch = 'launch' in title.lower()

    return CalendarEvent(
        title=title,
        day=weekday,
        start_hour=start,
        end_hour=end,
        organizer=organizer,
        is_launch=is_launch,
    )


def looks_like_event_label(label: Optional[str], min_length: int = 20) -> bool:
    """Event labels are long and carry a clock time with AM/PM."""
    if not label or len(label) <= min_length:
        return False
    return _CLOCK_TIME.search(label) is not None
