"""
Normalization of raw source records into ScheduleItems.

Each source has its own parser. Ticket records arrive in two shapes, tagged
by ``variant`` at extraction time; they are turned into ``RevisionTicket``
or ``LegacyTicket`` here and normalized by one function that dispatches on
the ticket type.
"""

import math
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional, Tuple, Union

from .config import SOURCE_CALENDAR, SOURCE_REPORT_GRID, SOURCE_TICKETS
from .extractors import VARIANT_LEGACY, VARIANT_REVISION
from .field_parser import (
    SETUP_HOURS,
    detect_tier,
    parse_calendar_label,
    parse_tag,
    short_name,
)
from .logging_utils import get_logger
from .models import (
    KIND_LAUNCH,
    KIND_MEETING,
    KIND_REVISION,
    PLACEMENT_FIXED,
    PLACEMENT_PENDING,
    ScheduleItem,
    SLOT_MINUTES,
    WEEKDAYS,
    WORK_END_HOUR,
    WORK_START_HOUR,
)
from .week_utils import day_of_month_to_weekday, find_month_day


MAX_SETUP_CHUNK_HOURS = 4
MAX_EVENT_MINUTES = 8 * 60
REVISION_START_HOUR = 15
DEFAULT_LAUNCH_START_HOUR = 10


class RecordFormatError(Exception):
    """Exception raised when a raw record has an unknown shape."""
    pass


# ── Grid fitting ─────────────────────────────────────────

def fit_to_grid(start_hour: float, end_hour: float) -> Optional[Tuple[float, int]]:
    """
    Fit a time range onto the half-hour grid of the working day.

    The start is snapped down to the half hour and clipped to the start of
    the day; the duration is rounded up to whole slots and clipped to the end
    of the day. Ranges that fall entirely outside working hours are dropped.

    Returns:
        Tuple of (start_hour, duration_minutes), or None

    Examples:
        >>> fit_to_grid(10.25, 11)
        (10.0, 60)
        >>> fit_to_grid(16.5, 18)
        (16.5, 30)
    """
    if end_hour <= start_hour:
        return None

    start = math.floor(start_hour * 2) / 2
    minutes = math.ceil(round((end_hour - start) * 60) / SLOT_MINUTES) * SLOT_MINUTES
    end = start + minutes / 60

    start = max(start, WORK_START_HOUR)
    end = min(end, WORK_END_HOUR)
    if end <= start:
        return None

    return start, int(round((end - start) * 60))


def round_up_minutes(hours: float) -> int:
    """Convert hours to minutes, rounded up to whole slots (at least one slot)."""
    minutes = math.ceil(round(hours * 60) / SLOT_MINUTES) * SLOT_MINUTES
    return max(minutes, SLOT_MINUTES)


# ── Report grid ──────────────────────────────────────────

def _is_setup_task(task_type: str) -> bool:
    return 'setup' in task_type.lower()


def _is_launch_task(task_type: str) -> bool:
    return 'launch' in task_type.lower()


def parse_report_grid_records(rows: List[Dict[str, Any]], reference: date) -> List[ScheduleItem]:
    """
    Turn report-grid rows into setup and launch items.

    Setup effort depends on the project tier and is split into blocks of at
    most four hours; setups get a placeholder slot until auto-placement.
    Launch time comes from the row's tag. Rows of other task types are
    skipped.

    Args:
        rows: Report-grid records
        reference: Any date in the week being planned

    Returns:
        List of ScheduleItems
    """
    logger = get_logger()
    items = []

    for index, row in enumerate(rows):
        task_type = (row.get('task_type') or '').strip()
        project_name = (row.get('project_name') or '').strip()
        if not project_name:
            continue

        name = short_name(project_name)
        source_id = f"{SOURCE_REPORT_GRID}:{row.get('project_id') or project_name}:{task_type}:{index}"

        if _is_setup_task(task_type):
            tier = detect_tier(project_name)
            hours = SETUP_HOURS[tier]
            title = f"{name} – {tier.capitalize()} Setup"
            first = min(hours, MAX_SETUP_CHUNK_HOURS)

            items.append(ScheduleItem(
                kind=f"setup-{tier}",
                title=title,
                duration_minutes=round_up_minutes(first),
                day=WEEKDAYS[0],
                start_hour=WORK_START_HOUR,
                source_id=source_id,
                source=SOURCE_REPORT_GRID,
                placement=PLACEMENT_PENDING,
            ))
            if hours > MAX_SETUP_CHUNK_HOURS:
                items.append(ScheduleItem(
                    kind=f"setup-{tier}",
                    title=f"{title} (cont.)",
                    duration_minutes=round_up_minutes(hours - MAX_SETUP_CHUNK_HOURS),
                    day=WEEKDAYS[1],
                    start_hour=WORK_START_HOUR,
                    source_id=f"{source_id}#2",
                    source=SOURCE_REPORT_GRID,
                    placement=PLACEMENT_PENDING,
                ))

        elif _is_launch_task(task_type):
            slot = parse_tag(row.get('tag'), reference)
            if slot is not None:
                fitted = fit_to_grid(slot.start_hour, slot.end_hour)
                if fitted is None:
                    logger.debug(f"Launch outside working hours skipped: {project_name}")
                    continue
                day = slot.day
                start, minutes = fitted
            else:
                day, start, minutes = WEEKDAYS[0], DEFAULT_LAUNCH_START_HOUR, 60

            items.append(ScheduleItem(
                kind=KIND_LAUNCH,
                title=f"{name} – Redesign Launch",
                duration_minutes=minutes,
                day=day,
                start_hour=start,
                source_id=source_id,
                locked=True,
                source=SOURCE_REPORT_GRID,
            ))

        else:
            logger.debug(f"Report row with task type '{task_type}' skipped")

    return items


# ── Calendar ─────────────────────────────────────────────

def parse_calendar_records(records: List[Dict[str, Any]], reference: date) -> List[ScheduleItem]:
    """
    Turn calendar event labels into meeting and launch items.

    Meetings are locked; launches can be moved. Events outside the
    reference week, with no positive duration or longer than eight hours
    are skipped.
    """
    items = []

    for index, record in enumerate(records):
        label = record.get('label') if isinstance(record, dict) else record
        event = parse_calendar_label(label or '', reference)
        if event is None:
            continue

        duration = round((event.end_hour - event.start_hour) * 60)
        if duration <= 0 or duration > MAX_EVENT_MINUTES:
            continue

        fitted = fit_to_grid(event.start_hour, event.end_hour)
        if fitted is None:
            continue
        start, minutes = fitted

        items.append(ScheduleItem(
            kind=KIND_LAUNCH if event.is_launch else KIND_MEETING,
            title=event.title,
            duration_minutes=minutes,
            day=event.day,
            start_hour=start,
            source_id=f"{SOURCE_CALENDAR}:{index}:{event.title[:40]}",
            locked=not event.is_launch,
            source=SOURCE_CALENDAR,
        ))

    return items


# ── Tickets ──────────────────────────────────────────────

@dataclass
class RevisionTicket:
    """Ticket read from the structured tickets table."""
    name: str
    project: str = ''
    project_href: str = ''
    description: str = ''
    hours: float = 0.0
    due_date: str = ''
    priority: str = ''
    created_date: str = ''
    completed: bool = False
    status: str = ''
    revision_label: str = ''
    web_view_url: str = ''
    assignees: List[str] = field(default_factory=list)


@dataclass
class LegacyTicket:
    """Ticket read by the header-matching or card fallbacks."""
    project_name: str
    description: str = 'Revision'
    estimated_hours: float = 1.0
    due_date: str = ''


Ticket = Union[RevisionTicket, LegacyTicket]


def ticket_from_record(record: Dict[str, Any]) -> Ticket:
    """
    Build the ticket type named by the record's ``variant`` tag.

    Raises:
        RecordFormatError: If the variant is missing or unknown
    """
    variant = record.get('variant')

    if variant == VARIANT_REVISION:
        return RevisionTicket(
            name=record.get('name') or '',
            project=record.get('project') or '',
            project_href=record.get('project_href') or '',
            description=record.get('description') or '',
            hours=float(record.get('hours') or 0),
            due_date=record.get('due_date') or '',
            priority=record.get('priority') or '',
            created_date=record.get('created_date') or '',
            completed=bool(record.get('completed')),
            status=record.get('status') or '',
            revision_label=record.get('revision_label') or '',
            web_view_url=record.get('web_view_url') or '',
            assignees=list(record.get('assignees') or []),
        )

    if variant == VARIANT_LEGACY:
        return LegacyTicket(
            project_name=record.get('project_name') or '',
            description=record.get('description') or 'Revision',
            estimated_hours=float(record.get('estimated_hours') or 1),
            due_date=record.get('due_date') or '',
        )

    raise RecordFormatError(f"Unknown ticket variant: {variant!r}")


def _due_weekday(due_date: str, reference: date) -> Optional[str]:
    found = find_month_day(due_date)
    if found is None:
        return None
    return day_of_month_to_weekday(found[1], found[0], reference)


def normalize_ticket(ticket: Ticket, index: int, reference: date) -> Optional[ScheduleItem]:
    """
    Turn one ticket into a revision item.

    Tickets are placed on their due day when it falls in the reference
    week, otherwise round-robin by ``index``. They start at 15:00, earlier
    when they would run past the end of the day.

    Returns:
        ScheduleItem, or None for completed tickets
    """
    day = WEEKDAYS[index % len(WEEKDAYS)]

    if isinstance(ticket, RevisionTicket):
        if ticket.completed:
            return None
        hours = ticket.hours or 1
        project = ticket.project or ticket.name
        title = f"{short_name(project)} – {ticket.revision_label or ticket.name}"
        key = project
        if ticket.due_date:
            day = _due_weekday(ticket.due_date, reference) or day
    else:
        hours = ticket.estimated_hours or 1
        title = f"{ticket.project_name} – Revision"
        key = ticket.project_name

    minutes = min(round_up_minutes(hours), (WORK_END_HOUR - WORK_START_HOUR) * 60)
    start = min(REVISION_START_HOUR, WORK_END_HOUR - minutes / 60)

    return ScheduleItem(
        kind=KIND_REVISION,
        title=title,
        duration_minutes=minutes,
        day=day,
        start_hour=start,
        source_id=f"{SOURCE_TICKETS}:{index}:{key[:40]}",
        source=SOURCE_TICKETS,
        placement=PLACEMENT_FIXED,
    )


def parse_ticket_records(records: List[Dict[str, Any]], reference: date) -> List[ScheduleItem]:
    """
    Turn ticket records of either variant into revision items.

    Completed tickets are skipped and do not advance the round-robin day.
    Records with an unknown variant are skipped with a warning.
    """
    logger = get_logger()
    items = []
    index = 0

    for record in records:
        try:
            ticket = ticket_from_record(record)
        except RecordFormatError as e:
            logger.warning(f"Ticket record skipped: {e}")
            continue

        item = normalize_ticket(ticket, index, reference)
        if item is None:
            continue
        items.append(item)
        index += 1

    return items
