"""
Merge of the normalized source items into one weekly schedule.

Steps:
  1. Drop report-grid launches that the calendar also has (calendar timing wins)
  2. Union of report-grid, calendar and ticket items
  3. Lunch break and admin buffer on every weekday
  4. Reconcile items that arrived with a time: anchored items stay, movable
     items are moved off conflicts
  5. Auto-place setups into the first free gap of the week

The merge never fails: an item that cannot be placed without overlapping
is kept at a fallback slot and flagged as overflow.
"""

import re
from datetime import date
from typing import Dict, List

from .config import SOURCE_CALENDAR, SOURCE_REPORT_GRID, SOURCE_TICKETS
from .logging_utils import get_logger
from .models import (
    KIND_BREAK,
    KIND_BUFFER,
    KIND_LAUNCH,
    KIND_REVISION,
    PLACEMENT_AUTO,
    PLACEMENT_OVERFLOW,
    PLACEMENT_PENDING,
    PLACEMENT_RELOCATED,
    ImportResult,
    ScheduleItem,
    WEEKDAYS,
    WORK_START_HOUR,
)
from .normalize import parse_calendar_records, parse_report_grid_records, parse_ticket_records
from .planner import find_available_slot


LUNCH_START_HOUR = 12
LUNCH_MINUTES = 30
ADMIN_START_HOUR = 16.5
ADMIN_MINUTES = 30

_TITLE_WORD_SPLIT = re.compile(r'[\s–-]+')


def _sort_key(item: ScheduleItem):
    return (WEEKDAYS.index(item.day), item.start_hour)


def deduplicate_launches(report_items: List[ScheduleItem],
                         calendar_items: List[ScheduleItem]) -> List[ScheduleItem]:
    """
    Drop report-grid launches that match a calendar launch.

    A report launch matches when any word of its title longer than three
    characters appears in a calendar launch title (case-insensitive). The
    match is deliberately loose.
    """
    calendar_titles = [i.title.lower() for i in calendar_items if i.kind == KIND_LAUNCH]
    logger = get_logger()

    kept = []
    for item in report_items:
        if item.kind == KIND_LAUNCH:
            words = [w for w in _TITLE_WORD_SPLIT.split(item.title.lower()) if len(w) > 3]
            if any(w in title for title in calendar_titles for w in words):
                logger.debug(f"Launch '{item.title}' dropped, calendar has it")
                continue
        kept.append(item)
    return kept


def add_defaults(items: List[ScheduleItem]) -> List[ScheduleItem]:
    """Append a lunch break and an admin buffer to every weekday."""
    defaults = []
    for day in WEEKDAYS:
        defaults.append(ScheduleItem(
            kind=KIND_BREAK,
            title='Lunch Break',
            duration_minutes=LUNCH_MINUTES,
            day=day,
            start_hour=LUNCH_START_HOUR,
        ))
        defaults.append(ScheduleItem(
            kind=KIND_BUFFER,
            title='Daily Admin',
            duration_minutes=ADMIN_MINUTES,
            day=day,
            start_hour=ADMIN_START_HOUR,
        ))
    return list(items) + defaults


def is_unplaced_setup(item: ScheduleItem) -> bool:
    return item.is_setup and item.placement in (PLACEMENT_PENDING, PLACEMENT_OVERFLOW)


def is_anchored(item: ScheduleItem) -> bool:
    """Locked items, launches and placed setups keep their time during reconciliation."""
    return item.locked or item.kind == KIND_LAUNCH or item.is_setup


def reconcile_fixed_items(items: List[ScheduleItem]) -> List[ScheduleItem]:
    """
    Remove overlaps between items that arrived with a time.

    Anchored items are accepted in time order; one that collides with an
    earlier accepted anchor is flagged overflow. Movable items (breaks and
    buffers first, then revisions) that collide with an accepted item move
    to the first gap on their day; revisions may then try later weekdays.
    With no gap, the item stays and is flagged overflow.

    Setups still waiting for auto-placement are passed through untouched.

    Returns:
        Items in input order, with updated slots
    """
    logger = get_logger()
    timed = [i for i in items if not is_unplaced_setup(i)]
    anchored = sorted((i for i in timed if is_anchored(i)), key=_sort_key)
    movable = [i for i in timed if not is_anchored(i)]
    movable = (
        [i for i in movable if i.kind in (KIND_BREAK, KIND_BUFFER)]
        + [i for i in movable if i.kind not in (KIND_BREAK, KIND_BUFFER)]
    )

    accepted: List[ScheduleItem] = []
    updated: Dict[str, ScheduleItem] = {}

    for item in anchored:
        if any(item.overlaps(a) for a in accepted):
            logger.debug(f"'{item.title}' collides with another fixed item, flagged overflow")
            updated[item.item_id] = item.moved_to(item.day, item.start_hour, PLACEMENT_OVERFLOW)
        else:
            accepted.append(item)

    for item in movable:
        if not any(item.overlaps(a) for a in accepted):
            accepted.append(item)
            continue

        days = [item.day]
        if item.kind == KIND_REVISION:
            days += WEEKDAYS[WEEKDAYS.index(item.day) + 1:]

        moved = None
        for day in days:
            slot = find_available_slot(accepted, day, item.duration_minutes)
            if slot is not None:
                moved = item.moved_to(day, slot, PLACEMENT_RELOCATED)
                break

        if moved is None:
            logger.debug(f"No free slot for '{item.title}', flagged overflow")
            moved = item.moved_to(item.day, item.start_hour, PLACEMENT_OVERFLOW)
        else:
            accepted.append(moved)
        updated[item.item_id] = moved

    return [updated.get(i.item_id, i) for i in items]


def auto_place_setups(items: List[ScheduleItem]) -> List[ScheduleItem]:
    """
    Place pending setups into the first gap of the week.

    Days are scanned Monday to Friday and the first gap large enough for
    the setup is used. A setup that fits nowhere goes to Monday at the
    start of the day, flagged overflow. Setups already auto-placed count as
    occupied time and are not moved.

    Returns:
        Items in input order, with setups placed
    """
    logger = get_logger()
    placeable = [i for i in items if is_unplaced_setup(i)]
    placeable_ids = {i.item_id for i in placeable}
    scheduled = [i for i in items if i.item_id not in placeable_ids]
    updated: Dict[str, ScheduleItem] = {}

    for setup in placeable:
        placed = None
        for day in WEEKDAYS:
            slot = find_available_slot(scheduled, day, setup.duration_minutes)
            if slot is not None:
                placed = setup.moved_to(day, slot, PLACEMENT_AUTO)
                scheduled.append(placed)
                break

        if placed is None:
            logger.debug(f"No gap for '{setup.title}' this week, flagged overflow")
            placed = setup.moved_to(WEEKDAYS[0], WORK_START_HOUR, PLACEMENT_OVERFLOW)

        updated[setup.item_id] = placed

    return [updated.get(i.item_id, i) for i in items]


def merge_imported_items(report_items: List[ScheduleItem],
                         calendar_items: List[ScheduleItem],
                         ticket_items: List[ScheduleItem]) -> List[ScheduleItem]:
    """
    Merge the three sources into the weekly schedule.

    Args:
        report_items: Items from the report grid
        calendar_items: Items from the calendar
        ticket_items: Items from the ticketing app

    Returns:
        Every item that survives launch de-duplication exactly once,
        plus the daily defaults
    """
    report_kept = deduplicate_launches(report_items, calendar_items)
    items = report_kept + list(calendar_items) + list(ticket_items)
    items = add_defaults(items)
    items = reconcile_fixed_items(items)
    return auto_place_setups(items)


def merge_import_result(result: ImportResult, reference: date) -> List[ScheduleItem]:
    """
    Normalize the records of every successful source and merge them.

    Args:
        result: Combined import result
        reference: Any date in the week being planned

    Returns:
        Merged schedule
    """
    report_items = parse_report_grid_records(result.data_for(SOURCE_REPORT_GRID), reference)
    calendar_items = parse_calendar_records(result.data_for(SOURCE_CALENDAR), reference)
    ticket_items = parse_ticket_records(result.data_for(SOURCE_TICKETS), reference)

    get_logger().info(
        f"Normalized {len(report_items)} report, {len(calendar_items)} calendar "
        f"and {len(ticket_items)} ticket item(s)"
    )
    return merge_imported_items(report_items, calendar_items, ticket_items)
