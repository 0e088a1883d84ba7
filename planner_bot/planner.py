"""
Schedule queries on a list of ScheduleItems: capacity, conflicts and free slots.
"""

from typing import List, Optional, Tuple

from .models import (
    CapacitySummary,
    KIND_BREAK,
    KIND_BUFFER,
    ScheduleItem,
    WEEKLY_CAPACITY_MINUTES,
    WORK_END_HOUR,
    WORK_START_HOUR,
)


def calculate_capacity(items: List[ScheduleItem]) -> CapacitySummary:
    """
    Summarize scheduled time against the weekly capacity.

    Status is "under" when more than an hour is left, "over" when the
    week is overbooked, otherwise "balanced".
    """
    scheduled = sum(i.duration_minutes for i in items)
    breaks = sum(i.duration_minutes for i in items if i.kind == KIND_BREAK)
    buffers = sum(i.duration_minutes for i in items if i.kind == KIND_BUFFER)

    status = 'balanced'
    if scheduled < WEEKLY_CAPACITY_MINUTES - 60:
        status = 'under'
    if scheduled > WEEKLY_CAPACITY_MINUTES:
        status = 'over'

    return CapacitySummary(
        total_available_minutes=WEEKLY_CAPACITY_MINUTES,
        total_scheduled_minutes=scheduled,
        total_break_minutes=breaks,
        total_buffer_minutes=buffers,
        total_work_minutes=scheduled - breaks - buffers,
        remaining_minutes=WEEKLY_CAPACITY_MINUTES - scheduled,
        utilization_percent=round(scheduled / WEEKLY_CAPACITY_MINUTES * 100),
        status=status,
    )


def get_items_for_day(items: List[ScheduleItem], day: str) -> List[ScheduleItem]:
    """Items on ``day``, sorted by start time."""
    return sorted((i for i in items if i.day == day), key=lambda i: i.start_hour)


def get_day_minutes(items: List[ScheduleItem], day: str) -> int:
    return sum(i.duration_minutes for i in items if i.day == day)


def find_conflicts(items: List[ScheduleItem], day: str,
                   include_overflow: bool = False) -> List[Tuple[ScheduleItem, ScheduleItem]]:
    """
    Find pairs of overlapping items on a day.

    Items flagged as overflow are expected to overlap and are skipped
    unless ``include_overflow`` is set.
    """
    day_items = [i for i in get_items_for_day(items, day) if include_overflow or not i.is_overflow]

    conflicts = []
    for index, current in enumerate(day_items):
        for later in day_items[index + 1:]:
            if later.start_hour >= current.end_hour:
                break
            conflicts.append((current, later))
    return conflicts


def find_available_slot(items: List[ScheduleItem], day: str, duration_minutes: int) -> Optional[float]:
    """
    Find the first start hour on ``day`` with room for ``duration_minutes``.

    Walks the day's items in start order; the candidate start moves past
    each item that ends after it. The slot must end by the end of the
    working day.

    Returns:
        Start hour, or None if the day has no large-enough gap
    """
    duration_hours = duration_minutes / 60
    candidate = float(WORK_START_HOUR)

    for item in get_items_for_day(items, day):
        if candidate + duration_hours <= item.start_hour:
            return candidate
        if item.end_hour > candidate:
            candidate = item.end_hour

    if candidate + duration_hours <= WORK_END_HOUR:
        return candidate
    return None
