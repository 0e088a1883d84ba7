"""
Tests for schedule queries.
"""

from planner_bot.models import (
    KIND_BREAK,
    KIND_MEETING,
    KIND_REVISION,
    PLACEMENT_OVERFLOW,
    ScheduleItem,
    WEEKDAYS,
)
from planner_bot.planner import (
    calculate_capacity,
    find_available_slot,
    find_conflicts,
    get_day_minutes,
    get_items_for_day,
)


def make_item(kind, day, start, minutes, **kwargs):
    return ScheduleItem(kind=kind, title=f"{kind} {day} {start}", duration_minutes=minutes,
                        day=day, start_hour=start, **kwargs)


class TestCapacity:
    """Tests for weekly capacity accounting."""

    def test_empty_week(self):
        summary = calculate_capacity([])
        assert summary.total_available_minutes == 2400
        assert summary.remaining_minutes == 2400
        assert summary.status == 'under'

    def test_full_week_balanced(self):
        items = [make_item(KIND_MEETING, day, 8, 480) for day in WEEKDAYS]
        summary = calculate_capacity(items)
        assert summary.total_scheduled_minutes == 2400
        assert summary.utilization_percent == 100
        assert summary.status == 'balanced'

    def test_near_full_week_balanced(self):
        items = [make_item(KIND_MEETING, day, 8, 480) for day in WEEKDAYS[:4]]
        items.append(make_item(KIND_MEETING, 'friday', 8, 450))
        assert calculate_capacity(items).status == 'balanced'

    def test_overbooked_week(self):
        items = [make_item(KIND_MEETING, day, 8, 480) for day in WEEKDAYS]
        items.append(make_item(KIND_REVISION, 'friday', 15, 60))
        summary = calculate_capacity(items)
        assert summary.status == 'over'
        assert summary.remaining_minutes == -60

    def test_work_excludes_breaks(self):
        items = [make_item(KIND_MEETING, 'monday', 9, 60), make_item(KIND_BREAK, 'monday', 12, 30)]
        summary = calculate_capacity(items)
        assert summary.total_break_minutes == 30
        assert summary.total_work_minutes == 60


class TestDayQueries:
    """Tests for per-day helpers."""

    def test_items_sorted_by_start(self):
        items = [make_item(KIND_MEETING, 'monday', 14, 60), make_item(KIND_MEETING, 'monday', 9, 60),
                 make_item(KIND_MEETING, 'tuesday', 8, 60)]
        day_items = get_items_for_day(items, 'monday')
        assert [i.start_hour for i in day_items] == [9, 14]
        assert get_day_minutes(items, 'monday') == 120


class TestConflicts:
    """Tests for overlap detection."""

    def test_overlapping_pair(self):
        first = make_item(KIND_MEETING, 'monday', 9, 120)
        second = make_item(KIND_MEETING, 'monday', 10, 60)
        assert find_conflicts([first, second], 'monday') == [(first, second)]

    def test_touching_items_do_not_conflict(self):
        items = [make_item(KIND_MEETING, 'monday', 9, 60), make_item(KIND_MEETING, 'monday', 10, 60)]
        assert find_conflicts(items, 'monday') == []

    def test_long_item_conflicts_with_all_overlaps(self):
        long_item = make_item(KIND_MEETING, 'monday', 8, 480)
        a = make_item(KIND_MEETING, 'monday', 9, 60)
        b = make_item(KIND_MEETING, 'monday', 13, 60)
        assert len(find_conflicts([long_item, a, b], 'monday')) == 2

    def test_overflow_skipped_unless_requested(self):
        first = make_item(KIND_MEETING, 'monday', 9, 60)
        second = make_item(KIND_REVISION, 'monday', 9, 60, placement=PLACEMENT_OVERFLOW)
        assert find_conflicts([first, second], 'monday') == []
        assert len(find_conflicts([first, second], 'monday', include_overflow=True)) == 1


class TestAvailableSlot:
    """Tests for free slot search."""

    def test_empty_day(self):
        assert find_available_slot([], 'monday', 60) == 8

    def test_after_morning_meeting(self):
        items = [make_item(KIND_MEETING, 'monday', 8, 120)]
        assert find_available_slot(items, 'monday', 60) == 10

    def test_gap_between_items(self):
        items = [make_item(KIND_MEETING, 'monday', 8, 60), make_item(KIND_MEETING, 'monday', 11, 60)]
        assert find_available_slot(items, 'monday', 120) == 9
        assert find_available_slot(items, 'monday', 180) == 12

    def test_slot_ending_at_close(self):
        items = [make_item(KIND_MEETING, 'monday', 8, 480)]
        assert find_available_slot(items, 'monday', 60) == 16
        assert find_available_slot(items, 'monday', 90) is None

    def test_other_days_ignored(self):
        items = [make_item(KIND_MEETING, 'tuesday', 8, 540)]
        assert find_available_slot(items, 'monday', 540) == 8
