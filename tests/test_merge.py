"""
Tests for merging source items into the weekly schedule.
"""

from datetime import date

from planner_bot.merge import (
    ADMIN_START_HOUR,
    LUNCH_START_HOUR,
    add_defaults,
    auto_place_setups,
    deduplicate_launches,
    merge_import_result,
    merge_imported_items,
    reconcile_fixed_items,
)
from planner_bot.models import (
    KIND_BREAK,
    KIND_BUFFER,
    KIND_LAUNCH,
    KIND_MEETING,
    KIND_REVISION,
    KIND_SETUP_PREMIUM,
    PLACEMENT_AUTO,
    PLACEMENT_FIXED,
    PLACEMENT_OVERFLOW,
    PLACEMENT_PENDING,
    PLACEMENT_RELOCATED,
    ImportResult,
    ScheduleItem,
    SourceResult,
    WEEKDAYS,
)
from planner_bot.planner import find_conflicts


WEEK = date(2026, 2, 9)


def make_item(kind, day, start, minutes, **kwargs):
    return ScheduleItem(kind=kind, title=kwargs.pop('title', f"{kind} {day}"),
                        duration_minutes=minutes, day=day, start_hour=start, **kwargs)


def make_setup(minutes=240, title='Acme – Premium Setup'):
    return make_item(KIND_SETUP_PREMIUM, 'monday', 8, minutes, title=title,
                     source='report-grid', placement=PLACEMENT_PENDING)


def booked_day(day):
    return make_item(KIND_MEETING, day, 8, 540, title=f"Workshop {day}", locked=True)


class TestDefaults:
    """Tests for the daily lunch and admin defaults."""

    def test_empty_input_gives_defaults(self):
        """Test that merging nothing yields one lunch and one admin per weekday."""
        items = merge_imported_items([], [], [])

        assert len(items) == 10
        for day in WEEKDAYS:
            day_items = [i for i in items if i.day == day]
            assert sorted(i.kind for i in day_items) == [KIND_BREAK, KIND_BUFFER]

    def test_default_times(self):
        """Test the default slots and durations."""
        items = add_defaults([])
        lunch = [i for i in items if i.kind == KIND_BREAK]
        admin = [i for i in items if i.kind == KIND_BUFFER]

        assert all(i.start_hour == LUNCH_START_HOUR and i.duration_minutes == 30 for i in lunch)
        assert all(i.start_hour == ADMIN_START_HOUR and i.duration_minutes == 30 for i in admin)
        assert all(i.title == 'Lunch Break' for i in lunch)
        assert all(i.title == 'Daily Admin' for i in admin)

    def test_defaults_appended_after_items(self):
        """Test that input items keep their position."""
        meeting = make_item(KIND_MEETING, 'monday', 9, 60, locked=True)
        items = add_defaults([meeting])
        assert items[0] is meeting
        assert len(items) == 11


class TestDeduplicateLaunches:
    """Tests for dropping report launches the calendar already has."""

    def test_matching_launch_dropped(self):
        """Test that a report launch with the calendar's words is dropped."""
        report = [make_item(KIND_LAUNCH, 'tuesday', 13, 60, title='Acme – Redesign Launch', locked=True)]
        calendar = [make_item(KIND_LAUNCH, 'tuesday', 14, 60, title='Redesign Launch – Acme')]

        assert deduplicate_launches(report, calendar) == []

    def test_merge_keeps_calendar_launch_only(self):
        """Test that the merged schedule has the calendar's launch timing."""
        report = [make_item(KIND_LAUNCH, 'tuesday', 13, 60, title='Acme – Redesign Launch', locked=True)]
        calendar = [make_item(KIND_LAUNCH, 'tuesday', 14, 60, title='Redesign Launch – Acme')]

        items = merge_imported_items(report, calendar, [])
        launches = [i for i in items if i.kind == KIND_LAUNCH]

        assert len(launches) == 1
        assert launches[0].start_hour == 14

    def test_setups_never_dropped(self):
        """Test that only launches are compared."""
        setup = make_setup(title='Acme – Premium Setup')
        calendar = [make_item(KIND_LAUNCH, 'tuesday', 14, 60, title='Redesign Launch – Acme')]
        assert deduplicate_launches([setup], calendar) == [setup]

    def test_short_words_ignored(self):
        """Test that words of three letters or fewer do not match."""
        report = [make_item(KIND_LAUNCH, 'monday', 10, 60, title='ABC – Go', locked=True)]
        calendar = [make_item(KIND_LAUNCH, 'monday', 14, 60, title='ABC Go Launch')]
        assert len(deduplicate_launches(report, calendar)) == 1

    def test_calendar_meetings_do_not_match(self):
        """Test that only calendar launches are considered."""
        report = [make_item(KIND_LAUNCH, 'monday', 10, 60, title='Acme – Redesign Launch', locked=True)]
        calendar = [make_item(KIND_MEETING, 'monday', 14, 60, title='Acme Redesign sync', locked=True)]
        assert len(deduplicate_launches(report, calendar)) == 1


class TestReconcile:
    """Tests for resolving overlaps between timed items."""

    def test_revision_moves_off_locked_meeting(self):
        """Test that a revision colliding with a meeting moves to the first gap."""
        meeting = make_item(KIND_MEETING, 'monday', 15, 60, locked=True)
        revision = make_item(KIND_REVISION, 'monday', 15, 120)

        items = reconcile_fixed_items(add_defaults([meeting, revision]))
        moved = items[1]

        assert moved.day == 'monday'
        assert moved.start_hour == 8
        assert moved.placement == PLACEMENT_RELOCATED
        assert items[0].placement == PLACEMENT_FIXED

    def test_revision_tries_later_days(self):
        """Test that a revision with no gap on its day moves to a later weekday."""
        revision = make_item(KIND_REVISION, 'monday', 15, 120)
        items = reconcile_fixed_items([booked_day('monday'), revision])

        assert items[1].day == 'tuesday'
        assert items[1].start_hour == 8
        assert items[1].placement == PLACEMENT_RELOCATED

    def test_revision_on_full_friday_overflows(self):
        """Test that a revision with nowhere to go keeps its slot, flagged overflow."""
        revision = make_item(KIND_REVISION, 'friday', 15, 60)
        items = reconcile_fixed_items([booked_day('friday'), revision])

        assert items[1].day == 'friday'
        assert items[1].start_hour == 15
        assert items[1].placement == PLACEMENT_OVERFLOW

    def test_lunch_stays_on_its_day(self):
        """Test that a lunch break only moves within its day."""
        items = reconcile_fixed_items(add_defaults([booked_day('wednesday')]))
        lunch = [i for i in items if i.kind == KIND_BREAK and i.day == 'wednesday'][0]

        assert lunch.placement == PLACEMENT_OVERFLOW
        assert lunch.day == 'wednesday'

    def test_colliding_anchors(self):
        """Test that the later of two overlapping locked items is flagged."""
        first = make_item(KIND_MEETING, 'monday', 9, 60, locked=True)
        second = make_item(KIND_MEETING, 'monday', 9.5, 60, locked=True)

        items = reconcile_fixed_items([second, first])

        assert items[1].placement == PLACEMENT_FIXED
        assert items[0].placement == PLACEMENT_OVERFLOW

    def test_pending_setups_untouched(self):
        """Test that setups waiting for placement are passed through."""
        setup = make_setup()
        items = reconcile_fixed_items([booked_day('monday'), setup])
        assert items[1] is setup


class TestAutoPlaceSetups:
    """Tests for placing setups into free gaps."""

    def test_setup_lands_on_first_free_day(self):
        """Test that a setup skips a fully booked Monday."""
        meetings = [
            make_item(KIND_MEETING, 'monday', 8, 240, title='Morning block', locked=True),
            make_item(KIND_MEETING, 'monday', 12, 300, title='Afternoon block', locked=True),
        ]
        items = merge_imported_items([make_setup(240)], meetings, [])
        setup = [i for i in items if i.is_setup][0]

        assert setup.day == 'tuesday'
        assert setup.start_hour == 8
        assert setup.placement == PLACEMENT_AUTO

    def test_setups_fill_gaps_in_order(self):
        """Test that a second setup goes after the first."""
        first = make_setup(240, title='Acme – Premium Setup')
        second = make_setup(120, title='Acme – Premium Setup (cont.)')

        items = auto_place_setups(add_defaults([first, second]))

        assert (items[0].day, items[0].start_hour) == ('monday', 8)
        assert (items[1].day, items[1].start_hour) == ('monday', 12.5)

    def test_placement_is_idempotent(self):
        """Test that placing twice gives the same schedule."""
        items = add_defaults([make_setup(240), make_setup(180, title='Other – Standard Setup')])
        once = auto_place_setups(items)
        twice = auto_place_setups(once)

        assert [(i.day, i.start_hour, i.placement) for i in once] == \
               [(i.day, i.start_hour, i.placement) for i in twice]

    def test_no_gap_in_week_overflows(self):
        """Test that a setup that fits nowhere goes to Monday morning, flagged."""
        items = [booked_day(day) for day in WEEKDAYS] + [make_setup(240)]
        placed = auto_place_setups(items)[-1]

        assert placed.day == 'monday'
        assert placed.start_hour == 8
        assert placed.placement == PLACEMENT_OVERFLOW


class TestMerge:
    """Tests for the full merge."""

    def test_every_item_kept_once(self):
        """Test that non-duplicate items survive exactly once."""
        report = [make_setup(240)]
        calendar = [make_item(KIND_MEETING, 'monday', 9, 60, title='Standup', locked=True)]
        tickets = [make_item(KIND_REVISION, 'tuesday', 15, 60, title='Acme – Revision')]

        items = merge_imported_items(report, calendar, tickets)
        ids = [i.item_id for i in items]

        assert len(ids) == len(set(ids)) == 13
        for original in report + calendar + tickets:
            assert original.item_id in ids

    def test_no_overlaps_except_overflow(self):
        """Test that only overflow items may overlap."""
        report = [make_setup(240), make_setup(240, title='Beta – Premium Setup')]
        calendar = [
            booked_day('monday'),
            make_item(KIND_MEETING, 'tuesday', 10, 120, title='Planning', locked=True),
            make_item(KIND_LAUNCH, 'wednesday', 12, 60, title='Redesign Launch – Gamma'),
        ]
        tickets = [
            make_item(KIND_REVISION, 'tuesday', 15, 120, title='Acme – Revision'),
            make_item(KIND_REVISION, 'monday', 15, 60, title='Beta – Revision'),
        ]

        items = merge_imported_items(report, calendar, tickets)

        for day in WEEKDAYS:
            assert find_conflicts(items, day) == []

    def test_merge_import_result(self):
        """Test normalizing and merging a combined import result."""
        result = ImportResult(results={
            'calendar': SourceResult.success('calendar', [
                {'label': 'Weekly Review, February 10, 2026, 10:00 AM, 10:30 AM, Jane Doe, Room 4'},
            ]),
            'tickets': SourceResult.failure('tickets', 'No data found', 'no-data-found'),
        })

        items = merge_import_result(result, WEEK)

        meetings = [i for i in items if i.kind == KIND_MEETING]
        assert len(items) == 11
        assert meetings[0].day == 'tuesday'
        assert meetings[0].start_hour == 10
