"""
Tests for week utility functions.
"""

from datetime import date

import pytest

from planner_bot.week_utils import (
    WeekParseError,
    build_week_day_map,
    day_of_month_to_weekday,
    find_month_day,
    format_hour,
    parse_month_name,
    parse_week_of,
    snap_to_half_hour,
    week_start,
)


class TestParseWeekOf:
    """Tests for parse_week_of function."""

    def test_iso_date(self):
        """Test parsing an ISO date."""
        assert parse_week_of("2026-02-11") == date(2026, 2, 11)

    def test_today(self):
        """Test the 'today' keyword."""
        assert parse_week_of("today") == date.today()

    def test_invalid_format(self):
        """Test that other formats are rejected."""
        with pytest.raises(WeekParseError, match="Expected format"):
            parse_week_of("11/02/2026")

    def test_empty(self):
        """Test that empty input is rejected."""
        with pytest.raises(WeekParseError, match="cannot be empty"):
            parse_week_of("   ")


class TestWeekStart:
    """Tests for week_start function."""

    def test_midweek(self):
        """Test that a Thursday maps to its Monday."""
        assert week_start(date(2026, 2, 12)) == date(2026, 2, 9)

    def test_monday(self):
        """Test that a Monday maps to itself."""
        assert week_start(date(2026, 2, 9)) == date(2026, 2, 9)

    def test_sunday(self):
        """Test that a Sunday belongs to the week before."""
        assert week_start(date(2026, 2, 15)) == date(2026, 2, 9)


class TestWeekDayMap:
    """Tests for resolving days of month to weekdays."""

    def test_build_map(self):
        """Test the five work days of a week."""
        day_map = build_week_day_map(date(2026, 2, 11))
        assert day_map == {
            (2, 9): 'monday',
            (2, 10): 'tuesday',
            (2, 11): 'wednesday',
            (2, 12): 'thursday',
            (2, 13): 'friday',
        }

    def test_month_boundary(self):
        """Test a week spanning two months."""
        reference = date(2026, 4, 1)
        day_map = build_week_day_map(reference)
        assert day_map[(3, 31)] == 'tuesday'
        assert day_map[(4, 3)] == 'friday'
        assert day_of_month_to_weekday(30, 3, reference) == 'monday'
        assert day_of_month_to_weekday(30, 4, reference) is None

    def test_weekday_with_month(self):
        """Test resolving a day with its month."""
        assert day_of_month_to_weekday(10, 2, date(2026, 2, 9)) == 'tuesday'
        assert day_of_month_to_weekday(10, 3, date(2026, 2, 9)) is None

    def test_weekday_without_month(self):
        """Test resolving a bare day number."""
        assert day_of_month_to_weekday(13, None, date(2026, 2, 9)) == 'friday'
        assert day_of_month_to_weekday(14, None, date(2026, 2, 9)) is None


class TestFindMonthDay:
    """Tests for date detection in free text."""

    def test_numeric(self):
        assert find_month_day("Launch 2/10 at 1 pm") == (2, 10)

    def test_long_form(self):
        assert find_month_day("Launch February 12th") == (2, 12)

    def test_abbreviated(self):
        assert find_month_day("Due Sept. 3") == (9, 3)

    def test_invalid_numeric_falls_through(self):
        """Test that an impossible numeric date is ignored."""
        assert find_month_day("Ratio 13/40") is None

    def test_no_date(self):
        assert find_month_day("Weekly Review") is None
        assert find_month_day("") is None

    def test_parse_month_name(self):
        assert parse_month_name("Feb") == 2
        assert parse_month_name("September") == 9
        assert parse_month_name("Foo") is None


class TestHourFormatting:
    """Tests for hour helpers."""

    @pytest.mark.parametrize("hour,expected", [
        (8, '8:00 AM'),
        (12, '12:00 PM'),
        (13.5, '1:30 PM'),
        (16.75, '4:45 PM'),
    ])
    def test_format_hour(self, hour, expected):
        assert format_hour(hour) == expected

    def test_snap_to_half_hour(self):
        assert snap_to_half_hour(10.2) == 10.0
        assert snap_to_half_hour(10.3) == 10.5
        assert snap_to_half_hour(10.8) == 11.0
