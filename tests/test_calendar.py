"""Tests for working-time arithmetic."""

from datetime import date, datetime, time

import pytest

from scheduling.calendar import (
    add_working_days,
    add_working_units,
    get_weekday_number,
    is_working_day,
    is_working_instant,
    resolve_exception,
    snap_backward,
    snap_forward,
    task_duration,
    validate_calendar,
    working_days_between,
    working_units_between,
)
from scheduling.errors import InvalidCalendar
from scheduling.models import Calendar, CalendarException, Task, TaskType, WorkingSpan


class TestWeekdayNames:
    def test_full_and_short_names(self):
        assert get_weekday_number("Monday") == 0
        assert get_weekday_number("sun") == 6
        assert get_weekday_number(" Wed ") == 2

    def test_unknown_name(self):
        assert get_weekday_number("mo") == -1
        assert get_weekday_number("holiday") == -1


class TestWorkingTime:
    def test_hours_per_day(self, calendar):
        assert calendar.hours_per_day == 8

    def test_weekend_is_not_working(self, calendar):
        assert is_working_day(calendar, date(2024, 1, 8))
        assert not is_working_day(calendar, date(2024, 1, 13))

    def test_spans_are_half_open(self, calendar):
        assert is_working_instant(calendar, datetime(2024, 1, 8, 8, 0))
        assert not is_working_instant(calendar, datetime(2024, 1, 8, 12, 0))
        assert not is_working_instant(calendar, datetime(2024, 1, 8, 17, 0))

    def test_add_stops_at_span_end(self, calendar, monday):
        # Ровно один рабочий день заканчивается в 17:00 того же дня
        assert add_working_units(calendar, monday, 8) == datetime(2024, 1, 8, 17, 0)

    def test_add_skips_lunch_and_weekend(self, calendar):
        friday = datetime(2024, 1, 12, 10, 0)
        assert add_working_units(calendar, friday, 2) == datetime(2024, 1, 12, 12, 0)
        assert add_working_units(calendar, friday, 3) == datetime(2024, 1, 12, 14, 0)
        assert add_working_units(calendar, friday, 8) == datetime(2024, 1, 15, 10, 0)

    def test_subtract_stops_at_span_start(self, calendar):
        finish = datetime(2024, 1, 8, 17, 0)
        assert add_working_units(calendar, finish, -8) == datetime(2024, 1, 8, 8, 0)
        assert add_working_units(calendar, datetime(2024, 1, 15, 8, 0), -1) == datetime(2024, 1, 12, 16, 0)

    def test_round_trip(self, calendar, monday):
        for units in (0.5, 3, 8, 13, 40, 77.25):
            end = add_working_units(calendar, monday, units)
            assert working_units_between(calendar, monday, end) == pytest.approx(units)

    def test_between_is_signed(self, calendar, monday):
        later = datetime(2024, 1, 9, 17, 0)
        assert working_units_between(calendar, monday, later) == 16
        assert working_units_between(calendar, later, monday) == -16
        assert working_days_between(calendar, monday, later) == 2

    def test_add_working_days(self, calendar, monday):
        assert add_working_days(calendar, monday, 5) == datetime(2024, 1, 12, 17, 0)

    def test_snapping(self, calendar):
        saturday = datetime(2024, 1, 13, 10, 0)
        assert snap_forward(calendar, saturday) == datetime(2024, 1, 15, 8, 0)
        assert snap_backward(calendar, saturday) == datetime(2024, 1, 12, 17, 0)
        lunch = datetime(2024, 1, 8, 12, 30)
        assert snap_forward(calendar, lunch) == datetime(2024, 1, 8, 13, 0)
        assert snap_backward(calendar, lunch) == datetime(2024, 1, 8, 12, 0)

    def test_midnight_span_end(self):
        calendar = Calendar(id="night", working_days=(0, 1, 2, 3, 4, 5, 6),
                            working_hours=[WorkingSpan(time(20, 0), time(0, 0))])
        assert calendar.hours_per_day == 4
        start = datetime(2024, 1, 8, 20, 0)
        assert add_working_units(calendar, start, 4) == datetime(2024, 1, 9, 0, 0)
        assert add_working_units(calendar, start, 5) == datetime(2024, 1, 9, 21, 0)


class TestExceptions:
    def test_holiday_is_skipped(self, monday):
        calendar = Calendar(exceptions=[CalendarException(date(2024, 1, 9), date(2024, 1, 9), name="Holiday")])
        assert add_working_units(calendar, monday, 16) == datetime(2024, 1, 10, 17, 0)

    def test_working_weekend(self):
        calendar = Calendar(exceptions=[CalendarException(date(2024, 1, 13), date(2024, 1, 13), is_working=True)])
        assert is_working_day(calendar, date(2024, 1, 13))
        assert add_working_units(calendar, datetime(2024, 1, 12, 17, 0), 8) == datetime(2024, 1, 13, 17, 0)

    def test_last_added_exception_wins(self):
        closed = CalendarException(date(2024, 1, 8), date(2024, 1, 12), is_working=False, name="Closed")
        opened = CalendarException(date(2024, 1, 10), date(2024, 1, 10), is_working=True, name="Open day")
        calendar = Calendar(exceptions=[closed, opened])
        assert resolve_exception(calendar, date(2024, 1, 10)) is opened
        assert is_working_day(calendar, date(2024, 1, 10))
        assert not is_working_day(calendar, date(2024, 1, 9))

        reversed_calendar = Calendar(exceptions=[opened, closed])
        assert not is_working_day(reversed_calendar, date(2024, 1, 10))


class TestInvalidCalendar:
    def test_no_working_hours(self, monday):
        with pytest.raises(InvalidCalendar):
            add_working_units(Calendar(working_hours=[]), monday, 8)

    def test_no_working_days(self):
        with pytest.raises(InvalidCalendar):
            validate_calendar(Calendar(working_days=()))

    def test_overlapping_spans(self):
        calendar = Calendar(working_hours=[WorkingSpan(time(8), time(13)), WorkingSpan(time(12), time(17))])
        with pytest.raises(InvalidCalendar):
            validate_calendar(calendar)

    def test_reversed_exception(self):
        calendar = Calendar(exceptions=[CalendarException(date(2024, 1, 10), date(2024, 1, 9))])
        with pytest.raises(InvalidCalendar):
            validate_calendar(calendar)

    def test_unbounded_exception(self, monday):
        calendar = Calendar(exceptions=[CalendarException(date(2024, 1, 1), date.max, name="Shutdown")])
        with pytest.raises(InvalidCalendar):
            validate_calendar(calendar)
        with pytest.raises(InvalidCalendar):
            add_working_units(calendar, monday, 8)

    def test_exception_longer_than_ten_years(self):
        calendar = Calendar(exceptions=[CalendarException(date(2024, 1, 1), date(2040, 1, 1))])
        with pytest.raises(InvalidCalendar):
            validate_calendar(calendar)

    def test_exception_only_calendar_runs_dry(self, monday):
        calendar = Calendar(working_days=(), exceptions=[
            CalendarException(date(2024, 1, 8), date(2024, 1, 8), is_working=True)])
        assert add_working_units(calendar, monday, 8) == datetime(2024, 1, 8, 17, 0)
        with pytest.raises(InvalidCalendar):
            add_working_units(calendar, monday, 9)


class TestTaskDuration:
    def test_milestone_is_zero(self, calendar):
        assert task_duration(Task(id="m", duration=3, type=TaskType.MILESTONE), calendar) == 0

    def test_explicit_duration_wins(self, calendar, monday):
        task = Task(id="t", duration=2, start=monday, end=datetime(2024, 1, 12, 17, 0))
        assert task_duration(task, calendar) == 2

    def test_derived_from_dates(self, calendar, monday):
        task = Task(id="t", start=monday, end=datetime(2024, 1, 12, 17, 0))
        assert task_duration(task, calendar) == 5
