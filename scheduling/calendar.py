# scheduling/calendar.py
"""
Календарная арифметика: working time predicates and conversions between
working hours and absolute instants.

Working unit at this level is one working hour. Durations and lags of tasks
are kept in working days and converted through ``calendar.hours_per_day``.
"""
from datetime import date, datetime, timedelta, time
import logging

from scheduling.errors import InvalidCalendar
from scheduling.models import TaskType

logger = logging.getLogger(__name__)

ONE_DAY = timedelta(days=1)
# Исключения длиннее десяти лет или у границ диапазона дат считаются ошибкой
MAX_EXCEPTION_SPAN = timedelta(days=3660)
DATE_MARGIN = timedelta(days=366)


def get_weekday_number(day_name):
    """
    Преобразует название дня недели в числовой формат.

    Args:
        day_name: Название дня недели (full English name or three-letter abbreviation)

    Returns:
        Числовой формат дня недели (0-6, где 0 - понедельник), -1 if unknown
    """
    days = {
        'monday': 0,
        'tuesday': 1,
        'wednesday': 2,
        'thursday': 3,
        'friday': 4,
        'saturday': 5,
        'sunday': 6
    }

    name = day_name.strip().lower()
    if name in days:
        return days[name]
    for full_name, number in days.items():
        if len(name) >= 3 and full_name.startswith(name):
            return number
    return -1


def validate_calendar(calendar):
    """
    Проверяет, что календарь пригоден для расчетов.

    Raises:
        InvalidCalendar: zero working time, malformed spans or exception ranges
    """
    if not calendar.working_hours or calendar.hours_per_day <= 0:
        raise InvalidCalendar(f"Calendar '{calendar.id}' has no working time defined")

    previous_end = None
    for span in calendar.working_hours:
        if span.hours <= 0:
            raise InvalidCalendar(
                f"Calendar '{calendar.id}': span {span.start}-{span.end} is empty or reversed")
        if previous_end is not None and (previous_end == time(0) or span.start < previous_end):
            raise InvalidCalendar(f"Calendar '{calendar.id}': working spans overlap or are unordered")
        previous_end = span.end

    for day in calendar.working_days:
        if not 0 <= day <= 6:
            raise InvalidCalendar(f"Calendar '{calendar.id}': invalid weekday {day}")

    for exception in calendar.exceptions:
        if exception.end < exception.start:
            raise InvalidCalendar(
                f"Calendar '{calendar.id}': exception '{exception.name}' ends before it starts")
        if (exception.end - exception.start > MAX_EXCEPTION_SPAN
                or exception.start < date.min + DATE_MARGIN or exception.end > date.max - DATE_MARGIN):
            raise InvalidCalendar(
                f"Calendar '{calendar.id}': exception '{exception.name}' "
                f"{exception.start}..{exception.end} is out of range")

    if not calendar.working_days and not any(e.is_working for e in calendar.exceptions):
        raise InvalidCalendar(f"Calendar '{calendar.id}' has no working days")


def resolve_exception(calendar, day):
    """
    Находит исключение, действующее в указанный день.

    Exceptions may overlap; the one added last to ``calendar.exceptions`` wins.
    """
    for exception in reversed(calendar.exceptions):
        if exception.start <= day <= exception.end:
            return exception
    return None


def is_working_day(calendar, day):
    """Проверяет, является ли день рабочим."""
    exception = resolve_exception(calendar, day)
    if exception is not None:
        return exception.is_working
    return day.weekday() in calendar.working_days


def _day_spans(calendar, day, tzinfo=None):
    """Рабочие интервалы дня как пары абсолютных моментов."""
    if not is_working_day(calendar, day):
        return []

    spans = []
    for span in calendar.working_hours:
        span_start = datetime.combine(day, span.start, tzinfo=tzinfo)
        if span.end == time(0):
            span_end = datetime.combine(day + ONE_DAY, time(0), tzinfo=tzinfo)
        else:
            span_end = datetime.combine(day, span.end, tzinfo=tzinfo)
        spans.append((span_start, span_end))
    return spans


def _exhausted(calendar, day, step):
    """True when no working time can exist beyond ``day`` in the scan direction."""
    # Weekly mask always yields work within a week, only exception-only calendars run dry
    if calendar.working_days:
        return False
    working = [e for e in calendar.exceptions if e.is_working]
    if step > 0:
        return all(e.end < day for e in working)
    return all(e.start > day for e in working)


def is_working_instant(calendar, instant):
    """
    Проверяет, попадает ли момент в рабочее время. Spans are half-open: 17:00 is
    not working time for an 08:00-17:00 day.
    """
    for span_start, span_end in _day_spans(calendar, instant.date(), instant.tzinfo):
        if span_start <= instant < span_end:
            return True
    return False


def add_working_units(calendar, start, units):
    """
    Сдвигает момент на заданное количество рабочих часов.

    Forward additions that consume a span exactly stop at the span end (a finish
    instant); backward additions stop at the span start.

    Args:
        calendar: Рабочий календарь
        start: Исходный момент
        units: Рабочие часы, may be fractional or negative

    Returns:
        datetime: Результирующий момент
    """
    validate_calendar(calendar)

    if units == 0:
        return start

    remaining = timedelta(hours=abs(units))
    tzinfo = start.tzinfo
    day = start.date()

    if units > 0:
        while True:
            for span_start, span_end in _day_spans(calendar, day, tzinfo):
                if span_end <= start:
                    continue
                begin = max(span_start, start)
                available = span_end - begin
                if remaining <= available:
                    return begin + remaining
                remaining -= available
            day += ONE_DAY
            if _exhausted(calendar, day, 1):
                raise InvalidCalendar(f"Calendar '{calendar.id}' ran out of working time after {start}")
    else:
        while True:
            for span_start, span_end in reversed(_day_spans(calendar, day, tzinfo)):
                if span_start >= start:
                    continue
                finish = min(span_end, start)
                available = finish - span_start
                if remaining <= available:
                    return finish - remaining
                remaining -= available
            day -= ONE_DAY
            if _exhausted(calendar, day, -1):
                raise InvalidCalendar(f"Calendar '{calendar.id}' ran out of working time before {start}")


def working_units_between(calendar, a, b):
    """
    Считает рабочие часы между двумя моментами.

    Returns:
        float: Количество рабочих часов, negative if ``b`` is before ``a``
    """
    validate_calendar(calendar)

    if b < a:
        return -working_units_between(calendar, b, a)

    total = timedelta(0)
    day = a.date()
    while day <= b.date():
        for span_start, span_end in _day_spans(calendar, day, a.tzinfo):
            low = max(span_start, a)
            high = min(span_end, b)
            if high > low:
                total += high - low
        day += ONE_DAY

    return total.total_seconds() / 3600


def add_working_days(calendar, start, days):
    """Сдвигает момент на заданное количество рабочих дней."""
    return add_working_units(calendar, start, days * calendar.hours_per_day)


def working_days_between(calendar, a, b):
    """Считает рабочие дни между двумя моментами."""
    return working_units_between(calendar, a, b) / calendar.hours_per_day


def snap_forward(calendar, instant):
    """
    Возвращает ближайший рабочий момент не раньше указанного.

    An instant inside a span is returned unchanged, otherwise the start of the
    next span.
    """
    validate_calendar(calendar)

    day = instant.date()
    while True:
        for span_start, span_end in _day_spans(calendar, day, instant.tzinfo):
            if span_start <= instant < span_end:
                return instant
            if span_start > instant:
                return span_start
        day += ONE_DAY
        if _exhausted(calendar, day, 1):
            raise InvalidCalendar(f"Calendar '{calendar.id}' has no working time after {instant}")


def snap_backward(calendar, instant):
    """
    Возвращает последний момент окончания работы не позже указанного.

    An instant inside a span (or at its end) is returned unchanged, otherwise
    the end of the previous span.
    """
    validate_calendar(calendar)

    day = instant.date()
    while True:
        for span_start, span_end in reversed(_day_spans(calendar, day, instant.tzinfo)):
            if span_start < instant <= span_end:
                return instant
            if span_end <= instant:
                return span_end
        day -= ONE_DAY
        if _exhausted(calendar, day, -1):
            raise InvalidCalendar(f"Calendar '{calendar.id}' has no working time before {instant}")


def task_duration(task, calendar):
    """
    Определяет длительность задачи в рабочих днях.

    Milestones are always zero; an explicit duration wins over one derived from
    the task's start/end.
    """
    if task.type == TaskType.MILESTONE:
        return 0.0
    if task.duration is not None:
        return float(task.duration)
    if task.start is not None and task.end is not None:
        return max(0.0, working_days_between(calendar, task.start, task.end))
    logger.debug(f"Task {task.id} has neither duration nor dates, using 0")
    return 0.0
