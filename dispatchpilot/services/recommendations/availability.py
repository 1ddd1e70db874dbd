"""
Availability slot finding.
Turns a contractor's working hours, calendar, breaks and existing
assignments into concrete free slots for one job.
"""

from datetime import datetime, date, time, timedelta, timezone
from typing import Iterable, Iterator, Optional
from zoneinfo import ZoneInfo

from .fatigue import check_fatigue, earliest_rested_start
from .types import (
    Assignment,
    CalendarExceptionType,
    Contractor,
    Job,
    TimeWindow,
)


def datetime_ranges_overlap(
    start1: datetime, end1: datetime,
    start2: datetime, end2: datetime
) -> bool:
    """Check if two datetime ranges overlap."""
    return start1 < end2 and start2 < end1


def subtract_window(intervals: list[TimeWindow], blocked: TimeWindow) -> list[TimeWindow]:
    """Remove one blocked window from a list of intervals, splitting where needed."""
    remaining = []
    for interval in intervals:
        if not datetime_ranges_overlap(interval.start, interval.end, blocked.start, blocked.end):
            remaining.append(interval)
            continue
        if interval.start < blocked.start:
            remaining.append(TimeWindow(interval.start, blocked.start))
        if interval.end > blocked.end:
            remaining.append(TimeWindow(blocked.end, interval.end))
    return remaining


def local_dates_spanned(window: TimeWindow, tz: ZoneInfo) -> list[date]:
    """Every local calendar date touched by a UTC window."""
    first = window.start.astimezone(tz).date()
    # end is exclusive
    last = (window.end - timedelta(microseconds=1)).astimezone(tz).date()
    days = []
    current = first
    while current <= last:
        days.append(current)
        current += timedelta(days=1)
    return days


def day_window(day: date, tz_name: str) -> TimeWindow:
    """The whole local day as a UTC window."""
    tz = ZoneInfo(tz_name)
    start = datetime.combine(day, time.min, tzinfo=tz)
    end = datetime.combine(day + timedelta(days=1), time.min, tzinfo=tz)
    return TimeWindow(start.astimezone(timezone.utc), end.astimezone(timezone.utc))


def get_working_interval(contractor: Contractor, day: date) -> Optional[TimeWindow]:
    """
    Get the contractor's working interval for a local date, after calendar exceptions.

    Returns:
        UTC TimeWindow, or None if the contractor does not work that day
        (holiday, unavailable exception, or no declared hours)
    """
    calendar = contractor.calendar
    if day in calendar.holidays:
        return None

    hours = None
    exception = calendar.exception_for(day)
    if exception is not None:
        if exception.type in (CalendarExceptionType.HOLIDAY, CalendarExceptionType.UNAVAILABLE):
            return None
        hours = exception.override_hours
    else:
        hours = contractor.hours_for(day.weekday())

    if hours is None:
        return None

    tz = ZoneInfo(hours.timezone or contractor.timezone)
    start = datetime.combine(day, hours.start_time, tzinfo=tz).astimezone(timezone.utc)
    end = datetime.combine(day, hours.end_time, tzinfo=tz).astimezone(timezone.utc)
    if end <= start:
        return None
    return TimeWindow(start, end)


def get_break_window(working: TimeWindow, break_minutes: int) -> Optional[TimeWindow]:
    """Daily break centred on the midpoint of the working interval."""
    if break_minutes <= 0:
        return None
    midpoint = working.start + working.duration / 2
    half = timedelta(minutes=break_minutes) / 2
    start = max(working.start, midpoint - half)
    end = min(working.end, midpoint + half)
    return TimeWindow(start, end)


def count_jobs_on_day(
    contractor: Contractor,
    day: date,
    assignments: Iterable[Assignment],
) -> int:
    """Active assignments starting on a local date, never below the stored counter for that date."""
    tz = ZoneInfo(contractor.timezone)
    booked = sum(
        1 for a in assignments
        if a.contractor_id == contractor.id
        and a.is_active
        and a.window.start.astimezone(tz).date() == day
    )
    if contractor.utilization_date == day:
        booked = max(booked, contractor.jobs_booked_today)
    return booked


def get_free_intervals(
    contractor: Contractor,
    service_window: TimeWindow,
    assignments: Iterable[Assignment] = (),
) -> list[TimeWindow]:
    """
    Free intervals for a contractor within the service window, earliest first.

    Per local date: working hours (or calendar override) intersected with the
    service window, minus the daily break, minus active assignments. Dates at
    or over the max-jobs-per-day cap are removed entirely.
    """
    assignments = [a for a in assignments if a.contractor_id == contractor.id and a.is_active]
    tz = ZoneInfo(contractor.timezone)

    free: list[TimeWindow] = []
    for day in local_dates_spanned(service_window, tz):
        working = get_working_interval(contractor, day)
        if working is None:
            continue

        if count_jobs_on_day(contractor, day, assignments) >= contractor.max_jobs_per_day:
            continue

        start = max(working.start, service_window.start)
        end = min(working.end, service_window.end)
        if start >= end:
            continue
        day_free = [TimeWindow(start, end)]

        brk = get_break_window(working, contractor.calendar.daily_break_minutes)
        if brk is not None:
            day_free = subtract_window(day_free, brk)

        for assignment in assignments:
            if assignment.window.overlaps(working):
                day_free = subtract_window(day_free, assignment.window)

        free.extend(day_free)

    return sorted(free, key=lambda w: w.start)


def find_slots(
    contractor: Contractor,
    job: Job,
    desired_date: date,
    service_window: Optional[TimeWindow] = None,
    assignments: Iterable[Assignment] = (),
    max_slots: int = 3,
) -> Iterator[TimeWindow]:
    """
    Yield up to max_slots windows of exactly the job's duration, earliest first.

    One slot per free interval, left-aligned. A job is never split across
    intervals, so an interval shorter than the job yields nothing even if the
    total free time would suffice. When no service window is given the whole
    desired date in the contractor's timezone is searched.

    Slots breaching the fatigue limits are dropped; a slot that would extend a
    full run of back-to-back jobs starts after the rest gap instead.
    """
    if max_slots <= 0:
        return
    if service_window is None:
        service_window = day_window(desired_date, contractor.timezone)

    assignments = [a for a in assignments if a.contractor_id == contractor.id and a.is_active]
    booked = [a.window for a in assignments]
    is_rush = job.priority == "RUSH"

    emitted = 0
    for interval in get_free_intervals(contractor, service_window, assignments):
        start = earliest_rested_start(interval.start, booked)
        if interval.end - start < job.duration:
            continue
        slot = TimeWindow(start, start + job.duration)
        if check_fatigue(slot, booked, contractor.timezone, is_rush) is not None:
            continue
        yield slot
        emitted += 1
        if emitted >= max_slots:
            return
