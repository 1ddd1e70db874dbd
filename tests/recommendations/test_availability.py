import pytest
from datetime import date, time, timedelta

from dispatchpilot.services.recommendations.types import (
    Assignment,
    AssignmentStatus,
    CalendarException,
    CalendarExceptionType,
    ContractorCalendar,
    TimeWindow,
    WorkingHours,
)
from dispatchpilot.services.recommendations.availability import (
    count_jobs_on_day,
    day_window,
    find_slots,
    get_break_window,
    get_free_intervals,
    get_working_interval,
    subtract_window,
)

from conftest import get_test_monday, make_contractor, make_job, utc, window


def _assignment(id: int, start_hour: float, end_hour: float, contractor_id: int = 1,
                status: AssignmentStatus = AssignmentStatus.CONFIRMED) -> Assignment:
    return Assignment(id=id, job_id=100 + id, contractor_id=contractor_id,
                      window=window(start_hour, end_hour), status=status)


class TestSubtractWindow:
    def test_no_overlap_keeps_interval(self):
        assert subtract_window([window(9, 12)], window(13, 14)) == [window(9, 12)]

    def test_middle_splits_interval(self):
        assert subtract_window([window(9, 17)], window(12, 13)) == [window(9, 12), window(13, 17)]

    def test_full_cover_removes_interval(self):
        assert subtract_window([window(10, 11)], window(9, 12)) == []


class TestWorkingInterval:
    def test_declared_hours(self, contractor):
        assert get_working_interval(contractor, get_test_monday()) == window(9, 17)

    def test_no_hours_on_weekend(self, contractor):
        assert get_working_interval(contractor, date(2025, 1, 25)) is None

    def test_holiday_set_removes_day(self):
        c = make_contractor(calendar=ContractorCalendar(holidays={get_test_monday()}))
        assert get_working_interval(c, get_test_monday()) is None

    def test_modified_hours_replace_day(self):
        override = WorkingHours(day_of_week=0, start_time=time(13, 0), end_time=time(15, 0))
        c = make_contractor(calendar=ContractorCalendar(exceptions=[
            CalendarException(get_test_monday(), CalendarExceptionType.MODIFIED_HOURS, override),
        ]))
        assert get_working_interval(c, get_test_monday()) == window(13, 15)

    def test_contractor_timezone_applied(self):
        # 9-17 in New York in January is 14:00-22:00 UTC
        c = make_contractor(tz="America/New_York")
        assert get_working_interval(c, get_test_monday()) == window(14, 22)


class TestBreakWindow:
    def test_centred_on_midpoint(self):
        assert get_break_window(window(9, 17), 60) == window(12.5, 13.5)

    def test_zero_minutes_no_break(self):
        assert get_break_window(window(9, 17), 0) is None

    def test_clipped_to_working_interval(self):
        assert get_break_window(window(9, 10), 120) == window(9, 10)


class TestFindSlots:
    def test_single_slot_left_aligned(self, contractor, job):
        slots = list(find_slots(contractor, job, get_test_monday(), job.service_window))
        assert slots == [window(9, 10)]

    def test_slot_duration_equals_job_duration(self, contractor):
        job = make_job(duration_minutes=90)
        slots = list(find_slots(contractor, job, get_test_monday(), job.service_window))
        assert all(s.duration == timedelta(minutes=90) for s in slots)

    def test_break_splits_day_into_two_slots(self, job):
        c = make_contractor(break_minutes=60)
        slots = list(find_slots(c, job, get_test_monday(), job.service_window))
        assert slots == [window(9, 10), window(13.5, 14.5)]

    def test_max_slots_respected(self, job):
        c = make_contractor(break_minutes=60)
        slots = list(find_slots(c, job, get_test_monday(), job.service_window, max_slots=1))
        assert slots == [window(9, 10)]

    def test_holiday_exception_yields_nothing(self, job):
        c = make_contractor(calendar=ContractorCalendar(exceptions=[
            CalendarException(get_test_monday(), CalendarExceptionType.HOLIDAY),
        ]))
        assert list(find_slots(c, job, get_test_monday(), job.service_window)) == []

    def test_unavailable_exception_yields_nothing(self, job):
        c = make_contractor(calendar=ContractorCalendar(exceptions=[
            CalendarException(get_test_monday(), CalendarExceptionType.UNAVAILABLE),
        ]))
        assert list(find_slots(c, job, get_test_monday(), job.service_window)) == []

    def test_holiday_on_one_day_keeps_other_days(self):
        # window spans Monday evening into Tuesday; Monday is a holiday
        c = make_contractor(calendar=ContractorCalendar(exceptions=[
            CalendarException(get_test_monday(), CalendarExceptionType.HOLIDAY),
        ]))
        service_window = TimeWindow(utc(2025, 1, 20, 8), utc(2025, 1, 21, 18))
        job = make_job(service_window=service_window)
        slots = list(find_slots(c, job, get_test_monday(), service_window))
        assert slots == [TimeWindow(utc(2025, 1, 21, 9), utc(2025, 1, 21, 10))]
        assert all(s.start.date() != get_test_monday() for s in slots)

    def test_existing_assignment_is_subtracted(self, contractor, job):
        assignments = [_assignment(1, 9, 11)]
        slots = list(find_slots(contractor, job, get_test_monday(), job.service_window, assignments))
        assert slots == [window(11, 12)]

    def test_cancelled_assignment_ignored(self, contractor, job):
        assignments = [_assignment(1, 9, 11, status=AssignmentStatus.CANCELLED)]
        slots = list(find_slots(contractor, job, get_test_monday(), job.service_window, assignments))
        assert slots == [window(9, 10)]

    def test_other_contractors_assignments_ignored(self, contractor, job):
        assignments = [_assignment(1, 9, 11, contractor_id=2)]
        slots = list(find_slots(contractor, job, get_test_monday(), job.service_window, assignments))
        assert slots == [window(9, 10)]

    def test_daily_cap_removes_whole_day(self, job):
        c = make_contractor(max_jobs_per_day=1)
        assignments = [_assignment(1, 9, 10)]
        assert list(find_slots(c, job, get_test_monday(), job.service_window, assignments)) == []

    def test_stored_counter_for_the_day_counts_towards_cap(self, job):
        c = make_contractor(max_jobs_per_day=2, jobs_booked_today=2, utilization_date=get_test_monday())
        assert list(find_slots(c, job, get_test_monday(), job.service_window)) == []

    def test_stored_counter_for_another_day_ignored(self, job):
        c = make_contractor(max_jobs_per_day=2, jobs_booked_today=2, utilization_date=date(2025, 1, 17))
        assert list(find_slots(c, job, get_test_monday(), job.service_window)) == [window(9, 10)]

    def test_no_job_splitting(self):
        # two 3.5h intervals around the break, 7h free in total, 5h job
        c = make_contractor(break_minutes=60)
        job = make_job(duration_minutes=300)
        intervals = get_free_intervals(c, job.service_window)
        assert sum(i.duration_minutes for i in intervals) >= 300
        assert list(find_slots(c, job, get_test_monday(), job.service_window)) == []

    def test_service_window_clips_working_hours(self, contractor):
        job = make_job(service_window=window(15, 18))
        assert list(find_slots(contractor, job, get_test_monday(), job.service_window)) == [window(15, 16)]

    def test_desired_date_used_without_window(self, contractor, job):
        slots = list(find_slots(contractor, job, get_test_monday()))
        assert slots == [window(9, 10)]

    def test_multi_day_window_earliest_first(self, contractor):
        service_window = TimeWindow(utc(2025, 1, 20, 16), utc(2025, 1, 21, 12))
        job = make_job(service_window=service_window)
        slots = list(find_slots(contractor, job, get_test_monday(), service_window))
        assert slots == [
            TimeWindow(utc(2025, 1, 20, 16), utc(2025, 1, 20, 17)),
            TimeWindow(utc(2025, 1, 21, 9), utc(2025, 1, 21, 10)),
        ]

    def test_timezone_contractor_slot_in_utc(self, job):
        c = make_contractor(tz="America/New_York")
        service_window = TimeWindow(utc(2025, 1, 20, 0), utc(2025, 1, 21, 0))
        slots = list(find_slots(c, job, get_test_monday(), service_window))
        assert slots == [window(14, 15)]

    def test_zero_max_slots(self, contractor, job):
        assert list(find_slots(contractor, job, get_test_monday(), job.service_window, max_slots=0)) == []


class TestCountJobsOnDay:
    def test_counts_active_assignments_for_contractor(self, contractor):
        assignments = [
            _assignment(1, 9, 10),
            _assignment(2, 11, 12),
            _assignment(3, 13, 14, status=AssignmentStatus.CANCELLED),
            _assignment(4, 15, 16, contractor_id=2),
        ]
        assert count_jobs_on_day(contractor, get_test_monday(), assignments) == 2


class TestDayWindow:
    def test_utc_day(self):
        assert day_window(get_test_monday(), "UTC") == window(0, 24)

    def test_local_day_in_utc(self):
        w = day_window(get_test_monday(), "America/New_York")
        assert w.start == utc(2025, 1, 20, 5)
        assert w.end == utc(2025, 1, 21, 5)
