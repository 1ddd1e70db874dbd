"""
Data loader for the recommendation service.
Fetches jobs, contractors and assignments from the database and converts them to internal types.
"""

from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional

from sqlalchemy import select, and_
from sqlalchemy.orm import Session

from dispatchpilot.core.errors import NotFoundError
from dispatchpilot.db.models.assignments import Assignments, AssignmentStatus as DbAssignmentStatus
from dispatchpilot.db.models.contractors import Contractors
from dispatchpilot.db.models.jobs import Jobs

from .types import (
    Assignment,
    AssignmentStatus,
    CalendarException,
    CalendarExceptionType,
    Contractor,
    ContractorCalendar,
    Job,
    TimeWindow,
    WorkingHours,
)


def as_utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; everything stored is UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def normalize_skills(skills: Optional[Iterable[str]]) -> list[str]:
    """Trimmed, lower-cased, de-duplicated, order kept."""
    seen = []
    for skill in skills or []:
        cleaned = str(skill).strip().lower()
        if cleaned and cleaned not in seen:
            seen.append(cleaned)
    return seen


def has_required_skills(contractor: Contractor, required: Iterable[str]) -> bool:
    """Superset match. An empty requirement matches everyone."""
    return set(normalize_skills(required)).issubset(normalize_skills(contractor.skills))


def _to_contractor(row: Contractors) -> Contractor:
    hours = [
        WorkingHours(
            day_of_week=wh.day_of_week,
            start_time=wh.start_time_local,
            end_time=wh.end_time_local,
            timezone=wh.timezone or row.timezone,
        )
        for wh in row.working_hours
    ]

    exceptions = []
    for exc in row.calendar_exceptions:
        exc_type = CalendarExceptionType(exc.type.value)
        override = None
        if exc_type == CalendarExceptionType.MODIFIED_HOURS:
            override = WorkingHours(
                day_of_week=exc.exception_date.weekday(),
                start_time=exc.start_time_local,
                end_time=exc.end_time_local,
                timezone=row.timezone,
            )
        exceptions.append(CalendarException(date=exc.exception_date, type=exc_type, override_hours=override))

    return Contractor(
        id=row.id,
        name=row.name,
        latitude=row.base_latitude,
        longitude=row.base_longitude,
        rating=row.rating,
        skills=normalize_skills(row.skills),
        working_hours=hours,
        calendar=ContractorCalendar(
            holidays={h.holiday_date for h in row.holidays},
            exceptions=exceptions,
            daily_break_minutes=row.daily_break_minutes,
        ),
        timezone=row.timezone,
        jobs_booked_today=row.jobs_booked_today,
        max_jobs_per_day=row.max_jobs_per_day,
        current_utilization=row.current_utilization,
        utilization_date=row.utilization_date,
        base_address=row.base_address,
    )


def job_from_row(row: Jobs) -> Job:
    return Job(
        id=row.id,
        type=row.type,
        duration_minutes=row.duration_minutes,
        latitude=row.latitude,
        longitude=row.longitude,
        desired_date=row.desired_date,
        service_window=TimeWindow(
            as_utc(row.service_window_start_utc),
            as_utc(row.service_window_end_utc),
        ),
        required_skills=normalize_skills(row.required_skills),
        priority=row.priority.value,
        status=row.status.value,
        timezone=row.timezone,
    )


def load_job(db: Session, job_id: int) -> Job:
    row = db.get(Jobs, job_id)
    if row is None:
        raise NotFoundError("Job", job_id)
    return job_from_row(row)


def load_active_contractors(db: Session) -> list[Contractor]:
    """All active contractors with hours, holidays and exceptions, ordered by id."""
    stmt = select(Contractors).where(Contractors.is_active == True).order_by(Contractors.id)
    rows = db.execute(stmt).scalars().all()
    return [_to_contractor(r) for r in rows]


def load_active_assignments(
    db: Session,
    contractor_ids: list[int],
    window: TimeWindow,
) -> list[Assignment]:
    """
    Non-cancelled assignments for the given contractors near the window.

    Padded by a day each side so per-local-date job counts are complete for
    every date the window touches, whatever the contractor's timezone.
    """
    if not contractor_ids:
        return []

    start = window.start - timedelta(days=1)
    end = window.end + timedelta(days=1)

    stmt = select(Assignments).where(
        and_(
            Assignments.contractor_id.in_(contractor_ids),
            Assignments.status != DbAssignmentStatus.CANCELLED,
            Assignments.start_datetime_utc < end,
            Assignments.end_datetime_utc > start,
        )
    )
    rows = db.execute(stmt).scalars().all()

    return [
        Assignment(
            id=r.id,
            job_id=r.job_id,
            contractor_id=r.contractor_id,
            window=TimeWindow(as_utc(r.start_datetime_utc), as_utc(r.end_datetime_utc)),
            status=AssignmentStatus(r.status.value),
        )
        for r in rows
    ]
