"""
Job and assignment lifecycle, plus contractor calendar/rating maintenance.
Every change writes an event-log row in the same transaction.
"""

import logging
from datetime import date, datetime, time
from typing import Optional
from zoneinfo import ZoneInfo

from sqlalchemy.orm import Session

from dispatchpilot.core.config import settings
from dispatchpilot.core.errors import InvalidStateTransition, NotFoundError, ValidationFailure
from dispatchpilot.db.models.assignments import Assignments, AssignmentSource, AssignmentStatus
from dispatchpilot.db.models.calendar import CalendarExceptions, CalendarExceptionType
from dispatchpilot.db.models.contractors import Contractors
from dispatchpilot.db.models.jobs import Jobs, JobStatus
from dispatchpilot.db.models.working_hours import ContractorWorkingHours
from dispatchpilot.services.recommendations.audit import write_event
from dispatchpilot.services.recommendations.data_loader import as_utc
from dispatchpilot.services.recommendations.types import WorkingHours


logger = logging.getLogger(__name__)

JOB_TRANSITIONS: dict[JobStatus, set[JobStatus]] = {
    JobStatus.CREATED: {JobStatus.CANCELLED},
    JobStatus.ASSIGNED: {JobStatus.IN_PROGRESS, JobStatus.CANCELLED},
    JobStatus.IN_PROGRESS: {JobStatus.COMPLETED},
    JobStatus.COMPLETED: set(),
    JobStatus.CANCELLED: set(),
}

# Only driven by assignment confirmation and cancellation
INTERNAL_JOB_TRANSITIONS = {
    (JobStatus.CREATED, JobStatus.ASSIGNED),
    (JobStatus.ASSIGNED, JobStatus.CREATED),
}

TERMINAL_JOB_STATUSES = {JobStatus.COMPLETED, JobStatus.CANCELLED}


def _get_job(db: Session, job_id: int) -> Jobs:
    job = db.query(Jobs).filter(Jobs.id == job_id).first()
    if not job:
        raise NotFoundError("Job", job_id)
    return job


def _get_contractor(db: Session, contractor_id: int) -> Contractors:
    contractor = db.query(Contractors).filter(Contractors.id == contractor_id).first()
    if not contractor:
        raise NotFoundError("Contractor", contractor_id)
    return contractor


def _get_assignment(db: Session, assignment_id: int) -> Assignments:
    assignment = db.query(Assignments).filter(Assignments.id == assignment_id).first()
    if not assignment:
        raise NotFoundError("Assignment", assignment_id)
    return assignment


def _set_job_status(db: Session, job: Jobs, new_status: JobStatus, actor: str, internal: bool = False) -> None:
    old_status = job.status
    if new_status == old_status:
        return
    allowed = internal and (old_status, new_status) in INTERNAL_JOB_TRANSITIONS
    if not allowed and new_status not in JOB_TRANSITIONS[old_status]:
        raise InvalidStateTransition(f"Job {job.id} cannot move from {old_status.value} to {new_status.value}")
    job.status = new_status
    write_event(db, "JobStatusChanged", {
        "job_id": job.id,
        "from": old_status.value,
        "to": new_status.value,
        "actor": actor,
    })
    logger.info(f"Job {job.id} status {old_status.value} -> {new_status.value} by {actor}")


def change_job_status(db: Session, job_id: int, new_status: JobStatus, actor: str) -> Jobs:
    """
    Move a job through Assigned -> InProgress -> Completed.
    Created and Assigned can be cancelled; Completed and Cancelled are terminal.
    Created -> Assigned happens only by confirming an assignment.

    Cancelling a job cancels every open assignment it holds in the same
    transaction, releasing the contractors' capacity.
    """
    job = _get_job(db, job_id)
    _set_job_status(db, job, new_status, actor)

    if new_status == JobStatus.CANCELLED:
        open_assignments = db.query(Assignments).filter(
            Assignments.job_id == job.id,
            Assignments.status != AssignmentStatus.CANCELLED,
        ).order_by(Assignments.id).all()
        for assignment in open_assignments:
            _release_assignment(db, assignment, actor)
        if open_assignments:
            logger.info(f"Job {job.id} cancelled with {len(open_assignments)} open assignment(s) released")

    db.commit()
    db.refresh(job)
    return job


# ---- assignments ----

def _local_day(contractor: Contractors, moment: datetime) -> date:
    return as_utc(moment).astimezone(ZoneInfo(contractor.timezone)).date()


def _adjust_booked_counter(contractor: Contractors, day: date, delta: int) -> None:
    """Counters track one local day; moving to another day starts from zero."""
    if contractor.utilization_date != day:
        if delta < 0:
            return
        contractor.utilization_date = day
        contractor.jobs_booked_today = 0

    contractor.jobs_booked_today = max(0, contractor.jobs_booked_today + delta)
    if contractor.max_jobs_per_day > 0:
        contractor.current_utilization = min(1.0, contractor.jobs_booked_today / contractor.max_jobs_per_day)
    else:
        contractor.current_utilization = 1.0


def _release_assignment(db: Session, assignment: Assignments, actor: str) -> None:
    """Mark an assignment cancelled, give the slot back and log it. Caller commits."""
    contractor = _get_contractor(db, assignment.contractor_id)
    assignment.status = AssignmentStatus.CANCELLED
    _adjust_booked_counter(contractor, _local_day(contractor, assignment.start_datetime_utc), -1)
    db.flush()
    write_event(db, "AssignmentCancelled", {
        "assignment_id": assignment.id,
        "job_id": assignment.job_id,
        "contractor_id": contractor.id,
        "actor": actor,
    })


def create_assignment(
    db: Session,
    job_id: int,
    contractor_id: int,
    start_utc: datetime,
    end_utc: datetime,
    actor: str,
    audit_id: Optional[int] = None,
) -> Assignments:
    """Book a contractor for a job as a Pending assignment."""
    start_utc = as_utc(start_utc)
    end_utc = as_utc(end_utc)
    errors = []
    if end_utc <= start_utc:
        errors.append("Assignment end must be after start")
    if not actor or not actor.strip():
        errors.append("actor cannot be empty")
    if errors:
        raise ValidationFailure(errors)

    job = _get_job(db, job_id)
    if job.status in TERMINAL_JOB_STATUSES:
        raise InvalidStateTransition(f"Job {job_id} is {job.status.value} and cannot be assigned")

    contractor = _get_contractor(db, contractor_id)
    if not contractor.is_active:
        raise ValidationFailure(f"Contractor {contractor_id} is not active")

    overlapping = db.query(Assignments).filter(
        Assignments.contractor_id == contractor_id,
        Assignments.status != AssignmentStatus.CANCELLED,
        Assignments.start_datetime_utc < end_utc,
        Assignments.end_datetime_utc > start_utc,
    ).first()
    if overlapping:
        raise ValidationFailure(f"Contractor {contractor_id} already has assignment {overlapping.id} in that window")

    assignment = Assignments(
        job_id=job_id,
        contractor_id=contractor_id,
        start_datetime_utc=start_utc,
        end_datetime_utc=end_utc,
        source=AssignmentSource.RECOMMENDED if audit_id is not None else AssignmentSource.MANUAL,
        status=AssignmentStatus.PENDING,
        audit_id=audit_id,
    )
    db.add(assignment)
    _adjust_booked_counter(contractor, _local_day(contractor, start_utc), +1)
    db.flush()

    write_event(db, "AssignmentCreated", {
        "assignment_id": assignment.id,
        "job_id": job_id,
        "contractor_id": contractor_id,
        "audit_id": audit_id,
        "actor": actor,
    })
    db.commit()
    db.refresh(assignment)
    logger.info(f"Assignment {assignment.id} created for job {job_id} / contractor {contractor_id} by {actor}")
    return assignment


def confirm_assignment(db: Session, assignment_id: int, actor: str) -> Assignments:
    """Pending -> Confirmed. The job moves Created -> Assigned."""
    assignment = _get_assignment(db, assignment_id)
    if assignment.status != AssignmentStatus.PENDING:
        raise InvalidStateTransition(
            f"Assignment {assignment_id} is {assignment.status.value}; only PENDING can be confirmed"
        )

    job = _get_job(db, assignment.job_id)
    if job.status in TERMINAL_JOB_STATUSES:
        raise InvalidStateTransition(f"Job {job.id} is {job.status.value}")

    assignment.status = AssignmentStatus.CONFIRMED
    if job.status == JobStatus.CREATED:
        _set_job_status(db, job, JobStatus.ASSIGNED, actor, internal=True)

    write_event(db, "AssignmentConfirmed", {
        "assignment_id": assignment.id,
        "job_id": job.id,
        "contractor_id": assignment.contractor_id,
        "actor": actor,
    })
    db.commit()
    db.refresh(assignment)
    return assignment


def cancel_assignment(db: Session, assignment_id: int, actor: str) -> Assignments:
    """
    Pending/Confirmed -> Cancelled, releasing the contractor's capacity.
    If no confirmed assignment remains the job returns to Created.
    """
    assignment = _get_assignment(db, assignment_id)
    if assignment.status == AssignmentStatus.CANCELLED:
        raise InvalidStateTransition(f"Assignment {assignment_id} is already cancelled")

    job = _get_job(db, assignment.job_id)
    _release_assignment(db, assignment, actor)

    if job.status == JobStatus.ASSIGNED:
        remaining = db.query(Assignments).filter(
            Assignments.job_id == job.id,
            Assignments.status == AssignmentStatus.CONFIRMED,
        ).count()
        if remaining == 0:
            _set_job_status(db, job, JobStatus.CREATED, actor, internal=True)

    db.commit()
    db.refresh(assignment)
    logger.info(f"Assignment {assignment_id} cancelled by {actor}")
    return assignment


# ---- contractors ----

def update_contractor_rating(db: Session, contractor_id: int, rating: int, actor: str) -> Contractors:
    if not 0 <= rating <= settings.RATING_SCALE_MAX:
        raise ValidationFailure(f"rating must be between 0 and {settings.RATING_SCALE_MAX}, got {rating}")

    contractor = _get_contractor(db, contractor_id)
    old_rating = contractor.rating
    contractor.rating = rating
    write_event(db, "ContractorRated", {
        "contractor_id": contractor_id,
        "from": old_rating,
        "to": rating,
        "actor": actor,
    })
    db.commit()
    db.refresh(contractor)
    return contractor


def add_calendar_exception(
    db: Session,
    contractor_id: int,
    exception_date: date,
    exception_type: CalendarExceptionType,
    start_time: Optional[time] = None,
    end_time: Optional[time] = None,
) -> CalendarExceptions:
    """At most one exception per contractor per date."""
    errors = []
    if exception_type == CalendarExceptionType.MODIFIED_HOURS:
        if start_time is None or end_time is None:
            errors.append("MODIFIED_HOURS requires start_time and end_time")
        elif start_time >= end_time:
            errors.append("start_time must be before end_time")
    elif start_time is not None or end_time is not None:
        errors.append(f"{exception_type.value} exceptions do not take hours")
    if errors:
        raise ValidationFailure(errors)

    _get_contractor(db, contractor_id)
    existing = db.query(CalendarExceptions).filter(
        CalendarExceptions.contractor_id == contractor_id,
        CalendarExceptions.exception_date == exception_date,
    ).first()
    if existing:
        raise ValidationFailure(f"Contractor {contractor_id} already has an exception on {exception_date.isoformat()}")

    exception = CalendarExceptions(
        contractor_id=contractor_id,
        exception_date=exception_date,
        type=exception_type,
        start_time_local=start_time,
        end_time_local=end_time,
    )
    db.add(exception)
    db.commit()
    db.refresh(exception)
    return exception


def remove_calendar_exception(db: Session, contractor_id: int, exception_date: date) -> None:
    exception = db.query(CalendarExceptions).filter(
        CalendarExceptions.contractor_id == contractor_id,
        CalendarExceptions.exception_date == exception_date,
    ).first()
    if not exception:
        raise NotFoundError("Calendar exception", f"{contractor_id}/{exception_date.isoformat()}")
    db.delete(exception)
    db.commit()


def replace_working_hours(db: Session, contractor_id: int, hours: list[WorkingHours]) -> list[ContractorWorkingHours]:
    """Replace the whole weekly schedule. One entry per day-of-week."""
    days = [h.day_of_week for h in hours]
    duplicates = sorted({d for d in days if days.count(d) > 1})
    if duplicates:
        raise ValidationFailure(f"More than one working-hours entry for day(s) {duplicates}")

    contractor = _get_contractor(db, contractor_id)
    contractor.working_hours.clear()
    db.flush()

    for h in sorted(hours, key=lambda h: h.day_of_week):
        contractor.working_hours.append(ContractorWorkingHours(
            contractor_id=contractor_id,
            day_of_week=h.day_of_week,
            start_time_local=h.start_time,
            end_time_local=h.end_time,
            timezone=h.timezone,
        ))
    db.commit()
    db.refresh(contractor)
    return list(contractor.working_hours)
