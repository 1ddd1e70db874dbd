import pytest
from datetime import date, datetime, time, timezone
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import dispatchpilot.db.models  # noqa: F401  registers every table on Base.metadata
from dispatchpilot.db.database import Base
from dispatchpilot.db.models.contractors import Contractors
from dispatchpilot.db.models.jobs import Jobs, JobStatus
from dispatchpilot.db.models.working_hours import ContractorWorkingHours


@pytest.fixture
def engine():
    # in-memory SQLite shared across sessions and threads
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def add_contractor(db):
    """Factory: persist a contractor working Mon-Fri 09:00-17:00 in its timezone."""
    def _add(
        name: str = "Alex",
        rating: int = 80,
        skills: list = None,
        latitude: float = 51.5,
        longitude: float = -0.12,
        timezone_name: str = "UTC",
        break_minutes: int = 0,
        max_jobs_per_day: int = 4,
        **kwargs,
    ) -> Contractors:
        contractor = Contractors(
            name=name,
            base_latitude=latitude,
            base_longitude=longitude,
            rating=rating,
            skills=skills if skills is not None else ["plumbing"],
            timezone=timezone_name,
            daily_break_minutes=break_minutes,
            max_jobs_per_day=max_jobs_per_day,
            **kwargs,
        )
        contractor.working_hours = [
            ContractorWorkingHours(day_of_week=d, start_time_local=time(9, 0),
                                   end_time_local=time(17, 0), timezone=timezone_name)
            for d in range(5)
        ]
        db.add(contractor)
        db.commit()
        db.refresh(contractor)
        return contractor
    return _add


@pytest.fixture
def add_job(db):
    """Factory: persist a job on Monday 2025-01-20 with an 08:00-18:00 UTC window."""
    def _add(
        required_skills: list = None,
        duration_minutes: int = 60,
        latitude: float = 51.5,
        longitude: float = -0.12,
        status: JobStatus = JobStatus.CREATED,
        start: datetime = datetime(2025, 1, 20, 8, 0, tzinfo=timezone.utc),
        end: datetime = datetime(2025, 1, 20, 18, 0, tzinfo=timezone.utc),
    ) -> Jobs:
        job = Jobs(
            type="repair",
            required_skills=required_skills if required_skills is not None else ["plumbing"],
            duration_minutes=duration_minutes,
            latitude=latitude,
            longitude=longitude,
            desired_date=date(2025, 1, 20),
            service_window_start_utc=start,
            service_window_end_utc=end,
            status=status,
        )
        db.add(job)
        db.commit()
        db.refresh(job)
        return job
    return _add
