import pytest
from datetime import date, datetime, time, timedelta, timezone

from dispatchpilot.services.recommendations.types import (
    Contractor,
    ContractorCalendar,
    DistanceResult,
    Job,
    RotationConfig,
    ScoreBreakdown,
    ScoreResult,
    ScoredCandidate,
    ScoringWeightsConfig,
    TieBreakerFactor,
    TimeWindow,
    WeightFactors,
    WorkingHours,
)


def get_test_monday() -> date:
    # returns a fixed Monday for deterministic tests
    return date(2025, 1, 20)


def utc(year: int, month: int, day: int, hour: int = 0, minute: int = 0) -> datetime:
    return datetime(year, month, day, hour, minute, tzinfo=timezone.utc)


def window(start_hour: float, end_hour: float, day: date = None) -> TimeWindow:
    """Window on the test Monday (UTC), hours may be fractional."""
    day = day or get_test_monday()
    base = datetime.combine(day, time.min, tzinfo=timezone.utc)
    return TimeWindow(base + timedelta(hours=start_hour), base + timedelta(hours=end_hour))


def weekday_hours(start: time = time(9, 0), end: time = time(17, 0), tz: str = "UTC") -> list[WorkingHours]:
    # Monday to Friday
    return [WorkingHours(day_of_week=d, start_time=start, end_time=end, timezone=tz) for d in range(5)]


def make_contractor(
    id: int = 1,
    rating: int = 80,
    skills: list[str] = None,
    break_minutes: int = 0,
    max_jobs_per_day: int = 4,
    tz: str = "UTC",
    latitude: float = 51.5,
    longitude: float = -0.12,
    **kwargs,
) -> Contractor:
    calendar = kwargs.pop("calendar", None) or ContractorCalendar(daily_break_minutes=break_minutes)
    return Contractor(
        id=id,
        name=f"Contractor {id}",
        latitude=latitude,
        longitude=longitude,
        rating=rating,
        skills=skills if skills is not None else ["plumbing"],
        working_hours=kwargs.pop("working_hours", None) or weekday_hours(tz=tz),
        calendar=calendar,
        timezone=tz,
        max_jobs_per_day=max_jobs_per_day,
        **kwargs,
    )


def make_job(
    duration_minutes: int = 60,
    service_window: TimeWindow = None,
    required_skills: list[str] = None,
    latitude: float = 51.5,
    longitude: float = -0.12,
    priority: str = "NORMAL",
) -> Job:
    return Job(
        id=1,
        type="repair",
        duration_minutes=duration_minutes,
        latitude=latitude,
        longitude=longitude,
        desired_date=get_test_monday(),
        service_window=service_window or window(8, 18),
        required_skills=required_skills if required_skills is not None else ["plumbing"],
        priority=priority,
    )


def make_config(
    availability: float = 0.4,
    rating: float = 0.4,
    distance: float = 0.2,
    tie_breakers: tuple = (TieBreakerFactor.AVAILABILITY, TieBreakerFactor.RATING, TieBreakerFactor.DISTANCE),
    rotation: RotationConfig = RotationConfig(),
    version: int = 1,
) -> ScoringWeightsConfig:
    return ScoringWeightsConfig(
        version=version,
        weights=WeightFactors(availability=availability, rating=rating, distance=distance),
        tie_breakers=tuple(tie_breakers),
        rotation=rotation,
    )


def make_scored(
    contractor_id: int,
    final_score: float,
    availability: float = 50.0,
    rating: float = 50.0,
    distance: float = 50.0,
) -> ScoredCandidate:
    """Scored candidate with a fixed breakdown, for ranking tests."""
    return ScoredCandidate(
        contractor=make_contractor(id=contractor_id),
        slots=[window(9, 10)],
        distance=DistanceResult(distance_meters=1000.0, eta_minutes=2),
        utilization=0.5,
        result=ScoreResult(
            breakdown=ScoreBreakdown(availability=availability, rating=rating, distance=distance),
            final_score=final_score,
        ),
    )


@pytest.fixture
def contractor() -> Contractor:
    return make_contractor()


@pytest.fixture
def job() -> Job:
    return make_job()
