"""
Internal data types for recommendation logic.
decoupled from SQLAlchemy models for cleaner logic.
"""

from dataclasses import dataclass, field
from datetime import date, time, datetime, timedelta
from enum import Enum
from typing import Optional


class CalendarExceptionType(str, Enum):
    HOLIDAY = "HOLIDAY"
    UNAVAILABLE = "UNAVAILABLE"
    MODIFIED_HOURS = "MODIFIED_HOURS"


class AssignmentStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"


class TieBreakerFactor(str, Enum):
    AVAILABILITY = "availability"
    RATING = "rating"
    DISTANCE = "distance"


@dataclass(frozen=True)
class TimeWindow:
    """[start, end) in UTC."""
    start: datetime
    end: datetime

    def __post_init__(self):
        if self.end <= self.start:
            raise ValueError(f"TimeWindow end must be after start, got {self.start} - {self.end}")

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    @property
    def duration_minutes(self) -> float:
        return self.duration.total_seconds() / 60

    def overlaps(self, other: "TimeWindow") -> bool:
        return self.start < other.end and other.start < self.end


@dataclass(frozen=True)
class WorkingHours:
    day_of_week: int  # 0-6, Monday = 0
    start_time: time
    end_time: time
    timezone: str = "UTC"

    def __post_init__(self):
        if not 0 <= self.day_of_week <= 6:
            raise ValueError(f"day_of_week must be 0-6, got {self.day_of_week}")
        if self.start_time >= self.end_time:
            raise ValueError("Working hours start must be before end")


@dataclass(frozen=True)
class CalendarException:
    date: date
    type: CalendarExceptionType
    override_hours: Optional[WorkingHours] = None  # MODIFIED_HOURS only

    def __post_init__(self):
        if self.type == CalendarExceptionType.MODIFIED_HOURS and self.override_hours is None:
            raise ValueError("MODIFIED_HOURS exception requires override working hours")


@dataclass
class ContractorCalendar:
    holidays: set[date] = field(default_factory=set)
    exceptions: list[CalendarException] = field(default_factory=list)  # ordered, unique by date
    daily_break_minutes: int = 0

    def __post_init__(self):
        if self.daily_break_minutes < 0:
            raise ValueError("daily_break_minutes cannot be negative")
        seen = set()
        for exc in self.exceptions:
            if exc.date in seen:
                raise ValueError(f"More than one calendar exception on {exc.date}")
            seen.add(exc.date)
        self.exceptions = sorted(self.exceptions, key=lambda e: e.date)

    def exception_for(self, day: date) -> Optional[CalendarException]:
        for exc in self.exceptions:
            if exc.date == day:
                return exc
        return None


@dataclass
class Contractor:
    id: int
    name: str
    latitude: float
    longitude: float
    rating: int
    skills: list[str] = field(default_factory=list)
    working_hours: list[WorkingHours] = field(default_factory=list)
    calendar: ContractorCalendar = field(default_factory=ContractorCalendar)
    timezone: str = "UTC"
    jobs_booked_today: int = 0
    max_jobs_per_day: int = 4
    current_utilization: float = 0.0
    utilization_date: Optional[date] = None  # day the counters refer to
    base_address: Optional[str] = None

    def hours_for(self, day_of_week: int) -> Optional[WorkingHours]:
        for wh in self.working_hours:
            if wh.day_of_week == day_of_week:
                return wh
        return None


@dataclass
class Job:
    id: int
    type: str
    duration_minutes: int
    latitude: float
    longitude: float
    desired_date: date
    service_window: TimeWindow
    required_skills: list[str] = field(default_factory=list)
    priority: str = "NORMAL"
    status: str = "CREATED"
    timezone: str = "UTC"

    @property
    def duration(self) -> timedelta:
        return timedelta(minutes=self.duration_minutes)


@dataclass
class Assignment:
    """The unit that occupies a contractor's calendar."""
    id: int
    job_id: int
    contractor_id: int
    window: TimeWindow
    status: AssignmentStatus = AssignmentStatus.PENDING

    @property
    def is_active(self) -> bool:
        return self.status != AssignmentStatus.CANCELLED


@dataclass(frozen=True)
class WeightFactors:
    availability: float
    rating: float
    distance: float


@dataclass(frozen=True)
class RotationConfig:
    enabled: bool = False
    boost: float = 0.0
    under_utilization_threshold: float = 0.0


@dataclass(frozen=True)
class ScoringWeightsConfig:
    """One immutable version of the scoring configuration."""
    version: int
    weights: WeightFactors
    tie_breakers: tuple[TieBreakerFactor, ...] = ()
    rotation: RotationConfig = RotationConfig()
    change_notes: str = ""
    created_by: str = "system"
    created_at: Optional[datetime] = None
    is_active: bool = False

    def to_json(self) -> dict:
        """Serializable values only; version and bookkeeping live in their own columns."""
        return {
            "weights": {
                "availability": self.weights.availability,
                "rating": self.weights.rating,
                "distance": self.weights.distance,
            },
            "tie_breakers": [tb.value for tb in self.tie_breakers],
            "rotation": {
                "enabled": self.rotation.enabled,
                "boost": self.rotation.boost,
                "under_utilization_threshold": self.rotation.under_utilization_threshold,
            },
        }


@dataclass(frozen=True)
class ScoreBreakdown:
    availability: float
    rating: float
    distance: float
    rotation: Optional[float] = None
    distance_unknown: bool = False


@dataclass(frozen=True)
class ScoreResult:
    breakdown: ScoreBreakdown
    final_score: float


@dataclass(frozen=True)
class DistanceResult:
    distance_meters: Optional[float] = None
    eta_minutes: Optional[int] = None


@dataclass
class ScoredCandidate:
    """Everything computed for one contractor within one request."""
    contractor: Contractor
    slots: list[TimeWindow]
    distance: DistanceResult
    utilization: float
    result: ScoreResult
    rationale: str = ""

    @property
    def final_score(self) -> float:
        return self.result.final_score


@dataclass
class ExcludedCandidate:
    contractor_id: int
    reason: str  # "skill_mismatch" | "no_availability"


@dataclass
class Recommendation:
    contractor_id: int
    contractor_name: str
    final_score: float
    breakdown: ScoreBreakdown
    rationale: str
    suggested_slots: list[TimeWindow]
    distance_meters: Optional[float]
    eta_minutes: Optional[int]
    contractor_base_location: Optional[str] = None


@dataclass
class RecommendationResult:
    """Output of the recommendation engine."""
    request_id: str
    job_id: int
    recommendations: list[Recommendation]
    config_version: int
    generated_at: datetime
    excluded: list[ExcludedCandidate] = field(default_factory=list)
    audit_id: Optional[int] = None

    @property
    def best_contractor_id(self) -> Optional[int]:
        return self.recommendations[0].contractor_id if self.recommendations else None
