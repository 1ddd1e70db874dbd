"""
Recommendation service package.

Usage:
    from datetime import date
    from dispatchpilot.services.recommendations import RecommendationOrchestrator

    orchestrator = RecommendationOrchestrator()
    result = orchestrator.request_recommendations(job_id=1, desired_date=date(2025, 1, 20))

    # Weights configuration
    from dispatchpilot.services.recommendations import WeightsConfigStore, WeightFactors, RotationConfig

    store = WeightsConfigStore()
    store.create_new_version(
        WeightFactors(availability=0.3, rating=0.3, distance=0.4),
        ["rating", "distance"],
        RotationConfig(enabled=True, boost=3.0, under_utilization_threshold=0.2),
        actor="ops@example.com",
    )
    store.rollback(2, actor="ops@example.com")
"""

from .types import (
    TimeWindow,
    WorkingHours,
    CalendarException,
    CalendarExceptionType,
    ContractorCalendar,
    Contractor,
    Job,
    Assignment,
    AssignmentStatus,
    WeightFactors,
    RotationConfig,
    ScoringWeightsConfig,
    TieBreakerFactor,
    ScoreBreakdown,
    ScoreResult,
    DistanceResult,
    Recommendation,
    RecommendationResult,
)
from .availability import find_slots
from .scoring import score_candidate, rank_candidates
from .rationale import generate_rationale
from .weights_store import WeightsConfigStore, validate_weights_config
from .distance import get_distance_resolver
from .orchestrator import RecommendationOrchestrator

__all__ = [
    # Types
    "TimeWindow",
    "WorkingHours",
    "CalendarException",
    "CalendarExceptionType",
    "ContractorCalendar",
    "Contractor",
    "Job",
    "Assignment",
    "AssignmentStatus",
    "WeightFactors",
    "RotationConfig",
    "ScoringWeightsConfig",
    "TieBreakerFactor",
    "ScoreBreakdown",
    "ScoreResult",
    "DistanceResult",
    "Recommendation",
    "RecommendationResult",
    # Main entry points
    "RecommendationOrchestrator",
    "WeightsConfigStore",
    # Lower-level functions
    "find_slots",
    "score_candidate",
    "rank_candidates",
    "generate_rationale",
    "validate_weights_config",
    "get_distance_resolver",
]
