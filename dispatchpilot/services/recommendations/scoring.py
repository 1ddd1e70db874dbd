"""
Multi-factor scoring and deterministic ranking.

All functions here are pure: identical inputs and config version always
produce identical breakdowns, scores and orderings.
"""

import logging
from typing import Callable, Optional, Sequence

from dispatchpilot.core.config import settings

from .types import (
    Contractor,
    Job,
    RotationConfig,
    ScoreBreakdown,
    ScoreResult,
    ScoredCandidate,
    ScoringWeightsConfig,
    TieBreakerFactor,
    TimeWindow,
)


logger = logging.getLogger(__name__)

# final scores closer than this are considered tied
TIE_SCORE_EPSILON = 0.01


def clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(high, value))


def calculate_availability_score(slots: Sequence[TimeWindow], service_window: TimeWindow) -> float:
    """100 when the earliest slot starts at window open, falling linearly to 0 at window close."""
    if not slots:
        return 0.0
    earliest = min(slot.start for slot in slots)
    offset = (earliest - service_window.start).total_seconds()
    span = service_window.duration.total_seconds()
    return clamp(100.0 * (1.0 - offset / span))


def calculate_rating_score(rating: int, scale_max: int) -> float:
    """Rating normalised to 0-100 on the contractor rating scale."""
    if scale_max <= 0:
        return 0.0
    return clamp(100.0 * rating / scale_max)


def calculate_distance_score(distance_meters: Optional[float], max_radius_meters: float) -> tuple[float, bool]:
    """
    Linear decay to 0 at the service radius.

    Returns:
        (score, distance_unknown). Unknown distance scores 0 and is flagged.
    """
    if distance_meters is None:
        return 0.0, True
    if distance_meters < 0:
        logger.warning(f"Negative distance provided: {distance_meters}. Using 0.")
        distance_meters = 0.0
    return clamp(100.0 * max(0.0, 1.0 - distance_meters / max_radius_meters)), False


def calculate_rotation_boost(utilization: float, rotation: RotationConfig) -> Optional[float]:
    """Flat boost for under-utilised contractors, None when it does not apply."""
    if not rotation.enabled:
        return None
    if utilization < rotation.under_utilization_threshold:
        return rotation.boost
    return None


def score_candidate(
    contractor: Contractor,
    job: Job,
    slots: Sequence[TimeWindow],
    distance_meters: Optional[float],
    config: ScoringWeightsConfig,
    service_window: Optional[TimeWindow] = None,
    utilization: Optional[float] = None,
    max_radius_meters: Optional[float] = None,
    rating_scale_max: Optional[int] = None,
) -> ScoreResult:
    """
    Score one contractor for one job.

    finalScore = clamp(wA*availability + wR*rating + wD*distance + rotation, 0, 100)
    The rotation boost is added raw, after weighting.
    """
    window = service_window or job.service_window
    radius = max_radius_meters if max_radius_meters is not None else settings.MAX_SERVICE_RADIUS_METERS
    scale = rating_scale_max if rating_scale_max is not None else settings.RATING_SCALE_MAX
    if utilization is None:
        utilization = contractor.current_utilization

    distance, distance_unknown = calculate_distance_score(distance_meters, radius)
    breakdown = ScoreBreakdown(
        availability=calculate_availability_score(slots, window),
        rating=calculate_rating_score(contractor.rating, scale),
        distance=distance,
        rotation=calculate_rotation_boost(utilization, config.rotation),
        distance_unknown=distance_unknown,
    )

    weights = config.weights
    weighted = (
        weights.availability * breakdown.availability
        + weights.rating * breakdown.rating
        + weights.distance * breakdown.distance
    )
    if breakdown.rotation is not None:
        weighted += breakdown.rotation

    return ScoreResult(breakdown=breakdown, final_score=clamp(weighted))


# Fixed factor set; config validation rejects anything not in here.
TIE_BREAKER_KEYS: dict[TieBreakerFactor, Callable[[ScoredCandidate], float]] = {
    TieBreakerFactor.AVAILABILITY: lambda c: c.result.breakdown.availability,
    TieBreakerFactor.RATING: lambda c: c.result.breakdown.rating,
    TieBreakerFactor.DISTANCE: lambda c: c.result.breakdown.distance,
}


def _tie_break_key(candidate: ScoredCandidate, tie_breakers: Sequence[TieBreakerFactor]) -> tuple:
    # each factor descending by its own score, then contractor id ascending
    return tuple(-TIE_BREAKER_KEYS[tb](candidate) for tb in tie_breakers) + (candidate.contractor.id,)


def rank_candidates(
    candidates: Sequence[ScoredCandidate],
    tie_breakers: Sequence[TieBreakerFactor],
) -> list[ScoredCandidate]:
    """
    Order candidates by final score descending.

    Candidates within TIE_SCORE_EPSILON of a group's leading score form a tie
    group, which is reordered by the configured tie-breakers and finally by
    contractor id.
    """
    ordered = sorted(candidates, key=lambda c: (-c.final_score, c.contractor.id))

    ranked: list[ScoredCandidate] = []
    group: list[ScoredCandidate] = []
    for candidate in ordered:
        if group and group[0].final_score - candidate.final_score >= TIE_SCORE_EPSILON:
            ranked.extend(sorted(group, key=lambda c: _tie_break_key(c, tie_breakers)))
            group = []
        group.append(candidate)
    if group:
        ranked.extend(sorted(group, key=lambda c: _tie_break_key(c, tie_breakers)))

    return ranked
