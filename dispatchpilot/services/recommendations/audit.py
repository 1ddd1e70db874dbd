"""
Audit snapshot serialization and append-only writers.

The snapshot holds every scored candidate (not only the returned ones) plus
the excluded contractors and why, with exact float scores.
"""

import logging
from datetime import date
from typing import Callable, Optional, Sequence

from sqlalchemy import update
from sqlalchemy.orm import Session

from dispatchpilot.db.models.audit_recommendations import AuditRecommendations
from dispatchpilot.db.models.event_logs import EventLogs
from dispatchpilot.db.models.jobs import Jobs

from .types import (
    ExcludedCandidate,
    ScoreBreakdown,
    ScoredCandidate,
    TimeWindow,
)


logger = logging.getLogger(__name__)

OUTCOME_RANKED = "ranked"
OUTCOME_NO_ELIGIBLE = "no_eligible_candidates"


def window_to_json(window: TimeWindow) -> dict:
    return {"start": window.start.isoformat(), "end": window.end.isoformat()}


def breakdown_to_json(breakdown: ScoreBreakdown) -> dict:
    return {
        "availability": breakdown.availability,
        "rating": breakdown.rating,
        "distance": breakdown.distance,
        "rotation": breakdown.rotation,
        "distance_unknown": breakdown.distance_unknown,
    }


def build_request_payload(
    job_id: int,
    desired_date: date,
    service_window: TimeWindow,
    max_results: int,
    actor: str,
    window_overridden: bool,
) -> dict:
    return {
        "job_id": job_id,
        "desired_date": desired_date.isoformat(),
        "service_window": window_to_json(service_window),
        "service_window_overridden": window_overridden,
        "max_results": max_results,
        "actor": actor,
    }


def build_candidates_snapshot(
    ranked: Sequence[ScoredCandidate],
    returned_count: int,
    excluded: Sequence[ExcludedCandidate],
) -> dict:
    """All ranked candidates in rank order, flagged by whether they were returned."""
    candidates = []
    for rank, c in enumerate(ranked, start=1):
        candidates.append({
            "rank": rank,
            "returned": rank <= returned_count,
            "contractor_id": c.contractor.id,
            "contractor_name": c.contractor.name,
            "final_score": c.final_score,
            "breakdown": breakdown_to_json(c.result.breakdown),
            "rationale": c.rationale,
            "suggested_slots": [window_to_json(s) for s in c.slots],
            "distance_meters": c.distance.distance_meters,
            "eta_minutes": c.distance.eta_minutes,
            "utilization": c.utilization,
        })

    return {
        "outcome": OUTCOME_RANKED if ranked else OUTCOME_NO_ELIGIBLE,
        "candidates": candidates,
        "excluded": [{"contractor_id": e.contractor_id, "reason": e.reason} for e in excluded],
    }


def write_event(db: Session, event_type: str, payload: dict) -> EventLogs:
    """Stage an event-log row on the caller's session. The caller commits."""
    event = EventLogs(event_type=event_type, payload_json=payload)
    db.add(event)
    return event


def write_audit_record(
    session_factory: Callable[[], Session],
    request_id: str,
    job_id: int,
    request_payload: dict,
    candidates: dict,
    config_version: int,
    actor: str,
) -> int:
    """
    Insert the audit record, point the job at it and log the event, in one transaction.

    Returns:
        The new audit record id.
    """
    db = session_factory()
    try:
        record = AuditRecommendations(
            request_id=request_id,
            job_id=job_id,
            request_payload_json=request_payload,
            candidates_json=candidates,
            config_version=config_version,
            actor=actor,
        )
        db.add(record)
        db.flush()

        db.execute(
            update(Jobs)
            .where(Jobs.id == job_id)
            .values(last_recommendation_audit_id=record.id)
        )
        write_event(db, "RecommendationGenerated", {
            "request_id": request_id,
            "job_id": job_id,
            "audit_id": record.id,
            "config_version": config_version,
            "candidate_count": len(candidates.get("candidates", [])),
            "outcome": candidates.get("outcome"),
            "actor": actor,
        })
        db.commit()
        logger.info(f"Persisted audit record {record.id} for request {request_id}")
        return record.id
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def get_audit_record(db: Session, request_id: str) -> Optional[AuditRecommendations]:
    return db.query(AuditRecommendations).filter(AuditRecommendations.request_id == request_id).first()
