from functools import lru_cache
from typing import Generator, Optional
from fastapi import Header, HTTPException, status
from sqlalchemy.orm import Session

from dispatchpilot.core.errors import (
    AuditPersistenceError,
    ConcurrencyConflict,
    DispatchError,
    InvalidStateTransition,
    NotFoundError,
    PersistenceUnavailable,
    ValidationFailure,
)
from dispatchpilot.db.database import SessionLocal
from dispatchpilot.services.recommendations.distance import BaseDistanceResolver, get_distance_resolver
from dispatchpilot.services.recommendations.orchestrator import RecommendationOrchestrator
from dispatchpilot.services.recommendations.weights_store import WeightsConfigStore


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@lru_cache
def get_weights_store() -> WeightsConfigStore:
    """One store per process so the active-config cache is shared across requests."""
    return WeightsConfigStore(SessionLocal)


@lru_cache
def get_distance_resolver_dep() -> BaseDistanceResolver:
    return get_distance_resolver()


def get_orchestrator() -> RecommendationOrchestrator:
    return RecommendationOrchestrator(
        SessionLocal,
        weights_store=get_weights_store(),
        distance_resolver=get_distance_resolver_dep(),
    )


def get_actor(x_actor: Optional[str] = Header(None)) -> str:
    """Caller identity for audit/event records. No auth; defaults to system."""
    if x_actor is None or not x_actor.strip():
        return "system"
    return x_actor.strip()


def to_http_exception(e: DispatchError) -> HTTPException:
    """Map the core error taxonomy onto HTTP status codes."""
    if isinstance(e, NotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    if isinstance(e, InvalidStateTransition):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=e.errors)
    if isinstance(e, ValidationFailure):
        return HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=e.errors)
    if isinstance(e, (ConcurrencyConflict, PersistenceUnavailable)):
        return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))
    if isinstance(e, AuditPersistenceError):
        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"message": str(e), "request_id": e.request_id},
        )
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))
