from fastapi import APIRouter, Depends

from dispatchpilot.api.deps import get_actor, get_orchestrator, to_http_exception
from dispatchpilot.core.errors import DispatchError, ValidationFailure
from dispatchpilot.schemas.recommendations import RecommendationRequestBody, RecommendationsResponse
from dispatchpilot.services.recommendations.data_loader import as_utc
from dispatchpilot.services.recommendations.orchestrator import RecommendationOrchestrator
from dispatchpilot.services.recommendations.types import TimeWindow

router = APIRouter(prefix="/jobs", tags=["recommendations"])


@router.post("/{job_id}/recommendations", response_model=RecommendationsResponse)
def request_recommendations(
    job_id: int,
    payload: RecommendationRequestBody,
    orchestrator: RecommendationOrchestrator = Depends(get_orchestrator),
    actor: str = Depends(get_actor),
):
    """Ranked contractors for a job, with the config version used"""
    try:
        window = None
        if payload.service_window_start or payload.service_window_end:
            if not (payload.service_window_start and payload.service_window_end):
                raise ValidationFailure("service_window_start and service_window_end must be given together")
            if payload.service_window_end <= payload.service_window_start:
                raise ValidationFailure("service_window_end must be after service_window_start")
            window = TimeWindow(as_utc(payload.service_window_start), as_utc(payload.service_window_end))

        result = orchestrator.request_recommendations(
            job_id,
            desired_date=payload.desired_date,
            service_window=window,
            max_results=payload.max_results,
            actor=actor,
        )
    except DispatchError as e:
        raise to_http_exception(e)

    return RecommendationsResponse.from_result(result)
