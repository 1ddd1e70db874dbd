from pydantic import BaseModel, Field
from datetime import date, datetime
from typing import List, Optional

from dispatchpilot.services.recommendations.types import Recommendation, RecommendationResult


class RecommendationRequestBody(BaseModel):
    desired_date: Optional[date] = None
    service_window_start: Optional[datetime] = None
    service_window_end: Optional[datetime] = None
    max_results: Optional[int] = Field(None, ge=1)


class SlotResponse(BaseModel):
    start: datetime
    end: datetime


class ScoreBreakdownResponse(BaseModel):
    availability: float
    rating: float
    distance: float
    rotation: Optional[float] = None
    distance_unknown: bool = False

    class Config:
        from_attributes = True


class RecommendationItem(BaseModel):
    contractor_id: int
    contractor_name: str
    score: float
    breakdown: ScoreBreakdownResponse
    rationale: str
    suggested_slots: List[SlotResponse]
    distance_meters: Optional[int]
    eta_minutes: Optional[int]
    contractor_base_location: Optional[str] = None

    @classmethod
    def from_recommendation(cls, rec: Recommendation) -> "RecommendationItem":
        return cls(
            contractor_id=rec.contractor_id,
            contractor_name=rec.contractor_name,
            score=round(rec.final_score, 2),
            breakdown=ScoreBreakdownResponse.model_validate(rec.breakdown),
            rationale=rec.rationale,
            suggested_slots=[SlotResponse(start=s.start, end=s.end) for s in rec.suggested_slots],
            distance_meters=round(rec.distance_meters) if rec.distance_meters is not None else None,
            eta_minutes=rec.eta_minutes,
            contractor_base_location=rec.contractor_base_location,
        )


class RecommendationsResponse(BaseModel):
    request_id: str
    job_id: int
    recommendations: List[RecommendationItem]
    best_contractor_id: Optional[int]
    config_version: int
    generated_at: datetime
    audit_id: Optional[int] = None

    @classmethod
    def from_result(cls, result: RecommendationResult) -> "RecommendationsResponse":
        return cls(
            request_id=result.request_id,
            job_id=result.job_id,
            recommendations=[RecommendationItem.from_recommendation(r) for r in result.recommendations],
            best_contractor_id=result.best_contractor_id,
            config_version=result.config_version,
            generated_at=result.generated_at,
            audit_id=result.audit_id,
        )
