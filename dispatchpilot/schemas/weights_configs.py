from pydantic import BaseModel, Field
from datetime import datetime
from typing import List, Optional

from dispatchpilot.services.recommendations.types import ScoringWeightsConfig


class WeightFactorsModel(BaseModel):
    availability: float
    rating: float
    distance: float


class RotationModel(BaseModel):
    enabled: bool = False
    boost: float = 0.0
    under_utilization_threshold: float = 0.0


class WeightsConfigUpdate(BaseModel):
    weights: WeightFactorsModel
    tie_breakers: List[str] = Field(default_factory=list)
    rotation: RotationModel = Field(default_factory=RotationModel)
    change_notes: str = ""


class WeightsConfigRollback(BaseModel):
    target_version: int
    change_notes: str = ""


class WeightsConfigResponse(BaseModel):
    version: int
    weights: WeightFactorsModel
    tie_breakers: List[str]
    rotation: RotationModel
    change_notes: Optional[str]
    created_by: str
    created_at: Optional[datetime]
    is_active: bool

    @classmethod
    def from_config(cls, config: ScoringWeightsConfig) -> "WeightsConfigResponse":
        return cls(
            version=config.version,
            weights=WeightFactorsModel(
                availability=config.weights.availability,
                rating=config.weights.rating,
                distance=config.weights.distance,
            ),
            tie_breakers=[tb.value for tb in config.tie_breakers],
            rotation=RotationModel(
                enabled=config.rotation.enabled,
                boost=config.rotation.boost,
                under_utilization_threshold=config.rotation.under_utilization_threshold,
            ),
            change_notes=config.change_notes,
            created_by=config.created_by,
            created_at=config.created_at,
            is_active=config.is_active,
        )
