from typing import List
from fastapi import APIRouter, Depends, HTTPException

from dispatchpilot.api.deps import get_actor, get_weights_store, to_http_exception
from dispatchpilot.core.errors import DispatchError
from dispatchpilot.schemas.weights_configs import (
    WeightsConfigResponse,
    WeightsConfigRollback,
    WeightsConfigUpdate,
)
from dispatchpilot.services.recommendations.types import RotationConfig, WeightFactors
from dispatchpilot.services.recommendations.weights_store import WeightsConfigStore

router = APIRouter(prefix="/weights-config", tags=["weights-config"])


@router.get("", response_model=WeightsConfigResponse)
def get_active_weights_config(store: WeightsConfigStore = Depends(get_weights_store)):
    try:
        config = store.get_active()
    except DispatchError as e:
        raise to_http_exception(e)
    if config is None:
        raise HTTPException(status_code=404, detail="No active weights configuration")
    return WeightsConfigResponse.from_config(config)


@router.put("", response_model=WeightsConfigResponse)
def update_weights_config(
    payload: WeightsConfigUpdate,
    store: WeightsConfigStore = Depends(get_weights_store),
    actor: str = Depends(get_actor),
):
    """Create a new active version"""
    try:
        config = store.create_new_version(
            WeightFactors(**payload.weights.model_dump()),
            payload.tie_breakers,
            RotationConfig(**payload.rotation.model_dump()),
            actor,
            payload.change_notes,
        )
    except DispatchError as e:
        raise to_http_exception(e)
    return WeightsConfigResponse.from_config(config)


@router.post("/rollback", response_model=WeightsConfigResponse)
def rollback_weights_config(
    payload: WeightsConfigRollback,
    store: WeightsConfigStore = Depends(get_weights_store),
    actor: str = Depends(get_actor),
):
    """New active version copying an older version's values"""
    try:
        config = store.rollback(payload.target_version, actor, payload.change_notes)
    except DispatchError as e:
        raise to_http_exception(e)
    return WeightsConfigResponse.from_config(config)


@router.get("/history", response_model=List[WeightsConfigResponse])
def get_weights_config_history(store: WeightsConfigStore = Depends(get_weights_store)):
    try:
        history = store.get_history()
    except DispatchError as e:
        raise to_http_exception(e)
    return [WeightsConfigResponse.from_config(c) for c in history]
