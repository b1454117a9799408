# backend/talentscout/routers/scoring.py
import logging
from typing import Any, Dict

from fastapi import APIRouter, Body, Depends, HTTPException
from pydantic import ValidationError

from talentscout.core.errors import InvalidWeightsError
from talentscout.core.models import ScoringWeights
from talentscout.dependencies import get_pipeline, get_tenant_id
from talentscout.pipeline import Pipeline
from talentscout.schemas.scoring import ScoringConfigResponse, ScoringUpdateResponse
from talentscout.services.total_scoring import RecalculationSummary

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/scoring",
    tags=["Scoring"],
)


@router.get("", response_model=ScoringConfigResponse)
async def get_scoring_config(
    tenant_id: str = Depends(get_tenant_id),
    pipeline: Pipeline = Depends(get_pipeline),
):
    weights = await pipeline.storage.get_scoring_weights(tenant_id)
    return ScoringConfigResponse(tenant_id=tenant_id, weights=weights)


@router.post("", response_model=ScoringUpdateResponse)
async def update_scoring_config(
    payload: Dict[str, Any] = Body(...),
    tenant_id: str = Depends(get_tenant_id),
    pipeline: Pipeline = Depends(get_pipeline),
):
    """
    Save new weights and re-score every active candidate. Weights whose raw
    sum is not 100 are rejected before anything is written.
    """
    try:
        weights = ScoringWeights.model_validate(payload).validate_interactive()
    except (ValidationError, InvalidWeightsError) as e:
        raise HTTPException(status_code=400, detail=str(e))

    await pipeline.storage.save_scoring_weights(tenant_id, weights)
    await pipeline.storage.create_activity(
        tenant_id, "scoring_updated", "Scoring weights updated", weights.model_dump(by_alias=True),
    )
    summary = await pipeline.aggregator.recalculate_all(pipeline.storage, tenant_id, weights)
    return ScoringUpdateResponse(weights=weights, recalculation=summary)


@router.post("/recalculate", response_model=RecalculationSummary)
async def recalculate_scores(
    tenant_id: str = Depends(get_tenant_id),
    pipeline: Pipeline = Depends(get_pipeline),
):
    """Re-score with the stored weights, normalizing instead of rejecting them."""
    try:
        return await pipeline.aggregator.recalculate_all(pipeline.storage, tenant_id)
    except InvalidWeightsError as e:
        raise HTTPException(status_code=400, detail=str(e))
