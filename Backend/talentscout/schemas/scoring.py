# backend/talentscout/schemas/scoring.py

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from talentscout.core.models import ScoringWeights
from talentscout.services.total_scoring import RecalculationSummary


class ScoringConfigResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    tenant_id: str
    weights: ScoringWeights


class ScoringUpdateResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    weights: ScoringWeights
    recalculation: RecalculationSummary
