# backend/talentscout/schemas/candidate.py

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CandidateResponse(BaseModel):
    """Stored candidate with its scores, as returned by the API."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: str
    tenant_id: str
    job_id: Optional[str] = None
    name: str
    email: Optional[str] = None
    title: Optional[str] = None
    company: Optional[str] = None
    location: Optional[str] = None
    linkedin_url: Optional[str] = None
    skills: List[str] = Field(default_factory=list)
    enrichment: Optional[Dict[str, Any]] = None
    enrichment_status: str = "pending"
    open_to_work: bool = False
    last_active: Optional[datetime] = None

    score: Optional[float] = None
    priority: Optional[str] = None
    open_to_work_score: Optional[float] = None
    skill_match_score: Optional[float] = None
    job_stability_score: Optional[float] = None
    engagement_score: Optional[float] = None

    company_difference: Optional[str] = None
    company_difference_score: Optional[float] = None
    hireability_score: Optional[float] = None
    hireability_factors: List[str] = Field(default_factory=list)
    potential_to_join: Optional[str] = None
    insights: List[str] = Field(default_factory=list)
    notes: Optional[str] = None

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
