# backend/talentscout/schemas/job.py

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from talentscout.core.models import EnrichmentJob


class StopJobRequest(BaseModel):
    reason: Optional[str] = None


class UploadResponse(BaseModel):
    """Returned by POST /upload once the job has been scheduled."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    session_id: str
    job: EnrichmentJob
    files: List[str] = Field(default_factory=list)
    message: str = "Processing started"
