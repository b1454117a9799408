# backend/talentscout/schemas/activity.py

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class ActivityResponse(BaseModel):
    """One entry of the tenant activity feed."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: str
    tenant_id: str
    type: str
    message: str
    details: Optional[Dict[str, Any]] = None
    created_at: Optional[datetime] = None
