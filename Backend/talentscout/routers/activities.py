# backend/talentscout/routers/activities.py
from typing import List

from fastapi import APIRouter, Depends, Query

from talentscout.dependencies import get_storage, get_tenant_id
from talentscout.schemas.activity import ActivityResponse
from talentscout.storage import SqlAlchemyStorage

router = APIRouter(
    prefix="/activities",
    tags=["Activities"],
)


@router.get("", response_model=List[ActivityResponse])
async def recent_activities(
    limit: int = Query(20, ge=1, le=200),
    tenant_id: str = Depends(get_tenant_id),
    storage: SqlAlchemyStorage = Depends(get_storage),
):
    return await storage.recent_activities(tenant_id, limit=limit)
