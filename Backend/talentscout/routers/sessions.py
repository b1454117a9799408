# backend/talentscout/routers/sessions.py
from typing import List

from fastapi import APIRouter, Depends, HTTPException

from talentscout.core.errors import SessionNotFoundError
from talentscout.core.models import EnrichmentSession
from talentscout.dependencies import get_broadcaster, get_tenant_id
from talentscout.services.progress_broadcaster import ProgressBroadcaster

router = APIRouter(
    prefix="/sessions",
    tags=["Sessions"],
)


@router.get("", response_model=List[EnrichmentSession])
async def active_sessions(
    tenant_id: str = Depends(get_tenant_id),
    broadcaster: ProgressBroadcaster = Depends(get_broadcaster),
):
    return [s for s in broadcaster.active_sessions() if s.tenant_id == tenant_id]


@router.get("/{session_id}", response_model=EnrichmentSession)
async def get_session(
    session_id: str,
    tenant_id: str = Depends(get_tenant_id),
    broadcaster: ProgressBroadcaster = Depends(get_broadcaster),
):
    try:
        return broadcaster.require_session(session_id, tenant_id)
    except SessionNotFoundError:
        raise HTTPException(status_code=404, detail="Session not found")
