# backend/talentscout/routers/candidates.py
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query

from talentscout.dependencies import get_storage, get_tenant_id
from talentscout.schemas.candidate import CandidateResponse
from talentscout.storage import SqlAlchemyStorage

router = APIRouter(
    prefix="/candidates",
    tags=["Candidates"],
)


@router.get("", response_model=List[CandidateResponse])
async def list_candidates(
    limit: int = Query(100, ge=1, le=1000),
    tenant_id: str = Depends(get_tenant_id),
    storage: SqlAlchemyStorage = Depends(get_storage),
):
    """Active candidates of the tenant, best score first."""
    return await storage.list_candidates(tenant_id, limit=limit)


@router.get("/{candidate_id}", response_model=CandidateResponse)
async def get_candidate(
    candidate_id: str,
    tenant_id: str = Depends(get_tenant_id),
    storage: SqlAlchemyStorage = Depends(get_storage),
):
    candidate = await storage.get_candidate(candidate_id, tenant_id)
    if candidate is None:
        raise HTTPException(status_code=404, detail="Candidate not found")
    return candidate
