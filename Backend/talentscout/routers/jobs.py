# backend/talentscout/routers/jobs.py
from typing import List, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query

from talentscout.core.errors import InvalidJobTransition, JobNotFoundError
from talentscout.core.models import EnrichmentJob
from talentscout.dependencies import get_orchestrator, get_storage, get_tenant_id
from talentscout.schemas.job import StopJobRequest
from talentscout.services.orchestrator import EnrichmentOrchestrator
from talentscout.storage import SqlAlchemyStorage

router = APIRouter(
    prefix="/jobs",
    tags=["Jobs"],
)


@router.get("", response_model=List[EnrichmentJob])
async def list_jobs(
    limit: int = Query(50, ge=1, le=500),
    tenant_id: str = Depends(get_tenant_id),
    storage: SqlAlchemyStorage = Depends(get_storage),
):
    return await storage.list_jobs(tenant_id, limit=limit)


@router.get("/{job_id}", response_model=EnrichmentJob)
async def get_job(
    job_id: str,
    tenant_id: str = Depends(get_tenant_id),
    storage: SqlAlchemyStorage = Depends(get_storage),
):
    job = await storage.get_job(job_id, tenant_id)
    if job is None:
        raise HTTPException(status_code=404, detail="Job not found")
    return job


@router.post("/{job_id}/stop", response_model=EnrichmentJob)
async def stop_job(
    job_id: str,
    payload: Optional[StopJobRequest] = Body(default=None),
    tenant_id: str = Depends(get_tenant_id),
    orchestrator: EnrichmentOrchestrator = Depends(get_orchestrator),
):
    """Stopping is a normal outcome: a pending or running job answers 200 with its stopped state."""
    try:
        return await orchestrator.request_stop(job_id, payload.reason if payload else None, tenant_id=tenant_id)
    except JobNotFoundError:
        raise HTTPException(status_code=404, detail="Job not found")
    except InvalidJobTransition as e:
        raise HTTPException(status_code=409, detail=str(e))
