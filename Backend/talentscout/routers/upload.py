# backend/talentscout/routers/upload.py
import logging
import uuid
from typing import List

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile

from talentscout.core.models import RawDocument
from talentscout.dependencies import get_broadcaster, get_orchestrator, get_tenant_id
from talentscout.schemas.job import UploadResponse
from talentscout.services.orchestrator import EnrichmentOrchestrator
from talentscout.services.progress_broadcaster import ProgressBroadcaster

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/upload",
    tags=["Upload"],
)

# Limit for bulk uploads to keep a single job bounded
MAX_BATCH_SIZE = 50


@router.post("", response_model=UploadResponse, status_code=202)
async def upload_candidates(
    files: List[UploadFile] = File(...),
    tenant_id: str = Depends(get_tenant_id),
    orchestrator: EnrichmentOrchestrator = Depends(get_orchestrator),
    broadcaster: ProgressBroadcaster = Depends(get_broadcaster),
):
    """
    Accept a batch of candidate files, create one enrichment job for the
    batch and process it in the background. Progress is streamed on /ws.
    """
    documents = []
    for file in files:
        if not file.filename:
            continue
        documents.append(RawDocument(
            file_name=file.filename,
            content=await file.read(),
            content_type=file.content_type,
        ))

    if not documents:
        raise HTTPException(status_code=400, detail="No candidate files provided.")
    if len(documents) > MAX_BATCH_SIZE:
        raise HTTPException(status_code=400, detail=f"At most {MAX_BATCH_SIZE} files can be uploaded at once.")

    file_name = documents[0].file_name if len(documents) == 1 else f"{len(documents)} files"
    job = await orchestrator.create_job(tenant_id, file_name)

    session_id = str(uuid.uuid4())
    broadcaster.create_session(session_id, tenant_id, len(documents))
    orchestrator.start_job(job.id, documents, session_id)
    logger.info("Upload accepted: job %s, session %s, %d files", job.id, session_id, len(documents))

    return UploadResponse(session_id=session_id, job=job, files=[d.file_name for d in documents])
