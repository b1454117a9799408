# backend/talentscout/worker.py
import asyncio
import base64
import logging
from typing import Any, Dict, List, Optional

from celery import Celery

from talentscout.config import LoggingConfig, settings
from talentscout.core.models import RawDocument
from talentscout.pipeline import build_pipeline

celery_app = Celery(
    "talentscout",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
)

logger = logging.getLogger(__name__)


def encode_documents(documents: List[RawDocument]) -> List[Dict[str, Any]]:
    """JSON-safe payload for enrichment_job_task."""
    return [
        {
            "file_name": d.file_name,
            "content_b64": base64.b64encode(d.content).decode("ascii"),
            "content_type": d.content_type,
        }
        for d in documents
    ]


def decode_documents(payload: List[Dict[str, Any]]) -> List[RawDocument]:
    return [
        RawDocument(
            file_name=item["file_name"],
            content=base64.b64decode(item["content_b64"]),
            content_type=item.get("content_type"),
        )
        for item in payload
    ]


async def _run_enrichment_job(job_id: str, documents: List[RawDocument],
                              session_id: Optional[str]) -> Dict[str, Any]:
    pipeline = build_pipeline(settings)
    try:
        job = await pipeline.orchestrator.run_job(job_id, documents, session_id)
        return job.model_dump(by_alias=True, mode="json")
    finally:
        await pipeline.close()


async def _run_recalculation(tenant_id: str) -> Dict[str, Any]:
    pipeline = build_pipeline(settings)
    try:
        summary = await pipeline.aggregator.recalculate_all(pipeline.storage, tenant_id)
        return summary.model_dump(by_alias=True, mode="json")
    finally:
        await pipeline.close()


@celery_app.task
def enrichment_job_task(job_id: str, documents: List[Dict[str, Any]], session_id: Optional[str] = None):
    """
    Celery task to run one enrichment job out of process. The job must already
    exist (created by the API); documents are passed base64-encoded.
    """
    LoggingConfig.setup_logging(settings)
    logger.info(f"Celery worker: starting enrichment job {job_id} with {len(documents)} documents")
    try:
        job = asyncio.run(_run_enrichment_job(job_id, decode_documents(documents), session_id))
        logger.info(f"Celery worker: enrichment job {job_id} finished with status {job['status']}")
        return {"status": job["status"], "result": job}
    except Exception as e:
        logger.exception(f"An error occurred in enrichment_job_task: {e}")
        return {"status": "failed", "error": str(e)}


@celery_app.task
def recalculate_scores_task(tenant_id: str):
    """Celery task to re-score every active candidate of a tenant with its stored weights."""
    LoggingConfig.setup_logging(settings)
    logger.info(f"Celery worker: recalculating scores for tenant {tenant_id}")
    try:
        summary = asyncio.run(_run_recalculation(tenant_id))
        return {"status": "completed", "result": summary}
    except Exception as e:
        logger.exception(f"An error occurred in recalculate_scores_task: {e}")
        return {"status": "failed", "error": str(e)}
