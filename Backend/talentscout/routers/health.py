# backend/talentscout/routers/health.py
from fastapi import APIRouter, Depends

from talentscout.dependencies import get_pipeline
from talentscout.pipeline import Pipeline

router = APIRouter(tags=["Health"])


@router.get("/health")
async def health(pipeline: Pipeline = Depends(get_pipeline)):
    scheduler = pipeline.scheduler
    cache = scheduler.cache_stats()
    return {
        "status": "ok",
        "environment": pipeline.settings.APP_ENV,
        "scheduler": {
            "activeRequests": scheduler.active_requests,
            "queueDepth": scheduler.queue_depth,
            "dispatched": scheduler.dispatched_count,
            "maxConcurrent": scheduler.max_concurrent,
            "rateLimitDelay": scheduler.rate_limit_delay,
        },
        "cache": {key: value for key, value in cache.items() if key != "keys"},
        "sessions": len(pipeline.broadcaster.active_sessions()),
        "subscribers": pipeline.broadcaster.subscriber_count,
        "runningJobs": pipeline.orchestrator.running_jobs,
    }
