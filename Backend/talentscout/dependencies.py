# backend/talentscout/dependencies.py

from fastapi import Depends, Header, Request

from .pipeline import Pipeline
from .services.orchestrator import EnrichmentOrchestrator
from .services.progress_broadcaster import ProgressBroadcaster
from .storage import SqlAlchemyStorage

DEFAULT_TENANT = "default"


def get_pipeline(request: Request) -> Pipeline:
    """Dependency to get the pipeline built by the app factory."""
    return request.app.state.pipeline


def get_storage(pipeline: Pipeline = Depends(get_pipeline)) -> SqlAlchemyStorage:
    return pipeline.storage


def get_orchestrator(pipeline: Pipeline = Depends(get_pipeline)) -> EnrichmentOrchestrator:
    return pipeline.orchestrator


def get_broadcaster(pipeline: Pipeline = Depends(get_pipeline)) -> ProgressBroadcaster:
    return pipeline.broadcaster


def get_tenant_id(x_tenant_id: str | None = Header(default=None)) -> str:
    """Tenant identity from the X-Tenant-Id header; authentication is handled upstream."""
    return (x_tenant_id or "").strip() or DEFAULT_TENANT
