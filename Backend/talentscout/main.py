# backend/talentscout/main.py

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import LoggingConfig, Settings, settings as default_settings
from .pipeline import Pipeline, build_pipeline
from .routers import activities, candidates, health, jobs, scoring, sessions, upload, ws


def create_app(settings: Optional[Settings] = None, pipeline: Optional[Pipeline] = None) -> FastAPI:
    settings = settings or default_settings
    LoggingConfig.setup_logging(settings)
    pipeline = pipeline or build_pipeline(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        await app.state.pipeline.close()

    app = FastAPI(
        title="TalentScout API",
        description="Candidate enrichment and scoring pipeline.",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.pipeline = pipeline

    # --- CORS Middleware Configuration ---
    origins = [
        settings.FRONTEND_BASE_URL,
        "http://localhost:5173",
        "http://localhost:3000",
    ]

    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # --- API Routers ---
    app.include_router(health.router)
    app.include_router(upload.router)
    app.include_router(jobs.router)
    app.include_router(candidates.router)
    app.include_router(scoring.router)
    app.include_router(activities.router)
    app.include_router(sessions.router)
    app.include_router(ws.router)

    return app
