"""
Composition root: builds every pipeline collaborator from Settings.

Nothing here is a module-level singleton; the FastAPI app and the Celery
worker each build their own Pipeline.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from talentscout.config import Settings
from talentscout.db.session import build_engine, build_session_factory
from talentscout.services.candidate_scoring import (
    CandidateScorer,
    GeminiCandidateScorer,
    HeuristicCandidateScorer,
)
from talentscout.services.extractors import ChainedExtractor, Extractor, FallbackExtractor, PrimaryExtractor
from talentscout.services.orchestrator import EnrichmentOrchestrator
from talentscout.services.profile_lookup import PDLProfileLookup
from talentscout.services.progress_broadcaster import ProgressBroadcaster
from talentscout.services.request_scheduler import RequestScheduler
from talentscout.services.total_scoring import ScoreAggregator
from talentscout.storage import SqlAlchemyStorage

logger = logging.getLogger(__name__)


@dataclass
class Pipeline:
    settings: Settings
    storage: SqlAlchemyStorage
    scheduler: RequestScheduler
    broadcaster: ProgressBroadcaster
    aggregator: ScoreAggregator
    orchestrator: EnrichmentOrchestrator

    async def close(self) -> None:
        await self.scheduler.close()
        self.storage.engine.dispose()


def build_scorer(settings: Settings) -> CandidateScorer:
    if settings.GEMINI_API_KEY:
        return GeminiCandidateScorer(api_key=settings.GEMINI_API_KEY, model_name=settings.GEMINI_MODEL_NAME)
    logger.warning("GEMINI_API_KEY not set; using heuristic candidate scoring")
    return HeuristicCandidateScorer()


def build_extractor(settings: Settings) -> Extractor:
    primary = None
    if settings.OPENAI_API_KEY:
        primary = PrimaryExtractor(api_key=settings.OPENAI_API_KEY, model=settings.OPENAI_MODEL)
    else:
        logger.info("OPENAI_API_KEY not set; using pattern-based extraction only")
    return ChainedExtractor(primary, FallbackExtractor())


def build_pipeline(settings: Settings, *, profile_lookup=None, scorer: Optional[CandidateScorer] = None,
                   extractor: Optional[Extractor] = None) -> Pipeline:
    engine = build_engine(settings.DATABASE_URL)
    storage = SqlAlchemyStorage(engine, build_session_factory(engine))
    storage.create_all()

    if profile_lookup is None:
        profile_lookup = PDLProfileLookup(
            api_key=settings.PDL_API_KEY,
            base_url=settings.PDL_BASE_URL,
            timeout=settings.PDL_TIMEOUT,
        )
    scheduler = RequestScheduler(
        profile_lookup,
        scorer or build_scorer(settings),
        max_concurrent=settings.MAX_CONCURRENT_REQUESTS,
        rate_limit_delay=settings.RATE_LIMIT_DELAY_SECONDS,
        cache_ttl=settings.CACHE_TTL_SECONDS,
    )
    broadcaster = ProgressBroadcaster(cleanup_delay=settings.SESSION_CLEANUP_DELAY_SECONDS)
    aggregator = ScoreAggregator()
    orchestrator = EnrichmentOrchestrator(
        storage,
        scheduler,
        broadcaster,
        extractor or build_extractor(settings),
        aggregator=aggregator,
        candidate_delay=settings.CANDIDATE_DELAY_SECONDS,
        job_description=settings.DEFAULT_JOB_DESCRIPTION,
    )
    logger.info("Pipeline built (env=%s, max_concurrent=%d)", settings.APP_ENV, settings.MAX_CONCURRENT_REQUESTS)
    return Pipeline(
        settings=settings,
        storage=storage,
        scheduler=scheduler,
        broadcaster=broadcaster,
        aggregator=aggregator,
        orchestrator=orchestrator,
    )
