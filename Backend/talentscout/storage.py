"""
Relational storage for candidates, enrichment jobs, activities and scoring
configuration.

SQLAlchemy sessions are synchronous; every public method is async and runs
its session work in a worker thread so the event loop is never blocked.
"""

import asyncio
import logging
from typing import Any, Callable, Dict, List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from talentscout.core.errors import InvalidJobTransition, JobNotFoundError
from talentscout.core.models import (
    ALLOWED_JOB_TRANSITIONS,
    CandidateRecord,
    CandidateScoringResult,
    EnrichmentJob,
    JobStatus,
    ScoreComponents,
    ScoreResult,
    ScoringWeights,
)
from talentscout.db.base import Base
from talentscout.models import Activity, Candidate, ProcessingJob, ScoringConfig
from talentscout.schemas.activity import ActivityResponse
from talentscout.schemas.candidate import CandidateResponse

logger = logging.getLogger(__name__)

_JOB_FIELDS = frozenset({
    "status", "progress", "total_records", "processed_records", "failed_records", "error_message",
})
_DECLARED_FIELDS = ("email", "phone", "title", "company", "location", "linkedin_url", "summary", "source_file")


class SqlAlchemyStorage:

    def __init__(self, engine: Engine, session_factory: sessionmaker):
        self.engine = engine
        self._session_factory = session_factory

    def create_all(self) -> None:
        Base.metadata.create_all(bind=self.engine)

    async def _db_execute(self, fn: Callable[[Session], Any]) -> Any:
        """Run fn(session) in a thread, committing on success and rolling back on error."""
        def run():
            with self._session_factory() as db:
                try:
                    result = fn(db)
                    db.commit()
                    return result
                except Exception:
                    db.rollback()
                    raise
        return await asyncio.to_thread(run)

    # ------------------------------------------------------------------- jobs

    async def create_job(self, tenant_id: str, file_name: str) -> EnrichmentJob:
        def op(db: Session):
            row = ProcessingJob(tenant_id=tenant_id, file_name=file_name, status=JobStatus.PENDING.value,
                                progress=0, total_records=0, processed_records=0, failed_records=0)
            db.add(row)
            db.flush()
            db.refresh(row)
            return EnrichmentJob.model_validate(row)
        return await self._db_execute(op)

    async def get_job(self, job_id: str, tenant_id: Optional[str] = None) -> Optional[EnrichmentJob]:
        def op(db: Session):
            row = db.get(ProcessingJob, job_id)
            if row is None or (tenant_id is not None and row.tenant_id != tenant_id):
                return None
            return EnrichmentJob.model_validate(row)
        return await self._db_execute(op)

    async def update_job(self, job_id: str, **fields: Any) -> EnrichmentJob:
        unknown = set(fields) - _JOB_FIELDS
        if unknown:
            raise ValueError(f"Cannot update job fields: {', '.join(sorted(unknown))}")

        def op(db: Session):
            row = db.get(ProcessingJob, job_id)
            if row is None:
                raise JobNotFoundError(f"Job {job_id} not found")
            for name, value in fields.items():
                setattr(row, name, value.value if isinstance(value, JobStatus) else value)
            db.flush()
            db.refresh(row)
            return EnrichmentJob.model_validate(row)
        return await self._db_execute(op)

    async def transition_job(self, job_id: str, status: JobStatus, **fields: Any) -> EnrichmentJob:
        """Move a job to `status` in one transaction, enforcing the lifecycle."""
        unknown = set(fields) - _JOB_FIELDS
        if unknown:
            raise ValueError(f"Cannot update job fields: {', '.join(sorted(unknown))}")

        def op(db: Session):
            row = db.get(ProcessingJob, job_id)
            if row is None:
                raise JobNotFoundError(f"Job {job_id} not found")
            current = JobStatus(row.status)
            if status not in ALLOWED_JOB_TRANSITIONS[current]:
                raise InvalidJobTransition(f"Job {job_id} cannot move from {current.value} to {status.value}")
            row.status = status.value
            for name, value in fields.items():
                setattr(row, name, value)
            db.flush()
            db.refresh(row)
            return EnrichmentJob.model_validate(row)
        job = await self._db_execute(op)
        logger.info("Job %s is now %s", job_id, status.value)
        return job

    async def list_jobs(self, tenant_id: str, limit: int = 50) -> List[EnrichmentJob]:
        def op(db: Session):
            rows = db.scalars(
                select(ProcessingJob)
                .where(ProcessingJob.tenant_id == tenant_id)
                .order_by(ProcessingJob.created_at.desc(), ProcessingJob.id)
                .limit(limit)
            ).all()
            return [EnrichmentJob.model_validate(r) for r in rows]
        return await self._db_execute(op)

    # ------------------------------------------------------------- activities

    async def create_activity(self, tenant_id: str, type: str, message: str,
                              details: Optional[Dict[str, Any]] = None) -> ActivityResponse:
        def op(db: Session):
            row = Activity(tenant_id=tenant_id, type=type, message=message, details=details)
            db.add(row)
            db.flush()
            db.refresh(row)
            return ActivityResponse.model_validate(row)
        return await self._db_execute(op)

    async def recent_activities(self, tenant_id: str, limit: int = 20) -> List[ActivityResponse]:
        def op(db: Session):
            rows = db.scalars(
                select(Activity)
                .where(Activity.tenant_id == tenant_id)
                .order_by(Activity.created_at.desc())
                .limit(limit)
            ).all()
            return [ActivityResponse.model_validate(r) for r in rows]
        return await self._db_execute(op)

    # ------------------------------------------------------------- candidates

    @staticmethod
    def _find_duplicate(db: Session, tenant_id: str, record: CandidateRecord) -> Optional[Candidate]:
        """Same tenant, then same e-mail, else same name and company (case-insensitive)."""
        base = select(Candidate).where(Candidate.tenant_id == tenant_id)
        if record.email:
            row = db.scalars(base.where(func.lower(Candidate.email) == record.email.lower())).first()
            if row is not None:
                return row
        if record.company:
            return db.scalars(base.where(
                func.lower(Candidate.name) == record.name.lower(),
                func.lower(Candidate.company) == record.company.lower(),
            )).first()
        return None

    async def upsert_candidate(self, tenant_id: str, record: CandidateRecord,
                               job_id: Optional[str] = None) -> str:
        def op(db: Session):
            row = self._find_duplicate(db, tenant_id, record)
            if row is None:
                row = Candidate(tenant_id=tenant_id, name=record.name)
                db.add(row)
            else:
                logger.info("Updating existing candidate %s (%s)", row.id, record.name)
                row.name = record.name
            for name in _DECLARED_FIELDS:
                value = getattr(record, name)
                if value is not None:
                    setattr(row, name, value)
            row.job_id = job_id or row.job_id
            row.skills = list(record.skills)
            row.work_history = [entry.model_dump(by_alias=True) for entry in record.work_history]
            row.is_active = True
            db.flush()
            return row.id
        return await self._db_execute(op)

    async def save_candidate_result(self, candidate_id: str, result: CandidateScoringResult) -> None:
        def op(db: Session):
            row = db.get(Candidate, candidate_id)
            if row is None:
                raise LookupError(f"Candidate {candidate_id} not found")
            profile = result.profile
            row.enrichment = profile.model_dump(by_alias=True, mode="json")
            row.enrichment_status = "degraded" if profile.degraded else "enriched"
            row.open_to_work = profile.open_to_work
            row.last_active = profile.last_activity

            row.open_to_work_score = result.components.open_to_work
            row.skill_match_score = result.components.skill_match
            row.job_stability_score = result.components.job_stability
            row.engagement_score = result.components.platform_engagement
            row.score = result.score.total
            row.priority = result.score.priority.value

            row.company_difference = result.hireability.company_difference
            row.company_difference_score = result.hireability.company_difference_score
            row.hireability_score = result.hireability.hireability_score
            row.hireability_factors = list(result.hireability.hireability_factors)
            row.potential_to_join = result.hireability.potential_to_join.value

            row.insights = list(result.analysis.insights)
            row.notes = "\n".join(result.analysis.insights) or None
        await self._db_execute(op)

    async def list_candidate_components(self, tenant_id: str) -> List[Tuple[str, ScoreComponents]]:
        """Component scores of every active, already scored candidate of a tenant."""
        def op(db: Session):
            rows = db.scalars(
                select(Candidate)
                .where(Candidate.tenant_id == tenant_id, Candidate.is_active.is_(True),
                       Candidate.open_to_work_score.is_not(None))
                .order_by(Candidate.id)
            ).all()
            return [
                (r.id, ScoreComponents(
                    open_to_work=r.open_to_work_score,
                    skill_match=r.skill_match_score,
                    job_stability=r.job_stability_score,
                    platform_engagement=r.engagement_score,
                ))
                for r in rows
            ]
        return await self._db_execute(op)

    async def update_candidate_score(self, candidate_id: str, result: ScoreResult) -> None:
        def op(db: Session):
            row = db.get(Candidate, candidate_id)
            if row is None:
                raise LookupError(f"Candidate {candidate_id} not found")
            row.score = result.total
            row.priority = result.priority.value
        await self._db_execute(op)

    async def get_candidate(self, candidate_id: str, tenant_id: Optional[str] = None) -> Optional[CandidateResponse]:
        def op(db: Session):
            row = db.get(Candidate, candidate_id)
            if row is None or (tenant_id is not None and row.tenant_id != tenant_id):
                return None
            return CandidateResponse.model_validate(row)
        return await self._db_execute(op)

    async def list_candidates(self, tenant_id: str, limit: int = 100) -> List[CandidateResponse]:
        def op(db: Session):
            rows = db.scalars(
                select(Candidate)
                .where(Candidate.tenant_id == tenant_id, Candidate.is_active.is_(True))
                .order_by(Candidate.score.desc().nulls_last(), Candidate.name)
                .limit(limit)
            ).all()
            return [CandidateResponse.model_validate(r) for r in rows]
        return await self._db_execute(op)

    # ---------------------------------------------------------------- scoring

    async def get_scoring_weights(self, tenant_id: str) -> ScoringWeights:
        def op(db: Session):
            row = db.scalars(select(ScoringConfig).where(ScoringConfig.tenant_id == tenant_id)).first()
            if row is None:
                return ScoringWeights.default()
            return ScoringWeights(
                open_to_work=row.open_to_work,
                skill_match=row.skill_match,
                job_stability=row.job_stability,
                platform_engagement=row.platform_engagement,
            )
        return await self._db_execute(op)

    async def save_scoring_weights(self, tenant_id: str, weights: ScoringWeights) -> ScoringWeights:
        def op(db: Session):
            row = db.scalars(select(ScoringConfig).where(ScoringConfig.tenant_id == tenant_id)).first()
            if row is None:
                row = ScoringConfig(tenant_id=tenant_id)
                db.add(row)
            row.open_to_work = weights.open_to_work
            row.skill_match = weights.skill_match
            row.job_stability = weights.job_stability
            row.platform_engagement = weights.platform_engagement
            return weights
        return await self._db_execute(op)
