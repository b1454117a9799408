"""
Enrichment Orchestrator

Drives one batch job through ingestion, per-candidate enrichment and scoring,
persistence and progress reporting.

Job lifecycle: pending -> processing -> completed | failed | stopped.

Candidates of a job are processed strictly one after another. A failure on
one candidate is recorded as an activity and the job moves on; an exception
outside the per-candidate boundary fails the whole job. A stop request is
honored once ingestion finishes and at every candidate boundary after that,
never in the middle of a call.
"""

import asyncio
import logging
from typing import Dict, List, Optional, Sequence, Tuple

from talentscout.core.errors import ExtractionError, InvalidJobTransition, JobNotFoundError
from talentscout.core.models import (
    CandidateRecord,
    CandidateScoringResult,
    CompletedCandidate,
    EnrichmentJob,
    JobStatus,
    ProfileIdentity,
    RawDocument,
    ScoringWeights,
)
from talentscout.services.company_analysis import CompanyConsistencyAnalyzer
from talentscout.services.individual_scoring import IndividualScorer
from talentscout.services.job_stability import JobStabilityAnalyzer
from talentscout.services.request_scheduler import ScoringRequest
from talentscout.services.total_scoring import ScoreAggregator

logger = logging.getLogger(__name__)

INGESTION_PROGRESS = 25
ENRICHMENT_PROGRESS_SPAN = 70
DEFAULT_STOP_REASON = "Stopped by user"


class EnrichmentOrchestrator:

    def __init__(self, storage, scheduler, broadcaster, extractor, *,
                 aggregator: Optional[ScoreAggregator] = None,
                 stability: Optional[JobStabilityAnalyzer] = None,
                 company: Optional[CompanyConsistencyAnalyzer] = None,
                 individual: Optional[IndividualScorer] = None,
                 candidate_delay: float = 0.2,
                 job_description: str = ""):
        self.storage = storage
        self.scheduler = scheduler
        self.broadcaster = broadcaster
        self.extractor = extractor
        self.aggregator = aggregator or ScoreAggregator()
        self.stability = stability or JobStabilityAnalyzer()
        self.company = company or CompanyConsistencyAnalyzer()
        self.individual = individual or IndividualScorer()
        self.candidate_delay = candidate_delay
        self.job_description = job_description

        self._stop_requests: Dict[str, str] = {}
        self._tasks: Dict[str, asyncio.Task] = {}

    # ------------------------------------------------------------------ jobs

    async def create_job(self, tenant_id: str, file_name: str) -> EnrichmentJob:
        job = await self.storage.create_job(tenant_id, file_name)
        logger.info("Created enrichment job %s for %s (tenant %s)", job.id, file_name, tenant_id)
        return job

    def start_job(self, job_id: str, documents: Sequence[RawDocument],
                  session_id: Optional[str] = None) -> asyncio.Task:
        """Run a job in the background on the current event loop."""
        task = asyncio.create_task(self.run_job(job_id, documents, session_id), name=f"enrichment-job-{job_id}")
        self._tasks[job_id] = task
        task.add_done_callback(lambda _: self._tasks.pop(job_id, None))
        return task

    @property
    def running_jobs(self) -> List[str]:
        return list(self._tasks)

    async def request_stop(self, job_id: str, reason: Optional[str] = None,
                           tenant_id: Optional[str] = None) -> EnrichmentJob:
        """
        Mark a pending or processing job as stopped. A running loop notices
        at its next candidate boundary and exits without emitting anything.
        """
        job = await self.storage.get_job(job_id, tenant_id)
        if job is None:
            raise JobNotFoundError(f"Job {job_id} not found")

        reason = reason or DEFAULT_STOP_REASON
        was_pending = job.status == JobStatus.PENDING
        self._stop_requests[job_id] = reason
        try:
            job = await self.storage.transition_job(job_id, JobStatus.STOPPED, error_message=reason)
        except InvalidJobTransition:
            self._stop_requests.pop(job_id, None)
            raise

        if was_pending and job_id not in self._tasks:
            # never started here; run_job will refuse it from the stored status
            self._stop_requests.pop(job_id, None)

        await self.storage.create_activity(
            job.tenant_id, "job_stopped",
            f"Processing stopped for {job.file_name}: {reason}",
            {"jobId": job.id, "processedRecords": job.processed_records, "totalRecords": job.total_records},
        )
        return job

    async def run_job(self, job_id: str, documents: Sequence[RawDocument],
                      session_id: Optional[str] = None) -> EnrichmentJob:
        job = await self.storage.get_job(job_id)
        if job is None:
            raise JobNotFoundError(f"Job {job_id} not found")

        try:
            job = await self.storage.transition_job(job_id, JobStatus.PROCESSING, progress=0)
        except InvalidJobTransition:
            logger.info("Job %s is %s; not starting", job_id, job.status.value)
            self._stop_requests.pop(job_id, None)
            return job

        try:
            return await self._process(job, documents, session_id)
        except Exception as e:
            logger.exception("Enrichment job %s failed", job_id)
            return await self._fail_job(job, str(e) or type(e).__name__, session_id)
        finally:
            self._stop_requests.pop(job_id, None)

    # ------------------------------------------------------------- internals

    async def _process(self, job: EnrichmentJob, documents: Sequence[RawDocument],
                       session_id: Optional[str]) -> EnrichmentJob:
        tenant_id = job.tenant_id
        await self.storage.create_activity(tenant_id, "job_started", f"Started processing {job.file_name}",
                                           {"jobId": job.id, "files": len(documents)})

        records, document_errors = await self._ingest(documents)
        if await self._stop_observed(job.id):
            return await self._finish_stopped(job.id, session_id)

        if session_id:
            self.broadcaster.update_progress(session_id, total_files=len(records) + len(document_errors))
        for file_name, error in document_errors:
            await self.storage.create_activity(tenant_id, "document_failed",
                                               f"Could not read {file_name}: {error}", {"jobId": job.id})
            if session_id:
                self.broadcaster.add_error(session_id, file_name, error)

        if not records and document_errors:
            raise ExtractionError("No candidate records could be extracted")

        job = await self.storage.update_job(job.id, total_records=len(records), progress=INGESTION_PROGRESS)
        if not self._stop_pending(job.id):
            self._publish(job, session_id)

        weights = await self.storage.get_scoring_weights(tenant_id)
        processed = 0
        failed = 0

        for index, record in enumerate(records):
            if await self._stop_observed(job.id):
                return await self._finish_stopped(job.id, session_id)

            if session_id:
                self.broadcaster.update_progress(session_id, current_file=record.source_file or record.name)

            try:
                result = await self.process_candidate(tenant_id, job.id, record, weights)
            except Exception as e:
                failed += 1
                logger.exception("Failed to process candidate %s in job %s", record.name, job.id)
                await self.storage.create_activity(
                    tenant_id, "candidate_failed",
                    f"Failed to process {record.name}: {e}",
                    {"jobId": job.id, "candidate": record.name, "index": index},
                )
                if session_id and not self._stop_pending(job.id):
                    self.broadcaster.add_error(session_id, record.source_file or record.name, str(e))
            else:
                if session_id and not self._stop_pending(job.id):
                    self.broadcaster.add_completed_candidate(session_id, CompletedCandidate(
                        candidate_id=result.candidate_id,
                        name=record.name,
                        email=record.email,
                        score=result.score.total,
                        priority=result.score.priority,
                    ))

            processed += 1
            job = await self.storage.update_job(
                job.id,
                processed_records=processed,
                failed_records=failed,
                progress=INGESTION_PROGRESS + round(processed / len(records) * ENRICHMENT_PROGRESS_SPAN),
            )
            if not self._stop_pending(job.id):
                self._publish(job, session_id)

            if index < len(records) - 1:
                await asyncio.sleep(self.candidate_delay)

        if await self._stop_observed(job.id):
            return await self._finish_stopped(job.id, session_id)

        try:
            job = await self.storage.transition_job(job.id, JobStatus.COMPLETED, progress=100)
        except InvalidJobTransition:
            # stopped between the last boundary and completion
            return await self._finish_stopped(job.id, session_id)

        await self.storage.create_activity(
            tenant_id, "job_completed",
            f"Processed {processed}/{len(records)} candidates from {job.file_name}",
            {"jobId": job.id, "processedRecords": processed, "totalRecords": len(records), "failedRecords": failed},
        )
        logger.info("Job %s completed: %d/%d processed, %d failed", job.id, processed, len(records), failed)
        self._publish(job, session_id)
        if session_id:
            self.broadcaster.complete_session(session_id)
        return job

    async def _ingest(self, documents: Sequence[RawDocument]) -> Tuple[List[CandidateRecord], List[Tuple[str, str]]]:
        records: List[CandidateRecord] = []
        errors: List[Tuple[str, str]] = []
        for document in documents:
            try:
                extracted = await self.extractor.extract(document)
            except ExtractionError as e:
                logger.warning("Extraction failed for %s: %s", document.file_name, e)
                errors.append((document.file_name, str(e)))
                continue
            records.extend(extracted)
        logger.info("Extracted %d candidate records from %d documents", len(records), len(documents))
        return records, errors

    async def process_candidate(self, tenant_id: str, job_id: Optional[str], record: CandidateRecord,
                                weights: ScoringWeights) -> CandidateScoringResult:
        """Enrich, analyze, score and persist one candidate."""
        candidate_id = await self.storage.upsert_candidate(tenant_id, record, job_id)

        profile = await self.scheduler.enrich_profile(ProfileIdentity.from_candidate(record))
        analysis = await self.scheduler.score_candidate(ScoringRequest(
            candidate=record,
            weights=weights,
            profile=profile,
            job_description=self.job_description,
        ))

        job_stability = self.stability.score(record.work_history)
        components = self.individual.components(record, profile, analysis, job_stability)
        score = self.aggregator.score(components, weights)

        # a degraded profile only echoes the declared company back
        enriched_company = None if profile.degraded else profile.current_company
        comparison = self.company.compare(record.company, enriched_company)

        seen = {s.lower() for s in record.skills}
        skills = list(record.skills) + [s for s in profile.skills if s.lower() not in seen]
        hireability = self.company.assess_hireability(
            profile.open_to_work, comparison, profile.last_activity, skills, record.location,
        )

        result = CandidateScoringResult(
            candidate_id=candidate_id,
            profile=profile,
            components=components,
            score=score,
            comparison=comparison,
            hireability=hireability,
            analysis=analysis,
        )
        await self.storage.save_candidate_result(candidate_id, result)
        logger.debug("Scored %s: %.2f (%s)", record.name, score.total, score.priority.value)
        return result

    def _stop_pending(self, job_id: str) -> bool:
        return job_id in self._stop_requests

    async def _stop_observed(self, job_id: str) -> bool:
        if self._stop_pending(job_id):
            return True
        # a stop issued from another process only shows up in storage
        current = await self.storage.get_job(job_id)
        return current is not None and current.status == JobStatus.STOPPED

    async def _finish_stopped(self, job_id: str, session_id: Optional[str]) -> EnrichmentJob:
        job = await self.storage.get_job(job_id)
        logger.info("Job %s stopped after %d/%d candidates", job_id, job.processed_records, job.total_records)
        if session_id:
            self.broadcaster.close_session(session_id)
        return job

    async def _fail_job(self, job: EnrichmentJob, message: str, session_id: Optional[str]) -> EnrichmentJob:
        try:
            job = await self.storage.transition_job(job.id, JobStatus.FAILED, error_message=message)
        except InvalidJobTransition:
            return await self.storage.get_job(job.id)

        await self.storage.create_activity(
            job.tenant_id, "job_failed", f"Processing failed for {job.file_name}: {message}",
            {"jobId": job.id, "processedRecords": job.processed_records, "totalRecords": job.total_records},
        )
        self._publish(job, session_id)
        if session_id:
            self.broadcaster.complete_session(session_id)
        return job

    def _publish(self, job: EnrichmentJob, session_id: Optional[str]) -> None:
        self.broadcaster.publish_job(job, session_id)
