"""
Progress Broadcaster

Session-scoped, best-effort fan-out of progress events to every connected
subscriber. Nothing is persisted or replayed: a subscriber that connects late
misses earlier events, and a subscriber whose queue is full misses the event.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional, Set

from talentscout.core.errors import SessionNotFoundError
from talentscout.core.models import (
    CompletedCandidate,
    EnrichmentJob,
    EnrichmentSession,
    ProgressEvent,
    SessionError,
)

logger = logging.getLogger(__name__)

UPLOAD_PROGRESS = "upload_progress"
RESUME_COMPLETED = "resume_completed"
UPLOAD_ERROR = "upload_error"
UPLOAD_COMPLETE = "upload_complete"
JOB_PROGRESS = "job_progress"
PROCESSING_STARTED = "processing_started"

_UPDATABLE_FIELDS = frozenset({"total_files", "completed_files", "current_file"})


class ProgressBroadcaster:

    def __init__(self, cleanup_delay: float = 30, queue_size: int = 100):
        self.cleanup_delay = cleanup_delay
        self.queue_size = queue_size
        self._sessions: Dict[str, EnrichmentSession] = {}
        self._subscribers: Set[asyncio.Queue] = set()
        self._cleanup_handles: Dict[str, asyncio.TimerHandle] = {}

    # ------------------------------------------------------------ subscribers

    def subscribe(self) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue(maxsize=self.queue_size)
        self._subscribers.add(queue)
        logger.info("Subscriber connected (%d total)", len(self._subscribers))
        return queue

    def unsubscribe(self, queue: asyncio.Queue) -> None:
        self._subscribers.discard(queue)
        logger.info("Subscriber disconnected (%d total)", len(self._subscribers))

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def broadcast(self, event: ProgressEvent) -> int:
        """Deliver to every subscriber that has room. Returns the number reached."""
        delivered = 0
        for queue in list(self._subscribers):
            try:
                queue.put_nowait(event)
                delivered += 1
            except asyncio.QueueFull:
                logger.warning("Dropping %s event for a slow subscriber", event.type)
        return delivered

    # --------------------------------------------------------------- sessions

    def create_session(self, session_id: str, tenant_id: str, total_files: int) -> EnrichmentSession:
        session = EnrichmentSession(session_id=session_id, tenant_id=tenant_id, total_files=total_files)
        self._sessions[session_id] = session
        logger.info("Created upload session %s for tenant %s with %d files", session_id, tenant_id, total_files)
        return session

    def get_session(self, session_id: str) -> Optional[EnrichmentSession]:
        return self._sessions.get(session_id)

    def require_session(self, session_id: str, tenant_id: Optional[str] = None) -> EnrichmentSession:
        session = self._sessions.get(session_id)
        if session is None or (tenant_id is not None and session.tenant_id != tenant_id):
            raise SessionNotFoundError(f"Session {session_id} not found")
        return session

    def active_sessions(self) -> List[EnrichmentSession]:
        return list(self._sessions.values())

    def update_progress(self, session_id: str, **fields: Any) -> Optional[EnrichmentSession]:
        session = self._lookup(session_id)
        if session is None:
            return None

        unknown = set(fields) - _UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update session fields: {', '.join(sorted(unknown))}")
        for name, value in fields.items():
            setattr(session, name, value)

        self._emit(UPLOAD_PROGRESS, session, {
            "totalFiles": session.total_files,
            "completedFiles": session.completed_files,
            "currentFile": session.current_file,
            "progress": session.progress,
        })
        return session

    def add_completed_candidate(self, session_id: str, candidate: CompletedCandidate) -> Optional[EnrichmentSession]:
        session = self._lookup(session_id)
        if session is None:
            return None

        session.candidates.append(candidate)
        session.completed_files += 1
        self._emit(RESUME_COMPLETED, session, {
            "candidate": candidate.model_dump(by_alias=True, mode="json"),
            "totalCompleted": session.completed_files,
            "totalFiles": session.total_files,
        })
        self._maybe_complete(session)
        return session

    def add_error(self, session_id: str, file_name: str, error: str) -> Optional[EnrichmentSession]:
        session = self._lookup(session_id)
        if session is None:
            return None

        session.errors.append(SessionError(file_name=file_name, error=error))
        session.completed_files += 1
        self._emit(UPLOAD_ERROR, session, {
            "fileName": file_name,
            "error": error,
            "totalCompleted": session.completed_files,
            "totalFiles": session.total_files,
        })
        self._maybe_complete(session)
        return session

    def complete_session(self, session_id: str) -> Optional[EnrichmentSession]:
        session = self._lookup(session_id)
        if session is None or session.completed:
            return session

        session.completed = True
        self._emit(UPLOAD_COMPLETE, session, {
            "totalCandidates": len(session.candidates),
            "totalErrors": len(session.errors),
            "candidates": [c.model_dump(by_alias=True, mode="json") for c in session.candidates],
            "errors": [e.model_dump(by_alias=True, mode="json") for e in session.errors],
        })
        logger.info("Upload session %s completed: %d candidates, %d errors",
                    session_id, len(session.candidates), len(session.errors))
        self._schedule_cleanup(session_id)
        return session

    def close_session(self, session_id: str) -> None:
        """Forget a session without broadcasting anything (used when a job is stopped)."""
        handle = self._cleanup_handles.pop(session_id, None)
        if handle is not None:
            handle.cancel()
        if self._sessions.pop(session_id, None) is not None:
            logger.info("Closed upload session %s", session_id)

    # ------------------------------------------------------------------- jobs

    def publish_job(self, job: EnrichmentJob, session_id: Optional[str] = None) -> int:
        data = {
            "jobId": job.id,
            "tenantId": job.tenant_id,
            "status": job.status.value,
            "progress": job.progress,
            "processedRecords": job.processed_records,
            "totalRecords": job.total_records,
            "failedRecords": job.failed_records,
        }
        if job.error_message:
            data["errorMessage"] = job.error_message
        return self.broadcast(ProgressEvent(type=JOB_PROGRESS, data=data, session_id=session_id))

    # -------------------------------------------------------------- internals

    def _lookup(self, session_id: str) -> Optional[EnrichmentSession]:
        session = self._sessions.get(session_id)
        if session is None:
            logger.error("Session %s not found", session_id)
        return session

    def _emit(self, event_type: str, session: EnrichmentSession, payload: Dict[str, Any]) -> None:
        data = {"sessionId": session.session_id, "tenantId": session.tenant_id}
        data.update(payload)
        self.broadcast(ProgressEvent(type=event_type, data=data, session_id=session.session_id))

    def _maybe_complete(self, session: EnrichmentSession) -> None:
        if session.completed_files >= session.total_files:
            self.complete_session(session.session_id)

    def _schedule_cleanup(self, session_id: str) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # no loop to schedule on; nothing will read the session again
            self._sessions.pop(session_id, None)
            return
        self._cleanup_handles[session_id] = loop.call_later(self.cleanup_delay, self._remove_session, session_id)

    def _remove_session(self, session_id: str) -> None:
        self._cleanup_handles.pop(session_id, None)
        if self._sessions.pop(session_id, None) is not None:
            logger.debug("Removed upload session %s", session_id)
