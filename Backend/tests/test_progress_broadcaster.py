import asyncio

import pytest

from talentscout.core.errors import SessionNotFoundError
from talentscout.core.models import CompletedCandidate, EnrichmentJob, JobStatus, ProgressEvent
from talentscout.services.progress_broadcaster import (
    JOB_PROGRESS,
    RESUME_COMPLETED,
    UPLOAD_COMPLETE,
    UPLOAD_ERROR,
    UPLOAD_PROGRESS,
    ProgressBroadcaster,
)


def drain(queue):
    events = []
    while not queue.empty():
        events.append(queue.get_nowait())
    return events


def test_session_lifecycle_emits_events_in_order():
    async def scenario():
        broadcaster = ProgressBroadcaster(cleanup_delay=0.01)
        queue = broadcaster.subscribe()
        broadcaster.create_session("s1", "acme", total_files=2)

        broadcaster.update_progress("s1", current_file="jane.txt")
        broadcaster.add_completed_candidate("s1", CompletedCandidate(candidate_id="c1", name="Jane Doe", score=7.1))
        broadcaster.add_error("s1", "broken.pdf", "Unsupported binary document")

        events = drain(queue)
        assert [e.type for e in events] == [UPLOAD_PROGRESS, RESUME_COMPLETED, UPLOAD_ERROR, UPLOAD_COMPLETE]
        for event in events:
            assert event.data["sessionId"] == "s1"
            assert event.data["tenantId"] == "acme"
            assert event.session_id == "s1"

        complete = events[-1].data
        assert complete["totalCandidates"] == 1
        assert complete["totalErrors"] == 1
        assert complete["candidates"][0]["candidateId"] == "c1"

        session = broadcaster.get_session("s1")
        assert session.completed
        assert session.progress == 100

        await asyncio.sleep(0.05)
        assert broadcaster.get_session("s1") is None

    asyncio.run(scenario())


def test_complete_session_is_idempotent():
    async def scenario():
        broadcaster = ProgressBroadcaster()
        queue = broadcaster.subscribe()
        broadcaster.create_session("s1", "acme", total_files=3)
        broadcaster.complete_session("s1")
        broadcaster.complete_session("s1")
        assert [e.type for e in drain(queue)] == [UPLOAD_COMPLETE]
        broadcaster.close_session("s1")

    asyncio.run(scenario())


def test_complete_without_running_loop_removes_session():
    broadcaster = ProgressBroadcaster()
    broadcaster.create_session("s1", "acme", total_files=1)
    broadcaster.complete_session("s1")
    assert broadcaster.get_session("s1") is None


def test_unknown_session_is_ignored():
    broadcaster = ProgressBroadcaster()
    assert broadcaster.update_progress("missing", completed_files=1) is None
    assert broadcaster.add_error("missing", "a.txt", "boom") is None
    assert broadcaster.complete_session("missing") is None


def test_require_session_checks_tenant():
    broadcaster = ProgressBroadcaster()
    broadcaster.create_session("s1", "acme", total_files=1)
    assert broadcaster.require_session("s1", "acme").session_id == "s1"
    assert broadcaster.require_session("s1").tenant_id == "acme"
    with pytest.raises(SessionNotFoundError):
        broadcaster.require_session("s1", "globex")
    with pytest.raises(SessionNotFoundError):
        broadcaster.require_session("missing")


def test_only_progress_fields_can_be_updated():
    broadcaster = ProgressBroadcaster()
    broadcaster.create_session("s1", "acme", total_files=1)
    with pytest.raises(ValueError):
        broadcaster.update_progress("s1", tenant_id="other")


def test_close_session_is_silent():
    async def scenario():
        broadcaster = ProgressBroadcaster()
        queue = broadcaster.subscribe()
        broadcaster.create_session("s1", "acme", total_files=1)
        broadcaster.close_session("s1")
        assert queue.empty()
        assert broadcaster.active_sessions() == []

    asyncio.run(scenario())


def test_full_subscriber_queue_drops_events():
    async def scenario():
        broadcaster = ProgressBroadcaster(queue_size=1)
        slow = broadcaster.subscribe()
        event = ProgressEvent(type=JOB_PROGRESS)
        assert broadcaster.broadcast(event) == 1
        assert broadcaster.broadcast(event) == 0
        assert slow.qsize() == 1

        broadcaster.unsubscribe(slow)
        assert broadcaster.subscriber_count == 0
        assert broadcaster.broadcast(event) == 0

    asyncio.run(scenario())


def test_publish_job_payload():
    async def scenario():
        broadcaster = ProgressBroadcaster()
        queue = broadcaster.subscribe()
        job = EnrichmentJob(id="j1", tenant_id="acme", file_name="batch.csv", status=JobStatus.FAILED,
                            progress=25, total_records=4, processed_records=1, failed_records=1,
                            error_message="parser crashed")
        broadcaster.publish_job(job, "s1")

        event = queue.get_nowait()
        assert event.type == JOB_PROGRESS
        assert event.session_id == "s1"
        assert event.data == {
            "jobId": "j1",
            "tenantId": "acme",
            "status": "failed",
            "progress": 25,
            "processedRecords": 1,
            "totalRecords": 4,
            "failedRecords": 1,
            "errorMessage": "parser crashed",
        }

    asyncio.run(scenario())
