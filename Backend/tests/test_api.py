import time

import pytest
from fastapi.testclient import TestClient

from talentscout.main import create_app
from talentscout.pipeline import build_pipeline

from .fakes import FakeProfileLookup, FakeScorer

RESUME = b"""Jane Doe
jane.doe@example.com
Title: Senior Data Engineer
Company: Acme Corp
Skills: Python, SQL, Airflow
"""
ACME = {"X-Tenant-Id": "acme"}
GLOBEX = {"X-Tenant-Id": "globex"}


@pytest.fixture
def client(test_settings, tmp_path):
    # a file database so request threads and the background job use separate connections
    settings = test_settings.model_copy(update={"DATABASE_URL": f"sqlite+pysqlite:///{tmp_path / 'api.db'}"})
    pipeline = build_pipeline(settings, profile_lookup=FakeProfileLookup(), scorer=FakeScorer(skill_match=8.0))
    with TestClient(create_app(settings, pipeline)) as test_client:
        yield test_client


def wait_for_job(client, job_id, timeout=10.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        job = client.get(f"/jobs/{job_id}", headers=ACME).json()
        if job["status"] in ("completed", "failed", "stopped"):
            return job
        time.sleep(0.05)
    raise AssertionError(f"job {job_id} did not finish")


def upload_resume(client):
    response = client.post("/upload", headers=ACME, files=[("files", ("jane.txt", RESUME, "text/plain"))])
    assert response.status_code == 202
    return response.json()


def test_upload_runs_the_pipeline(client):
    body = upload_resume(client)
    assert body["job"]["status"] == "pending"
    assert body["files"] == ["jane.txt"]

    job = wait_for_job(client, body["job"]["id"])
    assert job["status"] == "completed"
    assert job["processedRecords"] == 1
    assert job["progress"] == 100

    candidates = client.get("/candidates", headers=ACME).json()
    assert [c["name"] for c in candidates] == ["Jane Doe"]
    candidate = candidates[0]
    assert candidate["skillMatchScore"] == 8.0
    assert candidate["score"] is not None
    assert candidate["potentialToJoin"] in ("High", "Medium", "Low", "Unknown")
    assert client.get(f"/candidates/{candidate['id']}", headers=ACME).status_code == 200

    session = client.get(f"/sessions/{body['sessionId']}", headers=ACME).json()
    assert session["completed"] is True
    assert session["candidates"][0]["name"] == "Jane Doe"

    activity_types = [a["type"] for a in client.get("/activities", headers=ACME).json()]
    assert "job_completed" in activity_types


def test_tenants_are_isolated(client):
    body = upload_resume(client)
    job = wait_for_job(client, body["job"]["id"])

    assert client.get(f"/jobs/{job['id']}", headers=GLOBEX).status_code == 404
    assert client.get("/jobs", headers=GLOBEX).json() == []
    assert client.get("/candidates", headers=GLOBEX).json() == []
    assert client.get(f"/sessions/{body['sessionId']}", headers=GLOBEX).status_code == 404
    assert client.get("/sessions/no-such-session", headers=ACME).status_code == 404


def test_upload_limits(client):
    files = [("files", (f"resume{i}.txt", RESUME, "text/plain")) for i in range(51)]
    response = client.post("/upload", headers=ACME, files=files)
    assert response.status_code == 400


def test_stop_endpoint(client):
    assert client.post("/jobs/missing/stop", headers=ACME).status_code == 404

    body = upload_resume(client)
    job = wait_for_job(client, body["job"]["id"])
    response = client.post(f"/jobs/{job['id']}/stop", headers=ACME, json={"reason": "Too late"})
    assert response.status_code == 409


def test_scoring_weights(client):
    assert client.get("/scoring", headers=ACME).json()["weights"] == {
        "openToWork": 25.0, "skillMatch": 25.0, "jobStability": 25.0, "platformEngagement": 25.0,
    }

    bad = {"openToWork": 50, "skillMatch": 50, "jobStability": 50, "platformEngagement": 50}
    assert client.post("/scoring", headers=ACME, json=bad).status_code == 400
    negative = {"openToWork": -10, "skillMatch": 60, "jobStability": 25, "platformEngagement": 25}
    assert client.post("/scoring", headers=ACME, json=negative).status_code == 400

    wait_for_job(client, upload_resume(client)["job"]["id"])
    weights = {"openToWork": 40, "skillMatch": 30, "jobStability": 20, "platformEngagement": 10}
    response = client.post("/scoring", headers=ACME, json=weights)
    assert response.status_code == 200
    assert response.json()["recalculation"]["updatedCount"] == 1
    assert client.get("/scoring", headers=ACME).json()["weights"]["openToWork"] == 40.0

    summary = client.post("/scoring/recalculate", headers=ACME).json()
    assert summary["updatedCount"] == 1
    assert summary["failedCount"] == 0


def test_health(client):
    body = client.get("/health").json()
    assert body["status"] == "ok"
    assert body["scheduler"]["maxConcurrent"] == 3
    assert "keys" not in body["cache"]


def test_progress_socket_greets_clients(client):
    with client.websocket_connect("/ws") as websocket:
        welcome = websocket.receive_json()
        assert welcome["type"] == "processing_started"
        assert welcome["data"]["clientId"].startswith("client_")
        websocket.send_text('{"type": "join_session", "sessionId": "abc"}')
