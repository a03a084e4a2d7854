import time

import pytest
from fastapi.testclient import TestClient

from app.api.errors import ErrorCode, get_error_code
from app.config import Settings
from app.main import create_app


@pytest.fixture
def client(tmp_path, fake_httrack):
    settings = Settings(
        downloads_dir=str(tmp_path / "downloads"),
        httrack_path=str(fake_httrack),
        content_server_enabled=False,
        content_port=8080,
        poll_interval_seconds=0.02,
        poll_max_attempts=250,
    )
    with TestClient(create_app(settings)) as test_client:
        yield test_client


def wait_for_status(client, job_id, status, timeout=10.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        body = client.get(f"/api/status/{job_id}").json()
        if body["status"] == status:
            return body
        time.sleep(0.05)
    pytest.fail(f"job {job_id} never reached {status}")


def start_crawl(client, url="https://example.com"):
    response = client.post("/api/crawl", json={"targetUrl": url, "projectName": "demo"})
    assert response.status_code == 201
    return response.json()["jobId"]


def test_health(client):
    body = client.get("/health").json()
    assert body["status"] == "ok"
    assert body["version"] == "1.0.0"
    assert "timestamp" in body


def test_check_httrack(client):
    body = client.get("/api/check-httrack").json()
    assert body == {"httrackInstalled": True, "message": "HTTrack is available"}


def test_crawl_rejects_invalid_url(client):
    response = client.post("/api/crawl", json={"targetUrl": "not-a-url"})
    assert response.status_code == 400
    body = response.json()
    assert body["error"] == ErrorCode.VALIDATION_ERROR
    assert body["message"] == "Invalid URL format"
    assert client.get("/api/jobs").json() == {"jobs": []}


def test_crawl_rejects_host_with_whitespace(client):
    response = client.post("/api/crawl", json={"targetUrl": "https://exa mple.com"})
    assert response.status_code == 400
    assert response.json()["error"] == ErrorCode.VALIDATION_ERROR


def test_crawl_requires_url(client):
    response = client.post("/api/crawl", json={})
    assert response.status_code == 400
    assert response.json()["message"] == "targetUrl is required"


def test_crawl_completes_and_is_listed(client):
    response = client.post("/api/crawl", json={"targetUrl": "https://example.com"})
    assert response.status_code == 201
    created = response.json()
    assert created["status"] == "queued"
    assert created["message"] == "Crawl job created successfully"

    job = wait_for_status(client, created["jobId"], "completed")
    assert job["servingUrl"] == f"http://localhost:8080/{created['jobId']}"
    assert job["targetUrl"] == "https://example.com"
    assert "error" not in job

    jobs = client.get("/api/jobs").json()["jobs"]
    assert [j["jobId"] for j in jobs] == [created["jobId"]]


def test_crawl_failure_is_reported(client):
    job_id = start_crawl(client, "https://broken.example.com")
    job = wait_for_status(client, job_id, "failed")
    assert "HTTrack failed with code 2" in job["error"]
    assert "servingUrl" not in job


def test_unknown_job_status(client):
    response = client.get("/api/status/missing")
    assert response.status_code == 404
    body = response.json()
    assert body["error"] == ErrorCode.NOT_FOUND
    assert body["jobId"] == "missing"


def test_cancel_running_job(client):
    job_id = start_crawl(client, "https://slow.example.com")
    wait_for_status(client, job_id, "running")

    response = client.delete(f"/api/crawl/{job_id}")
    assert response.status_code == 200
    assert response.json()["message"] == f"Job {job_id} cancelled successfully"

    job = client.get(f"/api/status/{job_id}").json()
    assert job["status"] == "failed"
    assert job["error"] == "cancelled by user"


def test_cancel_completed_job_keeps_result(client):
    job_id = start_crawl(client)
    completed = wait_for_status(client, job_id, "completed")

    assert client.delete(f"/api/crawl/{job_id}").status_code == 200
    job = client.get(f"/api/status/{job_id}").json()
    assert job["status"] == "completed"
    assert job["servingUrl"] == completed["servingUrl"]


def test_cancel_unknown_job(client):
    response = client.delete("/api/crawl/missing")
    assert response.status_code == 404
    assert response.json()["message"] == "Job missing not found"


def test_extract_assets_flow(client):
    job_id = start_crawl(client)
    wait_for_status(client, job_id, "completed")

    assert client.get(f"/api/assets/{job_id}").status_code == 404

    first = client.post("/api/extract-assets", json={"jobId": job_id})
    assert first.status_code == 200
    assert first.json()["message"] == "Asset extraction completed successfully"
    assert first.json()["assets"]["metadata"]["title"] == "Acme Widgets"

    second = client.post("/api/extract-assets", json={"jobId": job_id}).json()
    assert second["message"] == "Assets already extracted"
    assert second["assets"]["extractedAt"] == first.json()["assets"]["extractedAt"]

    stored = client.get(f"/api/assets/{job_id}").json()
    assert stored["metadata"]["title"] == "Acme Widgets"


def test_extract_assets_validation(client):
    response = client.post("/api/extract-assets", json={})
    assert response.status_code == 400
    assert response.json()["message"] == "jobId is required"

    response = client.post("/api/extract-assets", json={"jobId": "missing"})
    assert response.status_code == 404


def test_extract_assets_before_completion(client):
    job_id = start_crawl(client, "https://slow.example.com")
    wait_for_status(client, job_id, "running")

    response = client.post("/api/extract-assets", json={"jobId": job_id})
    assert response.status_code == 409
    body = response.json()
    assert body["error"] == ErrorCode.INVALID_STATE
    assert "job status is running" in body["message"]


def test_crawl_and_extract(client):
    response = client.post("/api/crawl-and-extract", json={"targetUrl": "https://example.com"})
    assert response.status_code == 201
    body = response.json()
    assert body["message"].startswith("Crawl job started.")

    deadline = time.monotonic() + 10
    while time.monotonic() < deadline:
        assets = client.get(f"/api/assets/{body['jobId']}")
        if assets.status_code == 200:
            break
        time.sleep(0.05)
    assert assets.status_code == 200
    assert assets.json()["metadata"]["title"] == "Acme Widgets"


def test_unknown_route(client):
    response = client.get("/api/nope")
    assert response.status_code == 404
    body = response.json()
    assert body["error"] == ErrorCode.NOT_FOUND
    assert body["message"] == "Route GET /api/nope not found"


def test_error_code_fallback():
    assert get_error_code(404) == ErrorCode.NOT_FOUND
    assert get_error_code(418) == ErrorCode.INTERNAL_ERROR
