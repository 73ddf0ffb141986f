"""Tests for the HTTP API."""
import time
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from blackcut.api import routes
from blackcut.main import app
from blackcut.models.task import TaskState
from blackcut.services.task_service import TaskService


@pytest.fixture
def service(store):
    return TaskService(store)


@pytest.fixture
def client(service):
    app.dependency_overrides[routes.get_task_service] = lambda: service
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def task_id(client, video_file):
    response = client.post("/api/tasks", json={"video_path": str(video_file)})
    assert response.status_code == 200
    return response.json()["id"]


def _wait_for_job(client, task_id, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        job = client.get(f"/api/jobs/{task_id}").json()
        if job["status"] in ("completed", "failed", "cancelled"):
            return job
        time.sleep(0.02)
    raise AssertionError(f"Job for task {task_id} did not finish")


def test_health_degraded(client, monkeypatch):
    monkeypatch.setattr(routes, "check_ffmpeg_available", lambda: False)
    monkeypatch.setattr(routes, "check_ffprobe_available", lambda: True)

    body = client.get("/api/health").json()

    assert body["status"] == "degraded"
    assert "ffmpeg" in body["message"]


def test_create_task_is_idempotent(client, video_file, task_id):
    response = client.post("/api/tasks", json={"video_path": str(video_file)})

    body = response.json()
    assert body["id"] == task_id
    assert body["state"] == "idle"
    assert body["cut_point_count"] == 0
    assert [t["id"] for t in client.get("/api/tasks").json()] == [task_id]


def test_create_task_missing_file(client, tmp_path):
    response = client.post("/api/tasks", json={"video_path": str(tmp_path / "nope.mp4")})
    assert response.status_code == 400


def test_unknown_task(client):
    assert client.get("/api/tasks/000000000000").status_code == 404
    assert client.get("/api/tasks/000000000000/cut-points").status_code == 404


def test_detect_and_split_jobs(client, task_id, fake_ffmpeg, tmp_path):
    response = client.post(f"/api/tasks/{task_id}/detect", json={})
    assert response.status_code == 202

    job = _wait_for_job(client, task_id)
    assert job["status"] == "completed"
    assert job["result"]["cut_point_count"] == 2
    assert job["result"]["missing_previews"] == []

    cut_points = client.get(f"/api/tasks/{task_id}/cut-points").json()
    assert [cp["time"] for cp in cut_points] == pytest.approx([10.1, 50.15])
    assert all(cp["preview_anim_before"] for cp in cut_points)

    output_dir = tmp_path / "parts"
    response = client.post(f"/api/tasks/{task_id}/split", json={"output_dir": str(output_dir)})
    assert response.status_code == 202

    job = _wait_for_job(client, task_id)
    assert job["status"] == "completed"
    assert job["result"]["output_count"] == 3

    task = client.get(f"/api/tasks/{task_id}").json()
    assert task["is_split"] is True
    assert task["state"] == "split"

    outputs = client.get(f"/api/tasks/{task_id}/outputs", params={"output_dir": str(output_dir)}).json()
    assert [Path(p).name for p in outputs["outputs"]] == [
        "clip_part001.mp4",
        "clip_part002.mp4",
        "clip_part003.mp4",
    ]


def test_busy_task_returns_409(client, service, task_id):
    service.store.transition(task_id, TaskState.DETECTING)

    assert client.post(f"/api/tasks/{task_id}/detect", json={}).status_code == 409
    assert client.post(f"/api/tasks/{task_id}/split", json={}).status_code == 409
    assert client.post(f"/api/tasks/{task_id}/cut-points", json={"time": 3.0}).status_code == 409
    assert client.delete(f"/api/tasks/{task_id}").status_code == 409

    task = client.get(f"/api/tasks/{task_id}").json()
    assert task["is_loading"] is True


def test_cut_point_edits(client, task_id, fake_ffmpeg):
    response = client.post(f"/api/tasks/{task_id}/cut-points", json={"time": 12.0})
    assert response.status_code == 200
    body = response.json()
    cp_id = body["cut_point"]["id"]
    assert body["preview_error"] is None
    assert body["cut_point"]["preview_before"]

    response = client.patch(f"/api/tasks/{task_id}/cut-points/{cp_id}", json={"time": 15.0})
    assert response.json()["cut_point"]["time"] == 15.0
    assert response.json()["cut_point"]["original_time"] == 12.0

    response = client.post(f"/api/tasks/{task_id}/cut-points/{cp_id}/nudge", json={"delta": -30.0})
    assert response.json()["cut_point"]["time"] == 2.0

    response = client.post(f"/api/tasks/{task_id}/cut-points/{cp_id}/reset")
    assert response.json()["cut_point"]["time"] == 12.0

    assert client.patch(
        f"/api/tasks/{task_id}/cut-points/{cp_id}", json={"time": -1.0}
    ).status_code == 422
    assert client.patch(
        f"/api/tasks/{task_id}/cut-points/cp_missing", json={"time": 1.0}
    ).status_code == 404

    response = client.delete(f"/api/tasks/{task_id}/cut-points/{cp_id}")
    assert response.json() == []


def test_serves_preview_artifacts(client, task_id, fake_ffmpeg):
    body = client.post(f"/api/tasks/{task_id}/cut-points", json={"time": 5.0}).json()
    filename = Path(body["cut_point"]["preview_anim_after"]).name

    response = client.get(f"/api/tasks/{task_id}/artifacts/{filename}")
    assert response.status_code == 200
    assert response.content == b"artifact"

    assert client.get(f"/api/tasks/{task_id}/artifacts/task.json").status_code == 404
    assert client.get(f"/api/tasks/{task_id}/artifacts/missing.jpg").status_code == 404
