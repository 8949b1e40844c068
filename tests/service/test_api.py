"""
Service-level test for the HTTP control surface.

Runs the real FastAPI app (lifespan included) against a service wired to a
temporary state file and watch folder, and drives it the way a client would.
"""

import threading

import pytest
from fastapi.testclient import TestClient

from app.service import ConvertService
from app.utils.state_store import StateStore
from domains.conversion.orchestrator import ConversionOrchestrator
from domains.folder_watch.access import AccessController


@pytest.fixture
def finished():
    return threading.Event()


@pytest.fixture
def client(tmp_path, registry, finished, monkeypatch):
    def build(_settings):
        store = StateStore(tmp_path / "state" / "state.json")
        access = AccessController(store)
        orchestrator = ConversionOrchestrator(
            registry,
            access,
            on_progress=lambda p: None if p.is_converting else finished.set(),
        )
        return ConvertService(store, registry, access, orchestrator)

    monkeypatch.setattr("app.main.build_service", build)

    from app.main import app

    with TestClient(app) as test_client:
        yield test_client


def test_health_and_root(client):
    assert client.get("/").json()["service"] == "AutoConvert"

    health = client.get("/health").json()
    assert health["status"] == "healthy"
    assert health["watching"] is False


def test_folder_enable_and_status(client, watch_dir):
    response = client.post("/folder", json={"path": str(watch_dir)})
    assert response.status_code == 200

    assert client.post("/enable").json()["status"] == "watching"

    status = client.get("/status").json()
    assert status["enabled"] is True
    assert status["watching"] is True
    assert status["folder"] == str(watch_dir)

    assert client.post("/disable").json()["status"] == "disabled"
    assert client.get("/status").json()["watching"] is False


def test_missing_folder_is_forbidden(client, tmp_path):
    response = client.post("/folder", json={"path": str(tmp_path / "nope")})

    assert response.status_code == 403


def test_force_convert_requires_folder(client):
    assert client.post("/force-convert").status_code == 409


def test_force_convert_runs_batch(client, watch_dir, finished):
    (watch_dir / "clip.mov").write_bytes(b"media")
    client.post("/folder", json={"path": str(watch_dir)})

    body = client.post("/force-convert").json()

    assert body["status"] == "queued"
    assert body["batch_id"]
    assert finished.wait(timeout=10)
    assert (watch_dir / "clip.mp4").exists()
    assert client.get("/status").json()["last_completed"]["batch_id"] == body["batch_id"]


def test_templates_and_settings(client):
    templates = client.get("/templates").json()
    assert templates[0]["inputExtension"] == "mov"

    settings = client.get("/settings").json()
    assert settings["mp4_quality"] == 23
    assert settings["mp4_preset"] == "fast"
