# backend/tests/test_api.py
"""HTTP API routes, exercised through FastAPI's TestClient.

Background tasks run before TestClient returns, so a run accepted with 202
has already finished when the next request is made.
"""

import pytest
from conftest import FakeCredentials
from fastapi.testclient import TestClient

from omnipedia.api.app import build_runtime, create_app
from omnipedia.schemas.generation import GenerationItem


@pytest.fixture
def runtime(credentials, file_manager):
    return build_runtime(credentials=credentials, file_manager=file_manager)


@pytest.fixture
def client(runtime):
    with TestClient(create_app(runtime)) as test_client:
        yield test_client


def test_generate_runs_in_background_and_completes(client):
    response = client.post("/api/generate", json={"prompt": "Typewriter", "animate": False})
    assert response.status_code == 202
    item_id = response.json()["item_id"]
    assert response.json()["status_url"] == "/api/session"

    session = client.get("/api/session").json()
    assert session["status"] == "COMPLETED"
    assert session["step_index"] == 6
    assert session["is_processing"] is False
    assert session["error"] is None
    current = session["current_item"]
    assert current["id"] == item_id
    assert current["plan"]["display_title"] == "The Typewriter"
    assert current["video_url"] is None
    assert current["audio_url"] == f"/api/media/{item_id}/narration.wav"
    assert len(current["usage"]) == 8
    assert session["totals"]["calls"] == 8


def test_media_route_serves_saved_audio(client):
    item_id = client.post("/api/generate", json={"prompt": "Typewriter", "animate": False}).json()["item_id"]
    response = client.get(f"/api/media/{item_id}/narration.wav")
    assert response.status_code == 200
    assert response.headers["content-type"] == "audio/wav"
    assert response.content[:4] == b"RIFF"

    assert client.get(f"/api/media/{item_id}/video.mp4").status_code == 404
    assert client.get("/api/media/unknown/narration.wav").status_code == 404


def test_generate_without_key_is_unauthorized(file_manager, fake_genai):
    runtime = build_runtime(credentials=FakeCredentials(fake_genai, api_key=None), file_manager=file_manager)
    with TestClient(create_app(runtime)) as client:
        response = client.post("/api/generate", json={"prompt": "Typewriter"})
        assert response.status_code == 401
        assert client.get("/api/session").json()["credential_required"] is True
        assert client.post("/api/surprise", json={}).status_code == 401
    assert fake_genai.calls == []


def test_generate_while_processing_conflicts(client, runtime):
    runtime.session.start_run(GenerationItem.create("Busy", False))
    response = client.post("/api/generate", json={"prompt": "Typewriter"})
    assert response.status_code == 409
    assert client.post("/api/surprise", json={"animate": False}).status_code == 409


def test_empty_prompt_is_rejected(client):
    assert client.post("/api/generate", json={"prompt": ""}).status_code == 422


def test_surprise_runs_random_topic(client):
    response = client.post("/api/surprise", json={"animate": False})
    assert response.status_code == 202
    session = client.get("/api/session").json()
    assert session["status"] == "COMPLETED"
    assert session["current_item"]["prompt"] == "Mechanical Calculator"


def test_history_listing_selection_and_clear(client, runtime, file_manager):
    first = client.post("/api/generate", json={"prompt": "Typewriter", "animate": False}).json()["item_id"]
    second = client.post("/api/generate", json={"prompt": "Abacus", "animate": False}).json()["item_id"]

    history = client.get("/api/history").json()
    assert [entry["id"] for entry in history] == [second, first]
    assert history[0]["calls"] == 8
    assert history[0]["display_title"] == "The Typewriter"

    selected = client.post(f"/api/history/{first}/select")
    assert selected.status_code == 200
    assert client.get("/api/session").json()["current_item"]["id"] == first
    assert client.get(f"/api/history/{second}").json()["prompt"] == "Abacus"
    assert client.post("/api/history/missing/select").status_code == 404

    cleared = client.delete("/api/history")
    assert cleared.json() == {"removed": 2}
    assert client.get("/api/history").json() == []
    assert file_manager.resolve_asset(first, "narration.wav") is None
    assert client.get("/api/session").json()["status"] == "IDLE"


def test_credentials_lifecycle(client, runtime):
    assert client.get("/api/credentials").json() == {"configured": True, "credential_required": False}

    assert client.delete("/api/credentials").json() == {"configured": False, "credential_required": True}
    assert not runtime.credentials.is_configured

    response = client.put("/api/credentials", json={"api_key": "new-key"})
    assert response.json() == {"configured": True, "credential_required": False}
    assert runtime.credentials.api_key == "new-key"

    assert client.put("/api/credentials", json={"api_key": "   "}).status_code == 422
