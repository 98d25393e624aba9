import threading
import time

import pytest
from fastapi.testclient import TestClient

from chordcoach import server
from chordcoach.application.progress.service import ProgressService
from chordcoach.consts import VERSION
from chordcoach.infrastructure.adapters.progress import InMemoryProgressStore
from chordcoach.server import app, get_service


@pytest.fixture
def service(clock):
    return ProgressService(store=InMemoryProgressStore(), clock=clock)


@pytest.fixture
def client(service):
    app.dependency_overrides[get_service] = lambda: service
    yield TestClient(app)
    app.dependency_overrides.clear()


def attempt(client, item_id, item_type="character", **body):
    body.setdefault("correct", True)
    body.setdefault("response_time_ms", 300)
    return client.post(f"/progress/{item_type}/{item_id}/attempts", json=body)


def test_health_check(client):
    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["version"] == VERSION


def test_get_version(client):
    response = client.get("/version")
    assert response.status_code == 200
    assert response.json() == {"version": VERSION}


def test_post_attempt(client):
    response = attempt(client, "E", direction="up")

    assert response.status_code == 200
    data = response.json()
    assert data["item_id"] == "e"
    assert data["mastery_level"] == "learning"
    assert data["interval"] == 1
    assert data["weakest_direction"] == "down"


def test_five_attempts_master(client):
    for _ in range(5):
        response = attempt(client, "e")
    assert response.json()["mastery_level"] == "mastered"


def test_guided_attempt(client):
    response = attempt(client, "e", suppress_mastery_update=True)
    assert response.json()["mastery_level"] == "new"
    assert response.json()["total_attempts"] == 1


def test_attempt_validation(client):
    assert attempt(client, "e", tries=0).status_code == 422
    assert attempt(client, "e", item_type="gesture").status_code == 422
    assert client.post("/progress/word/the/attempts", json={}).status_code == 422


def test_get_progress(client):
    attempt(client, "th", item_type="powerChord")

    response = client.get("/progress/powerChord/th")
    assert response.status_code == 200
    assert response.json()["item_type"] == "powerChord"

    assert client.get("/progress/powerChord/zz").status_code == 404


def test_due_items(client, clock):
    attempt(client, "a")
    attempt(client, "b", correct=False)
    assert client.get("/progress/character/due").json() == []

    clock.advance(days=1)
    due = client.get("/progress/character/due").json()
    assert [p["item_id"] for p in due] == ["b", "a"]
    assert len(client.get("/progress/character/due", params={"limit": 1}).json()) == 1


def test_weak_items(client):
    attempt(client, "x", correct=False)
    attempt(client, "y")

    weak = client.get("/progress/character/weak").json()
    assert [p["item_id"] for p in weak] == ["x"]

    everything = client.get("/progress/character/weak", params={"threshold": 1.0}).json()
    assert [p["item_id"] for p in everything] == ["x"]

    assert client.get("/progress/character/weak", params={"threshold": 2}).status_code == 422


def test_stats_and_session_close(client, clock):
    attempt(client, "e")
    attempt(client, "the", item_type="word")

    response = client.post("/sessions/close", json={"practice_time_ms": 1500})
    assert response.status_code == 200
    assert response.json()["current_streak"] == 1

    clock.advance(days=1)
    client.post("/sessions/close", json={"practice_time_ms": 500})

    stats = client.get("/stats").json()
    assert stats["current_streak"] == 2
    assert stats["total_practice_time_ms"] == 2000
    assert stats["learned_counts"] == {"character": 1, "powerChord": 0, "word": 1}


def test_demote(client):
    assert client.post("/progress/character/e/demote").status_code == 404

    for _ in range(5):
        attempt(client, "e")
    response = client.post("/progress/character/e/demote")

    assert response.status_code == 200
    assert response.json()["mastery_level"] == "familiar"


def test_delete(client, service):
    attempt(client, "e")
    attempt(client, "the", item_type="word")

    assert client.delete("/progress/word").json() == {"ok": True}
    assert service.get_progress("the", "word") is None
    assert service.get_progress("e", "character") is not None

    client.delete("/progress")
    assert service.store.all() == []


def test_export_and_import(client, service):
    attempt(client, "e")
    doc = client.get("/export").json()
    assert doc["version"] == 1
    assert "e" in doc["progress"]["character"]

    service.reset()
    response = client.post("/import", json=doc)
    assert response.status_code == 200
    assert response.json() == {"imported": 1}
    assert service.get_progress("e", "character").total_attempts == 1


def test_import_unknown_version(client):
    response = client.post("/import", json={"version": 7, "progress": {}})
    assert response.status_code == 400
    assert "Unsupported" in response.json()["detail"]


def test_get_service_builds_one_instance(monkeypatch):
    built = []

    def slow_factory(config):
        time.sleep(0.05)
        built.append(object())
        return built[-1]

    monkeypatch.setattr(server, "_service", None)
    monkeypatch.setattr(server, "get_progress_service", slow_factory)
    monkeypatch.setattr(server, "resolve_config", lambda: None)

    results = []
    threads = [threading.Thread(target=lambda: results.append(get_service())) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(built) == 1
    assert all(r is built[0] for r in results)
