"""HTTP API tests against an in-memory store."""

import pytest
from fastapi.testclient import TestClient

from database import MemoryStore
from engine import AdherenceService
from errors import StorageError
from main import app, get_service


class BrokenStore(MemoryStore):
    name = "broken"

    async def get(self, key):
        raise StorageError(key, "store offline")


@pytest.fixture
def client():
    service = AdherenceService(MemoryStore(), today=lambda: "2024-01-01")
    app.dependency_overrides[get_service] = lambda: service
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def _add(client, name, times, amount="1"):
    return client.post(
        "/api/medicines",
        json={"name": name, "amount": amount, "frequency": len(times), "times": times},
    )


def test_root(client):
    assert client.get("/").json() == {"message": "MedTrack Backend Running"}


def test_diagnostics(client):
    body = client.get("/test").json()
    assert body["store"] == "memory"
    assert body["connection_status"] == "Connected"
    assert body["last_reset_date"] == "2024-01-01"


def test_add_and_list(client):
    res = _add(client, "Aspirin", ["08:00", "20:00"])
    assert res.status_code == 201
    assert res.json()["completed"] == 0
    names = [m["name"] for m in client.get("/api/medicines").json()]
    assert names == ["Aspirin"]


def test_add_rejects_frequency_mismatch(client):
    res = client.post(
        "/api/medicines",
        json={"name": "Y", "amount": "1", "frequency": 2, "times": ["09:00"]},
    )
    assert res.status_code == 400
    assert "Expected 2" in res.json()["detail"]
    assert client.get("/api/medicines").json() == []


def test_mark_taken_and_progress(client):
    _add(client, "Aspirin", ["08:00", "20:00"])
    _add(client, "Zinc", ["09:00"])
    res = client.post("/api/medicines/Zinc/taken")
    assert res.status_code == 200
    assert res.json()[0]["completed"] == 1

    progress = client.get("/api/progress").json()
    assert progress["total_doses"] == 3
    assert progress["completed_doses"] == 1
    assert progress["percent"] == pytest.approx(33.33, abs=0.01)


def test_mark_taken_unknown(client):
    assert client.post("/api/medicines/Nothing/taken").status_code == 404


def test_remove_every_match(client):
    _add(client, "Aspirin", ["08:00"])
    _add(client, "Aspirin", ["20:00"])
    res = client.delete("/api/medicines/Aspirin")
    assert res.json() == {"name": "Aspirin", "removed": 2}
    assert client.get("/api/medicines").json() == []


def test_search(client):
    _add(client, "Aspirin", ["08:00"])
    _add(client, "Vitamin D", ["09:00"])
    names = [m["name"] for m in client.get("/api/medicines", params={"q": "VIT"}).json()]
    assert names == ["Vitamin D"]


def test_profile(client):
    assert client.get("/api/profile").json() == {"name": "", "email": ""}
    res = client.put("/api/profile", json={"name": "Ada", "email": "ada@example.com"})
    assert res.status_code == 200
    assert client.get("/api/profile").json()["name"] == "Ada"


def test_today(client):
    client.put("/api/profile", json={"name": "Ada", "email": ""})
    _add(client, "Aspirin", ["08:00"])
    _add(client, "Zinc", ["09:00"])
    client.post("/api/medicines/Aspirin/taken")
    body = client.get("/api/today").json()
    assert body["greeting_name"] == "Ada"
    assert [m["name"] for m in body["pending"]] == ["Zinc"]
    assert [m["name"] for m in body["complete"]] == ["Aspirin"]
    assert body["progress"]["percent"] == 50


def test_storage_failure_is_503():
    service = AdherenceService(BrokenStore(), today=lambda: "2024-01-01")
    app.dependency_overrides[get_service] = lambda: service
    try:
        with TestClient(app) as c:
            assert c.get("/api/medicines").status_code == 503
            assert c.get("/api/progress").status_code == 503
            assert c.get("/api/profile").status_code == 503
            assert "Store error" in c.get("/test").json()["connection_status"]
    finally:
        app.dependency_overrides.clear()
