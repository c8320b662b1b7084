"""
HTTP surface tests: the router mounted on a bare FastAPI app with a
MemoryStore-backed service on app.state.
"""
import asyncio
from unittest.mock import AsyncMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from trustscore.api.trust import router
from trustscore.compute.pipeline import TrustScoreService
from trustscore.db.memory import MemoryStore
from trustscore.trust.flags import FlagRegistry
from trustscore.trust.models import Flag

from factories import NOW, FrozenClock, new_identity, verified_identity


@pytest.fixture
def api():
    store = MemoryStore()
    service = TrustScoreService(store, clock=FrozenClock())
    registry = FlagRegistry(store, service)

    app = FastAPI()
    app.include_router(router)
    app.state.trust_service = service
    app.state.flag_registry = registry

    asyncio.run(store.save_identity(new_identity("u1")))
    asyncio.run(store.save_identity(verified_identity("u2")))

    with TestClient(app) as client:
        yield client, store, registry


def _as(user_id):
    return {"X-User-Id": user_id}


def test_health(api):
    client, _, _ = api
    resp = client.get("/api/trust-score/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "healthy"


def test_requires_caller(api):
    client, _, _ = api
    assert client.get("/api/trust-score/u1").status_code == 401
    assert client.get("/api/trust-score/u1", headers=_as("  ")).status_code == 401


def test_get_score(api):
    client, _, _ = api
    resp = client.get("/api/trust-score/u2", headers=_as("u1"))

    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["total"] == 48
    assert body["identity_score"] == 40
    assert set(body["breakdown"]) == {"identity", "business", "behavior", "reputation", "penalties"}
    assert body["calculated_at"].startswith("2026-01-15T12:00:00")


def test_get_unknown_user(api):
    client, _, _ = api
    assert client.get("/api/trust-score/ghost", headers=_as("u1")).status_code == 404


def test_recalculate_own_score_only(api):
    client, _, _ = api
    assert client.post("/api/trust-score/u2/recalculate", headers=_as("u1")).status_code == 403

    resp = client.post("/api/trust-score/u1/recalculate", headers=_as("u1"))
    assert resp.status_code == 200
    assert resp.json()["total"] == 8
    assert resp.json()["persisted"] is True


def test_recalculate_reports_unpersisted_score(api, monkeypatch):
    client, store, _ = api
    monkeypatch.setattr(store, "upsert_score", AsyncMock(side_effect=ConnectionError("db down")))

    resp = client.post("/api/trust-score/u1/recalculate", headers=_as("u1"))

    assert resp.status_code == 200
    assert resp.json()["persisted"] is False
    assert resp.json()["total"] == 8


def test_flag_user(api):
    client, store, _ = api
    resp = client.post(
        "/api/trust-score/u2/flag",
        json={"type": "dispute", "reason": "  never shipped  ", "severity": "HIGH"},
        headers=_as("u1"),
    )

    assert resp.status_code == 200
    flag = resp.json()["flag"]
    assert flag["user_id"] == "u2"
    assert flag["created_by"] == "u1"
    assert flag["reason"] == "never shipped"
    assert flag["severity"] == "high"
    assert flag["resolved"] is False
    assert asyncio.run(store.get_flag(flag["id"])) is not None


def test_cannot_flag_self(api):
    client, _, _ = api
    resp = client.post("/api/trust-score/u1/flag", json={"reason": "x"}, headers=_as("u1"))
    assert resp.status_code == 400


def test_flag_requires_reason(api):
    client, _, _ = api
    resp = client.post("/api/trust-score/u2/flag", json={"reason": "   "}, headers=_as("u1"))
    assert resp.status_code == 400


def test_flag_unknown_user(api):
    client, _, _ = api
    resp = client.post("/api/trust-score/ghost/flag", json={"reason": "x"}, headers=_as("u1"))
    assert resp.status_code == 404


def test_flag_write_failure_is_503(api, monkeypatch):
    client, store, _ = api
    monkeypatch.setattr(store, "insert_flag", AsyncMock(side_effect=ConnectionError("db down")))
    resp = client.post("/api/trust-score/u2/flag", json={"reason": "x"}, headers=_as("u1"))
    assert resp.status_code == 503


def test_resolve_and_list_flags(api):
    client, _, _ = api
    created = client.post(
        "/api/trust-score/u2/flag", json={"reason": "late"}, headers=_as("u1"),
    ).json()["flag"]

    listed = client.get("/api/trust-score/u2/flags", headers=_as("u1")).json()["flags"]
    assert [f["id"] for f in listed] == [created["id"]]

    resp = client.post(f"/api/trust-score/flags/{created['id']}/resolve", headers=_as("u1"))
    assert resp.status_code == 200
    assert resp.json() == {"success": True}

    assert client.get("/api/trust-score/u2/flags", headers=_as("u1")).json()["flags"] == []
    everything = client.get("/api/trust-score/u2/flags?all=true", headers=_as("u1")).json()["flags"]
    assert everything[0]["resolved"] is True
    assert everything[0]["resolved_at"] is not None


def test_resolve_unknown_flag(api):
    client, _, _ = api
    resp = client.post("/api/trust-score/flags/missing/resolve", headers=_as("u1"))
    assert resp.status_code == 404


def test_resolve_twice_is_ok(api):
    client, store, _ = api
    asyncio.run(store.insert_flag(Flag(id="f1", user_id="u2", reason="r", created_by="u1", created_at=NOW)))

    first = client.post("/api/trust-score/flags/f1/resolve", headers=_as("u1"))
    second = client.post("/api/trust-score/flags/f1/resolve", headers=_as("u1"))

    assert first.status_code == second.status_code == 200
    assert second.json() == {"success": True}
