"""
Tests for the compute pipeline: freshness window, forced recompute,
persistence failures and the Redis hot cache.
"""
from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from trustscore.compute.cache import ScoreCache
from trustscore.compute.pipeline import TrustScoreService, DEFAULT_MAX_AGE
from trustscore.trust.engine import aggregate
from trustscore.trust.errors import PersistenceFailure

from factories import NOW, new_identity, verified_identity, bundle_for, fake_redis


@pytest.mark.asyncio
async def test_unknown_identity(service):
    assert await service.get("ghost") is None
    assert await service.recalculate("ghost") is None


@pytest.mark.asyncio
async def test_first_get_computes_and_persists(service, store):
    await store.save_identity(new_identity("u1"))

    record = await service.get("u1")

    assert record.total == 8
    assert record.calculated_at == NOW
    stored = await store.get_score("u1")
    assert stored == record


@pytest.mark.asyncio
async def test_default_staleness_window_is_five_minutes(service):
    assert DEFAULT_MAX_AGE == timedelta(minutes=5)
    assert service.max_age == DEFAULT_MAX_AGE


@pytest.mark.asyncio
async def test_gets_within_window_share_calculated_at(service, store, clock):
    await store.save_identity(new_identity("u1"))
    first = await service.get("u1")

    clock.advance(minutes=4, seconds=59)
    second = await service.get("u1")

    assert second.calculated_at == first.calculated_at


@pytest.mark.asyncio
async def test_cache_hit_does_not_write(service, store, clock, monkeypatch):
    await store.save_identity(new_identity("u1"))
    await service.get("u1")

    upsert = AsyncMock()
    monkeypatch.setattr(store, "upsert_score", upsert)
    clock.advance(minutes=1)
    await service.get("u1")

    upsert.assert_not_awaited()


@pytest.mark.asyncio
async def test_get_after_expiry_recomputes(service, store, clock):
    await store.save_identity(new_identity("u1"))
    first = await service.get("u1")

    clock.advance(minutes=5)
    second = await service.get("u1")

    assert second.calculated_at == first.calculated_at + timedelta(minutes=5)


@pytest.mark.asyncio
async def test_stale_record_reflects_new_state(service, store, clock):
    await store.save_identity(new_identity("u1"))
    assert (await service.get("u1")).total == 8

    await store.save_identity(verified_identity("u1"))
    clock.advance(minutes=1)
    assert (await service.get("u1")).total == 8         # still fresh

    clock.advance(minutes=5)
    assert (await service.get("u1")).total == 48


@pytest.mark.asyncio
async def test_custom_max_age(service, store, clock):
    await store.save_identity(new_identity("u1"))
    first = await service.get("u1")
    clock.advance(seconds=1)

    again = await service.get("u1", max_age=timedelta(0))

    assert again.calculated_at != first.calculated_at


@pytest.mark.asyncio
async def test_recalculate_ignores_freshness(service, store, clock):
    await store.save_identity(new_identity("u1"))
    await service.get("u1")
    await store.save_identity(verified_identity("u1"))
    clock.advance(seconds=10)

    record = await service.recalculate("u1")

    assert record.total == 48
    assert record.calculated_at == NOW + timedelta(seconds=10)
    assert (await store.get_score("u1")).total == 48


@pytest.mark.asyncio
async def test_recalculate_is_idempotent(service, store):
    await store.save_identity(verified_identity("u1"))
    first = await service.recalculate("u1")
    second = await service.recalculate("u1")
    assert first == second


@pytest.mark.asyncio
async def test_get_returns_uncached_score_when_persist_fails(service, store, monkeypatch):
    await store.save_identity(new_identity("u1"))
    monkeypatch.setattr(store, "upsert_score", AsyncMock(side_effect=ConnectionError("db down")))

    record = await service.get("u1")

    assert record.total == 8


@pytest.mark.asyncio
async def test_recalculate_surfaces_persist_failure_with_record(service, store, monkeypatch):
    await store.save_identity(new_identity("u1"))
    monkeypatch.setattr(store, "upsert_score", AsyncMock(side_effect=ConnectionError("db down")))

    with pytest.raises(PersistenceFailure) as exc:
        await service.recalculate("u1")

    assert exc.value.record.total == 8


@pytest.mark.asyncio
async def test_stale_score_preferred_over_error(service, store, clock, monkeypatch):
    await store.save_identity(new_identity("u1"))
    first = await service.get("u1")

    clock.advance(hours=1)
    monkeypatch.setattr(store, "get_identity", AsyncMock(side_effect=ConnectionError("db down")))

    assert await service.get("u1") == first


@pytest.mark.asyncio
async def test_error_without_stored_score_propagates(service, store, monkeypatch):
    monkeypatch.setattr(store, "get_identity", AsyncMock(side_effect=ConnectionError("db down")))
    with pytest.raises(ConnectionError):
        await service.get("u1")


@pytest.mark.asyncio
async def test_unreadable_stored_score_triggers_recompute(service, store, monkeypatch):
    await store.save_identity(new_identity("u1"))
    monkeypatch.setattr(store, "get_score", AsyncMock(side_effect=ConnectionError("db down")))

    record = await service.get("u1")

    assert record.total == 8


# ── Redis hot cache ───────────────────────────────

@pytest.mark.asyncio
async def test_score_cache_round_trip():
    client, data = fake_redis()
    cache = ScoreCache("redis://unused", ttl_seconds=300, client=client)
    record = aggregate(bundle_for(new_identity("u1")), NOW)
    assert await cache.set(record) is True
    assert "trust:score:u1" in data
    client.setex.assert_awaited_once()
    assert client.setex.await_args.args[1] == 300

    assert await cache.get("u1") == record
    assert await cache.invalidate("u1") is True
    assert await cache.get("u1") is None


@pytest.mark.asyncio
async def test_score_cache_errors_are_misses():
    client = AsyncMock()
    client.get.side_effect = ConnectionError("redis down")
    cache = ScoreCache("redis://unused", client=client)
    assert await cache.get("u1") is None


@pytest.mark.asyncio
async def test_service_serves_fresh_record_from_redis(store, clock, monkeypatch):
    client, _ = fake_redis()
    cache = ScoreCache("redis://unused", client=client)
    service = TrustScoreService(store, cache=cache, clock=clock)
    await store.save_identity(new_identity("u1"))
    first = await service.get("u1")

    get_score = AsyncMock()
    monkeypatch.setattr(store, "get_score", get_score)
    clock.advance(minutes=1)

    assert await service.get("u1") == first
    get_score.assert_not_awaited()
