"""
Tests for the DataCollector: missing identities, full bundles and
per-source degradation.
"""
from unittest.mock import AsyncMock

import pytest

from trustscore.compute.collector import DataCollector
from trustscore.trust.errors import DataSourceUnavailable
from trustscore.trust.models import Connection, Flag, MessageCounters

from factories import NOW, new_identity, full_profile


async def _seed(store):
    await store.save_identity(new_identity("u1"))
    await store.save_identity(new_identity("u2"))
    await store.save_profile(full_profile("u1"))
    await store.save_connection(Connection("u2", "u1", "connected"))
    await store.save_connection(Connection("u3", "u4", "connected"))
    await store.set_message_counts("u1", sent=12, received=7)
    await store.set_engagement_count("u1", 5)
    await store.insert_flag(Flag(id="f1", user_id="u1", severity="high", created_by="u2", created_at=NOW))
    await store.insert_flag(Flag(id="f2", user_id="u1", severity="low", resolved=True, created_by="u2", created_at=NOW))


@pytest.mark.asyncio
async def test_unknown_identity_returns_none(store):
    assert await DataCollector(store).collect("ghost") is None


@pytest.mark.asyncio
async def test_collects_every_source(store):
    await _seed(store)
    bundle = await DataCollector(store).collect("u1")

    assert bundle.identity.id == "u1"
    assert bundle.profile.company_name == "Acme Industrial"
    assert bundle.connections == [Connection("u2", "u1", "connected")]
    assert bundle.messages == MessageCounters(sent=12, received=7)
    assert bundle.engagement_count == 5
    assert [f.id for f in bundle.flags] == ["f1"]
    assert bundle.unavailable_sources == []


@pytest.mark.asyncio
async def test_identity_without_optional_data(store):
    await store.save_identity(new_identity("u1"))
    bundle = await DataCollector(store).collect("u1")

    assert bundle.profile is None
    assert bundle.connections == []
    assert bundle.messages == MessageCounters()
    assert bundle.engagement_count == 0
    assert bundle.flags == []


@pytest.mark.asyncio
@pytest.mark.parametrize("method,source", [
    ("get_profile", "profile"),
    ("get_connections", "connections"),
    ("get_message_counts", "messages"),
    ("count_engagements", "engagements"),
    ("get_unresolved_flags", "flags"),
])
async def test_failing_source_degrades_to_empty(store, monkeypatch, method, source):
    await _seed(store)
    monkeypatch.setattr(store, method, AsyncMock(side_effect=DataSourceUnavailable(source, "table missing")))

    bundle = await DataCollector(store).collect("u1")

    assert bundle is not None
    assert bundle.unavailable_sources == [source]
    empties = {
        "profile": bundle.profile is None,
        "connections": bundle.connections == [],
        "messages": bundle.messages == MessageCounters(),
        "engagements": bundle.engagement_count == 0,
        "flags": bundle.flags == [],
    }
    assert empties[source]
    # the other sources are untouched
    assert bundle.identity.id == "u1"
    if source != "messages":
        assert bundle.messages.sent == 12


@pytest.mark.asyncio
async def test_every_optional_source_failing(store, monkeypatch):
    await store.save_identity(new_identity("u1"))
    for method in ("get_profile", "get_connections", "get_message_counts",
                   "count_engagements", "get_unresolved_flags"):
        monkeypatch.setattr(store, method, AsyncMock(side_effect=ConnectionError("down")))

    bundle = await DataCollector(store).collect("u1")

    assert sorted(bundle.unavailable_sources) == ["connections", "engagements", "flags", "messages", "profile"]


@pytest.mark.asyncio
async def test_identity_read_failure_propagates(store, monkeypatch):
    monkeypatch.setattr(store, "get_identity", AsyncMock(side_effect=ConnectionError("down")))
    with pytest.raises(ConnectionError):
        await DataCollector(store).collect("u1")
