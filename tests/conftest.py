"""
Shared pytest fixtures for trust score tests.

Everything runs against a MemoryStore and a frozen clock, so no Neo4j,
Redis or wall-clock time is involved.
"""
import pytest

from trustscore.compute.pipeline import TrustScoreService
from trustscore.db.memory import MemoryStore
from trustscore.trust.flags import FlagRegistry

from factories import FrozenClock


@pytest.fixture
def clock():
    return FrozenClock()


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def service(store, clock):
    return TrustScoreService(store, clock=clock)


@pytest.fixture
def registry(store, service):
    return FlagRegistry(store, service)
