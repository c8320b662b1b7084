"""
Trust Score — Database Package
Builds the store handle selected by settings.
"""
from trustscore.db.memory import MemoryStore
from trustscore.db.neo4j import Neo4jStore


def create_store(settings):
    if settings.STORE_BACKEND == "neo4j":
        return Neo4jStore.from_settings(settings)
    if settings.STORE_BACKEND == "memory":
        return MemoryStore()
    raise ValueError(f"Unknown TRUST_STORE_BACKEND: {settings.STORE_BACKEND}")
