"""
Trust Score — Configuration

All settings load from environment variables with safe defaults for development.
In production, set TRUST_ENV=production to enforce required values.
"""
import os
from functools import lru_cache

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class Settings:
    def __init__(self):
        self.ENVIRONMENT = os.getenv("TRUST_ENV", "development")

        # === Stores ===
        self.STORE_BACKEND = os.getenv("TRUST_STORE_BACKEND", "memory")   # memory | neo4j
        self.NEO4J_URI = os.getenv("NEO4J_URI", "bolt://localhost:7687")
        self.NEO4J_USER = os.getenv("NEO4J_USER", "neo4j")
        self.NEO4J_PASSWORD = os.getenv("NEO4J_PASSWORD", "trust_dev_password")
        if self.is_production and self.NEO4J_PASSWORD == "trust_dev_password":
            raise RuntimeError("NEO4J_PASSWORD must be set in production. Add it to .env")

        # === Redis (hot cache + arq queue) ===
        self.REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")
        self.CACHE_ENABLED = _env_bool("TRUST_CACHE_ENABLED", "false")

        # === Scoring ===
        self.SCORE_MAX_AGE_SECONDS = int(os.getenv("TRUST_SCORE_MAX_AGE_SECONDS", "300"))

        # === Background recompute ===
        self.RECOMPUTE_BACKEND = os.getenv("TRUST_RECOMPUTE_BACKEND", "asyncio")  # asyncio | arq
        self.WORKER_MAX_JOBS = int(os.getenv("TRUST_WORKER_MAX_JOBS", "10"))
        self.WORKER_JOB_TIMEOUT = int(os.getenv("TRUST_WORKER_JOB_TIMEOUT", "60"))

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"


@lru_cache()
def get_settings() -> Settings:
    return Settings()
