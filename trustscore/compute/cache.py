"""
Trust Score — Score Cache Layer

Optional Redis hot cache in front of the durable score store, so a fresh
score can be served without a database round trip.

Cache Strategy:
    - Each entry is the latest TrustScoreRecord for one identity
    - TTL = staleness window (a cached record older than that is useless)
    - Freshness is still judged on calculated_at by the pipeline, never on TTL alone
    - Redis down → cache disables itself, durable store keeps working

Key Schema:
    trust:score:{user_id}   → Full JSON score record

Dependencies: redis >= 5.0.0
"""
import json
from typing import Optional

import redis.asyncio as redis

from trustscore.compute._logger import logger
from trustscore.trust.models import TrustScoreRecord


def _key(user_id: str) -> str:
    return f"trust:score:{user_id}"


class ScoreCache:
    """
    Usage:
        cache = ScoreCache("redis://localhost:6379/0", ttl_seconds=300)
        record = await cache.get(user_id)
        ...
        await cache.set(record)
    """

    def __init__(self, redis_url: str, ttl_seconds: int = 300, client=None):
        self._url = redis_url
        self._ttl = max(int(ttl_seconds), 1)
        self._client = client
        self._enabled = True

    @property
    def enabled(self) -> bool:
        return self._enabled

    async def _connect(self):
        """Lazy connect: opens the connection on first use."""
        if not self._enabled:
            return None
        if self._client is None:
            try:
                self._client = redis.from_url(
                    self._url,
                    decode_responses=True,
                    socket_connect_timeout=3,
                    socket_timeout=2,
                )
                await self._client.ping()
                logger.info("score_cache_connected", url=self._url.split("@")[-1])
            except Exception as e:
                logger.warning("score_cache_unavailable", error=str(e))
                self._enabled = False
                self._client = None
        return self._client

    async def get(self, user_id: str) -> Optional[TrustScoreRecord]:
        """Returns None on cache miss or if Redis is down."""
        client = await self._connect()
        if not client:
            return None
        try:
            raw = await client.get(_key(user_id))
            if raw:
                logger.debug("cache_hit", user_id=user_id)
                return TrustScoreRecord.from_dict(json.loads(raw))
        except Exception as e:
            logger.warning("cache_get_error", user_id=user_id, error=str(e))
        return None

    async def set(self, record: TrustScoreRecord) -> bool:
        client = await self._connect()
        if not client:
            return False
        try:
            await client.setex(_key(record.user_id), self._ttl, json.dumps(record.to_dict(), default=str))
            logger.debug("cache_set", user_id=record.user_id, ttl=self._ttl)
            return True
        except Exception as e:
            logger.warning("cache_set_error", user_id=record.user_id, error=str(e))
            return False

    async def invalidate(self, user_id: str) -> bool:
        """Drop a cached score once one of its inputs has changed."""
        client = await self._connect()
        if not client:
            return False
        try:
            return bool(await client.delete(_key(user_id)))
        except Exception as e:
            logger.warning("cache_invalidate_error", user_id=user_id, error=str(e))
            return False

    async def close(self):
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            logger.info("score_cache_disconnected")
