"""
Trust Score — Compute Pipeline

Every trust score request flows through this pipeline:

    Request → Freshness Check → [Collect → Score → Persist → Cache] → Response

The pipeline handles:
    - Cache-first strategy (a score younger than the staleness window is served as-is)
    - Forced recompute for callers that know an input changed
    - Background recompute dispatch (never blocks the triggering action)
    - Graceful degradation:
        Redis down        → read from the durable store
        Optional source   → score it as empty
        Persist failure   → still return the computed score
        Compute failure   → serve the stale score if there is one

Components are injected, never module singletons, so tests hand in a
MemoryStore and a fixed clock.
"""
from datetime import datetime, timedelta, timezone
from typing import Optional, Callable

from arq import create_pool
from arq.connections import RedisSettings

from trustscore.compute._logger import logger
from trustscore.compute.cache import ScoreCache
from trustscore.compute.collector import DataCollector
from trustscore.compute.dispatch import AsyncioDispatcher, ArqDispatcher
from trustscore.compute.persistence import ScorePersistence
from trustscore.trust.engine import aggregate
from trustscore.trust.errors import PersistenceFailure
from trustscore.trust.models import TrustScoreRecord

DEFAULT_MAX_AGE = timedelta(minutes=5)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TrustScoreService:

    def __init__(
        self,
        store,
        cache: Optional[ScoreCache] = None,
        dispatcher=None,
        clock: Callable[[], datetime] = utcnow,
        max_age: timedelta = DEFAULT_MAX_AGE,
    ):
        self.store = store
        self._collector = DataCollector(store)
        self._persistence = ScorePersistence(store)
        self._cache = cache
        self._clock = clock
        self.max_age = max_age
        self.dispatcher = dispatcher or AsyncioDispatcher(self.recalculate)

    @property
    def cache(self) -> Optional[ScoreCache]:
        return self._cache

    def now(self) -> datetime:
        return self._clock()

    async def _stored(self, user_id: str) -> Optional[TrustScoreRecord]:
        if self._cache is not None:
            cached = await self._cache.get(user_id)
            if cached is not None:
                return cached
        return await self._persistence.get_latest_score(user_id)

    async def _compute(self, user_id: str) -> Optional[TrustScoreRecord]:
        bundle = await self._collector.collect(user_id)
        if bundle is None:
            logger.info("identity_not_found", user_id=user_id)
            return None

        record = aggregate(bundle, self.now())
        await self._persistence.save_score(record)
        if self._cache is not None:
            await self._cache.set(record)

        logger.info(
            "score_computed",
            user_id=user_id,
            total=record.total,
            penalties=record.penalties,
            unavailable_sources=bundle.unavailable_sources,
        )
        return record

    async def get(self, user_id: str, max_age: Optional[timedelta] = None) -> Optional[TrustScoreRecord]:
        """
        Serve the stored score if it is younger than `max_age`, otherwise
        recompute. Returns None when the identity does not exist.
        """
        max_age = self.max_age if max_age is None else max_age
        stored = await self._stored(user_id)
        if stored is not None and self.now() - stored.calculated_at < max_age:
            logger.debug("score_cache_hit", user_id=user_id)
            return stored

        try:
            return await self._compute(user_id)
        except PersistenceFailure as e:
            logger.warning("score_served_uncached", user_id=user_id)
            return e.record
        except Exception as e:
            if stored is None:
                raise
            logger.warning("score_served_stale", user_id=user_id, error=str(e))
            return stored

    async def recalculate(self, user_id: str) -> Optional[TrustScoreRecord]:
        """
        Always recompute. PersistenceFailure propagates with the computed
        record attached as `exc.record`.
        """
        return await self._compute(user_id)

    async def schedule_recalculation(self, user_id: str) -> None:
        """
        Fire-and-forget recompute after an input changed. The cached score is
        dropped first so reads fall through to the durable store, which the
        recompute (here or in the worker) overwrites.
        """
        if self._cache is not None:
            await self._cache.invalidate(user_id)
        try:
            await self.dispatcher.dispatch(user_id)
        except Exception as e:
            logger.error("recompute_dispatch_failed", user_id=user_id, error=str(e))

    async def close(self) -> None:
        await self.dispatcher.close()
        if self._cache is not None:
            await self._cache.close()
        await self.store.close()
        logger.info("pipeline_shutdown")


async def build_service(settings, store=None) -> TrustScoreService:
    """Wire a service from settings. `store` overrides the configured backend."""
    if store is None:
        from trustscore.db import create_store
        store = create_store(settings)

    cache = None
    if settings.CACHE_ENABLED:
        cache = ScoreCache(settings.REDIS_URL, ttl_seconds=settings.SCORE_MAX_AGE_SECONDS)

    dispatcher = None
    if settings.RECOMPUTE_BACKEND == "arq":
        pool = await create_pool(RedisSettings.from_dsn(settings.REDIS_URL))
        dispatcher = ArqDispatcher(pool)

    service = TrustScoreService(
        store,
        cache=cache,
        dispatcher=dispatcher,
        max_age=timedelta(seconds=settings.SCORE_MAX_AGE_SECONDS),
    )
    logger.info(
        "compute_pipeline_initialized",
        store=type(store).__name__,
        cache_enabled=cache is not None,
        recompute_backend=settings.RECOMPUTE_BACKEND,
    )
    return service
