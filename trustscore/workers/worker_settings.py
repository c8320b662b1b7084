"""
Trust Score — Worker Settings

arq worker that runs background score recomputes enqueued by ArqDispatcher.

Start with:
    arq trustscore.workers.worker_settings.WorkerSettings
"""
import structlog
from arq.connections import RedisSettings

from trustscore.config import get_settings
from trustscore.compute.pipeline import TrustScoreService, build_service
from trustscore.trust.errors import PersistenceFailure

logger = structlog.get_logger()

settings = get_settings()


async def recalculate_trust_score(ctx, user_id: str) -> dict:
    """
    arq job: force a recompute for one identity.
    Never raises. A failed recompute is logged and the next stale read
    will try again.
    """
    service: TrustScoreService = ctx["trust_service"]
    try:
        record = await service.recalculate(user_id)
    except PersistenceFailure as e:
        logger.error("worker_recompute_not_persisted", user_id=user_id, error=str(e))
        return {"status": "error", "reason": "persistence_failed"}
    except Exception as e:
        logger.error("worker_recompute_failed", user_id=user_id, error=str(e))
        return {"status": "error", "reason": type(e).__name__}

    if record is None:
        logger.warning("worker_identity_not_found", user_id=user_id)
        return {"status": "skipped", "reason": "identity_not_found"}

    logger.info("worker_recompute_done", user_id=user_id, total=record.total)
    return {"status": "ok", "total": record.total}


async def startup(ctx):
    # same store, cache and staleness window as the API process
    ctx["trust_service"] = await build_service(settings)
    logger.info(
        "trust_worker_started",
        store=settings.STORE_BACKEND, cache_enabled=settings.CACHE_ENABLED,
    )


async def shutdown(ctx):
    service = ctx.get("trust_service")
    if service is not None:
        await service.close()
    logger.info("trust_worker_stopped")


class WorkerSettings:
    functions = [recalculate_trust_score]
    on_startup = startup
    on_shutdown = shutdown

    redis_settings = RedisSettings.from_dsn(settings.REDIS_URL)
    max_jobs = settings.WORKER_MAX_JOBS
    job_timeout = settings.WORKER_JOB_TIMEOUT
