"""
Trust Score — Recompute Dispatch

After anything that changes a scoring input (flag added or resolved, email
or domain verified, connection accepted) the subject's score is recomputed
in the background. The triggering action never waits on it and never sees
its failure; failures go to the log.

Two backends:
    AsyncioDispatcher — in-process task, default
    ArqDispatcher     — enqueue onto the arq worker (see trustscore.workers)
"""
import asyncio
from typing import Awaitable, Callable, Set

from trustscore.compute._logger import logger

RECALCULATE_JOB = "recalculate_trust_score"


class AsyncioDispatcher:
    """
    Runs `handler(user_id)` as a background task. Holds a strong reference
    to every pending task until it finishes.
    """

    def __init__(self, handler: Callable[[str], Awaitable[object]]):
        self._handler = handler
        self._pending: Set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def dispatch(self, user_id: str) -> None:
        task = asyncio.create_task(self._handler(user_id), name=f"recalculate:{user_id}")
        self._pending.add(task)
        task.add_done_callback(lambda t: self._on_done(user_id, t))
        logger.debug("recompute_dispatched", user_id=user_id, backend="asyncio")

    def _on_done(self, user_id: str, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if task.cancelled():
            logger.warning("recompute_cancelled", user_id=user_id)
            return
        exc = task.exception()
        if exc is not None:
            logger.error("recompute_failed", user_id=user_id, error=str(exc), error_type=type(exc).__name__)

    async def drain(self) -> None:
        """Wait for every in-flight recompute. Used on shutdown and in tests."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def close(self) -> None:
        await self.drain()


class ArqDispatcher:
    """Enqueues a recompute job onto Redis for the arq worker."""

    def __init__(self, pool):
        self._pool = pool

    async def dispatch(self, user_id: str) -> None:
        try:
            job = await self._pool.enqueue_job(RECALCULATE_JOB, user_id)
            logger.debug(
                "recompute_dispatched", user_id=user_id, backend="arq",
                job_id=getattr(job, "job_id", None),
            )
        except Exception as e:
            logger.error("recompute_enqueue_failed", user_id=user_id, error=str(e))

    async def close(self) -> None:
        await self._pool.aclose()
