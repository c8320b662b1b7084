"""
Trust Score — Data Collector
Gathers every fact the scorers need for one identity.

The identity record is mandatory: if it is missing there is nothing to
score and collect() returns None. Everything else is optional. Optional
sources are read in parallel and each one is protected on its own.
If the message counter is down the identity is scored with zero messages.
"""
import asyncio
import time
from typing import Optional, Dict, Any, Tuple

from trustscore.compute._logger import logger
from trustscore.trust.models import SignalBundle, MessageCounters


# source name → (store method, empty value)
OPTIONAL_SOURCES: Dict[str, Tuple[str, Any]] = {
    "profile":     ("get_profile", None),
    "connections": ("get_connections", []),
    "messages":    ("get_message_counts", MessageCounters()),
    "engagements": ("count_engagements", 0),
    "flags":       ("get_unresolved_flags", []),
}


class DataCollector:

    def __init__(self, store, timeout: float = 10.0):
        self._store = store
        self._timeout = timeout

    async def _safe_collect(self, user_id: str, name: str, method: str):
        """Run one source read, return (name, result). Raises on failure."""
        result = await asyncio.wait_for(
            getattr(self._store, method)(user_id), timeout=self._timeout,
        )
        return name, result

    async def collect(self, user_id: str) -> Optional[SignalBundle]:
        start = time.time()

        identity = await self._store.get_identity(user_id)
        if identity is None:
            return None

        names = list(OPTIONAL_SOURCES)
        results = await asyncio.gather(
            *[self._safe_collect(user_id, n, OPTIONAL_SOURCES[n][0]) for n in names],
            return_exceptions=True,
        )

        collected: Dict[str, Any] = {}
        unavailable = []
        for name, res in zip(names, results):
            if isinstance(res, BaseException):
                if not isinstance(res, Exception):
                    raise res
                unavailable.append(name)
                logger.warning(
                    "data_source_unavailable",
                    user_id=user_id, source=name,
                    error=str(res)[:200] or type(res).__name__,
                )
                continue
            _, value = res
            collected[name] = value

        def pick(name: str):
            value = collected.get(name)
            if value is None:
                empty = OPTIONAL_SOURCES[name][1]
                return list(empty) if isinstance(empty, list) else empty
            return value

        messages = pick("messages")
        bundle = SignalBundle(
            identity=identity,
            profile=collected.get("profile"),
            connections=pick("connections"),
            messages=MessageCounters(sent=messages.sent, received=messages.received),
            engagement_count=pick("engagements"),
            flags=pick("flags"),
            unavailable_sources=unavailable,
        )

        logger.debug(
            "signals_collected",
            user_id=user_id,
            unavailable=unavailable,
            collection_time_ms=round((time.time() - start) * 1000, 2),
        )
        return bundle
