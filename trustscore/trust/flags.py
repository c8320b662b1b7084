"""
Trust Score — Flag Registry

Flags are complaints raised by one identity against another. Each unresolved
flag is a penalty on the subject's score.

State machine:
    open ──resolve──▶ resolved     (one-way, terminal, no reopening)

Flags are never deleted. Every mutation schedules a forced recompute of the
subject's score; the caller does not wait for it.
"""
import uuid
from typing import List, Dict, Any

import structlog

from trustscore.trust.errors import FlagNotFound, NotFound, PersistenceFailure
from trustscore.trust.models import Flag, FlagInput, Severity

logger = structlog.get_logger()


class FlagRegistry:

    def __init__(self, store, scores):
        """`scores` is the TrustScoreService that owns recompute dispatch."""
        self._store = store
        self._scores = scores

    async def add_flag(self, user_id: str, data: FlagInput) -> Flag:
        """
        Raise a flag against `user_id`. Self-flagging must be rejected by the
        caller before this point. Raises NotFound when `user_id` does not exist.
        """
        flag = Flag(
            id=str(uuid.uuid4()),
            user_id=user_id,
            type=data.type or "flag",
            reason=data.reason or "",
            severity=Severity.normalize(data.severity).value,
            resolved=False,
            created_by=data.created_by,
            created_at=self._scores.now(),
        )

        try:
            await self._store.insert_flag(flag)
        except NotFound:
            logger.warning("flag_subject_not_found", user_id=user_id)
            raise
        except Exception as e:
            logger.error("flag_persist_failed", user_id=user_id, error=str(e))
            raise PersistenceFailure(f"Failed to store flag against {user_id}") from e

        logger.info(
            "flag_added",
            flag_id=flag.id, user_id=user_id,
            severity=flag.severity, created_by=flag.created_by,
        )
        await self._scores.schedule_recalculation(user_id)
        return flag

    async def resolve_flag(self, flag_id: str) -> Dict[str, Any]:
        flag = await self._store.get_flag(flag_id)
        if flag is None:
            raise FlagNotFound(flag_id)

        if flag.resolved:
            logger.info("flag_already_resolved", flag_id=flag_id)
            return {"success": True}

        try:
            await self._store.mark_flag_resolved(flag_id, self._scores.now())
        except Exception as e:
            logger.error("flag_resolve_failed", flag_id=flag_id, error=str(e))
            raise PersistenceFailure(f"Failed to resolve flag {flag_id}") from e

        logger.info("flag_resolved", flag_id=flag_id, user_id=flag.user_id)
        await self._scores.schedule_recalculation(flag.user_id)
        return {"success": True}

    async def get_flags(self, user_id: str, include_resolved: bool = False) -> List[Flag]:
        """Newest first."""
        return await self._store.list_flags(user_id, include_resolved=include_resolved)
