"""
Trust Score — Score Persistence Layer

Every computed trust score is upserted to the durable store, one record
per identity. There is no history: a recompute overwrites the previous
record (last write wins).

A failed read is treated as "nothing stored" so the caller recomputes.
A failed write raises PersistenceFailure carrying the computed record,
which is still a valid answer for the current request.
"""
from typing import Optional

from trustscore.compute._logger import logger
from trustscore.trust.errors import PersistenceFailure
from trustscore.trust.models import TrustScoreRecord


class ScorePersistence:

    def __init__(self, store):
        self._store = store

    async def get_latest_score(self, user_id: str) -> Optional[TrustScoreRecord]:
        try:
            return await self._store.get_score(user_id)
        except Exception as e:
            logger.error("score_fetch_failed", user_id=user_id, error=str(e))
            return None

    async def save_score(self, record: TrustScoreRecord) -> None:
        try:
            await self._store.upsert_score(record)
        except Exception as e:
            logger.error("score_persistence_failed", user_id=record.user_id, error=str(e))
            raise PersistenceFailure(f"Failed to persist trust score for {record.user_id}", record) from e
        logger.info("score_persisted", user_id=record.user_id, total=record.total)
