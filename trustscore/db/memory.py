"""
Trust Score — In-Memory Store

Dict-backed implementation of every source and sink the engine uses.
Default backend for development; tests build one per case.

Records are copied on the way in and out so callers never share state
with the store.
"""
from dataclasses import replace
from datetime import datetime
from typing import Optional, Dict, List

from trustscore.trust.errors import NotFound
from trustscore.trust.models import (
    Identity, BusinessProfile, Connection, MessageCounters, Flag, TrustScoreRecord,
)


class MemoryStore:

    def __init__(self):
        self._identities: Dict[str, Identity] = {}
        self._profiles: Dict[str, BusinessProfile] = {}
        self._connections: List[Connection] = []
        self._messages: Dict[str, MessageCounters] = {}
        self._engagements: Dict[str, int] = {}
        self._flags: Dict[str, Flag] = {}
        self._scores: Dict[str, TrustScoreRecord] = {}

    # =============================================
    # Identity & profile
    # =============================================

    async def get_identity(self, user_id: str) -> Optional[Identity]:
        identity = self._identities.get(user_id)
        return replace(identity) if identity else None

    async def save_identity(self, identity: Identity) -> None:
        self._identities[identity.id] = replace(identity)

    async def get_profile(self, user_id: str) -> Optional[BusinessProfile]:
        profile = self._profiles.get(user_id)
        return replace(profile, industry_tags=list(profile.industry_tags)) if profile else None

    async def save_profile(self, profile: BusinessProfile) -> None:
        self._profiles[profile.user_id] = replace(profile, industry_tags=list(profile.industry_tags))

    # =============================================
    # Connection graph & activity
    # =============================================

    async def get_connections(self, user_id: str) -> List[Connection]:
        return [replace(c) for c in self._connections if c.involves(user_id)]

    async def save_connection(self, connection: Connection) -> None:
        """Upsert by (requester, receiver)."""
        self._connections = [
            c for c in self._connections
            if (c.requester_id, c.receiver_id) != (connection.requester_id, connection.receiver_id)
        ]
        self._connections.append(replace(connection))

    async def get_message_counts(self, user_id: str) -> MessageCounters:
        counts = self._messages.get(user_id)
        return replace(counts) if counts else MessageCounters()

    async def set_message_counts(self, user_id: str, sent: int, received: int) -> None:
        self._messages[user_id] = MessageCounters(sent=sent, received=received)

    async def count_engagements(self, user_id: str) -> int:
        return self._engagements.get(user_id, 0)

    async def set_engagement_count(self, user_id: str, count: int) -> None:
        self._engagements[user_id] = count

    # =============================================
    # Flags
    # =============================================

    async def insert_flag(self, flag: Flag) -> None:
        if flag.user_id not in self._identities:
            raise NotFound("identity", flag.user_id)
        self._flags[flag.id] = replace(flag)

    async def get_flag(self, flag_id: str) -> Optional[Flag]:
        flag = self._flags.get(flag_id)
        return replace(flag) if flag else None

    async def mark_flag_resolved(self, flag_id: str, resolved_at: datetime) -> None:
        flag = self._flags.get(flag_id)
        if flag is not None:
            self._flags[flag_id] = replace(flag, resolved=True, resolved_at=resolved_at)

    async def list_flags(self, user_id: str, include_resolved: bool = False) -> List[Flag]:
        flags = [
            replace(f) for f in self._flags.values()
            if f.user_id == user_id and (include_resolved or not f.resolved)
        ]
        flags.sort(key=lambda f: f.created_at.timestamp() if f.created_at else 0.0, reverse=True)
        return flags

    async def get_unresolved_flags(self, user_id: str) -> List[Flag]:
        return await self.list_flags(user_id, include_resolved=False)

    # =============================================
    # Trust score records
    # =============================================

    async def get_score(self, user_id: str) -> Optional[TrustScoreRecord]:
        record = self._scores.get(user_id)
        return replace(record) if record else None

    async def upsert_score(self, record: TrustScoreRecord) -> None:
        self._scores[record.user_id] = replace(record)

    async def close(self) -> None:
        pass
