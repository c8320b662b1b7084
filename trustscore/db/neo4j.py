"""
Trust Score — Neo4j Store

Graph-backed implementation of the identity, connection, flag and score
stores. One explicit handle per process, created from settings and passed
to whoever needs it.

Schema:
    (:User {id, email_verified, domain_verified, verification_badge,
            domain, avatar, created_at, updated_at})
    (:User)-[:HAS_PROFILE]->(:BusinessProfile {user_id, company_name, ...})
    (:User)-[:CONNECTION {status}]->(:User)        # requester → receiver
    (:Message {sender_id, receiver_id})
    (:Order {user_id})
    (:Flag {id, user_id, ...})-[:FLAGS]->(:User)
    (:User)-[:HAS_TRUST_SCORE]->(:TrustScore {user_id, total, ...})

Dependencies: neo4j >= 5.17.0
"""
import functools
import json
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional, List, Dict, Any

from neo4j import AsyncGraphDatabase
from neo4j.exceptions import DriverError, Neo4jError
import structlog

from trustscore.trust.errors import DataSourceUnavailable, NotFound
from trustscore.trust.models import (
    Identity, BusinessProfile, Connection, MessageCounters, Flag, TrustScoreRecord,
)

logger = structlog.get_logger()


SCHEMA_QUERIES = [
    "CREATE CONSTRAINT IF NOT EXISTS FOR (u:User) REQUIRE u.id IS UNIQUE",
    "CREATE CONSTRAINT IF NOT EXISTS FOR (f:Flag) REQUIRE f.id IS UNIQUE",
    "CREATE CONSTRAINT IF NOT EXISTS FOR (t:TrustScore) REQUIRE t.user_id IS UNIQUE",
    "CREATE CONSTRAINT IF NOT EXISTS FOR (p:BusinessProfile) REQUIRE p.user_id IS UNIQUE",
    "CREATE INDEX IF NOT EXISTS FOR (f:Flag) ON (f.user_id)",
    "CREATE INDEX IF NOT EXISTS FOR (m:Message) ON (m.sender_id)",
    "CREATE INDEX IF NOT EXISTS FOR (m:Message) ON (m.receiver_id)",
    "CREATE INDEX IF NOT EXISTS FOR (o:Order) ON (o.user_id)",
]


def _to_datetime(value) -> Optional[datetime]:
    """Neo4j hands back its own DateTime; accept ISO strings too."""
    if value is None:
        return None
    if hasattr(value, "to_native"):
        return value.to_native()
    if isinstance(value, str):
        return datetime.fromisoformat(value)
    return value


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _optional_source(source: str):
    """Driver errors while reading an optional source become DataSourceUnavailable."""
    def decorator(fn):
        @functools.wraps(fn)
        async def wrapper(self, user_id: str):
            try:
                return await fn(self, user_id)
            except (Neo4jError, DriverError) as e:
                raise DataSourceUnavailable(source, str(e)) from e
        return wrapper
    return decorator


def _flag_from_node(node: Dict[str, Any]) -> Flag:
    return Flag(
        id=node["id"],
        user_id=node["user_id"],
        type=node.get("type", "flag"),
        reason=node.get("reason", ""),
        severity=node.get("severity", "low"),
        resolved=bool(node.get("resolved", False)),
        created_by=node.get("created_by"),
        created_at=_to_datetime(node.get("created_at")),
        resolved_at=_to_datetime(node.get("resolved_at")),
    )


class Neo4jStore:

    def __init__(self, driver, database: Optional[str] = None):
        self._driver = driver
        self._database = database

    @classmethod
    def from_settings(cls, settings) -> "Neo4jStore":
        driver = AsyncGraphDatabase.driver(
            settings.NEO4J_URI,
            auth=(settings.NEO4J_USER, settings.NEO4J_PASSWORD),
        )
        logger.info("neo4j_connected", uri=settings.NEO4J_URI)
        return cls(driver)

    @asynccontextmanager
    async def _session(self):
        session = self._driver.session(database=self._database)
        try:
            yield session
        finally:
            await session.close()

    async def _single(self, query: str, **params) -> Optional[Dict[str, Any]]:
        async with self._session() as session:
            result = await session.run(query, **params)
            record = await result.single()
            return dict(record) if record else None

    async def _all(self, query: str, **params) -> List[Dict[str, Any]]:
        async with self._session() as session:
            result = await session.run(query, **params)
            return await result.data()

    async def _write(self, query: str, **params) -> None:
        async with self._session() as session:
            result = await session.run(query, **params)
            await result.consume()

    async def init_schema(self) -> None:
        """Create constraints and indexes for the trust graph."""
        async with self._session() as session:
            for query in SCHEMA_QUERIES:
                try:
                    result = await session.run(query)
                    await result.consume()
                except Exception as e:
                    logger.warning("schema_init_warning", query=query[:60], error=str(e))
        logger.info("schema_initialized", queries=len(SCHEMA_QUERIES))

    # =============================================
    # Identity & profile
    # =============================================

    async def get_identity(self, user_id: str) -> Optional[Identity]:
        row = await self._single("""
            MATCH (u:User {id: $user_id})
            RETURN u {.*} AS user
        """, user_id=user_id)
        if not row:
            return None
        u = row["user"]
        return Identity(
            id=u["id"],
            email_verified=bool(u.get("email_verified", False)),
            domain_verified=bool(u.get("domain_verified", False)),
            verification_badge=bool(u.get("verification_badge", False)),
            domain=u.get("domain"),
            has_avatar=bool(u.get("avatar")),
            created_at=_to_datetime(u.get("created_at")),
            updated_at=_to_datetime(u.get("updated_at")),
        )

    @_optional_source("profile")
    async def get_profile(self, user_id: str) -> Optional[BusinessProfile]:
        row = await self._single("""
            MATCH (:User {id: $user_id})-[:HAS_PROFILE]->(p:BusinessProfile)
            RETURN p {.*} AS profile
        """, user_id=user_id)
        if not row:
            return None
        p = row["profile"]
        return BusinessProfile(
            user_id=user_id,
            company_name=p.get("company_name") or "",
            has_logo=bool(p.get("logo")),
            description=p.get("description") or "",
            industry_tags=list(p.get("industry_tags") or []),
            city=p.get("city") or "",
            state=p.get("state") or "",
            country=p.get("country") or "",
            business_type=p.get("business_type"),
        )

    # =============================================
    # Connection graph & activity
    # =============================================

    @_optional_source("connections")
    async def get_connections(self, user_id: str) -> List[Connection]:
        rows = await self._all("""
            MATCH (a:User)-[c:CONNECTION]->(b:User)
            WHERE a.id = $user_id OR b.id = $user_id
            RETURN a.id AS requester_id, b.id AS receiver_id, c.status AS status
        """, user_id=user_id)
        return [
            Connection(requester_id=r["requester_id"], receiver_id=r["receiver_id"], status=r["status"])
            for r in rows
        ]

    @_optional_source("messages")
    async def get_message_counts(self, user_id: str) -> MessageCounters:
        row = await self._single("""
            CALL { MATCH (m:Message {sender_id: $user_id}) RETURN count(m) AS sent }
            CALL { MATCH (m:Message {receiver_id: $user_id}) RETURN count(m) AS received }
            RETURN sent, received
        """, user_id=user_id)
        if not row:
            return MessageCounters()
        return MessageCounters(sent=row["sent"], received=row["received"])

    @_optional_source("engagements")
    async def count_engagements(self, user_id: str) -> int:
        row = await self._single("""
            MATCH (o:Order {user_id: $user_id})
            RETURN count(o) AS orders
        """, user_id=user_id)
        return row["orders"] if row else 0

    # =============================================
    # Flags
    # =============================================

    async def insert_flag(self, flag: Flag) -> None:
        row = await self._single("""
            MATCH (u:User {id: $user_id})
            CREATE (f:Flag {
                id: $id,
                user_id: $user_id,
                type: $type,
                reason: $reason,
                severity: $severity,
                resolved: false,
                created_by: $created_by,
                created_at: datetime($created_at)
            })
            CREATE (f)-[:FLAGS]->(u)
            RETURN f.id AS id
        """,
            id=flag.id,
            user_id=flag.user_id,
            type=flag.type,
            reason=flag.reason,
            severity=flag.severity,
            created_by=flag.created_by,
            created_at=_iso(flag.created_at),
        )
        if row is None:
            raise NotFound("identity", flag.user_id)

    async def get_flag(self, flag_id: str) -> Optional[Flag]:
        row = await self._single("""
            MATCH (f:Flag {id: $flag_id})
            RETURN f {.*} AS flag
        """, flag_id=flag_id)
        return _flag_from_node(row["flag"]) if row else None

    async def mark_flag_resolved(self, flag_id: str, resolved_at: datetime) -> None:
        await self._write("""
            MATCH (f:Flag {id: $flag_id})
            SET f.resolved = true, f.resolved_at = datetime($resolved_at)
        """, flag_id=flag_id, resolved_at=_iso(resolved_at))

    async def list_flags(self, user_id: str, include_resolved: bool = False) -> List[Flag]:
        rows = await self._all("""
            MATCH (f:Flag {user_id: $user_id})
            WHERE $include_resolved OR f.resolved = false
            RETURN f {.*} AS flag
            ORDER BY f.created_at DESC
        """, user_id=user_id, include_resolved=include_resolved)
        return [_flag_from_node(r["flag"]) for r in rows]

    @_optional_source("flags")
    async def get_unresolved_flags(self, user_id: str) -> List[Flag]:
        return await self.list_flags(user_id, include_resolved=False)

    # =============================================
    # Trust score records
    # =============================================

    async def get_score(self, user_id: str) -> Optional[TrustScoreRecord]:
        row = await self._single("""
            MATCH (t:TrustScore {user_id: $user_id})
            RETURN t {.*} AS score
        """, user_id=user_id)
        if not row:
            return None
        data = dict(row["score"])
        data["breakdown"] = json.loads(data.get("breakdown") or "{}")
        data["calculated_at"] = _to_datetime(data["calculated_at"])
        return TrustScoreRecord.from_dict(data)

    async def upsert_score(self, record: TrustScoreRecord) -> None:
        await self._write("""
            MATCH (u:User {id: $user_id})
            MERGE (t:TrustScore {user_id: $user_id})
            SET t.total = $total,
                t.identity_score = $identity_score,
                t.business_score = $business_score,
                t.behavior_score = $behavior_score,
                t.reputation_score = $reputation_score,
                t.penalties = $penalties,
                t.breakdown = $breakdown,
                t.calculated_at = datetime($calculated_at)
            MERGE (u)-[:HAS_TRUST_SCORE]->(t)
        """,
            user_id=record.user_id,
            total=record.total,
            identity_score=record.identity_score,
            business_score=record.business_score,
            behavior_score=record.behavior_score,
            reputation_score=record.reputation_score,
            penalties=record.penalties,
            breakdown=json.dumps(record.breakdown, default=str),
            calculated_at=_iso(record.calculated_at),
        )

    async def close(self) -> None:
        await self._driver.close()
        logger.info("neo4j_disconnected")
