"""
Trust Score — Domain Model

The records the engine reads and writes. Stores hand these back; the
engine never touches raw rows.

    Identity         — the account being scored
    BusinessProfile  — optional company card, one per identity
    Connection       — directed edge requester → receiver
    MessageCounters  — aggregate sent/received counts
    Flag             — a complaint against an identity
    TrustScoreRecord — latest computed score, one per identity
"""
from dataclasses import dataclass, field, asdict
from datetime import datetime
from enum import Enum
from typing import Optional, List, Dict, Any


class ConnectionStatus(str, Enum):
    PENDING   = "pending"
    CONNECTED = "connected"
    DECLINED  = "declined"
    BLOCKED   = "blocked"


class Severity(str, Enum):
    LOW      = "low"
    MEDIUM   = "medium"
    HIGH     = "high"
    CRITICAL = "critical"

    @classmethod
    def normalize(cls, value: Optional[str]) -> "Severity":
        """Unknown or missing severities count as low."""
        try:
            return cls(str(value).lower())
        except ValueError:
            return cls.LOW


class BusinessType(str, Enum):
    MANUFACTURER = "Manufacturer"
    SUPPLIER     = "Supplier"
    DISTRIBUTOR  = "Distributor"
    RETAILER     = "Retailer"
    SERVICE      = "Service"


DEFAULT_BUSINESS_TYPE = BusinessType.SERVICE.value


@dataclass
class Identity:
    id: str
    email_verified: bool = False
    domain_verified: bool = False
    verification_badge: bool = False
    domain: Optional[str] = None
    has_avatar: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None      # last-activity proxy


@dataclass
class BusinessProfile:
    user_id: str
    company_name: str = ""
    has_logo: bool = False
    description: str = ""
    industry_tags: List[str] = field(default_factory=list)
    city: str = ""
    state: str = ""
    country: str = ""
    business_type: Optional[str] = None


@dataclass
class Connection:
    requester_id: str
    receiver_id: str
    status: str = ConnectionStatus.PENDING.value

    def involves(self, user_id: str) -> bool:
        return user_id in (self.requester_id, self.receiver_id)


@dataclass
class MessageCounters:
    sent: int = 0
    received: int = 0


@dataclass
class Flag:
    id: str
    user_id: str                               # subject of the flag
    type: str = "flag"
    reason: str = ""
    severity: str = Severity.LOW.value
    resolved: bool = False
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["created_at"] = self.created_at.isoformat() if self.created_at else None
        d["resolved_at"] = self.resolved_at.isoformat() if self.resolved_at else None
        return d


@dataclass
class FlagInput:
    """What a caller supplies when raising a flag."""
    type: str = "flag"
    reason: str = ""
    severity: str = Severity.LOW.value
    created_by: Optional[str] = None


@dataclass
class TrustScoreRecord:
    """
    The persisted score. Overwritten on every recompute, never versioned.
    `breakdown` is the audit trail: per-category score/max/details plus
    the penalty items that were subtracted.
    """
    user_id: str
    total: int
    identity_score: int
    business_score: int
    behavior_score: int
    reputation_score: int
    penalties: int
    breakdown: Dict[str, Any]
    calculated_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "user_id": self.user_id,
            "total": self.total,
            "identity_score": self.identity_score,
            "business_score": self.business_score,
            "behavior_score": self.behavior_score,
            "reputation_score": self.reputation_score,
            "penalties": self.penalties,
            "breakdown": self.breakdown,
            "calculated_at": self.calculated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TrustScoreRecord":
        calculated_at = data["calculated_at"]
        if isinstance(calculated_at, str):
            calculated_at = datetime.fromisoformat(calculated_at)
        return cls(
            user_id=data["user_id"],
            total=int(data["total"]),
            identity_score=int(data["identity_score"]),
            business_score=int(data["business_score"]),
            behavior_score=int(data["behavior_score"]),
            reputation_score=int(data["reputation_score"]),
            penalties=int(data["penalties"]),
            breakdown=data["breakdown"],
            calculated_at=calculated_at,
        )


@dataclass
class SignalBundle:
    """
    Every fact the scorers need for one identity. Built by the DataCollector.
    Optional sources that could not be read arrive empty and are named in
    `unavailable_sources`.
    """
    identity: Identity
    profile: Optional[BusinessProfile] = None
    connections: List[Connection] = field(default_factory=list)
    messages: MessageCounters = field(default_factory=MessageCounters)
    engagement_count: int = 0
    flags: List[Flag] = field(default_factory=list)
    unavailable_sources: List[str] = field(default_factory=list)
