"""
Trust Score — Scoring Engine
Evidence accumulation with category caps.

Four scoring categories:
    Identity     (max 40)  — "Are you who you say you are?"
    Business     (max 30)  — "Is there a real business behind the account?"
    Behavior     (max 20)  — "Do you actually use the platform?"
    Reputation   (max 10)  — "How do your peers treat you?"
    ─────────────────────────────────
    Total possible:          100

Unresolved flags are then subtracted as penalties and the total is clamped
to [0, 100]. Every function here is pure: same bundle + same `now` gives
the same result.
"""
import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Any, List, Iterable

from trustscore.trust.models import (
    SignalBundle, Flag, TrustScoreRecord, Severity,
    ConnectionStatus, DEFAULT_BUSINESS_TYPE,
)


# ── Caps & weights ────────────────────────────────

CAPS: Dict[str, int] = {
    "identity":   40,
    "business":   30,
    "behavior":   20,
    "reputation": 10,
}

PENALTY_SEVERITY: Dict[str, int] = {
    Severity.LOW.value:      3,
    Severity.MEDIUM.value:   7,
    Severity.HIGH.value:     15,
    Severity.CRITICAL.value: 30,
}

MAX_TOTAL = 100

# Reputation: score given when nobody has answered a request yet
NEUTRAL_ACCEPTANCE = 3
BLOCK_BASE = 3
CLEAN_RECORD = 2


@dataclass
class CategoryScore:
    score: int
    max: int
    details: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"score": self.score, "max": self.max, "details": dict(self.details)}


@dataclass
class PenaltySummary:
    total: int
    items: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"total": self.total, "items": list(self.items)}


def _clamp(raw: float, cap: int) -> int:
    return int(min(max(raw, 0), cap))


def _days_between(earlier: datetime, later: datetime) -> float:
    return (later - earlier).total_seconds() / 86400


def _present(value) -> bool:
    return bool(value and str(value).strip())


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


# ── Category scorers ──────────────────────────────

def score_identity(bundle: SignalBundle, now: datetime) -> CategoryScore:
    """Category: verification state and account maturity."""
    user = bundle.identity
    details: Dict[str, int] = {}

    details["email_verified"] = 12 if user.email_verified else 0
    details["domain_verified"] = 12 if user.domain_verified else 0
    details["verification_badge"] = 6 if user.verification_badge else 0

    # 1pt per full 30 days, max 6
    age = 0
    if user.created_at is not None:
        age_days = _days_between(user.created_at, now)
        age = max(min(int(age_days // 30), 6), 0)
    details["account_age"] = age

    details["avatar"] = 4 if user.has_avatar else 0

    raw = sum(details.values())
    return CategoryScore(_clamp(raw, CAPS["identity"]), CAPS["identity"], details)


def score_business(bundle: SignalBundle, now: datetime) -> CategoryScore:
    """Category: business profile completeness and accepted connections."""
    cap = CAPS["business"]
    profile = bundle.profile
    if profile is None:
        return CategoryScore(0, cap, {"profile_exists": 0})

    details: Dict[str, int] = {}
    details["company_name"] = 3 if _present(profile.company_name) else 0
    details["logo"] = 3 if profile.has_logo else 0

    desc_len = len(profile.description or "")
    if desc_len > 200:
        details["description"] = 4
    elif desc_len > 50:
        details["description"] = 2
    else:
        details["description"] = 0

    details["industry_tags"] = min(len(profile.industry_tags or []), 3)
    details["location"] = sum(
        1 for part in (profile.city, profile.state, profile.country) if _present(part)
    )

    if profile.business_type and profile.business_type != DEFAULT_BUSINESS_TYPE:
        details["business_type"] = 2
    elif profile.business_type:
        details["business_type"] = 1
    else:
        details["business_type"] = 0

    connected = sum(
        1 for c in bundle.connections if c.status == ConnectionStatus.CONNECTED.value
    )
    details["connections"] = min(connected * 2, 12)

    raw = sum(details.values())
    return CategoryScore(_clamp(raw, cap), cap, details)


def score_behavior(bundle: SignalBundle, now: datetime) -> CategoryScore:
    """Category: messaging, engagement and recency."""
    details: Dict[str, int] = {}

    details["messages_sent"] = min(bundle.messages.sent // 5, 6)
    details["responsiveness"] = min(bundle.messages.received // 5, 4)
    details["order_activity"] = min(bundle.engagement_count // 2, 6)

    last_active = bundle.identity.updated_at
    activity = 0
    if last_active is not None:
        days_since = _days_between(last_active, now)
        if days_since <= 7:
            activity = 4
        elif days_since <= 30:
            activity = 2
        elif days_since <= 90:
            activity = 1
    details["recent_activity"] = activity

    raw = sum(details.values())
    return CategoryScore(_clamp(raw, CAPS["behavior"]), CAPS["behavior"], details)


def score_reputation(bundle: SignalBundle, now: datetime) -> CategoryScore:
    """Category: how peers respond to and treat this identity."""
    user_id = bundle.identity.id
    details: Dict[str, int] = {}

    received = [c for c in bundle.connections if c.receiver_id == user_id]
    accepted = sum(1 for c in received if c.status == ConnectionStatus.CONNECTED.value)
    declined = sum(1 for c in received if c.status == ConnectionStatus.DECLINED.value)
    answered = accepted + declined
    if answered > 0:
        details["acceptance_rate"] = _round_half_up(accepted / answered * 5)
    else:
        details["acceptance_rate"] = NEUTRAL_ACCEPTANCE

    blockers = {
        c.requester_id for c in bundle.connections
        if c.status == ConnectionStatus.BLOCKED.value and c.requester_id != user_id
    }
    details["no_blocks"] = BLOCK_BASE - min(len(blockers) * 2, BLOCK_BASE)

    open_flags = [f for f in bundle.flags if not f.resolved]
    details["clean_record"] = CLEAN_RECORD if not open_flags else 0

    raw = sum(details.values())
    return CategoryScore(_clamp(raw, CAPS["reputation"]), CAPS["reputation"], details)


# ── Penalties ─────────────────────────────────────

def calculate_penalties(flags: Iterable[Flag]) -> PenaltySummary:
    """
    Sum severity points over the given flags. Resolved flags are skipped.
    Uncapped; the aggregator clamps the final total.
    """
    total = 0
    items: List[Dict[str, Any]] = []
    for flag in flags:
        if flag.resolved:
            continue
        points = PENALTY_SEVERITY.get(flag.severity, PENALTY_SEVERITY[Severity.LOW.value])
        total += points
        items.append({
            "id": flag.id,
            "type": flag.type,
            "severity": flag.severity,
            "points": points,
            "reason": flag.reason,
        })
    return PenaltySummary(total, items)


# ── Aggregator ────────────────────────────────────

def aggregate(bundle: SignalBundle, now: datetime) -> TrustScoreRecord:
    """
    THE scoring function. Takes a collected bundle, returns the record
    that gets persisted. Persistence is the caller's job.
    """
    identity = score_identity(bundle, now)
    business = score_business(bundle, now)
    behavior = score_behavior(bundle, now)
    reputation = score_reputation(bundle, now)
    penalties = calculate_penalties(bundle.flags)

    raw_total = identity.score + business.score + behavior.score + reputation.score
    total = max(raw_total - penalties.total, 0)

    return TrustScoreRecord(
        user_id=bundle.identity.id,
        total=min(total, MAX_TOTAL),
        identity_score=identity.score,
        business_score=business.score,
        behavior_score=behavior.score,
        reputation_score=reputation.score,
        penalties=penalties.total,
        breakdown={
            "identity": identity.to_dict(),
            "business": business.to_dict(),
            "behavior": behavior.to_dict(),
            "reputation": reputation.to_dict(),
            "penalties": penalties.to_dict(),
        },
        calculated_at=now,
    )
