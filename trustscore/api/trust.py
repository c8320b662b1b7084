"""
Trust Score — API

Thin HTTP surface over the scoring engine, mounted by the host application.

Endpoints (all require an authenticated caller):
    GET  /api/trust-score/health                  - Health check
    GET  /api/trust-score/{user_id}               - Score with full breakdown
    POST /api/trust-score/{user_id}/recalculate   - Force recompute (own score only)
    POST /api/trust-score/{user_id}/flag          - Flag another identity
    POST /api/trust-score/flags/{flag_id}/resolve - Resolve a flag
    GET  /api/trust-score/{user_id}/flags         - List flags (?all=true for resolved)
"""
from typing import Optional, List, Dict, Any

from fastapi import APIRouter, HTTPException, Depends, Query, Request
from pydantic import BaseModel, Field
import structlog

from trustscore.compute.pipeline import TrustScoreService
from trustscore.security import require_auth
from trustscore.trust.errors import FlagNotFound, NotFound, PersistenceFailure
from trustscore.trust.flags import FlagRegistry
from trustscore.trust.models import FlagInput, TrustScoreRecord

logger = structlog.get_logger()

router = APIRouter(prefix="/api/trust-score", tags=["trust-score"])


# =============================================
# REQUEST/RESPONSE MODELS
# =============================================

class TrustScoreResponse(BaseModel):
    success: bool = True
    user_id: str
    total: int
    identity_score: int
    business_score: int
    behavior_score: int
    reputation_score: int
    penalties: int
    breakdown: Dict[str, Any]
    calculated_at: str
    persisted: bool = True


class FlagRequest(BaseModel):
    type: str = Field("flag", max_length=50)
    reason: str = Field("", max_length=2000)
    severity: str = "low"


class FlagOut(BaseModel):
    id: str
    user_id: str
    type: str
    reason: str
    severity: str
    resolved: bool
    created_by: Optional[str]
    created_at: Optional[str]
    resolved_at: Optional[str]


class FlagResponse(BaseModel):
    success: bool = True
    flag: FlagOut


class FlagListResponse(BaseModel):
    success: bool = True
    flags: List[FlagOut]


class ResolveResponse(BaseModel):
    success: bool


# =============================================
# DEPENDENCIES
# =============================================

def get_trust_service(request: Request) -> TrustScoreService:
    return request.app.state.trust_service


def get_flag_registry(request: Request) -> FlagRegistry:
    return request.app.state.flag_registry


def _score_response(record: TrustScoreRecord, persisted: bool = True) -> TrustScoreResponse:
    return TrustScoreResponse(**record.to_dict(), persisted=persisted)


# =============================================
# ENDPOINTS
# =============================================

@router.get("/health")
async def trust_health():
    return {"status": "healthy", "service": "trust-score"}


@router.get("/{user_id}", response_model=TrustScoreResponse)
async def get_trust_score(
    user_id: str,
    caller: str = Depends(require_auth),
    service: TrustScoreService = Depends(get_trust_service),
):
    record = await service.get(user_id)
    if record is None:
        raise HTTPException(status_code=404, detail="User not found")
    return _score_response(record)


@router.post("/{user_id}/recalculate", response_model=TrustScoreResponse)
async def recalculate_trust_score(
    user_id: str,
    caller: str = Depends(require_auth),
    service: TrustScoreService = Depends(get_trust_service),
):
    if caller != user_id:
        raise HTTPException(status_code=403, detail="Can only recalculate your own score")
    try:
        record = await service.recalculate(user_id)
    except PersistenceFailure as e:
        logger.warning("recalculate_not_persisted", user_id=user_id, error=str(e))
        return _score_response(e.record, persisted=False)
    if record is None:
        raise HTTPException(status_code=404, detail="User not found")
    return _score_response(record)


@router.post("/{user_id}/flag", response_model=FlagResponse)
async def flag_user(
    user_id: str,
    body: FlagRequest,
    caller: str = Depends(require_auth),
    flags: FlagRegistry = Depends(get_flag_registry),
):
    if caller == user_id:
        raise HTTPException(status_code=400, detail="Cannot flag yourself")
    if not body.reason.strip():
        raise HTTPException(status_code=400, detail="Reason is required")
    try:
        flag = await flags.add_flag(user_id, FlagInput(
            type=body.type or "flag",
            reason=body.reason.strip(),
            severity=body.severity or "low",
            created_by=caller,
        ))
    except NotFound:
        raise HTTPException(status_code=404, detail="User not found")
    except PersistenceFailure as e:
        raise HTTPException(status_code=503, detail=str(e))
    return FlagResponse(flag=FlagOut(**flag.to_dict()))


@router.post("/flags/{flag_id}/resolve", response_model=ResolveResponse)
async def resolve_flag(
    flag_id: str,
    caller: str = Depends(require_auth),
    flags: FlagRegistry = Depends(get_flag_registry),
):
    try:
        result = await flags.resolve_flag(flag_id)
    except FlagNotFound:
        raise HTTPException(status_code=404, detail="Flag not found")
    except PersistenceFailure as e:
        raise HTTPException(status_code=503, detail=str(e))
    return ResolveResponse(**result)


@router.get("/{user_id}/flags", response_model=FlagListResponse)
async def list_flags(
    user_id: str,
    all: bool = Query(False, description="Include resolved flags"),
    caller: str = Depends(require_auth),
    flags: FlagRegistry = Depends(get_flag_registry),
):
    found = await flags.get_flags(user_id, include_resolved=all)
    return FlagListResponse(flags=[FlagOut(**f.to_dict()) for f in found])
