"""Endpoints exposing usage statistics, quota checks and usage tracking."""
from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.deps import get_db_session, get_usage_service
from src.auth.jwt import require_auth
from src.db.session import commit_session
from src.schemas.usage import QuotaCheck, TrackUsageBody, UsageAction, UsageStats
from src.services.limits import check_rate_limit, idempotent_usage
from src.services.tiers import TIER_CONFIG, TierLimits
from src.services.usage import UsageService


router = APIRouter(prefix="/usage", tags=["usage"])


@router.get("/stats", response_model=UsageStats)
async def usage_stats(
    auth=Depends(require_auth),
    service: UsageService = Depends(get_usage_service),
):
    await check_rate_limit(auth["user_id"])
    return await service.get_user_usage_stats(auth["user_id"], auth["tier"])


@router.get("/quota/{action}", response_model=QuotaCheck)
async def quota_check(
    action: UsageAction,
    auth=Depends(require_auth),
    service: UsageService = Depends(get_usage_service),
):
    await check_rate_limit(auth["user_id"])
    return await service.check_quota(auth["user_id"], action, auth["tier"])


@router.post("/track")
async def track_usage(
    body: TrackUsageBody,
    auth=Depends(require_auth),
    idempotency_key: str | None = Header(default=None, alias="Idempotency-Key"),
    db: AsyncSession = Depends(get_db_session),
    service: UsageService = Depends(get_usage_service),
):
    user_id = auth["user_id"]

    await check_rate_limit(user_id)

    # Commit inside the claim so a failed write frees the key for a retry.
    async with idempotent_usage(user_id, body.action, idempotency_key):
        await service.increment_usage(user_id, body.action, auth["tier"])
        await commit_session(db)

    return {"status": "recorded", "action": body.action.value}


@router.get("/tiers", response_model=List[TierLimits])
async def list_tiers():
    return list(TIER_CONFIG.values())
