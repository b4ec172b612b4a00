"""Static subscription tier limits and tier ordering helpers."""
from __future__ import annotations

import logging
from enum import Enum
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict

from src.schemas.usage import UsageAction
from src.services.periods import parse_action

logger = logging.getLogger(__name__)

# A quota ceiling: a non-negative count, or None for "no ceiling".
Limit = Optional[int]
UNLIMITED: Limit = None


class TierName(str, Enum):
    FREE = "free"
    BASIC = "basic"
    PREMIUM = "premium"


class TierLimits(BaseModel):
    """Quota ceilings for one subscription tier."""

    name: TierName
    display_name: str
    chat_queries_per_day: Limit
    portfolio_analysis_per_day: Limit
    portfolio_changes_per_day: Limit
    sec_filings_per_month: Limit

    model_config = ConfigDict(frozen=True)


TIER_CONFIG: Dict[TierName, TierLimits] = {
    TierName.FREE: TierLimits(
        name=TierName.FREE,
        display_name="Free",
        chat_queries_per_day=20,
        portfolio_analysis_per_day=1,
        portfolio_changes_per_day=3,
        sec_filings_per_month=3,
    ),
    TierName.BASIC: TierLimits(
        name=TierName.BASIC,
        display_name="Basic",
        chat_queries_per_day=100,
        portfolio_analysis_per_day=10,
        portfolio_changes_per_day=UNLIMITED,
        sec_filings_per_month=UNLIMITED,
    ),
    TierName.PREMIUM: TierLimits(
        name=TierName.PREMIUM,
        display_name="Premium",
        chat_queries_per_day=700,
        portfolio_analysis_per_day=UNLIMITED,
        portfolio_changes_per_day=UNLIMITED,
        sec_filings_per_month=UNLIMITED,
    ),
}

TIER_HIERARCHY: Dict[TierName, int] = {
    TierName.FREE: 0,
    TierName.BASIC: 1,
    TierName.PREMIUM: 2,
}

_ACTION_LIMIT_FIELDS = {
    UsageAction.CHAT_QUERY: "chat_queries_per_day",
    UsageAction.PORTFOLIO_ANALYSIS: "portfolio_analysis_per_day",
    UsageAction.PORTFOLIO_CHANGE: "portfolio_changes_per_day",
    UsageAction.SEC_FILING: "sec_filings_per_month",
}


def is_unlimited(limit: Limit) -> bool:
    return limit is None


def get_tier_config(tier: TierName | str) -> TierLimits:
    """Return the limits for ``tier``, falling back to the free tier."""

    try:
        return TIER_CONFIG[TierName(tier)]
    except ValueError:
        logger.warning(f"Unknown tier {tier!r}; applying free tier limits")
        return TIER_CONFIG[TierName.FREE]


def limit_for(config: TierLimits, action: UsageAction | str) -> Limit:
    """Return the ceiling in ``config`` that governs ``action``."""

    return getattr(config, _ACTION_LIMIT_FIELDS[parse_action(action)])


def has_tier_level(user_tier: TierName | str, required_tier: TierName | str) -> bool:
    return TIER_HIERARCHY[TierName(user_tier)] >= TIER_HIERARCHY[TierName(required_tier)]


def next_tier(tier: TierName | str) -> TierName | None:
    """Return the tier to suggest for an upgrade, or None at the top."""

    current = TIER_HIERARCHY[TierName(tier)]
    for candidate, level in TIER_HIERARCHY.items():
        if level == current + 1:
            return candidate
    return None
