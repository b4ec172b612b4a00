"""Pydantic schemas for usage counters, statistics and quota checks.

Limits and remaining counts are ``Optional[int]``: ``None`` means unlimited
and is serialized as ``null``.
"""
from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class UsageAction(str, Enum):
    """Countable actions, named as callers send them."""

    CHAT_QUERY = "chatQuery"
    PORTFOLIO_ANALYSIS = "portfolioAnalysis"
    SEC_FILING = "secFiling"
    PORTFOLIO_CHANGE = "portfolioChange"


class PeriodKind(str, Enum):
    DAILY = "daily"
    MONTHLY = "monthly"


class UsageCounters(BaseModel):
    """Raw counter values of a single ``usage_tracking`` row."""

    chat_queries: int = 0
    portfolio_analysis: int = 0
    sec_filings: int = 0
    portfolio_changes: int = 0

    model_config = ConfigDict(from_attributes=True)


class RawUsage(BaseModel):
    """Counters for the current daily and monthly windows, if any exist."""

    daily: Optional[UsageCounters] = None
    monthly: Optional[UsageCounters] = None


class UsageMetric(BaseModel):
    used: int = Field(..., ge=0)
    limit: Optional[int] = Field(default=None, description="None means unlimited")
    remaining: Optional[int] = Field(default=None, description="None means unlimited")


class DailyUsage(BaseModel):
    chat_queries: UsageMetric
    portfolio_analysis: UsageMetric


class MonthlyUsage(BaseModel):
    sec_filings: UsageMetric


class PeriodBounds(BaseModel):
    daily: datetime
    monthly: datetime


class UsageBlock(BaseModel):
    daily: DailyUsage
    monthly: MonthlyUsage
    period_start: PeriodBounds
    period_end: PeriodBounds


class UsagePercentages(BaseModel):
    chat_queries: float = Field(..., ge=0, le=100)
    portfolio_analysis: float = Field(..., ge=0, le=100)
    sec_filings: float = Field(..., ge=0, le=100)


class UsageWarnings(BaseModel):
    chat_queries: bool
    portfolio_analysis: bool
    sec_filings: bool


class UsageStats(BaseModel):
    """Usage, limits, pressure and warnings for one user at one instant."""

    tier: str
    usage: UsageBlock
    percentages: UsagePercentages
    warnings: UsageWarnings


class QuotaCheck(BaseModel):
    """Read-only admission result for a single action."""

    action: UsageAction
    allowed: bool
    remaining: Optional[int] = None
    limit: Optional[int] = None
    reason: Optional[str] = None
    resets_at: datetime


class TrackUsageBody(BaseModel):
    """Payload for recording a usage event."""

    action: UsageAction = Field(..., description="Action to count")
