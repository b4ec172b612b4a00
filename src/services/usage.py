"""Usage statistics, admission checks and counter increments.

``UsageService`` merges the raw counters kept by :class:`UsageRepo` with the
static tier limits into the figures shown on dashboards and consulted before
billable actions. Reads never write; a user with no counters reads as zero.
Enforcement is left to callers.
"""
from __future__ import annotations

from datetime import datetime
from typing import Callable, Optional

from src.repositories.usage_repo import ACTION_COLUMNS, UsageRepo
from src.schemas.usage import (
    DailyUsage,
    MonthlyUsage,
    PeriodBounds,
    PeriodKind,
    QuotaCheck,
    UsageAction,
    UsageBlock,
    UsageCounters,
    UsageMetric,
    UsagePercentages,
    UsageStats,
    UsageWarnings,
)
from src.services.periods import (
    current_period, daily_period, monthly_period, parse_action, period_kind_for, to_utc, utcnow
)
from src.services.tiers import Limit, TierLimits, get_tier_config, is_unlimited, limit_for

WARNING_THRESHOLD_PERCENT = 80.0

_EXHAUSTED_REASONS = {
    UsageAction.CHAT_QUERY: "Daily chat query limit reached ({limit}/day)",
    UsageAction.PORTFOLIO_ANALYSIS: "Daily portfolio analysis limit reached ({limit}/day)",
    UsageAction.SEC_FILING: "Monthly SEC filing limit reached ({limit}/month)",
    UsageAction.PORTFOLIO_CHANGE: (
        "Daily portfolio change limit reached ({limit}/day). "
        "Try again tomorrow or upgrade for unlimited changes."
    ),
}


def build_usage_metric(used: int, limit: Limit) -> UsageMetric:
    remaining = None if is_unlimited(limit) else max(0, limit - used)
    return UsageMetric(used=used, limit=limit, remaining=remaining)


def calculate_percentage(used: int, limit: Limit) -> float:
    """Share of ``limit`` consumed, capped at 100; unlimited reads as 0."""

    if is_unlimited(limit):
        return 0.0
    if limit <= 0:
        return 100.0
    return min(100.0, used * 100 / limit)


def is_warning(percentage: float) -> bool:
    return percentage >= WARNING_THRESHOLD_PERCENT


class UsageService:
    """Computes usage state for a user from stored counters and tier limits."""

    def __init__(
        self,
        usage_repo: UsageRepo,
        tier_config: Callable[[str], TierLimits] = get_tier_config,
    ) -> None:
        self.usage_repo = usage_repo
        self.tier_config = tier_config

    async def get_user_usage_stats(
        self, user_id: str, tier: str, now: Optional[datetime] = None
    ) -> UsageStats:
        """Return usage, limits, percentages and warnings for ``user_id``.

        Args:
            user_id: Identifier of an authenticated user.
            tier: Subscription tier name used to look up limits.
            now: Reference instant; defaults to the current UTC time.

        Raises:
            StorageUnavailableError: The counters could not be read.
        """
        now = to_utc(now or utcnow())
        raw = await self.usage_repo.current_usage(user_id, now)
        limits = self.tier_config(tier)
        daily_window = daily_period(now)
        monthly_window = monthly_period(now)

        daily = raw.daily or UsageCounters()
        monthly = raw.monthly or UsageCounters()

        chat = build_usage_metric(daily.chat_queries, limits.chat_queries_per_day)
        analysis = build_usage_metric(
            daily.portfolio_analysis, limits.portfolio_analysis_per_day
        )
        filings = build_usage_metric(monthly.sec_filings, limits.sec_filings_per_month)

        percentages = UsagePercentages(
            chat_queries=calculate_percentage(chat.used, chat.limit),
            portfolio_analysis=calculate_percentage(analysis.used, analysis.limit),
            sec_filings=calculate_percentage(filings.used, filings.limit),
        )

        return UsageStats(
            tier=getattr(tier, "value", tier),
            usage=UsageBlock(
                daily=DailyUsage(chat_queries=chat, portfolio_analysis=analysis),
                monthly=MonthlyUsage(sec_filings=filings),
                period_start=PeriodBounds(
                    daily=daily_window.start, monthly=monthly_window.start
                ),
                period_end=PeriodBounds(daily=daily_window.end, monthly=monthly_window.end),
            ),
            percentages=percentages,
            warnings=UsageWarnings(
                chat_queries=is_warning(percentages.chat_queries),
                portfolio_analysis=is_warning(percentages.portfolio_analysis),
                sec_filings=is_warning(percentages.sec_filings),
            ),
        )

    async def check_quota(
        self,
        user_id: str,
        action: UsageAction | str,
        tier: str,
        now: Optional[datetime] = None,
    ) -> QuotaCheck:
        """Report whether one more ``action`` fits in the current window.

        Nothing is counted or enforced here.
        """
        action = parse_action(action)
        now = to_utc(now or utcnow())
        limit = limit_for(self.tier_config(tier), action)
        period = current_period(period_kind_for(action), now)

        raw = await self.usage_repo.current_usage(user_id, now)
        counters = raw.monthly if period.kind is PeriodKind.MONTHLY else raw.daily
        used = getattr(counters or UsageCounters(), ACTION_COLUMNS[action])
        metric = build_usage_metric(used, limit)

        allowed = metric.remaining is None or metric.remaining > 0
        return QuotaCheck(
            action=action,
            allowed=allowed,
            remaining=metric.remaining,
            limit=limit,
            reason=None if allowed else _EXHAUSTED_REASONS[action].format(limit=limit),
            resets_at=period.resets_at,
        )

    async def increment_usage(
        self,
        user_id: str,
        action: UsageAction | str,
        tier: str,
        now: Optional[datetime] = None,
    ) -> None:
        """Count one ``action`` for ``user_id`` in its current window.

        The caller's action has already happened, so a failure here is raised
        for logging and telemetry rather than to undo it. Do not retry blindly
        after a timeout: the increment may have landed.

        Raises:
            StorageUnavailableError: The counter could not be written.
            UnknownUsageActionError: ``action`` is not a tracked action.
        """
        # Snapshot the tier whose limits apply, not the raw claim.
        tier_name = self.tier_config(tier).name.value
        await self.usage_repo.increment(user_id, action, tier_name, now)
