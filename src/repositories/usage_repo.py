"""Repository helpers for per-period usage counters."""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.exceptions import StorageUnavailableError
from src.db.models.usage_tracking import UsageTracking
from src.schemas.usage import RawUsage, UsageAction, UsageCounters
from src.services.periods import (
    Period, current_period, daily_period, monthly_period, parse_action, period_kind_for
)

logger = logging.getLogger(__name__)

ACTION_COLUMNS = {
    UsageAction.CHAT_QUERY: "chat_queries",
    UsageAction.PORTFOLIO_ANALYSIS: "portfolio_analysis",
    UsageAction.SEC_FILING: "sec_filings",
    UsageAction.PORTFOLIO_CHANGE: "portfolio_changes",
}

_UPSERT_DIALECTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


class UsageRepo:
    """Reads and atomically increments ``usage_tracking`` counters."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def counters_for_period(
        self, user_id: str, period: Period
    ) -> Optional[UsageCounters]:
        """Return counters of the row keyed by exactly this window, if any."""

        try:
            result = await self.session.execute(
                select(UsageTracking).where(
                    UsageTracking.user_id == user_id,
                    UsageTracking.period_start == period.start,
                    UsageTracking.period_end == period.end,
                )
            )
            row = result.scalar_one_or_none()
        except SQLAlchemyError as exc:
            logger.error(f"Failed to read {period.kind.value} usage for {user_id}: {exc}")
            raise StorageUnavailableError("Usage counters are unavailable") from exc
        if row is None:
            return None
        return UsageCounters.model_validate(row)

    async def current_usage(
        self, user_id: str, now: Optional[datetime] = None
    ) -> RawUsage:
        """Return counters for the daily and monthly windows containing ``now``.

        Nothing is written; a window without a row reads as ``None``.
        """

        return RawUsage(
            daily=await self.counters_for_period(user_id, daily_period(now)),
            monthly=await self.counters_for_period(user_id, monthly_period(now)),
        )

    async def increment(
        self,
        user_id: str,
        action: UsageAction | str,
        tier: str,
        now: Optional[datetime] = None,
    ) -> None:
        """Add one to the counter for ``action`` in its current window.

        A single ``INSERT ... ON CONFLICT DO UPDATE`` creates the row on first
        use and otherwise bumps the column in place, so concurrent callers
        neither lose updates nor create a second row for the same window.
        """

        action = parse_action(action)
        column = ACTION_COLUMNS[action]
        period = current_period(period_kind_for(action), now)
        table = UsageTracking.__table__

        dialect = self.session.get_bind().dialect.name
        insert = _UPSERT_DIALECTS.get(dialect)
        if insert is None:
            raise StorageUnavailableError(
                f"Atomic increment unsupported on {dialect}"
            )

        values = {name: 0 for name in ACTION_COLUMNS.values()}
        values[column] = 1
        query = (
            insert(table)
            .values(
                user_id=user_id,
                tier=getattr(tier, "value", tier),
                period_start=period.start,
                period_end=period.end,
                **values,
            )
            .on_conflict_do_update(
                index_elements=["user_id", "period_start", "period_end"],
                set_={column: table.c[column] + 1},
            )
        )
        try:
            await self.session.execute(query)
            await self.session.flush()
        except SQLAlchemyError as exc:
            logger.error(f"Failed to increment {column} for {user_id}: {exc}")
            raise StorageUnavailableError("Usage counter increment failed") from exc

        logger.debug(
            f"Incremented {column} for {user_id} in {period.kind.value} window "
            f"starting {period.start.isoformat()}"
        )
