"""UTC period windows that usage counters accumulate against."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from dateutil.relativedelta import relativedelta

from src.core.exceptions import UnknownUsageActionError
from src.schemas.usage import PeriodKind, UsageAction

# Windows end on the last millisecond of their final day.
END_OF_DAY = {"hour": 23, "minute": 59, "second": 59, "microsecond": 999_000}

_ACTION_PERIODS = {
    UsageAction.CHAT_QUERY: PeriodKind.DAILY,
    UsageAction.PORTFOLIO_ANALYSIS: PeriodKind.DAILY,
    UsageAction.PORTFOLIO_CHANGE: PeriodKind.DAILY,
    UsageAction.SEC_FILING: PeriodKind.MONTHLY,
}


@dataclass(frozen=True)
class Period:
    kind: PeriodKind
    start: datetime
    end: datetime

    def contains(self, moment: datetime) -> bool:
        return self.start <= to_utc(moment) <= self.end

    @property
    def resets_at(self) -> datetime:
        """First instant of the following window."""
        if self.kind is PeriodKind.DAILY:
            return self.start + timedelta(days=1)
        return self.start + relativedelta(months=1)


def to_utc(moment: datetime) -> datetime:
    """Normalise to an aware UTC datetime; naive values are taken as UTC."""

    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def daily_period(now: Optional[datetime] = None) -> Period:
    now = to_utc(now or utcnow())
    start = now.replace(hour=0, minute=0, second=0, microsecond=0)
    return Period(PeriodKind.DAILY, start, start.replace(**END_OF_DAY))


def monthly_period(now: Optional[datetime] = None) -> Period:
    now = to_utc(now or utcnow())
    start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    # Day before the first of next month, whatever the month length.
    last_day = start + relativedelta(months=1) - timedelta(days=1)
    return Period(PeriodKind.MONTHLY, start, last_day.replace(**END_OF_DAY))


def current_period(kind: PeriodKind, now: Optional[datetime] = None) -> Period:
    if kind is PeriodKind.DAILY:
        return daily_period(now)
    return monthly_period(now)


def parse_action(action: UsageAction | str) -> UsageAction:
    try:
        return UsageAction(action)
    except ValueError as exc:
        raise UnknownUsageActionError(str(action)) from exc


def period_kind_for(action: UsageAction | str) -> PeriodKind:
    """Return the window an action is counted in (SEC filings are monthly)."""

    return _ACTION_PERIODS[parse_action(action)]
