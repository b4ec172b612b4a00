"""Per-period usage counter model."""
from __future__ import annotations

from datetime import datetime

from sqlalchemy import BigInteger, DateTime, Integer, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from src.db.base import Base


class UsageTracking(Base):
    """Stores one set of usage counters per user and period window.

    Rows are created lazily by the first increment in a period and are only
    ever changed through ``UsageRepo.increment``.
    """

    __tablename__ = "usage_tracking"

    id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"),
        primary_key=True,
        autoincrement=True,
    )
    user_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    # Tier at row creation; later tier changes do not rewrite it.
    tier: Mapped[str] = mapped_column(String, nullable=False)
    period_start: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    period_end: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    chat_queries: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0"
    )
    portfolio_analysis: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0"
    )
    sec_filings: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0"
    )
    portfolio_changes: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0"
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        UniqueConstraint(
            "user_id", "period_start", "period_end", name="uq_usage_tracking_user_period"
        ),
    )

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return (
            f"<UsageTracking user={self.user_id} "
            f"period={self.period_start:%Y-%m-%d}..{self.period_end:%Y-%m-%d}>"
        )
