"""add usage tracking counters and the increment_usage function"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "001_add_usage_tracking"
down_revision = None
branch_labels = None
depends_on = None


# Same windows and single-statement upsert as UsageRepo.increment, for
# callers that go through a database RPC instead of the application.
INCREMENT_USAGE_FUNCTION = """
CREATE OR REPLACE FUNCTION increment_usage(
  p_user_id TEXT,
  p_action TEXT,
  p_tier TEXT
)
RETURNS void AS $$
DECLARE
  v_period_start TIMESTAMPTZ;
  v_period_end TIMESTAMPTZ;
  v_column TEXT;
BEGIN
  v_column := CASE p_action
    WHEN 'chatQuery' THEN 'chat_queries'
    WHEN 'portfolioAnalysis' THEN 'portfolio_analysis'
    WHEN 'secFiling' THEN 'sec_filings'
    WHEN 'portfolioChange' THEN 'portfolio_changes'
  END;
  IF v_column IS NULL THEN
    RAISE EXCEPTION 'Unknown usage action: %', p_action;
  END IF;

  IF p_action = 'secFiling' THEN
    v_period_start := date_trunc('month', now() AT TIME ZONE 'UTC') AT TIME ZONE 'UTC';
    v_period_end := v_period_start + interval '1 month' - interval '1 millisecond';
  ELSE
    v_period_start := date_trunc('day', now() AT TIME ZONE 'UTC') AT TIME ZONE 'UTC';
    v_period_end := v_period_start + interval '1 day' - interval '1 millisecond';
  END IF;

  EXECUTE format(
    'INSERT INTO usage_tracking (user_id, tier, period_start, period_end, %1$I)
     VALUES ($1, $2, $3, $4, 1)
     ON CONFLICT (user_id, period_start, period_end)
     DO UPDATE SET %1$I = usage_tracking.%1$I + 1',
    v_column
  )
  USING p_user_id, p_tier, v_period_start, v_period_end;
END;
$$ LANGUAGE plpgsql;
"""


def upgrade() -> None:
    op.create_table(
        "usage_tracking",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("tier", sa.String(), nullable=False),
        sa.Column("period_start", sa.DateTime(timezone=True), nullable=False),
        sa.Column("period_end", sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            "chat_queries",
            sa.Integer(),
            nullable=False,
            server_default=sa.text("0"),
        ),
        sa.Column(
            "portfolio_analysis",
            sa.Integer(),
            nullable=False,
            server_default=sa.text("0"),
        ),
        sa.Column(
            "sec_filings",
            sa.Integer(),
            nullable=False,
            server_default=sa.text("0"),
        ),
        sa.Column(
            "portfolio_changes",
            sa.Integer(),
            nullable=False,
            server_default=sa.text("0"),
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.UniqueConstraint(
            "user_id", "period_start", "period_end", name="uq_usage_tracking_user_period"
        ),
    )
    op.create_index("ix_usage_tracking_user_id", "usage_tracking", ["user_id"])
    op.execute(INCREMENT_USAGE_FUNCTION)


def downgrade() -> None:
    op.execute("DROP FUNCTION IF EXISTS increment_usage(TEXT, TEXT, TEXT)")
    op.drop_index("ix_usage_tracking_user_id", table_name="usage_tracking")
    op.drop_table("usage_tracking")
