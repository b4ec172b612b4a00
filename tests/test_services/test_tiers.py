from __future__ import annotations

import logging

import pytest
from pydantic import ValidationError

from src.core.exceptions import UnknownUsageActionError
from src.schemas.usage import UsageAction
from src.services.tiers import (
    TIER_CONFIG,
    TierName,
    get_tier_config,
    has_tier_level,
    is_unlimited,
    limit_for,
    next_tier,
)


def test_free_tier_limits():
    free = get_tier_config("free")

    assert free.chat_queries_per_day == 20
    assert free.portfolio_analysis_per_day == 1
    assert free.portfolio_changes_per_day == 3
    assert free.sec_filings_per_month == 3


def test_paid_tiers_lift_ceilings():
    basic = get_tier_config(TierName.BASIC)
    premium = get_tier_config("premium")

    assert basic.chat_queries_per_day == 100
    assert basic.portfolio_analysis_per_day == 10
    assert is_unlimited(basic.sec_filings_per_month)
    assert premium.chat_queries_per_day == 700
    assert is_unlimited(premium.portfolio_analysis_per_day)
    assert is_unlimited(premium.portfolio_changes_per_day)


def test_unknown_tier_falls_back_to_free(caplog):
    with caplog.at_level(logging.WARNING, logger="src.services.tiers"):
        config = get_tier_config("enterprise")

    assert config is TIER_CONFIG[TierName.FREE]
    assert "enterprise" in caplog.text


def test_limits_are_immutable():
    with pytest.raises(ValidationError):
        TIER_CONFIG[TierName.FREE].chat_queries_per_day = 1_000


@pytest.mark.parametrize(
    "action,expected",
    [
        (UsageAction.CHAT_QUERY, 20),
        ("portfolioAnalysis", 1),
        ("portfolioChange", 3),
        ("secFiling", 3),
    ],
)
def test_limit_for_action(action, expected):
    assert limit_for(get_tier_config("free"), action) == expected


def test_limit_for_unknown_action():
    with pytest.raises(UnknownUsageActionError):
        limit_for(get_tier_config("free"), "export")


def test_tier_ordering():
    assert has_tier_level("premium", "basic")
    assert has_tier_level("basic", "basic")
    assert not has_tier_level("free", "basic")

    assert next_tier("free") is TierName.BASIC
    assert next_tier(TierName.BASIC) is TierName.PREMIUM
    assert next_tier("premium") is None
