"""
Unit tests for ROI plan conversion and rule validation.
"""

from decimal import Decimal

import pytest

from payout_engine.config.constants import default_rank_ladder
from payout_engine.models import ROISettings
from payout_engine.services.settings_service import (
    convert_plan,
    validate_level_rule,
    validate_rank_rule,
)
from payout_engine.utils.exceptions import BusinessRuleViolation


class TestConvertPlan:
    """Plan percentage to daily rate."""

    def test_daily_plan(self):
        """1% x 30 days."""
        daily, max_roi, max_days = convert_plan("daily", Decimal("1"), 30)

        assert daily == Decimal("0.01")
        assert max_roi == Decimal("0.30")
        assert max_days == 30

    def test_weekly_plan(self):
        """7% per week is 1% per day over 4 weeks."""
        daily, max_roi, max_days = convert_plan("weekly", Decimal("7"), 4)

        assert daily == Decimal("0.01")
        assert max_roi == Decimal("0.28")
        assert max_days == 28

    def test_monthly_plan_truncates_rate(self):
        """10% per month is 0.0033333333 per day."""
        daily, max_roi, max_days = convert_plan("monthly", Decimal("10"), 2)

        assert daily == Decimal("0.0033333333")
        assert max_roi == Decimal("0.20")
        assert max_days == 60

    def test_unknown_plan(self):
        """Only daily, weekly and monthly."""
        with pytest.raises(BusinessRuleViolation):
            convert_plan("yearly", Decimal("1"), 1)

    @pytest.mark.parametrize("duration", [0, -3, True, 1.5])
    def test_bad_duration(self, duration):
        """Duration must be a positive integer."""
        with pytest.raises(BusinessRuleViolation):
            convert_plan("daily", Decimal("1"), duration)

    def test_zero_percentage(self):
        """A zero rate is not a plan."""
        with pytest.raises(BusinessRuleViolation):
            convert_plan("daily", Decimal("0"), 30)


class TestROISettingsMaxDays:
    """max_days derivation."""

    def test_stored_value_within_cap(self):
        """A stored max_days below the rate bound is returned as stored."""
        roi = ROISettings(
            daily_roi=Decimal("0.01"), max_roi=Decimal("0.30"), stored_max_days=20
        )
        assert roi.max_days == 20

    def test_stored_value_clamped_to_cap(self):
        """A stored max_days above floor(max_roi / daily_roi) is clamped."""
        roi = ROISettings(
            daily_roi=Decimal("0.01"), max_roi=Decimal("0.07"), stored_max_days=28
        )
        assert roi.max_days == 7

    def test_derived_from_rates(self):
        """floor(max_roi / daily_roi)."""
        roi = ROISettings(daily_roi=Decimal("0.01"), max_roi=Decimal("0.305"))
        assert roi.max_days == 30

    def test_zero_rate(self):
        """No accrual days without a rate."""
        roi = ROISettings(daily_roi=Decimal("0"), max_roi=Decimal("0.30"))
        assert roi.max_days == 0


class TestValidateLevelRule:
    """Level rule validation."""

    def test_defaults_filled(self):
        """Missing thresholds default to zero."""
        rule = validate_level_rule({"income_percent": "5"})

        assert rule["income_percent"] == Decimal("5")
        assert rule["self_investment_condition"] == Decimal("0")
        assert rule["total_team_size_condition"] == 0
        assert rule["blocked"] is False

    @pytest.mark.parametrize("percent", ["101", "-1", "2.555"])
    def test_bad_percent(self, percent):
        """Percent must be 0..100 with two decimals."""
        with pytest.raises(BusinessRuleViolation):
            validate_level_rule({"income_percent": percent})

    def test_negative_threshold(self):
        """Thresholds cannot be negative."""
        with pytest.raises(BusinessRuleViolation):
            validate_level_rule(
                {"income_percent": "5", "total_team_business_condition": "-1"}
            )

    def test_negative_team_size(self):
        """Team size must be a non-negative integer."""
        with pytest.raises(BusinessRuleViolation):
            validate_level_rule({"income_percent": "5", "total_team_size_condition": -1})


class TestValidateRankRule:
    """Rank rule validation."""

    def test_valid_rule(self):
        """All fields converted to Decimal."""
        rule = validate_rank_rule(
            {
                "total_business": 1000,
                "power_leg_business": 100,
                "other_leg_business": 100,
                "reward_income": 100,
            }
        )
        assert rule["reward_income"] == Decimal("100")

    def test_reward_above_total(self):
        """Reward may not exceed total business."""
        with pytest.raises(BusinessRuleViolation):
            validate_rank_rule({"total_business": 100, "reward_income": 101})

    def test_default_ladder_is_valid(self):
        """Built-in ladder passes its own validation."""
        ladder = default_rank_ladder()

        assert len(ladder) == 7
        for entry in ladder:
            validate_rank_rule(entry)
        assert ladder[6]["total_business"] == Decimal("7000")
