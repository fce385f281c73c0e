"""
Tests for plan configuration and derived values.

Covers:
- Level commission table validation
- ROI math over daily, weekly and monthly durations
- Availability status and purchase capacity
"""

from datetime import timedelta
from decimal import Decimal

import pytest

from mlm_ledger.models import Plan, PlanStatus
from mlm_ledger.models.plan import normalize_level_commissions
from mlm_ledger.utils.datetime_utils import utc_now
from mlm_ledger.utils.exceptions import (
    InvalidAmount,
    InvalidLevelSequence,
    InvalidRequest,
)


def make_plan(**overrides) -> Plan:
    fields = {
        "name": "Gold",
        "amount": Decimal("1000"),
        "roi_percentage": Decimal("15"),
        "roi_duration": 30,
    }
    fields.update(overrides)
    return Plan(**fields)


class TestLevelCommissions:
    """Test level commission table validation."""

    def test_entries_are_sorted_by_level(self):
        """Out-of-order entries are accepted and sorted."""
        plan = make_plan(
            level_commissions=[
                {"level": 2, "percentage": 5},
                {"level": 1, "percentage": "12.5"},
            ]
        )

        assert plan.level_commissions == [
            {"level": 1, "percentage": "12.5"},
            {"level": 2, "percentage": "5"},
        ]

    def test_pairs_are_accepted(self):
        """(level, percentage) pairs normalize like dicts."""
        assert normalize_level_commissions([(1, 10)]) == [
            {"level": 1, "percentage": "10"}
        ]

    @pytest.mark.parametrize(
        "levels",
        [
            [{"level": 1, "percentage": 10}, {"level": 3, "percentage": 5}],
            [{"level": 1, "percentage": 10}, {"level": 1, "percentage": 5}],
            [{"level": 2, "percentage": 10}],
        ],
    )
    def test_levels_must_be_sequential(self, levels):
        """Gaps, duplicates and a missing level 1 are rejected."""
        with pytest.raises(InvalidLevelSequence):
            make_plan(level_commissions=levels)

    def test_level_percentage_range(self):
        """A level may pay at most 50%."""
        with pytest.raises(InvalidLevelSequence):
            make_plan(level_commissions=[{"level": 1, "percentage": 60}])

    def test_malformed_entry(self):
        """Entries without a numeric level are rejected."""
        with pytest.raises(InvalidLevelSequence):
            normalize_level_commissions([{"level": "one", "percentage": 5}])

    def test_empty_table(self):
        """A plan without levels has zero depth."""
        plan = make_plan()

        assert plan.level_commissions == []
        assert plan.commission_depth == 0

    def test_commission_lookup(self):
        """Configured levels pay their percentage, others pay nothing."""
        plan = make_plan(
            level_commissions=[
                {"level": 1, "percentage": 10},
                {"level": 2, "percentage": 5},
            ],
            direct_referral_bonus_percentage=Decimal("10"),
        )

        assert plan.get_commission_for_level(1) == Decimal("10")
        assert plan.get_commission_for_level(2) == Decimal("5")
        assert plan.get_commission_for_level(3) == Decimal("0")
        assert plan.total_commission_percentage == Decimal("25")


class TestRoiMath:
    """Test ROI derived values."""

    def test_daily_plan(self):
        """Total ROI spread evenly over the days."""
        plan = make_plan()

        assert plan.total_roi_amount == Decimal("150")
        assert plan.total_roi_days == 30
        assert plan.daily_roi_amount == Decimal("5")

    def test_weekly_plan(self):
        """Weekly duration counts 7 days per unit."""
        plan = make_plan(roi_duration=4, roi_frequency="weekly")

        assert plan.total_roi_days == 28

    def test_monthly_plan(self):
        """Monthly duration counts 30 days per unit."""
        plan = make_plan(roi_duration=2, roi_frequency="monthly")

        assert plan.total_roi_days == 60

    def test_uneven_daily_amount_is_quantized(self):
        """Daily amount is rounded to 8 places."""
        plan = make_plan(amount=Decimal("100"), roi_percentage=Decimal("10"), roi_duration=3)

        assert plan.daily_roi_amount == Decimal("3.33333333")

    def test_total_return(self):
        """Investment plus total ROI."""
        plan = make_plan()

        assert plan.calculate_total_return() == Decimal("1150")
        assert plan.calculate_total_return(Decimal("200")) == Decimal("230")


class TestPlanValidation:
    """Test column validators."""

    def test_amount_minimum(self):
        """Plans cost at least 1."""
        with pytest.raises(InvalidAmount):
            make_plan(amount=Decimal("0.5"))

    def test_roi_percentage_range(self):
        """ROI percentage is capped at 100."""
        with pytest.raises(InvalidRequest):
            make_plan(roi_percentage=Decimal("101"))

    def test_direct_bonus_range(self):
        """Direct bonus is capped at 50."""
        with pytest.raises(InvalidRequest):
            make_plan(direct_referral_bonus_percentage=Decimal("51"))

    def test_roi_duration_minimum(self):
        """Duration of zero is refused."""
        with pytest.raises(InvalidRequest):
            make_plan(roi_duration=0)

    def test_unknown_frequency(self):
        """Only daily, weekly and monthly are known."""
        with pytest.raises(InvalidRequest):
            make_plan(roi_frequency="hourly")


class TestPlanAvailability:
    """Test status, purchasability and capacity."""

    def test_active(self):
        """Active visible plan in its window is purchasable."""
        plan = make_plan()

        assert plan.status == PlanStatus.ACTIVE.value
        assert plan.is_purchasable() is True

    def test_inactive(self):
        """Deactivated plans are not purchasable."""
        plan = make_plan(is_active=False)

        assert plan.status == PlanStatus.INACTIVE.value
        assert plan.is_purchasable() is False

    def test_expired(self):
        """Plans past valid_until are expired."""
        plan = make_plan(
            valid_from=utc_now() - timedelta(days=10),
            valid_until=utc_now() - timedelta(days=1),
        )

        assert plan.status == PlanStatus.EXPIRED.value

    def test_upcoming(self):
        """Plans before valid_from are upcoming."""
        plan = make_plan(valid_from=utc_now() + timedelta(days=1))

        assert plan.status == PlanStatus.UPCOMING.value
        assert plan.is_purchasable() is False

    def test_hidden_plan(self):
        """Invisible plans cannot be bought even while active."""
        plan = make_plan(is_visible=False)

        assert plan.status == PlanStatus.ACTIVE.value
        assert plan.is_purchasable() is False

    def test_capacity(self):
        """max_purchases caps sales."""
        plan = make_plan(max_purchases=1)
        assert plan.has_capacity() is True

        plan.increment_purchase(Decimal("80"))

        assert plan.has_capacity() is False
        assert plan.total_purchases == 1
        assert plan.total_revenue == Decimal("80")

    def test_unlimited_capacity(self):
        """No max_purchases means no cap."""
        plan = make_plan(total_purchases=10_000)

        assert plan.has_capacity() is True
