"""
Tests for commission tier selection and rate helpers.

Covers:
- Highest met threshold wins, ties go to the higher tier level
- Below every threshold the lowest tier applies
- Fallback ladder when no tiers are configured
- Protection window check
- Commission rounding
"""

from datetime import datetime, timedelta
from decimal import Decimal
from types import SimpleNamespace

from services.commission.attribution import compute_commission
from services.commission.cmo import cmo_commission_for
from services.commission.rates import TierChoice, is_protected, select_tier


def _tier(level, percent, threshold):
    return SimpleNamespace(tier_level=level, commission_rate=Decimal(percent), monthly_user_threshold=threshold)


LADDER = [_tier(1, "8", 0), _tier(2, "10", 50), _tier(3, "12", 100)]


class TestSelectTier:
    def test_zero_users_get_lowest_tier(self):
        assert select_tier(LADDER, 0) == TierChoice(1, Decimal("0.08"))

    def test_exact_threshold_is_met(self):
        assert select_tier(LADDER, 50) == TierChoice(2, Decimal("0.1"))

    def test_highest_threshold_wins(self):
        assert select_tier(LADDER, 250).level == 3
        assert select_tier(LADDER, 250).rate == Decimal("0.12")

    def test_order_of_rows_does_not_matter(self):
        assert select_tier(list(reversed(LADDER)), 75).level == 2

    def test_tie_on_threshold_prefers_higher_level(self):
        tiers = [_tier(1, "8", 0), _tier(2, "10", 50), _tier(4, "11", 50)]

        assert select_tier(tiers, 60).level == 4

    def test_below_every_threshold_uses_lowest_level(self):
        tiers = [_tier(2, "10", 10), _tier(3, "12", 20)]

        assert select_tier(tiers, 3) == TierChoice(2, Decimal("0.1"))

    def test_fallback_without_tiers(self):
        assert select_tier([], 0) == TierChoice(1, Decimal("0.08"))
        assert select_tier([], 99) == TierChoice(1, Decimal("0.08"))
        assert select_tier([], 100) == TierChoice(2, Decimal("0.12"))


class TestProtection:
    def test_open_window(self):
        now = datetime(2026, 3, 10, 12, 0)
        creator = SimpleNamespace(tier_protection_until=now + timedelta(days=1))

        assert is_protected(creator, now) is True

    def test_expired_window(self):
        now = datetime(2026, 3, 10, 12, 0)
        creator = SimpleNamespace(tier_protection_until=now - timedelta(seconds=1))

        assert is_protected(creator, now) is False

    def test_no_window(self):
        assert is_protected(SimpleNamespace(tier_protection_until=None), datetime(2026, 3, 10)) is False


class TestCommissionRounding:
    def test_creator_commission(self):
        assert compute_commission(Decimal("1000"), Decimal("0.08")) == Decimal("80.00")

    def test_rounds_half_up_to_cents(self):
        assert compute_commission(Decimal("0.0625"), Decimal("0.08")) == Decimal("0.01")
        assert compute_commission(Decimal("333.33"), Decimal("0.12")) == Decimal("40.00")

    def test_cmo_override(self):
        assert cmo_commission_for(Decimal("1000")) == Decimal("80.00")
        assert cmo_commission_for("199.99") == Decimal("16.00")
