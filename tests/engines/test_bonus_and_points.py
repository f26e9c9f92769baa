"""
Rewards Wallet & Loyalty Engines - Bonus Stacking and Points Tests
===================================================================
"""

from decimal import Decimal

import pytest

from core.commands.rejection import ReasonCode
from core.config.rules import PaymentMethodRule, PricingConfig
from core.primitives.money import Money
from engines.loyalty.points import loyalty_points_projection, points_with_trace
from engines.wallet.bonus import apply_bonus, bonus_ceiling


def myr(major):
    return Money.of(str(major), "MYR")


# ══════════════════════════════════════════════════════════════
# BONUS STACKING
# ══════════════════════════════════════════════════════════════

class TestBonusCeiling:
    def test_subtotal_minus_voucher(self):
        assert bonus_ceiling(myr(60), myr(10)) == myr(50)

    def test_tier_discount_reduces_ceiling(self):
        assert bonus_ceiling(myr(60), myr(10), myr(6)) == myr(44)

    def test_never_negative(self):
        assert bonus_ceiling(myr(10), myr(15)).is_zero()


class TestApplyBonus:
    def test_clamped_to_ceiling(self):
        decision = apply_bonus(
            requested=myr(70), subtotal=myr(60), voucher_discount=myr(10),
            bonus_balance=myr(80),
        )
        assert decision.applied == myr(50)
        assert decision.ceiling == myr(50)
        assert decision.max_applicable == myr(50)
        assert decision.was_clamped
        assert not decision.trace.has_failures

    def test_clamped_to_balance(self):
        decision = apply_bonus(
            requested=myr(40), subtotal=myr(100), voucher_discount=myr(0),
            bonus_balance=myr(25),
        )
        assert decision.applied == myr(25)
        assert decision.was_clamped

    def test_request_within_limits(self):
        decision = apply_bonus(
            requested=myr(5), subtotal=myr(100), voucher_discount=myr(20),
            bonus_balance=myr(25),
        )
        assert decision.applied == myr(5)
        assert not decision.was_clamped

    def test_no_balance(self):
        decision = apply_bonus(
            requested=myr(5), subtotal=myr(100), voucher_discount=myr(0),
            bonus_balance=myr(0),
        )
        assert decision.applied.is_zero()
        assert decision.trace.codes() == (ReasonCode.NO_BONUS_BALANCE,)

    def test_negative_request_treated_as_zero(self):
        decision = apply_bonus(
            requested=Money(amount=-100, currency="MYR"), subtotal=myr(100),
            voucher_discount=myr(0), bonus_balance=myr(50),
        )
        assert decision.applied.is_zero()

    def test_voucher_covers_everything(self):
        decision = apply_bonus(
            requested=myr(5), subtotal=myr(20), voucher_discount=myr(20),
            bonus_balance=myr(50),
        )
        assert decision.applied.is_zero()

    def test_monotone_in_balance(self):
        previous = Money.zero("MYR")
        for balance in range(0, 120, 10):
            applied = apply_bonus(
                requested=myr(70), subtotal=myr(60), voucher_discount=myr(10),
                bonus_balance=myr(balance),
            ).applied
            assert applied >= previous
            assert applied <= myr(50)
            previous = applied


# ══════════════════════════════════════════════════════════════
# POINTS PROJECTION
# ══════════════════════════════════════════════════════════════

class TestPointsProjection:
    def test_card_earns_base_rate(self):
        assert loyalty_points_projection(myr(80), "card") == 200

    def test_floor_rounding(self):
        assert loyalty_points_projection(myr("10.39"), "fpx") == 25

    def test_wallet_earns_nothing(self):
        assert loyalty_points_projection(myr(80), "wallet") == 0

    def test_zero_total(self):
        assert loyalty_points_projection(myr(0), "card") == 0

    def test_unknown_method(self):
        points, trace = points_with_trace(myr(80), "cheque")
        assert points == 0
        assert trace.codes() == (ReasonCode.UNKNOWN_PAYMENT_METHOD,)

    def test_configured_multiplier(self):
        config = PricingConfig(
            points_base_rate=Decimal("25"),
            payment_methods=(
                PaymentMethodRule(kind="card"),
                PaymentMethodRule(kind="wallet", points_multiplier=Decimal("1.2"),
                                  is_stored_value=True),
            ),
        )
        assert loyalty_points_projection(myr("10.05"), "card", config) == 251
        assert loyalty_points_projection(myr("10.05"), "wallet", config) == 301

    @pytest.mark.parametrize("total", ["0.01", "1", "99.99", "1234.56"])
    def test_never_negative(self, total):
        assert loyalty_points_projection(myr(total), "card") >= 0
