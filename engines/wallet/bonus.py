"""
Rewards Wallet Engine - Bonus Stacking Policy
==============================================
Applies the user's stored-value bonus balance as a discount on top of
the tier and voucher discounts.

    ceiling        = max(0, subtotal - tier_discount - voucher_discount)
    max_applicable = min(bonus_balance, ceiling)
    applied        = min(requested, max_applicable)

The payable total can never go negative. The engine never clears a
bonus on its own; voucher changes go through the cart session.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from core.commands.rejection import ReasonCode
from core.policy.result import DecisionTrace
from core.primitives.money import Money, money_min


@dataclass(frozen=True)
class BonusDecision:
    applied: Money
    ceiling: Money
    max_applicable: Money
    trace: DecisionTrace = field(default_factory=DecisionTrace)

    @property
    def was_clamped(self) -> bool:
        return any(e.code == ReasonCode.BONUS_CLAMPED for e in self.trace.entries)


def bonus_ceiling(
    subtotal: Money,
    voucher_discount: Money,
    tier_discount: Optional[Money] = None,
) -> Money:
    """Most bonus the cart can absorb after the other discounts."""
    remaining = subtotal - voucher_discount
    if tier_discount is not None:
        remaining = remaining - tier_discount
    return remaining.clamp_non_negative()


def apply_bonus(
    requested: Money,
    subtotal: Money,
    voucher_discount: Money,
    bonus_balance: Money,
    tier_discount: Optional[Money] = None,
) -> BonusDecision:
    trace = DecisionTrace()
    ceiling = bonus_ceiling(subtotal, voucher_discount, tier_discount)
    balance = bonus_balance.clamp_non_negative()
    max_applicable = money_min(balance, ceiling)
    wanted = requested.clamp_non_negative()

    if wanted.is_zero():
        return BonusDecision(
            applied=Money.zero(subtotal.currency), ceiling=ceiling,
            max_applicable=max_applicable,
            trace=trace.passed("bonus_request", "No bonus requested."),
        )
    if balance.is_zero():
        return BonusDecision(
            applied=Money.zero(subtotal.currency), ceiling=ceiling,
            max_applicable=max_applicable,
            trace=trace.failed(
                "bonus_balance", ReasonCode.NO_BONUS_BALANCE,
                "No bonus balance available.",
                requested=wanted.amount,
            ),
        )

    applied = money_min(wanted, max_applicable)
    if applied < wanted:
        trace = trace.passed(
            "bonus_ceiling", f"Bonus limited to {applied}.",
            code=ReasonCode.BONUS_CLAMPED,
            requested=wanted.amount, balance=balance.amount,
            ceiling=ceiling.amount,
        )
    else:
        trace = trace.passed(
            "bonus_ceiling", f"Bonus of {applied} applied.",
            ceiling=ceiling.amount,
        )

    if (ceiling - applied).is_negative():
        applied = ceiling
    return BonusDecision(
        applied=applied, ceiling=ceiling, max_applicable=max_applicable,
        trace=trace,
    )
