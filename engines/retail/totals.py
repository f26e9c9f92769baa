"""
Rewards Retail Engine - Cart Total Aggregator
==============================================
Composes subtotal, member tier discount, voucher discount and bonus into
the payable total.

    subtotal       = sum(unit_price x quantity)
    tier_discount  = subtotal x tier_pct / 100
    voucher        = Discount Calculator, limited to subtotal - tier
    bonus          = stored bonus amount, re-clamped on every call
    payable_total  = max(0, subtotal - tier - voucher - bonus)

Always recomputed from the given state. Nothing here is cached.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Mapping, Optional, Sequence, Tuple, Union

from core.config.rules import PricingConfig
from core.policy.result import DecisionTrace
from core.primitives.item import LineItem, cart_subtotal
from core.primitives.money import Money, money_min
from engines.loyalty.points import loyalty_points_projection
from engines.promotion.calculator import (
    PATH_PER_PRODUCT,
    ItemDiscount,
    compute_item_discounts,
    compute_voucher_discount,
)
from engines.promotion.eligibility import is_max_reached
from engines.promotion.rules import AppliedVoucherSelection, VoucherRule
from engines.wallet.bonus import apply_bonus

DISCOUNT_TYPE_VOUCHER = "voucher"
DISCOUNT_TYPE_TIER = "tier"
DISCOUNT_TYPE_NONE = "none"

VoucherSource = Union[
    VoucherRule, AppliedVoucherSelection, Mapping[str, Any], None,
]


@dataclass(frozen=True)
class OrderLineBreakdown:
    """How one line's price was reduced, for the order record."""
    item_id: str
    product_id: str
    quantity: int
    line_subtotal: Money
    voucher_discount: Money
    tier_discount: Money
    final_price: Money
    discount_type: str
    item_discount: Optional[ItemDiscount] = None

    def to_dict(self) -> dict:
        return {
            "item_id": self.item_id,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "line_subtotal": self.line_subtotal.to_dict(),
            "voucher_discount": self.voucher_discount.to_dict(),
            "tier_discount": self.tier_discount.to_dict(),
            "final_price": self.final_price.to_dict(),
            "discount_type": self.discount_type,
        }


@dataclass(frozen=True)
class CartTotals:
    subtotal: Money
    tier_discount: Money
    voucher_discount: Money
    bonus_discount: Money
    payable_total: Money
    item_breakdown: Tuple[OrderLineBreakdown, ...] = ()
    voucher_max_reached: bool = False
    trace: DecisionTrace = field(default_factory=DecisionTrace)

    @property
    def currency(self) -> str:
        return self.subtotal.currency

    @property
    def total_savings(self) -> Money:
        return self.tier_discount + self.voucher_discount + self.bonus_discount

    def loyalty_points_projection(
        self, payment_method_kind: str, config: Optional[PricingConfig] = None,
    ) -> int:
        return loyalty_points_projection(
            self.payable_total, payment_method_kind, config,
        )

    def to_dict(self) -> dict:
        return {
            "subtotal": self.subtotal.to_dict(),
            "tier_discount": self.tier_discount.to_dict(),
            "voucher_discount": self.voucher_discount.to_dict(),
            "bonus_discount": self.bonus_discount.to_dict(),
            "payable_total": self.payable_total.to_dict(),
            "total_savings": self.total_savings.to_dict(),
            "voucher_max_reached": self.voucher_max_reached,
            "item_breakdown": [line.to_dict() for line in self.item_breakdown],
            "trace": self.trace.to_dict(),
        }


def _voucher_rule_source(voucher: VoucherSource):
    if isinstance(voucher, AppliedVoucherSelection):
        return voucher.rule
    return voucher


def _line_voucher_shares(
    item_discounts: Sequence[Optional[ItemDiscount]],
    voucher_discount: Money,
) -> Tuple[Money, ...]:
    """
    Per-line voucher shares that add up to the capped voucher discount.

    When a cap cut the total, the excess is taken back from the last
    discounted lines first.
    """
    currency = voucher_discount.currency
    shares = [
        d.amount if d is not None else Money.zero(currency)
        for d in item_discounts
    ]
    excess = sum(s.amount for s in shares) - voucher_discount.amount
    for index in range(len(shares) - 1, -1, -1):
        if excess <= 0:
            break
        take = min(excess, shares[index].amount)
        shares[index] = Money(shares[index].amount - take, currency)
        excess -= take
    return tuple(shares)


def build_item_breakdown(
    items: Sequence[LineItem],
    item_discounts: Sequence[Optional[ItemDiscount]],
    voucher_discount: Money,
    tier_pct: Decimal,
) -> Tuple[OrderLineBreakdown, ...]:
    shares = _line_voucher_shares(item_discounts, voucher_discount)
    lines = []
    for item, discount, share in zip(items, item_discounts, shares):
        line_subtotal = item.line_total
        tier_share = line_subtotal.percent(tier_pct)
        final_price = (line_subtotal - share - tier_share).clamp_non_negative()
        if not share.is_zero():
            discount_type = DISCOUNT_TYPE_VOUCHER
        elif not tier_share.is_zero():
            discount_type = DISCOUNT_TYPE_TIER
        else:
            discount_type = DISCOUNT_TYPE_NONE
        lines.append(OrderLineBreakdown(
            item_id=item.id,
            product_id=item.product_id,
            quantity=item.quantity,
            line_subtotal=line_subtotal,
            voucher_discount=share,
            tier_discount=tier_share,
            final_price=final_price,
            discount_type=discount_type,
            item_discount=discount,
        ))
    return tuple(lines)


def compute_totals(
    items: Sequence[LineItem],
    voucher: VoucherSource = None,
    bonus_amount: Optional[Money] = None,
    outlet_id: Optional[str] = None,
    config: Optional[PricingConfig] = None,
    tier_id: Optional[str] = None,
    tier_discount_pct: Optional[Decimal] = None,
    bonus_balance: Optional[Money] = None,
) -> CartTotals:
    """
    Totals for the cart as it is right now.

    bonus_amount is the amount stored on the session; it is clamped again
    against the current ceiling (and bonus_balance, when given).
    tier_discount_pct overrides the configured tier percentage.
    """
    config = config or PricingConfig()
    currency = items[0].currency if items else config.currency
    zero = Money.zero(currency)
    subtotal = cart_subtotal(items, currency)

    if tier_discount_pct is None:
        tier_discount_pct = config.tier_discount_pct(tier_id)
    tier_pct = Decimal(str(tier_discount_pct))
    tier_discount = money_min(subtotal.percent(tier_pct), subtotal)

    rule_source = _voucher_rule_source(voucher)
    voucher_result = compute_voucher_discount(
        rule_source, items, outlet_id, subtotal=subtotal, config=config,
    )
    trace = voucher_result.trace
    voucher_discount = money_min(
        voucher_result.amount, (subtotal - tier_discount).clamp_non_negative(),
    )

    requested = bonus_amount or zero
    bonus = apply_bonus(
        requested=requested,
        subtotal=subtotal,
        voucher_discount=voucher_discount,
        bonus_balance=bonus_balance if bonus_balance is not None else requested,
        tier_discount=tier_discount,
    )
    if not requested.is_zero():
        trace = trace.extend(bonus.trace)

    payable = (
        subtotal - tier_discount - voucher_discount - bonus.applied
    ).clamp_non_negative()

    rule = voucher_result.rule
    item_discounts = compute_item_discounts(
        rule, items, outlet_id, subtotal=subtotal,
    ) if rule is not None else tuple(None for _ in items)

    return CartTotals(
        subtotal=subtotal,
        tier_discount=tier_discount,
        voucher_discount=voucher_discount,
        bonus_discount=bonus.applied,
        payable_total=payable,
        item_breakdown=build_item_breakdown(
            items, item_discounts, voucher_discount, tier_pct,
        ),
        voucher_max_reached=(
            voucher_result.path == PATH_PER_PRODUCT
            and is_max_reached(rule, items)
        ),
        trace=trace,
    )
