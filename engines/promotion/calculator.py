"""
Rewards Promotion Engine - Discount Calculator
===============================================
Computes the voucher discount for a cart.

Gates (in order, any failure => zero discount, no partial credit):
    1. required fields present (coerce_rule)
    2. subtotal >= min_purchase
    3. outlet restriction

Paths:
    A. Order level: ORDER_TOTAL scope, or PRODUCT_LEVEL + TOTAL_ONCE.
       Computed once against the whole subtotal.
    B. Per product: PRODUCT_LEVEL + PER_PRODUCT.
       Eligibility resolved line by line in cart order.

The result never exceeds the subtotal and never goes below zero.
Business-rule mismatches are trace entries, never exceptions.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import Optional, Sequence, Tuple, Union

from core.commands.rejection import ReasonCode
from core.config.rules import DEFAULT_CURRENCY, PricingConfig
from core.policy.result import DecisionTrace
from core.primitives.item import LineItem, cart_subtotal
from core.primitives.money import Money, money_min
from engines.promotion.eligibility import resolve_all
from engines.promotion.rules import (
    FixedAmountDiscount,
    FreeGiftDiscount,
    PercentDiscount,
    RuleSource,
    VoucherRule,
    coerce_rule,
)

PATH_ORDER = "order"
PATH_PER_PRODUCT = "per_product"


@dataclass(frozen=True)
class VoucherDiscountResult:
    amount: Money
    path: Optional[str] = None
    capped: bool = False
    rule: Optional[VoucherRule] = None
    trace: DecisionTrace = field(default_factory=DecisionTrace)

    @property
    def applied(self) -> bool:
        return not self.amount.is_zero()


@dataclass(frozen=True)
class ItemDiscount:
    """Per-line voucher discount for display and order audit."""
    item_id: str
    kind: str
    value: Union[Decimal, Money]
    unit_discount: Money
    discounted_quantity: int
    total_quantity: int
    amount: Money
    max_reached: bool

    def to_dict(self) -> dict:
        return {
            "item_id": self.item_id,
            "kind": self.kind,
            "value": (
                self.value.to_dict() if isinstance(self.value, Money)
                else str(self.value)
            ),
            "unit_discount": self.unit_discount.to_dict(),
            "discounted_quantity": self.discounted_quantity,
            "total_quantity": self.total_quantity,
            "amount": self.amount.to_dict(),
            "max_reached": self.max_reached,
        }


# ══════════════════════════════════════════════════════════════
# GATES
# ══════════════════════════════════════════════════════════════

def check_gates(
    rule: VoucherRule, subtotal: Money, outlet_id: Optional[str],
) -> DecisionTrace:
    """Evaluate gates 2 and 3. Stops at the first failure."""
    trace = DecisionTrace()
    minimum = rule.min_purchase_for(subtotal.currency)
    if subtotal < minimum:
        return trace.failed(
            "min_purchase_gate", ReasonCode.MIN_PURCHASE_NOT_MET,
            f"This voucher requires a minimum purchase of {minimum}.",
            subtotal=subtotal.amount, min_purchase=minimum.amount,
        )
    trace = trace.passed(
        "min_purchase_gate", "Minimum purchase met.",
        subtotal=subtotal.amount, min_purchase=minimum.amount,
    )

    restriction = rule.outlet_restriction
    if restriction.is_specific:
        if not restriction.outlet_ids:
            return trace.failed(
                "outlet_gate", ReasonCode.OUTLET_LIST_EMPTY,
                "Voucher is restricted to specific outlets but lists none.",
            )
        if not outlet_id or outlet_id not in restriction.outlet_ids:
            return trace.failed(
                "outlet_gate", ReasonCode.OUTLET_NOT_ELIGIBLE,
                "Voucher is not valid at this outlet.",
                outlet_id=outlet_id,
                applicable_outlet_ids=sorted(restriction.outlet_ids),
            )
        return trace.passed("outlet_gate", "Voucher valid at this outlet.",
                            outlet_id=outlet_id)
    return trace.passed("outlet_gate", "Voucher valid at all outlets.")


def _apply_cap(
    rule: VoucherRule, amount: Money, trace: DecisionTrace,
) -> Tuple[Money, bool, DecisionTrace]:
    cap = rule.max_discount_cap
    if cap is not None and amount > cap:
        return cap, True, trace.passed(
            "max_discount_cap", f"Discount capped at {cap}.",
            code=ReasonCode.DISCOUNT_CAPPED, raw=amount.amount, cap=cap.amount,
        )
    return amount, False, trace


# ══════════════════════════════════════════════════════════════
# PATH A - ORDER LEVEL
# ══════════════════════════════════════════════════════════════

def _order_level_discount(
    rule: VoucherRule, subtotal: Money, trace: DecisionTrace,
) -> Tuple[Money, bool, DecisionTrace]:
    discount = rule.discount
    if isinstance(discount, PercentDiscount):
        raw = subtotal.percent(discount.value)
        trace = trace.passed(
            "order_discount", f"{discount.value}% of subtotal.",
            raw=raw.amount,
        )
        return _apply_cap(rule, raw, trace)
    if isinstance(discount, FixedAmountDiscount):
        amount = money_min(discount.value, subtotal)
        return amount, False, trace.passed(
            "order_discount", f"{discount.value} off the order.",
            amount=amount.amount,
        )
    if isinstance(discount, FreeGiftDiscount):
        return Money.zero(subtotal.currency), False, trace.passed(
            "order_discount",
            "Free gift is handed over as a separate line; no price reduction.",
            code=ReasonCode.FREE_GIFT_NO_PRICE_REDUCTION,
            gift_name=discount.gift_name,
        )
    raise TypeError(f"Unhandled discount variant: {type(discount).__name__}")


# ══════════════════════════════════════════════════════════════
# PATH B - PER PRODUCT
# ══════════════════════════════════════════════════════════════

def _line_outcomes(trace: DecisionTrace) -> DecisionTrace:
    """Per-line misses are informational once the voucher itself applies."""
    return DecisionTrace.of(replace(e, passed=True) for e in trace.entries)


def _per_product_discount(
    rule: VoucherRule,
    items: Sequence[LineItem],
    subtotal: Money,
    trace: DecisionTrace,
) -> Tuple[Money, bool, DecisionTrace]:
    currency = subtotal.currency
    decisions = resolve_all(rule, items)
    for decision in decisions:
        trace = trace.extend(_line_outcomes(decision.trace))
    if not any(d.eligible for d in decisions):
        first = next((e for d in decisions for e in d.trace.failures), None)
        return Money.zero(currency), False, trace.failed(
            "per_product_eligibility",
            first.code if first else ReasonCode.ITEM_NOT_ELIGIBLE,
            "No item in the cart qualifies for this voucher.",
        )

    discount = rule.discount
    capped = False
    if isinstance(discount, PercentDiscount):
        total = Money.zero(currency)
        for item, decision in zip(items, decisions):
            if decision.eligible:
                total = total + item.unit_price.multiply(
                    decision.discountable_quantity
                ).percent(discount.value)
        total, capped, trace = _apply_cap(rule, total, trace)
    elif isinstance(discount, FixedAmountDiscount):
        discounted_units = sum(d.discountable_quantity for d in decisions)
        effective_count = min(discounted_units, rule.max_products_per_use)
        total = discount.value.multiply(effective_count)
        trace = trace.passed(
            "per_product_discount",
            f"{discount.value} x {effective_count} unit(s).",
            effective_count=effective_count,
        )
    elif isinstance(discount, FreeGiftDiscount):
        total = Money.zero(currency)
        trace = trace.passed(
            "per_product_discount",
            "Free gift is handed over as a separate line; no price reduction.",
            code=ReasonCode.FREE_GIFT_NO_PRICE_REDUCTION,
            gift_name=discount.gift_name,
        )
    else:
        raise TypeError(f"Unhandled discount variant: {type(discount).__name__}")

    if total > subtotal:
        trace = trace.passed(
            "subtotal_cap", "Discount capped at the subtotal.",
            raw=total.amount, subtotal=subtotal.amount,
        )
        total = subtotal
        capped = True
    return total, capped, trace


# ══════════════════════════════════════════════════════════════
# PUBLIC API
# ══════════════════════════════════════════════════════════════

def compute_voucher_discount(
    rule: RuleSource,
    items: Sequence[LineItem],
    outlet_id: Optional[str],
    subtotal: Optional[Money] = None,
    currency: str = DEFAULT_CURRENCY,
    config: Optional[PricingConfig] = None,
) -> VoucherDiscountResult:
    """
    Total voucher discount for the cart, with its decision trace.

    `rule` may be a VoucherRule, a raw catalog record, or None.
    `items` must be in stable cart order.
    """
    if subtotal is None:
        subtotal = cart_subtotal(items, currency)
    zero = Money.zero(subtotal.currency)

    resolved, trace = coerce_rule(rule, currency=subtotal.currency, config=config)
    if resolved is None:
        return VoucherDiscountResult(amount=zero, trace=trace)

    trace = trace.extend(check_gates(resolved, subtotal, outlet_id))
    if trace.has_failures:
        return VoucherDiscountResult(amount=zero, rule=resolved, trace=trace)

    if resolved.is_per_product:
        path = PATH_PER_PRODUCT
        amount, capped, trace = _per_product_discount(
            resolved, items, subtotal, trace,
        )
    else:
        path = PATH_ORDER
        amount, capped, trace = _order_level_discount(resolved, subtotal, trace)

    amount = money_min(amount.clamp_non_negative(), subtotal.clamp_non_negative())
    return VoucherDiscountResult(
        amount=amount, path=path, capped=capped, rule=resolved, trace=trace,
    )


def compute_item_discounts(
    rule: RuleSource,
    items: Sequence[LineItem],
    outlet_id: Optional[str],
    subtotal: Optional[Money] = None,
    currency: str = DEFAULT_CURRENCY,
    config: Optional[PricingConfig] = None,
) -> Tuple[Optional[ItemDiscount], ...]:
    """
    Line-level breakdown for PER_PRODUCT vouchers, aligned with `items`.

    Lines without a discount, and every line of an order-level voucher,
    are None.
    """
    if subtotal is None:
        subtotal = cart_subtotal(items, currency)
    resolved, _ = coerce_rule(rule, currency=subtotal.currency, config=config)
    if resolved is None or not resolved.is_per_product:
        return tuple(None for _ in items)
    if check_gates(resolved, subtotal, outlet_id).has_failures:
        return tuple(None for _ in items)

    discount = resolved.discount
    decisions = resolve_all(resolved, items)
    consumed = 0
    breakdown = []
    for item, decision in zip(items, decisions):
        if decision.matches_criterion:
            consumed += item.quantity
        if not decision.eligible or isinstance(discount, FreeGiftDiscount):
            breakdown.append(None)
            continue
        qty = decision.discountable_quantity
        if isinstance(discount, PercentDiscount):
            value: Union[Decimal, Money] = discount.value
            unit_discount = item.unit_price.percent(discount.value)
            amount = item.unit_price.multiply(qty).percent(discount.value)
        elif isinstance(discount, FixedAmountDiscount):
            value = discount.value
            unit_discount = discount.value
            amount = discount.value.multiply(qty)
        else:
            raise TypeError(
                f"Unhandled discount variant: {type(discount).__name__}"
            )
        breakdown.append(ItemDiscount(
            item_id=item.id,
            kind=discount.kind,
            value=value,
            unit_discount=unit_discount,
            discounted_quantity=qty,
            total_quantity=item.quantity,
            amount=amount,
            max_reached=consumed >= resolved.max_products_per_use,
        ))
    return tuple(breakdown)


def compute_item_discount(
    rule: RuleSource,
    items: Sequence[LineItem],
    index: int,
    outlet_id: Optional[str],
    subtotal: Optional[Money] = None,
    currency: str = DEFAULT_CURRENCY,
    config: Optional[PricingConfig] = None,
) -> Optional[ItemDiscount]:
    """Discount for the line at `index`, or None."""
    if not 0 <= index < len(items):
        raise IndexError(f"index {index} out of range for {len(items)} item(s).")
    return compute_item_discounts(
        rule, items, outlet_id, subtotal=subtotal, currency=currency,
        config=config,
    )[index]
