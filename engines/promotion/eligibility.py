"""
Rewards Promotion Engine - Eligibility Resolver
================================================
Decides whether a cart line qualifies for a PER_PRODUCT voucher and
how many of its units may be discounted.

Slots (max_products_per_use) are consumed in cart order, first come
first served, and never redistributed. The same items in the same
order always yield the same discounted subset.

Pure functions. No logging, no I/O.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Sequence, Tuple

from core.commands.rejection import ReasonCode
from core.policy.result import DecisionTrace
from core.primitives.item import LineItem
from engines.promotion.rules import CriterionKind, VoucherRule


@dataclass(frozen=True)
class EligibilityDecision:
    """
    Outcome for one line.

    applicable:            False when the rule is not PER_PRODUCT; the
                           whole-order path handles it instead.
    matches_criterion:     The line satisfies the rule's criterion.
    eligible:              The line receives a discount (match + free slots).
    discountable_quantity: Units of this line that are discounted.
    """
    applicable: bool
    matches_criterion: bool
    eligible: bool
    discountable_quantity: int
    trace: DecisionTrace = field(default_factory=DecisionTrace)


def _item_key(item: LineItem, kind: CriterionKind) -> Optional[str]:
    if kind == CriterionKind.PRODUCT:
        return item.product_id
    if kind == CriterionKind.CATEGORY:
        return item.category_id
    return item.subcategory_id


def matches_criterion(rule: VoucherRule, item: LineItem) -> bool:
    """Membership test against the rule's first declared criterion."""
    criterion = rule.eligibility.active_criterion()
    if criterion is None:
        return False
    kind, ids = criterion
    key = _item_key(item, kind)
    return key is not None and key in ids


def resolve(
    rule: VoucherRule,
    item: LineItem,
    preceding_items: Sequence[LineItem] = (),
) -> EligibilityDecision:
    """
    Resolve one line against a PER_PRODUCT voucher.

    preceding_items are the lines before `item` in the stable cart order.
    Their matching quantities consume slots whether or not they were
    themselves fully discounted.
    """
    trace = DecisionTrace()
    if not rule.is_per_product:
        return EligibilityDecision(
            applicable=False, matches_criterion=False, eligible=False,
            discountable_quantity=0,
            trace=trace.passed(
                "per_product_scope", "Voucher applies to the whole order.",
                item_id=item.id,
            ),
        )

    criterion = rule.eligibility.active_criterion()
    if criterion is None:
        return EligibilityDecision(
            applicable=True, matches_criterion=False, eligible=False,
            discountable_quantity=0,
            trace=trace.failed(
                "eligibility_criterion", ReasonCode.NO_ELIGIBILITY_CRITERION,
                f"Voucher '{rule.code}' is product-level but declares no "
                f"product, category or subcategory.",
                item_id=item.id,
            ),
        )

    kind, _ = criterion
    if not matches_criterion(rule, item):
        return EligibilityDecision(
            applicable=True, matches_criterion=False, eligible=False,
            discountable_quantity=0,
            trace=trace.failed(
                "eligibility_criterion", ReasonCode.ITEM_NOT_ELIGIBLE,
                f"Item {item.id} does not match the voucher's {kind.value} list.",
                item_id=item.id, criterion=kind.value,
                value=_item_key(item, kind),
            ),
        )

    discounted_before = sum(
        prev.quantity for prev in preceding_items if matches_criterion(rule, prev)
    )
    remaining_slots = max(0, rule.max_products_per_use - discounted_before)
    quantity = min(item.quantity, remaining_slots)
    if quantity == 0:
        return EligibilityDecision(
            applicable=True, matches_criterion=True, eligible=False,
            discountable_quantity=0,
            trace=trace.failed(
                "product_slots", ReasonCode.PRODUCT_SLOTS_EXHAUSTED,
                f"All {rule.max_products_per_use} discounted product slots "
                f"were used by earlier items.",
                item_id=item.id, discounted_before=discounted_before,
            ),
        )
    return EligibilityDecision(
        applicable=True, matches_criterion=True, eligible=True,
        discountable_quantity=quantity,
        trace=trace.passed(
            "product_slots",
            f"{quantity} of {item.quantity} unit(s) discounted.",
            item_id=item.id, discounted_before=discounted_before,
            remaining_slots=remaining_slots,
        ),
    )


def resolve_all(
    rule: VoucherRule, items: Sequence[LineItem],
) -> Tuple[EligibilityDecision, ...]:
    """Resolve every line in cart order."""
    return tuple(
        resolve(rule, item, items[:index]) for index, item in enumerate(items)
    )


def eligible_unit_count(rule: VoucherRule, items: Sequence[LineItem]) -> int:
    """Units in the cart matching the criterion, before the slot cap."""
    if not rule.is_per_product:
        return 0
    return sum(item.quantity for item in items if matches_criterion(rule, item))


def is_max_reached(rule: VoucherRule, items: Sequence[LineItem]) -> bool:
    """True when more units match than the voucher can discount."""
    if not rule.is_per_product:
        return False
    return eligible_unit_count(rule, items) > rule.max_products_per_use
