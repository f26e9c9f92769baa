"""
Rewards Promotion Engine - Policies
====================================
Authoring guards (run when a voucher is saved) and selection guards
(run when a user picks a voucher for the cart).

Every policy returns Optional[RejectionReason]. A misconfigured voucher
is rejected at save time; it is never corrected at pricing time.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable, List, Optional, Tuple

from core.commands.rejection import ReasonCode, RejectionReason
from core.config.rules import PricingConfig
from core.primitives.money import Money
from engines.promotion.errors import VoucherConfigurationError
from engines.promotion.rules import (
    ApplicationScope,
    AppliedVoucherSelection,
    FixedAmountDiscount,
    FreeGiftDiscount,
    PercentDiscount,
    VoucherRule,
)

logger = logging.getLogger("rewards.promotion")

GIFT_NAME_MIN_LENGTH = 3
GIFT_NAME_MAX_LENGTH = 50


# ══════════════════════════════════════════════════════════════
# AUTHORING POLICIES
# ══════════════════════════════════════════════════════════════

def percent_value_policy(
    rule: VoucherRule, config: PricingConfig,
) -> Optional[RejectionReason]:
    """Percent vouchers take a value in (0, 100]."""
    d = rule.discount
    if isinstance(d, PercentDiscount) and not Decimal("0") < d.value <= Decimal("100"):
        return RejectionReason(
            code=ReasonCode.INVALID_PERCENT_VALUE,
            message=f"Percent value must be between 0 and 100, got {d.value}.",
            policy_name="percent_value_policy",
        )
    return None


def fixed_value_policy(
    rule: VoucherRule, config: PricingConfig,
) -> Optional[RejectionReason]:
    d = rule.discount
    if isinstance(d, FixedAmountDiscount) and d.value.amount <= 0:
        return RejectionReason(
            code=ReasonCode.INVALID_FIXED_VALUE,
            message="Fixed discount amount must be greater than 0.",
            policy_name="fixed_value_policy",
        )
    return None


def gift_name_policy(
    rule: VoucherRule, config: PricingConfig,
) -> Optional[RejectionReason]:
    d = rule.discount
    if not isinstance(d, FreeGiftDiscount):
        return None
    length = len(d.gift_name.strip())
    if not GIFT_NAME_MIN_LENGTH <= length <= GIFT_NAME_MAX_LENGTH:
        return RejectionReason(
            code=ReasonCode.INVALID_GIFT_NAME,
            message=(
                f"Free gift name must be {GIFT_NAME_MIN_LENGTH}-"
                f"{GIFT_NAME_MAX_LENGTH} characters."
            ),
            policy_name="gift_name_policy",
        )
    return None


def discount_cap_policy(
    rule: VoucherRule, config: PricingConfig,
) -> Optional[RejectionReason]:
    """A discount cap, when set, must be a positive amount."""
    cap = rule.max_discount_cap
    if cap is not None and cap.amount <= 0:
        return RejectionReason(
            code=ReasonCode.INVALID_DISCOUNT_CAP,
            message="Maximum discount amount must be greater than 0.",
            policy_name="discount_cap_policy",
        )
    return None


def single_eligibility_criterion_policy(
    rule: VoucherRule, config: PricingConfig,
) -> Optional[RejectionReason]:
    """
    Product-level vouchers declare exactly one of products, categories
    or subcategories.
    """
    if rule.application_scope != ApplicationScope.PRODUCT_LEVEL:
        return None
    declared = rule.eligibility.declared_criteria()
    if not declared:
        return RejectionReason(
            code=ReasonCode.NO_ELIGIBILITY_CRITERION,
            message=(
                "Product-level vouchers must select products, categories "
                "or subcategories."
            ),
            policy_name="single_eligibility_criterion_policy",
        )
    if len(declared) > 1:
        return RejectionReason(
            code=ReasonCode.AMBIGUOUS_ELIGIBILITY,
            message=(
                "Select only one of products, categories or subcategories, "
                f"got {', '.join(k.value for k in declared)}."
            ),
            policy_name="single_eligibility_criterion_policy",
        )
    return None


def max_products_policy(
    rule: VoucherRule, config: PricingConfig,
) -> Optional[RejectionReason]:
    if rule.application_scope != ApplicationScope.PRODUCT_LEVEL:
        return None
    limit = config.max_products_per_use_limit
    if not 1 <= rule.max_products_per_use <= limit:
        return RejectionReason(
            code=ReasonCode.INVALID_MAX_PRODUCTS,
            message=f"Max products per use must be between 1 and {limit}.",
            policy_name="max_products_policy",
        )
    return None


def outlet_list_policy(
    rule: VoucherRule, config: PricingConfig,
) -> Optional[RejectionReason]:
    restriction = rule.outlet_restriction
    if restriction.is_specific and not restriction.outlet_ids:
        return RejectionReason(
            code=ReasonCode.OUTLET_LIST_EMPTY,
            message="Select at least one outlet for an outlet-restricted voucher.",
            policy_name="outlet_list_policy",
        )
    return None


def min_purchase_policy(
    rule: VoucherRule, config: PricingConfig,
) -> Optional[RejectionReason]:
    if rule.min_purchase is not None and rule.min_purchase.is_negative():
        return RejectionReason(
            code=ReasonCode.INVALID_MIN_PURCHASE,
            message="Minimum purchase cannot be negative.",
            policy_name="min_purchase_policy",
        )
    return None


AuthoringPolicy = Callable[[VoucherRule, PricingConfig], Optional[RejectionReason]]

AUTHORING_POLICIES: List[AuthoringPolicy] = [
    percent_value_policy,
    fixed_value_policy,
    gift_name_policy,
    discount_cap_policy,
    single_eligibility_criterion_policy,
    max_products_policy,
    outlet_list_policy,
    min_purchase_policy,
]


def validate_voucher_rule(
    rule: VoucherRule, config: Optional[PricingConfig] = None,
) -> Tuple[RejectionReason, ...]:
    """Run every authoring policy. Empty tuple means the voucher may be saved."""
    config = config or PricingConfig()
    reasons = []
    for policy in AUTHORING_POLICIES:
        rejection = policy(rule, config)
        if rejection is not None:
            reasons.append(rejection)
    return tuple(reasons)


def ensure_valid_voucher(
    rule: VoucherRule, config: Optional[PricingConfig] = None,
) -> VoucherRule:
    reasons = validate_voucher_rule(rule, config)
    if reasons:
        logger.warning(
            f"Voucher '{rule.code}' rejected at save: "
            f"{', '.join(r.code for r in reasons)}"
        )
        raise VoucherConfigurationError(rule.code, reasons)
    return rule


# ══════════════════════════════════════════════════════════════
# SELECTION POLICIES
# ══════════════════════════════════════════════════════════════

def _now_like(expires_at: datetime, now: Optional[datetime]) -> datetime:
    if now is None:
        now = datetime.now(timezone.utc)
    if expires_at.tzinfo is None and now.tzinfo is not None:
        return now.astimezone(timezone.utc).replace(tzinfo=None)
    if expires_at.tzinfo is not None and now.tzinfo is None:
        return now.replace(tzinfo=timezone.utc)
    return now


def voucher_active_policy(
    selection: AppliedVoucherSelection, subtotal: Money,
    now: Optional[datetime] = None,
) -> Optional[RejectionReason]:
    if not selection.rule.is_active:
        return RejectionReason(
            code=ReasonCode.VOUCHER_INACTIVE,
            message=f"Voucher '{selection.rule.code}' is no longer active.",
            policy_name="voucher_active_policy",
        )
    return None


def voucher_not_expired_policy(
    selection: AppliedVoucherSelection, subtotal: Money,
    now: Optional[datetime] = None,
) -> Optional[RejectionReason]:
    expires_at = selection.rule.expires_at
    if expires_at is None:
        return None
    if _now_like(expires_at, now) >= expires_at:
        return RejectionReason(
            code=ReasonCode.VOUCHER_EXPIRED,
            message=f"Voucher '{selection.rule.code}' expired on {expires_at.date()}.",
            policy_name="voucher_not_expired_policy",
        )
    return None


def voucher_uses_remaining_policy(
    selection: AppliedVoucherSelection, subtotal: Money,
    now: Optional[datetime] = None,
) -> Optional[RejectionReason]:
    if not selection.has_remaining_uses:
        return RejectionReason(
            code=ReasonCode.VOUCHER_USAGE_EXHAUSTED,
            message=(
                f"Voucher '{selection.rule.code}' used "
                f"{selection.usage_count}/{selection.max_usage_count} times."
            ),
            policy_name="voucher_uses_remaining_policy",
        )
    return None


def voucher_min_purchase_policy(
    selection: AppliedVoucherSelection, subtotal: Money,
    now: Optional[datetime] = None,
) -> Optional[RejectionReason]:
    minimum = selection.rule.min_purchase_for(subtotal.currency)
    if subtotal < minimum:
        return RejectionReason(
            code=ReasonCode.MIN_PURCHASE_NOT_MET,
            message=f"Add {minimum - subtotal} more to use this voucher.",
            policy_name="voucher_min_purchase_policy",
        )
    return None


SELECTION_POLICIES = [
    voucher_active_policy,
    voucher_not_expired_policy,
    voucher_uses_remaining_policy,
    voucher_min_purchase_policy,
]


def selection_rejections(
    selection: AppliedVoucherSelection, subtotal: Money,
    now: Optional[datetime] = None,
) -> Tuple[RejectionReason, ...]:
    return tuple(
        r for r in (p(selection, subtotal, now) for p in SELECTION_POLICIES)
        if r is not None
    )


def voucher_selectable_policy(
    selection: AppliedVoucherSelection, subtotal: Money,
    now: Optional[datetime] = None,
) -> Optional[RejectionReason]:
    """First reason the selection cannot be used right now, or None."""
    reasons = selection_rejections(selection, subtotal, now)
    return reasons[0] if reasons else None
