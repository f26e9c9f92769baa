"""
Rewards Command Layer - Rejection Model
========================================
Structured reasons for a discount that did not apply, a voucher that
failed authoring validation, or a cart transition that was refused.

This is NOT an exception. It is an explanation structure that
callers render ("why didn't my voucher apply?") and persist for audit.

Every rejection must be:
- Deterministic (same input → same rejection)
- Auditable (code + message + policy)
- Machine-readable (code)
- Human-readable (message)
"""

from __future__ import annotations

from dataclasses import dataclass


# ══════════════════════════════════════════════════════════════
# REJECTION REASON (frozen explanation structure)
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class RejectionReason:
    """
    Structured reason for a refused decision.

    Fields:
        code:        Machine-readable code (e.g. 'MIN_PURCHASE_NOT_MET').
        message:     Human-readable explanation.
        policy_name: Name of the policy or gate that produced it.
    """

    code: str
    message: str
    policy_name: str

    def __post_init__(self):
        if not self.code or not isinstance(self.code, str):
            raise ValueError("code must be a non-empty string.")

        if not self.message or not isinstance(self.message, str):
            raise ValueError("message must be a non-empty string.")

        if not self.policy_name or not isinstance(self.policy_name, str):
            raise ValueError("policy_name must be a non-empty string.")

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "message": self.message,
            "policy_name": self.policy_name,
        }


# ══════════════════════════════════════════════════════════════
# STANDARD REJECTION CODES
# ══════════════════════════════════════════════════════════════

class ReasonCode:
    """
    Known rejection codes. Extensible by engines.

    Convention: SCREAMING_SNAKE_CASE.
    """

    # ── Voucher gates (pricing time) ──────────────────────────
    NO_VOUCHER = "NO_VOUCHER"
    MISSING_REQUIRED_FIELDS = "MISSING_REQUIRED_FIELDS"
    MIN_PURCHASE_NOT_MET = "MIN_PURCHASE_NOT_MET"
    OUTLET_LIST_EMPTY = "OUTLET_LIST_EMPTY"
    OUTLET_NOT_ELIGIBLE = "OUTLET_NOT_ELIGIBLE"
    NO_ELIGIBILITY_CRITERION = "NO_ELIGIBILITY_CRITERION"
    ITEM_NOT_ELIGIBLE = "ITEM_NOT_ELIGIBLE"
    PRODUCT_SLOTS_EXHAUSTED = "PRODUCT_SLOTS_EXHAUSTED"
    FREE_GIFT_NO_PRICE_REDUCTION = "FREE_GIFT_NO_PRICE_REDUCTION"
    DISCOUNT_CAPPED = "DISCOUNT_CAPPED"

    # ── Voucher authoring ─────────────────────────────────────
    INVALID_PERCENT_VALUE = "INVALID_PERCENT_VALUE"
    INVALID_FIXED_VALUE = "INVALID_FIXED_VALUE"
    INVALID_GIFT_NAME = "INVALID_GIFT_NAME"
    INVALID_DISCOUNT_CAP = "INVALID_DISCOUNT_CAP"
    AMBIGUOUS_ELIGIBILITY = "AMBIGUOUS_ELIGIBILITY"
    INVALID_MAX_PRODUCTS = "INVALID_MAX_PRODUCTS"
    INVALID_MIN_PURCHASE = "INVALID_MIN_PURCHASE"

    # ── Voucher selection ─────────────────────────────────────
    VOUCHER_INACTIVE = "VOUCHER_INACTIVE"
    VOUCHER_EXPIRED = "VOUCHER_EXPIRED"
    VOUCHER_USAGE_EXHAUSTED = "VOUCHER_USAGE_EXHAUSTED"

    # ── Bonus ─────────────────────────────────────────────────
    BONUS_CLAMPED = "BONUS_CLAMPED"
    NO_BONUS_BALANCE = "NO_BONUS_BALANCE"

    # ── Cart session ──────────────────────────────────────────
    OUTLET_MISMATCH = "OUTLET_MISMATCH"
    CURRENCY_MISMATCH = "CURRENCY_MISMATCH"
    ITEM_NOT_FOUND = "ITEM_NOT_FOUND"
    DUPLICATE_ITEM_ID = "DUPLICATE_ITEM_ID"
    BONUS_REMOVAL_REQUIRED = "BONUS_REMOVAL_REQUIRED"

    # ── Points ────────────────────────────────────────────────
    UNKNOWN_PAYMENT_METHOD = "UNKNOWN_PAYMENT_METHOD"
