"""
Rewards Retail Engine - Cart Session Events
============================================
Engine: Retail (Storefront Cart)

Every change to a cart session is one of these events. The session
reducer (engines.retail.session) folds them into CartSessionState.
Each event carries a versioned event_type and a JSON-ready payload()
for audit logs.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from core.primitives.item import LineItem
from core.primitives.money import Money
from engines.promotion.rules import AppliedVoucherSelection


# ══════════════════════════════════════════════════════════════
# EVENT TYPE CONSTANTS
# ══════════════════════════════════════════════════════════════

CART_ITEM_ADDED_V1 = "retail.cart.item_added.v1"
CART_ITEM_QUANTITY_CHANGED_V1 = "retail.cart.item_quantity_changed.v1"
CART_ITEM_REMOVED_V1 = "retail.cart.item_removed.v1"
CART_VOUCHER_SELECTED_V1 = "retail.cart.voucher_selected.v1"
CART_VOUCHER_CLEARED_V1 = "retail.cart.voucher_cleared.v1"
CART_BONUS_SET_V1 = "retail.cart.bonus_set.v1"
CART_BONUS_CLEARED_V1 = "retail.cart.bonus_cleared.v1"

CART_EVENT_TYPES = (
    CART_ITEM_ADDED_V1,
    CART_ITEM_QUANTITY_CHANGED_V1,
    CART_ITEM_REMOVED_V1,
    CART_VOUCHER_SELECTED_V1,
    CART_VOUCHER_CLEARED_V1,
    CART_BONUS_SET_V1,
    CART_BONUS_CLEARED_V1,
)


# ══════════════════════════════════════════════════════════════
# EVENTS
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class AddItem:
    """Add a line, or merge into a line of the same product and price."""
    item: LineItem
    outlet_id: str

    event_type = CART_ITEM_ADDED_V1

    def __post_init__(self):
        if not isinstance(self.item, LineItem):
            raise TypeError("item must be LineItem.")
        if not self.outlet_id or not isinstance(self.outlet_id, str):
            raise ValueError("outlet_id must be a non-empty string.")

    def payload(self) -> dict:
        return {"item": self.item.to_dict(), "outlet_id": self.outlet_id}


@dataclass(frozen=True)
class ChangeQuantity:
    item_id: str
    quantity: int

    event_type = CART_ITEM_QUANTITY_CHANGED_V1

    def __post_init__(self):
        if isinstance(self.quantity, bool) or not isinstance(self.quantity, int):
            raise TypeError("quantity must be int.")
        if self.quantity < 1:
            raise ValueError("quantity must be >= 1. Use RemoveItem instead.")

    def payload(self) -> dict:
        return {"item_id": self.item_id, "quantity": self.quantity}


@dataclass(frozen=True)
class RemoveItem:
    item_id: str

    event_type = CART_ITEM_REMOVED_V1

    def payload(self) -> dict:
        return {"item_id": self.item_id}


@dataclass(frozen=True)
class SelectVoucher:
    """
    Pick a voucher for the cart.

    While a bonus is applied the caller must pass
    confirm_bonus_removal=True; the bonus is then cleared.
    """
    selection: AppliedVoucherSelection
    confirm_bonus_removal: bool = False

    event_type = CART_VOUCHER_SELECTED_V1

    def __post_init__(self):
        if not isinstance(self.selection, AppliedVoucherSelection):
            raise TypeError("selection must be AppliedVoucherSelection.")

    def payload(self) -> dict:
        return {
            "voucher_code": self.selection.rule.code,
            "selection_id": self.selection.selection_id,
            "confirm_bonus_removal": self.confirm_bonus_removal,
        }


@dataclass(frozen=True)
class ClearVoucher:
    event_type = CART_VOUCHER_CLEARED_V1

    def payload(self) -> dict:
        return {}


@dataclass(frozen=True)
class SetBonus:
    """Apply `amount` of bonus; bonus_balance is the wallet balance now."""
    amount: Money
    bonus_balance: Money

    event_type = CART_BONUS_SET_V1

    def __post_init__(self):
        if not isinstance(self.amount, Money):
            raise TypeError("amount must be Money.")
        if not isinstance(self.bonus_balance, Money):
            raise TypeError("bonus_balance must be Money.")

    def payload(self) -> dict:
        return {
            "amount": self.amount.to_dict(),
            "bonus_balance": self.bonus_balance.to_dict(),
        }


@dataclass(frozen=True)
class ClearBonus:
    event_type = CART_BONUS_CLEARED_V1

    def payload(self) -> dict:
        return {}


CartEvent = Union[
    AddItem, ChangeQuantity, RemoveItem,
    SelectVoucher, ClearVoucher, SetBonus, ClearBonus,
]
