"""
Rewards Retail Engine - Cart Session
=====================================
One user's cart at one outlet, with the selected voucher and bonus,
as a single immutable value.

    apply_event(state, event) -> new state
    replay(events, initial)   -> state after every event

Invariants enforced here:
- One outlet per cart.
- Removing a line clears the voucher and the bonus.
- Changing a quantity clears the bonus.
- Selecting a voucher while a bonus is applied needs explicit
  confirmation, and then clears the bonus.
- A stored bonus never exceeds what the Bonus Stacking Policy allows.

A refused event raises CartTransitionRejected and leaves the state as
it was.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Iterable, Optional, Tuple

from core.commands.rejection import ReasonCode, RejectionReason
from core.config.rules import PricingConfig
from core.primitives.item import LineItem
from core.primitives.money import Money
from engines.promotion.rules import AppliedVoucherSelection
from engines.retail.errors import CartTransitionRejected
from engines.retail.events import (
    AddItem,
    CartEvent,
    ChangeQuantity,
    ClearBonus,
    ClearVoucher,
    RemoveItem,
    SelectVoucher,
    SetBonus,
)
from engines.retail.totals import CartTotals, compute_totals
from engines.wallet.bonus import apply_bonus

logger = logging.getLogger("rewards.retail")


@dataclass(frozen=True)
class CartSessionState:
    user_id: str
    outlet_id: Optional[str] = None
    items: Tuple[LineItem, ...] = ()
    selection: Optional[AppliedVoucherSelection] = None
    bonus_amount: Optional[Money] = None

    def __post_init__(self):
        if not self.user_id or not isinstance(self.user_id, str):
            raise ValueError("user_id must be a non-empty string.")
        object.__setattr__(self, "items", tuple(self.items))

    @property
    def has_bonus(self) -> bool:
        return self.bonus_amount is not None and not self.bonus_amount.is_zero()

    def find_item(self, item_id: str) -> Optional[LineItem]:
        for item in self.items:
            if item.id == item_id:
                return item
        return None

    def totals(
        self,
        config: Optional[PricingConfig] = None,
        tier_discount_pct: Optional[Decimal] = None,
        tier_id: Optional[str] = None,
        bonus_balance: Optional[Money] = None,
    ) -> CartTotals:
        return compute_totals(
            self.items,
            voucher=self.selection,
            bonus_amount=self.bonus_amount,
            outlet_id=self.outlet_id,
            config=config,
            tier_id=tier_id,
            tier_discount_pct=tier_discount_pct,
            bonus_balance=bonus_balance,
        )


def _reject(code: str, message: str, policy_name: str) -> CartTransitionRejected:
    return CartTransitionRejected(RejectionReason(
        code=code, message=message, policy_name=policy_name,
    ))


# ══════════════════════════════════════════════════════════════
# EVENT HANDLERS
# ══════════════════════════════════════════════════════════════

def _add_item(state: CartSessionState, event: AddItem, **_) -> CartSessionState:
    if state.items and state.outlet_id and state.outlet_id != event.outlet_id:
        raise _reject(
            ReasonCode.OUTLET_MISMATCH,
            f"Cart holds items from outlet '{state.outlet_id}'. "
            f"Clear it before ordering from '{event.outlet_id}'.",
            "single_outlet_cart",
        )
    new = event.item
    if state.items and state.items[0].currency != new.currency:
        raise _reject(
            ReasonCode.CURRENCY_MISMATCH,
            f"Cart is priced in {state.items[0].currency}, item in {new.currency}.",
            "single_currency_cart",
        )

    items = list(state.items)
    for index, existing in enumerate(items):
        if (existing.product_id == new.product_id
                and existing.unit_price == new.unit_price):
            items[index] = existing.with_quantity(existing.quantity + new.quantity)
            break
    else:
        if state.find_item(new.id) is not None:
            raise _reject(
                ReasonCode.DUPLICATE_ITEM_ID,
                f"Cart already has a line with id '{new.id}'.",
                "unique_line_ids",
            )
        items.append(new)
    return replace(state, outlet_id=event.outlet_id, items=tuple(items))


def _require_item(state: CartSessionState, item_id: str) -> LineItem:
    item = state.find_item(item_id)
    if item is None:
        raise _reject(
            ReasonCode.ITEM_NOT_FOUND,
            f"Item '{item_id}' is not in the cart.",
            "item_must_exist",
        )
    return item


def _change_quantity(
    state: CartSessionState, event: ChangeQuantity, **_,
) -> CartSessionState:
    _require_item(state, event.item_id)
    items = tuple(
        item.with_quantity(event.quantity) if item.id == event.item_id else item
        for item in state.items
    )
    return replace(state, items=items, bonus_amount=None)


def _remove_item(
    state: CartSessionState, event: RemoveItem, **_,
) -> CartSessionState:
    _require_item(state, event.item_id)
    items = tuple(item for item in state.items if item.id != event.item_id)
    return replace(
        state,
        items=items,
        outlet_id=state.outlet_id if items else None,
        selection=None,
        bonus_amount=None,
    )


def _select_voucher(
    state: CartSessionState, event: SelectVoucher, **_,
) -> CartSessionState:
    if state.has_bonus and not event.confirm_bonus_removal:
        raise _reject(
            ReasonCode.BONUS_REMOVAL_REQUIRED,
            "Selecting a voucher removes the applied bonus. Confirm to continue.",
            "bonus_removal_confirmation",
        )
    return replace(state, selection=event.selection, bonus_amount=None)


def _clear_voucher(
    state: CartSessionState, event: ClearVoucher, **_,
) -> CartSessionState:
    return replace(state, selection=None)


def _set_bonus(
    state: CartSessionState,
    event: SetBonus,
    config: Optional[PricingConfig] = None,
    tier_discount_pct: Optional[Decimal] = None,
) -> CartSessionState:
    current = state.totals(config=config, tier_discount_pct=tier_discount_pct)
    decision = apply_bonus(
        requested=event.amount,
        subtotal=current.subtotal,
        voucher_discount=current.voucher_discount,
        bonus_balance=event.bonus_balance,
        tier_discount=current.tier_discount,
    )
    if decision.was_clamped:
        logger.info(
            f"Cart {state.user_id}: bonus request {event.amount} "
            f"limited to {decision.applied}"
        )
    applied = None if decision.applied.is_zero() else decision.applied
    return replace(state, bonus_amount=applied)


def _clear_bonus(
    state: CartSessionState, event: ClearBonus, **_,
) -> CartSessionState:
    return replace(state, bonus_amount=None)


_HANDLERS = {
    AddItem: _add_item,
    ChangeQuantity: _change_quantity,
    RemoveItem: _remove_item,
    SelectVoucher: _select_voucher,
    ClearVoucher: _clear_voucher,
    SetBonus: _set_bonus,
    ClearBonus: _clear_bonus,
}


# ══════════════════════════════════════════════════════════════
# REDUCER
# ══════════════════════════════════════════════════════════════

def apply_event(
    state: CartSessionState,
    event: CartEvent,
    config: Optional[PricingConfig] = None,
    tier_discount_pct: Optional[Decimal] = None,
) -> CartSessionState:
    """Return the state after `event`. Raises CartTransitionRejected."""
    handler = _HANDLERS.get(type(event))
    if handler is None:
        raise TypeError(f"Unknown cart event: {type(event).__name__}")
    try:
        new_state = handler(
            state, event, config=config, tier_discount_pct=tier_discount_pct,
        )
    except CartTransitionRejected as exc:
        logger.warning(
            f"Cart {state.user_id}: {event.event_type} rejected "
            f"[{exc.code}] {exc.reason.message}"
        )
        raise
    logger.info(f"Cart {state.user_id}: {event.event_type} applied")
    return new_state


def replay(
    events: Iterable[CartEvent],
    initial: CartSessionState,
    config: Optional[PricingConfig] = None,
    tier_discount_pct: Optional[Decimal] = None,
) -> CartSessionState:
    """Fold events over `initial`. Stops at the first rejected event."""
    state = initial
    for event in events:
        state = apply_event(
            state, event, config=config, tier_discount_pct=tier_discount_pct,
        )
    return state
