"""
Rewards Retail Engine - Pricing Service
========================================
Checkout-facing service. Loads the cart session from its collaborators,
prices it, and persists cart transitions.

Collaborators (not implemented here):
    CartStore             - cart session per user, read-your-writes
    VoucherCatalog        - current voucher rules by code
    BonusBalanceProvider  - wallet bonus balance as of now
    OutletDirectory       - the outlet the user is ordering from
    ConfigStore           - admin pricing config (core.config)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Optional, Protocol, Tuple

from core.commands.rejection import RejectionReason
from core.config.rules import ConfigStore, InMemoryConfigStore, PricingConfig
from core.policy.result import DecisionTrace
from core.primitives.item import cart_subtotal
from core.primitives.money import Money
from engines.loyalty.points import points_with_trace
from engines.promotion.policies import selection_rejections
from engines.promotion.rules import AppliedVoucherSelection, VoucherRule
from engines.retail.events import CartEvent
from engines.retail.session import CartSessionState, apply_event
from engines.retail.totals import CartTotals, compute_totals

logger = logging.getLogger("rewards.retail")


# ══════════════════════════════════════════════════════════════
# PROTOCOLS
# ══════════════════════════════════════════════════════════════

class CartStore(Protocol):
    def load(self, user_id: str) -> CartSessionState:
        ...

    def save(self, state: CartSessionState) -> None:
        ...


class VoucherCatalog(Protocol):
    def get_rule(self, code: str) -> Optional[VoucherRule]:
        ...


class BonusBalanceProvider(Protocol):
    def balance_for(self, user_id: str, currency: str) -> Money:
        ...


class OutletDirectory(Protocol):
    def current_outlet_id(self, user_id: str) -> Optional[str]:
        ...


# ══════════════════════════════════════════════════════════════
# QUOTE
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class CheckoutQuote:
    """Everything the checkout screen shows for one cart."""
    user_id: str
    outlet_id: Optional[str]
    payment_method_kind: str
    totals: CartTotals
    points_earned: int
    bonus_balance: Money
    voucher_rejections: Tuple[RejectionReason, ...] = ()
    trace: DecisionTrace = field(default_factory=DecisionTrace)

    @property
    def payable_total(self) -> Money:
        return self.totals.payable_total

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "outlet_id": self.outlet_id,
            "payment_method_kind": self.payment_method_kind,
            "totals": self.totals.to_dict(),
            "points_earned": self.points_earned,
            "bonus_balance": self.bonus_balance.to_dict(),
            "voucher_rejections": [r.to_dict() for r in self.voucher_rejections],
        }


# ══════════════════════════════════════════════════════════════
# APPLICATION SERVICE
# ══════════════════════════════════════════════════════════════

class CartPricingService:
    """Prices carts and applies cart events through the CartStore."""

    def __init__(
        self,
        *,
        cart_store: CartStore,
        voucher_catalog: VoucherCatalog,
        bonus_balance_provider: BonusBalanceProvider,
        outlet_directory: OutletDirectory,
        config_store: ConfigStore | None = None,
    ):
        self._cart_store = cart_store
        self._voucher_catalog = voucher_catalog
        self._bonus_balance_provider = bonus_balance_provider
        self._outlet_directory = outlet_directory
        self._config_store = config_store or InMemoryConfigStore()

    def _config(self, outlet_id: Optional[str]) -> PricingConfig:
        return self._config_store.get_pricing_config(outlet_id)

    def _current_selection(
        self, selection: Optional[AppliedVoucherSelection],
    ) -> Optional[AppliedVoucherSelection]:
        """Re-read the selected voucher's rule from the catalog."""
        if selection is None:
            return None
        rule = self._voucher_catalog.get_rule(selection.rule.code)
        if rule is None:
            logger.warning(
                f"Voucher '{selection.rule.code}' no longer in catalog; "
                f"pricing without it"
            )
            return None
        return replace(selection, rule=rule)

    def quote(
        self,
        user_id: str,
        payment_method_kind: str,
        tier_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> CheckoutQuote:
        state = self._cart_store.load(user_id)
        outlet_id = self._outlet_directory.current_outlet_id(user_id)
        if outlet_id is None:
            outlet_id = state.outlet_id
        config = self._config(outlet_id)
        currency = state.items[0].currency if state.items else config.currency

        selection = self._current_selection(state.selection)
        rejections: Tuple[RejectionReason, ...] = ()
        if selection is not None:
            subtotal = cart_subtotal(state.items, currency)
            rejections = selection_rejections(selection, subtotal, now)
            if rejections:
                logger.info(
                    f"Cart {user_id}: voucher '{selection.rule.code}' not "
                    f"usable [{rejections[0].code}]"
                )
                selection = None

        balance = self._bonus_balance_provider.balance_for(user_id, currency)
        totals = compute_totals(
            state.items,
            voucher=selection,
            bonus_amount=state.bonus_amount,
            outlet_id=outlet_id,
            config=config,
            tier_id=tier_id,
            bonus_balance=balance,
        )
        points, points_trace = points_with_trace(
            totals.payable_total, payment_method_kind, config,
        )

        logger.info(
            f"Cart {user_id} quoted: subtotal={totals.subtotal} "
            f"payable={totals.payable_total} points={points}"
        )
        return CheckoutQuote(
            user_id=user_id,
            outlet_id=outlet_id,
            payment_method_kind=payment_method_kind,
            totals=totals,
            points_earned=points,
            bonus_balance=balance,
            voucher_rejections=rejections,
            trace=totals.trace.extend(points_trace),
        )

    def dispatch(
        self, state: CartSessionState, event: CartEvent,
        tier_id: Optional[str] = None,
    ) -> CartSessionState:
        """Apply `event` and persist the new state. Raises CartTransitionRejected."""
        config = self._config(state.outlet_id)
        new_state = apply_event(
            state, event, config=config,
            tier_discount_pct=config.tier_discount_pct(tier_id),
        )
        self._cart_store.save(new_state)
        logger.info(f"Cart {state.user_id}: saved after {event.event_type}")
        return new_state
