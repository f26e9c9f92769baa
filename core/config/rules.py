"""
Rewards Core Config - Admin-Configurable Pricing Rules
=======================================================
Doctrine: No hardcoded rates in engine logic.
Points rates, payment-method multipliers, member tier discounts and
voucher limits come from admin-configurable data, not from source code.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Mapping, Optional, Protocol, Tuple

from core.primitives.money import to_decimal

DEFAULT_CURRENCY = "MYR"
DEFAULT_MAX_PRODUCTS_PER_USE = 6
MAX_PRODUCTS_PER_USE_LIMIT = 20
DEFAULT_POINTS_BASE_RATE = Decimal("2.5")


# ══════════════════════════════════════════════════════════════
# PAYMENT METHOD RULE
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class PaymentMethodRule:
    """
    Loyalty points multiplier for a payment method kind.

    Stored-value wallet payments are configured with multiplier 0:
    spending the balance does not earn points again.
    """

    kind: str
    points_multiplier: Decimal = Decimal("1")
    is_stored_value: bool = False

    def __post_init__(self) -> None:
        if not self.kind or not isinstance(self.kind, str):
            raise ValueError("kind must be a non-empty string.")
        object.__setattr__(
            self, "points_multiplier",
            to_decimal(self.points_multiplier, "points_multiplier"),
        )
        if self.points_multiplier < 0:
            raise ValueError(
                f"points_multiplier must be >= 0, got {self.points_multiplier}."
            )


# ══════════════════════════════════════════════════════════════
# MEMBER TIER RULE
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class TierRule:
    """Permanent shop discount granted by a membership tier."""

    tier_id: str
    shop_discount_pct: Decimal = Decimal("0")

    def __post_init__(self) -> None:
        if not self.tier_id or not isinstance(self.tier_id, str):
            raise ValueError("tier_id must be a non-empty string.")
        object.__setattr__(
            self, "shop_discount_pct",
            to_decimal(self.shop_discount_pct, "shop_discount_pct"),
        )
        if not 0 <= self.shop_discount_pct <= 100:
            raise ValueError(
                f"shop_discount_pct must be between 0 and 100, "
                f"got {self.shop_discount_pct}."
            )


DEFAULT_PAYMENT_METHODS: Tuple[PaymentMethodRule, ...] = (
    PaymentMethodRule(kind="card"),
    PaymentMethodRule(kind="fpx"),
    PaymentMethodRule(kind="grabpay"),
    PaymentMethodRule(kind="tng"),
    PaymentMethodRule(kind="wallet", points_multiplier=Decimal("0"),
                      is_stored_value=True),
)


# ══════════════════════════════════════════════════════════════
# PRICING CONFIG
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class PricingConfig:
    """Everything the pricing engines read that an admin may change."""

    currency: str = DEFAULT_CURRENCY
    default_max_products_per_use: int = DEFAULT_MAX_PRODUCTS_PER_USE
    max_products_per_use_limit: int = MAX_PRODUCTS_PER_USE_LIMIT
    points_base_rate: Decimal = DEFAULT_POINTS_BASE_RATE
    payment_methods: Tuple[PaymentMethodRule, ...] = DEFAULT_PAYMENT_METHODS
    tiers: Tuple[TierRule, ...] = ()

    def __post_init__(self) -> None:
        if not self.currency or len(self.currency) != 3:
            raise ValueError(
                f"currency must be 3-letter ISO 4217 code, got '{self.currency}'."
            )
        if self.default_max_products_per_use < 1:
            raise ValueError("default_max_products_per_use must be >= 1.")
        if self.max_products_per_use_limit < self.default_max_products_per_use:
            raise ValueError(
                "max_products_per_use_limit must be >= default_max_products_per_use."
            )
        object.__setattr__(
            self, "points_base_rate",
            to_decimal(self.points_base_rate, "points_base_rate"),
        )
        if self.points_base_rate < 0:
            raise ValueError("points_base_rate must be >= 0.")
        object.__setattr__(self, "payment_methods", tuple(self.payment_methods))
        object.__setattr__(self, "tiers", tuple(self.tiers))
        kinds = [m.kind for m in self.payment_methods]
        if len(kinds) != len(set(kinds)):
            raise ValueError("payment method kinds must be unique.")

    def payment_method(self, kind: str) -> Optional[PaymentMethodRule]:
        for rule in self.payment_methods:
            if rule.kind == kind:
                return rule
        return None

    def tier(self, tier_id: Optional[str]) -> Optional[TierRule]:
        if tier_id is None:
            return None
        for rule in self.tiers:
            if rule.tier_id == tier_id:
                return rule
        return None

    def tier_discount_pct(self, tier_id: Optional[str]) -> Decimal:
        rule = self.tier(tier_id)
        return rule.shop_discount_pct if rule else Decimal("0")


def load_pricing_config(data: Mapping[str, Any]) -> PricingConfig:
    """
    Build a PricingConfig from a plain mapping (parsed JSON, env, admin UI).

    Missing keys fall back to defaults.
    """
    methods = data.get("payment_methods")
    tiers = data.get("tiers", ())
    return PricingConfig(
        currency=data.get("currency", DEFAULT_CURRENCY),
        default_max_products_per_use=int(
            data.get("default_max_products_per_use", DEFAULT_MAX_PRODUCTS_PER_USE)
        ),
        max_products_per_use_limit=int(
            data.get("max_products_per_use_limit", MAX_PRODUCTS_PER_USE_LIMIT)
        ),
        points_base_rate=Decimal(str(
            data.get("points_base_rate", DEFAULT_POINTS_BASE_RATE)
        )),
        payment_methods=(
            DEFAULT_PAYMENT_METHODS if methods is None else tuple(
                PaymentMethodRule(
                    kind=m["kind"],
                    points_multiplier=Decimal(str(m.get("points_multiplier", 1))),
                    is_stored_value=bool(m.get("is_stored_value", False)),
                )
                for m in methods
            )
        ),
        tiers=tuple(
            TierRule(
                tier_id=t["tier_id"],
                shop_discount_pct=Decimal(str(t.get("shop_discount_pct", 0))),
            )
            for t in tiers
        ),
    )


# ══════════════════════════════════════════════════════════════
# CONFIG STORE PROTOCOL
# ══════════════════════════════════════════════════════════════

class ConfigStore(Protocol):
    """
    Protocol for admin-configured pricing storage.

    Implementations may back this with a database, file, or in-memory store.
    """

    def get_pricing_config(self, outlet_id: Optional[str] = None) -> PricingConfig:
        """Fetch the pricing config, optionally overridden per outlet."""
        ...  # pragma: no cover


# ══════════════════════════════════════════════════════════════
# IN-MEMORY CONFIG STORE (for testing / bootstrap)
# ══════════════════════════════════════════════════════════════

class InMemoryConfigStore:
    """Simple in-memory config store for testing and bootstrap."""

    def __init__(self, default: Optional[PricingConfig] = None) -> None:
        self._default = default or PricingConfig()
        self._per_outlet: Dict[str, PricingConfig] = {}

    def set_default(self, config: PricingConfig) -> None:
        self._default = config

    def set_outlet_config(self, outlet_id: str, config: PricingConfig) -> None:
        self._per_outlet[outlet_id] = config

    def get_pricing_config(self, outlet_id: Optional[str] = None) -> PricingConfig:
        if outlet_id is not None and outlet_id in self._per_outlet:
            return self._per_outlet[outlet_id]
        return self._default
