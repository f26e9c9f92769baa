"""
Rewards Core Config - Public API
=================================
Admin-configurable pricing rules (points rates, payment methods,
member tiers, voucher limits).
Doctrine: No hardcoded rates in engine logic.
"""

from core.config.rules import (
    ConfigStore,
    InMemoryConfigStore,
    PaymentMethodRule,
    PricingConfig,
    TierRule,
    load_pricing_config,
)

__all__ = [
    "PricingConfig",
    "PaymentMethodRule",
    "TierRule",
    "ConfigStore",
    "InMemoryConfigStore",
    "load_pricing_config",
]
