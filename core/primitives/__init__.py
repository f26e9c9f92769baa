"""
Rewards Core Primitives - Pricing Building Blocks
==================================================
Shared, engine-agnostic value objects consumed by the promotion,
wallet, loyalty and retail engines. They are:

- Pure Python (no framework dependency)
- Immutable (frozen dataclasses)
- Deterministic (same input → same output)

Primitives:
    money - Integer minor-unit amounts with half-up percentage rounding
    item  - Cart line item with catalog classification
"""
