"""
Rewards Loyalty Engine - Points Projection
===========================================
Points a checkout would earn:

    floor(floor(payable_total x points_base_rate) x method_multiplier)

payable_total is taken in major units (RM). No partial points.
Rates come from PricingConfig, never from engine code.
"""

from __future__ import annotations

import math
from decimal import Decimal
from typing import Optional, Tuple

from core.commands.rejection import ReasonCode
from core.config.rules import PricingConfig
from core.policy.result import DecisionTrace
from core.primitives.money import Money


def _floor(value: Decimal) -> int:
    return int(math.floor(value))


def points_with_trace(
    payable_total: Money,
    payment_method_kind: str,
    config: Optional[PricingConfig] = None,
) -> Tuple[int, DecisionTrace]:
    config = config or PricingConfig()
    trace = DecisionTrace()
    method = config.payment_method(payment_method_kind)
    if method is None:
        return 0, trace.failed(
            "payment_method", ReasonCode.UNKNOWN_PAYMENT_METHOD,
            f"Payment method '{payment_method_kind}' earns no points.",
            payment_method=payment_method_kind,
        )

    total = payable_total.clamp_non_negative().to_decimal()
    base_points = _floor(total * config.points_base_rate)
    points = max(0, _floor(Decimal(base_points) * method.points_multiplier))
    return points, trace.passed(
        "points_projection", f"{points} point(s) earned.",
        base_points=base_points,
        multiplier=str(method.points_multiplier),
        payment_method=payment_method_kind,
    )


def loyalty_points_projection(
    payable_total: Money,
    payment_method_kind: str,
    config: Optional[PricingConfig] = None,
) -> int:
    points, _ = points_with_trace(payable_total, payment_method_kind, config)
    return points
