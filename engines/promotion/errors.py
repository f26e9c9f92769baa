"""
Rewards Promotion Engine - Errors
==================================
Raised only at voucher authoring time. The pricing path never raises
for business-rule mismatches.
"""

from typing import Tuple

from core.commands.rejection import RejectionReason


class PromotionError(Exception):
    """Base error for the promotion engine."""
    pass


class VoucherConfigurationError(PromotionError):
    """Voucher rule rejected at save time."""

    def __init__(self, code: str, reasons: Tuple[RejectionReason, ...]):
        self.code = code
        self.reasons = tuple(reasons)
        super().__init__(
            f"Voucher '{code}' rejected: "
            + "; ".join(f"[{r.code}] {r.message}" for r in self.reasons)
        )

    @property
    def codes(self) -> Tuple[str, ...]:
        return tuple(r.code for r in self.reasons)
