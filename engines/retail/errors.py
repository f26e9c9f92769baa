"""
Rewards Retail Engine - Errors
===============================
"""

from core.commands.rejection import RejectionReason


class RetailError(Exception):
    """Base error for the retail engine."""
    pass


class CartTransitionRejected(RetailError):
    """A cart event would break a cart invariant. State is unchanged."""

    def __init__(self, reason: RejectionReason):
        self.reason = reason
        super().__init__(f"[{reason.code}] {reason.message}")

    @property
    def code(self) -> str:
        return self.reason.code
