"""
Rewards Command Layer - Rejection Model
========================================
Refused decisions are first-class values, not exceptions.
"""

from core.commands.rejection import (
    ReasonCode,
    RejectionReason,
)

__all__ = [
    "RejectionReason",
    "ReasonCode",
]
