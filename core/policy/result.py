"""
Rewards Policy Layer - Decision Trace
======================================
TraceEntry: outcome of a single gate or rule during a pricing pass.
DecisionTrace: ordered, immutable list of entries returned alongside
every computed value, so callers can render why a voucher or bonus
did (or did not) apply.

Pricing functions are pure: they return a trace instead of logging.

These are pure data structures. No side effects. No persistence.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Optional, Tuple

from core.commands.rejection import RejectionReason


# ══════════════════════════════════════════════════════════════
# TRACE ENTRY (single gate outcome)
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class TraceEntry:
    """
    Outcome of a single gate evaluation.

    Fields:
        rule_id:   Gate or rule identifier (e.g. 'min_purchase_gate').
        passed:    True if the gate let the decision through.
        message:   Human-readable explanation.
        code:      Reason code when the gate failed (ReasonCode value).
        metadata:  Structured data for audit/explainability.
    """

    rule_id: str
    passed: bool
    message: str
    code: str = ""
    metadata: dict = field(default_factory=dict)

    def __post_init__(self):
        if not self.rule_id or not isinstance(self.rule_id, str):
            raise ValueError("rule_id must be a non-empty string.")

        if not isinstance(self.passed, bool):
            raise ValueError("passed must be a bool.")

        if not self.message or not isinstance(self.message, str):
            raise ValueError("message must be a non-empty string.")

        if not self.passed and not self.code:
            raise ValueError("a failed entry must carry a reason code.")

    def to_rejection(self) -> Optional[RejectionReason]:
        if self.passed:
            return None
        return RejectionReason(
            code=self.code, message=self.message, policy_name=self.rule_id,
        )

    def to_dict(self) -> dict:
        return {
            "rule_id": self.rule_id,
            "passed": self.passed,
            "message": self.message,
            "code": self.code,
            "metadata": dict(self.metadata),
        }


# ══════════════════════════════════════════════════════════════
# DECISION TRACE (ordered entries)
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class DecisionTrace:
    """Immutable, ordered explanation of one pricing decision."""

    entries: Tuple[TraceEntry, ...] = ()

    def add(self, entry: TraceEntry) -> DecisionTrace:
        return DecisionTrace(entries=self.entries + (entry,))

    def passed(
        self, rule_id: str, message: str, code: str = "", **metadata
    ) -> DecisionTrace:
        return self.add(TraceEntry(
            rule_id=rule_id, passed=True, message=message,
            code=code, metadata=metadata,
        ))

    def failed(
        self, rule_id: str, code: str, message: str, **metadata
    ) -> DecisionTrace:
        return self.add(TraceEntry(
            rule_id=rule_id, passed=False, message=message,
            code=code, metadata=metadata,
        ))

    def extend(self, other: DecisionTrace) -> DecisionTrace:
        return DecisionTrace(entries=self.entries + other.entries)

    @property
    def failures(self) -> Tuple[TraceEntry, ...]:
        return tuple(e for e in self.entries if not e.passed)

    @property
    def has_failures(self) -> bool:
        return any(not e.passed for e in self.entries)

    def reasons(self) -> Tuple[RejectionReason, ...]:
        """Failed entries as RejectionReasons, in evaluation order."""
        return tuple(e.to_rejection() for e in self.failures)

    def codes(self) -> Tuple[str, ...]:
        return tuple(e.code for e in self.failures)

    def to_dict(self) -> dict:
        return {"entries": [e.to_dict() for e in self.entries]}

    @classmethod
    def of(cls, entries: Iterable[TraceEntry]) -> DecisionTrace:
        return cls(entries=tuple(entries))
