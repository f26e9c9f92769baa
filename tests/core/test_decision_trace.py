"""
Tests for core.policy.result and core.commands.rejection.
"""

import pytest

from core.commands.rejection import ReasonCode, RejectionReason
from core.policy.result import DecisionTrace, TraceEntry


class TestRejectionReason:
    def test_fields_required(self):
        with pytest.raises(ValueError, match="code"):
            RejectionReason(code="", message="m", policy_name="p")
        with pytest.raises(ValueError, match="message"):
            RejectionReason(code="X", message="", policy_name="p")
        with pytest.raises(ValueError, match="policy_name"):
            RejectionReason(code="X", message="m", policy_name="")

    def test_to_dict(self):
        r = RejectionReason(code="X", message="m", policy_name="p")
        assert r.to_dict() == {"code": "X", "message": "m", "policy_name": "p"}


class TestTraceEntry:
    def test_failed_entry_needs_code(self):
        with pytest.raises(ValueError, match="reason code"):
            TraceEntry(rule_id="gate", passed=False, message="no")

    def test_passed_entry_has_no_rejection(self):
        entry = TraceEntry(rule_id="gate", passed=True, message="ok")
        assert entry.to_rejection() is None

    def test_failed_entry_to_rejection(self):
        entry = TraceEntry(
            rule_id="min_purchase_gate", passed=False, message="too small",
            code=ReasonCode.MIN_PURCHASE_NOT_MET,
        )
        rejection = entry.to_rejection()
        assert rejection.code == ReasonCode.MIN_PURCHASE_NOT_MET
        assert rejection.policy_name == "min_purchase_gate"


class TestDecisionTrace:
    def test_empty(self):
        trace = DecisionTrace()
        assert trace.entries == ()
        assert not trace.has_failures
        assert trace.reasons() == ()

    def test_builders_are_immutable(self):
        base = DecisionTrace()
        grown = base.passed("a", "ok").failed("b", "CODE_B", "no")
        assert base.entries == ()
        assert len(grown.entries) == 2
        assert grown.has_failures
        assert grown.codes() == ("CODE_B",)

    def test_passed_entry_may_carry_informational_code(self):
        trace = DecisionTrace().passed(
            "cap", "capped", code=ReasonCode.DISCOUNT_CAPPED, raw=10,
        )
        assert not trace.has_failures
        assert trace.entries[0].code == ReasonCode.DISCOUNT_CAPPED
        assert trace.entries[0].metadata == {"raw": 10}

    def test_extend_keeps_order(self):
        first = DecisionTrace().passed("a", "ok")
        second = DecisionTrace().failed("b", "B", "no")
        merged = first.extend(second)
        assert [e.rule_id for e in merged.entries] == ["a", "b"]
        assert [r.code for r in merged.reasons()] == ["B"]

    def test_of_and_to_dict(self):
        trace = DecisionTrace.of([TraceEntry(rule_id="a", passed=True, message="ok")])
        assert trace.to_dict() == {"entries": [{
            "rule_id": "a", "passed": True, "message": "ok",
            "code": "", "metadata": {},
        }]}
