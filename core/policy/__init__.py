"""
Rewards Policy Layer - Decision Trace
======================================
Policy is evaluation, not execution.
Explanation is mandatory.
"""

from core.policy.result import DecisionTrace, TraceEntry

__all__ = [
    "DecisionTrace",
    "TraceEntry",
]
