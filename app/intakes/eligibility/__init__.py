"""
Eligibility/safety gate.
"""

from intakes.eligibility.safety_gate import (
    RiskTier,
    RuleCondition,
    SafetyEvaluation,
    SafetyGate,
    SafetyOutcome,
    SafetyRule,
)

__all__ = [
    "RiskTier",
    "RuleCondition",
    "SafetyEvaluation",
    "SafetyGate",
    "SafetyOutcome",
    "SafetyRule",
]
