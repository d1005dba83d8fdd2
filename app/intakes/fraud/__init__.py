"""
Fraud risk scoring.
"""

from intakes.fraud.scorer import (
    FraudAssessment,
    FraudFlagResult,
    FraudScorer,
    FraudSignals,
)

__all__ = [
    "FraudAssessment",
    "FraudFlagResult",
    "FraudScorer",
    "FraudSignals",
]
