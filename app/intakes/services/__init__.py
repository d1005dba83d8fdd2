"""
Intake services.
"""

from intakes.services.decisions import DecisionOutcome, IntakeDecisionService

__all__ = [
    "DecisionOutcome",
    "IntakeDecisionService",
]
