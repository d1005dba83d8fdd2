"""
State enums for intake models.
"""

from intakes.state_machines.states import (
    PAYABLE_STATUSES,
    FraudSeverity,
    IntakeCategory,
    IntakePaymentStatus,
    IntakeStatus,
)

__all__ = [
    "PAYABLE_STATUSES",
    "FraudSeverity",
    "IntakeCategory",
    "IntakePaymentStatus",
    "IntakeStatus",
]
