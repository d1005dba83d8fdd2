"""
Intake models.
"""

from intakes.models.fraud_flag import FraudFlag
from intakes.models.intake import Intake, IntakeAnswers
from intakes.models.service import BlockedMedication, CategoryKillSwitch, Service

__all__ = [
    "BlockedMedication",
    "CategoryKillSwitch",
    "FraudFlag",
    "Intake",
    "IntakeAnswers",
    "Service",
]
