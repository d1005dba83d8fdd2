"""
FraudFlag model.

Append-only record of a fraud signal raised for an Intake. Flags feed
manual review and never affect the payment outcome.
"""

from __future__ import annotations

from django.conf import settings
from django.db import models

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin

from intakes.state_machines import FraudSeverity


class FraudFlag(UUIDPrimaryKeyMixin, BaseModel):
    """
    One fraud signal raised at submission time.

    Fields:
        intake: Intake the flag was raised for
        patient: Patient who submitted the intake
        flag_type: Check that raised the flag (e.g. rapid_completion)
        severity: Weight of the signal in the risk score
        details: Check-specific context
    """

    intake = models.ForeignKey(
        "intakes.Intake",
        on_delete=models.CASCADE,
        related_name="fraud_flags",
        help_text="Intake this flag was raised for",
    )

    patient = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="fraud_flags",
        help_text="Patient who submitted the intake",
    )

    flag_type = models.CharField(
        max_length=50,
        db_index=True,
        help_text="Fraud check that raised this flag",
    )

    severity = models.CharField(
        max_length=16,
        choices=FraudSeverity.choices,
        help_text="Severity of the signal",
    )

    details = models.JSONField(
        default=dict,
        blank=True,
        help_text="Check-specific context for reviewers",
    )

    class Meta:
        db_table = "fraud_flags"
        ordering = ["-created_at"]
        verbose_name = "Fraud Flag"
        verbose_name_plural = "Fraud Flags"
        indexes = [
            models.Index(fields=["patient", "created_at"], name="fraud_flags_patient_a2b4c8_idx"),
        ]

    def __str__(self) -> str:
        return f"FraudFlag({self.flag_type}, {self.severity})"
