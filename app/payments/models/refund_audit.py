"""
RefundAuditEntry model.

Append-only trail of refund activity per intake. Entries are never
updated or deleted.
"""

from __future__ import annotations

from django.conf import settings
from django.db import models

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin

from payments.state_machines import RefundAuditAction


class RefundAuditEntry(UUIDPrimaryKeyMixin, BaseModel):
    """
    One refund event.

    Fields:
        intake: Intake the refund concerns
        payment_record: PaymentRecord involved, if one exists
        action: What happened
        actor: User who triggered the refund, if any
        details: Context such as gateway refs, reasons and amounts
    """

    intake = models.ForeignKey(
        "intakes.Intake",
        on_delete=models.PROTECT,
        related_name="refund_audit_entries",
        help_text="Intake the refund concerns",
    )

    payment_record = models.ForeignKey(
        "payments.PaymentRecord",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="audit_entries",
        help_text="Payment record involved",
    )

    action = models.CharField(
        max_length=32,
        choices=RefundAuditAction.choices,
        db_index=True,
        help_text="Refund event type",
    )

    actor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
        help_text="User who triggered the refund",
    )

    details = models.JSONField(
        default=dict,
        blank=True,
        help_text="Event context",
    )

    class Meta:
        db_table = "refund_audit_entries"
        ordering = ["created_at"]
        verbose_name = "Refund Audit Entry"
        verbose_name_plural = "Refund Audit Entries"
        indexes = [
            models.Index(fields=["intake", "created_at"], name="refund_audi_intake__c3e5f1_idx"),
        ]

    def __str__(self) -> str:
        return f"RefundAuditEntry({self.intake_id}, {self.action})"
