"""
PaymentRecord model.

One PaymentRecord per Intake, created when the first gateway session is
opened and completed by the checkout webhook. It also carries the refund
state for the intake.

Usage:
    from payments.models import PaymentRecord
    from payments.state_machines import PaymentRecordStatus

    payment = PaymentRecord.objects.get(intake=intake)

    # Webhook: checkout.session.completed
    payment.mark_paid(payment_ref="pi_xxx", amount_cents=1995)
    payment.save()

Note:
    ``refund_status`` is never assigned directly by services. It moves
    through conditional queryset updates in RefundOrchestrator so that two
    workers cannot both start a refund.
"""

from __future__ import annotations

from django.conf import settings
from django.db import models
from django.db.models import Q
from django.utils import timezone

from django_fsm import FSMField, transition

from core.models import BaseModel
from core.model_mixins import MetadataMixin, UUIDPrimaryKeyMixin

from payments.state_machines import PaymentRecordStatus, RefundStatus


class PaymentRecord(UUIDPrimaryKeyMixin, MetadataMixin, BaseModel):
    """
    Gateway payment for one Intake.

    State Flow:
        PENDING -> PAID -> REFUNDED

    Fields:
        intake: The Intake this payment is for
        gateway_session_ref: Current Stripe Checkout Session ID (cs_xxx)
        gateway_payment_ref: Stripe PaymentIntent ID (pi_xxx)
        status: Current FSM status
        amount_cents: Amount charged in cents
        currency: ISO 4217 currency code (lowercase)
        refund_status: Refund progress (CAS-guarded)
        refund_amount_cents: Amount refunded in cents
        gateway_refund_ref: Stripe Refund ID (re_xxx), proof of refund
        refund_reason: Why the refund happened, or why it failed
        refund_attempts: Number of refund attempts started
        refunded_at: When the refund completed
        refunded_by: Reviewer whose decline triggered the refund
        metadata: Flexible JSON storage
    """

    # ==========================================================================
    # Relationships
    # ==========================================================================

    intake = models.OneToOneField(
        "intakes.Intake",
        on_delete=models.PROTECT,
        related_name="payment",
        help_text="Intake this payment is for",
    )

    # ==========================================================================
    # Gateway References
    # ==========================================================================

    gateway_session_ref = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        db_index=True,
        help_text="Stripe Checkout Session ID (cs_xxx)",
    )

    gateway_payment_ref = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        db_index=True,
        help_text="Stripe PaymentIntent ID (pi_xxx)",
    )

    # ==========================================================================
    # Payment
    # ==========================================================================

    status = FSMField(
        default=PaymentRecordStatus.PENDING,
        choices=PaymentRecordStatus.choices,
        db_index=True,
        help_text="Current payment status (managed by FSM)",
    )

    amount_cents = models.PositiveIntegerField(
        default=0,
        help_text="Amount charged in cents",
    )

    currency = models.CharField(
        max_length=3,
        default="aud",
        help_text="ISO 4217 currency code (lowercase)",
    )

    # ==========================================================================
    # Refund
    # ==========================================================================

    refund_status = models.CharField(
        max_length=20,
        choices=RefundStatus.choices,
        default=RefundStatus.NONE,
        db_index=True,
        help_text="Refund progress, changed only by conditional updates",
    )

    refund_amount_cents = models.PositiveIntegerField(
        null=True,
        blank=True,
        help_text="Amount refunded in cents",
    )

    gateway_refund_ref = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        unique=True,
        help_text="Stripe Refund ID (re_xxx)",
    )

    refund_reason = models.TextField(
        null=True,
        blank=True,
        help_text="Why the refund happened, or why it failed",
    )

    refund_attempts = models.PositiveIntegerField(
        default=0,
        help_text="Number of refund attempts started",
    )

    refunded_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the refund completed",
    )

    refunded_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
        help_text="Reviewer whose decision triggered the refund",
    )

    # ==========================================================================
    # Meta & Methods
    # ==========================================================================

    class Meta:
        db_table = "payments"
        ordering = ["-created_at"]
        verbose_name = "Payment Record"
        verbose_name_plural = "Payment Records"
        indexes = [
            models.Index(fields=["intake", "status"], name="payments_intake__4e1f0a_idx"),
            models.Index(fields=["refund_status", "updated_at"], name="payments_refund__7b2d93_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(refund_status=RefundStatus.REFUNDED, gateway_refund_ref__isnull=False)
                | ~Q(refund_status=RefundStatus.REFUNDED),
                name="payments_refunded_has_gateway_ref",
            ),
        ]

    def __str__(self) -> str:
        return f"PaymentRecord({self.intake_id}, {self.status}, refund={self.refund_status})"

    @property
    def is_refunded(self) -> bool:
        """A stored gateway refund reference is proof of a completed refund."""
        return bool(self.gateway_refund_ref) or self.refund_status == RefundStatus.REFUNDED

    # ==========================================================================
    # State Transitions (django-fsm)
    # ==========================================================================

    @transition(
        field=status,
        source=PaymentRecordStatus.PENDING,
        target=PaymentRecordStatus.PAID,
    )
    def mark_paid(self, payment_ref: str | None = None, amount_cents: int | None = None):
        """
        Record payment completion from the checkout webhook.

        Transition: PENDING -> PAID
        """
        if payment_ref:
            self.gateway_payment_ref = payment_ref
        if amount_cents is not None:
            self.amount_cents = amount_cents

    @transition(
        field=status,
        source=PaymentRecordStatus.PAID,
        target=PaymentRecordStatus.REFUNDED,
    )
    def mark_refunded(self, refund_ref: str, amount_cents: int, actor=None, reason: str = ""):
        """
        Record a completed gateway refund.

        Transition: PAID -> REFUNDED
        """
        self.refund_status = RefundStatus.REFUNDED
        self.gateway_refund_ref = refund_ref
        self.refund_amount_cents = amount_cents
        self.refunded_at = timezone.now()
        self.refunded_by = actor
        self.refund_reason = reason
