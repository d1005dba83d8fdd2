"""
Intake and IntakeAnswers models.

An Intake is one patient-submitted clinical request. Its answers are stored
in a separate IntakeAnswers row that is always created in the same
transaction, so an Intake never exists without its answers.

Usage:
    from intakes.models import Intake
    from intakes.state_machines import IntakeStatus

    intake = Intake.objects.get(idempotency_key=key)

    # Gateway reports payment completed
    intake.mark_paid()
    intake.save()

    # Reviewer declines
    intake.decline(actor=doctor, reason="Not suitable for online care")
    intake.save()

Note:
    Status changes made while racing other requests (session attach,
    checkout failure) use conditional queryset updates filtered on the
    previously-read status. See intakes.repository.
"""

from __future__ import annotations

from django.conf import settings
from django.db import models
from django.utils import timezone

from django_fsm import FSMField, transition

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin

from intakes.state_machines import (
    PAYABLE_STATUSES,
    IntakeCategory,
    IntakePaymentStatus,
    IntakeStatus,
)


class Intake(UUIDPrimaryKeyMixin, BaseModel):
    """
    The canonical record of one clinical request.

    State Flow:
        PENDING_PAYMENT -> PAID -> APPROVED / DECLINED
        PENDING_PAYMENT -> CHECKOUT_FAILED -> PENDING_PAYMENT

    Fields:
        patient: Patient the request belongs to
        service: Catalog service that priced the request
        category: Service category
        subtype: Category-specific subtype (free-form)
        status: Current FSM status
        payment_status: Payment progress
        amount_cents: Price at submission time
        idempotency_key: Caller-supplied key for the logical submission
        payment_session_ref: Stripe Checkout Session ID (cs_xxx)
        payment_session_url: Hosted checkout URL for the open session
        checkout_error: Last gateway error if checkout failed
        checkout_attempts: Number of gateway sessions opened
        decline_reason: Reviewer's reason when declined
        decided_by: Reviewer who approved or declined
        decided_at: When the decision was made
    """

    # ==========================================================================
    # Relationships
    # ==========================================================================

    patient = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="intakes",
        help_text="Patient who submitted this request",
    )

    service = models.ForeignKey(
        "intakes.Service",
        on_delete=models.PROTECT,
        related_name="intakes",
        help_text="Catalog service for this request",
    )

    # ==========================================================================
    # Request Classification
    # ==========================================================================

    category = models.CharField(
        max_length=32,
        choices=IntakeCategory.choices,
        db_index=True,
        help_text="Service category",
    )

    subtype = models.CharField(
        max_length=64,
        blank=True,
        default="",
        help_text="Category-specific subtype (e.g. work, repeat, general)",
    )

    # ==========================================================================
    # State
    # ==========================================================================

    status = FSMField(
        default=IntakeStatus.PENDING_PAYMENT,
        choices=IntakeStatus.choices,
        db_index=True,
        help_text="Current status of the request (managed by FSM)",
    )

    payment_status = models.CharField(
        max_length=16,
        choices=IntakePaymentStatus.choices,
        default=IntakePaymentStatus.PENDING,
        db_index=True,
        help_text="Payment progress for this request",
    )

    # ==========================================================================
    # Payment
    # ==========================================================================

    amount_cents = models.PositiveIntegerField(
        help_text="Price in cents at submission time",
    )

    idempotency_key = models.CharField(
        max_length=255,
        unique=True,
        help_text="Caller-supplied key identifying one logical submission",
    )

    payment_session_ref = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        db_index=True,
        help_text="Stripe Checkout Session ID (cs_xxx)",
    )

    payment_session_url = models.URLField(
        max_length=2048,
        null=True,
        blank=True,
        help_text="Hosted checkout URL for the current session",
    )

    checkout_error = models.TextField(
        null=True,
        blank=True,
        help_text="Gateway error captured when checkout failed",
    )

    checkout_attempts = models.PositiveIntegerField(
        default=0,
        help_text="Number of gateway checkout sessions opened",
    )

    # ==========================================================================
    # Review Decision
    # ==========================================================================

    decline_reason = models.TextField(
        null=True,
        blank=True,
        help_text="Reviewer's reason when the request was declined",
    )

    decided_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="decided_intakes",
        help_text="Reviewer who approved or declined this request",
    )

    decided_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the review decision was made",
    )

    # ==========================================================================
    # Meta & Methods
    # ==========================================================================

    class Meta:
        db_table = "intakes"
        ordering = ["-created_at"]
        verbose_name = "Intake"
        verbose_name_plural = "Intakes"
        indexes = [
            models.Index(fields=["patient", "created_at"], name="intakes_patient_9d1e2b_idx"),
            models.Index(
                fields=["patient", "category", "subtype", "created_at"],
                name="intakes_patient_5c7a41_idx",
            ),
            models.Index(fields=["status", "created_at"], name="intakes_status_3f8c60_idx"),
        ]

    def __str__(self) -> str:
        return f"Intake({self.id}, {self.category}:{self.subtype}, {self.status})"

    @property
    def is_payable(self) -> bool:
        """Whether a payment session may still be opened."""
        return self.status in PAYABLE_STATUSES

    # ==========================================================================
    # State Transitions (django-fsm)
    # ==========================================================================

    @transition(
        field=status,
        source=[IntakeStatus.PENDING_PAYMENT, IntakeStatus.CHECKOUT_FAILED],
        target=IntakeStatus.PAID,
    )
    def mark_paid(self):
        """
        Record gateway payment completion.

        Transition: PENDING_PAYMENT/CHECKOUT_FAILED -> PAID
        """
        self.payment_status = IntakePaymentStatus.PAID
        self.checkout_error = None

    @transition(
        field=status,
        source=IntakeStatus.PAID,
        target=IntakeStatus.APPROVED,
    )
    def approve(self, actor=None):
        """
        Approve the request.

        Transition: PAID -> APPROVED
        """
        self.decided_by = actor
        self.decided_at = timezone.now()

    @transition(
        field=status,
        source=IntakeStatus.PAID,
        target=IntakeStatus.DECLINED,
    )
    def decline(self, actor=None, reason: str | None = None):
        """
        Decline the request.

        Transition: PAID -> DECLINED

        The refund is driven separately by the refund orchestrator.
        """
        self.decided_by = actor
        self.decided_at = timezone.now()
        self.decline_reason = reason


class IntakeAnswers(BaseModel):
    """
    Answer payload for one Intake.

    Exactly one per Intake. Keys are questionnaire field identifiers.
    Deleted only together with its Intake.
    """

    intake = models.OneToOneField(
        Intake,
        on_delete=models.CASCADE,
        primary_key=True,
        related_name="answers",
        help_text="Intake these answers belong to",
    )

    answers = models.JSONField(
        default=dict,
        help_text="Submitted answers keyed by field identifier",
    )

    class Meta:
        db_table = "intake_answers"
        verbose_name = "Intake Answers"
        verbose_name_plural = "Intake Answers"

    def __str__(self) -> str:
        return f"IntakeAnswers({self.intake_id})"
