"""
State enums for payment models.

These are Django TextChoices for database storage and admin integration.

State Machines Overview:

PaymentRecord Status (django-fsm):
    pending → paid → refunded

Refund Status (compare-and-swap updates, see RefundOrchestrator):
    none → processing → refunded
    none → processing → failed → processing (retry)
    none → not_eligible

Webhook Event Status:
    pending → processing → processed
    pending → processing → failed → processing (retry)
"""

from django.db import models


class PaymentRecordStatus(models.TextChoices):
    """
    States for the PaymentRecord lifecycle.

    Terminal states: REFUNDED

    State Flow:
        PENDING (session opened) → PAID (webhook) → REFUNDED
    """

    PENDING = "pending", "Pending"
    PAID = "paid", "Paid"
    REFUNDED = "refunded", "Refunded"


class RefundStatus(models.TextChoices):
    """
    Refund progress for a PaymentRecord.

    Terminal states: REFUNDED, NOT_ELIGIBLE

    Entering PROCESSING is a single conditional UPDATE keyed on the
    previously-read value, so at most one worker calls the gateway.
    """

    NONE = "none", "None"
    NOT_ELIGIBLE = "not_eligible", "Not Eligible"
    PROCESSING = "processing", "Processing"
    REFUNDED = "refunded", "Refunded"
    FAILED = "failed", "Failed"


class RefundAuditAction(models.TextChoices):
    """Actions recorded in the refund audit trail."""

    REFUND_ATTEMPTED = "refund_attempted", "Refund Attempted"
    REFUND_FAILED = "refund_failed", "Refund Failed"
    REFUND_SUCCEEDED = "refund_succeeded", "Refund Succeeded"
    REFUND_NOT_ELIGIBLE = "refund_not_eligible", "Refund Not Eligible"


class WebhookEventStatus(models.TextChoices):
    """
    Processing states for Stripe webhook events.

    State Flow:
        PENDING → PROCESSING → PROCESSED
        PENDING → PROCESSING → FAILED → PROCESSING (retry)
    """

    PENDING = "pending", "Pending"
    PROCESSING = "processing", "Processing"
    PROCESSED = "processed", "Processed"
    FAILED = "failed", "Failed"


# Refund states from which a new refund attempt may start
REFUND_STARTABLE_STATUSES = (RefundStatus.NONE, RefundStatus.FAILED)

# Categories refunded automatically when declined
AUTO_REFUND_CATEGORIES = ("medical_certificate", "prescription")
