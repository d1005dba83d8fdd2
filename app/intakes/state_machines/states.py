"""
State enums for intake models.

These are Django TextChoices for database storage and admin integration.

State Machines Overview:

Intake Status:
    pending_payment → paid → approved
    pending_payment → paid → declined
    pending_payment → checkout_failed → pending_payment (payment retry)
    checkout_failed → paid (gateway completion arriving after a failure)

Intake Payment Status:
    pending → paid → refunded
"""

from django.db import models


class IntakeCategory(models.TextChoices):
    """Service categories a patient can request."""

    MEDICAL_CERTIFICATE = "medical_certificate", "Medical Certificate"
    PRESCRIPTION = "prescription", "Prescription"
    CONSULT = "consult", "Consult"


class IntakeStatus(models.TextChoices):
    """
    States for the Intake lifecycle.

    Terminal states: APPROVED, DECLINED

    State Flow:
        PENDING_PAYMENT → PAID → APPROVED / DECLINED

    Recovery Flow:
        PENDING_PAYMENT → CHECKOUT_FAILED → PENDING_PAYMENT (retry)
    """

    PENDING_PAYMENT = "pending_payment", "Pending Payment"
    PAID = "paid", "Paid"
    APPROVED = "approved", "Approved"
    DECLINED = "declined", "Declined"
    CHECKOUT_FAILED = "checkout_failed", "Checkout Failed"


class IntakePaymentStatus(models.TextChoices):
    """Payment progress for an Intake."""

    PENDING = "pending", "Pending"
    PAID = "paid", "Paid"
    REFUNDED = "refunded", "Refunded"


class FraudSeverity(models.TextChoices):
    """Severity of a fraud flag, weighted into the risk score."""

    LOW = "low", "Low"
    MEDIUM = "medium", "Medium"
    HIGH = "high", "High"
    CRITICAL = "critical", "Critical"


# Statuses from which a payment session may still be opened
PAYABLE_STATUSES = (IntakeStatus.PENDING_PAYMENT, IntakeStatus.CHECKOUT_FAILED)
