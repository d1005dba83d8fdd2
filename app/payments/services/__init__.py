"""
Payment services.

This module provides:
- CheckoutOrchestrator: Intake submission through to a Stripe Checkout URL,
  and payment retry for unpaid intakes
- RefundOrchestrator: Exactly-once automatic refund of declined intakes

Usage:
    from payments.services import CheckoutOrchestrator, SubmitIntakeParams

    result = CheckoutOrchestrator.submit_intake(
        SubmitIntakeParams(
            category="medical_certificate",
            subtype="work",
            answers=answers,
            idempotency_key=key,
            user=request.user,
        )
    )

    from payments.services import RefundOrchestrator

    result = RefundOrchestrator.refund_if_eligible(intake_id, actor_id)
"""

from payments.services.checkout_orchestrator import (
    CheckoutOrchestrator,
    CheckoutRedirect,
    SubmitIntakeParams,
)
from payments.services.refund_orchestrator import RefundOrchestrator, RefundOutcome

__all__ = [
    "CheckoutOrchestrator",
    "CheckoutRedirect",
    "RefundOrchestrator",
    "RefundOutcome",
    "SubmitIntakeParams",
]
