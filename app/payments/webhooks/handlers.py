"""
Webhook event handlers for Stripe events.

Handlers are registered per event type and return a ServiceResult. An
unregistered event type is acknowledged without work.

Handled events:
    checkout.session.completed - Intake becomes paid, PaymentRecord filled in
    checkout.session.expired - Stale session cleared from a pending Intake

Usage:
    from payments.webhooks.handlers import dispatch_webhook

    result = dispatch_webhook(webhook_event)
"""

from __future__ import annotations

import logging
from typing import Callable

from django.conf import settings
from django.db import transaction

from core.services import ServiceResult
from intakes.models import Intake
from intakes.repository import IntakeRepository
from intakes.state_machines import PAYABLE_STATUSES
from payments.models import PaymentRecord, WebhookEvent
from payments.state_machines import PaymentRecordStatus

logger = logging.getLogger(__name__)


# =============================================================================
# Handler Registry
# =============================================================================


# Maps event type strings to handler functions
WEBHOOK_HANDLERS: dict[str, Callable[[WebhookEvent], ServiceResult]] = {}


def register_handler(event_type: str) -> Callable:
    """
    Decorator to register a webhook event handler.

    Usage:
        @register_handler("checkout.session.completed")
        def handle_checkout_completed(webhook_event: WebhookEvent) -> ServiceResult:
            ...
    """

    def decorator(func: Callable[[WebhookEvent], ServiceResult]) -> Callable:
        WEBHOOK_HANDLERS[event_type] = func
        return func

    return decorator


def dispatch_webhook(webhook_event: WebhookEvent) -> ServiceResult:
    """
    Dispatch a webhook event to the appropriate handler.

    Unknown event types return success so Stripe stops redelivering them.
    """
    handler = WEBHOOK_HANDLERS.get(webhook_event.event_type)

    if not handler:
        logger.info(
            f"No handler registered for event type: {webhook_event.event_type}",
            extra={"stripe_event_id": webhook_event.stripe_event_id},
        )
        return ServiceResult.success(None)

    logger.info(
        f"Dispatching {webhook_event.event_type} to handler",
        extra={"stripe_event_id": webhook_event.stripe_event_id},
    )
    return handler(webhook_event)


# =============================================================================
# Checkout Session Handlers
# =============================================================================


@register_handler("checkout.session.completed")
def handle_checkout_session_completed(webhook_event: WebhookEvent) -> ServiceResult:
    """
    Mark the Intake paid and complete its PaymentRecord.

    Sessions whose payment is still outstanding (delayed payment methods)
    are acknowledged without changes. Re-delivery is a no-op.
    """
    session = webhook_event.get_object()
    session_id = session.get("id")
    intake_id = (session.get("metadata") or {}).get("intake_id")

    if not session_id:
        logger.error(
            "checkout.session.completed: missing session id",
            extra={"stripe_event_id": webhook_event.stripe_event_id},
        )
        return ServiceResult.failure(
            "Could not extract session id from webhook",
            error_code="INVALID_WEBHOOK_PAYLOAD",
        )

    if session.get("payment_status") not in (None, "paid"):
        logger.info(
            "Checkout completed without payment yet, waiting",
            extra={"session_id": session_id, "payment_status": session.get("payment_status")},
        )
        return ServiceResult.success(None)

    with transaction.atomic():
        lookup = {"pk": intake_id} if intake_id else {"payment_session_ref": session_id}
        intake = Intake.objects.select_for_update().filter(**lookup).first()

        if intake is None:
            logger.warning(
                "Intake not found for checkout session",
                extra={"session_id": session_id, "intake_id": intake_id},
            )
            return ServiceResult.failure(
                f"Intake not found for session: {session_id}",
                error_code="INTAKE_NOT_FOUND",
            )

        if intake.status in PAYABLE_STATUSES:
            intake.mark_paid()
            intake.payment_session_ref = session_id
            intake.save()
            logger.info(
                "Intake marked paid",
                extra={"intake_id": str(intake.pk), "session_id": session_id},
            )
        else:
            logger.info(
                "Checkout completion for intake already past payment",
                extra={"intake_id": str(intake.pk), "status": intake.status},
            )

        payment, _ = PaymentRecord.objects.select_for_update().get_or_create(
            intake=intake,
            defaults={
                "gateway_session_ref": session_id,
                "amount_cents": intake.amount_cents,
                "currency": settings.STRIPE_CURRENCY,
            },
        )
        if payment.status == PaymentRecordStatus.PENDING:
            payment.gateway_session_ref = session_id
            payment.mark_paid(
                payment_ref=session.get("payment_intent"),
                amount_cents=session.get("amount_total"),
            )
            if session.get("currency"):
                payment.currency = session["currency"]
            payment.save()

    return ServiceResult.success(None)


@register_handler("checkout.session.expired")
def handle_checkout_session_expired(webhook_event: WebhookEvent) -> ServiceResult:
    """Clear an expired session from the Intake still waiting on it."""
    session_id = webhook_event.get_object().get("id")
    if not session_id:
        return ServiceResult.failure(
            "Could not extract session id from webhook",
            error_code="INVALID_WEBHOOK_PAYLOAD",
        )

    cleared = IntakeRepository.clear_session(session_id)
    logger.info(
        "Checkout session expired",
        extra={"session_id": session_id, "intakes_cleared": cleared},
    )
    return ServiceResult.success(None)
