"""
Stripe webhook endpoint for Checkout events.

Only the Checkout Session events that move an Intake through payment are
stored (see ``WEBHOOK_HANDLERS``). Anything else Stripe sends to the
endpoint is acknowledged and dropped, so the event table only holds
events the workers will act on.

A handled event is verified, stored once by Stripe event ID, and handed to
``process_webhook_event``. The response never waits for the Intake to be
updated.
"""

from __future__ import annotations

import logging

from django.http import HttpRequest, HttpResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from payments.adapters import StripeAdapter
from payments.exceptions import StripeInvalidRequestError
from payments.models import WebhookEvent
from payments.state_machines import WebhookEventStatus
from payments.webhooks.handlers import WEBHOOK_HANDLERS

logger = logging.getLogger(__name__)


def _checkout_log_fields(event_data: dict) -> dict:
    """Session and intake identifiers for log lines."""
    session = (event_data.get("data") or {}).get("object") or {}
    metadata = session.get("metadata") or {}
    return {
        "stripe_event_id": event_data.get("id"),
        "event_type": event_data.get("type"),
        "checkout_session_id": session.get("id"),
        "intake_id": metadata.get("intake_id") or session.get("client_reference_id"),
    }


@csrf_exempt
@require_POST
def stripe_webhook(request: HttpRequest) -> HttpResponse:
    """
    Accept a Checkout Session event from Stripe.

    Returns:
        HttpResponse with status:
        - 200: Event queued, already processed, or not a handled type
        - 400: Missing or invalid signature, or no event id/type
    """
    signature = request.headers.get("Stripe-Signature", "")
    if not signature:
        logger.warning("Checkout webhook received without Stripe-Signature header")
        return HttpResponse("Missing signature", status=400)

    try:
        event_data = StripeAdapter.verify_webhook_signature(request.body, signature)
    except StripeInvalidRequestError as e:
        logger.warning("Checkout webhook signature rejected", extra={"error": str(e)})
        return HttpResponse("Invalid signature", status=400)

    log_fields = _checkout_log_fields(event_data)
    stripe_event_id = log_fields["stripe_event_id"]
    event_type = log_fields["event_type"]

    if not stripe_event_id or not event_type:
        logger.warning("Checkout webhook missing event id or type", extra=log_fields)
        return HttpResponse("Invalid event", status=400)

    if event_type not in WEBHOOK_HANDLERS:
        logger.info(f"Ignoring unhandled Stripe event {event_type}", extra=log_fields)
        return HttpResponse("Ignored", status=200)

    webhook_event, created = WebhookEvent.objects.get_or_create(
        stripe_event_id=stripe_event_id,
        defaults={
            "event_type": event_type,
            "payload": event_data,
            "status": WebhookEventStatus.PENDING,
        },
    )

    if not created and webhook_event.is_processed:
        logger.info("Checkout event already applied", extra=log_fields)
        return HttpResponse("Already processed", status=200)

    logger.info(
        f"Checkout event {event_type} received",
        extra={**log_fields, "redelivery": not created},
    )

    try:
        from payments.tasks import process_webhook_event

        process_webhook_event.delay(str(webhook_event.id))
    except Exception:
        # The stored event is picked up by retry_failed_webhooks
        logger.error("Could not queue checkout event", extra=log_fields, exc_info=True)

    return HttpResponse("Accepted", status=200)
