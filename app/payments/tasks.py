"""
Celery tasks for payment processing.

This module provides async tasks for:
- Processing Stripe webhook events
- Retrying failed or never-dispatched webhook events
- Periodic cleanup of old/stuck events
- Refunding declined intakes, and releasing refund claims left behind by
  a dead worker

Usage:
    from payments.tasks import process_webhook_event

    # Queue a webhook for async processing
    process_webhook_event.delay(webhook_event_id)

    # Queued on commit when a reviewer declines an intake
    from payments.tasks import refund_declined_intake
    refund_declined_intake.delay(str(intake.id), str(reviewer.id))
"""

from __future__ import annotations

import logging
from datetime import timedelta
from uuid import UUID

from celery import shared_task
from django.db import transaction
from django.utils import timezone

from payments.adapters.stripe_adapter import backoff_delay
from payments.exceptions import RefundError
from payments.models import WebhookEvent
from payments.models.webhook_event import MAX_WEBHOOK_RETRIES
from payments.state_machines import WebhookEventStatus

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

STUCK_PROCESSING_THRESHOLD_MINUTES = 30
STALE_PENDING_THRESHOLD_MINUTES = 10
MAX_REFUND_RETRIES = 5
REFUND_RETRY_BASE_DELAY_SECONDS = 30.0


# =============================================================================
# Webhook Processing Tasks
# =============================================================================


@shared_task(
    bind=True,
    autoretry_for=(Exception,),
    retry_backoff=True,
    retry_backoff_max=300,
    retry_kwargs={"max_retries": MAX_WEBHOOK_RETRIES},
    acks_late=True,
)
def process_webhook_event(self, webhook_event_id: str) -> dict:
    """
    Process a stored Stripe webhook event.

    This task:
    1. Loads the WebhookEvent by ID
    2. Checks if already processed (idempotency)
    3. Marks as processing
    4. Dispatches to the registered handler inside a transaction
    5. Marks as processed or failed

    Args:
        webhook_event_id: UUID of the WebhookEvent to process

    Returns:
        Dict with processing result status

    Raises:
        Exception: Re-raised to trigger Celery retry mechanism
    """
    # Import here to avoid circular imports
    from payments.webhooks.handlers import dispatch_webhook

    if isinstance(webhook_event_id, str):
        webhook_event_id = UUID(webhook_event_id)

    try:
        webhook_event = WebhookEvent.objects.get(id=webhook_event_id)
    except WebhookEvent.DoesNotExist:
        logger.error(
            "WebhookEvent not found",
            extra={"webhook_event_id": str(webhook_event_id)},
        )
        return {"status": "not_found", "webhook_event_id": str(webhook_event_id)}

    if webhook_event.is_processed:
        logger.info(
            "WebhookEvent already processed, skipping",
            extra={
                "webhook_event_id": str(webhook_event_id),
                "stripe_event_id": webhook_event.stripe_event_id,
            },
        )
        return {"status": "already_processed", "webhook_event_id": str(webhook_event_id)}

    webhook_event.mark_processing()
    webhook_event.save()

    logger.info(
        f"Dispatching webhook: {webhook_event.event_type}",
        extra={
            "webhook_event_id": str(webhook_event_id),
            "stripe_event_id": webhook_event.stripe_event_id,
            "event_type": webhook_event.event_type,
            "retry_count": webhook_event.retry_count,
        },
    )

    try:
        with transaction.atomic():
            result = dispatch_webhook(webhook_event)
    except Exception as e:
        error_msg = f"{type(e).__name__}: {e}"
        webhook_event.mark_failed(error_msg)
        webhook_event.save()
        logger.exception(
            "Webhook processing failed with exception",
            extra={
                "webhook_event_id": str(webhook_event_id),
                "stripe_event_id": webhook_event.stripe_event_id,
            },
        )
        raise

    if result.success:
        webhook_event.mark_processed()
        webhook_event.save()
        logger.info(
            "Webhook processed successfully",
            extra={
                "webhook_event_id": str(webhook_event_id),
                "stripe_event_id": webhook_event.stripe_event_id,
            },
        )
        return {
            "status": "processed",
            "webhook_event_id": str(webhook_event_id),
            "stripe_event_id": webhook_event.stripe_event_id,
        }

    error_msg = result.error or "Handler returned failure"
    webhook_event.mark_failed(error_msg)
    webhook_event.save()
    logger.warning(
        f"Webhook handler failed: {error_msg}",
        extra={
            "webhook_event_id": str(webhook_event_id),
            "stripe_event_id": webhook_event.stripe_event_id,
            "error_code": result.error_code,
        },
    )
    return {
        "status": "handler_failed",
        "webhook_event_id": str(webhook_event_id),
        "error": error_msg,
    }


@shared_task
def retry_failed_webhooks() -> dict:
    """
    Periodic task to re-queue webhook events.

    Picks up failed events that haven't exceeded max retries, and pending
    events whose original enqueue never ran (broker outage during the
    webhook request).

    Scheduled via celery-beat every 5 minutes.

    Returns:
        Dict with count of webhooks queued
    """
    stale = timezone.now() - timedelta(minutes=STALE_PENDING_THRESHOLD_MINUTES)
    failed = WebhookEvent.objects.filter(
        status=WebhookEventStatus.FAILED,
        retry_count__lt=MAX_WEBHOOK_RETRIES,
    )
    pending = WebhookEvent.objects.filter(
        status=WebhookEventStatus.PENDING,
        created_at__lt=stale,
    )
    candidates = (failed | pending).order_by("created_at")[:100]

    queued_count = 0
    for webhook in candidates:
        try:
            process_webhook_event.delay(str(webhook.id))
        except Exception as e:
            logger.error(
                f"Failed to queue webhook for retry: {e}",
                extra={"webhook_event_id": str(webhook.id)},
            )
            continue
        queued_count += 1
        logger.info(
            "Queued webhook for retry",
            extra={
                "webhook_event_id": str(webhook.id),
                "stripe_event_id": webhook.stripe_event_id,
                "status": webhook.status,
                "retry_count": webhook.retry_count,
            },
        )

    if queued_count:
        logger.info(
            f"Queued {queued_count} webhooks for retry",
            extra={"queued_count": queued_count},
        )
    return {"queued_count": queued_count}


@shared_task
def cleanup_stuck_webhooks() -> dict:
    """
    Periodic task to reset stuck webhooks.

    Webhooks left in PROCESSING for too long (worker crashed) are reset to
    FAILED so retry_failed_webhooks picks them up.

    Returns:
        Dict with count of webhooks reset
    """
    threshold = timezone.now() - timedelta(minutes=STUCK_PROCESSING_THRESHOLD_MINUTES)
    stuck_webhooks = WebhookEvent.objects.filter(
        status=WebhookEventStatus.PROCESSING,
        updated_at__lt=threshold,
    )

    reset_count = 0
    for webhook in stuck_webhooks:
        stuck_since = webhook.updated_at
        webhook.mark_failed("Processing timed out - reset for retry")
        webhook.save()
        reset_count += 1
        logger.warning(
            "Reset stuck webhook",
            extra={
                "webhook_event_id": str(webhook.id),
                "stripe_event_id": webhook.stripe_event_id,
                "stuck_since": stuck_since.isoformat(),
            },
        )

    return {"reset_count": reset_count}


@shared_task
def cleanup_old_webhooks(days: int = 90) -> dict:
    """
    Delete processed webhook events older than ``days``.

    Failed events are kept for debugging.
    """
    cutoff = timezone.now() - timedelta(days=days)
    deleted_count, _ = WebhookEvent.objects.filter(
        status=WebhookEventStatus.PROCESSED,
        processed_at__lt=cutoff,
    ).delete()

    if deleted_count > 0:
        logger.info(
            f"Deleted {deleted_count} old webhook events",
            extra={"deleted_count": deleted_count, "cutoff_date": cutoff.isoformat()},
        )
    return {"deleted_count": deleted_count}


# =============================================================================
# Refund Tasks
# =============================================================================


@shared_task(
    bind=True,
    acks_late=True,
    max_retries=MAX_REFUND_RETRIES,
)
def refund_declined_intake(self, intake_id: str, actor_id: str | None = None) -> dict:
    """
    Refund a declined intake.

    Queued on commit by the decline decision. Gateway failures
    (REFUND_FAILED) are retried with jittered exponential backoff; every
    other outcome is final. The refund orchestrator is idempotent, so a
    redelivered task never double-refunds.

    Returns:
        Dict with the refund outcome or failure code
    """
    from payments.services import RefundOrchestrator

    result = RefundOrchestrator.refund_if_eligible(intake_id, actor_id)

    if result.success:
        return {"intake_id": str(intake_id), **result.data.as_dict()}

    if result.error_code == RefundError.default_error_code:
        countdown = backoff_delay(self.request.retries, base=REFUND_RETRY_BASE_DELAY_SECONDS)
        logger.warning(
            "Refund failed, scheduling retry",
            extra={
                "intake_id": str(intake_id),
                "retry": self.request.retries,
                "countdown": countdown,
            },
        )
        raise self.retry(exc=RefundError(result.error), countdown=countdown)

    logger.info(
        "Refund not performed",
        extra={"intake_id": str(intake_id), "error_code": result.error_code},
    )
    return {
        "status": "failed",
        "intake_id": str(intake_id),
        "error": result.error,
        "error_code": result.error_code,
    }


@shared_task
def release_stale_refund_claims() -> dict:
    """
    Periodic task to recover refunds abandoned in processing.

    A worker that dies between claiming a refund and recording the result
    leaves the PaymentRecord in processing, where every later attempt is
    turned away as already in progress. Stale claims are released back to
    failed and the refund is queued again under the same attempt number.

    Returns:
        Dict with count of claims released
    """
    from payments.services import RefundOrchestrator

    released = RefundOrchestrator.release_stale_claims()
    for intake_id in released:
        refund_declined_intake.delay(intake_id)

    if released:
        logger.warning(
            "Released stale refund claims",
            extra={"released_count": len(released), "intake_ids": released},
        )
    return {"released_count": len(released)}
