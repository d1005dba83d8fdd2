"""
Tests for the Stripe webhook view.

Tests cover:
- Stripe signature verification
- Webhook event creation and idempotency
- Unhandled event types acknowledged without storage
- Task queuing
- Error handling
"""

import json
import logging
from unittest.mock import patch

import pytest
from django.test import RequestFactory
from django.urls import reverse

from payments.exceptions import StripeInvalidRequestError
from payments.models import WebhookEvent
from payments.state_machines import WebhookEventStatus
from payments.webhooks.views import stripe_webhook


# =============================================================================
# Setup
# =============================================================================


@pytest.fixture
def rf():
    """Request factory for creating test requests."""
    return RequestFactory()


@pytest.fixture
def mock_verify():
    with patch("payments.webhooks.views.StripeAdapter.verify_webhook_signature") as mock:
        yield mock


def make_webhook_request(rf, payload: dict, signature: str = "t=1,v1=test_sig"):
    """Create a POST request to the webhook endpoint."""
    return rf.post(
        reverse("payments:stripe_webhook"),
        data=json.dumps(payload),
        content_type="application/json",
        HTTP_STRIPE_SIGNATURE=signature,
    )


# =============================================================================
# Signature Verification Tests
# =============================================================================


class TestStripeWebhookSignature:
    """Tests for signature verification."""

    def test_missing_signature_returns_400(self, rf, db):
        request = rf.post(
            reverse("payments:stripe_webhook"),
            data=json.dumps({"id": "evt_test"}),
            content_type="application/json",
        )

        response = stripe_webhook(request)

        assert response.status_code == 400
        assert b"Missing signature" in response.content

    def test_invalid_signature_returns_400(self, rf, db, mock_verify):
        mock_verify.side_effect = StripeInvalidRequestError("Invalid signature")

        response = stripe_webhook(
            make_webhook_request(rf, {"id": "evt_test"}, signature="invalid_sig")
        )

        assert response.status_code == 400
        assert b"Invalid signature" in response.content
        assert not WebhookEvent.objects.exists()

    def test_verifies_raw_body(self, rf, db, mock_verify, completed_payload):
        mock_verify.return_value = completed_payload
        request = make_webhook_request(rf, completed_payload)

        with patch("payments.tasks.process_webhook_event.delay"):
            stripe_webhook(request)

        mock_verify.assert_called_once_with(request.body, "t=1,v1=test_sig")


# =============================================================================
# Event Creation Tests
# =============================================================================


class TestStripeWebhookEventCreation:
    """Tests for webhook event creation."""

    def test_creates_new_webhook_event(self, rf, db, mock_verify, completed_payload):
        mock_verify.return_value = completed_payload

        with patch("payments.tasks.process_webhook_event.delay"):
            response = stripe_webhook(make_webhook_request(rf, completed_payload))

        assert response.status_code == 200
        event = WebhookEvent.objects.get(stripe_event_id=completed_payload["id"])
        assert event.event_type == "checkout.session.completed"
        assert event.status == WebhookEventStatus.PENDING
        assert event.payload == completed_payload

    def test_idempotent_for_processed_events(self, rf, db, mock_verify, processed_webhook_event):
        payload = processed_webhook_event.payload
        mock_verify.return_value = payload

        with patch("payments.tasks.process_webhook_event.delay") as mock_task:
            response = stripe_webhook(make_webhook_request(rf, payload))

        assert response.status_code == 200
        assert b"Already processed" in response.content
        mock_task.assert_not_called()
        assert WebhookEvent.objects.count() == 1

    def test_redelivered_unprocessed_event_requeued(
        self, rf, db, mock_verify, failed_webhook_event
    ):
        payload = failed_webhook_event.payload
        mock_verify.return_value = payload

        with patch("payments.tasks.process_webhook_event.delay") as mock_task:
            response = stripe_webhook(make_webhook_request(rf, payload))

        assert response.status_code == 200
        mock_task.assert_called_once_with(str(failed_webhook_event.id))
        assert WebhookEvent.objects.count() == 1

    @pytest.mark.parametrize(
        "payload",
        [
            {"type": "checkout.session.completed", "data": {"object": {}}},
            {"id": "evt_no_type_123", "data": {"object": {}}},
        ],
    )
    def test_missing_id_or_type(self, rf, db, mock_verify, payload):
        mock_verify.return_value = payload

        response = stripe_webhook(make_webhook_request(rf, payload))

        assert response.status_code == 400
        assert b"Invalid event" in response.content

    @pytest.mark.parametrize("event_type", ["invoice.paid", "customer.subscription.created"])
    def test_unhandled_event_type_not_stored(self, rf, db, mock_verify, event_type):
        payload = {"id": "evt_unhandled_123", "type": event_type, "data": {"object": {}}}
        mock_verify.return_value = payload

        with patch("payments.tasks.process_webhook_event.delay") as mock_task:
            response = stripe_webhook(make_webhook_request(rf, payload))

        assert response.status_code == 200
        assert b"Ignored" in response.content
        assert not WebhookEvent.objects.exists()
        mock_task.assert_not_called()

    def test_logs_checkout_session_and_intake(
        self, rf, db, mock_verify, completed_payload, awaiting_payment_intake, caplog
    ):
        mock_verify.return_value = completed_payload

        with patch("payments.tasks.process_webhook_event.delay"), caplog.at_level(logging.INFO):
            stripe_webhook(make_webhook_request(rf, completed_payload))

        record = next(r for r in caplog.records if r.getMessage().startswith("Checkout event"))
        assert record.checkout_session_id == "cs_test_webhook"
        assert record.intake_id == str(awaiting_payment_intake.pk)
        assert record.redelivery is False


# =============================================================================
# Task Queuing Tests
# =============================================================================


class TestStripeWebhookTaskQueuing:
    """Tests for async task queuing."""

    def test_queues_task_for_new_event(self, rf, db, mock_verify, completed_payload):
        mock_verify.return_value = completed_payload

        with patch("payments.tasks.process_webhook_event.delay") as mock_task:
            response = stripe_webhook(make_webhook_request(rf, completed_payload))

        assert response.status_code == 200
        event = WebhookEvent.objects.get(stripe_event_id=completed_payload["id"])
        mock_task.assert_called_once_with(str(event.id))

    def test_task_queuing_failure_returns_200(self, rf, db, mock_verify, completed_payload):
        """Stripe redelivers, and the stored event is picked up by the retry sweep."""
        mock_verify.return_value = completed_payload

        with patch("payments.tasks.process_webhook_event.delay") as mock_task:
            mock_task.side_effect = Exception("Celery connection error")
            response = stripe_webhook(make_webhook_request(rf, completed_payload))

        assert response.status_code == 200
        assert b"Accepted" in response.content
        assert WebhookEvent.objects.filter(stripe_event_id=completed_payload["id"]).exists()


# =============================================================================
# HTTP Method Tests
# =============================================================================


class TestStripeWebhookHttpMethods:
    """Tests for HTTP method restrictions."""

    @pytest.mark.parametrize("method", ["get", "put", "delete"])
    def test_only_post_allowed(self, rf, db, method):
        request = getattr(rf, method)(reverse("payments:stripe_webhook"))

        response = stripe_webhook(request)

        assert response.status_code == 405
