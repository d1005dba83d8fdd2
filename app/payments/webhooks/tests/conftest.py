"""
Pytest fixtures for webhook tests.

Provides WebhookEvent rows in each processing state and checkout session
payloads for intakes awaiting payment.
"""

import pytest

from authentication.tests.factories import UserFactory
from intakes.state_machines import IntakeStatus
from intakes.tests.factories import IntakeFactory
from payments.state_machines import WebhookEventStatus
from payments.tests.factories import WebhookEventFactory, checkout_session_event


# =============================================================================
# Intake Fixtures
# =============================================================================


@pytest.fixture
def user(db):
    return UserFactory()


@pytest.fixture
def awaiting_payment_intake(db, user):
    """Intake with an open checkout session."""
    return IntakeFactory(
        patient=user,
        status=IntakeStatus.PENDING_PAYMENT,
        payment_session_ref="cs_test_webhook",
        payment_session_url="https://checkout.stripe.com/c/pay/cs_test_webhook",
        checkout_attempts=1,
    )


@pytest.fixture
def completed_payload(awaiting_payment_intake):
    """checkout.session.completed payload for awaiting_payment_intake."""
    return checkout_session_event(awaiting_payment_intake)


# =============================================================================
# WebhookEvent Fixtures
# =============================================================================


@pytest.fixture
def pending_webhook_event(db):
    """Create a WebhookEvent in PENDING state."""
    return WebhookEventFactory(stripe_event_id="evt_test_pending_123")


@pytest.fixture
def processing_webhook_event(db):
    """Create a WebhookEvent in PROCESSING state."""
    return WebhookEventFactory(
        stripe_event_id="evt_test_processing_123",
        status=WebhookEventStatus.PROCESSING,
        retry_count=1,
    )


@pytest.fixture
def processed_webhook_event(db):
    """Create a WebhookEvent in PROCESSED state."""
    event = WebhookEventFactory(stripe_event_id="evt_test_processed_123", retry_count=1)
    event.mark_processed()
    event.save()
    return event


@pytest.fixture
def failed_webhook_event(db):
    """Create a WebhookEvent in FAILED state."""
    return WebhookEventFactory(
        stripe_event_id="evt_test_failed_123",
        status=WebhookEventStatus.FAILED,
        error_message="Previous processing failed",
        retry_count=1,
    )
