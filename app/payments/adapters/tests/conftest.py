"""
Pytest fixtures for Stripe adapter tests.

This module provides fixtures for testing the Stripe adapter, including
mock Stripe API responses, error conditions, and test data.

Sections:
    - Test Data Fixtures
    - Mock Stripe Response Fixtures
    - Mock Stripe Error Fixtures
    - Mock Stripe Client Fixtures
"""

import uuid
from dataclasses import dataclass
from typing import Any
from unittest.mock import patch

import pytest
import stripe

from payments.adapters import CheckoutSessionParams


# =============================================================================
# Test Data Fixtures
# =============================================================================


@pytest.fixture
def intake_id():
    """Generate a random intake UUID for testing."""
    return uuid.uuid4()


@pytest.fixture
def session_params(intake_id):
    """Checkout session parameters for a one-day certificate."""
    return CheckoutSessionParams(
        price_ref="price_med_cert_1day",
        success_url=f"https://app.example.com/patient/intakes/success?intake_id={intake_id}",
        cancel_url=f"https://app.example.com/patient/intakes/cancelled?intake_id={intake_id}",
        idempotency_key=f"checkout:test-{uuid.uuid4()}",
        metadata={"intake_id": str(intake_id)},
        customer_email="patient@example.com",
    )


# =============================================================================
# Mock Stripe Response Fixtures
# =============================================================================


@dataclass
class MockStripeObject:
    """Mock Stripe API object with to_dict support."""

    data: dict[str, Any]

    def __getattr__(self, name: str) -> Any:
        if name == "data":
            return self.__dict__["data"]
        return self.data.get(name)

    def to_dict(self) -> dict[str, Any]:
        return self.data


@pytest.fixture
def mock_checkout_session():
    """Create a mock Checkout Session response."""

    def _create(
        id: str = "cs_test_a1b2c3",
        url: str | None = "https://checkout.stripe.com/c/pay/cs_test_a1b2c3",
        status: str = "open",
        payment_status: str = "unpaid",
        payment_intent: Any = None,
        amount_total: int = 1995,
        metadata: dict | None = None,
    ) -> MockStripeObject:
        return MockStripeObject(
            {
                "id": id,
                "object": "checkout.session",
                "url": url,
                "status": status,
                "payment_status": payment_status,
                "payment_intent": payment_intent,
                "amount_total": amount_total,
                "currency": "aud",
                "metadata": metadata or {},
            }
        )

    return _create


@pytest.fixture
def mock_refund():
    """Create a mock Refund response."""

    def _create(
        id: str = "re_test123456",
        amount: int = 1995,
        status: str = "succeeded",
        payment_intent: str = "pi_test123456",
        metadata: dict | None = None,
    ) -> MockStripeObject:
        return MockStripeObject(
            {
                "id": id,
                "object": "refund",
                "amount": amount,
                "currency": "aud",
                "status": status,
                "payment_intent": payment_intent,
                "metadata": metadata or {},
            }
        )

    return _create


# =============================================================================
# Mock Stripe Error Fixtures
# =============================================================================


@pytest.fixture
def card_error():
    """Create a Stripe CardError."""
    error = stripe.CardError(
        message="Your card was declined.",
        param=None,
        code="card_declined",
    )
    error.decline_code = "generic_decline"
    return error


@pytest.fixture
def invalid_request_error():
    """Create a Stripe InvalidRequestError."""

    def _create(
        message: str = "No such checkout.session: 'cs_missing'",
        param: str | None = "id",
        code: str = "resource_missing",
    ) -> stripe.InvalidRequestError:
        return stripe.InvalidRequestError(message=message, param=param, code=code)

    return _create


@pytest.fixture
def rate_limit_error():
    """Create a Stripe RateLimitError."""
    return stripe.RateLimitError(message="Too many requests hit the API too quickly.")


@pytest.fixture
def api_connection_error():
    """Create a Stripe APIConnectionError."""
    return stripe.APIConnectionError(message="Could not connect to Stripe.")


@pytest.fixture
def timeout_error():
    """Create a Stripe APIConnectionError for a timeout."""
    return stripe.APIConnectionError(message="Request timed out after 10 seconds.")


@pytest.fixture
def api_error():
    """Create a Stripe APIError."""
    return stripe.APIError(message="Something went wrong on Stripe's end.")


@pytest.fixture
def authentication_error():
    """Create a Stripe AuthenticationError."""
    return stripe.AuthenticationError(message="Invalid API Key provided.")


@pytest.fixture
def signature_verification_error():
    """Create a Stripe SignatureVerificationError."""
    return stripe.SignatureVerificationError(
        message="Unable to verify webhook signature.",
        sig_header="bad_signature",
    )


# =============================================================================
# Mock Stripe Client Fixtures
# =============================================================================


@pytest.fixture
def mock_stripe_session(mock_checkout_session):
    """Mock stripe.checkout.Session API."""
    with patch("stripe.checkout.Session") as mock:
        mock.create.return_value = mock_checkout_session()
        mock.retrieve.return_value = mock_checkout_session()
        mock.expire.return_value = mock_checkout_session(url=None, status="expired")
        yield mock


@pytest.fixture
def mock_stripe_refund(mock_refund):
    """Mock stripe.Refund API."""
    with patch("stripe.Refund") as mock:
        mock.create.return_value = mock_refund()
        yield mock


@pytest.fixture
def mock_stripe_webhook():
    """Mock stripe.Webhook API."""
    with patch("stripe.Webhook") as mock:
        mock.construct_event.return_value = MockStripeObject(
            {
                "id": "evt_test123",
                "type": "checkout.session.completed",
                "data": {"object": {"id": "cs_test_a1b2c3", "object": "checkout.session"}},
            }
        )
        yield mock


@pytest.fixture
def mock_stripe_http_client():
    """Mock stripe.RequestsClient."""
    with patch("stripe.RequestsClient") as mock:
        yield mock


@pytest.fixture
def no_sleep():
    """Skip retry backoff sleeps."""
    with patch("payments.adapters.stripe_adapter.time.sleep") as mock:
        yield mock
