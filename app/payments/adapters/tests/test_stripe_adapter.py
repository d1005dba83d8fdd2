"""
Tests for Stripe adapter.

Tests cover:
- Parameter validation and idempotency key generation
- Error translation for each exception type
- In-adapter retry of transient failures
- Checkout Session and Refund operations
- Webhook signature verification
- Helper functions (is_retryable, backoff_delay)
"""

import uuid

import pytest
import stripe
from django.test import override_settings

from payments.adapters import (
    CheckoutSessionParams,
    CheckoutSessionResult,
    IdempotencyKeyGenerator,
    RefundResult,
    StripeAdapter,
    backoff_delay,
)
from payments.exceptions import (
    StripeAPIUnavailableError,
    StripeAuthenticationError,
    StripeCardDeclinedError,
    StripeInvalidRequestError,
    StripeRateLimitError,
    StripeTimeoutError,
)


# =============================================================================
# CheckoutSessionParams Tests
# =============================================================================


class TestCheckoutSessionParams:
    """Tests for CheckoutSessionParams dataclass validation."""

    def test_valid_params(self, session_params):
        assert session_params.quantity == 1
        assert session_params.customer_ref is None

    def test_price_ref_required(self):
        with pytest.raises(ValueError, match="price_ref is required"):
            CheckoutSessionParams(
                price_ref="",
                success_url="https://app.example.com/ok",
                cancel_url="https://app.example.com/cancel",
                idempotency_key="checkout:key",
            )

    def test_idempotency_key_required(self):
        with pytest.raises(ValueError, match="idempotency_key is required"):
            CheckoutSessionParams(
                price_ref="price_consult",
                success_url="https://app.example.com/ok",
                cancel_url="https://app.example.com/cancel",
                idempotency_key="",
            )


# =============================================================================
# IdempotencyKeyGenerator Tests
# =============================================================================


class TestIdempotencyKeyGenerator:
    """Tests for IdempotencyKeyGenerator."""

    def test_generate_key_format(self):
        entity_id = uuid.uuid4()

        key = IdempotencyKeyGenerator.generate("refund", entity_id, attempt=1)

        parts = key.split(":")
        assert len(parts) == 4
        assert parts[0] == "refund"
        assert parts[1] == str(entity_id)
        assert parts[2] == "1"
        assert len(parts[3]) == 8

    def test_same_inputs_produce_same_key(self):
        entity_id = uuid.uuid4()

        assert IdempotencyKeyGenerator.generate(
            "checkout_retry", entity_id, attempt=2
        ) == IdempotencyKeyGenerator.generate("checkout_retry", entity_id, attempt=2)

    def test_different_attempts_produce_different_keys(self):
        entity_id = uuid.uuid4()

        assert IdempotencyKeyGenerator.generate(
            "refund", entity_id, attempt=1
        ) != IdempotencyKeyGenerator.generate("refund", entity_id, attempt=2)

    def test_different_operations_produce_different_keys(self):
        entity_id = uuid.uuid4()

        assert IdempotencyKeyGenerator.generate(
            "refund", entity_id
        ) != IdempotencyKeyGenerator.generate("checkout_retry", entity_id)


# =============================================================================
# Helper Function Tests
# =============================================================================


class TestBackoffDelay:
    """Tests for backoff_delay helper."""

    def test_exponential_growth(self):
        # Base delays are 1, 2, 4 plus up to 25% jitter
        assert 1.0 <= backoff_delay(0, base=1.0, max_delay=60.0) <= 1.25
        assert 2.0 <= backoff_delay(1, base=1.0, max_delay=60.0) <= 2.5
        assert 4.0 <= backoff_delay(2, base=1.0, max_delay=60.0) <= 5.0

    def test_respects_max_delay(self):
        assert backoff_delay(10, base=1.0, max_delay=60.0) <= 75.0

    def test_custom_base(self):
        assert 30.0 <= backoff_delay(0, base=30.0) <= 37.5


# =============================================================================
# StripeAdapter Error Translation Tests
# =============================================================================


class TestStripeAdapterErrorTranslation:
    """Tests for Stripe error translation to domain exceptions."""

    @pytest.fixture(autouse=True)
    def setup_mocks(self, mock_stripe_http_client, no_sleep):
        """Set up common mocks for all tests."""

    def test_card_declined_error(self, mock_stripe_session, session_params, card_error):
        mock_stripe_session.create.side_effect = card_error

        with pytest.raises(StripeCardDeclinedError) as exc_info:
            StripeAdapter.create_checkout_session(session_params)

        assert exc_info.value.decline_code == "generic_decline"
        assert exc_info.value.is_retryable is False

    def test_invalid_request_error(
        self, mock_stripe_session, session_params, invalid_request_error
    ):
        mock_stripe_session.create.side_effect = invalid_request_error()

        with pytest.raises(StripeInvalidRequestError) as exc_info:
            StripeAdapter.create_checkout_session(session_params)

        assert exc_info.value.is_retryable is False
        assert exc_info.value.is_configuration is False
        assert exc_info.value.stripe_code == "resource_missing"

    def test_unknown_price_is_configuration(
        self, mock_stripe_session, session_params, invalid_request_error
    ):
        mock_stripe_session.create.side_effect = invalid_request_error(
            message="No such price: 'price_med_cert_1day'", param="line_items[0][price]"
        )

        with pytest.raises(StripeInvalidRequestError) as exc_info:
            StripeAdapter.create_checkout_session(session_params)

        assert exc_info.value.is_configuration is True

    def test_authentication_error(
        self, mock_stripe_session, session_params, authentication_error
    ):
        mock_stripe_session.create.side_effect = authentication_error

        with pytest.raises(StripeAuthenticationError) as exc_info:
            StripeAdapter.create_checkout_session(session_params)

        assert exc_info.value.is_configuration is True
        mock_stripe_session.create.assert_called_once()

    def test_rate_limit_error(self, mock_stripe_session, session_params, rate_limit_error):
        mock_stripe_session.create.side_effect = rate_limit_error

        with pytest.raises(StripeRateLimitError) as exc_info:
            StripeAdapter.create_checkout_session(session_params)

        assert exc_info.value.is_retryable is True

    def test_api_connection_error(
        self, mock_stripe_session, session_params, api_connection_error
    ):
        mock_stripe_session.create.side_effect = api_connection_error

        with pytest.raises(StripeAPIUnavailableError):
            StripeAdapter.create_checkout_session(session_params)

    def test_timeout_error(self, mock_stripe_session, session_params, timeout_error):
        mock_stripe_session.create.side_effect = timeout_error

        with pytest.raises(StripeTimeoutError):
            StripeAdapter.create_checkout_session(session_params)

    def test_api_error(self, mock_stripe_session, session_params, api_error):
        mock_stripe_session.create.side_effect = api_error

        with pytest.raises(StripeAPIUnavailableError):
            StripeAdapter.create_checkout_session(session_params)

    def test_non_stripe_error_propagates(self, mock_stripe_session, session_params):
        mock_stripe_session.create.side_effect = RuntimeError("bug")

        with pytest.raises(RuntimeError, match="bug"):
            StripeAdapter.create_checkout_session(session_params)

        mock_stripe_session.create.assert_called_once()


# =============================================================================
# Retry Tests
# =============================================================================


class TestStripeAdapterRetry:
    """Transient failures are retried with the same idempotency key."""

    @pytest.fixture(autouse=True)
    def setup_mocks(self, mock_stripe_http_client):
        """Set up common mocks for all tests."""

    @override_settings(STRIPE_MAX_RETRIES=2)
    def test_transient_error_then_success(
        self,
        mock_stripe_session,
        mock_checkout_session,
        session_params,
        api_connection_error,
        no_sleep,
    ):
        mock_stripe_session.create.side_effect = [
            api_connection_error,
            mock_checkout_session(),
        ]

        result = StripeAdapter.create_checkout_session(session_params)

        assert result.id == "cs_test_a1b2c3"
        assert mock_stripe_session.create.call_count == 2
        keys = {c.kwargs["idempotency_key"] for c in mock_stripe_session.create.call_args_list}
        assert keys == {session_params.idempotency_key}
        no_sleep.assert_called_once()

    @override_settings(STRIPE_MAX_RETRIES=2)
    def test_gives_up_after_max_retries(
        self, mock_stripe_session, session_params, rate_limit_error, no_sleep
    ):
        mock_stripe_session.create.side_effect = rate_limit_error

        with pytest.raises(StripeRateLimitError):
            StripeAdapter.create_checkout_session(session_params)

        assert mock_stripe_session.create.call_count == 3

    @override_settings(STRIPE_MAX_RETRIES=2)
    def test_permanent_error_not_retried(
        self, mock_stripe_session, session_params, card_error, no_sleep
    ):
        mock_stripe_session.create.side_effect = card_error

        with pytest.raises(StripeCardDeclinedError):
            StripeAdapter.create_checkout_session(session_params)

        mock_stripe_session.create.assert_called_once()
        no_sleep.assert_not_called()


# =============================================================================
# Checkout Session Tests
# =============================================================================


class TestStripeAdapterCheckoutSession:
    """Tests for Checkout Session operations."""

    @pytest.fixture(autouse=True)
    def setup_mocks(self, mock_stripe_http_client):
        """Set up common mocks for all tests."""

    def test_create_checkout_session_success(self, mock_stripe_session, session_params):
        result = StripeAdapter.create_checkout_session(session_params)

        assert isinstance(result, CheckoutSessionResult)
        assert result.id == "cs_test_a1b2c3"
        assert result.url == "https://checkout.stripe.com/c/pay/cs_test_a1b2c3"
        assert result.status == "open"
        assert result.amount_total == 1995

    def test_create_request_shape(self, mock_stripe_session, session_params):
        StripeAdapter.create_checkout_session(session_params)

        kwargs = mock_stripe_session.create.call_args.kwargs
        assert kwargs["mode"] == "payment"
        assert kwargs["line_items"] == [{"price": "price_med_cert_1day", "quantity": 1}]
        assert kwargs["idempotency_key"] == session_params.idempotency_key
        assert kwargs["metadata"] == session_params.metadata
        assert kwargs["payment_intent_data"] == {"metadata": session_params.metadata}
        assert kwargs["customer_email"] == "patient@example.com"
        assert "customer" not in kwargs

    def test_customer_takes_precedence(self, mock_stripe_session, session_params):
        session_params.customer_ref = "cus_test_42"

        StripeAdapter.create_checkout_session(session_params)

        kwargs = mock_stripe_session.create.call_args.kwargs
        assert kwargs["customer"] == "cus_test_42"
        assert "customer_email" not in kwargs

    def test_retrieve_expands_payment_intent_id(
        self, mock_stripe_session, mock_checkout_session
    ):
        mock_stripe_session.retrieve.return_value = mock_checkout_session(
            status="complete", payment_status="paid", payment_intent="pi_test_paid"
        )

        result = StripeAdapter.retrieve_checkout_session("cs_test_a1b2c3")

        mock_stripe_session.retrieve.assert_called_once_with("cs_test_a1b2c3")
        assert result.payment_intent_id == "pi_test_paid"
        assert result.payment_status == "paid"

    def test_expire_checkout_session(self, mock_stripe_session):
        result = StripeAdapter.expire_checkout_session("cs_test_a1b2c3")

        mock_stripe_session.expire.assert_called_once_with("cs_test_a1b2c3")
        assert result.status == "expired"
        assert result.url is None


# =============================================================================
# Refund Tests
# =============================================================================


class TestStripeAdapterCreateRefund:
    """Tests for StripeAdapter.create_refund."""

    @pytest.fixture(autouse=True)
    def setup_mocks(self, mock_stripe_http_client):
        """Set up common mocks for all tests."""

    def test_create_refund_success(self, mock_stripe_refund, mock_refund):
        mock_stripe_refund.create.return_value = mock_refund(
            id="re_test123", amount=2495, payment_intent="pi_original"
        )

        result = StripeAdapter.create_refund(
            payment_intent_id="pi_original",
            idempotency_key="refund-key",
        )

        assert isinstance(result, RefundResult)
        assert result.id == "re_test123"
        assert result.amount_cents == 2495
        assert result.currency == "aud"
        assert result.payment_intent_id == "pi_original"

    def test_full_refund_omits_amount(self, mock_stripe_refund):
        StripeAdapter.create_refund(
            payment_intent_id="pi_test",
            idempotency_key="refund-key",
            reason="requested_by_customer",
            metadata={"intake_id": "abc"},
        )

        kwargs = mock_stripe_refund.create.call_args.kwargs
        assert "amount" not in kwargs
        assert kwargs["reason"] == "requested_by_customer"
        assert kwargs["metadata"] == {"intake_id": "abc"}
        assert kwargs["idempotency_key"] == "refund-key"

    def test_create_partial_refund(self, mock_stripe_refund):
        StripeAdapter.create_refund(
            payment_intent_id="pi_test",
            idempotency_key="refund-key",
            amount_cents=1000,
        )

        assert mock_stripe_refund.create.call_args.kwargs["amount"] == 1000


# =============================================================================
# Webhook Verification Tests
# =============================================================================


class TestStripeAdapterVerifyWebhookSignature:
    """Tests for StripeAdapter.verify_webhook_signature."""

    def test_verify_webhook_signature_success(self, mock_stripe_webhook):
        result = StripeAdapter.verify_webhook_signature(
            payload=b'{"id": "evt_test"}',
            signature="test_signature",
        )

        assert result["id"] == "evt_test123"
        assert result["type"] == "checkout.session.completed"

    @override_settings(STRIPE_WEBHOOK_SECRET="whsec_custom")
    def test_uses_webhook_secret(self, mock_stripe_webhook):
        StripeAdapter.verify_webhook_signature(payload=b"{}", signature="sig")

        mock_stripe_webhook.construct_event.assert_called_once_with(b"{}", "sig", "whsec_custom")

    def test_verify_webhook_signature_invalid(
        self, mock_stripe_webhook, signature_verification_error
    ):
        mock_stripe_webhook.construct_event.side_effect = signature_verification_error

        with pytest.raises(StripeInvalidRequestError) as exc_info:
            StripeAdapter.verify_webhook_signature(payload=b"tampered", signature="bad_signature")

        assert "signature" in str(exc_info.value).lower()

    def test_malformed_payload(self, mock_stripe_webhook):
        mock_stripe_webhook.construct_event.side_effect = ValueError("Invalid payload")

        with pytest.raises(StripeInvalidRequestError):
            StripeAdapter.verify_webhook_signature(payload=b"not json", signature="sig")


# =============================================================================
# Configuration Tests
# =============================================================================


class TestStripeAdapterConfiguration:
    """Tests for Stripe adapter configuration."""

    @override_settings(STRIPE_SECRET_KEY="sk_test_custom")
    def test_uses_settings_api_key(
        self, mock_stripe_session, session_params, mock_stripe_http_client
    ):
        StripeAdapter.create_checkout_session(session_params)

        assert stripe.api_key == "sk_test_custom"

    @override_settings(STRIPE_API_TIMEOUT=30)
    def test_uses_settings_timeout(
        self, mock_stripe_session, session_params, mock_stripe_http_client
    ):
        StripeAdapter.create_checkout_session(session_params)

        mock_stripe_http_client.assert_called_with(timeout=30)
