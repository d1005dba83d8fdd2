"""
Stripe API adapter for checkout and refund operations.

This module provides the StripeAdapter class which encapsulates all
Stripe API interactions. All Stripe calls should go through this
adapter to ensure consistent error handling, timeouts, idempotency,
and observability.

Features:
- Explicit network timeout on all API calls (STRIPE_API_TIMEOUT)
- Bounded retries with jittered exponential backoff on transient errors
- Automatic error translation to domain exceptions
- Structured logging with timing metrics
- Idempotency support for safe retries

Configuration (via settings):
- STRIPE_SECRET_KEY: Stripe API secret key
- STRIPE_WEBHOOK_SECRET: Webhook signing secret
- STRIPE_API_TIMEOUT: API call timeout in seconds (default: 10)
- STRIPE_MAX_RETRIES: Retries after the first attempt (default: 2)
- STRIPE_RETRY_BASE_DELAY_SECONDS: Backoff base delay (default: 0.5)

Usage:
    from payments.adapters import StripeAdapter, CheckoutSessionParams

    session = StripeAdapter.create_checkout_session(
        CheckoutSessionParams(
            price_ref="price_xxx",
            success_url="https://example.com/success",
            cancel_url="https://example.com/cancel",
            idempotency_key="checkout:abc123",
        )
    )
"""

from __future__ import annotations

import hashlib
import logging
import random
import time
import uuid
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import stripe
from django.conf import settings

from payments.exceptions import (
    StripeAPIUnavailableError,
    StripeAuthenticationError,
    StripeCardDeclinedError,
    StripeError,
    StripeInvalidRequestError,
    StripeRateLimitError,
    StripeTimeoutError,
)

if TYPE_CHECKING:
    from collections.abc import Callable


# =============================================================================
# Data Types
# =============================================================================


@dataclass
class CheckoutSessionParams:
    """
    Parameters for creating a Stripe Checkout Session.

    Attributes:
        price_ref: Stripe Price ID (price_xxx)
        success_url: Redirect after payment; may contain {CHECKOUT_SESSION_ID}
        cancel_url: Redirect when the patient abandons checkout
        idempotency_key: Unique key for idempotent creation
        metadata: Key-value pairs attached to the session and PaymentIntent
        customer_ref: Existing Stripe Customer ID (cus_xxx)
        customer_email: Prefilled email when there is no customer
        quantity: Line item quantity (default: 1)
    """

    price_ref: str
    success_url: str
    cancel_url: str
    idempotency_key: str
    metadata: dict[str, str] = field(default_factory=dict)
    customer_ref: str | None = None
    customer_email: str | None = None
    quantity: int = 1

    def __post_init__(self) -> None:
        """Validate parameters after initialization."""
        if not self.price_ref:
            raise ValueError("price_ref is required")
        if not self.idempotency_key:
            raise ValueError("idempotency_key is required")


@dataclass
class CheckoutSessionResult:
    """
    Result from Stripe Checkout Session operations.

    Attributes:
        id: Checkout Session ID (cs_xxx)
        url: Hosted checkout URL (None once the session is complete/expired)
        status: open, complete or expired
        payment_status: unpaid, paid or no_payment_required
        payment_intent_id: PaymentIntent ID once payment started
        amount_total: Total in cents
        currency: Currency code
        metadata: Attached metadata
    """

    id: str
    url: str | None
    status: str | None
    payment_status: str | None = None
    payment_intent_id: str | None = None
    amount_total: int | None = None
    currency: str | None = None
    metadata: dict[str, str] = field(default_factory=dict)


@dataclass
class RefundResult:
    """
    Result from Stripe Refund operations.

    Attributes:
        id: Refund ID (re_xxx)
        amount_cents: Refunded amount in cents
        currency: Currency code
        status: Refund status (succeeded, pending, failed)
        payment_intent_id: Original PaymentIntent ID
        metadata: Attached metadata
    """

    id: str
    amount_cents: int
    currency: str
    status: str
    payment_intent_id: str
    metadata: dict[str, str] = field(default_factory=dict)


# =============================================================================
# Idempotency Key Generator
# =============================================================================


class IdempotencyKeyGenerator:
    """
    Generate idempotency keys for Stripe API calls.

    Format: "{operation}:{entity_id}:{attempt}:{hash}"

    Example:
        key = IdempotencyKeyGenerator.generate(
            operation="refund",
            entity_id=intake.id,
            attempt=payment.refund_attempts,
        )
        # Result: "refund:550e8400-e29b-41d4-a716-446655440000:1:a1b2c3d4"
    """

    @staticmethod
    def generate(
        operation: str,
        entity_id: uuid.UUID | str,
        attempt: int = 1,
    ) -> str:
        entity_str = str(entity_id)
        # Create a short hash for uniqueness using SECRET_KEY
        hash_input = f"{operation}:{entity_str}:{attempt}:{settings.SECRET_KEY}"
        short_hash = hashlib.sha256(hash_input.encode()).hexdigest()[:8]

        return f"{operation}:{entity_str}:{attempt}:{short_hash}"


# =============================================================================
# Retry Logic Helpers
# =============================================================================


def backoff_delay(attempt: int, base: float = 1.0, max_delay: float = 60.0) -> float:
    """
    Calculate exponential backoff delay with jitter.

    Jitter prevents thundering herd when multiple workers retry simultaneously.

    Args:
        attempt: Current attempt number (0-indexed)
        base: Base delay in seconds (default: 1.0)
        max_delay: Maximum delay in seconds (default: 60.0)

    Returns:
        Delay in seconds with jitter (0-25% of calculated delay)

    Example:
        # Attempt 0: 1.0 - 1.25 seconds
        # Attempt 1: 2.0 - 2.5 seconds
        # Attempt 2: 4.0 - 5.0 seconds
        delay = backoff_delay(attempt=2)
    """
    delay = min(base * (2**attempt), max_delay)
    # Add jitter (0-25% of delay)
    jitter = delay * random.uniform(0, 0.25)
    return delay + jitter


# =============================================================================
# Stripe Adapter
# =============================================================================


class StripeAdapter:
    """
    Adapter for Stripe API operations.

    All methods are classmethods - no instance state is maintained.
    Thread-safe for use from Celery workers.

    Every operation raises a StripeError subclass on failure. Transient
    failures are retried inside the adapter up to STRIPE_MAX_RETRIES times
    with the same idempotency key before the error is raised.

    Usage:
        session = StripeAdapter.create_checkout_session(params)
        refund = StripeAdapter.create_refund("pi_xxx", idempotency_key=key)
    """

    # =========================================================================
    # Configuration
    # =========================================================================

    @staticmethod
    def _configure_stripe() -> None:
        """Configure Stripe client with API key and timeout."""
        stripe.api_key = settings.STRIPE_SECRET_KEY
        stripe.default_http_client = stripe.RequestsClient(
            timeout=settings.STRIPE_API_TIMEOUT
        )

    @classmethod
    def get_logger(cls) -> logging.Logger:
        """Get logger for this adapter."""
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    @classmethod
    def _call(cls, operation: Callable[[], Any], log_context: dict[str, Any]) -> Any:
        """
        Run one Stripe call with timing, error translation and retries.

        Only errors whose translated form is retryable are retried.
        """
        cls._configure_stripe()
        logger = cls.get_logger()
        max_retries = settings.STRIPE_MAX_RETRIES
        base_delay = settings.STRIPE_RETRY_BASE_DELAY_SECONDS

        attempt = 0
        while True:
            start_time = time.time()
            logger.info(
                "Starting Stripe operation", extra={**log_context, "attempt": attempt + 1}
            )
            try:
                result = operation()
            except Exception as e:
                duration_ms = (time.time() - start_time) * 1000
                try:
                    cls._handle_stripe_error(e, log_context, duration_ms)
                except StripeError as translated:
                    if translated.is_retryable and attempt < max_retries:
                        delay = backoff_delay(attempt, base=base_delay)
                        logger.warning(
                            "Retrying Stripe operation",
                            extra={
                                **log_context,
                                "attempt": attempt + 1,
                                "retry_in_seconds": round(delay, 3),
                                "error_code": translated.error_code,
                            },
                        )
                        time.sleep(delay)
                        attempt += 1
                        continue
                    raise

            duration_ms = (time.time() - start_time) * 1000
            logger.info(
                "Stripe operation completed",
                extra={
                    **log_context,
                    "stripe_id": getattr(result, "id", None),
                    "duration_ms": duration_ms,
                },
            )
            return result

    # =========================================================================
    # Checkout Sessions
    # =========================================================================

    @classmethod
    def create_checkout_session(cls, params: CheckoutSessionParams) -> CheckoutSessionResult:
        """
        Create a hosted Checkout Session in payment mode.

        Raises:
            StripeInvalidRequestError: Invalid parameters or unknown price
            StripeAuthenticationError: API key rejected
            StripeAPIUnavailableError: Stripe unavailable after retries
        """
        log_context = {
            "operation": "create_checkout_session",
            "price_ref": params.price_ref,
            "idempotency_key": params.idempotency_key,
            "intake_id": params.metadata.get("intake_id"),
        }

        create_params: dict[str, Any] = {
            "mode": "payment",
            "line_items": [{"price": params.price_ref, "quantity": params.quantity}],
            "success_url": params.success_url,
            "cancel_url": params.cancel_url,
            "metadata": params.metadata,
            "payment_intent_data": {"metadata": params.metadata},
        }
        if params.customer_ref:
            create_params["customer"] = params.customer_ref
        elif params.customer_email:
            create_params["customer_email"] = params.customer_email

        session = cls._call(
            lambda: stripe.checkout.Session.create(
                idempotency_key=params.idempotency_key, **create_params
            ),
            log_context,
        )
        return cls._session_result(session)

    @classmethod
    def retrieve_checkout_session(cls, session_id: str) -> CheckoutSessionResult:
        """Retrieve a Checkout Session by ID."""
        session = cls._call(
            lambda: stripe.checkout.Session.retrieve(session_id),
            {"operation": "retrieve_checkout_session", "session_id": session_id},
        )
        return cls._session_result(session)

    @classmethod
    def expire_checkout_session(cls, session_id: str) -> CheckoutSessionResult:
        """Expire an open Checkout Session so it can no longer be paid."""
        session = cls._call(
            lambda: stripe.checkout.Session.expire(session_id),
            {"operation": "expire_checkout_session", "session_id": session_id},
        )
        return cls._session_result(session)

    @staticmethod
    def _session_result(session: Any) -> CheckoutSessionResult:
        payment_intent = getattr(session, "payment_intent", None)
        if payment_intent is not None and not isinstance(payment_intent, str):
            payment_intent = payment_intent.id
        return CheckoutSessionResult(
            id=session.id,
            url=getattr(session, "url", None),
            status=getattr(session, "status", None),
            payment_status=getattr(session, "payment_status", None),
            payment_intent_id=payment_intent,
            amount_total=getattr(session, "amount_total", None),
            currency=getattr(session, "currency", None),
            metadata=dict(getattr(session, "metadata", None) or {}),
        )

    # =========================================================================
    # Refunds
    # =========================================================================

    @classmethod
    def create_refund(
        cls,
        payment_intent_id: str,
        idempotency_key: str,
        amount_cents: int | None = None,
        reason: str | None = None,
        metadata: dict[str, str] | None = None,
    ) -> RefundResult:
        """
        Create a refund for a PaymentIntent.

        Args:
            payment_intent_id: Stripe PaymentIntent ID (pi_xxx)
            idempotency_key: Unique key for idempotent refund
            amount_cents: Amount to refund (None for full refund)
            reason: Refund reason (duplicate, fraudulent, requested_by_customer)
            metadata: Optional metadata dict

        Raises:
            StripeInvalidRequestError: Refund not possible
        """
        log_context = {
            "operation": "create_refund",
            "payment_intent_id": payment_intent_id,
            "amount_cents": amount_cents,
            "idempotency_key": idempotency_key,
        }

        refund_params: dict[str, Any] = {
            "payment_intent": payment_intent_id,
            "metadata": metadata or {},
        }
        if amount_cents is not None:
            refund_params["amount"] = amount_cents
        if reason:
            refund_params["reason"] = reason

        refund = cls._call(
            lambda: stripe.Refund.create(idempotency_key=idempotency_key, **refund_params),
            log_context,
        )
        return RefundResult(
            id=refund.id,
            amount_cents=refund.amount,
            currency=refund.currency,
            status=refund.status,
            payment_intent_id=refund.payment_intent,
            metadata=dict(refund.metadata or {}),
        )

    # =========================================================================
    # Webhook Verification
    # =========================================================================

    @classmethod
    def verify_webhook_signature(
        cls,
        payload: bytes,
        signature: str,
    ) -> dict[str, Any]:
        """
        Verify and parse a Stripe webhook event.

        Args:
            payload: Raw webhook payload bytes
            signature: Stripe-Signature header value

        Returns:
            Parsed event data dict

        Raises:
            StripeInvalidRequestError: Invalid signature or payload
        """
        try:
            event = stripe.Webhook.construct_event(
                payload,
                signature,
                settings.STRIPE_WEBHOOK_SECRET,
            )
            return event.to_dict()
        except (stripe.SignatureVerificationError, ValueError) as e:
            raise StripeInvalidRequestError(
                "Invalid webhook signature",
                stripe_code="signature_verification_failed",
                details={"error": str(e)},
            )

    # =========================================================================
    # Error Handling
    # =========================================================================

    @classmethod
    def _handle_stripe_error(
        cls,
        error: Exception,
        log_context: dict[str, Any],
        duration_ms: float,
    ) -> None:
        """
        Translate Stripe exceptions to domain exceptions.

        Raises:
            StripeCardDeclinedError: Card was declined
            StripeInvalidRequestError: Invalid request parameters
            StripeAuthenticationError: Invalid API key
            StripeRateLimitError: Rate limited
            StripeTimeoutError: Request timed out
            StripeAPIUnavailableError: API unavailable or unknown failure
        """
        logger = cls.get_logger()

        # Add timing to context
        log_context = {**log_context, "duration_ms": duration_ms}

        if isinstance(error, stripe.CardError):
            decline_code = getattr(error, "decline_code", None)
            logger.warning(
                "Card error from Stripe",
                extra={**log_context, "decline_code": decline_code},
            )
            raise StripeCardDeclinedError(
                str(error.user_message or error),
                stripe_code=error.code,
                decline_code=decline_code,
            )

        elif isinstance(error, stripe.InvalidRequestError):
            logger.error(
                "Invalid request to Stripe",
                extra={**log_context, "stripe_code": error.code},
            )
            message = str(error.user_message or error)
            raise StripeInvalidRequestError(
                message,
                configuration="no such price" in message.lower(),
                stripe_code=error.code,
            )

        elif isinstance(error, stripe.AuthenticationError):
            # Invalid API key - permanent, operational issue
            logger.critical(
                "Stripe authentication failed - check API key",
                extra=log_context,
            )
            raise StripeAuthenticationError(
                "Stripe authentication failed",
                stripe_code="authentication_error",
            )

        elif isinstance(error, stripe.RateLimitError):
            logger.warning("Rate limited by Stripe", extra=log_context)
            raise StripeRateLimitError(
                "Stripe rate limit exceeded. Please retry.",
                stripe_code="rate_limit",
            )

        elif isinstance(error, stripe.APIConnectionError):
            if "timed out" in str(error).lower() or "timeout" in str(error).lower():
                logger.error("Stripe request timed out", extra=log_context)
                raise StripeTimeoutError(
                    "Stripe request timed out. Please retry.",
                    stripe_code="timeout",
                )
            logger.error(
                "Connection error to Stripe",
                extra=log_context,
                exc_info=True,
            )
            raise StripeAPIUnavailableError(
                "Could not connect to Stripe. Please retry.",
                stripe_code="api_connection_error",
            )

        elif isinstance(error, stripe.APIError):
            logger.error(
                "Stripe API error",
                extra=log_context,
                exc_info=True,
            )
            raise StripeAPIUnavailableError(
                "Stripe service error. Please retry.",
                stripe_code="api_error",
            )

        elif isinstance(error, stripe.StripeError):
            logger.error(
                f"Unhandled Stripe error: {type(error).__name__}",
                extra=log_context,
                exc_info=True,
            )
            raise StripeInvalidRequestError(
                str(error),
                stripe_code=getattr(error, "code", None) or "stripe_error",
            )

        # Not a Stripe SDK error: a bug on our side, let it propagate
        raise error
