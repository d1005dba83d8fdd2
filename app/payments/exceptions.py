"""
Payment exceptions.

Exception Hierarchy:
    PaymentError (base for payment domain)
    ├── PaymentNotFoundError - No PaymentRecord for an intake
    ├── RefundError - Refund could not be started or completed
    │   └── RefundInProgressError - Another refund holds the record
    ├── GatewayError - Wraps a gateway Err for logging and task retries
    └── StripeError - Base for all translated Stripe SDK errors
        ├── StripeCardDeclinedError - Card declined (permanent)
        ├── StripeInvalidRequestError - Invalid request params (permanent)
        ├── StripeAuthenticationError - Bad API key (permanent, configuration)
        ├── StripeRateLimitError - Rate limited (transient, retry)
        ├── StripeAPIUnavailableError - API unavailable (transient, retry)
        └── StripeTimeoutError - Request timeout (transient, retry)

The adapter raises StripeError subclasses. PaymentGateway catches them and
returns ``Err``; services never see raw SDK exceptions.

Usage:
    from payments.exceptions import StripeError

    try:
        StripeAdapter.create_refund(...)
    except StripeError as e:
        if e.is_retryable:
            ...
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.exceptions import BaseApplicationError, ConflictError, ExternalServiceError

if TYPE_CHECKING:
    from typing import Any


# =============================================================================
# Payment Domain Exceptions
# =============================================================================


class PaymentError(BaseApplicationError):
    """Base exception for payment operations."""

    default_error_code: str = "PAYMENT_ERROR"


class PaymentNotFoundError(PaymentError):
    """
    Raised when no eligible PaymentRecord exists for an intake.

    Example:
        raise PaymentNotFoundError(
            "No paid payment found for this intake",
            details={"intake_id": str(intake.id)},
        )
    """

    default_error_code: str = "PAYMENT_NOT_FOUND"


class RefundError(PaymentError):
    """Raised when a refund cannot be performed."""

    default_error_code: str = "REFUND_FAILED"


class RefundInProgressError(RefundError, ConflictError):
    """
    Raised when the refund compare-and-swap loses.

    Another worker already moved the record to ``processing``. The caller
    must not call the gateway.
    """

    default_error_code: str = "REFUND_IN_PROGRESS"


class GatewayError(PaymentError, ExternalServiceError):
    """
    Raised when a gateway call returned ``Err``.

    Attributes:
        kind: configuration, transient or rejected
        gateway_code: Stripe error code, if any
    """

    default_error_code: str = "GATEWAY_ERROR"

    def __init__(
        self,
        message: str,
        kind: str,
        gateway_code: str | None = None,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.kind = kind
        self.gateway_code = gateway_code
        super().__init__(
            message,
            error_code=error_code,
            details={"kind": kind, "gateway_code": gateway_code, **(details or {})},
        )

    @property
    def is_retryable(self) -> bool:
        return self.kind == "transient"


# =============================================================================
# Stripe-Specific Exceptions
# =============================================================================


class StripeError(PaymentError):
    """
    Base exception for all Stripe-related errors.

    Provides common attributes for Stripe error handling:
    - stripe_code: Stripe's internal error code
    - decline_code: Card decline code (if applicable)
    - is_retryable: Whether the operation can be retried
    - is_configuration: Whether the failure is our setup (price, API key)
    """

    default_error_code: str = "STRIPE_ERROR"
    is_retryable: bool = False
    is_configuration: bool = False

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        stripe_code: str | None = None,
        decline_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        details = details or {}
        if stripe_code:
            details["stripe_code"] = stripe_code
        if decline_code:
            details["decline_code"] = decline_code
        super().__init__(message, error_code=error_code, details=details)
        self.stripe_code = stripe_code
        self.decline_code = decline_code


# -----------------------------------------------------------------------------
# Permanent Errors (do not retry)
# -----------------------------------------------------------------------------


class StripeCardDeclinedError(StripeError):
    """Card was declined by the issuing bank."""

    default_error_code: str = "CARD_DECLINED"


class StripeInvalidRequestError(StripeError):
    """
    Invalid request parameters sent to Stripe.

    The request will never succeed with the same parameters. A missing
    price ("No such price") is flagged as a configuration error.
    """

    default_error_code: str = "INVALID_STRIPE_REQUEST"

    def __init__(self, message: str, configuration: bool = False, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.is_configuration = configuration


class StripeAuthenticationError(StripeError):
    """Stripe rejected our API key."""

    default_error_code: str = "STRIPE_AUTHENTICATION_FAILED"
    is_configuration: bool = True


# -----------------------------------------------------------------------------
# Transient Errors (safe to retry with backoff)
# -----------------------------------------------------------------------------


class StripeRateLimitError(StripeError):
    """Rate limited by Stripe API. Retry with exponential backoff."""

    default_error_code: str = "STRIPE_RATE_LIMITED"
    is_retryable: bool = True


class StripeAPIUnavailableError(StripeError):
    """
    Stripe API is temporarily unavailable.

    Covers network connectivity issues and Stripe server errors (5xx).
    """

    default_error_code: str = "STRIPE_UNAVAILABLE"
    is_retryable: bool = True


class StripeTimeoutError(StripeError):
    """
    Stripe API call timed out.

    The operation may have succeeded on Stripe's side. Retries reuse the
    same idempotency key so Stripe returns the original response.
    """

    default_error_code: str = "STRIPE_TIMEOUT"
    is_retryable: bool = True
