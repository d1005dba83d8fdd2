"""
Payment adapters for external services.

All Stripe calls go through StripeAdapter. Services use PaymentGateway,
which turns adapter failures into ``Err`` values.

Usage:
    from payments.adapters import PaymentGateway, CheckoutSessionParams, Ok

    result = PaymentGateway().create_checkout_session(params)
"""

from payments.adapters.gateway import (
    Err,
    ErrorKind,
    GatewayResult,
    Ok,
    PaymentGateway,
    err_from_stripe,
)
from payments.adapters.stripe_adapter import (
    CheckoutSessionParams,
    CheckoutSessionResult,
    IdempotencyKeyGenerator,
    RefundResult,
    StripeAdapter,
    backoff_delay,
)

__all__ = [
    "CheckoutSessionParams",
    "CheckoutSessionResult",
    "Err",
    "ErrorKind",
    "GatewayResult",
    "IdempotencyKeyGenerator",
    "Ok",
    "PaymentGateway",
    "RefundResult",
    "StripeAdapter",
    "backoff_delay",
    "err_from_stripe",
]
