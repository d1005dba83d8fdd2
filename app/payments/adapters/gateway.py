"""
Payment gateway with explicit results.

PaymentGateway wraps StripeAdapter so callers branch on a returned value
instead of catching SDK-level exceptions:

    result = gateway.create_checkout_session(params)
    if isinstance(result, Err):
        ...  # result.kind is configuration, transient or rejected
    session = result.value

Error kinds:
    configuration: our setup is wrong (unknown price, rejected API key)
    transient: Stripe unreachable, rate limited or timed out after retries
    rejected: Stripe refused the request (invalid request, card declined)

The orchestrators hold a gateway instance that tests replace with a mock
via ``set_gateway``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Generic, TypeVar, Union

from payments.adapters.stripe_adapter import (
    CheckoutSessionParams,
    CheckoutSessionResult,
    RefundResult,
    StripeAdapter,
)
from payments.exceptions import StripeError

if TYPE_CHECKING:
    from collections.abc import Callable

T = TypeVar("T")


class ErrorKind:
    CONFIGURATION = "configuration"
    TRANSIENT = "transient"
    REJECTED = "rejected"


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T


@dataclass(frozen=True)
class Err:
    kind: str
    message: str
    code: str | None = None


GatewayResult = Union[Ok[T], Err]


def err_from_stripe(error: StripeError) -> Err:
    if error.is_configuration:
        kind = ErrorKind.CONFIGURATION
    elif error.is_retryable:
        kind = ErrorKind.TRANSIENT
    else:
        kind = ErrorKind.REJECTED
    return Err(kind=kind, message=error.message, code=error.stripe_code or error.error_code)


class PaymentGateway:
    """Stripe-backed gateway returning Ok/Err."""

    def __init__(self, adapter: type[StripeAdapter] = StripeAdapter):
        self.adapter = adapter

    def _run(self, call: Callable[[], Any]) -> GatewayResult:
        try:
            return Ok(call())
        except StripeError as e:
            return err_from_stripe(e)

    def create_checkout_session(
        self, params: CheckoutSessionParams
    ) -> GatewayResult[CheckoutSessionResult]:
        return self._run(lambda: self.adapter.create_checkout_session(params))

    def retrieve_checkout_session(self, session_id: str) -> GatewayResult[CheckoutSessionResult]:
        return self._run(lambda: self.adapter.retrieve_checkout_session(session_id))

    def expire_checkout_session(self, session_id: str) -> GatewayResult[CheckoutSessionResult]:
        return self._run(lambda: self.adapter.expire_checkout_session(session_id))

    def create_refund(
        self,
        payment_ref: str,
        reason: str,
        metadata: dict[str, str],
        idempotency_key: str,
    ) -> GatewayResult[RefundResult]:
        return self._run(
            lambda: self.adapter.create_refund(
                payment_ref,
                idempotency_key=idempotency_key,
                reason=reason,
                metadata=metadata,
            )
        )
