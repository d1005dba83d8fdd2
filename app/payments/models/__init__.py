"""
Payment domain models.

- PaymentRecord: Gateway payment and refund state for one Intake
- RefundAuditEntry: Append-only refund trail
- WebhookEvent: Stripe webhook event tracking for idempotent processing
"""

from payments.models.payment_record import PaymentRecord
from payments.models.refund_audit import RefundAuditEntry
from payments.models.webhook_event import WebhookEvent

__all__ = [
    "PaymentRecord",
    "RefundAuditEntry",
    "WebhookEvent",
]
