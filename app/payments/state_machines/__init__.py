"""
State enums for payment models.
"""

from payments.state_machines.states import (
    AUTO_REFUND_CATEGORIES,
    REFUND_STARTABLE_STATUSES,
    PaymentRecordStatus,
    RefundAuditAction,
    RefundStatus,
    WebhookEventStatus,
)

__all__ = [
    "AUTO_REFUND_CATEGORIES",
    "REFUND_STARTABLE_STATUSES",
    "PaymentRecordStatus",
    "RefundAuditAction",
    "RefundStatus",
    "WebhookEventStatus",
]
