"""
DRF serializers for the payments app.

Usage:
    serializer = RefundStatusSerializer(payment_record)
    data = serializer.data
"""

from __future__ import annotations

from rest_framework import serializers

from payments.models import PaymentRecord, RefundAuditEntry


class RefundAuditEntrySerializer(serializers.ModelSerializer):
    class Meta:
        model = RefundAuditEntry
        fields = ["action", "actor", "details", "created_at"]
        read_only_fields = fields


class RefundStatusSerializer(serializers.ModelSerializer):
    """
    Refund view of a PaymentRecord for staff.

    Fields:
        intake: Intake ID
        status: Payment status
        refund_status: Refund progress
        refund_amount_cents: Amount refunded
        gateway_refund_ref: Stripe Refund ID
        refund_reason: Why the refund happened or failed
        refund_attempts: Attempts started
        refunded_at: When the refund completed
        audit: Refund audit trail, oldest first
    """

    audit = RefundAuditEntrySerializer(source="audit_entries", many=True, read_only=True)

    class Meta:
        model = PaymentRecord
        fields = [
            "intake",
            "status",
            "amount_cents",
            "currency",
            "refund_status",
            "refund_amount_cents",
            "gateway_refund_ref",
            "refund_reason",
            "refund_attempts",
            "refunded_at",
            "audit",
        ]
        read_only_fields = fields
