"""
Payment admin configuration.

Payment records and audit entries are read-only: every change goes through
the checkout webhook or the refund orchestrator.
"""

from django.contrib import admin

from payments.models import PaymentRecord, RefundAuditEntry, WebhookEvent


class RefundAuditEntryInline(admin.TabularInline):
    model = RefundAuditEntry
    extra = 0
    can_delete = False
    readonly_fields = ["action", "actor", "details", "created_at"]


@admin.register(PaymentRecord)
class PaymentRecordAdmin(admin.ModelAdmin):
    """
    Admin configuration for PaymentRecord.

    Shows gateway references and refund progress for support staff.
    """

    list_display = [
        "intake",
        "status",
        "amount_cents",
        "currency",
        "refund_status",
        "refund_attempts",
        "created_at",
    ]
    list_filter = ["status", "refund_status", "currency"]
    search_fields = [
        "intake__id",
        "gateway_session_ref",
        "gateway_payment_ref",
        "gateway_refund_ref",
    ]
    readonly_fields = [field.name for field in PaymentRecord._meta.fields]
    ordering = ["-created_at"]
    inlines = [RefundAuditEntryInline]

    def has_add_permission(self, request):
        return False


@admin.register(RefundAuditEntry)
class RefundAuditEntryAdmin(admin.ModelAdmin):
    list_display = ["intake", "action", "actor", "created_at"]
    list_filter = ["action"]
    search_fields = ["intake__id"]
    readonly_fields = ["intake", "payment_record", "action", "actor", "details", "created_at"]

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(WebhookEvent)
class WebhookEventAdmin(admin.ModelAdmin):
    """
    Admin configuration for WebhookEvent.

    Failed events can be inspected here; retry_failed_webhooks re-queues them.
    """

    list_display = [
        "stripe_event_id",
        "event_type",
        "status",
        "retry_count",
        "created_at",
        "processed_at",
    ]
    list_filter = ["status", "event_type"]
    search_fields = ["stripe_event_id"]
    readonly_fields = [
        "id",
        "stripe_event_id",
        "event_type",
        "payload",
        "processed_at",
        "error_message",
        "retry_count",
        "created_at",
        "updated_at",
    ]
    ordering = ["-created_at"]
