"""
Django admin configuration for intake models.

Intakes are read-mostly here: status changes go through the decision
endpoint so refunds are scheduled. Kill switches and blocked medications
are edited here and take effect after the cache is invalidated by signal.
"""

from django.contrib import admin

from intakes.models import (
    BlockedMedication,
    CategoryKillSwitch,
    FraudFlag,
    Intake,
    IntakeAnswers,
    Service,
)


class IntakeAnswersInline(admin.StackedInline):
    model = IntakeAnswers
    can_delete = False
    readonly_fields = ["answers"]


class FraudFlagInline(admin.TabularInline):
    model = FraudFlag
    extra = 0
    can_delete = False
    readonly_fields = ["flag_type", "severity", "details", "created_at"]


@admin.register(Intake)
class IntakeAdmin(admin.ModelAdmin):
    """
    Admin configuration for Intake.

    Status and payment fields are read-only.
    """

    list_display = [
        "id",
        "patient",
        "category",
        "subtype",
        "status",
        "payment_status",
        "amount_cents",
        "checkout_attempts",
        "created_at",
    ]
    list_filter = ["status", "payment_status", "category"]
    search_fields = ["id", "patient__email", "idempotency_key", "payment_session_ref"]
    readonly_fields = [
        "id",
        "status",
        "payment_status",
        "idempotency_key",
        "payment_session_ref",
        "payment_session_url",
        "checkout_error",
        "checkout_attempts",
        "decided_by",
        "decided_at",
        "created_at",
        "updated_at",
    ]
    raw_id_fields = ["patient", "service"]
    ordering = ["-created_at"]
    inlines = [IntakeAnswersInline, FraudFlagInline]


@admin.register(Service)
class ServiceAdmin(admin.ModelAdmin):
    list_display = ["slug", "name", "category", "price_cents", "is_active"]
    list_filter = ["category", "is_active"]
    search_fields = ["slug", "name"]


@admin.register(CategoryKillSwitch)
class CategoryKillSwitchAdmin(admin.ModelAdmin):
    list_display = ["category", "is_disabled", "reason", "updated_at"]
    list_editable = ["is_disabled"]


@admin.register(BlockedMedication)
class BlockedMedicationAdmin(admin.ModelAdmin):
    list_display = ["name", "is_active", "reason", "updated_at"]
    list_filter = ["is_active"]
    search_fields = ["name"]


@admin.register(FraudFlag)
class FraudFlagAdmin(admin.ModelAdmin):
    list_display = ["intake", "patient", "flag_type", "severity", "created_at"]
    list_filter = ["severity", "flag_type"]
    search_fields = ["intake__id", "patient__email"]
    readonly_fields = ["intake", "patient", "flag_type", "severity", "details", "created_at"]
