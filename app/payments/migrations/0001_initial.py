# Generated manually

import uuid

import django.db.models.deletion
import django_fsm
from django.conf import settings
from django.db import migrations, models


def timestamps():
    return [
        (
            "created_at",
            models.DateTimeField(
                auto_now_add=True, db_index=True, help_text="Timestamp when this record was created"
            ),
        ),
        (
            "updated_at",
            models.DateTimeField(auto_now=True, help_text="Timestamp when this record was last modified"),
        ),
    ]


def uuid_pk():
    return (
        "id",
        models.UUIDField(
            default=uuid.uuid4,
            editable=False,
            help_text="Unique identifier for this record",
            primary_key=True,
            serialize=False,
        ),
    )


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("intakes", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="PaymentRecord",
            fields=[
                *timestamps(),
                uuid_pk(),
                (
                    "metadata",
                    models.JSONField(blank=True, default=dict, help_text="Flexible key-value metadata storage"),
                ),
                (
                    "gateway_session_ref",
                    models.CharField(
                        blank=True,
                        db_index=True,
                        help_text="Stripe Checkout Session ID (cs_xxx)",
                        max_length=255,
                        null=True,
                    ),
                ),
                (
                    "gateway_payment_ref",
                    models.CharField(
                        blank=True,
                        db_index=True,
                        help_text="Stripe PaymentIntent ID (pi_xxx)",
                        max_length=255,
                        null=True,
                    ),
                ),
                (
                    "status",
                    django_fsm.FSMField(
                        choices=[("pending", "Pending"), ("paid", "Paid"), ("refunded", "Refunded")],
                        db_index=True,
                        default="pending",
                        help_text="Current payment status (managed by FSM)",
                        max_length=50,
                    ),
                ),
                ("amount_cents", models.PositiveIntegerField(default=0, help_text="Amount charged in cents")),
                (
                    "currency",
                    models.CharField(default="aud", help_text="ISO 4217 currency code (lowercase)", max_length=3),
                ),
                (
                    "refund_status",
                    models.CharField(
                        choices=[
                            ("none", "None"),
                            ("not_eligible", "Not Eligible"),
                            ("processing", "Processing"),
                            ("refunded", "Refunded"),
                            ("failed", "Failed"),
                        ],
                        db_index=True,
                        default="none",
                        help_text="Refund progress, changed only by conditional updates",
                        max_length=20,
                    ),
                ),
                (
                    "refund_amount_cents",
                    models.PositiveIntegerField(blank=True, help_text="Amount refunded in cents", null=True),
                ),
                (
                    "gateway_refund_ref",
                    models.CharField(
                        blank=True, help_text="Stripe Refund ID (re_xxx)", max_length=255, null=True, unique=True
                    ),
                ),
                (
                    "refund_reason",
                    models.TextField(blank=True, help_text="Why the refund happened, or why it failed", null=True),
                ),
                (
                    "refund_attempts",
                    models.PositiveIntegerField(default=0, help_text="Number of refund attempts started"),
                ),
                (
                    "refunded_at",
                    models.DateTimeField(blank=True, help_text="When the refund completed", null=True),
                ),
                (
                    "intake",
                    models.OneToOneField(
                        help_text="Intake this payment is for",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="payment",
                        to="intakes.intake",
                    ),
                ),
                (
                    "refunded_by",
                    models.ForeignKey(
                        blank=True,
                        help_text="Reviewer whose decision triggered the refund",
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "Payment Record",
                "verbose_name_plural": "Payment Records",
                "db_table": "payments",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["intake", "status"], name="payments_intake__4e1f0a_idx"),
                    models.Index(fields=["refund_status", "updated_at"], name="payments_refund__7b2d93_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("gateway_refund_ref__isnull", False), ("refund_status", "refunded"))
                        | models.Q(("refund_status", "refunded"), _negated=True),
                        name="payments_refunded_has_gateway_ref",
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="RefundAuditEntry",
            fields=[
                *timestamps(),
                uuid_pk(),
                (
                    "action",
                    models.CharField(
                        choices=[
                            ("refund_attempted", "Refund Attempted"),
                            ("refund_failed", "Refund Failed"),
                            ("refund_succeeded", "Refund Succeeded"),
                            ("refund_not_eligible", "Refund Not Eligible"),
                        ],
                        db_index=True,
                        help_text="Refund event type",
                        max_length=32,
                    ),
                ),
                ("details", models.JSONField(blank=True, default=dict, help_text="Event context")),
                (
                    "actor",
                    models.ForeignKey(
                        blank=True,
                        help_text="User who triggered the refund",
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "intake",
                    models.ForeignKey(
                        help_text="Intake the refund concerns",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="refund_audit_entries",
                        to="intakes.intake",
                    ),
                ),
                (
                    "payment_record",
                    models.ForeignKey(
                        blank=True,
                        help_text="Payment record involved",
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="audit_entries",
                        to="payments.paymentrecord",
                    ),
                ),
            ],
            options={
                "verbose_name": "Refund Audit Entry",
                "verbose_name_plural": "Refund Audit Entries",
                "db_table": "refund_audit_entries",
                "ordering": ["created_at"],
                "indexes": [
                    models.Index(fields=["intake", "created_at"], name="refund_audi_intake__c3e5f1_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="WebhookEvent",
            fields=[
                *timestamps(),
                uuid_pk(),
                (
                    "stripe_event_id",
                    models.CharField(
                        help_text="Stripe Event ID (evt_xxx) - unique constraint for idempotency",
                        max_length=255,
                        unique=True,
                    ),
                ),
                (
                    "event_type",
                    models.CharField(
                        db_index=True,
                        help_text="Stripe event type (e.g., 'checkout.session.completed')",
                        max_length=100,
                    ),
                ),
                ("payload", models.JSONField(help_text="Full webhook payload from Stripe (JSON)")),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("processing", "Processing"),
                            ("processed", "Processed"),
                            ("failed", "Failed"),
                        ],
                        db_index=True,
                        default="pending",
                        help_text="Current processing status",
                        max_length=20,
                    ),
                ),
                (
                    "processed_at",
                    models.DateTimeField(blank=True, help_text="When event was successfully processed", null=True),
                ),
                (
                    "error_message",
                    models.TextField(blank=True, help_text="Error message if processing failed", null=True),
                ),
                (
                    "retry_count",
                    models.PositiveSmallIntegerField(default=0, help_text="Number of processing attempts"),
                ),
            ],
            options={
                "verbose_name": "Webhook Event",
                "verbose_name_plural": "Webhook Events",
                "db_table": "webhook_events",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["status", "created_at"], name="webhook_eve_status_8a6b2e_idx"),
                    models.Index(fields=["event_type", "created_at"], name="webhook_eve_event_t_1d9c47_idx"),
                ],
            },
        ),
    ]
