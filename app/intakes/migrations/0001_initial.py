# Generated manually

import uuid

import django.db.models.deletion
import django.db.models.functions.text
import django_fsm
from django.conf import settings
from django.db import migrations, models


CATEGORY_CHOICES = [
    ("medical_certificate", "Medical Certificate"),
    ("prescription", "Prescription"),
    ("consult", "Consult"),
]


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
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Service",
            fields=[
                *timestamps(),
                uuid_pk(),
                (
                    "slug",
                    models.SlugField(
                        help_text="Service identifier (e.g. med-cert-sick)", max_length=100, unique=True
                    ),
                ),
                ("name", models.CharField(help_text="Display name", max_length=200)),
                (
                    "category",
                    models.CharField(
                        choices=CATEGORY_CHOICES,
                        db_index=True,
                        help_text="Category this service belongs to",
                        max_length=32,
                    ),
                ),
                ("price_cents", models.PositiveIntegerField(help_text="Catalog price in cents")),
                (
                    "is_active",
                    models.BooleanField(
                        db_index=True,
                        default=True,
                        help_text="Whether this service can currently be requested",
                    ),
                ),
            ],
            options={
                "verbose_name": "Service",
                "verbose_name_plural": "Services",
                "db_table": "services",
                "ordering": ["slug"],
            },
        ),
        migrations.CreateModel(
            name="CategoryKillSwitch",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                *timestamps(),
                (
                    "category",
                    models.CharField(
                        choices=CATEGORY_CHOICES,
                        help_text="Category this switch controls",
                        max_length=32,
                        unique=True,
                    ),
                ),
                (
                    "is_disabled",
                    models.BooleanField(
                        default=False, help_text="Whether new submissions for this category are blocked"
                    ),
                ),
                (
                    "reason",
                    models.CharField(
                        blank=True, help_text="Internal note on why the category is disabled", max_length=255
                    ),
                ),
            ],
            options={
                "verbose_name": "Category Kill Switch",
                "verbose_name_plural": "Category Kill Switches",
                "db_table": "category_kill_switches",
                "ordering": ["category"],
            },
        ),
        migrations.CreateModel(
            name="BlockedMedication",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                *timestamps(),
                ("name", models.CharField(help_text="Medication name or active ingredient", max_length=200)),
                ("is_active", models.BooleanField(default=True, help_text="Whether this block is enforced")),
                (
                    "reason",
                    models.CharField(blank=True, help_text="Compliance reason for the block", max_length=255),
                ),
            ],
            options={
                "verbose_name": "Blocked Medication",
                "verbose_name_plural": "Blocked Medications",
                "db_table": "blocked_medications",
                "ordering": ["name"],
                "constraints": [
                    models.UniqueConstraint(
                        django.db.models.functions.text.Lower("name"),
                        name="unique_blocked_medication_name_ci",
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="Intake",
            fields=[
                *timestamps(),
                uuid_pk(),
                (
                    "category",
                    models.CharField(
                        choices=CATEGORY_CHOICES, db_index=True, help_text="Service category", max_length=32
                    ),
                ),
                (
                    "subtype",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Category-specific subtype (e.g. work, repeat, general)",
                        max_length=64,
                    ),
                ),
                (
                    "status",
                    django_fsm.FSMField(
                        choices=[
                            ("pending_payment", "Pending Payment"),
                            ("paid", "Paid"),
                            ("approved", "Approved"),
                            ("declined", "Declined"),
                            ("checkout_failed", "Checkout Failed"),
                        ],
                        db_index=True,
                        default="pending_payment",
                        help_text="Current status of the request (managed by FSM)",
                        max_length=50,
                    ),
                ),
                (
                    "payment_status",
                    models.CharField(
                        choices=[("pending", "Pending"), ("paid", "Paid"), ("refunded", "Refunded")],
                        db_index=True,
                        default="pending",
                        help_text="Payment progress for this request",
                        max_length=16,
                    ),
                ),
                ("amount_cents", models.PositiveIntegerField(help_text="Price in cents at submission time")),
                (
                    "idempotency_key",
                    models.CharField(
                        help_text="Caller-supplied key identifying one logical submission",
                        max_length=255,
                        unique=True,
                    ),
                ),
                (
                    "payment_session_ref",
                    models.CharField(
                        blank=True,
                        db_index=True,
                        help_text="Stripe Checkout Session ID (cs_xxx)",
                        max_length=255,
                        null=True,
                    ),
                ),
                (
                    "payment_session_url",
                    models.URLField(
                        blank=True,
                        help_text="Hosted checkout URL for the current session",
                        max_length=2048,
                        null=True,
                    ),
                ),
                (
                    "checkout_error",
                    models.TextField(blank=True, help_text="Gateway error captured when checkout failed", null=True),
                ),
                (
                    "checkout_attempts",
                    models.PositiveIntegerField(default=0, help_text="Number of gateway checkout sessions opened"),
                ),
                (
                    "decline_reason",
                    models.TextField(
                        blank=True, help_text="Reviewer's reason when the request was declined", null=True
                    ),
                ),
                (
                    "decided_at",
                    models.DateTimeField(blank=True, help_text="When the review decision was made", null=True),
                ),
                (
                    "decided_by",
                    models.ForeignKey(
                        blank=True,
                        help_text="Reviewer who approved or declined this request",
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="decided_intakes",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "patient",
                    models.ForeignKey(
                        help_text="Patient who submitted this request",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="intakes",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "service",
                    models.ForeignKey(
                        help_text="Catalog service for this request",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="intakes",
                        to="intakes.service",
                    ),
                ),
            ],
            options={
                "verbose_name": "Intake",
                "verbose_name_plural": "Intakes",
                "db_table": "intakes",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["patient", "created_at"], name="intakes_patient_9d1e2b_idx"),
                    models.Index(
                        fields=["patient", "category", "subtype", "created_at"],
                        name="intakes_patient_5c7a41_idx",
                    ),
                    models.Index(fields=["status", "created_at"], name="intakes_status_3f8c60_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="IntakeAnswers",
            fields=[
                *timestamps(),
                (
                    "intake",
                    models.OneToOneField(
                        help_text="Intake these answers belong to",
                        on_delete=django.db.models.deletion.CASCADE,
                        primary_key=True,
                        related_name="answers",
                        serialize=False,
                        to="intakes.intake",
                    ),
                ),
                (
                    "answers",
                    models.JSONField(default=dict, help_text="Submitted answers keyed by field identifier"),
                ),
            ],
            options={
                "verbose_name": "Intake Answers",
                "verbose_name_plural": "Intake Answers",
                "db_table": "intake_answers",
            },
        ),
        migrations.CreateModel(
            name="FraudFlag",
            fields=[
                *timestamps(),
                uuid_pk(),
                (
                    "flag_type",
                    models.CharField(db_index=True, help_text="Fraud check that raised this flag", max_length=50),
                ),
                (
                    "severity",
                    models.CharField(
                        choices=[
                            ("low", "Low"),
                            ("medium", "Medium"),
                            ("high", "High"),
                            ("critical", "Critical"),
                        ],
                        help_text="Severity of the signal",
                        max_length=16,
                    ),
                ),
                (
                    "details",
                    models.JSONField(blank=True, default=dict, help_text="Check-specific context for reviewers"),
                ),
                (
                    "intake",
                    models.ForeignKey(
                        help_text="Intake this flag was raised for",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="fraud_flags",
                        to="intakes.intake",
                    ),
                ),
                (
                    "patient",
                    models.ForeignKey(
                        help_text="Patient who submitted the intake",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="fraud_flags",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "Fraud Flag",
                "verbose_name_plural": "Fraud Flags",
                "db_table": "fraud_flags",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["patient", "created_at"], name="fraud_flags_patient_a2b4c8_idx"),
                ],
            },
        ),
    ]
