"""
Service catalog and kill-switch models.

- Service: a priced, requestable service (e.g. "med-cert-sick")
- CategoryKillSwitch: administrative disable flag for a whole category
- BlockedMedication: a medication that may not be requested online
"""

from __future__ import annotations

from django.db import models
from django.db.models.functions import Lower

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin

from intakes.state_machines import IntakeCategory


class Service(UUIDPrimaryKeyMixin, BaseModel):
    """
    Catalog entry resolved from a category/subtype or an explicit slug.

    Fields:
        slug: Human-facing service identifier
        name: Display name
        category: Category the service belongs to
        price_cents: Catalog price in cents
        is_active: Inactive services cannot be requested
    """

    slug = models.SlugField(
        max_length=100,
        unique=True,
        help_text="Service identifier (e.g. med-cert-sick)",
    )

    name = models.CharField(
        max_length=200,
        help_text="Display name",
    )

    category = models.CharField(
        max_length=32,
        choices=IntakeCategory.choices,
        db_index=True,
        help_text="Category this service belongs to",
    )

    price_cents = models.PositiveIntegerField(
        help_text="Catalog price in cents",
    )

    is_active = models.BooleanField(
        default=True,
        db_index=True,
        help_text="Whether this service can currently be requested",
    )

    class Meta:
        db_table = "services"
        ordering = ["slug"]
        verbose_name = "Service"
        verbose_name_plural = "Services"

    def __str__(self) -> str:
        return self.slug


class CategoryKillSwitch(BaseModel):
    """
    Administrative flag disabling a whole category.

    Checked before any other submission step. Cached briefly, so a flip
    takes effect within KILL_SWITCH_CACHE_SECONDS.
    """

    category = models.CharField(
        max_length=32,
        choices=IntakeCategory.choices,
        unique=True,
        help_text="Category this switch controls",
    )

    is_disabled = models.BooleanField(
        default=False,
        help_text="Whether new submissions for this category are blocked",
    )

    reason = models.CharField(
        max_length=255,
        blank=True,
        help_text="Internal note on why the category is disabled",
    )

    class Meta:
        db_table = "category_kill_switches"
        ordering = ["category"]
        verbose_name = "Category Kill Switch"
        verbose_name_plural = "Category Kill Switches"

    def __str__(self) -> str:
        state = "disabled" if self.is_disabled else "enabled"
        return f"{self.category} ({state})"


class BlockedMedication(BaseModel):
    """
    Medication that cannot be requested through the online service.

    Matched case-insensitively as a substring of the submitted medication
    name, so "oxycodone" also blocks "Oxycodone 5mg".
    """

    name = models.CharField(
        max_length=200,
        help_text="Medication name or active ingredient",
    )

    is_active = models.BooleanField(
        default=True,
        help_text="Whether this block is enforced",
    )

    reason = models.CharField(
        max_length=255,
        blank=True,
        help_text="Compliance reason for the block",
    )

    class Meta:
        db_table = "blocked_medications"
        ordering = ["name"]
        verbose_name = "Blocked Medication"
        verbose_name_plural = "Blocked Medications"
        constraints = [
            models.UniqueConstraint(
                Lower("name"),
                name="unique_blocked_medication_name_ci",
            ),
        ]

    def __str__(self) -> str:
        return self.name
