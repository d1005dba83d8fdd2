"""
Model mixins providing reusable fields for Django models.

Available Mixins:
    UUIDPrimaryKeyMixin: Use UUID as primary key
    MetadataMixin: Flexible JSON metadata storage

Usage:
    from core.models import BaseModel
    from core.model_mixins import UUIDPrimaryKeyMixin

    class Intake(UUIDPrimaryKeyMixin, BaseModel):
        category = models.CharField(max_length=32)

Note:
    Always list mixins before BaseModel in inheritance.
"""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

from django.db import models

if TYPE_CHECKING:
    from typing import Any


class UUIDPrimaryKeyMixin(models.Model):
    """
    Use UUID as primary key instead of auto-increment integer.

    Intake ids are shown to patients in redirect URLs, so they must not
    reveal record counts or be guessable.
    """

    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
        help_text="Unique identifier for this record",
    )

    class Meta:
        abstract = True


class MetadataMixin(models.Model):
    """
    Flexible JSON metadata storage.

    Fields:
        metadata: JSONField for arbitrary key-value data

    Usage:
        record.set_meta("stripe_customer", "cus_123")
        record.get_meta("stripe_customer")
    """

    metadata = models.JSONField(
        default=dict,
        blank=True,
        help_text="Flexible key-value metadata storage",
    )

    class Meta:
        abstract = True

    def get_meta(self, key: str, default: Any = None) -> Any:
        """Get metadata value by key."""
        return self.metadata.get(key, default)

    def set_meta(self, key: str, value: Any, save: bool = True) -> None:
        """
        Set a metadata value.

        Args:
            key: Metadata key
            value: JSON-serializable value
            save: Persist only the metadata column immediately
        """
        self.metadata[key] = value
        if save:
            self.save(update_fields=["metadata", "updated_at"])
