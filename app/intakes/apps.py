"""
Django app configuration for intakes.
"""

from django.apps import AppConfig


class IntakesConfig(AppConfig):
    """Configuration for the intakes application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "intakes"
    verbose_name = "Intakes"

    def ready(self):
        """Connect kill-switch cache invalidation."""
        from intakes import signals  # noqa: F401
