"""
Django signals for authentication.

This module defines signal handlers for:
- Auto-creating Profile when User is created

Related files:
    - models.py: User and Profile models
    - apps.py: Signal import in ready()
"""

import logging

from django.conf import settings
from django.db.models.signals import post_save
from django.dispatch import receiver

logger = logging.getLogger(__name__)


@receiver(post_save, sender=settings.AUTH_USER_MODEL)
def create_user_profile(sender, instance, created, **kwargs):
    """
    Create a Profile for newly created users.

    Guest users get a profile too, so intake code can always rely on
    ``user.profile`` existing.
    """
    if created:
        from authentication.models import Profile

        Profile.objects.get_or_create(user=instance)
        logger.debug(
            "Profile created for user",
            extra={"user_id": str(instance.pk), "is_guest": instance.is_guest},
        )
