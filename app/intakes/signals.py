"""
Signal handlers for intake models.

Clears cached kill-switch flags whenever an administrator changes them.
"""

from django.db.models.signals import post_delete, post_save
from django.dispatch import receiver

from intakes.models import BlockedMedication, CategoryKillSwitch


@receiver(post_save, sender=CategoryKillSwitch)
@receiver(post_delete, sender=CategoryKillSwitch)
@receiver(post_save, sender=BlockedMedication)
@receiver(post_delete, sender=BlockedMedication)
def invalidate_kill_switch_cache(sender, **kwargs):
    from intakes.kill_switch import KillSwitch

    KillSwitch.invalidate()
