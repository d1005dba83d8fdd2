"""
Kill switches.

Administrative flags that stop new submissions before any other work is
done:

- Category switches, from the DISABLED_SERVICE_CATEGORIES setting or a
  CategoryKillSwitch row.
- Blocked medications, from the BLOCKED_MEDICATIONS setting or active
  BlockedMedication rows. Only prescription and consult requests name a
  medication.

Database flags are cached for KILL_SWITCH_CACHE_SECONDS and the cache is
cleared whenever a flag row changes (see intakes.signals).
"""

from __future__ import annotations

from typing import Any

from django.conf import settings
from django.core.cache import cache

from core.services import BaseService
from intakes.exceptions import SERVICE_UNAVAILABLE_MESSAGE, ServiceUnavailableError
from intakes.state_machines import IntakeCategory

CATEGORY_DISABLED_CODES = {
    IntakeCategory.MEDICAL_CERTIFICATE: "MED_CERT_DISABLED",
    IntakeCategory.PRESCRIPTION: "REPEAT_SCRIPTS_DISABLED",
    IntakeCategory.CONSULT: "CONSULTS_DISABLED",
}

MEDICATION_BLOCKED_MESSAGE = (
    "This medication cannot be prescribed through our online service for "
    "compliance reasons. Please consult your regular GP."
)

MEDICATION_CATEGORIES = (IntakeCategory.PRESCRIPTION, IntakeCategory.CONSULT)


class KillSwitch(BaseService):
    """Category and medication kill switches."""

    CATEGORY_CACHE_KEY = "intakes:kill_switch:categories"
    MEDICATION_CACHE_KEY = "intakes:kill_switch:medications"

    @classmethod
    def disabled_categories(cls) -> set[str]:
        from intakes.models import CategoryKillSwitch

        disabled = cache.get(cls.CATEGORY_CACHE_KEY)
        if disabled is None:
            disabled = list(
                CategoryKillSwitch.objects.filter(is_disabled=True).values_list(
                    "category", flat=True
                )
            )
            cache.set(cls.CATEGORY_CACHE_KEY, disabled, settings.KILL_SWITCH_CACHE_SECONDS)
        return set(disabled) | set(settings.DISABLED_SERVICE_CATEGORIES)

    @classmethod
    def blocked_medications(cls) -> list[str]:
        from intakes.models import BlockedMedication

        names = cache.get(cls.MEDICATION_CACHE_KEY)
        if names is None:
            names = [
                name.lower()
                for name in BlockedMedication.objects.filter(is_active=True).values_list(
                    "name", flat=True
                )
            ]
            cache.set(cls.MEDICATION_CACHE_KEY, names, settings.KILL_SWITCH_CACHE_SECONDS)
        return names + [name.lower() for name in settings.BLOCKED_MEDICATIONS]

    @classmethod
    def invalidate(cls) -> None:
        cache.delete_many([cls.CATEGORY_CACHE_KEY, cls.MEDICATION_CACHE_KEY])

    @classmethod
    def check(cls, category: str, medication_name: Any = None) -> None:
        """
        Raise if the category or the named medication is switched off.

        Raises:
            ServiceUnavailableError: Coded MED_CERT_DISABLED,
                REPEAT_SCRIPTS_DISABLED, CONSULTS_DISABLED or
                MEDICATION_BLOCKED. The code is also appended to the
                message in brackets.
        """
        if category in cls.disabled_categories():
            code = CATEGORY_DISABLED_CODES.get(category, "SERVICE_DISABLED")
            cls.get_logger().info(
                "Submission blocked by category kill switch",
                extra={"category": category, "error_code": code},
            )
            raise ServiceUnavailableError(
                f"{SERVICE_UNAVAILABLE_MESSAGE} [{code}]", error_code=code
            )

        # Raw answers are not validated yet; a non-string name is left for
        # structural validation to reject
        if category in MEDICATION_CATEGORIES and isinstance(medication_name, str):
            needle = medication_name.strip().lower()
            blocked = next(
                (name for name in cls.blocked_medications() if name and name in needle),
                None,
            )
            if blocked:
                cls.get_logger().info(
                    "Submission blocked by medication kill switch",
                    extra={"category": category, "blocked_medication": blocked},
                )
                raise ServiceUnavailableError(
                    f"{MEDICATION_BLOCKED_MESSAGE} [MEDICATION_BLOCKED]",
                    error_code="MEDICATION_BLOCKED",
                )
