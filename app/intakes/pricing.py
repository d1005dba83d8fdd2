"""
Gateway price resolution.

PricingConfig is the table of Stripe Price IDs for each category and tier.
It is built once at process start (PaymentsConfig.ready) and handed to the
checkout orchestrator, so tests construct their own table instead of
mutating the environment.

Tiers:
    medical_certificate: by certificate length, 1 day / 2 days / 3+ days
    prescription: repeat price, except "new" which is priced as a consult
    consult: consult price
"""

from __future__ import annotations

from dataclasses import dataclass

from django.conf import settings

from intakes.exceptions import ConfigError
from intakes.state_machines import IntakeCategory
from intakes.validation import AnswersPayload, MedicalCertificateAnswers

PRICE_NOT_CONFIGURED_MESSAGE = "Unable to determine pricing. Please contact support."


@dataclass(frozen=True)
class PricingConfig:
    """
    Stripe Price IDs (price_xxx). A missing entry is a configuration error
    surfaced as ConfigError at resolution time.
    """

    med_cert: str | None = None
    med_cert_2day: str | None = None
    med_cert_3day: str | None = None
    repeat_script: str | None = None
    consult: str | None = None

    @classmethod
    def from_settings(cls) -> PricingConfig:
        prices = settings.STRIPE_PRICES
        return cls(
            med_cert=prices.get("med_cert") or None,
            med_cert_2day=prices.get("med_cert_2day") or None,
            med_cert_3day=prices.get("med_cert_3day") or None,
            repeat_script=prices.get("repeat_script") or None,
            consult=prices.get("consult") or None,
        )

    def tier_for(self, category: str, subtype: str, answers: AnswersPayload | None) -> str:
        """Name of the price field that applies to a request."""
        if category == IntakeCategory.MEDICAL_CERTIFICATE:
            days = answers.duration_days if isinstance(answers, MedicalCertificateAnswers) else 1
            if days >= 3:
                return "med_cert_3day"
            if days == 2:
                return "med_cert_2day"
            return "med_cert"
        if category == IntakeCategory.PRESCRIPTION:
            return "consult" if subtype == "new" else "repeat_script"
        if category == IntakeCategory.CONSULT:
            return "consult"
        return ""

    def resolve(self, category: str, subtype: str, answers: AnswersPayload | None = None) -> str:
        """
        Return the gateway price reference for a request.

        Raises:
            ConfigError: No price is configured for the category/tier
        """
        tier = self.tier_for(category, subtype, answers)
        price = getattr(self, tier, None) if tier else None
        if not price:
            raise ConfigError(
                f"{PRICE_NOT_CONFIGURED_MESSAGE} [PRICE_NOT_CONFIGURED]",
                error_code="PRICE_NOT_CONFIGURED",
                details={"category": category, "subtype": subtype, "tier": tier},
            )
        return price
