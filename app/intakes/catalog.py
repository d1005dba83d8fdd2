"""
Service catalog lookup.

Resolves a human-facing service identifier to the internal catalog entry
that prices an intake. The identifier is derived from category and
subtype unless the caller supplies an explicit slug.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from core.services import BaseService
from intakes.exceptions import ServiceUnavailableError

SERVICE_NOT_AVAILABLE_MESSAGE = "Service not available. Please contact support."

SERVICE_SLUGS = {
    ("medical_certificate", "work"): "med-cert-sick",
    ("medical_certificate", "uni"): "med-cert-sick",
    ("medical_certificate", "carer"): "med-cert-carer",
    ("prescription", "repeat"): "common-scripts",
    ("prescription", "chronic_review"): "common-scripts",
    ("prescription", "new"): "gp-consult",
    ("consult", "general"): "gp-consult",
}

DEFAULT_SERVICE_SLUG = "common-scripts"


@dataclass(frozen=True)
class CatalogEntry:
    service_id: Any
    slug: str
    category: str
    price_cents: int
    name: str = ""


class ServiceCatalog(BaseService):
    """Read-only catalog resolution."""

    @staticmethod
    def get_service_slug(category: str, subtype: str) -> str:
        return SERVICE_SLUGS.get((category, subtype), DEFAULT_SERVICE_SLUG)

    @classmethod
    def resolve(
        cls,
        category: str,
        subtype: str,
        override_slug: str | None = None,
    ) -> CatalogEntry:
        """
        Resolve the active catalog entry for a request.

        Raises:
            ServiceUnavailableError: Service missing or inactive. Not retried.
        """
        from intakes.models import Service

        slug = override_slug or cls.get_service_slug(category, subtype)
        service = Service.objects.filter(slug=slug, is_active=True).first()
        if service is None:
            cls.get_logger().error(
                "Service not found or inactive",
                extra={"service_slug": slug, "category": category, "subtype": subtype},
            )
            raise ServiceUnavailableError(
                SERVICE_NOT_AVAILABLE_MESSAGE,
                error_code="SERVICE_NOT_FOUND",
                details={"service_slug": slug},
            )

        return CatalogEntry(
            service_id=service.pk,
            slug=service.slug,
            category=service.category,
            price_cents=service.price_cents,
            name=service.name,
        )
