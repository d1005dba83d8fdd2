"""
Tests for kill switches and catalog resolution.
"""

import pytest
from django.test import override_settings

from intakes.catalog import ServiceCatalog
from intakes.exceptions import ServiceUnavailableError
from intakes.kill_switch import KillSwitch
from intakes.tests.factories import (
    BlockedMedicationFactory,
    CategoryKillSwitchFactory,
    ServiceFactory,
)


# =============================================================================
# Category Switches
# =============================================================================


@pytest.mark.django_db
class TestCategoryKillSwitch:
    def test_enabled_category_passes(self):
        KillSwitch.check("medical_certificate")

    @pytest.mark.parametrize(
        "category,code",
        [
            ("medical_certificate", "MED_CERT_DISABLED"),
            ("prescription", "REPEAT_SCRIPTS_DISABLED"),
            ("consult", "CONSULTS_DISABLED"),
        ],
    )
    def test_disabled_category_raises_category_code(self, category, code):
        CategoryKillSwitchFactory(category=category)

        with pytest.raises(ServiceUnavailableError) as exc_info:
            KillSwitch.check(category)

        assert exc_info.value.error_code == code
        assert exc_info.value.message.endswith(f"[{code}]")

    @override_settings(DISABLED_SERVICE_CATEGORIES=["consult"])
    def test_setting_disables_category(self):
        with pytest.raises(ServiceUnavailableError):
            KillSwitch.check("consult")

    def test_flip_is_seen_immediately_after_cache_invalidation(self):
        switch = CategoryKillSwitchFactory(category="prescription", is_disabled=False)
        KillSwitch.check("prescription")

        switch.is_disabled = True
        switch.save()

        with pytest.raises(ServiceUnavailableError):
            KillSwitch.check("prescription")


# =============================================================================
# Blocked Medications
# =============================================================================


@pytest.mark.django_db
class TestBlockedMedication:
    def test_substring_match_is_case_insensitive(self):
        BlockedMedicationFactory(name="Oxycodone")

        with pytest.raises(ServiceUnavailableError) as exc_info:
            KillSwitch.check("prescription", "OXYCODONE 5mg tablets")

        assert exc_info.value.error_code == "MEDICATION_BLOCKED"

    def test_inactive_block_ignored(self):
        BlockedMedicationFactory(name="Oxycodone", is_active=False)

        KillSwitch.check("prescription", "oxycodone")

    def test_certificates_do_not_name_medications(self):
        BlockedMedicationFactory(name="Oxycodone")

        KillSwitch.check("medical_certificate", "oxycodone")

    @override_settings(BLOCKED_MEDICATIONS=["Alprazolam"])
    def test_setting_blocks_medication_for_consults(self):
        with pytest.raises(ServiceUnavailableError):
            KillSwitch.check("consult", "alprazolam 1mg")

    @pytest.mark.parametrize("medication", [{"name": "Oxycodone"}, ["Oxycodone"], 42])
    def test_non_string_medication_ignored(self, medication):
        BlockedMedicationFactory(name="Oxycodone")

        KillSwitch.check("prescription", medication)


# =============================================================================
# Catalog
# =============================================================================


@pytest.mark.django_db
class TestServiceCatalog:
    @pytest.mark.parametrize(
        "category,subtype,slug",
        [
            ("medical_certificate", "work", "med-cert-sick"),
            ("medical_certificate", "carer", "med-cert-carer"),
            ("prescription", "repeat", "common-scripts"),
            ("prescription", "new", "gp-consult"),
            ("consult", "general", "gp-consult"),
            ("prescription", "unheard_of", "common-scripts"),
        ],
    )
    def test_slug_mapping(self, category, subtype, slug):
        assert ServiceCatalog.get_service_slug(category, subtype) == slug

    def test_resolves_active_service(self, catalog):
        entry = ServiceCatalog.resolve("medical_certificate", "carer")

        assert entry.slug == "med-cert-carer"
        assert entry.service_id == catalog["med-cert-carer"].pk
        assert entry.price_cents == 2495

    def test_override_slug_wins(self, catalog):
        entry = ServiceCatalog.resolve("medical_certificate", "work", override_slug="gp-consult")

        assert entry.slug == "gp-consult"

    def test_inactive_service_unavailable(self):
        ServiceFactory(slug="med-cert-sick", is_active=False)

        with pytest.raises(ServiceUnavailableError) as exc_info:
            ServiceCatalog.resolve("medical_certificate", "work")

        assert exc_info.value.error_code == "SERVICE_NOT_FOUND"
        assert exc_info.value.message == "Service not available. Please contact support."
