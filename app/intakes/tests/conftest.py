"""
Test configuration and fixtures for intake tests.
"""

import pytest

from authentication.tests.factories import UserFactory
from intakes.eligibility import SafetyGate
from intakes.state_machines import IntakeCategory, IntakePaymentStatus, IntakeStatus
from intakes.tests.factories import IntakeFactory, ServiceFactory


# =============================================================================
# Users
# =============================================================================


@pytest.fixture
def user(db):
    """Registered patient with auto-created profile."""
    return UserFactory()


@pytest.fixture
def reviewer(db):
    return UserFactory(is_staff=True)


# =============================================================================
# Catalog
# =============================================================================


@pytest.fixture
def catalog(db):
    """The four services the slug table can resolve to."""
    return {
        "med-cert-sick": ServiceFactory(slug="med-cert-sick"),
        "med-cert-carer": ServiceFactory(slug="med-cert-carer", price_cents=2495),
        "common-scripts": ServiceFactory(
            slug="common-scripts",
            category=IntakeCategory.PRESCRIPTION,
            price_cents=2995,
        ),
        "gp-consult": ServiceFactory(
            slug="gp-consult",
            category=IntakeCategory.CONSULT,
            price_cents=4995,
        ),
    }


# =============================================================================
# Intakes
# =============================================================================


@pytest.fixture
def pending_intake(db, user):
    return IntakeFactory(patient=user)


@pytest.fixture
def paid_intake(db, user):
    return IntakeFactory(
        patient=user,
        status=IntakeStatus.PAID,
        payment_status=IntakePaymentStatus.PAID,
        payment_session_ref="cs_test_paid",
    )


@pytest.fixture(autouse=True)
def default_safety_rules():
    """Tests that swap the rule set get the defaults back afterwards."""
    yield
    SafetyGate.set_rules(None)
