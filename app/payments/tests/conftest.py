"""
Pytest fixtures for payment tests.

Fixtures provide intakes and payment records in the states the checkout
and refund flows care about. The gateway double (``mock_gateway``) and
the price table (``pricing``) come from the root conftest.

Usage:
    def test_refund(declined_paid_intake, mock_gateway):
        result = RefundOrchestrator.refund_if_eligible(declined_paid_intake.pk)
        assert result.data.refunded
"""

import pytest

from authentication.tests.factories import UserFactory
from intakes.state_machines import IntakeCategory, IntakeStatus
from intakes.tests.factories import IntakeFactory, ServiceFactory
from payments.models import WebhookEvent
from payments.tests.factories import PaidIntakeFactory, PaymentRecordFactory


# =============================================================================
# Users
# =============================================================================


@pytest.fixture
def user(db):
    """Create a test patient."""
    return UserFactory()


@pytest.fixture
def reviewer(db):
    return UserFactory(is_staff=True)


# =============================================================================
# Catalog
# =============================================================================


@pytest.fixture
def catalog(db):
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


# =============================================================================
# Declined Intakes With Payments
# =============================================================================


@pytest.fixture
def declined_paid_intake(db, user, reviewer):
    """Declined medical certificate with a paid PaymentRecord."""
    intake = PaidIntakeFactory(
        patient=user,
        status=IntakeStatus.DECLINED,
        decided_by=reviewer,
        decline_reason="Not suitable for telehealth",
    )
    PaymentRecordFactory(intake=intake, gateway_payment_ref="pi_test_declined")
    return intake


@pytest.fixture
def declined_consult(db, user, catalog):
    """Declined consult; consults are never auto-refunded."""
    intake = PaidIntakeFactory(
        patient=user,
        service=catalog["gp-consult"],
        subtype="general",
        status=IntakeStatus.DECLINED,
    )
    PaymentRecordFactory(intake=intake)
    return intake


# =============================================================================
# Webhooks
# =============================================================================


@pytest.fixture
def store_event(db):
    """Persist a Stripe event payload the way the webhook view does."""

    def _store(payload, **kwargs):
        return WebhookEvent.objects.create(
            stripe_event_id=payload["id"],
            event_type=payload["type"],
            payload=payload,
            **kwargs,
        )

    return _store
