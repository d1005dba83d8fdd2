"""
Factory Boy factories for intake models.

Usage:
    from intakes.tests.factories import IntakeFactory, ServiceFactory

    intake = IntakeFactory()                      # pending payment, answers attached
    paid = IntakeFactory(status=IntakeStatus.PAID, payment_status="paid")
    carer = ServiceFactory(slug="med-cert-carer")
"""

import uuid

import factory
from django.utils import timezone

from authentication.tests.factories import UserFactory
from intakes.models import (
    BlockedMedication,
    CategoryKillSwitch,
    FraudFlag,
    Intake,
    IntakeAnswers,
    Service,
)
from intakes.state_machines import (
    FraudSeverity,
    IntakeCategory,
    IntakePaymentStatus,
    IntakeStatus,
)


def med_cert_answers(**overrides):
    """A one-day work certificate starting today."""
    today = timezone.localdate().isoformat()
    answers = {
        "start_date": today,
        "end_date": today,
        "symptoms": ["cold_flu"],
        "symptom_details": "Runny nose and fever since yesterday",
    }
    answers.update(overrides)
    return answers


def script_answers(**overrides):
    answers = {
        "medication": "Atorvastatin",
        "medication_strength": "20mg",
        "last_prescribed_by": "gp",
        "currently_taking": True,
    }
    answers.update(overrides)
    return answers


def consult_answers(**overrides):
    answers = {"consult_reason": "Ongoing lower back pain for three weeks"}
    answers.update(overrides)
    return answers


class ServiceFactory(factory.django.DjangoModelFactory):
    """Catalog service. Defaults to the sick-leave certificate."""

    class Meta:
        model = Service
        django_get_or_create = ("slug",)

    slug = "med-cert-sick"
    name = factory.LazyAttribute(lambda o: o.slug.replace("-", " ").title())
    category = IntakeCategory.MEDICAL_CERTIFICATE
    price_cents = 1995
    is_active = True


class IntakeAnswersFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = IntakeAnswers

    intake = None
    answers = factory.LazyFunction(med_cert_answers)


class IntakeFactory(factory.django.DjangoModelFactory):
    """
    Intake with its answers row.

    Pass ``answers__answers={...}`` to override the stored answers.
    """

    class Meta:
        model = Intake
        skip_postgeneration_save = True

    patient = factory.SubFactory(UserFactory)
    service = factory.SubFactory(ServiceFactory)
    category = factory.LazyAttribute(lambda o: o.service.category)
    subtype = "work"
    status = IntakeStatus.PENDING_PAYMENT
    payment_status = IntakePaymentStatus.PENDING
    amount_cents = factory.LazyAttribute(lambda o: o.service.price_cents)
    idempotency_key = factory.LazyFunction(lambda: f"intake-{uuid.uuid4()}")

    answers = factory.RelatedFactory(IntakeAnswersFactory, factory_related_name="intake")


class CategoryKillSwitchFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = CategoryKillSwitch
        django_get_or_create = ("category",)

    category = IntakeCategory.MEDICAL_CERTIFICATE
    is_disabled = True
    reason = "Paused for maintenance"


class BlockedMedicationFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = BlockedMedication

    name = "Oxycodone"
    is_active = True
    reason = "Schedule 8"


class FraudFlagFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = FraudFlag

    intake = factory.SubFactory(IntakeFactory)
    patient = factory.LazyAttribute(lambda o: o.intake.patient)
    flag_type = "rapid_completion"
    severity = FraudSeverity.MEDIUM
    details = factory.LazyFunction(dict)
