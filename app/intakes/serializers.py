"""
DRF serializers for the intakes app.

Request serializers only check the envelope. Category-specific answer
validation happens in intakes.validation, inside the checkout pipeline.
"""

from __future__ import annotations

from rest_framework import serializers

from intakes.state_machines import IntakeCategory


class SubmitIntakeSerializer(serializers.Serializer):
    """
    Intake submission request.

    Fields:
        category: Requested category
        subtype: Category subtype
        answers: Questionnaire answers keyed by field identifier
        idempotency_key: Client-generated key for this logical submission
        service_slug: Optional explicit catalog slug
        guest_email: Email for checkout without an account
        guest_name: Optional guest display name
    """

    category = serializers.ChoiceField(choices=IntakeCategory.choices)
    subtype = serializers.CharField(max_length=64, allow_blank=True, default="")
    answers = serializers.DictField()
    idempotency_key = serializers.CharField(max_length=255, required=False, allow_blank=True)
    service_slug = serializers.SlugField(max_length=100, required=False, allow_blank=True)
    guest_email = serializers.EmailField(required=False, allow_blank=True)
    guest_name = serializers.CharField(max_length=150, required=False, allow_blank=True)


class CheckoutRedirectSerializer(serializers.Serializer):
    intake_id = serializers.UUIDField()
    checkout_url = serializers.URLField()
    resumed = serializers.BooleanField()


class DecisionSerializer(serializers.Serializer):
    """Reviewer decision on a paid intake."""

    APPROVED = "approved"
    DECLINED = "declined"

    decision = serializers.ChoiceField(choices=[APPROVED, DECLINED])
    reason = serializers.CharField(max_length=2000, required=False, allow_blank=True)


class DecisionOutcomeSerializer(serializers.Serializer):
    intake_id = serializers.UUIDField()
    status = serializers.CharField()
    refund_scheduled = serializers.BooleanField()
