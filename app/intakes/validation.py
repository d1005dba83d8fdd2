"""
Structural validation of submitted answers.

Answers arrive as an open ``{field_id: value}`` map. Each category has a
DRF serializer that checks required clinical fields and date consistency,
then produces a typed payload dataclass. Everything after validation works
on that typed shape:

    MedicalCertificateAnswers | PrescriptionAnswers | ConsultAnswers

The original map is kept on ``payload.raw`` because it is what gets stored
and what the safety rules read by field identifier.

Usage:
    from intakes.validation import validate_answers

    payload = validate_answers("medical_certificate", "work", answers)
    payload.duration_days  # 2
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Union

from django.utils import timezone
from rest_framework import serializers

from core.exceptions import ValidationError
from intakes.state_machines import IntakeCategory

INVALID_ANSWERS_MESSAGE = "Please check your answers and try again."

CERTIFICATE_SUBTYPES = ("work", "uni", "carer")


# =============================================================================
# Typed Payloads
# =============================================================================


@dataclass(frozen=True, kw_only=True)
class BaseAnswers:
    """Fields every category may carry."""

    category: str
    subtype: str
    raw: dict[str, Any]
    medicare_number: str | None = None
    date_of_birth: date | None = None
    form_started_at: datetime | None = None
    emergency_symptoms: list[str] = field(default_factory=list)

    @property
    def medication_name(self) -> str | None:
        return None


@dataclass(frozen=True, kw_only=True)
class MedicalCertificateAnswers(BaseAnswers):
    start_date: date
    end_date: date
    symptoms: list[str]
    symptom_details: str = ""
    carer_patient_name: str = ""

    @property
    def duration_days(self) -> int:
        """Inclusive number of days covered by the certificate."""
        return (self.end_date - self.start_date).days + 1


@dataclass(frozen=True, kw_only=True)
class PrescriptionAnswers(BaseAnswers):
    medication: str
    medication_strength: str = ""
    last_prescribed_by: str = ""
    currently_taking: bool = True

    @property
    def medication_name(self) -> str | None:
        return self.medication


@dataclass(frozen=True, kw_only=True)
class ConsultAnswers(BaseAnswers):
    consult_reason: str
    medication: str = ""

    @property
    def medication_name(self) -> str | None:
        return self.medication or None


AnswersPayload = Union[MedicalCertificateAnswers, PrescriptionAnswers, ConsultAnswers]


# =============================================================================
# Serializers
# =============================================================================


class BaseAnswersSerializer(serializers.Serializer):
    """Shared optional fields."""

    medicare_number = serializers.RegexField(
        r"^[\d ]{10,12}$", required=False, allow_blank=True
    )
    date_of_birth = serializers.DateField(required=False, allow_null=True)
    form_started_at = serializers.DateTimeField(required=False, allow_null=True)
    emergency_symptoms = serializers.ListField(
        child=serializers.CharField(), required=False, default=list
    )

    payload_class: type[BaseAnswers] = BaseAnswers

    def validate_date_of_birth(self, value):
        if value and value > timezone.localdate():
            raise serializers.ValidationError("Date of birth cannot be in the future.")
        return value

    def common_values(self) -> dict[str, Any]:
        data = self.validated_data
        medicare = (data.get("medicare_number") or "").replace(" ", "")
        return {
            "medicare_number": medicare or None,
            "date_of_birth": data.get("date_of_birth"),
            "form_started_at": data.get("form_started_at"),
            "emergency_symptoms": list(data.get("emergency_symptoms") or []),
        }

    def to_payload(self, category: str, subtype: str, raw: dict[str, Any]):
        values = {
            key: value
            for key, value in self.validated_data.items()
            if key not in self.common_fields()
        }
        return self.payload_class(
            category=category,
            subtype=subtype,
            raw=raw,
            **self.common_values(),
            **values,
        )

    @staticmethod
    def common_fields() -> set[str]:
        return set(BaseAnswersSerializer._declared_fields)


class MedicalCertificateAnswersSerializer(BaseAnswersSerializer):
    start_date = serializers.DateField()
    end_date = serializers.DateField()
    symptoms = serializers.ListField(
        child=serializers.CharField(max_length=100), allow_empty=False
    )
    symptom_details = serializers.CharField(
        required=False, allow_blank=True, max_length=2000, default=""
    )
    carer_patient_name = serializers.CharField(
        required=False, allow_blank=True, max_length=200, default=""
    )

    payload_class = MedicalCertificateAnswers

    def validate(self, attrs):
        if attrs["end_date"] < attrs["start_date"]:
            raise serializers.ValidationError(
                {"end_date": ["End date cannot be before the start date."]}
            )
        subtype = self.context.get("subtype")
        if subtype == "carer" and not attrs.get("carer_patient_name"):
            raise serializers.ValidationError(
                {"carer_patient_name": ["Please tell us who you are caring for."]}
            )
        return attrs


class PrescriptionAnswersSerializer(BaseAnswersSerializer):
    medication = serializers.CharField(max_length=200)
    medication_strength = serializers.CharField(
        required=False, allow_blank=True, max_length=100, default=""
    )
    last_prescribed_by = serializers.ChoiceField(
        choices=["gp", "specialist", "hospital", "none", ""],
        required=False,
        default="",
    )
    currently_taking = serializers.BooleanField(required=False, default=True)

    payload_class = PrescriptionAnswers

    def validate_medication(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError("Please tell us which medication you need.")
        return value


class ConsultAnswersSerializer(BaseAnswersSerializer):
    consult_reason = serializers.CharField(max_length=4000)
    medication = serializers.CharField(
        required=False, allow_blank=True, max_length=200, default=""
    )

    payload_class = ConsultAnswers


ANSWER_SERIALIZERS: dict[str, type[BaseAnswersSerializer]] = {
    IntakeCategory.MEDICAL_CERTIFICATE: MedicalCertificateAnswersSerializer,
    IntakeCategory.PRESCRIPTION: PrescriptionAnswersSerializer,
    IntakeCategory.CONSULT: ConsultAnswersSerializer,
}


def validate_answers(category: str, subtype: str, answers: dict[str, Any]) -> AnswersPayload:
    """
    Validate an answer map for a category and return its typed payload.

    Raises:
        ValidationError: Unknown category, bad subtype, or invalid answers.
            Field messages are in ``details["errors"]``.
    """
    serializer_class = ANSWER_SERIALIZERS.get(category)
    if serializer_class is None:
        raise ValidationError(
            INVALID_ANSWERS_MESSAGE,
            error_code="INVALID_CATEGORY",
            details={"errors": {"category": [f"Unknown category '{category}'."]}},
        )

    if category == IntakeCategory.MEDICAL_CERTIFICATE and subtype not in CERTIFICATE_SUBTYPES:
        raise ValidationError(
            INVALID_ANSWERS_MESSAGE,
            error_code="INVALID_SUBTYPE",
            details={"errors": {"subtype": [f"Unknown certificate type '{subtype}'."]}},
        )

    if not isinstance(answers, dict):
        raise ValidationError(
            INVALID_ANSWERS_MESSAGE,
            details={"errors": {"answers": ["Expected an object of answers."]}},
        )

    serializer = serializer_class(data=answers, context={"subtype": subtype})
    if not serializer.is_valid():
        raise ValidationError(
            INVALID_ANSWERS_MESSAGE,
            details={"errors": _flatten_errors(serializer.errors)},
        )
    return serializer.to_payload(category, subtype, dict(answers))


def _flatten_errors(errors) -> dict[str, list[str]]:
    flat: dict[str, list[str]] = {}
    for key, messages in errors.items():
        if isinstance(messages, dict):
            messages = [str(m) for msgs in messages.values() for m in msgs]
        flat[key] = [str(message) for message in messages]
    return flat
