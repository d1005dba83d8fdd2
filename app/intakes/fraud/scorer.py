"""
Fraud risk scorer.

Scores behavioral and identity signals for a submission and produces typed
flags for manual review. The scorer never blocks a submission: any failure
inside a check is logged and that check contributes nothing.

Score weights:
    critical 50, high 40, medium 20, low 10 (summed, capped at 100)

Usage:
    from intakes.fraud import FraudScorer, FraudSignals

    assessment = FraudScorer.score(FraudSignals(patient_id=user.pk, ...))
    ...
    FraudScorer.persist_flags(intake, assessment)
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import TYPE_CHECKING, Any

from django.conf import settings
from django.db import DatabaseError
from django.utils import timezone

from core.services import BaseService
from intakes.state_machines import FraudSeverity, IntakeCategory

if TYPE_CHECKING:
    from intakes.models import Intake


SEVERITY_WEIGHTS = {
    FraudSeverity.CRITICAL: 50,
    FraudSeverity.HIGH: 40,
    FraudSeverity.MEDIUM: 20,
    FraudSeverity.LOW: 10,
}

MAX_RISK_SCORE = 100

SUSPICIOUS_IDENTITY_PATTERNS = (
    re.compile(r"^(\d)\1+$"),
    re.compile(r"^1234567890"),
    re.compile(r"^0987654321"),
    re.compile(r"^0+$"),
)


@dataclass(frozen=True)
class FraudSignals:
    """
    Inputs to fraud scoring.

    Attributes:
        patient_id: Submitting patient
        category: Requested category
        subtype: Requested subtype
        identity_number: Medicare number from answers or profile
        form_started_at: When the patient opened the form
        submitted_at: When the submission arrived
    """

    patient_id: Any
    category: str
    subtype: str
    identity_number: str | None = None
    form_started_at: datetime | None = None
    submitted_at: datetime | None = None


@dataclass(frozen=True)
class FraudFlagResult:
    flag_type: str
    severity: str
    details: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class FraudAssessment:
    flagged: bool
    risk_score: int
    flags: tuple[FraudFlagResult, ...] = ()

    @classmethod
    def clean(cls) -> FraudAssessment:
        return cls(flagged=False, risk_score=0, flags=())


class FraudScorer(BaseService):
    """
    Non-blocking fraud risk scorer.

    Each check returns zero or more flags. Checks are independent, so one
    failing query does not hide the others.
    """

    RAPID_COMPLETION_SECONDS = 30
    VERY_RAPID_COMPLETION_SECONDS = 10
    DAILY_LIMIT = 3
    DAILY_HIGH_LIMIT = 5
    DUPLICATE_WINDOW = timedelta(hours=1)
    IDENTITY_REUSE_WINDOW = timedelta(days=30)
    ROLLING_WINDOW = timedelta(days=14)
    ROLLING_WINDOW_LIMIT = 2
    ROLLING_WINDOW_DAY_LIMIT = 5

    @classmethod
    def score(cls, signals: FraudSignals) -> FraudAssessment:
        """
        Run every check and combine the result. Never raises.
        """
        flags: list[FraudFlagResult] = []
        checks = (
            cls._check_daily_volume,
            cls._check_suspicious_identity,
            cls._check_rapid_completion,
            cls._check_duplicate_request,
            cls._check_identity_reuse,
            cls._check_rolling_window,
        )
        for check in checks:
            try:
                flags.extend(check(signals))
            except Exception:
                cls.get_logger().warning(
                    f"Fraud check {check.__name__} failed, skipping",
                    extra={"patient_id": str(signals.patient_id)},
                    exc_info=True,
                )

        risk_score = min(
            sum(SEVERITY_WEIGHTS[flag.severity] for flag in flags), MAX_RISK_SCORE
        )
        assessment = FraudAssessment(
            flagged=bool(flags), risk_score=risk_score, flags=tuple(flags)
        )

        if risk_score >= settings.FRAUD_HIGH_RISK_THRESHOLD:
            cls.get_logger().warning(
                "High fraud risk submission",
                extra={
                    "patient_id": str(signals.patient_id),
                    "risk_score": risk_score,
                    "flag_types": [flag.flag_type for flag in flags],
                },
            )
        return assessment

    @classmethod
    def persist_flags(cls, intake: Intake, assessment: FraudAssessment) -> int:
        """
        Store flags for manual review. Best-effort; returns rows written.

        Only assessments at or above FRAUD_FLAG_PERSIST_THRESHOLD are kept.
        """
        from intakes.models import FraudFlag

        if not assessment.flagged:
            return 0
        if assessment.risk_score < settings.FRAUD_FLAG_PERSIST_THRESHOLD:
            return 0

        try:
            created = FraudFlag.objects.bulk_create(
                [
                    FraudFlag(
                        intake=intake,
                        patient_id=intake.patient_id,
                        flag_type=flag.flag_type,
                        severity=flag.severity,
                        details={**flag.details, "risk_score": assessment.risk_score},
                    )
                    for flag in assessment.flags
                ]
            )
        except DatabaseError:
            cls.get_logger().error(
                "Failed to persist fraud flags",
                extra={"intake_id": str(intake.pk)},
                exc_info=True,
            )
            return 0
        return len(created)

    # =========================================================================
    # Checks
    # =========================================================================

    @classmethod
    def _check_daily_volume(cls, signals: FraudSignals) -> list[FraudFlagResult]:
        from intakes.models import Intake

        start_of_day = timezone.localtime().replace(hour=0, minute=0, second=0, microsecond=0)
        count = Intake.objects.filter(
            patient_id=signals.patient_id, created_at__gte=start_of_day
        ).count()

        if count >= cls.DAILY_LIMIT:
            severity = (
                FraudSeverity.HIGH if count >= cls.DAILY_HIGH_LIMIT else FraudSeverity.MEDIUM
            )
            return [FraudFlagResult("multiple_daily", severity, {"count_today": count})]
        if count == cls.DAILY_LIMIT - 1:
            return [FraudFlagResult("soft_flag", FraudSeverity.LOW, {"count_today": count})]
        return []

    @classmethod
    def _check_suspicious_identity(cls, signals: FraudSignals) -> list[FraudFlagResult]:
        number = signals.identity_number
        if not number:
            return []
        if any(pattern.match(number) for pattern in SUSPICIOUS_IDENTITY_PATTERNS):
            return [
                FraudFlagResult(
                    "suspicious_identity", FraudSeverity.HIGH, {"pattern": "sequential_or_repeated"}
                )
            ]
        return []

    @classmethod
    def _check_rapid_completion(cls, signals: FraudSignals) -> list[FraudFlagResult]:
        if not signals.form_started_at:
            return []
        submitted_at = signals.submitted_at or timezone.now()
        seconds = (submitted_at - signals.form_started_at).total_seconds()
        if 0 <= seconds < cls.RAPID_COMPLETION_SECONDS:
            severity = (
                FraudSeverity.HIGH
                if seconds < cls.VERY_RAPID_COMPLETION_SECONDS
                else FraudSeverity.MEDIUM
            )
            return [
                FraudFlagResult(
                    "rapid_completion", severity, {"seconds": round(seconds, 1)}
                )
            ]
        return []

    @classmethod
    def _check_duplicate_request(cls, signals: FraudSignals) -> list[FraudFlagResult]:
        from intakes.models import Intake

        since = timezone.now() - cls.DUPLICATE_WINDOW
        exists = Intake.objects.filter(
            patient_id=signals.patient_id,
            category=signals.category,
            subtype=signals.subtype,
            created_at__gte=since,
        ).exists()
        if exists:
            return [
                FraudFlagResult(
                    "duplicate_request",
                    FraudSeverity.MEDIUM,
                    {"window_minutes": int(cls.DUPLICATE_WINDOW.total_seconds() // 60)},
                )
            ]
        return []

    @classmethod
    def _check_identity_reuse(cls, signals: FraudSignals) -> list[FraudFlagResult]:
        from intakes.models import Intake

        if not signals.identity_number:
            return []
        since = timezone.now() - cls.IDENTITY_REUSE_WINDOW
        other_patients = (
            Intake.objects.filter(
                patient__profile__medicare_number=signals.identity_number,
                created_at__gte=since,
            )
            .exclude(patient_id=signals.patient_id)
            .values_list("patient_id", flat=True)
            .distinct()
        )
        other_ids = [str(pk) for pk in other_patients]
        if other_ids:
            return [
                FraudFlagResult(
                    "identity_reuse",
                    FraudSeverity.CRITICAL,
                    {"other_patient_count": len(other_ids)},
                )
            ]
        return []

    @classmethod
    def _check_rolling_window(cls, signals: FraudSignals) -> list[FraudFlagResult]:
        from intakes.models import IntakeAnswers

        if signals.category != IntakeCategory.MEDICAL_CERTIFICATE:
            return []
        since = timezone.now() - cls.ROLLING_WINDOW
        recent = list(
            IntakeAnswers.objects.filter(
                intake__patient_id=signals.patient_id,
                intake__category=IntakeCategory.MEDICAL_CERTIFICATE,
                intake__created_at__gte=since,
            ).values_list("answers", flat=True)
        )
        if len(recent) < cls.ROLLING_WINDOW_LIMIT:
            return []

        total_days = sum(_certificate_days(answers) for answers in recent)
        severity = (
            FraudSeverity.HIGH
            if total_days > cls.ROLLING_WINDOW_DAY_LIMIT
            else FraudSeverity.MEDIUM
        )
        return [
            FraudFlagResult(
                "rolling_window_abuse",
                severity,
                {"certificates": len(recent), "total_days": total_days},
            )
        ]


def _certificate_days(answers: dict[str, Any]) -> int:
    try:
        start = date.fromisoformat(str(answers.get("start_date"))[:10])
        end = date.fromisoformat(str(answers.get("end_date"))[:10])
    except ValueError:
        return 1
    return max((end - start).days + 1, 1)
