"""
Intake repository.

Persists an Intake and its answers as one unit and owns every status write
that can race another request. Writes that depend on a previously-read
status are single conditional UPDATEs filtered on that status; callers
check the returned row count.

Usage:
    outcome = IntakeRepository.create_intake_with_answers(fields, answers)
    if not outcome.created:
        # Same idempotency key was submitted before
        intake = outcome.intake
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from django.db import DatabaseError, IntegrityError, transaction
from django.db.models import F
from django.utils import timezone

from core.services import BaseService
from intakes.exceptions import PersistenceError
from intakes.models import Intake, IntakeAnswers
from intakes.state_machines import PAYABLE_STATUSES, IntakeStatus

if TYPE_CHECKING:
    from collections.abc import Iterable

SAVE_FAILED_MESSAGE = "Failed to save your clinical information. Please try again."


@dataclass(frozen=True)
class NewIntake:
    """Fields for a new Intake row."""

    patient_id: Any
    service_id: Any
    category: str
    subtype: str
    amount_cents: int
    idempotency_key: str


@dataclass(frozen=True)
class CreationOutcome:
    intake: Intake
    created: bool


class IntakeRepository(BaseService):
    """Intake persistence with rollback and guarded updates."""

    @classmethod
    def create_intake_with_answers(
        cls, fields: NewIntake, answers: dict[str, Any]
    ) -> CreationOutcome:
        """
        Insert an Intake and its answers atomically.

        A duplicate idempotency key returns the existing Intake with
        ``created=False`` so the caller can resume it.

        Raises:
            PersistenceError: Either insert failed. Nothing is left behind.
        """
        try:
            with transaction.atomic():
                intake = Intake.objects.create(
                    patient_id=fields.patient_id,
                    service_id=fields.service_id,
                    category=fields.category,
                    subtype=fields.subtype,
                    amount_cents=fields.amount_cents,
                    idempotency_key=fields.idempotency_key,
                    status=IntakeStatus.PENDING_PAYMENT,
                )
                IntakeAnswers.objects.create(intake=intake, answers=answers)
        except IntegrityError:
            existing = Intake.objects.filter(idempotency_key=fields.idempotency_key).first()
            if existing is not None:
                cls.get_logger().info(
                    "Duplicate idempotency key, resuming existing intake",
                    extra={"intake_id": str(existing.pk), "status": existing.status},
                )
                return CreationOutcome(intake=existing, created=False)
            cls.get_logger().error("Intake insert failed", exc_info=True)
            raise PersistenceError(SAVE_FAILED_MESSAGE, error_code="INTAKE_INSERT_FAILED")
        except DatabaseError:
            cls.get_logger().error(
                "Intake or answers insert failed, transaction rolled back",
                extra={"category": fields.category},
                exc_info=True,
            )
            raise PersistenceError(SAVE_FAILED_MESSAGE, error_code="ANSWERS_INSERT_FAILED")

        cls.get_logger().info(
            "Intake created",
            extra={"intake_id": str(intake.pk), "category": intake.category},
        )
        return CreationOutcome(intake=intake, created=True)

    @classmethod
    def delete_intake_with_answers(cls, intake: Intake) -> None:
        """
        Remove an Intake that never reached the gateway.

        Answers and fraud flags go with it. An Intake that already has a
        gateway session is left alone.
        """
        with transaction.atomic():
            if not Intake.objects.filter(pk=intake.pk, payment_session_ref__isnull=True).exists():
                return
            IntakeAnswers.objects.filter(intake_id=intake.pk).delete()
            Intake.objects.filter(pk=intake.pk).delete()
        cls.get_logger().info(
            "Intake rolled back",
            extra={"intake_id": str(intake.pk)},
        )

    @classmethod
    def mark_checkout_failed(cls, intake: Intake, error: str) -> bool:
        """
        Move a payable Intake to checkout_failed with the captured error.

        Returns whether the row was updated.
        """
        updated = Intake.objects.filter(
            pk=intake.pk, status__in=list(PAYABLE_STATUSES)
        ).update(
            status=IntakeStatus.CHECKOUT_FAILED,
            checkout_error=error[:2000],
            updated_at=timezone.now(),
        )
        if updated:
            intake.status = IntakeStatus.CHECKOUT_FAILED
            intake.checkout_error = error[:2000]
        return bool(updated)

    @classmethod
    def attach_session(
        cls,
        intake: Intake,
        session_ref: str,
        session_url: str,
        from_statuses: Iterable[str] = PAYABLE_STATUSES,
    ) -> bool:
        """
        Record a newly opened gateway session on a still-payable Intake.

        The Intake returns to pending_payment and its attempt counter is
        incremented. Returns False if the Intake left ``from_statuses`` in
        the meantime (for example a reviewer decided it).
        """
        updated = Intake.objects.filter(
            pk=intake.pk, status__in=list(from_statuses)
        ).update(
            status=IntakeStatus.PENDING_PAYMENT,
            payment_session_ref=session_ref,
            payment_session_url=session_url,
            checkout_error=None,
            checkout_attempts=F("checkout_attempts") + 1,
            updated_at=timezone.now(),
        )
        if updated:
            intake.refresh_from_db(
                fields=[
                    "status",
                    "payment_session_ref",
                    "payment_session_url",
                    "checkout_error",
                    "checkout_attempts",
                ]
            )
        return bool(updated)

    @classmethod
    def clear_session(cls, session_ref: str) -> int:
        """Forget an expired session on Intakes still waiting for payment."""
        return Intake.objects.filter(
            payment_session_ref=session_ref, status=IntakeStatus.PENDING_PAYMENT
        ).update(
            payment_session_ref=None,
            payment_session_url=None,
            updated_at=timezone.now(),
        )
