"""
Reviewer decisions on paid intakes.

A reviewer approves or declines a paid Intake. A decline schedules the
automatic refund once the decision has committed, so the refund task
never reads an uncommitted status.

Usage:
    result = IntakeDecisionService.decline(intake_id, actor=request.user, reason="...")
    if result.success:
        ...
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from django_fsm import TransitionNotAllowed

from core.exceptions import ConflictError, NotFoundError
from core.services import BaseService, ServiceResult
from intakes.models import Intake

if TYPE_CHECKING:
    from authentication.models import User


@dataclass(frozen=True)
class DecisionOutcome:
    intake_id: Any
    status: str
    refund_scheduled: bool = False

    def as_dict(self) -> dict[str, Any]:
        return {
            "intake_id": str(self.intake_id),
            "status": self.status,
            "refund_scheduled": self.refund_scheduled,
        }


class IntakeDecisionService(BaseService):
    """Approve or decline paid intakes."""

    @classmethod
    def approve(cls, intake_id, actor: User) -> ServiceResult[DecisionOutcome]:
        try:
            with cls.atomic():
                intake = cls._lock(intake_id)
                try:
                    intake.approve(actor=actor)
                except TransitionNotAllowed:
                    raise cls._not_decidable(intake)
                intake.save()
        except Exception as e:
            return cls.handle_exception(
                e, "Approve intake", intake_id=str(intake_id), log_level=logging.INFO
            )

        cls.get_logger().info(
            "Intake approved",
            extra={"intake_id": str(intake.pk), "actor_id": str(actor.pk)},
        )
        return ServiceResult.success(DecisionOutcome(intake.pk, intake.status))

    @classmethod
    def decline(
        cls, intake_id, actor: User, reason: str | None = None
    ) -> ServiceResult[DecisionOutcome]:
        """
        Decline a paid intake and schedule its refund.

        The refund task is enqueued with ``transaction.on_commit``.
        """
        from payments.tasks import refund_declined_intake

        try:
            with cls.atomic():
                intake = cls._lock(intake_id)
                try:
                    intake.decline(actor=actor, reason=reason)
                except TransitionNotAllowed:
                    raise cls._not_decidable(intake)
                intake.save()

                intake_pk = str(intake.pk)
                actor_pk = str(actor.pk)
                transaction.on_commit(
                    lambda: refund_declined_intake.delay(intake_pk, actor_pk)
                )
        except Exception as e:
            return cls.handle_exception(
                e, "Decline intake", intake_id=str(intake_id), log_level=logging.INFO
            )

        cls.get_logger().info(
            "Intake declined, refund scheduled",
            extra={"intake_id": str(intake.pk), "actor_id": str(actor.pk)},
        )
        return ServiceResult.success(
            DecisionOutcome(intake.pk, intake.status, refund_scheduled=True)
        )

    @staticmethod
    def _lock(intake_id) -> Intake:
        try:
            return Intake.objects.select_for_update().get(pk=intake_id)
        except (Intake.DoesNotExist, DjangoValidationError, ValueError):
            raise NotFoundError("Intake not found", error_code="INTAKE_NOT_FOUND")

    @staticmethod
    def _not_decidable(intake: Intake) -> ConflictError:
        return ConflictError(
            f"Intake cannot be decided while {intake.get_status_display().lower()}",
            error_code="INVALID_STATUS",
            details={"status": intake.status},
        )
