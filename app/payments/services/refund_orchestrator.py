"""
Refund orchestrator.

Refunds a declined Intake exactly once. Concurrent callers (the decline
task, a retry, a manual trigger) are ordered by a compare-and-swap on
``PaymentRecord.refund_status``: only the caller whose conditional UPDATE
moves the record into ``processing`` talks to Stripe.

Flow:
    1. Load the Intake (must exist)
    2. Declined only, otherwise not_applicable
    3. Category must be auto-refundable, otherwise not_eligible
    4. Load the paid (or already refunded) PaymentRecord
    5. Stored refund reference short-circuits: already refunded
    6. Require a gateway payment reference
    7. CAS none/failed -> processing
    8. Gateway refund; Err -> failed (retryable later)
    9. Ok -> record refunded, Intake payment_status refunded, audit

Any other exception during steps 8-9 releases the claim back to failed
without consuming the attempt, so the next run reuses the same Stripe
idempotency key and collects a refund Stripe may already have made.
Claims abandoned by a dead worker are released by
``release_stale_claims`` (run periodically from Celery beat).

Usage:
    from payments.services import RefundOrchestrator

    result = RefundOrchestrator.refund_if_eligible(intake_id, actor_id)
    if result.success and result.data.refunded:
        ...
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import Any

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import DatabaseError, transaction
from django.db.models import F
from django.utils import timezone

from core.exceptions import NotFoundError
from core.services import BaseService, ServiceResult
from intakes.models import Intake
from intakes.state_machines import IntakePaymentStatus, IntakeStatus
from payments.adapters import Err, IdempotencyKeyGenerator, PaymentGateway
from payments.exceptions import PaymentNotFoundError, RefundError, RefundInProgressError
from payments.models import PaymentRecord, RefundAuditEntry
from payments.state_machines import (
    AUTO_REFUND_CATEGORIES,
    REFUND_STARTABLE_STATUSES,
    PaymentRecordStatus,
    RefundAuditAction,
    RefundStatus,
)

REFUND_REASON = "requested_by_customer"

ALREADY_PROCESSED_MESSAGE = "Refund already processed"
REFUND_FAILED_MESSAGE = "Refund could not be processed. It will be retried."

STALE_CLAIM_THRESHOLD = timedelta(minutes=30)


@dataclass(frozen=True)
class RefundOutcome:
    """
    Result of a refund attempt that did not fail.

    Attributes:
        refunded: Whether money has been (or already was) returned
        status: refunded, not_eligible or not_applicable
        reason: Human-readable explanation
        gateway_refund_ref: Stripe Refund ID when refunded
        amount_cents: Refunded amount when refunded
    """

    refunded: bool
    status: str
    reason: str = ""
    gateway_refund_ref: str | None = None
    amount_cents: int | None = None

    def as_dict(self) -> dict[str, Any]:
        return {
            "refunded": self.refunded,
            "status": self.status,
            "reason": self.reason,
            "gateway_refund_ref": self.gateway_refund_ref,
            "amount_cents": self.amount_cents,
        }


class RefundOrchestrator(BaseService):
    """Automatic refunds for declined Intakes."""

    _gateway: PaymentGateway | None = None

    @classmethod
    def get_gateway(cls) -> PaymentGateway:
        if cls._gateway is None:
            cls._gateway = PaymentGateway()
        return cls._gateway

    @classmethod
    def set_gateway(cls, gateway: PaymentGateway | None) -> None:
        """Set the payment gateway (for testing). None restores the default."""
        cls._gateway = gateway

    @classmethod
    def refund_if_eligible(cls, intake_id, actor_id=None) -> ServiceResult[RefundOutcome]:
        """
        Refund a declined Intake if its category allows it.

        Safe to call any number of times. At most one gateway refund is
        issued per Intake.

        Returns:
            ServiceResult with RefundOutcome. Failure codes include
            INTAKE_NOT_FOUND, PAYMENT_NOT_FOUND, NO_PAYMENT_REFERENCE,
            REFUND_IN_PROGRESS and REFUND_FAILED.
        """
        try:
            outcome = cls._refund(intake_id, actor_id)
        except Exception as e:
            return cls.handle_exception(
                e,
                "Auto-refund",
                intake_id=str(intake_id),
            )
        return ServiceResult.success(outcome)

    @classmethod
    def _refund(cls, intake_id, actor_id) -> RefundOutcome:
        logger = cls.get_logger()

        # 1. Intake
        try:
            intake = Intake.objects.filter(pk=intake_id).first()
        except (DjangoValidationError, ValueError):
            intake = None
        if intake is None:
            raise NotFoundError("Intake not found", error_code="INTAKE_NOT_FOUND")

        # 2. Declined only
        if intake.status != IntakeStatus.DECLINED:
            return RefundOutcome(
                refunded=False,
                status="not_applicable",
                reason=f"Intake status is '{intake.status}', not declined",
            )

        # 3. Category eligibility
        if intake.category not in AUTO_REFUND_CATEGORIES:
            return cls._mark_not_eligible(intake, actor_id)

        # 4. Payment record
        payment = PaymentRecord.objects.filter(
            intake=intake,
            status__in=[PaymentRecordStatus.PAID, PaymentRecordStatus.REFUNDED],
        ).first()
        if payment is None:
            raise PaymentNotFoundError(
                "No paid payment found for this intake",
                details={"intake_id": str(intake.pk)},
            )

        # 5. Already refunded
        if payment.is_refunded:
            logger.info(
                "Refund already processed",
                extra={"intake_id": str(intake.pk), "refund_ref": payment.gateway_refund_ref},
            )
            return RefundOutcome(
                refunded=True,
                status=RefundStatus.REFUNDED,
                reason=ALREADY_PROCESSED_MESSAGE,
                gateway_refund_ref=payment.gateway_refund_ref,
                amount_cents=payment.refund_amount_cents,
            )

        # 6. Payment reference
        if not payment.gateway_payment_ref:
            raise RefundError(
                "Payment has no gateway payment reference",
                error_code="NO_PAYMENT_REFERENCE",
                details={"payment_id": str(payment.pk)},
            )

        # 7. Compare-and-swap into processing
        attempt = cls._claim(payment)

        RefundAuditEntry.objects.create(
            intake=intake,
            payment_record=payment,
            action=RefundAuditAction.REFUND_ATTEMPTED,
            actor_id=actor_id,
            details={"attempt": attempt, "amount_cents": payment.amount_cents},
        )

        try:
            return cls._issue_refund(intake, payment, actor_id, attempt)
        except RefundError:
            raise
        except Exception as e:
            cls._release_claim(payment, actor_id=actor_id, cause=type(e).__name__)
            raise

    @classmethod
    def _issue_refund(
        cls, intake: Intake, payment: PaymentRecord, actor_id, attempt: int
    ) -> RefundOutcome:
        # 8. Gateway refund
        result = cls.get_gateway().create_refund(
            payment.gateway_payment_ref,
            reason=REFUND_REASON,
            metadata={
                "intake_id": str(intake.pk),
                "category": intake.category,
                "declined_by": str(actor_id or ""),
                "refund_type": "auto_decline",
            },
            idempotency_key=IdempotencyKeyGenerator.generate("refund", intake.pk, attempt=attempt),
        )

        if isinstance(result, Err):
            cls._mark_failed(intake, payment, actor_id, result)
            raise RefundError(
                REFUND_FAILED_MESSAGE,
                details={"intake_id": str(intake.pk), "kind": result.kind},
            )

        # 9. Record success
        refund = result.value
        reason = f"Auto-refunded: {intake.category} intake declined"
        with transaction.atomic():
            locked = PaymentRecord.objects.select_for_update().get(pk=payment.pk)
            locked.mark_refunded(
                refund_ref=refund.id,
                amount_cents=refund.amount_cents,
                actor=None,
                reason=reason,
            )
            locked.refunded_by_id = actor_id
            locked.save()

            Intake.objects.filter(pk=intake.pk).update(
                payment_status=IntakePaymentStatus.REFUNDED,
                updated_at=timezone.now(),
            )

            RefundAuditEntry.objects.create(
                intake=intake,
                payment_record=locked,
                action=RefundAuditAction.REFUND_SUCCEEDED,
                actor_id=actor_id,
                details={"refund_ref": refund.id, "amount_cents": refund.amount_cents},
            )

        cls.get_logger().info(
            "Declined intake refunded",
            extra={
                "intake_id": str(intake.pk),
                "refund_ref": refund.id,
                "amount_cents": refund.amount_cents,
            },
        )
        return RefundOutcome(
            refunded=True,
            status=RefundStatus.REFUNDED,
            reason=reason,
            gateway_refund_ref=refund.id,
            amount_cents=refund.amount_cents,
        )

    @classmethod
    def release_stale_claims(cls, older_than: timedelta = STALE_CLAIM_THRESHOLD) -> list[str]:
        """
        Release refund claims left in processing by a worker that died.

        Released records go back to failed with their attempt un-consumed, so
        the next run repeats the same Stripe idempotency key.

        Returns:
            Intake IDs whose claims were released
        """
        threshold = timezone.now() - older_than
        stale = PaymentRecord.objects.filter(
            refund_status=RefundStatus.PROCESSING,
            updated_at__lt=threshold,
        )

        released = []
        for payment in stale:
            if cls._release_claim(payment, cause="claim_timed_out", updated_before=threshold):
                released.append(str(payment.intake_id))
        return released

    # =========================================================================
    # Helpers
    # =========================================================================

    @classmethod
    def _claim(cls, payment: PaymentRecord) -> int:
        """
        Move the record into processing if nobody else has.

        Returns:
            The attempt number for this refund

        Raises:
            RefundInProgressError: Record was already processing, or another
                worker changed it since it was read
        """
        read_status = payment.refund_status
        if read_status not in REFUND_STARTABLE_STATUSES:
            raise RefundInProgressError(
                "Refund already in progress",
                details={"payment_id": str(payment.pk), "refund_status": read_status},
            )

        updated = PaymentRecord.objects.filter(
            pk=payment.pk, refund_status=read_status
        ).update(
            refund_status=RefundStatus.PROCESSING,
            refund_attempts=F("refund_attempts") + 1,
            updated_at=timezone.now(),
        )
        if not updated:
            cls.get_logger().info(
                "Lost refund race",
                extra={"payment_id": str(payment.pk), "read_status": read_status},
            )
            raise RefundInProgressError(
                "Refund already in progress",
                details={"payment_id": str(payment.pk)},
            )

        payment.refresh_from_db(fields=["refund_status", "refund_attempts"])
        return payment.refund_attempts

    @classmethod
    def _release_claim(
        cls, payment: PaymentRecord, *, cause: str, actor_id=None, updated_before=None
    ) -> bool:
        """
        Move a processing record back to failed and give back its attempt.

        Returns:
            True if this call released the claim. False if the record had
            already left processing, or the release itself could not be
            written (the stale claim sweep retries it).
        """
        claimed = PaymentRecord.objects.filter(pk=payment.pk, refund_status=RefundStatus.PROCESSING)
        if updated_before is not None:
            claimed = claimed.filter(updated_at__lt=updated_before)

        try:
            with transaction.atomic():
                released = claimed.update(
                    refund_status=RefundStatus.FAILED,
                    refund_attempts=F("refund_attempts") - 1,
                    refund_reason=f"Refund interrupted: {cause}",
                    updated_at=timezone.now(),
                )
                if released:
                    RefundAuditEntry.objects.create(
                        intake_id=payment.intake_id,
                        payment_record=payment,
                        action=RefundAuditAction.REFUND_FAILED,
                        actor_id=actor_id,
                        details={"cause": cause, "claim_released": True},
                    )
        except DatabaseError:
            cls.get_logger().error(
                "Could not release refund claim",
                extra={"payment_id": str(payment.pk), "cause": cause},
                exc_info=True,
            )
            return False

        if released:
            cls.get_logger().warning(
                "Refund claim released",
                extra={"payment_id": str(payment.pk), "intake_id": str(payment.intake_id), "cause": cause},
            )
        return bool(released)

    @classmethod
    def _mark_failed(cls, intake: Intake, payment: PaymentRecord, actor_id, error: Err) -> None:
        reason = f"Stripe refund failed: {error.message}"
        PaymentRecord.objects.filter(
            pk=payment.pk, refund_status=RefundStatus.PROCESSING
        ).update(
            refund_status=RefundStatus.FAILED,
            refund_reason=reason[:2000],
            updated_at=timezone.now(),
        )
        RefundAuditEntry.objects.create(
            intake=intake,
            payment_record=payment,
            action=RefundAuditAction.REFUND_FAILED,
            actor_id=actor_id,
            details={"kind": error.kind, "code": error.code, "message": error.message},
        )
        cls.get_logger().error(
            "Gateway refund failed",
            extra={"intake_id": str(intake.pk), "error_kind": error.kind, "gateway_code": error.code},
        )

    @classmethod
    def _mark_not_eligible(cls, intake: Intake, actor_id) -> RefundOutcome:
        reason = f"Category '{intake.category}' is not eligible for auto-refund"
        payment = PaymentRecord.objects.filter(intake=intake).first()
        if payment is not None:
            PaymentRecord.objects.filter(
                pk=payment.pk, refund_status=RefundStatus.NONE
            ).update(
                refund_status=RefundStatus.NOT_ELIGIBLE,
                refund_reason=reason,
                updated_at=timezone.now(),
            )
        RefundAuditEntry.objects.create(
            intake=intake,
            payment_record=payment,
            action=RefundAuditAction.REFUND_NOT_ELIGIBLE,
            actor_id=actor_id,
            details={"category": intake.category},
        )
        cls.get_logger().info(
            "Declined intake not eligible for auto-refund",
            extra={"intake_id": str(intake.pk), "category": intake.category},
        )
        return RefundOutcome(refunded=False, status=RefundStatus.NOT_ELIGIBLE, reason=reason)
