"""
Checkout orchestrator.

Turns a patient's submitted answers into a pending Intake with an open
Stripe Checkout Session. Every step short-circuits on failure:

    1. Kill switch (category, blocked medication)
    2. Structural validation of the answers
    3. Safety gate (anything but ALLOW stops here)
    4. Identity resolution (authenticated user or guest)
    5. Catalog lookup
    6. Fraud scoring (never blocks)
    7. Idempotency key validation
    8. Atomic Intake + answers creation, or resume of the existing Intake
    9. Price resolution
    10. Gateway session creation and guarded attach
    11. Return the checkout URL

Rollback rules:
    - Price failures delete the just-created Intake and its answers.
    - Gateway failures keep the Intake and mark it checkout_failed so the
      patient can retry payment without re-entering answers.

Usage:
    from payments.services import CheckoutOrchestrator, SubmitIntakeParams

    result = CheckoutOrchestrator.submit_intake(
        SubmitIntakeParams(
            category="medical_certificate",
            subtype="work",
            answers=answers,
            idempotency_key=key,
            user=request.user,
        )
    )
    if result.success:
        redirect(result.data.checkout_url)
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any

from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.utils import timezone

from authentication.exceptions import AuthError
from authentication.services import LOGIN_REQUIRED_MESSAGE, IdentityService
from core.exceptions import ConflictError, NotFoundError, ValidationError
from core.services import BaseService, ServiceResult
from intakes import telemetry
from intakes.catalog import ServiceCatalog
from intakes.eligibility import SafetyGate, SafetyOutcome
from intakes.exceptions import SafetyBlockedError
from intakes.fraud import FraudScorer, FraudSignals
from intakes.kill_switch import KillSwitch
from intakes.models import Intake
from intakes.pricing import PricingConfig
from intakes.repository import IntakeRepository, NewIntake
from intakes.state_machines import IntakeStatus
from intakes.validation import validate_answers
from payments.adapters import (
    CheckoutSessionParams,
    Err,
    ErrorKind,
    IdempotencyKeyGenerator,
    PaymentGateway,
)
from payments.exceptions import GatewayError
from payments.models import PaymentRecord
from payments.state_machines import PaymentRecordStatus

if TYPE_CHECKING:
    from authentication.models import User
    from authentication.services import PatientIdentity


GENERIC_ERROR_MESSAGE = (
    "Something went wrong. Please try again or contact support if the issue persists."
)
INVALID_REQUEST_MESSAGE = "Invalid request. Please refresh the page and try again."
SERVICE_UNAVAILABLE_PRICE_MESSAGE = (
    "This service is temporarily unavailable. Please try again later. [PRICE_CONFIG_ERROR]"
)
PAYMENT_SYSTEM_ERROR_MESSAGE = (
    "Payment system error. Please try again or contact support if the issue persists."
)
NO_CHECKOUT_URL_MESSAGE = "Failed to create checkout session. Please try again."
NOT_AWAITING_PAYMENT_MESSAGE = (
    "This request has already been paid or is not awaiting payment"
)

SAFETY_ERROR_CODES = {
    SafetyOutcome.DECLINE: "SAFETY_DECLINED",
    SafetyOutcome.REQUIRES_CALL: "SAFETY_REQUIRES_CALL",
    SafetyOutcome.REQUEST_MORE_INFO: "SAFETY_MORE_INFO_REQUIRED",
}

SAFETY_FALLBACK_MESSAGES = {
    SafetyOutcome.DECLINE: (
        "This request cannot be processed online. Please see your regular GP."
    ),
    SafetyOutcome.REQUIRES_CALL: (
        "This request requires a phone consultation. Please contact us to proceed."
    ),
    SafetyOutcome.REQUEST_MORE_INFO: (
        "Additional information is required. Please go back and complete all questions."
    ),
}


# =============================================================================
# Parameter & Result Types
# =============================================================================


@dataclass
class SubmitIntakeParams:
    """
    One intake submission.

    Attributes:
        category: Requested category
        subtype: Category subtype
        answers: Raw answer map keyed by field identifier
        idempotency_key: Caller-generated key for this logical submission
        user: Request user (anonymous users are ignored)
        guest_email: Email for unauthenticated submissions
        guest_name: Optional guest display name
        service_slug: Explicit catalog slug overriding category/subtype
        submitted_at: Submission time (defaults to now)
    """

    category: str
    subtype: str
    answers: dict[str, Any]
    idempotency_key: str | None
    user: User | None = None
    guest_email: str | None = None
    guest_name: str | None = None
    service_slug: str | None = None
    submitted_at: datetime | None = field(default=None)


@dataclass(frozen=True)
class CheckoutRedirect:
    """
    Where to send the patient next.

    ``resumed`` is True when an earlier submission with the same key was
    found and reused instead of creating a new Intake.
    """

    intake_id: Any
    checkout_url: str
    resumed: bool = False

    def as_dict(self) -> dict[str, Any]:
        return {
            "intake_id": str(self.intake_id),
            "checkout_url": self.checkout_url,
            "resumed": self.resumed,
        }


# =============================================================================
# Checkout Orchestrator
# =============================================================================


class CheckoutOrchestrator(BaseService):
    """
    Submission and payment-retry driver.

    Collaborators that tests replace:
        - gateway: PaymentGateway (set_gateway)
        - pricing: PricingConfig (set_pricing), set from settings at startup
    """

    _gateway: PaymentGateway | None = None
    _pricing: PricingConfig | None = None

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
    def get_pricing(cls) -> PricingConfig:
        if cls._pricing is None:
            cls._pricing = PricingConfig.from_settings()
        return cls._pricing

    @classmethod
    def set_pricing(cls, pricing: PricingConfig | None) -> None:
        cls._pricing = pricing

    # =========================================================================
    # Submission
    # =========================================================================

    @classmethod
    def submit_intake(cls, params: SubmitIntakeParams) -> ServiceResult[CheckoutRedirect]:
        """
        Run the full submission pipeline.

        Returns:
            ServiceResult with CheckoutRedirect on success. On failure the
            error message is safe to show to the patient.
        """
        started = time.monotonic()
        try:
            redirect = cls._submit(params)
        except Exception as e:
            return cls.handle_exception(
                e,
                "Intake submission",
                log_level=cls._log_level_for(e),
                generic_message=GENERIC_ERROR_MESSAGE,
                category=params.category,
                subtype=params.subtype,
            )

        cls.get_logger().info(
            "Checkout session ready",
            extra={
                "intake_id": str(redirect.intake_id),
                "category": params.category,
                "resumed": redirect.resumed,
                "duration_ms": round((time.monotonic() - started) * 1000, 2),
            },
        )
        return ServiceResult.success(redirect)

    @classmethod
    def _submit(cls, params: SubmitIntakeParams) -> CheckoutRedirect:
        # 1. Kill switch
        raw_answers = params.answers if isinstance(params.answers, dict) else {}
        KillSwitch.check(params.category, raw_answers.get("medication"))

        # 2. Structural validation
        payload = validate_answers(params.category, params.subtype, params.answers)

        # 3. Safety gate
        service_slug = params.service_slug or ServiceCatalog.get_service_slug(
            params.category, params.subtype
        )
        cls._enforce_safety(service_slug, payload.raw, params.category, params.subtype)

        # 4. Identity
        identity = IdentityService.resolve_patient(
            user=params.user,
            guest_email=params.guest_email,
            guest_name=params.guest_name,
        )

        # 5. Catalog
        entry = ServiceCatalog.resolve(
            params.category, params.subtype, override_slug=params.service_slug
        )

        # 6. Fraud scoring
        assessment = FraudScorer.score(
            FraudSignals(
                patient_id=identity.patient.pk,
                category=params.category,
                subtype=params.subtype,
                identity_number=payload.medicare_number or cls._profile_identity(identity),
                form_started_at=payload.form_started_at,
                submitted_at=params.submitted_at or timezone.now(),
            )
        )

        # 7. Idempotency key
        key = (params.idempotency_key or "").strip()
        if len(key) < settings.INTAKE_IDEMPOTENCY_KEY_MIN_LENGTH:
            cls.get_logger().error(
                "Missing or invalid idempotency key",
                extra={"has_key": bool(key), "key_length": len(key)},
            )
            raise ValidationError(INVALID_REQUEST_MESSAGE, error_code="INVALID_IDEMPOTENCY_KEY")

        # 8. Create or resume
        outcome = IntakeRepository.create_intake_with_answers(
            NewIntake(
                patient_id=identity.patient.pk,
                service_id=entry.service_id,
                category=params.category,
                subtype=params.subtype,
                amount_cents=entry.price_cents,
                idempotency_key=key,
            ),
            payload.raw,
        )
        intake = outcome.intake

        if outcome.created:
            FraudScorer.persist_flags(intake, assessment)
        else:
            if intake.patient_id != identity.patient.pk:
                cls.get_logger().warning(
                    "Idempotency key reused by a different patient",
                    extra={"intake_id": str(intake.pk)},
                )
                raise ConflictError(INVALID_REQUEST_MESSAGE, error_code="IDEMPOTENCY_KEY_CONFLICT")
            redirect = cls._resume(intake)
            if redirect is not None:
                return redirect

        # 9. Price
        try:
            price_ref = cls.get_pricing().resolve(params.category, params.subtype, payload)
        except Exception:
            if outcome.created:
                IntakeRepository.delete_intake_with_answers(intake)
            raise

        # 10. Gateway session
        metadata = {
            "intake_id": str(intake.pk),
            "patient_id": str(identity.patient.pk),
            "category": params.category,
            "subtype": params.subtype,
            "service_slug": entry.slug,
        }
        session_key = cls._session_idempotency_key(key, intake.checkout_attempts)
        url = cls._open_session(intake, identity, price_ref, metadata, session_key)

        # 11. Return
        return CheckoutRedirect(intake_id=intake.pk, checkout_url=url, resumed=not outcome.created)

    @classmethod
    def _resume(cls, intake: Intake) -> CheckoutRedirect | None:
        """
        Resume an Intake found by idempotency key.

        Returns a redirect when nothing new needs to be opened, or None
        when a fresh session must be created.
        """
        if intake.status != IntakeStatus.PENDING_PAYMENT:
            return CheckoutRedirect(
                intake_id=intake.pk,
                checkout_url=f"{_base_url()}/patient/intakes/{intake.pk}",
                resumed=True,
            )

        if intake.payment_session_ref:
            result = cls.get_gateway().retrieve_checkout_session(intake.payment_session_ref)
            if isinstance(result, Err):
                cls.get_logger().warning(
                    "Could not retrieve existing checkout session, opening a new one",
                    extra={"intake_id": str(intake.pk), "error_kind": result.kind},
                )
            elif result.value.status == "open" and result.value.url:
                return CheckoutRedirect(
                    intake_id=intake.pk, checkout_url=result.value.url, resumed=True
                )
        return None

    # =========================================================================
    # Payment Retry
    # =========================================================================

    @classmethod
    def retry_payment(cls, intake_id, user: User | None) -> ServiceResult[CheckoutRedirect]:
        """
        Open a new checkout session for an unpaid Intake owned by ``user``.

        The safety gate is re-run on the stored answers so a saved Intake
        cannot bypass screening later. A terminal Intake never gets a
        new session.
        """
        try:
            redirect = cls._retry(intake_id, user)
        except Exception as e:
            return cls.handle_exception(
                e,
                "Payment retry",
                log_level=cls._log_level_for(e),
                generic_message=GENERIC_ERROR_MESSAGE,
                intake_id=str(intake_id),
            )

        cls.get_logger().info(
            "Payment retry session ready",
            extra={"intake_id": str(redirect.intake_id)},
        )
        return ServiceResult.success(redirect)

    @classmethod
    def _retry(cls, intake_id, user: User | None) -> CheckoutRedirect:
        if user is None or not getattr(user, "is_authenticated", False):
            raise AuthError(LOGIN_REQUIRED_MESSAGE, error_code="LOGIN_REQUIRED")

        try:
            intake = (
                Intake.objects.select_related("service", "answers")
                .filter(pk=intake_id, patient=user)
                .first()
            )
        except (DjangoValidationError, ValueError):
            intake = None
        if intake is None:
            raise NotFoundError("Request not found", error_code="INTAKE_NOT_FOUND")

        if not intake.is_payable:
            raise ConflictError(NOT_AWAITING_PAYMENT_MESSAGE, error_code="NOT_AWAITING_PAYMENT")

        answers = getattr(getattr(intake, "answers", None), "answers", None) or {}
        cls._enforce_safety(
            intake.service.slug, answers, intake.category, intake.subtype, stage="retry"
        )

        if intake.payment_session_ref:
            expired = cls.get_gateway().expire_checkout_session(intake.payment_session_ref)
            if isinstance(expired, Err):
                # Already completed or expired sessions cannot be expired
                cls.get_logger().debug(
                    "Could not expire previous checkout session",
                    extra={"intake_id": str(intake.pk), "error": expired.message},
                )

        payload = validate_answers(intake.category, intake.subtype, answers)
        price_ref = cls.get_pricing().resolve(intake.category, intake.subtype, payload)

        identity = IdentityService.resolve_patient(user=user)
        metadata = {
            "intake_id": str(intake.pk),
            "patient_id": str(user.pk),
            "category": intake.category,
            "subtype": intake.subtype,
            "service_slug": intake.service.slug,
            "is_retry": "true",
        }
        session_key = IdempotencyKeyGenerator.generate(
            "checkout_retry", intake.pk, attempt=intake.checkout_attempts + 1
        )
        url = cls._open_session(intake, identity, price_ref, metadata, session_key)
        return CheckoutRedirect(intake_id=intake.pk, checkout_url=url)

    # =========================================================================
    # Helpers
    # =========================================================================

    @classmethod
    def _enforce_safety(
        cls,
        service_slug: str,
        answers: dict[str, Any],
        category: str,
        subtype: str,
        stage: str = "submission",
    ) -> None:
        """
        Raise SafetyBlockedError unless the gate returns ALLOW.

        REQUEST_MORE_INFO should have been resolved by the form before
        submission; reaching here is treated as a hard failure.
        """
        evaluation = SafetyGate.evaluate(service_slug, answers)
        if evaluation.is_allowed:
            return

        telemetry.track_safety_block(evaluation, category, subtype, stage=stage)
        outcome = evaluation.outcome
        if outcome == SafetyOutcome.REQUEST_MORE_INFO:
            cls.get_logger().error(
                "Incomplete answers reached checkout",
                extra={
                    "service_slug": service_slug,
                    "stage": stage,
                    "additional_info_required": evaluation.additional_info_required,
                },
            )
        raise SafetyBlockedError(
            evaluation.reason or SAFETY_FALLBACK_MESSAGES[outcome],
            outcome=outcome,
            triggered_rules=evaluation.triggered_rules,
            error_code=SAFETY_ERROR_CODES[outcome],
            details={"risk_tier": str(evaluation.risk_tier)},
        )

    @classmethod
    def _open_session(
        cls,
        intake: Intake,
        identity: PatientIdentity,
        price_ref: str,
        metadata: dict[str, str],
        idempotency_key: str,
    ) -> str:
        """
        Create a gateway session and attach it to the Intake.

        Raises:
            GatewayError: The gateway failed or returned no URL. The Intake
                is marked checkout_failed and kept.
            ConflictError: The Intake stopped being payable meanwhile.
        """
        base = _base_url()
        params = CheckoutSessionParams(
            price_ref=price_ref,
            success_url=(
                f"{base}/patient/intakes/success?intake_id={intake.pk}"
                "&session_id={CHECKOUT_SESSION_ID}"
            ),
            cancel_url=f"{base}/patient/intakes/cancelled?intake_id={intake.pk}",
            idempotency_key=idempotency_key,
            metadata=metadata,
            customer_ref=identity.customer_ref,
            customer_email=None if identity.customer_ref else identity.email,
        )

        result = cls.get_gateway().create_checkout_session(params)
        if isinstance(result, Err):
            IntakeRepository.mark_checkout_failed(intake, result.message)
            cls.get_logger().error(
                "Checkout session creation failed",
                extra={
                    "intake_id": str(intake.pk),
                    "error_kind": result.kind,
                    "gateway_code": result.code,
                },
            )
            if result.kind == ErrorKind.CONFIGURATION:
                raise GatewayError(
                    SERVICE_UNAVAILABLE_PRICE_MESSAGE,
                    kind=result.kind,
                    gateway_code=result.code,
                    error_code="PRICE_CONFIG_ERROR",
                )
            raise GatewayError(
                PAYMENT_SYSTEM_ERROR_MESSAGE,
                kind=result.kind,
                gateway_code=result.code,
                error_code="PAYMENT_SYSTEM_ERROR",
            )

        session = result.value
        if not session.url:
            IntakeRepository.mark_checkout_failed(intake, "No checkout URL returned from Stripe")
            cls.get_logger().error(
                "Checkout session created without URL",
                extra={"intake_id": str(intake.pk), "session_id": session.id},
            )
            raise GatewayError(
                NO_CHECKOUT_URL_MESSAGE,
                kind=ErrorKind.REJECTED,
                error_code="CHECKOUT_URL_MISSING",
            )

        if not IntakeRepository.attach_session(intake, session.id, session.url):
            intake.refresh_from_db(fields=["status", "payment_session_url"])
            if intake.status == IntakeStatus.PENDING_PAYMENT and intake.payment_session_url:
                # A concurrent request with the same key attached first
                return intake.payment_session_url
            cls.get_gateway().expire_checkout_session(session.id)
            raise ConflictError(NOT_AWAITING_PAYMENT_MESSAGE, error_code="NOT_AWAITING_PAYMENT")

        cls._record_pending_payment(intake, session.id)
        return session.url

    @staticmethod
    def _record_pending_payment(intake: Intake, session_ref: str) -> PaymentRecord:
        payment, created = PaymentRecord.objects.get_or_create(
            intake=intake,
            defaults={
                "gateway_session_ref": session_ref,
                "amount_cents": intake.amount_cents,
                "currency": settings.STRIPE_CURRENCY,
            },
        )
        if not created and payment.status == PaymentRecordStatus.PENDING:
            payment.gateway_session_ref = session_ref
            payment.save(update_fields=["gateway_session_ref", "updated_at"])
        return payment

    @staticmethod
    def _session_idempotency_key(key: str, attempts: int) -> str:
        """``checkout:{key}`` for the first session, suffixed for later ones."""
        if attempts == 0:
            return f"checkout:{key}"
        return f"checkout:{key}:{attempts + 1}"

    @staticmethod
    def _profile_identity(identity: PatientIdentity) -> str | None:
        profile = getattr(identity.patient, "profile", None)
        return (profile.medicare_number or None) if profile else None

    @staticmethod
    def _log_level_for(exc: Exception) -> int:
        if isinstance(exc, SafetyBlockedError) and exc.outcome == SafetyOutcome.REQUEST_MORE_INFO:
            return logging.ERROR
        if isinstance(exc, GatewayError):
            return logging.ERROR
        return logging.WARNING


def _base_url() -> str:
    return settings.APP_BASE_URL.rstrip("/")


__all__ = [
    "CheckoutOrchestrator",
    "CheckoutRedirect",
    "SubmitIntakeParams",
]
