"""
API views for intake submission, payment retry and reviewer decisions.

Provides:
- SubmitIntakeView: Submit answers and receive a checkout URL
- RetryPaymentView: Open a new checkout session for an unpaid intake
- IntakeDecisionView: Approve or decline a paid intake (staff)

Every response uses the ServiceResult envelope:
    {"success": true, "data": {...}}
    {"success": false, "error": "...", "error_code": "..."}
"""

from __future__ import annotations

from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework import status
from rest_framework.permissions import AllowAny, IsAdminUser, IsAuthenticated
from rest_framework.views import APIView

from core.services import ServiceResult
from core.views import service_response
from intakes.serializers import (
    CheckoutRedirectSerializer,
    DecisionOutcomeSerializer,
    DecisionSerializer,
    SubmitIntakeSerializer,
)
from intakes.services import IntakeDecisionService
from payments.services import CheckoutOrchestrator, SubmitIntakeParams

INVALID_REQUEST_MESSAGE = "Invalid request. Please check your details and try again."


def _invalid(serializer) -> ServiceResult:
    return ServiceResult.failure(
        INVALID_REQUEST_MESSAGE,
        error_code="VALIDATION_ERROR",
        errors=serializer.errors,
    )


class SubmitIntakeView(APIView):
    """
    Submit an intake.

    POST /api/v1/intakes/
        Validates answers, screens them, stores the intake and opens a
        Stripe Checkout Session.

    Authentication:
        Optional. Without a session, ``guest_email`` is required.

    Response:
        201 Created: Checkout URL ready
        400 Bad Request: Invalid answers or safety block
        403 Forbidden: No identity, or guest email belongs to an account
        409 Conflict: Idempotency key belongs to another patient
        503 Service Unavailable: Service disabled or payment system error
    """

    permission_classes = [AllowAny]
    throttle_scope = "intake_submission"

    @extend_schema(
        operation_id="submit_intake",
        summary="Submit intake",
        description=(
            "Submit questionnaire answers for a service. Re-submitting the same "
            "idempotency key resumes the earlier intake instead of creating a new one."
        ),
        request=SubmitIntakeSerializer,
        responses={
            201: OpenApiResponse(response=CheckoutRedirectSerializer, description="Checkout ready"),
            400: OpenApiResponse(description="Validation error or safety block"),
            403: OpenApiResponse(description="Sign-in required"),
            409: OpenApiResponse(description="Idempotency key conflict"),
            503: OpenApiResponse(description="Service or payment system unavailable"),
        },
        tags=["Intakes"],
    )
    def post(self, request):
        serializer = SubmitIntakeSerializer(data=request.data)
        if not serializer.is_valid():
            return service_response(_invalid(serializer))

        data = serializer.validated_data
        result = CheckoutOrchestrator.submit_intake(
            SubmitIntakeParams(
                category=data["category"],
                subtype=data.get("subtype", ""),
                answers=data["answers"],
                idempotency_key=data.get("idempotency_key"),
                user=request.user,
                guest_email=data.get("guest_email") or None,
                guest_name=data.get("guest_name") or None,
                service_slug=data.get("service_slug") or None,
            )
        )
        return service_response(result, success_status=status.HTTP_201_CREATED)


class RetryPaymentView(APIView):
    """
    Retry payment for an unpaid intake.

    POST /api/v1/intakes/{intake_id}/retry-payment/

    Authentication:
        Requires valid JWT token. Only the intake's patient may retry.

    Response:
        200 OK: New checkout URL
        404 Not Found: Intake doesn't exist or belongs to someone else
        409 Conflict: Intake is not awaiting payment
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="retry_intake_payment",
        summary="Retry intake payment",
        request=None,
        responses={
            200: OpenApiResponse(response=CheckoutRedirectSerializer, description="Checkout ready"),
            400: OpenApiResponse(description="Safety block on stored answers"),
            404: OpenApiResponse(description="Intake not found"),
            409: OpenApiResponse(description="Intake not awaiting payment"),
            503: OpenApiResponse(description="Payment system unavailable"),
        },
        tags=["Intakes"],
    )
    def post(self, request, intake_id):
        result = CheckoutOrchestrator.retry_payment(intake_id, request.user)
        return service_response(result)


class IntakeDecisionView(APIView):
    """
    Record a reviewer decision.

    POST /api/v1/intakes/{intake_id}/decision/
        {"decision": "approved" | "declined", "reason": "..."}

    Declining queues the automatic refund.
    """

    permission_classes = [IsAdminUser]

    @extend_schema(
        operation_id="decide_intake",
        summary="Approve or decline intake",
        request=DecisionSerializer,
        responses={
            200: OpenApiResponse(response=DecisionOutcomeSerializer, description="Decision recorded"),
            404: OpenApiResponse(description="Intake not found"),
            409: OpenApiResponse(description="Intake is not awaiting a decision"),
        },
        tags=["Intakes - Review"],
    )
    def post(self, request, intake_id):
        serializer = DecisionSerializer(data=request.data)
        if not serializer.is_valid():
            return service_response(_invalid(serializer))

        data = serializer.validated_data
        if data["decision"] == DecisionSerializer.APPROVED:
            result = IntakeDecisionService.approve(intake_id, actor=request.user)
        else:
            result = IntakeDecisionService.decline(
                intake_id, actor=request.user, reason=data.get("reason") or None
            )
        return service_response(result)
