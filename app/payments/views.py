"""
DRF views for the payments app.

Endpoints:
    GET /api/v1/payments/intakes/{intake_id}/refund/ - Refund status (staff)

The Stripe webhook endpoint lives in payments.webhooks.views.
"""

from __future__ import annotations

from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework import status
from rest_framework.permissions import IsAdminUser
from rest_framework.response import Response
from rest_framework.views import APIView

from payments.models import PaymentRecord
from payments.serializers import RefundStatusSerializer


class RefundStatusView(APIView):
    """
    Refund status for an intake.

    GET /api/v1/payments/intakes/{intake_id}/refund/

    Authentication:
        Staff only.

    Response:
        200 OK: Payment record with refund fields and audit trail
        404 Not Found: No payment record for this intake
    """

    permission_classes = [IsAdminUser]

    @extend_schema(
        operation_id="get_intake_refund_status",
        summary="Get refund status",
        responses={
            200: OpenApiResponse(response=RefundStatusSerializer, description="Refund status"),
            404: OpenApiResponse(description="No payment for this intake"),
        },
        tags=["Payments"],
    )
    def get(self, request, intake_id):
        payment = (
            PaymentRecord.objects.prefetch_related("audit_entries")
            .filter(intake_id=intake_id)
            .first()
        )
        if payment is None:
            return Response(
                {
                    "success": False,
                    "error": "No payment found for this intake",
                    "error_code": "PAYMENT_NOT_FOUND",
                },
                status=status.HTTP_404_NOT_FOUND,
            )
        return Response({"success": True, "data": RefundStatusSerializer(payment).data})
