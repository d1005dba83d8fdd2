"""
Core views providing infrastructure endpoints.

This module contains views that are not part of the business domain but are
essential for application infrastructure, such as health checks, plus the
helper that turns a service-layer result into a DRF response.
"""

from __future__ import annotations

from django.db import connection
from django.http import JsonResponse
from rest_framework import status
from rest_framework.response import Response

from core.services import ServiceResult

# Error codes are grouped by the HTTP status they map to. Anything not
# listed is a client error (400).
ERROR_CODE_STATUS: dict[str, int] = {
    # 403
    "AUTH_ERROR": status.HTTP_403_FORBIDDEN,
    "LOGIN_REQUIRED": status.HTTP_403_FORBIDDEN,
    "ACCOUNT_INACTIVE": status.HTTP_403_FORBIDDEN,
    "PERMISSION_DENIED": status.HTTP_403_FORBIDDEN,
    # 404
    "NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "INTAKE_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "PAYMENT_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "SERVICE_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    # 409
    "CONFLICT": status.HTTP_409_CONFLICT,
    "ACCOUNT_EXISTS": status.HTTP_409_CONFLICT,
    "IDEMPOTENCY_KEY_CONFLICT": status.HTTP_409_CONFLICT,
    "INVALID_STATUS": status.HTTP_409_CONFLICT,
    "NOT_AWAITING_PAYMENT": status.HTTP_409_CONFLICT,
    "REFUND_IN_PROGRESS": status.HTTP_409_CONFLICT,
    # 503
    "SERVICE_UNAVAILABLE": status.HTTP_503_SERVICE_UNAVAILABLE,
    "SERVICE_DISABLED": status.HTTP_503_SERVICE_UNAVAILABLE,
    "MED_CERT_DISABLED": status.HTTP_503_SERVICE_UNAVAILABLE,
    "REPEAT_SCRIPTS_DISABLED": status.HTTP_503_SERVICE_UNAVAILABLE,
    "CONSULTS_DISABLED": status.HTTP_503_SERVICE_UNAVAILABLE,
    "PRICE_NOT_CONFIGURED": status.HTTP_503_SERVICE_UNAVAILABLE,
    "PRICE_CONFIG_ERROR": status.HTTP_503_SERVICE_UNAVAILABLE,
    "PAYMENT_SYSTEM_ERROR": status.HTTP_503_SERVICE_UNAVAILABLE,
    "CHECKOUT_URL_MISSING": status.HTTP_503_SERVICE_UNAVAILABLE,
    "INTAKE_INSERT_FAILED": status.HTTP_503_SERVICE_UNAVAILABLE,
    "ANSWERS_INSERT_FAILED": status.HTTP_503_SERVICE_UNAVAILABLE,
    "REFUND_FAILED": status.HTTP_503_SERVICE_UNAVAILABLE,
    # 500
    "UNEXPECTED_ERROR": status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def status_for_error_code(error_code: str | None) -> int:
    return ERROR_CODE_STATUS.get(error_code or "", status.HTTP_400_BAD_REQUEST)


def service_response(result: ServiceResult, success_status: int = status.HTTP_200_OK) -> Response:
    """
    Build a DRF Response from a ServiceResult.

    Example:
        result = CheckoutOrchestrator.submit_intake(params)
        return service_response(result, success_status=status.HTTP_201_CREATED)
    """
    if result.success:
        return Response(result.to_response(), status=success_status)
    return Response(result.to_response(), status=status_for_error_code(result.error_code))


def health_check(request):
    """
    Health check endpoint for monitoring and orchestration.

    This endpoint is used by:
    - Docker health checks
    - Kubernetes liveness and readiness checks
    - Load balancers

    Returns:
        JsonResponse with status and component health:
        - status: "healthy" or "unhealthy"
        - database: "connected" or "disconnected"
        - cache: "connected" or "disconnected"

    HTTP Status Codes:
        200: All systems operational
        503: Database unreachable
    """
    health_status = {
        "status": "healthy",
        "database": "unknown",
        "cache": "unknown",
    }
    is_healthy = True

    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
            cursor.fetchone()
        health_status["database"] = "connected"
    except Exception:
        health_status["database"] = "disconnected"
        health_status["status"] = "unhealthy"
        is_healthy = False

    # Kill switches are cached, so a cache outage degrades but does not fail
    try:
        from django.core.cache import cache

        cache.set("health_check", "ok", timeout=1)
        if cache.get("health_check") == "ok":
            health_status["cache"] = "connected"
        else:
            health_status["cache"] = "disconnected"
    except Exception:
        health_status["cache"] = "disconnected"

    return JsonResponse(health_status, status=200 if is_healthy else 503)
