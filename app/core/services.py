"""
Base service layer patterns shared by the intake and payment services.

This module provides:
- ServiceResult: Standard result wrapper returned across service boundaries
- BaseService: Base class with logging, transaction and exception helpers

Pattern:
    Internal steps raise domain exceptions (core.exceptions subclasses).
    The public service method catches them at its boundary and returns a
    ServiceResult, so views never see a raised domain error.

Usage:
    from core.services import BaseService, ServiceResult

    class IntakeDecisionService(BaseService):
        @classmethod
        def decline(cls, intake_id, actor, reason) -> ServiceResult[Intake]:
            with cls.atomic():
                intake = Intake.objects.select_for_update().get(pk=intake_id)
                intake.decline(actor=actor, reason=reason)
                intake.save()
            return ServiceResult.success(intake)

    # In view
    result = IntakeDecisionService.decline(intake_id, request.user, reason)
    if result.success:
        return Response(result.to_response(), status=200)
    return Response(result.to_response(), status=400)
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Generic, TypeVar

from django.db import transaction

from core.exceptions import BaseApplicationError

if TYPE_CHECKING:
    from collections.abc import Generator
    from typing import Any

T = TypeVar("T")


@dataclass
class ServiceResult(Generic[T]):
    """
    Standard result wrapper for service operations.

    Use this for expected failures (validation, safety blocks, gateway
    rejections). The error message is always safe to show to a patient;
    internal detail is logged, never placed here.

    Attributes:
        success: Whether the operation succeeded
        data: Result data if successful (None if failed)
        error: User-facing error message if failed
        error_code: Machine-readable error code for client handling
        errors: Field-level errors for validation failures

    Usage:
        result = CheckoutOrchestrator.submit_intake(params)
        if result.success:
            redirect_to(result.data.checkout_url)
        else:
            show(result.error)
    """

    success: bool
    data: T | None = None
    error: str | None = None
    error_code: str | None = None
    errors: dict[str, list[str]] | None = field(default=None)

    @classmethod
    def success(cls, data: T) -> ServiceResult[T]:
        """Create a successful result."""
        return cls(success=True, data=data)

    @classmethod
    def failure(
        cls,
        error: str,
        error_code: str | None = None,
        errors: dict[str, list[str]] | None = None,
    ) -> ServiceResult[T]:
        """
        Create a failed result.

        Args:
            error: Human-readable error message
            error_code: Machine-readable error code for client handling
            errors: Field-level errors (for validation failures)

        Example:
            return ServiceResult.failure(
                "Intake not found",
                error_code="INTAKE_NOT_FOUND",
            )
        """
        return cls(
            success=False,
            error=error,
            error_code=error_code,
            errors=errors,
        )

    @classmethod
    def from_exception(cls, exc: BaseApplicationError) -> ServiceResult[T]:
        """
        Create a failed result from a domain exception.

        Field errors carried in ``exc.details["errors"]`` are surfaced as
        ``errors`` so validation failures keep their per-field messages.
        """
        errors = exc.details.get("errors") if exc.details else None
        return cls(
            success=False,
            error=exc.message,
            error_code=exc.error_code,
            errors=errors,
        )

    def to_response(self) -> dict[str, Any]:
        """
        Convert to API response format.

        ``data`` is expected to be JSON-serializable already; services
        return dataclasses with an ``as_dict()`` method for that purpose.
        """
        if self.success:
            data = self.data.as_dict() if hasattr(self.data, "as_dict") else self.data
            return {"success": True, "data": data}

        response: dict[str, Any] = {
            "success": False,
            "error": self.error,
        }
        if self.error_code:
            response["error_code"] = self.error_code
        if self.errors:
            response["errors"] = self.errors
        return response

    def __bool__(self) -> bool:
        return self.success


class BaseService:
    """
    Base class for service layer classes.

    Services are stateless and expose classmethods. Collaborators that
    tests need to replace (payment gateway, pricing table) are held as
    class attributes with get_/set_ accessors.
    """

    @classmethod
    def get_logger(cls) -> logging.Logger:
        """
        Get logger for this service.

        Returns a logger named after the service class for
        easy filtering in logs.
        """
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    @classmethod
    @contextmanager
    def atomic(cls) -> Generator[None, None, None]:
        """
        Execute operations in a database transaction.

        Thin wrapper around Django's transaction.atomic() so transaction
        boundaries read explicitly in service code.
        """
        with transaction.atomic():
            yield

    @classmethod
    def handle_exception(
        cls,
        exc: Exception,
        context: str = "",
        log_level: int = logging.ERROR,
        generic_message: str = "An unexpected error occurred",
        **log_extra: Any,
    ) -> ServiceResult:
        """
        Convert an exception to a failed ServiceResult with logging.

        Domain exceptions keep their own user-facing message and code.
        Anything else is logged with a traceback and collapsed into
        ``generic_message`` so internal detail never reaches the caller.

        Args:
            exc: The caught exception
            context: Operation name for the log line
            log_level: Logging level for domain exceptions
            generic_message: Message returned for unexpected exceptions
            **log_extra: Structured fields added to the log record

        Example:
            try:
                ...
            except Exception as e:
                return cls.handle_exception(e, "intake submission")
        """
        logger = cls.get_logger()
        prefix = f"{context}: " if context else ""

        if isinstance(exc, BaseApplicationError):
            logger.log(
                log_level,
                f"{prefix}{exc}",
                extra={"error_code": exc.error_code, **log_extra},
            )
            return ServiceResult.from_exception(exc)

        logger.error(
            f"{prefix}unexpected {type(exc).__name__}",
            exc_info=True,
            extra=log_extra,
        )
        return ServiceResult.failure(generic_message, error_code="UNEXPECTED_ERROR")
