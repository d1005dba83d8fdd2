"""
Tests for ServiceResult and BaseService.
"""

import logging
from dataclasses import dataclass

import pytest

from core.exceptions import ConflictError, NotFoundError, ValidationError
from core.services import BaseService, ServiceResult


@dataclass
class Receipt:
    reference: str

    def as_dict(self):
        return {"reference": self.reference}


class ExampleService(BaseService):
    pass


# =============================================================================
# ServiceResult
# =============================================================================


class TestServiceResult:
    def test_success_response(self):
        result = ServiceResult.success({"intake_id": "abc"})

        assert result
        assert result.to_response() == {"success": True, "data": {"intake_id": "abc"}}

    def test_success_uses_as_dict(self):
        result = ServiceResult.success(Receipt("r-1"))

        assert result.to_response()["data"] == {"reference": "r-1"}

    def test_failure_response(self):
        result = ServiceResult.failure("Intake not found", error_code="INTAKE_NOT_FOUND")

        assert not result
        assert result.to_response() == {
            "success": False,
            "error": "Intake not found",
            "error_code": "INTAKE_NOT_FOUND",
        }

    def test_failure_without_code_or_errors(self):
        assert ServiceResult.failure("Nope").to_response() == {"success": False, "error": "Nope"}

    def test_from_exception_surfaces_field_errors(self):
        exc = ValidationError(
            "Please check your answers and try again.",
            details={"errors": {"start_date": ["This field is required."]}},
        )

        result = ServiceResult.from_exception(exc)

        assert result.error == "Please check your answers and try again."
        assert result.error_code == "VALIDATION_ERROR"
        assert result.errors == {"start_date": ["This field is required."]}
        assert result.to_response()["errors"] == {"start_date": ["This field is required."]}

    def test_from_exception_without_details(self):
        result = ServiceResult.from_exception(ConflictError("Already paid"))

        assert result.error_code == "CONFLICT"
        assert result.errors is None


# =============================================================================
# BaseService.handle_exception
# =============================================================================


class TestHandleException:
    def test_domain_exception_keeps_message_and_code(self, caplog):
        exc = NotFoundError("Request not found", error_code="INTAKE_NOT_FOUND")

        with caplog.at_level(logging.WARNING):
            result = ExampleService.handle_exception(
                exc, "Payment retry", log_level=logging.WARNING, intake_id="abc"
            )

        assert result.error == "Request not found"
        assert result.error_code == "INTAKE_NOT_FOUND"
        record = caplog.records[-1]
        assert record.levelno == logging.WARNING
        assert record.name == "core.tests.test_services.ExampleService"
        assert record.intake_id == "abc"
        assert record.error_code == "INTAKE_NOT_FOUND"

    def test_unexpected_exception_is_generic(self, caplog):
        with caplog.at_level(logging.ERROR):
            result = ExampleService.handle_exception(
                KeyError("STRIPE_SECRET_KEY"), "Intake submission", generic_message="Try again."
            )

        assert result.error == "Try again."
        assert result.error_code == "UNEXPECTED_ERROR"
        assert "STRIPE_SECRET_KEY" not in result.error
        assert caplog.records[-1].exc_info is not None


# =============================================================================
# BaseService.atomic
# =============================================================================


@pytest.mark.django_db(transaction=True)
class TestAtomic:
    def test_rolls_back_on_error(self):
        from authentication.models import User

        with pytest.raises(RuntimeError):
            with ExampleService.atomic():
                User.objects.create_user(email="rollback@example.com", password="x")
                raise RuntimeError("boom")

        assert not User.objects.filter(email="rollback@example.com").exists()
