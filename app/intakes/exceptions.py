"""
Exceptions for the intake pipeline.

Exception Hierarchy:
    BaseApplicationError (core)
    ├── ValidationError (core) - Malformed or incomplete answers
    ├── PermissionDeniedError (core)
    │   └── AuthError (authentication) - Identity resolution failure
    ├── ServiceUnavailableError - Kill switch or inactive catalog entry
    ├── SafetyBlockedError - Non-ALLOW safety gate outcome
    ├── PersistenceError - Insert/update failure (rows rolled back)
    └── ConfigError - Missing price mapping

Every ``message`` is shown to the patient as-is.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from authentication.exceptions import AuthError
from core.exceptions import BaseApplicationError, ValidationError

if TYPE_CHECKING:
    from typing import Any

__all__ = [
    "AuthError",
    "ConfigError",
    "PersistenceError",
    "SafetyBlockedError",
    "ServiceUnavailableError",
    "ValidationError",
]


SERVICE_UNAVAILABLE_MESSAGE = "This service is temporarily unavailable. Please try again later."


class ServiceUnavailableError(BaseApplicationError):
    """
    Raised when a service cannot be requested right now.

    Kill-switch errors append their code in brackets so the presenting
    layer can show the message verbatim and support can still tell the
    categories apart.
    """

    default_error_code = "SERVICE_UNAVAILABLE"


class SafetyBlockedError(BaseApplicationError):
    """
    Raised when the safety gate returns anything but ALLOW.

    Attributes:
        outcome: The gate outcome (DECLINE, REQUIRES_CALL, REQUEST_MORE_INFO)
        triggered_rules: Rule identifiers that fired
    """

    default_error_code = "SAFETY_BLOCKED"

    def __init__(
        self,
        message: str,
        outcome: str,
        triggered_rules: list[str] | None = None,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.outcome = outcome
        self.triggered_rules = list(triggered_rules or [])
        super().__init__(
            message,
            error_code=error_code,
            details={"outcome": outcome, **(details or {})},
        )


class PersistenceError(BaseApplicationError):
    """Raised when intake rows cannot be written. Partial rows are rolled back."""

    default_error_code = "PERSISTENCE_ERROR"


class ConfigError(BaseApplicationError):
    """Raised when no gateway price is configured for a category/tier."""

    default_error_code = "CONFIG_ERROR"
