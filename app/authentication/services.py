"""
Identity services.

This module provides IdentityService, which resolves the patient an
intake is submitted for:

- An authenticated user is the patient.
- An unauthenticated submission creates or reuses a guest user keyed by
  normalized email. A registered (non-guest) account under the same email
  blocks guest creation so two identities never share one inbox.

Related files:
    - models.py: User (is_guest) and Profile
    - managers.py: UserManager.create_guest()
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from django.db import IntegrityError, transaction

from authentication.exceptions import AuthError

if TYPE_CHECKING:
    from authentication.models import User

logger = logging.getLogger(__name__)


LOGIN_REQUIRED_MESSAGE = "You must be logged in to submit a request. Please sign in and try again."
ACCOUNT_EXISTS_MESSAGE = "An account already exists with this email. Please sign in to continue."


@dataclass(frozen=True)
class PatientIdentity:
    """
    Resolved patient for one submission.

    Attributes:
        patient: The User the intake belongs to
        email: Email for checkout receipts
        customer_ref: Stored Stripe Customer ID, if any
        is_guest: Whether this is a guest identity
    """

    patient: User
    email: str
    customer_ref: str | None = None
    is_guest: bool = False


class IdentityService:
    """
    Resolve authenticated or guest patient identities.

    Usage:
        identity = IdentityService.resolve_patient(
            user=request.user,
            guest_email=data.get("guest_email"),
        )
    """

    @classmethod
    def resolve_patient(
        cls,
        user: User | None = None,
        guest_email: str | None = None,
        guest_name: str | None = None,
    ) -> PatientIdentity:
        """
        Resolve the patient for a submission.

        Args:
            user: The request user; anonymous users are treated as None
            guest_email: Email for unauthenticated submissions
            guest_name: Optional display name for a new guest profile

        Returns:
            PatientIdentity

        Raises:
            AuthError: No identity supplied, or guest email belongs to a
                registered account
        """
        if user is not None and getattr(user, "is_authenticated", False):
            if not user.is_active:
                raise AuthError(LOGIN_REQUIRED_MESSAGE, error_code="ACCOUNT_INACTIVE")
            return cls._identity_for(user)

        if guest_email:
            return cls.get_or_create_guest(guest_email, guest_name)

        raise AuthError(LOGIN_REQUIRED_MESSAGE, error_code="LOGIN_REQUIRED")

    @classmethod
    def get_or_create_guest(
        cls, email: str, full_name: str | None = None
    ) -> PatientIdentity:
        """
        Reuse or create a guest identity for ``email``.

        Raises:
            AuthError: If a registered account already uses this email
        """
        from authentication.models import User

        normalized = User.objects.normalize_guest_email(email)
        if not normalized or "@" not in normalized:
            raise AuthError(LOGIN_REQUIRED_MESSAGE, error_code="INVALID_GUEST_EMAIL")

        existing = User.objects.filter(email__iexact=normalized).first()
        if existing is not None:
            if not existing.is_guest:
                logger.info(
                    "Guest checkout blocked by registered account",
                    extra={"user_id": str(existing.pk)},
                )
                raise AuthError(ACCOUNT_EXISTS_MESSAGE, error_code="ACCOUNT_EXISTS")
            return cls._identity_for(existing)

        try:
            with transaction.atomic():
                guest = User.objects.create_guest(normalized)
        except IntegrityError:
            # Concurrent guest creation for the same email
            guest = User.objects.get(email__iexact=normalized)
            if not guest.is_guest:
                raise AuthError(ACCOUNT_EXISTS_MESSAGE, error_code="ACCOUNT_EXISTS")
            return cls._identity_for(guest)

        profile = guest.profile
        name = (full_name or "").strip() or normalized.split("@")[0]
        first, _, last = name.partition(" ")
        profile.first_name = first
        profile.last_name = last
        profile.save(update_fields=["first_name", "last_name", "updated_at"])

        logger.info("Guest identity created", extra={"user_id": str(guest.pk)})
        return cls._identity_for(guest)

    @staticmethod
    def _identity_for(user: User) -> PatientIdentity:
        profile = getattr(user, "profile", None)
        customer_ref = profile.stripe_customer_id if profile else ""
        return PatientIdentity(
            patient=user,
            email=user.email,
            customer_ref=customer_ref or None,
            is_guest=user.is_guest,
        )
