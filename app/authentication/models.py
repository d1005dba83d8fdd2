"""
Authentication models.

This module defines the patient identity models:
- User: Custom user model with email-based authentication
- Profile: Patient profile data (OneToOne with User)

Guest patients (unauthenticated intake submissions) are Users with
``is_guest=True`` and an unusable password. They are keyed by normalized
email so a returning guest reuses the same identity.

Related files:
    - managers.py: Custom user manager for email-based creation
    - services.py: IdentityService patient/guest resolution
    - signals.py: Auto-create profile on user creation
"""

from django.contrib.auth.models import AbstractBaseUser, PermissionsMixin
from django.conf import settings
from django.db import models

from core.models import BaseModel
from authentication.managers import UserManager


class User(AbstractBaseUser, PermissionsMixin):
    """
    Custom User model using email as the primary identifier.

    Fields:
        email: Primary identifier, unique, used for login
        email_verified: Whether the user's email has been verified
        is_guest: Created by a guest intake submission, has no password
        is_active: Whether the user account is active
        is_staff: Whether the user can access admin and review intakes
        date_joined: When the user account was created
        updated_at: When the user record was last modified
    """

    email = models.EmailField(
        unique=True,
        db_index=True,
        max_length=254,
        help_text="User's email address (primary identifier)",
    )

    email_verified = models.BooleanField(
        default=False,
        help_text="Whether the user's email has been verified",
    )

    is_guest = models.BooleanField(
        default=False,
        db_index=True,
        help_text="Guest identity created from an unauthenticated intake",
    )

    # Account status flags
    is_active = models.BooleanField(
        default=True,
        help_text="Whether this user account is active. Deselect instead of deleting.",
    )
    is_staff = models.BooleanField(
        default=False,
        help_text="Whether the user can access the admin site and review intakes.",
    )

    # Timestamps
    date_joined = models.DateTimeField(
        auto_now_add=True,
        help_text="When the user account was created",
    )
    updated_at = models.DateTimeField(
        auto_now=True,
        help_text="When the user record was last modified",
    )

    USERNAME_FIELD = "email"
    REQUIRED_FIELDS = []

    objects = UserManager()

    class Meta:
        verbose_name = "user"
        verbose_name_plural = "users"
        ordering = ["-date_joined"]

    def __str__(self):
        return self.email

    def get_full_name(self):
        """Return the profile's full name, or email if unset."""
        try:
            return self.profile.full_name or self.email
        except Profile.DoesNotExist:
            return self.email

    def get_short_name(self):
        try:
            return self.profile.first_name or self.email.split("@")[0]
        except Profile.DoesNotExist:
            return self.email.split("@")[0]


class Profile(BaseModel):
    """
    Patient profile data.

    Fields:
        user: OneToOne link to User (also serves as primary key)
        first_name: Patient's first name
        last_name: Patient's last name
        medicare_number: Government identity number, used by fraud checks
        stripe_customer_id: Stored Stripe Customer for checkout prefill

    Note:
        Profile is automatically created via signals when a User is created.
    """

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="profile",
        primary_key=True,
        help_text="User this profile belongs to",
    )

    first_name = models.CharField(
        max_length=150,
        blank=True,
        help_text="Patient's first name",
    )
    last_name = models.CharField(
        max_length=150,
        blank=True,
        help_text="Patient's last name",
    )

    medicare_number = models.CharField(
        max_length=20,
        blank=True,
        db_index=True,
        help_text="Medicare card number (digits only)",
    )

    stripe_customer_id = models.CharField(
        max_length=255,
        blank=True,
        help_text="Stripe Customer ID (cus_xxx) used to prefill checkout",
    )

    class Meta:
        db_table = "authentication_profile"
        verbose_name = "profile"
        verbose_name_plural = "profiles"

    def __str__(self):
        return self.full_name or str(self.user)

    @property
    def full_name(self):
        """Return full name or empty string."""
        return f"{self.first_name} {self.last_name}".strip()

    def save(self, *args, **kwargs):
        """Store medicare numbers as digits only."""
        if self.medicare_number:
            self.medicare_number = "".join(
                ch for ch in self.medicare_number if ch.isdigit()
            )
        super().save(*args, **kwargs)
