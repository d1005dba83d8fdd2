"""
Custom user manager for email-based authentication.

This module provides the UserManager class that handles user creation
with email as the primary identifier instead of username.

Security:
    - Passwords are automatically hashed via set_password()
    - Guest users always get an unusable password
"""

from django.contrib.auth.models import BaseUserManager


class UserManager(BaseUserManager):
    """
    Custom manager for User model with email-based authentication.

    Usage:
        user = User.objects.create_user(
            email='patient@example.com',
            password='securepassword'
        )

        guest = User.objects.create_guest('guest@example.com')
    """

    @staticmethod
    def normalize_guest_email(email: str) -> str:
        """
        Normalize an email for guest identity lookup.

        Unlike normalize_email(), the local part is lowercased too, so
        "Jane@Example.com" and "jane@example.com" are the same guest.
        """
        return (email or "").strip().lower()

    def create_user(self, email, password=None, **extra_fields):
        """
        Create and save a regular user with the given email and password.

        Raises:
            ValueError: If email is not provided
        """
        if not email:
            raise ValueError("The Email field must be set")

        email = self.normalize_email(email)

        extra_fields.setdefault("is_staff", False)
        extra_fields.setdefault("is_superuser", False)

        # Name fields belong on Profile
        extra_fields.pop("first_name", None)
        extra_fields.pop("last_name", None)

        user = self.model(email=email, **extra_fields)

        if password:
            user.set_password(password)
        else:
            user.set_unusable_password()

        user.save(using=self._db)
        return user

    def create_guest(self, email):
        """
        Create a password-less guest user keyed by normalized email.

        Raises:
            ValueError: If email is not provided
        """
        email = self.normalize_guest_email(email)
        if not email:
            raise ValueError("The Email field must be set")
        return self.create_user(email=email, password=None, is_guest=True)

    def create_superuser(self, email, password=None, **extra_fields):
        """
        Create and save a superuser with the given email and password.

        Raises:
            ValueError: If is_staff or is_superuser is not True
        """
        extra_fields.setdefault("is_staff", True)
        extra_fields.setdefault("is_superuser", True)
        extra_fields.setdefault("email_verified", True)

        if extra_fields.get("is_staff") is not True:
            raise ValueError("Superuser must have is_staff=True.")
        if extra_fields.get("is_superuser") is not True:
            raise ValueError("Superuser must have is_superuser=True.")

        return self.create_user(email, password, **extra_fields)
