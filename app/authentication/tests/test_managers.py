"""
Tests for UserManager.

Covers regular user creation, guest creation and superuser creation.
"""

import pytest

from authentication.models import Profile, User


class TestUserManagerCreateUser:
    """Tests for UserManager.create_user() method."""

    def test_creates_user_with_email_and_password(self, db):
        user = User.objects.create_user(email="manager@example.com", password="SecurePass123!")

        assert user.pk is not None
        assert user.check_password("SecurePass123!") is True
        assert user.is_guest is False

    def test_normalizes_email_domain_to_lowercase(self, db):
        user = User.objects.create_user(email="Test.User@EXAMPLE.COM", password="TestPass123!")

        assert user.email == "Test.User@example.com"

    def test_raises_valueerror_when_email_is_empty(self, db):
        with pytest.raises(ValueError) as exc_info:
            User.objects.create_user(email="", password="TestPass123!")

        assert "Email field must be set" in str(exc_info.value)

    def test_creates_profile_via_signal(self, db):
        user = User.objects.create_user(email="signal@example.com", password="TestPass123!")

        assert Profile.objects.filter(user=user).exists()

    def test_ignores_name_fields(self, db):
        user = User.objects.create_user(
            email="names@example.com",
            password="TestPass123!",
            first_name="Ignored",
        )

        assert user.pk is not None
        assert user.profile.first_name == ""


class TestUserManagerCreateGuest:
    """Tests for UserManager.create_guest() method."""

    def test_guest_email_fully_lowercased_and_stripped(self, db):
        guest = User.objects.create_guest("  Jane.Doe@Example.COM ")

        assert guest.email == "jane.doe@example.com"
        assert guest.is_guest is True

    def test_guest_has_unusable_password(self, db):
        guest = User.objects.create_guest("nopass@example.com")

        assert guest.has_usable_password() is False

    def test_guest_requires_email(self, db):
        with pytest.raises(ValueError):
            User.objects.create_guest("   ")


class TestUserManagerCreateSuperuser:
    """Tests for UserManager.create_superuser() method."""

    def test_superuser_flags(self, db):
        admin = User.objects.create_superuser(email="admin@example.com", password="AdminPass123!")

        assert admin.is_staff is True
        assert admin.is_superuser is True
        assert admin.email_verified is True

    def test_superuser_rejects_is_staff_false(self, db):
        with pytest.raises(ValueError, match="is_staff=True"):
            User.objects.create_superuser(
                email="bad@example.com", password="AdminPass123!", is_staff=False
            )


@pytest.mark.django_db
class TestProfile:
    """Profile normalization."""

    def test_medicare_number_stored_as_digits(self, user):
        user.profile.medicare_number = "2123 45670 1"
        user.profile.save()
        user.profile.refresh_from_db()

        assert user.profile.medicare_number == "2123456701"
