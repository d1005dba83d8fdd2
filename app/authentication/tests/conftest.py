"""
Test configuration and fixtures for authentication tests.
"""

import pytest

from authentication.tests.factories import GuestUserFactory, UserFactory


# =============================================================================
# User Fixtures
# =============================================================================


@pytest.fixture
def user(db):
    """Create a registered patient with auto-created profile."""
    return UserFactory()


@pytest.fixture
def guest_user(db):
    """Create a guest patient."""
    return GuestUserFactory(email="guest.patient@example.com")
