"""
Root pytest configuration for the Django project.

This module configures pytest-django and provides project-wide fixtures.
App-specific fixtures are defined in each app's tests/conftest.py.

Tests run against SQLite and an in-memory Celery broker so no external
services are needed. Stripe is always mocked.
"""

import os

import django
import pytest

# Settings are read from the environment, so these must be set before
# Django is configured
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")
os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production")
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("CELERY_BROKER_URL", "memory://")
os.environ.setdefault("CELERY_RESULT_BACKEND", "cache+memory://")
os.environ.setdefault("APP_BASE_URL", "https://app.example.com")
os.environ.setdefault("STRIPE_SECRET_KEY", "sk_test_dummy")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test_dummy")
os.environ.setdefault("STRIPE_RETRY_BASE_DELAY_SECONDS", "0")
os.environ.setdefault("SECURE_SSL_REDIRECT", "False")


def pytest_configure():
    """Configure Django settings before tests run."""
    django.setup()

    from django.conf import settings

    # Disable throttling during tests to prevent rate limit failures
    settings.REST_FRAMEWORK["DEFAULT_THROTTLE_CLASSES"] = []
    settings.REST_FRAMEWORK["DEFAULT_THROTTLE_RATES"] = {}

    # Use fast password hasher for tests
    settings.PASSWORD_HASHERS = [
        "django.contrib.auth.hashers.MD5PasswordHasher",
    ]

    # Kill switches are cached; keep the cache in-process
    settings.CACHES = {
        "default": {"BACKEND": "django.core.cache.backends.locmem.LocMemCache"},
    }
    settings.SESSION_ENGINE = "django.contrib.sessions.backends.db"

    # Manifest storage needs collectstatic
    settings.STORAGES = {
        "default": {"BACKEND": "django.core.files.storage.FileSystemStorage"},
        "staticfiles": {"BACKEND": "django.contrib.staticfiles.storage.StaticFilesStorage"},
    }


def pytest_collection_modifyitems(items):
    """
    Auto-mark tests based on filename patterns.

    Mapping:
    - test_views.py, test_services.py, test_tasks.py, etc. → integration
    - everything else → unit

    Explicit markers on test functions/classes take precedence.
    """
    integration_patterns = [
        "test_views.py",
        "test_services.py",
        "test_tasks.py",
        "test_handlers.py",
        "test_checkout_orchestrator.py",
        "test_refund_orchestrator.py",
        "test_decisions.py",
        "test_repository.py",
    ]

    for item in items:
        existing_markers = {m.name for m in item.iter_markers()}
        if existing_markers & {"unit", "integration"}:
            continue

        filename = str(item.fspath).split("/")[-1]
        if any(pattern in filename for pattern in integration_patterns):
            item.add_marker(pytest.mark.integration)
        else:
            item.add_marker(pytest.mark.unit)


@pytest.fixture(autouse=True)
def clear_cache():
    """Start every test with an empty cache (kill switches, fraud lookups)."""
    from django.core.cache import cache

    cache.clear()
    yield
    cache.clear()


@pytest.fixture(autouse=True)
def reset_service_collaborators():
    """Undo gateway/pricing injection done by a test."""
    yield

    from payments.services import CheckoutOrchestrator, RefundOrchestrator

    CheckoutOrchestrator.set_gateway(None)
    CheckoutOrchestrator.set_pricing(None)
    RefundOrchestrator.set_gateway(None)


# =============================================================================
# Shared Fixtures
# =============================================================================


CHECKOUT_URL = "https://checkout.stripe.com/c/pay/cs_test_new"


@pytest.fixture
def mock_gateway():
    """
    PaymentGateway double installed on both orchestrators.

    Every call succeeds by default; tests override ``return_value`` with
    an ``Err`` to simulate gateway failures.
    """
    from unittest.mock import MagicMock

    from payments.adapters import (
        CheckoutSessionResult,
        Ok,
        PaymentGateway,
        RefundResult,
    )
    from payments.services import CheckoutOrchestrator, RefundOrchestrator

    gateway = MagicMock(spec=PaymentGateway)
    gateway.create_checkout_session.return_value = Ok(
        CheckoutSessionResult(id="cs_test_new", url=CHECKOUT_URL, status="open")
    )
    gateway.retrieve_checkout_session.return_value = Ok(
        CheckoutSessionResult(id="cs_test_existing", url=None, status="expired")
    )
    gateway.expire_checkout_session.return_value = Ok(
        CheckoutSessionResult(id="cs_test_existing", url=None, status="expired")
    )
    gateway.create_refund.return_value = Ok(
        RefundResult(
            id="re_test_123",
            amount_cents=1995,
            currency="aud",
            status="succeeded",
            payment_intent_id="pi_test_123",
        )
    )

    CheckoutOrchestrator.set_gateway(gateway)
    RefundOrchestrator.set_gateway(gateway)
    return gateway


@pytest.fixture
def pricing():
    """A complete price table installed on the checkout orchestrator."""
    from intakes.pricing import PricingConfig
    from payments.services import CheckoutOrchestrator

    config = PricingConfig(
        med_cert="price_med_cert_1day",
        med_cert_2day="price_med_cert_2day",
        med_cert_3day="price_med_cert_3day",
        repeat_script="price_repeat_script",
        consult="price_consult",
    )
    CheckoutOrchestrator.set_pricing(config)
    return config
