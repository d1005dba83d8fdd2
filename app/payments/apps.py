"""
Payments app configuration.

This app provides the payment side of intake processing:
- Stripe Checkout sessions for submitted intakes
- Webhook handling for payment completion and session expiry
- Automatic refunds for declined intakes
"""

from django.apps import AppConfig


class PaymentsConfig(AppConfig):
    """Configuration for the payments application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "payments"
    verbose_name = "Payments"

    def ready(self):
        """Build the price table once from settings and hand it to checkout."""
        from intakes.pricing import PricingConfig
        from payments.services import CheckoutOrchestrator

        CheckoutOrchestrator.set_pricing(PricingConfig.from_settings())
