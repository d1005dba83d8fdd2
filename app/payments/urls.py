"""
URL configuration for the payments app.

Routes:
    - POST /webhooks/stripe/ - Stripe webhook endpoint
    - GET /intakes/<intake_id>/refund/ - Refund status (staff)

All routes are prefixed with /api/v1/payments/ when included in the main URLconf.
"""

from django.urls import path

from payments.views import RefundStatusView
from payments.webhooks.views import stripe_webhook

app_name = "payments"

urlpatterns = [
    path("webhooks/stripe/", stripe_webhook, name="stripe_webhook"),
    path("intakes/<uuid:intake_id>/refund/", RefundStatusView.as_view(), name="refund_status"),
]
