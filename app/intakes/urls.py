"""
URL configuration for the intakes app.

Routes:
    - POST / - Submit intake
    - POST /<intake_id>/retry-payment/ - Retry payment
    - POST /<intake_id>/decision/ - Reviewer decision

All routes are prefixed with /api/v1/intakes/ when included in the main URLconf.
"""

from django.urls import path

from intakes.views import IntakeDecisionView, RetryPaymentView, SubmitIntakeView

app_name = "intakes"

urlpatterns = [
    path("", SubmitIntakeView.as_view(), name="submit"),
    path("<uuid:intake_id>/retry-payment/", RetryPaymentView.as_view(), name="retry_payment"),
    path("<uuid:intake_id>/decision/", IntakeDecisionView.as_view(), name="decision"),
]
