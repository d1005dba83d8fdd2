"""
Payments app for Stripe integration.

This app handles:
- Checkout sessions for submitted intakes
- Payment records and refund progress
- Webhook event handling
- Automatic refunds for declined intakes

Related apps:
    - intakes: Intake lifecycle, pricing and safety screening
    - authentication: Patient identity and Stripe customer references

Usage:
    from payments.services import CheckoutOrchestrator, RefundOrchestrator
"""
