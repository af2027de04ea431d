"""
Webhook handling for ticket purchase events from Stripe.

Webhooks are verified, decoded into typed events and routed to their
handlers. Retryable failures are handed to the retry queue so the
endpoint can always acknowledge a verified event.

Usage:
    # In urls.py
    from ticketing.webhooks.views import stripe_webhook

    urlpatterns = [
        path("webhooks/stripe/", stripe_webhook, name="stripe_webhook"),
    ]
"""

from ticketing.webhooks.handlers import dispatch_event, register_handler
from ticketing.webhooks.views import stripe_webhook

__all__ = [
    "dispatch_event",
    "register_handler",
    "stripe_webhook",
]
