"""
Adapters for external services used by ticket ingestion.

All Stripe calls should go through these adapters to ensure consistent
error handling, timeouts and observability.

Usage:
    from ticketing.adapters import StripeAdapter

    event = StripeAdapter.verify_webhook_signature(request.body, signature)
"""

from ticketing.adapters.stripe_adapter import StripeAdapter, backoff_delay

__all__ = [
    "StripeAdapter",
    "backoff_delay",
]
