"""
Ticketing app configuration.

This app ingests Stripe webhook events for ticket purchases:
- Signature verification and typed event decoding
- Transaction materialization from checkout session metadata
- Atomic multi-collection document writes
- Durable retry queue for transient failures
"""

from django.apps import AppConfig


class TicketingConfig(AppConfig):
    """Configuration for the ticketing application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "ticketing"
    verbose_name = "Ticketing"

    def ready(self):
        # Register webhook handlers and retry consumers
        import ticketing.consumers  # noqa: F401
        import ticketing.webhooks.handlers  # noqa: F401
