"""
Stripe API adapter for ticket purchase ingestion.

This module provides the StripeAdapter class which encapsulates the
Stripe interactions the ingestion pipeline needs: webhook signature
verification and checkout session lookup. All Stripe calls should go
through this adapter to ensure consistent error handling, timeouts and
observability.

Features:
- Configurable timeout on API calls
- Automatic error translation to ticketing exceptions
- Structured logging with timing metrics
- Thread-safe for use from Celery workers

Configuration (via settings):
- STRIPE_SECRET_KEY: Stripe API secret key
- STRIPE_WEBHOOK_SECRET: Webhook signing secret
- STRIPE_WEBHOOK_TOLERANCE_SECONDS: Max signature age (default: 300)
- STRIPE_API_TIMEOUT_SECONDS: API call timeout (default: 10)

Usage:
    from ticketing.adapters import StripeAdapter

    # Verify an inbound webhook before touching its body
    event = StripeAdapter.verify_webhook_signature(request.body, signature)

    # Find the checkout session that produced a payment intent
    session = StripeAdapter.find_checkout_session("pi_xxx")
"""

from __future__ import annotations

import json
import logging
import random
import time
from typing import Any

import stripe
from django.conf import settings

from ticketing.events import CheckoutSessionPayload
from ticketing.exceptions import InvalidSignature, SessionNotFound

# =============================================================================
# Retry Logic Helpers
# =============================================================================


def backoff_delay(attempt: int, base: float = 1.0, max_delay: float = 60.0) -> float:
    """
    Calculate exponential backoff delay with jitter.

    Jitter prevents thundering herd when multiple workers retry simultaneously.

    Args:
        attempt: Current attempt number (0-indexed)
        base: Base delay in seconds (default: 1.0)
        max_delay: Maximum delay in seconds (default: 60.0)

    Returns:
        Delay in seconds with jitter (0-25% of calculated delay)

    Example:
        # Attempt 0: 1.0 - 1.25 seconds
        # Attempt 1: 2.0 - 2.5 seconds
        # Attempt 2: 4.0 - 5.0 seconds
        delay = backoff_delay(attempt=2)
    """
    delay = min(base * (2**attempt), max_delay)
    jitter = delay * random.uniform(0, 0.25)
    return delay + jitter


# =============================================================================
# Stripe Adapter
# =============================================================================


class StripeAdapter:
    """
    Adapter for Stripe API operations.

    All methods are class methods - no instance state is maintained.
    Thread-safe for use from Celery workers.

    Usage:
        event = StripeAdapter.verify_webhook_signature(payload, signature)
        session = StripeAdapter.find_checkout_session(payment_intent_id)
    """

    # =========================================================================
    # Configuration
    # =========================================================================

    @staticmethod
    def _configure_stripe() -> None:
        """Configure Stripe client with API key and timeout."""
        stripe.api_key = settings.STRIPE_SECRET_KEY
        timeout = getattr(settings, "STRIPE_API_TIMEOUT_SECONDS", 10)
        stripe.default_http_client = stripe.RequestsClient(timeout=timeout)

    @classmethod
    def get_logger(cls) -> logging.Logger:
        """Get logger for this adapter."""
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    # =========================================================================
    # Webhooks
    # =========================================================================

    @classmethod
    def verify_webhook_signature(
        cls,
        payload: bytes,
        signature: str,
    ) -> dict[str, Any]:
        """
        Verify and parse a Stripe webhook event.

        The signature is checked against the exact raw bytes before the
        body is parsed as JSON.

        Args:
            payload: Raw webhook payload bytes
            signature: Stripe-Signature header value

        Returns:
            Parsed event data dict

        Raises:
            InvalidSignature: Signature missing, malformed, stale or wrong,
                or no webhook secret is configured
        """
        secret = getattr(settings, "STRIPE_WEBHOOK_SECRET", "")
        if not secret:
            cls.get_logger().error("STRIPE_WEBHOOK_SECRET is not configured")
            raise InvalidSignature(
                "Webhook signing secret is not configured",
                details={"reason": "missing_secret"},
            )

        if not signature:
            raise InvalidSignature(
                "Missing webhook signature",
                details={"reason": "missing_signature"},
            )

        try:
            body = payload.decode("utf-8")
            stripe.WebhookSignature.verify_header(
                body,
                signature,
                secret,
                tolerance=getattr(settings, "STRIPE_WEBHOOK_TOLERANCE_SECONDS", 300),
            )
        except UnicodeDecodeError as e:
            raise InvalidSignature(
                "Webhook payload is not valid UTF-8",
                details={"error": str(e)},
            )
        except stripe.SignatureVerificationError as e:
            raise InvalidSignature(
                "Invalid webhook signature",
                details={"error": str(e)},
            )

        try:
            return json.loads(body)
        except ValueError as e:
            # Signed by Stripe but not JSON; treat as untrusted input
            raise InvalidSignature(
                "Webhook payload is not valid JSON",
                details={"error": str(e)},
            )

    # =========================================================================
    # Checkout Sessions
    # =========================================================================

    @classmethod
    def find_checkout_session(
        cls,
        payment_intent_id: str,
    ) -> CheckoutSessionPayload:
        """
        Find the checkout session for a PaymentIntent.

        At most one session is expected per PaymentIntent.

        Args:
            payment_intent_id: Stripe PaymentIntent ID (pi_xxx)

        Returns:
            CheckoutSessionPayload for the matching session

        Raises:
            SessionNotFound: No session exists yet, or the lookup failed
                or timed out
        """
        cls._configure_stripe()
        logger = cls.get_logger()

        log_context = {
            "operation": "find_checkout_session",
            "payment_intent_id": payment_intent_id,
        }

        start_time = time.time()
        logger.debug("Starting Stripe operation", extra=log_context)

        try:
            sessions = stripe.checkout.Session.list(
                payment_intent=payment_intent_id,
                limit=1,
            )
        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            cls._handle_stripe_error(e, log_context, duration_ms)
            raise

        duration_ms = (time.time() - start_time) * 1000
        logger.debug(
            "Stripe operation completed",
            extra={
                **log_context,
                "count": len(sessions.data),
                "duration_ms": duration_ms,
            },
        )

        if not sessions.data:
            logger.warning(
                f"No checkout session found for PaymentIntent {payment_intent_id}",
                extra=log_context,
            )
            raise SessionNotFound(
                f"No checkout session found for PaymentIntent {payment_intent_id}",
                details={"payment_intent_id": payment_intent_id},
            )

        return CheckoutSessionPayload.from_dict(sessions.data[0])

    # =========================================================================
    # Error Handling
    # =========================================================================

    @classmethod
    def _handle_stripe_error(
        cls,
        error: Exception,
        log_context: dict[str, Any],
        duration_ms: float,
    ) -> None:
        """
        Translate Stripe exceptions raised during a session lookup.

        Every Stripe failure surfaces as SessionNotFound so the event is
        retried through the retry queue. Non-Stripe exceptions are left
        for the caller to re-raise.

        Args:
            error: The exception raised by the Stripe SDK
            log_context: Logging context dict
            duration_ms: Operation duration for logging

        Raises:
            SessionNotFound: For any Stripe error
        """
        logger = cls.get_logger()
        log_context = {**log_context, "duration_ms": duration_ms}
        payment_intent_id = log_context.get("payment_intent_id")

        if isinstance(error, stripe.APIConnectionError):
            # Network error or timeout
            logger.error("Connection error to Stripe", extra=log_context, exc_info=True)
            reason = "api_connection_error"

        elif isinstance(error, stripe.RateLimitError):
            logger.warning("Rate limited by Stripe", extra=log_context)
            reason = "rate_limit"

        elif isinstance(error, stripe.AuthenticationError):
            logger.critical(
                "Stripe authentication failed - check API key",
                extra=log_context,
            )
            reason = "authentication_error"

        elif isinstance(error, stripe.InvalidRequestError):
            logger.error(
                "Invalid request to Stripe",
                extra={**log_context, "stripe_code": error.code},
            )
            reason = "invalid_request"

        elif isinstance(error, stripe.StripeError):
            logger.error("Stripe API error", extra=log_context, exc_info=True)
            reason = "api_error"

        else:
            return

        raise SessionNotFound(
            f"Checkout session lookup failed for PaymentIntent {payment_intent_id}",
            details={
                "payment_intent_id": payment_intent_id,
                "reason": reason,
                "error": str(error),
            },
        ) from error
