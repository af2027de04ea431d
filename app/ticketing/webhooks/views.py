"""
Webhook endpoint views for Stripe.

This module provides the HTTP endpoint for receiving Stripe webhooks.
The view:
1. Verifies the webhook signature over the raw body
2. Decodes the event into its typed variant
3. Dispatches it inline; retryable failures are handed to the retry queue
4. Returns 200 for every verified event

Stripe must not redeliver an acknowledged event: a redelivery would
materialize the transaction a second time with new ticket ids. Retries
happen through the internal retry queue instead.

Usage:
    # In urls.py
    from ticketing.webhooks.views import stripe_webhook

    urlpatterns = [
        path("webhooks/stripe/", stripe_webhook, name="stripe_webhook"),
    ]
"""

from __future__ import annotations

import logging

from django.http import HttpRequest, HttpResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from ticketing.adapters import StripeAdapter
from ticketing.context import IngestionContext
from ticketing.events import decode_event
from ticketing.exceptions import InvalidSignature
from ticketing.queue import REPROCESS_EVENT
from ticketing.webhooks.handlers import dispatch_event

logger = logging.getLogger(__name__)


@csrf_exempt
@require_POST
def stripe_webhook(request: HttpRequest) -> HttpResponse:
    """
    Receive and process Stripe webhook events.

    Security:
    - Signature verification prevents spoofed webhooks
    - CSRF exemption required for external webhooks
    - Only POST requests accepted

    Returns:
        HttpResponse with status:
        - 200: Event accepted (processed, queued for retry, dropped or ignored)
        - 400: Missing or invalid signature
        - 405: Method other than POST
        - 500: Event could not be processed nor queued; Stripe will redeliver

    Example Stripe-Signature header:
        t=1614556800,v1=xxx,v0=yyy
    """
    payload = request.body
    signature = request.headers.get("Stripe-Signature", "")

    if not signature:
        logger.warning("Webhook received without Stripe-Signature header")
        return HttpResponse("Missing signature", status=400)

    try:
        event_data = StripeAdapter.verify_webhook_signature(payload, signature)
    except InvalidSignature as e:
        logger.warning(
            "Webhook signature verification failed",
            extra={"error": str(e)},
        )
        return HttpResponse("Invalid signature", status=400)

    try:
        event = decode_event(event_data)
    except (KeyError, TypeError, AttributeError) as e:
        logger.error(
            f"Verified webhook has a malformed object: {type(e).__name__}",
            extra={
                "stripe_event_id": event_data.get("id"),
                "event_type": event_data.get("type"),
            },
        )
        return HttpResponse("Accepted", status=200)

    logger.info(
        f"Received Stripe webhook: {event.kind}",
        extra={"stripe_event_id": event.event_id, "event_type": event.kind},
    )

    context = IngestionContext.default()
    try:
        result = dispatch_event(event, context)
    except Exception as e:
        logger.exception(
            f"Unexpected error processing webhook: {type(e).__name__}",
            extra={"stripe_event_id": event.event_id, "event_type": event.kind},
        )
        try:
            context.queue.enqueue(
                REPROCESS_EVENT,
                {"paymentIntentId": event.payment_intent_id, "event": event.raw},
            )
        except Exception:
            logger.exception(
                "Failed to queue webhook for reprocessing",
                extra={"stripe_event_id": event.event_id},
            )
            return HttpResponse("Processing error", status=500)
        return HttpResponse("Accepted", status=200)

    if not result.success:
        logger.info(
            f"Webhook dropped: {result.error}",
            extra={"stripe_event_id": event.event_id, "error_code": result.error_code},
        )

    return HttpResponse("Accepted", status=200)
