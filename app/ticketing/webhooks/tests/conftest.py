"""
Pytest fixtures for webhook tests.

Provides signed webhook requests and an IngestionContext whose Stripe
session lookup and QR encoder are in-memory fakes, while the writer and
retry queue use the real database.
"""

import json
from unittest.mock import patch

import pytest
from django.test import RequestFactory

from ticketing.context import IngestionContext
from ticketing.queue import TransactionRetryQueue
from ticketing.services import DurableWriter, TransactionMaterializer
from ticketing.store import DjangoDocumentStore
from ticketing.tests.factories import FakeQrEncoder, FakeSessionLookup, sign_payload

WEBHOOK_SECRET = "whsec_webhook_tests"
WEBHOOK_PATH = "/api/v1/ticketing/webhooks/stripe/"


@pytest.fixture(autouse=True)
def stripe_settings(settings):
    settings.STRIPE_WEBHOOK_SECRET = WEBHOOK_SECRET
    settings.STRIPE_WEBHOOK_TOLERANCE_SECONDS = 300
    settings.TICKETING_DEEP_LINK_BASE_URL = "https://tickets.example.com/t"
    return settings


@pytest.fixture
def rf():
    """Request factory for creating test requests."""
    return RequestFactory()


@pytest.fixture
def signed_request(rf):
    """Build a POST request carrying a valid Stripe-Signature for ``payload``."""

    def build(payload: dict, signature: str | None = None):
        body = json.dumps(payload)
        return rf.post(
            WEBHOOK_PATH,
            data=body,
            content_type="application/json",
            HTTP_STRIPE_SIGNATURE=signature or sign_payload(body, WEBHOOK_SECRET),
        )

    return build


# =============================================================================
# Ingestion context
# =============================================================================


@pytest.fixture
def session_lookup():
    return FakeSessionLookup()


@pytest.fixture
def qr_encoder():
    return FakeQrEncoder()


@pytest.fixture
def mock_dispatch():
    """Mock the Celery dispatch of retry jobs."""
    with patch("ticketing.tasks.process_retry_job.delay") as mock_delay:
        yield mock_delay


@pytest.fixture
def context(db, session_lookup, qr_encoder, mock_dispatch):
    return IngestionContext(
        materializer=TransactionMaterializer(
            session_lookup=session_lookup,
            qr_encoder=qr_encoder,
        ),
        writer=DurableWriter(store=DjangoDocumentStore()),
        queue=TransactionRetryQueue(),
    )


@pytest.fixture
def use_context(context):
    """Make IngestionContext.default() return the test context."""
    with patch.object(IngestionContext, "default", return_value=context):
        yield context
