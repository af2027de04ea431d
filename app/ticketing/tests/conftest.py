"""
Pytest fixtures for ticketing tests.

Provides a materializer wired to in-memory fakes, a writer on the real
document store, and a retry queue whose broker dispatch is mocked.

Usage:
    def test_commit(db, materializer, writer, session_lookup):
        session_lookup.add(CheckoutSessionDataFactory(payment_intent="pi_1"))
        record = materializer.materialize(event)
        writer.commit(record)
"""

from unittest.mock import patch

import pytest

from ticketing.context import IngestionContext
from ticketing.queue import TransactionRetryQueue
from ticketing.services import DurableWriter, TransactionMaterializer
from ticketing.store import DjangoDocumentStore
from ticketing.tests.factories import FakeQrEncoder, FakeSessionLookup

DEEP_LINK_BASE_URL = "https://tickets.example.com/t"
WEBHOOK_SECRET = "whsec_test_secret"


@pytest.fixture(autouse=True)
def stripe_settings(settings):
    """Configure Stripe and ticketing settings for every test."""
    settings.STRIPE_SECRET_KEY = "sk_test_123"
    settings.STRIPE_WEBHOOK_SECRET = WEBHOOK_SECRET
    settings.STRIPE_WEBHOOK_TOLERANCE_SECONDS = 300
    settings.TICKETING_DEEP_LINK_BASE_URL = DEEP_LINK_BASE_URL
    settings.TICKETING_TERMS_VERSION = "v1.0"
    settings.RETRY_QUEUE_MAX_ATTEMPTS = 3
    return settings


# =============================================================================
# Collaborators
# =============================================================================


@pytest.fixture
def qr_encoder():
    return FakeQrEncoder()


@pytest.fixture
def session_lookup():
    return FakeSessionLookup()


@pytest.fixture
def materializer(session_lookup, qr_encoder):
    return TransactionMaterializer(session_lookup=session_lookup, qr_encoder=qr_encoder)


@pytest.fixture
def store(db):
    return DjangoDocumentStore()


@pytest.fixture
def writer(store):
    return DurableWriter(store=store, deep_link_base_url=DEEP_LINK_BASE_URL)


@pytest.fixture
def mock_dispatch():
    """Mock the Celery dispatch of retry jobs."""
    with patch("ticketing.tasks.process_retry_job.delay") as mock_delay:
        yield mock_delay


@pytest.fixture
def queue(db, mock_dispatch):
    return TransactionRetryQueue()


@pytest.fixture
def context(materializer, writer, queue):
    return IngestionContext(materializer=materializer, writer=writer, queue=queue)


@pytest.fixture
def use_context(context):
    """Make IngestionContext.default() return the test context."""
    with patch.object(IngestionContext, "default", return_value=context):
        yield context
