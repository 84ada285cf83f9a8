"""Shared fixtures: engine settings, sessions and a scripted Transaction Store."""

from decimal import Decimal
from pathlib import Path

import pytest

from streamgate.models import (
    ContentMetadata,
    ContentType,
    EngineSettings,
    GatewayStatus,
    PaymentStatusResponse,
    PollingSettings,
    SubmitPaymentResponse,
    TransactionDetails,
)
from streamgate.services.clock import VirtualClock
from streamgate.services.session import Session

CONFIG_PATH = Path(__file__).resolve().parent.parent / "config" / "engine.yaml"

# 2024-01-01T00:00:00Z
START_MILLIS = 1704067200000


class ScriptedStore:
    """In-memory Transaction Store that replays scripted responses.

    ``submissions`` and ``statuses`` hold responses (or exceptions to raise)
    consumed in order; once ``statuses`` runs dry every lookup is PENDING.
    """

    def __init__(self, submissions=None, statuses=None, details_error=None):
        self.submissions = list(submissions or [pending_submission()])
        self.statuses = list(statuses or [])
        self.details_error = details_error
        self.submitted = []
        self.status_calls = 0
        self.details_calls = 0

    async def submit_payment(self, request):
        self.submitted.append(request)
        item = self.submissions.pop(0) if len(self.submissions) > 1 else self.submissions[0]
        if isinstance(item, Exception):
            raise item
        return item

    async def get_payment_status(self, transaction_id):
        self.status_calls += 1
        item = self.statuses.pop(0) if self.statuses else GatewayStatus.PENDING
        if isinstance(item, Exception):
            raise item
        if isinstance(item, GatewayStatus):
            return PaymentStatusResponse(transactionId=transaction_id, status=item)
        return item

    async def get_transaction_details(self, transaction_id):
        self.details_calls += 1
        if self.details_error is not None:
            raise self.details_error
        return TransactionDetails(
            transactionId=transaction_id,
            paymentStatus=GatewayStatus.SUCCESSFUL,
            secureStreamingUrl=f"https://cdn.example.com/stream/{transaction_id}",
        )


def pending_submission(transaction_id="TX-1"):
    return SubmitPaymentResponse(success=True, transactionId=transaction_id, status=GatewayStatus.PENDING)


@pytest.fixture
def settings():
    """Engine settings with zero poll intervals so tests run instantly."""
    return EngineSettings(
        polling=PollingSettings(
            purchase_interval_seconds=0,
            upgrade_interval_seconds=0,
            max_polls=30,
            max_lookup_failures=5,
        )
    )


@pytest.fixture
def clock():
    return VirtualClock(start_millis=START_MILLIS)


@pytest.fixture
def session():
    """Session signed in as user-123."""
    session = Session()
    session.sign_in("user-123")
    yield session
    session.sign_out()


@pytest.fixture
def guest_session():
    return Session()


@pytest.fixture
def movie():
    return ContentMetadata(
        content_id="movie-42",
        title="The Long Rains",
        content_type=ContentType.MOVIE,
        view_price=Decimal("500"),
        download_price=Decimal("1500"),
        currency="RWF",
    )


@pytest.fixture
def series():
    return ContentMetadata(
        content_id="series-7",
        title="Hills of Kigali",
        content_type=ContentType.SERIES,
        view_price=Decimal("1000"),
        currency="RWF",
        total_episodes=12,
    )


@pytest.fixture
def make_store():
    """Factory for ScriptedStore instances."""
    return ScriptedStore
