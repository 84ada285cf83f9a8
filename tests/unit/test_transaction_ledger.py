"""Tests for TransactionLedger and the Transaction model's status rules."""

from decimal import Decimal
from threading import Thread

import pytest

from streamgate.models import (
    AccessKind,
    FailureKind,
    GatewayStatus,
    LocalStatus,
    PurchaseRequest,
    Transaction,
)
from streamgate.repositories.transaction_ledger import TransactionLedger, TransactionNotFoundError


def make_transaction(transaction_id="TX-1", user_id="user-123", content_id="movie-42"):
    request = PurchaseRequest(
        content_id=content_id,
        user_id=user_id,
        access_kind=AccessKind.WATCH,
        amount=Decimal("500"),
        payer_phone="0788123456",
        idempotency_key=f"key-{transaction_id}",
    )
    return Transaction(transaction_id=transaction_id, request=request, created_at_millis=1000)


@pytest.fixture
def ledger():
    """Create a fresh TransactionLedger instance for testing."""
    ledger = TransactionLedger()
    yield ledger
    ledger.clear()


class TestLedgerStorage:
    """Test add and lookup operations."""

    def test_add_and_get(self, ledger):
        tx = make_transaction()
        ledger.add(tx)
        assert ledger.get_by_id("TX-1") is tx
        assert ledger.count() == 1

    def test_duplicate_id_rejected(self, ledger):
        ledger.add(make_transaction())
        with pytest.raises(ValueError, match="already exists"):
            ledger.add(make_transaction())

    def test_get_missing_raises(self, ledger):
        with pytest.raises(TransactionNotFoundError):
            ledger.get_by_id("TX-404")

    def test_find_missing_returns_none(self, ledger):
        assert ledger.find_by_id("TX-404") is None

    def test_get_by_user(self, ledger):
        ledger.add(make_transaction("TX-1"))
        ledger.add(make_transaction("TX-2", content_id="movie-43"))
        ledger.add(make_transaction("TX-3", user_id="user-999"))
        assert {t.transaction_id for t in ledger.get_by_user("user-123")} == {"TX-1", "TX-2"}

    def test_get_for_content(self, ledger):
        ledger.add(make_transaction("TX-1"))
        ledger.add(make_transaction("TX-2", content_id="movie-43"))
        assert [t.transaction_id for t in ledger.get_for("user-123", "movie-42")] == ["TX-1"]

    def test_get_successful_for(self, ledger):
        pending = make_transaction("TX-1")
        settled = make_transaction("TX-2")
        settled.gateway_status = GatewayStatus.SUCCESSFUL
        ledger.add(pending)
        ledger.add(settled)
        assert [t.transaction_id for t in ledger.get_successful_for("user-123", "movie-42")] == ["TX-2"]

    def test_concurrent_adds(self, ledger):
        threads = [Thread(target=ledger.add, args=(make_transaction(f"TX-{i}"),)) for i in range(20)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        assert ledger.count() == 20


class TestTransactionStatus:
    """Test local status and poll bookkeeping on Transaction."""

    def test_succeed_sets_settlement_time(self):
        tx = make_transaction()
        tx.set_local_status(LocalStatus.SUCCEEDED, at_millis=5000)
        assert tx.is_terminal is True
        assert tx.settled_at_millis == 5000

    def test_failure_records_reason(self):
        tx = make_transaction()
        tx.set_local_status(LocalStatus.FAILED, 5000, reason="Declined", failure_kind=FailureKind.GATEWAY_DECLINED)
        assert tx.failure_kind == FailureKind.GATEWAY_DECLINED
        assert tx.failure_reason == "Declined"

    def test_status_never_regresses(self):
        tx = make_transaction()
        tx.set_local_status(LocalStatus.SUCCEEDED, 5000)
        with pytest.raises(ValueError, match="already SUCCEEDED"):
            tx.set_local_status(LocalStatus.FAILED, 6000)

    def test_same_status_is_noop(self):
        tx = make_transaction()
        tx.set_local_status(LocalStatus.SUCCEEDED, 5000)
        tx.set_local_status(LocalStatus.SUCCEEDED, 6000)
        assert tx.settled_at_millis == 5000

    def test_record_poll_counts_and_resets_failures(self):
        tx = make_transaction()
        tx.record_lookup_failure()
        tx.record_lookup_failure()
        tx.record_poll(GatewayStatus.PENDING, max_polls=30)
        assert tx.poll_attempts == 1
        assert tx.lookup_failures == 0

    def test_record_poll_bounded(self):
        tx = make_transaction()
        for _ in range(3):
            tx.record_poll(GatewayStatus.PENDING, max_polls=3)
        with pytest.raises(ValueError, match="poll budget"):
            tx.record_poll(GatewayStatus.PENDING, max_polls=3)
        assert tx.poll_attempts == 3
