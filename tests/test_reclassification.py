import threading
from datetime import date
from decimal import Decimal

import pytest

from budget_categorizer.manager import CategorizerService
from budget_categorizer.models import CategorySource, Transaction
from budget_categorizer.services.reclassification import (
    ReclassificationInProgressError,
    ReclassificationManager,
)
from budget_categorizer.services.transactions import TransactionService
from budget_categorizer.storage.transactions import JsonTransactionStore


class FlakyTransactionService(TransactionService):
    def __init__(self, *args, failing_ids=(), **kwargs):
        super().__init__(*args, **kwargs)
        self.failing_ids = set(failing_ids)

    def set_category(self, transaction_id, category):
        if transaction_id in self.failing_ids:
            raise RuntimeError("disk full")
        return super().set_category(transaction_id, category)


@pytest.fixture
def categorizer(tmp_path):
    return CategorizerService(data_dir=str(tmp_path))


def build(tmp_path, categorizer, failing_ids=()):
    store = JsonTransactionStore(data_path=str(tmp_path / "transactions.json"))
    transactions = FlakyTransactionService(store=store, categorizer=categorizer, failing_ids=failing_ids)
    for tx_id, merchant in (("t1", "NETFLIX"), ("t2", "EASY PARK"), ("t3", "ZXQ Vendor")):
        transactions.create(Transaction(
            id=tx_id,
            merchant=merchant,
            amount=Decimal("-10"),
            date=date(2024, 1, 15),
            category="OTHER",
        ))
    return transactions, ReclassificationManager(transactions, categorizer, workers=2)


def test_dry_run_reports_changes_without_writing(tmp_path, categorizer):
    transactions, manager = build(tmp_path, categorizer)
    before = [tx.model_dump() for tx in transactions.list()]

    changes = manager.dry_run()
    suggestions = {change.id: change.suggested_category for change in changes}
    assert suggestions == {"t1": "SUBSCRIPTIONS", "t2": "PARKING", "t3": "UNCATEGORIZED"}
    assert all(change.current_category == "OTHER" for change in changes)

    assert [tx.model_dump() for tx in transactions.list()] == before
    assert categorizer.overrides.list_overrides() == []


def test_dry_run_is_repeatable(tmp_path, categorizer):
    _, manager = build(tmp_path, categorizer)
    first = [change.model_dump() for change in manager.dry_run()]
    second = [change.model_dump() for change in manager.dry_run()]
    assert first == second
    assert manager.get_status()["stage"] == "dry_run_complete"


def test_apply_selected_ids(tmp_path, categorizer):
    transactions, manager = build(tmp_path, categorizer)
    result = manager.apply(["t1", "t1", "missing"])

    assert result.applied == ["t1"]
    assert result.skipped == ["missing"]
    assert result.failed == []

    updated = transactions.get("t1")
    assert updated.category == "SUBSCRIPTIONS"
    assert updated.category_source == CategorySource.OVERRIDE
    assert transactions.get("t2").category == "OTHER"


def test_apply_partial_failure(tmp_path, categorizer):
    transactions, manager = build(tmp_path, categorizer, failing_ids={"t2"})
    result = manager.apply(["t1", "t2", "t3"])

    assert result.applied == ["t1", "t3"]
    assert [failure.id for failure in result.failed] == ["t2"]
    assert "disk full" in result.failed[0].error
    assert transactions.get("t2").category == "OTHER"
    assert transactions.get("t3").category == "UNCATEGORIZED"

    status = manager.get_status()
    assert status["stage"] == "apply_complete"
    assert status["active"] is False
    assert status["failed"] == 1


def test_apply_skips_unchanged(tmp_path, categorizer):
    transactions, manager = build(tmp_path, categorizer)
    manager.apply(["t1"])
    result = manager.apply(["t1"])
    assert result.applied == []
    assert result.skipped == ["t1"]


def test_concurrent_apply_is_rejected(tmp_path, categorizer):
    transactions, manager = build(tmp_path, categorizer)
    entered = threading.Event()
    release = threading.Event()
    original = transactions.set_category

    def slow_set_category(transaction_id, category):
        entered.set()
        release.wait(timeout=5)
        return original(transaction_id, category)

    transactions.set_category = slow_set_category
    results = []
    worker = threading.Thread(target=lambda: results.append(manager.apply(["t1"])))
    worker.start()
    try:
        assert entered.wait(timeout=5)
        assert manager.get_status()["active"] is True
        with pytest.raises(ReclassificationInProgressError):
            manager.apply(["t2"])
    finally:
        release.set()
        worker.join(timeout=5)

    assert results[0].applied == ["t1"]
    assert transactions.get("t2").category == "OTHER"
    assert manager.get_status()["active"] is False
    assert manager.apply(["t2"]).applied == ["t2"]
