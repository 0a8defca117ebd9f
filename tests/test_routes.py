from unittest.mock import MagicMock

import pytest
from fastapi import HTTPException

from budget_categorizer.api.routes.categorize import categorize_transaction
from budget_categorizer.api.routes.reclassify import reclassify_apply
from budget_categorizer.api.routes.transactions import (
    create_transaction,
    get_transaction,
    record_category,
)
from budget_categorizer.api.schemas import ApplyRequest, CategorizeRequest, CategoryRequest
from budget_categorizer.models import CategorySource, ClassificationResult, Transaction
from budget_categorizer.services.reclassification import ReclassificationInProgressError
from budget_categorizer.storage.transactions import DuplicateTransactionError


@pytest.mark.anyio
async def test_categorize_route_delegates_to_service() -> None:
    """The classify call runs off the event loop and its result is returned as-is."""
    service = MagicMock()
    expected = ClassificationResult(
        category="PARKING",
        confidence=0.95,
        source=CategorySource.RULE,
        fingerprint="fp",
        matched_rule_id="easypark_parking",
    )
    service.classify.return_value = expected

    req = CategorizeRequest(transaction=Transaction(merchant="EASY PARK"))
    result = await categorize_transaction(req, service)

    assert result == expected
    service.classify.assert_called_once_with(req.transaction)


@pytest.mark.anyio
async def test_get_transaction_missing_is_404() -> None:
    transactions = MagicMock()
    transactions.get.return_value = None

    with pytest.raises(HTTPException) as exc_info:
        await get_transaction("nope", transactions)
    assert exc_info.value.status_code == 404


@pytest.mark.anyio
async def test_record_category_route() -> None:
    transactions = MagicMock()
    transactions.set_category.return_value = Transaction(
        id="t1",
        merchant="NETFLIX",
        category="ENTERTAINMENT",
        category_source=CategorySource.OVERRIDE,
        category_confidence=1.0,
    )

    result = await record_category("t1", CategoryRequest(category="ENTERTAINMENT"), transactions)

    assert result.category == "ENTERTAINMENT"
    transactions.set_category.assert_called_once_with("t1", "ENTERTAINMENT")


@pytest.mark.anyio
async def test_reclassify_apply_rejects_concurrent_run() -> None:
    manager = MagicMock()
    manager.apply.side_effect = ReclassificationInProgressError("Reclassification in progress")

    with pytest.raises(HTTPException) as exc_info:
        await reclassify_apply(ApplyRequest(ids=["t1"]), manager)
    assert exc_info.value.status_code == 409
    manager.apply.assert_called_once_with(["t1"])


@pytest.mark.anyio
async def test_create_transaction_duplicate_is_409() -> None:
    transactions = MagicMock()
    transactions.create.side_effect = DuplicateTransactionError("Transaction t1 already exists")

    with pytest.raises(HTTPException) as exc_info:
        await create_transaction(Transaction(id="t1", merchant="NETFLIX"), transactions)
    assert exc_info.value.status_code == 409
    transactions.get.assert_not_called()
