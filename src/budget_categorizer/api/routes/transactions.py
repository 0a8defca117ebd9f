import asyncio
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Response

from budget_categorizer.api.dependencies import get_transactions
from budget_categorizer.api.schemas import CategoryRequest, TransactionUpdate
from budget_categorizer.logger import get_logger
from budget_categorizer.models import Transaction
from budget_categorizer.services.transactions import TransactionService
from budget_categorizer.storage.transactions import DuplicateTransactionError

logger = get_logger(__name__)

router = APIRouter(prefix="/api/transactions")


@router.get("", response_model=list[Transaction])
async def list_transactions(
    transactions: Annotated[TransactionService, Depends(get_transactions)],
) -> list[Transaction]:
    return await asyncio.to_thread(transactions.list)


@router.post("", response_model=Transaction, status_code=201)
async def create_transaction(
    transaction: Transaction,
    transactions: Annotated[TransactionService, Depends(get_transactions)],
) -> Transaction:
    try:
        return await asyncio.to_thread(transactions.create, transaction)
    except DuplicateTransactionError as exc:
        raise HTTPException(status_code=409, detail="Transaction already exists") from exc


@router.delete("")
async def delete_all_transactions(
    transactions: Annotated[TransactionService, Depends(get_transactions)],
) -> dict[str, int]:
    deleted = await asyncio.to_thread(transactions.delete_all)
    return {"deleted": deleted}


@router.get("/{transaction_id}", response_model=Transaction)
async def get_transaction(
    transaction_id: str,
    transactions: Annotated[TransactionService, Depends(get_transactions)],
) -> Transaction:
    transaction = await asyncio.to_thread(transactions.get, transaction_id)
    if transaction is None:
        raise HTTPException(status_code=404, detail="Not found")
    return transaction


@router.put("/{transaction_id}", response_model=Transaction)
async def update_transaction(
    transaction_id: str,
    req: TransactionUpdate,
    transactions: Annotated[TransactionService, Depends(get_transactions)],
) -> Transaction:
    changes = req.model_dump(exclude_unset=True)
    updated = await asyncio.to_thread(transactions.update, transaction_id, changes)
    if updated is None:
        raise HTTPException(status_code=404, detail="Not found")
    return updated


@router.post("/{transaction_id}/category", response_model=Transaction)
async def record_category(
    transaction_id: str,
    req: CategoryRequest,
    transactions: Annotated[TransactionService, Depends(get_transactions)],
) -> Transaction:
    updated = await asyncio.to_thread(transactions.set_category, transaction_id, req.category)
    if updated is None:
        raise HTTPException(status_code=404, detail="Not found")
    logger.info(
        "[CATEGORIZE] Transaction ID: %s -> Category: '%s' (Source: manual)",
        transaction_id,
        updated.category,
    )
    return updated


@router.delete("/{transaction_id}", status_code=204)
async def delete_transaction(
    transaction_id: str,
    transactions: Annotated[TransactionService, Depends(get_transactions)],
) -> Response:
    if not await asyncio.to_thread(transactions.delete, transaction_id):
        raise HTTPException(status_code=404, detail="Not found")
    return Response(status_code=204)
