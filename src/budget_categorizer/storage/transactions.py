from __future__ import annotations

import copy
from abc import ABC, abstractmethod
from typing import Any

from budget_categorizer.logger import get_logger
from budget_categorizer.models import Transaction
from budget_categorizer.storage.jsonfile import JsonFileStore

logger = get_logger(__name__)


class DuplicateTransactionError(ValueError):
    pass


class TransactionStore(ABC):
    @abstractmethod
    def list(self) -> list[Transaction]:
        """All transactions, newest date first."""
        pass

    @abstractmethod
    def get(self, transaction_id: str) -> Transaction | None:
        pass

    @abstractmethod
    def insert(self, transaction: Transaction) -> Transaction:
        pass

    @abstractmethod
    def update(self, transaction_id: str, changes: dict[str, Any]) -> Transaction | None:
        """Apply ``changes`` to one record atomically; None when it does not exist."""
        pass

    @abstractmethod
    def delete(self, transaction_id: str) -> bool:
        pass

    @abstractmethod
    def delete_all(self) -> int:
        pass

    def existing_ids(self) -> set[str]:
        return {tx.id for tx in self.list() if tx.id}


class JsonTransactionStore(TransactionStore):
    def __init__(self, data_path: str = "transactions.json") -> None:
        self._file = JsonFileStore(data_path, {"transactions": {}})
        self._data: dict[str, dict[str, Any]] | None = None

    @property
    def data_path(self) -> str:
        return self._file.data_path

    def load(self) -> dict[str, dict[str, Any]]:
        with self._file.locked():
            raw = self._file.read()
            self._data = raw.get("transactions", {})
            return self._data

    def _records(self) -> dict[str, dict[str, Any]]:
        if self._data is None:
            return self.load()
        return self._data

    def _commit(self, records: dict[str, dict[str, Any]]) -> None:
        self._file.write({"transactions": records})
        self._data = records

    def list(self) -> list[Transaction]:
        with self._file.locked():
            transactions = [
                Transaction.model_validate(record)
                for record in reversed(list(self._records().values()))
            ]
        transactions.sort(key=lambda tx: (tx.date, tx.time or ""), reverse=True)
        return transactions

    def get(self, transaction_id: str) -> Transaction | None:
        with self._file.locked():
            record = self._records().get(transaction_id)
        return Transaction.model_validate(record) if record else None

    def existing_ids(self) -> set[str]:
        with self._file.locked():
            return set(self._records().keys())

    def insert(self, transaction: Transaction) -> Transaction:
        if not transaction.id:
            raise ValueError("Transaction id is required for insert")
        with self._file.locked():
            records = dict(self._records())
            if transaction.id in records:
                raise DuplicateTransactionError(f"Transaction {transaction.id} already exists")
            records[transaction.id] = transaction.model_dump(mode="json")
            self._commit(records)
        logger.debug("[STORE] Inserted transaction %s", transaction.id)
        return transaction

    def update(self, transaction_id: str, changes: dict[str, Any]) -> Transaction | None:
        with self._file.locked():
            records = self._records()
            existing = records.get(transaction_id)
            if existing is None:
                return None
            merged = copy.deepcopy(existing)
            merged.update({key: value for key, value in changes.items() if key != "id"})
            updated = Transaction.model_validate(merged)
            new_records = dict(records)
            new_records[transaction_id] = updated.model_dump(mode="json")
            self._commit(new_records)
        return updated

    def delete(self, transaction_id: str) -> bool:
        with self._file.locked():
            records = dict(self._records())
            if records.pop(transaction_id, None) is None:
                return False
            self._commit(records)
        return True

    def delete_all(self) -> int:
        with self._file.locked():
            count = len(self._records())
            self._commit({})
        logger.info("[STORE] Deleted %d transaction(s).", count)
        return count
