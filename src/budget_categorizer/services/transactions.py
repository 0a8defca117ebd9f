import threading
import uuid
from typing import Any

from budget_categorizer.domain.fingerprint import fingerprint
from budget_categorizer.logger import get_logger
from budget_categorizer.manager import CategorizerService
from budget_categorizer.models import Transaction
from budget_categorizer.storage.transactions import TransactionStore

logger = get_logger(__name__)

_DERIVED_FIELDS = (
    "category_source",
    "category_confidence",
    "category_fingerprint",
    "matched_rule_id",
)
_CLASSIFICATION_FIELDS = ("category", *_DERIVED_FIELDS)
# Model fields with a non-null default; a null in a patch means "leave as is".
_REQUIRED_FIELDS = {"merchant", "amount", "date", "type", "payment_method", "status"}
_FINGERPRINT_FIELDS = {
    "canonical_merchant",
    "merchant",
    "payee",
    "counterparty",
    "description",
    "mcc",
    "country_prefix",
    "type",
}


def new_transaction_id() -> str:
    return f"tx-{uuid.uuid4().hex}"


class TransactionService:
    """
    The storage write path.

    New transactions are classified exactly once on insert. A category edit
    records the user's choice in the override store before the transaction
    itself is written, under the same lock.
    """

    def __init__(self, store: TransactionStore, categorizer: CategorizerService) -> None:
        self.store = store
        self.categorizer = categorizer
        self._lock = threading.RLock()

    def list(self) -> list[Transaction]:
        return self.store.list()

    def get(self, transaction_id: str) -> Transaction | None:
        return self.store.get(transaction_id)

    def existing_ids(self) -> set[str]:
        return self.store.existing_ids()

    def create(self, transaction: Transaction) -> Transaction:
        tx = transaction.model_copy(deep=True)
        # Derived on insert, never taken from the caller.
        for field in _DERIVED_FIELDS:
            setattr(tx, field, None)
        if not tx.id:
            tx.id = new_transaction_id()
        if tx.category:
            tx.category = self.categorizer.coerce(tx.category)
        self.categorizer.apply_classification(tx)
        with self._lock:
            created = self.store.insert(tx)
        logger.info(
            "[CLASSIFY] Created %s '%s' -> '%s' (%s)",
            created.id,
            created.merchant[:50],
            created.category,
            created.category_source.value if created.category_source else "-",
        )
        return created

    def update(self, transaction_id: str, changes: dict[str, Any]) -> Transaction | None:
        """
        Patch a transaction. A category that differs from the stored one is
        treated as a user correction and remembered.
        """
        with self._lock:
            existing = self.store.get(transaction_id)
            if existing is None:
                return None

            patch = {
                key: value
                for key, value in changes.items()
                if key != "id" and not (value is None and key in _REQUIRED_FIELDS)
            }
            category_requested = "category" in patch and patch["category"] is not None
            requested = patch.pop("category", None)
            candidate = self._merge(existing, patch)

            if category_requested:
                category = self.categorizer.coerce(requested)
                if category != existing.category:
                    self.categorizer.record_user_category(candidate, category)
                    patch.update(self._classification_patch(candidate))
                else:
                    patch["category"] = category
            if _FINGERPRINT_FIELDS.intersection(patch) and "category_fingerprint" not in patch:
                patch["category_fingerprint"] = candidate.category_fingerprint

            return self.store.update(transaction_id, patch)

    def set_category(self, transaction_id: str, category: object) -> Transaction | None:
        """Record a user-chosen category even when it equals the stored one."""
        with self._lock:
            existing = self.store.get(transaction_id)
            if existing is None:
                return None
            self.categorizer.record_user_category(existing, category)
            return self.store.update(transaction_id, self._classification_patch(existing))

    def delete(self, transaction_id: str) -> bool:
        with self._lock:
            return self.store.delete(transaction_id)

    def delete_all(self) -> int:
        with self._lock:
            return self.store.delete_all()

    @staticmethod
    def _merge(existing: Transaction, patch: dict[str, Any]) -> Transaction:
        merged = existing.model_dump()
        merged.update(patch)
        candidate = Transaction.model_validate(merged)
        if _FINGERPRINT_FIELDS.intersection(patch):
            candidate.category_fingerprint = fingerprint(candidate)
        return candidate

    @staticmethod
    def _classification_patch(transaction: Transaction) -> dict[str, Any]:
        return {field: getattr(transaction, field) for field in _CLASSIFICATION_FIELDS}
