import threading
from collections.abc import Iterable
from concurrent.futures import ThreadPoolExecutor
from typing import Any

from budget_categorizer.logger import get_logger
from budget_categorizer.manager import CategorizerService
from budget_categorizer.models import (
    ItemFailure,
    ReclassifyApplyResult,
    ReclassifyChange,
    Transaction,
)
from budget_categorizer.services.transactions import TransactionService

logger = get_logger(__name__)


class ReclassificationInProgressError(RuntimeError):
    pass


class ReclassificationManager:
    """
    Two-step bulk reclassification.

    ``dry_run`` reports what the current rules and overrides would change
    without writing anything; ``apply`` writes only the ids an operator
    selected, through the same path as a manual category edit.
    """

    def __init__(
        self,
        transactions: TransactionService,
        categorizer: CategorizerService,
        workers: int = 4,
    ) -> None:
        self.transactions = transactions
        self.categorizer = categorizer
        self.workers = max(1, workers)
        self.active = False
        self._apply_lock = threading.Lock()
        self.status: dict[str, Any] = {"stage": "idle", "active": False}

    def get_status(self) -> dict[str, Any]:
        status = dict(self.status)
        status["active"] = self.active
        return status

    def _set_status(self, stage: str, **fields: Any) -> None:
        self.status.clear()
        self.status.update({"stage": stage, **fields, "active": self.active})

    def dry_run(self) -> list[ReclassifyChange]:
        transactions = self.transactions.list()
        logger.info("[RECLASSIFY] Dry run over %d transaction(s)...", len(transactions))

        # Each transaction is classified independently; map() keeps input order.
        with ThreadPoolExecutor(max_workers=self.workers) as pool:
            results = list(pool.map(self.categorizer.classify, transactions))

        changes = [
            ReclassifyChange(
                id=tx.id or "",
                merchant=tx.merchant,
                date=tx.date,
                current_category=tx.category,
                suggested_category=result.category,
                source=result.source,
                confidence=result.confidence,
                matched_rule_id=result.matched_rule_id,
            )
            for tx, result in zip(transactions, results)
            if result.category != tx.category
        ]

        logger.info(
            "[RECLASSIFY] Dry run complete: %d of %d transaction(s) would change.",
            len(changes),
            len(transactions),
        )
        self._set_status("dry_run_complete", checked=len(transactions), changes=len(changes))
        return changes

    def _suggest(self, transaction: Transaction) -> str:
        return self.categorizer.classify(transaction).category

    def apply(self, transaction_ids: Iterable[str]) -> ReclassifyApplyResult:
        """
        Apply current suggestions for ``transaction_ids``, one at a time.

        Items are processed in order so an override learned from an earlier
        item is visible to later items sharing its stem. A failing item is
        reported and does not stop the rest. Raises
        ReclassificationInProgressError if another apply is running.
        """
        selected = list(dict.fromkeys(transaction_ids))
        result = ReclassifyApplyResult()
        if not self._apply_lock.acquire(blocking=False):
            raise ReclassificationInProgressError("Reclassification in progress")

        try:
            self.active = True
            self._set_status("applying", total=len(selected), applied=0, failed=0)
            logger.info("[RECLASSIFY] Applying %d selected change(s)...", len(selected))
            for transaction_id in selected:
                try:
                    transaction = self.transactions.get(transaction_id)
                    if transaction is None:
                        result.skipped.append(transaction_id)
                        continue
                    suggested = self._suggest(transaction)
                    if suggested == transaction.category:
                        result.skipped.append(transaction_id)
                        continue
                    if self.transactions.set_category(transaction_id, suggested) is None:
                        result.skipped.append(transaction_id)
                        continue
                    result.applied.append(transaction_id)
                except Exception as exc:
                    logger.warning("[RECLASSIFY] Failed to update %s: %s", transaction_id, exc)
                    result.failed.append(ItemFailure(id=transaction_id, error=str(exc)))
                self.status.update(applied=len(result.applied), failed=len(result.failed))
        finally:
            self.active = False
            self._apply_lock.release()

        logger.info(
            "[RECLASSIFY] Applied: %d, skipped: %d, failed: %d",
            len(result.applied),
            len(result.skipped),
            len(result.failed),
        )
        self._set_status(
            "apply_complete",
            applied=len(result.applied),
            skipped=len(result.skipped),
            failed=len(result.failed),
        )
        return result
