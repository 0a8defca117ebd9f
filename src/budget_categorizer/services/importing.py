from collections.abc import Iterable
from typing import Any

from budget_categorizer.logger import get_logger
from budget_categorizer.models import ImportResult, ItemFailure, StatementRow
from budget_categorizer.services.transactions import TransactionService
from budget_categorizer.storage.jsonfile import StoreUnavailableError

logger = get_logger(__name__)


class ImportPipeline:
    """
    Feeds parsed statement rows into storage without duplicates.

    Duplicate detection relies only on each row's stable id, so re-importing
    a statement, or an overlapping export, inserts nothing new.
    """

    def __init__(self, transactions: TransactionService) -> None:
        self.transactions = transactions

    def preview(self, rows: Iterable[StatementRow]) -> list[dict[str, Any]]:
        """Raw rows flagged as duplicate or new. Rows are not classified here."""
        existing = self.transactions.existing_ids()
        seen: set[str] = set()
        preview = []
        for row in rows:
            payload = row.model_dump(mode="json")
            payload["duplicate"] = row.id in existing or row.id in seen
            seen.add(row.id)
            preview.append(payload)
        return preview

    def commit(self, rows: Iterable[StatementRow]) -> ImportResult:
        existing = self.transactions.existing_ids()
        result = ImportResult()

        for row in rows:
            if row.id in existing:
                result.duplicates.append(row.id)
                continue
            try:
                self.transactions.create(row.to_transaction())
            except StoreUnavailableError:
                raise
            except Exception as exc:
                logger.warning("[IMPORT] Failed to insert row %s: %s", row.id, exc)
                result.failed.append(ItemFailure(id=row.id, error=str(exc)))
                continue
            existing.add(row.id)
            result.inserted.append(row.id)

        logger.info(
            "[IMPORT] Inserted: %d, duplicates: %d, failed: %d",
            len(result.inserted),
            len(result.duplicates),
            len(result.failed),
        )
        return result
