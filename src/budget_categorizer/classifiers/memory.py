from budget_categorizer.domain.fingerprint import fingerprint, raw_merchant
from budget_categorizer.domain.normalization import stem
from budget_categorizer.logger import get_logger
from budget_categorizer.models import CategorySource, ClassificationResult, Transaction
from budget_categorizer.storage.overrides import OverrideStore

from .base import Classifier

logger = get_logger(__name__)


class OverrideClassifier(Classifier):
    """
    Classifies from remembered user corrections.

    The exact fingerprint is tried first; the merchant stem is only consulted
    when no fingerprint entry exists, so a specific correction always beats a
    generalized one.
    """

    def __init__(self, store: OverrideStore) -> None:
        self.store = store

    def classify(self, transaction: Transaction) -> ClassificationResult | None:
        fp = fingerprint(transaction)

        category = self.store.get_by_fingerprint(fp)
        if category is not None:
            return ClassificationResult(
                category=category,
                confidence=1.0,
                source=CategorySource.OVERRIDE,
                fingerprint=fp,
                matched_signals=["override_fingerprint"],
            )

        stem_key = stem(raw_merchant(transaction))
        if stem_key:
            category = self.store.get_by_stem(stem_key)
            if category is not None:
                return ClassificationResult(
                    category=category,
                    confidence=1.0,
                    source=CategorySource.OVERRIDE,
                    fingerprint=fp,
                    matched_signals=["override_stem"],
                )

        return None

    def learn(self, transaction: Transaction, category: str) -> None:
        fp = transaction.category_fingerprint or fingerprint(transaction)
        example = raw_merchant(transaction)
        self.store.upsert_fingerprint(fp, category, example)
        stem_key = stem(example)
        if stem_key:
            self.store.upsert_stem(stem_key, category, example)
        logger.info(
            "[OVERRIDE] Learned '%s' for '%s' (stem: %s)",
            category,
            example[:50],
            stem_key or "-",
        )
