import os
from collections.abc import Iterable

from budget_categorizer.classifiers.base import Classifier
from budget_categorizer.classifiers.memory import OverrideClassifier
from budget_categorizer.classifiers.rules import RuleClassifier
from budget_categorizer.core import settings
from budget_categorizer.domain.categories import FALLBACK_CATEGORY, coerce_category, is_fallback
from budget_categorizer.domain.fingerprint import fingerprint
from budget_categorizer.logger import get_logger
from budget_categorizer.models import CategorySource, ClassificationResult, Transaction
from budget_categorizer.storage.categories import CustomCategoryRegistry
from budget_categorizer.storage.overrides import JsonOverrideStore, OverrideStore

logger = get_logger(__name__)


class CategorizerService:
    def __init__(
        self,
        overrides: OverrideStore | None = None,
        custom_categories: CustomCategoryRegistry | None = None,
        rules: RuleClassifier | None = None,
        fallback_confidence: float | None = None,
        data_dir: str = ".",
    ) -> None:
        self.overrides = overrides or JsonOverrideStore(
            data_path=os.path.join(data_dir, settings.OVERRIDES_FILENAME)
        )
        self.custom_categories = custom_categories or CustomCategoryRegistry(
            data_path=os.path.join(data_dir, settings.CUSTOM_CATEGORIES_FILENAME)
        )
        self.fallback_confidence = (
            settings.FALLBACK_CONFIDENCE if fallback_confidence is None else fallback_confidence
        )

        # 1. Remembered user corrections (highest priority)
        self.memory = OverrideClassifier(self.overrides)
        # 2. Static rule table
        self.rules = rules or RuleClassifier()

        self.classifiers: list[Classifier] = [self.memory, self.rules]

    def coerce(self, category: object, known: Iterable[str] | None = None) -> str:
        """Coerce to a built-in or registered custom category, else UNCATEGORIZED."""
        custom = self.custom_categories.list() if known is None else known
        return coerce_category(category, custom)

    def classify(self, transaction: Transaction) -> ClassificationResult:
        """Override, then rules, then the fallback category. Never short-circuits."""
        for classifier in self.classifiers:
            classifier_name = classifier.__class__.__name__
            result = classifier.classify(transaction)
            if result:
                logger.debug(
                    "[CLASSIFY] %s matched '%s' -> '%s' (confidence: %.2f)",
                    classifier_name,
                    transaction.merchant[:50],
                    result.category,
                    result.confidence,
                )
                if result.source == CategorySource.OVERRIDE:
                    result.category = self.coerce(result.category)
                return result

        logger.debug("[CLASSIFY] No classifier matched '%s'; using fallback.", transaction.merchant[:50])
        return ClassificationResult(
            category=FALLBACK_CATEGORY,
            confidence=self.fallback_confidence,
            source=CategorySource.FALLBACK,
            fingerprint=fingerprint(transaction),
        )

    def apply_classification(self, transaction: Transaction) -> Transaction:
        """
        Annotate ``transaction`` in place with its classification.

        An explicit non-fallback category is kept as-is (source IMPORT) so
        data imported with known-good categories is never overridden. IMPORT
        carries no confidence; 1.0 is reserved for OVERRIDE.
        """
        explicit = self.coerce(transaction.category) if transaction.category else None
        if explicit and not is_fallback(explicit):
            transaction.category = explicit
            transaction.category_source = CategorySource.IMPORT
            transaction.category_confidence = None
            transaction.category_fingerprint = fingerprint(transaction)
            transaction.matched_rule_id = None
            return transaction

        result = self.classify(transaction)
        transaction.category = result.category
        transaction.category_source = result.source
        transaction.category_confidence = result.confidence
        transaction.category_fingerprint = result.fingerprint
        transaction.matched_rule_id = result.matched_rule_id
        return transaction

    def record_user_category(self, transaction: Transaction, chosen_category: object) -> Transaction:
        """
        Remember a user's category choice and annotate ``transaction`` in place.

        Upserts both the fingerprint and the stem override. The caller is
        responsible for persisting the transaction.
        """
        category = self.coerce(chosen_category)
        if not transaction.category_fingerprint:
            transaction.category_fingerprint = fingerprint(transaction)
        self.memory.learn(transaction, category)

        transaction.category = category
        transaction.category_source = CategorySource.OVERRIDE
        transaction.category_confidence = 1.0
        transaction.matched_rule_id = None
        return transaction

    def backfill_stems(self) -> int:
        return self.overrides.backfill_stems()
