from abc import ABC, abstractmethod

from budget_categorizer.models import ClassificationResult, Transaction


class Classifier(ABC):
    @abstractmethod
    def classify(self, transaction: Transaction) -> ClassificationResult | None:
        """Attempt to categorize the transaction."""
        pass

    def learn(self, transaction: Transaction, category: str) -> None:
        """Learn from a user-chosen category. Static classifiers ignore this."""
        return None
