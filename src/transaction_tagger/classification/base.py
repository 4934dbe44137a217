from abc import ABC, abstractmethod
from typing import Optional

from transaction_tagger.domain.models import ClassificationResult, Transaction
from transaction_tagger.logging_setup import get_logger

logger = get_logger(__name__)


class ClassificationStrategy(ABC):
    """
    Abstract base class for every step of the classification cascade.

    Implements Chain of Responsibility:
    - Each strategy tries to classify a transaction
    - If it can't, it passes to the next strategy
    - Strategies are tried in priority order

    Usage:
        Create chain: special -> learned -> mapping -> existing tag -> static
        ```
        special = SpecialRuleStrategy(...)
        learned = LearnedRuleStrategy(...)
        static = StaticRuleStrategy(...)

        special.set_next(learned).set_next(static)

        result = special.classify(transaction)
        ```
    """

    name = "strategy"

    def __init__(self):
        self._next: Optional['ClassificationStrategy'] = None

    @property
    def next_strategy(self) -> Optional['ClassificationStrategy']:
        return self._next

    def set_next(self, strategy: 'ClassificationStrategy') -> 'ClassificationStrategy':
        """
        Set the next strategy in the chain.

        Args:
            strategy: The strategy to try if this one doesn't apply

        Returns:
            The strategy that was set (for chaining)

        Example:
            `s1.set_next(s2).set_next(s3)`
        """
        self._next = strategy
        return strategy

    @abstractmethod
    def try_classify(self, transaction: Transaction) -> Optional[ClassificationResult]:
        """
        Classify the transaction if this strategy applies to it.

        Args:
            transaction: Transaction to classify

        Returns:
            A result, or None to fall through to the next strategy
        """
        pass

    def classify(self, transaction: Transaction) -> Optional[ClassificationResult]:
        """
        Walk the chain from this strategy until one returns a result.

        A strategy that raises is logged and skipped, so one broken step
        never takes the whole cascade down.

        Args:
            transaction: Transaction to classify

        Returns:
            The first result produced, or None if no strategy applied
        """
        current: Optional[ClassificationStrategy] = self
        while current is not None:
            try:
                result = current.try_classify(transaction)
            except Exception:
                logger.exception("%r failed on transaction %s; skipping", current, transaction.id)
                result = None
            if result is not None:
                return result
            current = current._next
        return None

    def __repr__(self):
        return f"{self.__class__.__name__}()"
