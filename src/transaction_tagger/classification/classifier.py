from datetime import datetime
from typing import Callable, List, Optional

from transaction_tagger.classification import tags
from transaction_tagger.classification.base import ClassificationStrategy
from transaction_tagger.classification.catalog import RuleCatalog
from transaction_tagger.classification.detectors import TagDetectorSet
from transaction_tagger.classification.strategies import (
    ExistingTagStrategy,
    LearnedRuleStrategy,
    SpecialRuleStrategy,
    StaticRuleStrategy,
    TagMappingStrategy,
)
from transaction_tagger.classification.tag_mapping import TagMappingStore
from transaction_tagger.domain.learning import LearningState
from transaction_tagger.domain.models import ClassificationResult, Transaction, utc_now
from transaction_tagger.logging_setup import get_logger

logger = get_logger(__name__)


class Classifier:
    """
    Main engine for tagging transactions.

    Builds a chain of strategies in priority order:
    1. Special rules (exact reference formats)
    2. Learned rules (validated against the tag detectors)
    3. User tag mapping (category/subcategory -> tag)
    4. Existing tag, if it still validates
    5. Static category rules + tag detectors (always answers)

    Usage:
        # Production - packaged rule catalog, empty learning state
        classifier = Classifier()

        # Testing - inject catalog, mapping and learning snapshot
        classifier = Classifier(
            catalog=RuleCatalog.from_config(test_config),
            mapping=TagMappingStore(defaults={"mapping": {}}),
            state=LearningState(),
        )

        result = classifier.classify(transaction)
    """

    def __init__(
        self,
        catalog: Optional[RuleCatalog] = None,
        mapping: Optional[TagMappingStore] = None,
        state: Optional[LearningState] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        """
        Initialize the classifier.

        Args:
            catalog: Static rules. If None, loads from ConfigLoader.
            mapping: Tag mapping store. If None, built-in defaults only.
            state: Learning snapshot shared with the LearningCoordinator.
            clock: Time source for learned-rule usage stamps
        """
        self.catalog = catalog if catalog is not None else RuleCatalog.load()
        self.mapping = mapping if mapping is not None else TagMappingStore()
        self.state = state if state is not None else LearningState()
        self.detectors = TagDetectorSet(self.catalog)
        self.clock = clock
        self._chain: Optional[ClassificationStrategy] = None

        self._build_chain()

    def _build_chain(self) -> None:
        strategies: List[ClassificationStrategy] = [
            SpecialRuleStrategy(self.catalog.special_rules),
            LearnedRuleStrategy(self.state, self.detectors, clock=self.clock),
            TagMappingStrategy(self.mapping, self.detectors),
            ExistingTagStrategy(self.detectors),
            StaticRuleStrategy(self.catalog.category_rules, self.detectors),
        ]

        self._chain = strategies[0]
        for current, following in zip(strategies, strategies[1:]):
            current.set_next(following)

    def classify(self, transaction: Transaction) -> ClassificationResult:
        """
        Classify a single transaction. Never raises.

        Args:
            transaction: Transaction to classify

        Returns:
            ClassificationResult; tag is 'Other' when nothing applies

        Example:
            >>> classifier = Classifier()
            >>> classifier.classify(Transaction(id="1", description="MONTHLY SALARY", amount=250000)).tag
            'Income'
        """
        try:
            result = self._chain.classify(transaction)
        except Exception:
            logger.exception("Classification failed for transaction %s", getattr(transaction, "id", None))
            result = None

        if result is None or not result.tag:
            return self._fallback("Classification indeterminate - classified as Other")

        if result.tag == tags.INVESTMENTS and transaction.signed_amount >= 0:
            logger.warning(
                "Refusing Investments tag from %s for non-negative amount on %r",
                result.source, transaction.description,
            )
            return self._fallback("Investments require an outgoing amount - classified as Other")

        return result

    def classify_many(self, transactions: List[Transaction]) -> List[ClassificationResult]:
        """Classify a list of transactions, preserving order"""
        return [self.classify(txn) for txn in transactions]

    def validate_tag(self, transaction: Transaction, tag: str) -> bool:
        """Check a tag against the static detectors for this transaction"""
        return self.detectors.validate_tag(transaction, tag)

    @staticmethod
    def _fallback(reason: str) -> ClassificationResult:
        return ClassificationResult(
            tag=tags.OTHER,
            category=tags.DEFAULT_CATEGORY,
            subcategory=tags.DEFAULT_SUBCATEGORY,
            confidence=tags.DEFAULT_CONFIDENCE,
            reason=reason,
            source="fallback",
        )

    def get_chain_info(self) -> str:
        """
        Describe the active strategy chain, one line per step.

        Useful for debugging which rules are active.
        """
        lines = []
        current = self._chain
        priority = 1
        while current:
            lines.append(f"{priority}. {current}")
            current = current.next_strategy
            priority += 1
        return "\n".join(lines)

    def __repr__(self) -> str:
        count = 0
        current = self._chain
        while current:
            count += 1
            current = current.next_strategy
        return f"Classifier({count} strategies in chain)"
