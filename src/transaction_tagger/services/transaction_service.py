from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, List, Optional

from transaction_tagger.classification import Classifier, tags
from transaction_tagger.domain.models import ClassificationResult, TagChange, Transaction, isoformat, utc_now
from transaction_tagger.learning import LearningCoordinator
from transaction_tagger.logging_setup import get_logger
from transaction_tagger.parsers.factory import LoaderFactory
from transaction_tagger.repositories.base import KeyValueStore, PersistenceError
from transaction_tagger.services.models import FixResult, ImportResult, ReevaluationResult

logger = get_logger(__name__)

TRANSACTIONS_KEY = "transaction_analyzer_csv_data"


class TransactionNotFoundError(LookupError):
    """No transaction with the given id in the working set"""


class TransactionService:
    """
    Owns the working set of transactions and the batch operations on it.

    Classification results are written back onto the Transaction objects in
    place. Manual tag changes are forwarded to the LearningCoordinator.
    """

    def __init__(
        self,
        store: Optional[KeyValueStore] = None,
        classifier: Optional[Classifier] = None,
        coordinator: Optional[LearningCoordinator] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.clock = clock
        self._classifier = classifier
        self._coordinator = coordinator
        self.transactions: List[Transaction] = []

    @property
    def classifier(self) -> Classifier:
        """Lazy-load classifier"""
        if self._classifier is None:
            self._classifier = Classifier(state=self.coordinator.state, clock=self.clock)
        return self._classifier

    @property
    def coordinator(self) -> LearningCoordinator:
        """Lazy-load learning coordinator, sharing the classifier's state when one was injected"""
        if self._coordinator is None:
            from transaction_tagger.domain.learning import LearningState
            state = self._classifier.state if self._classifier is not None else LearningState()
            self._coordinator = LearningCoordinator(state, self.store, clock=self.clock)
        return self._coordinator

    # ------------------------------------------------------------------
    # Working set
    # ------------------------------------------------------------------

    def load_transactions(self) -> bool:
        """Load the working set from the store. Returns False if nothing was loaded."""
        if self.store is None:
            return False
        try:
            raw = self.store.load(TRANSACTIONS_KEY)
        except PersistenceError:
            logger.exception("Error loading transactions")
            return False

        if not isinstance(raw, list):
            return False

        loaded = []
        for item in raw:
            try:
                loaded.append(Transaction.from_dict(item))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("Skipping unreadable stored transaction: %s", e)
        self.transactions = loaded
        logger.info("Loaded %d transactions", len(loaded))
        return True

    def save_transactions(self) -> bool:
        """Persist the working set (best-effort)"""
        if self.store is None:
            return False
        try:
            self.store.persist(TRANSACTIONS_KEY, [txn.to_dict() for txn in self.transactions])
        except PersistenceError:
            logger.exception("Error saving transactions")
            return False
        logger.debug("Saved %d transactions", len(self.transactions))
        return True

    def clear_transactions(self) -> None:
        self.transactions = []
        if self.store is not None:
            try:
                self.store.remove(TRANSACTIONS_KEY)
            except PersistenceError:
                logger.exception("Error clearing transactions")

    def get_transaction(self, transaction_id: str) -> Optional[Transaction]:
        for txn in self.transactions:
            if txn.id == transaction_id:
                return txn
        return None

    def _require_transaction(self, transaction_id: str) -> Transaction:
        txn = self.get_transaction(transaction_id)
        if txn is None:
            raise TransactionNotFoundError(transaction_id)
        return txn

    def add_transactions(self, transactions: List[Transaction], classify: bool = True) -> ImportResult:
        """
        Add records to the working set, skipping ids that are already present.

        Args:
            transactions: Records to add
            classify: Tag the new records before adding them

        Returns:
            An ImportResult.
        """
        known = {txn.id for txn in self.transactions}
        new_transactions, skipped = [], []
        for txn in transactions:
            if txn.id in known:
                skipped.append(txn)
                continue
            known.add(txn.id)
            new_transactions.append(txn)

        if classify:
            self.apply_tags_to_transactions(new_transactions)

        self.transactions.extend(new_transactions)
        self.save_transactions()

        return ImportResult(
            total_parsed=len(transactions),
            new_transactions=len(new_transactions),
            duplicates_skipped=len(skipped),
            imported=new_transactions,
            skipped=skipped,
        )

    def import_file(self, filepath: Path, classify: bool = True) -> ImportResult:
        """
        Parse a record file and add its transactions.

        Raises:
            RecordParseError: If the file cannot be parsed; the working set
                is left untouched
        """
        loader = LoaderFactory.loader_for_file(filepath)
        parsed = loader.parse(filepath)
        result = self.add_transactions(parsed, classify=classify)
        result.filepath = str(filepath)
        return result

    # ------------------------------------------------------------------
    # Classification
    # ------------------------------------------------------------------

    @staticmethod
    def _apply_result(txn: Transaction, result: ClassificationResult) -> None:
        txn.tag = result.tag
        txn.category = result.category or txn.category
        txn.subcategory = result.subcategory or txn.subcategory
        txn.classification_confidence = result.confidence
        txn.classification_reason = result.reason

    def apply_tags_to_transactions(
        self,
        transactions: Optional[List[Transaction]] = None,
    ) -> List[Transaction]:
        """
        Classify every transaction and write the result onto it.

        Args:
            transactions: Records to tag. Defaults to the working set.

        Returns:
            The same list, tagged in place
        """
        if transactions is None:
            transactions = self.transactions

        for txn in transactions:
            result = self.classifier.classify(txn)
            self._apply_result(txn, result)
            if result.tag == tags.OTHER:
                logger.debug("Transaction classified as Other: %r - %s", txn.description, result.reason)

        self.coordinator.save_rules()
        return transactions

    def update_transaction_tag(
        self,
        transaction_id: str,
        new_tag: str,
        reason: str = "Manual update",
    ) -> bool:
        """
        Manually set a transaction's tag and learn from it.

        Returns:
            False if the transaction id is unknown, True otherwise
        """
        try:
            txn = self._require_transaction(transaction_id)
        except TransactionNotFoundError:
            logger.warning("Transaction %s not found", transaction_id)
            return False

        old_tag = txn.tag
        txn.tag = tags.canonical_tag(new_tag)
        txn.classification_confidence = 1.0
        txn.classification_reason = f"Manual override: {reason}"
        txn.override_history.append(TagChange(
            timestamp=isoformat(self.clock()),
            old_tag=old_tag,
            new_tag=txn.tag,
            reason=reason,
        ))

        self.coordinator.learn_from_assignment(txn, txn.tag)
        self.save_transactions()

        logger.info("Updated transaction %s: %s -> %s (%s)", transaction_id, old_tag, txn.tag, reason)
        return True

    def force_reevaluate_all_transactions(self) -> ReevaluationResult:
        """Re-classify the whole working set with the latest rules"""
        fixed = 0
        for txn in self.transactions:
            old_tag = txn.tag or "Untagged"
            result = self.classifier.classify(txn)
            self._apply_result(txn, result)
            if old_tag != result.tag:
                fixed += 1
                logger.info("Fixed: %r (%s -> %s)", txn.description, old_tag, result.tag)

        self.coordinator.save_rules()
        self.save_transactions()

        outcome = ReevaluationResult(
            total=len(self.transactions),
            fixed=fixed,
            unchanged=len(self.transactions) - fixed,
        )
        logger.info("Re-evaluation complete: %s", outcome)
        return outcome

    def fix_all_tag_assignments(self) -> FixResult:
        """
        Re-classify and record every tag change in the transaction's fix history.

        Transactions whose tag is confirmed are left untouched.
        """
        fixed = 0
        trusted = 0
        for txn in self.transactions:
            old_tag = txn.tag or "Untagged"
            result = self.classifier.classify(txn)

            if result.tag == old_tag:
                trusted += 1
                continue

            txn.fix_history.append(TagChange(
                timestamp=isoformat(self.clock()),
                old_tag=old_tag,
                new_tag=result.tag,
                reason=result.reason or "Enhanced validation fix",
            ))
            self._apply_result(txn, result)
            fixed += 1
            logger.info("Fixed: %r (%s -> %s) - %s", txn.description, old_tag, result.tag, result.reason)

        self.coordinator.save_rules()
        self.save_transactions()

        outcome = FixResult(total=len(self.transactions), fixed=fixed, trusted=trusted)
        logger.info("Tag fixing complete: %s", outcome)
        return outcome

    def tag_breakdown(self) -> Dict[str, int]:
        breakdown: Dict[str, int] = {}
        for txn in self.transactions:
            tag = txn.tag or "Untagged"
            breakdown[tag] = breakdown.get(tag, 0) + 1
        return breakdown
