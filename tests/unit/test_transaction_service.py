import pytest
from pathlib import Path
from typing import List

from transaction_tagger.classification import Classifier
from transaction_tagger.domain.models import Transaction
from transaction_tagger.learning import LearningCoordinator
from transaction_tagger.parsers.base import RecordParseError
from transaction_tagger.parsers.csv_records import CSVRecordLoader
from transaction_tagger.parsers.factory import LoaderFactory
from transaction_tagger.repositories.base import KeyValueStore, PersistenceError
from transaction_tagger.repositories.memory_store import InMemoryKeyValueStore
from transaction_tagger.services.transaction_service import TRANSACTIONS_KEY, TransactionService


@pytest.fixture
def service(memory_store, classifier: Classifier, coordinator: LearningCoordinator, clock) -> TransactionService:
    """Service over an in-memory store"""
    return TransactionService(memory_store, classifier, coordinator, clock=clock)

@pytest.fixture
def mixed_transactions(make_transaction) -> List[Transaction]:
    """One valid tag, one unset tag and one tag that no longer validates"""
    return [
        make_transaction("MONTHLY SALARY PAYSLIP", 250000, id="salary", tag="Income"),
        make_transaction("RANDOM SHOP XYZ", -1500, id="shop", tag="Other"),
        make_transaction("ETF PURCHASE REFUND", 500, id="refund", tag="Investments"),
    ]

@pytest.fixture
def csv_loader_registered():
    LoaderFactory.reset()
    LoaderFactory.register("csv", CSVRecordLoader)
    yield
    LoaderFactory.reset()


@pytest.mark.unit
class TestApplyTags:

    def test_results_written_back(self, service: TransactionService, make_transaction):
        # Arrange
        transactions = [
            make_transaction("STOCK PURCHASE BROKERAGE LTD", -5000),
            make_transaction("BUNQ SAVINGS TRANSFER", -20000),
        ]

        # Act
        tagged = service.apply_tags_to_transactions(transactions)

        # Assert
        assert tagged is transactions
        assert [t.tag for t in transactions] == ["Investments", "Savings"]
        assert transactions[0].category == "Shopping"
        assert transactions[0].classification_confidence == pytest.approx(0.7)
        assert transactions[1].classification_reason == "Savings indicators detected"

    def test_defaults_to_working_set(self, service: TransactionService, make_transaction):
        service.transactions = [make_transaction("MONTHLY SALARY PAYSLIP", 250000)]

        service.apply_tags_to_transactions()

        assert service.transactions[0].tag == "Income"

    def test_existing_category_kept_when_result_has_none(self, service: TransactionService, make_transaction):
        txn = make_transaction("MONTHLY SALARY", 100000, category="Income", subcategory="Salary", tag="Income")

        service.apply_tags_to_transactions([txn])

        assert txn.category == "Income"
        assert txn.subcategory == "Salary"


@pytest.mark.unit
class TestUpdateTransactionTag:

    def test_unknown_id_returns_false(self, service: TransactionService):
        assert service.update_transaction_tag("missing", "Savings") is False

    def test_manual_tag_recorded_and_learned(self, service: TransactionService, make_transaction, mocker):
        # Arrange
        service.transactions = [make_transaction("TIKKIE DINNER", -1500, id="t1", tag="Other")]
        learn = mocker.spy(service.coordinator, "learn_from_assignment")

        # Act
        ok = service.update_transaction_tag("t1", "transfers", reason="Split bill")

        # Assert
        txn = service.get_transaction("t1")
        assert ok is True
        assert txn.tag == "Transfers"
        assert txn.classification_confidence == 1.0
        assert len(txn.override_history) == 1
        change = txn.override_history[0]
        assert (change.old_tag, change.new_tag, change.reason) == ("Other", "Transfers", "Split bill")
        learn.assert_called_once_with(txn, "Transfers")

    def test_default_reason(self, service: TransactionService, make_transaction):
        service.transactions = [make_transaction("TIKKIE DINNER", -1500, id="t1")]

        service.update_transaction_tag("t1", "Other")

        assert service.get_transaction("t1").override_history[0].reason == "Manual update"


@pytest.mark.unit
class TestBatchOperations:

    def test_force_reevaluate_counts(self, service: TransactionService, mixed_transactions):
        service.transactions = mixed_transactions

        result = service.force_reevaluate_all_transactions()

        assert (result.total, result.fixed, result.unchanged) == (3, 1, 2)
        assert service.get_transaction("refund").tag == "Other"

    def test_fix_all_records_history(self, service: TransactionService, mixed_transactions):
        # Arrange
        service.transactions = mixed_transactions

        # Act
        result = service.fix_all_tag_assignments()

        # Assert
        assert (result.total, result.fixed, result.trusted) == (3, 1, 2)
        refund = service.get_transaction("refund")
        assert refund.tag == "Other"
        assert [(c.old_tag, c.new_tag) for c in refund.fix_history] == [("Investments", "Other")]
        assert service.get_transaction("salary").fix_history == []

    def test_tag_breakdown(self, service: TransactionService, mixed_transactions):
        service.transactions = mixed_transactions

        assert service.tag_breakdown() == {"Income": 1, "Other": 1, "Investments": 1}


@pytest.mark.unit
class TestWorkingSetPersistence:

    def test_save_and_load(self, service: TransactionService, memory_store: InMemoryKeyValueStore,
                           classifier, coordinator, mixed_transactions):
        service.transactions = mixed_transactions
        service.save_transactions()

        reloaded = TransactionService(memory_store, classifier, coordinator)
        assert reloaded.load_transactions() is True
        assert [t.id for t in reloaded.transactions] == ["salary", "shop", "refund"]
        assert reloaded.get_transaction("refund").tag == "Investments"

    def test_load_with_nothing_stored(self, service: TransactionService):
        assert service.load_transactions() is False
        assert service.transactions == []

    def test_save_failure_is_not_fatal(self, classifier, coordinator, mixed_transactions, mocker):
        store = mocker.Mock(spec=KeyValueStore)
        store.persist.side_effect = PersistenceError("disk full")
        service = TransactionService(store, classifier, coordinator)
        service.transactions = mixed_transactions

        assert service.save_transactions() is False

    def test_clear(self, service: TransactionService, memory_store: InMemoryKeyValueStore, mixed_transactions):
        service.transactions = mixed_transactions
        service.save_transactions()

        service.clear_transactions()

        assert service.transactions == []
        assert memory_store.load(TRANSACTIONS_KEY) is None

    def test_without_store(self, classifier, make_transaction):
        service = TransactionService(classifier=classifier)
        service.transactions = [make_transaction("BUNQ TOPUP", -1000, id="b1")]

        assert service.save_transactions() is False
        assert service.update_transaction_tag("b1", "Savings") is True


@pytest.mark.unit
class TestImport:

    def test_import_file_tags_and_skips_duplicates(self, service: TransactionService,
                                                   sample_csv_file: Path, csv_loader_registered):
        # Act
        first = service.import_file(sample_csv_file)
        second = service.import_file(sample_csv_file)

        # Assert
        assert first.new_transactions == 4
        assert first.filepath == str(sample_csv_file)
        assert first.tag_breakdown == {"Income": 1, "Savings": 1, "Investments": 1, "Other": 1}
        assert second.new_transactions == 0
        assert second.duplicates_skipped == 4
        assert len(service.transactions) == 4

    def test_import_without_tagging(self, service: TransactionService, sample_csv_file: Path, csv_loader_registered):
        result = service.import_file(sample_csv_file, classify=False)

        assert all(t.tag is None for t in result.imported)

    def test_unsupported_file_leaves_working_set_untouched(self, service: TransactionService,
                                                           tmp_path: Path, csv_loader_registered):
        path = tmp_path / "statement.pdf"
        path.write_bytes(b"%PDF-1.4")

        with pytest.raises(RecordParseError):
            service.import_file(path)

        assert service.transactions == []
