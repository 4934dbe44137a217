import pytest
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable

from transaction_tagger.classification import Classifier, RuleCatalog, TagDetectorSet, TagMappingStore
from transaction_tagger.domain.learning import LearningState
from transaction_tagger.domain.models import Transaction
from transaction_tagger.learning import LearningCoordinator
from transaction_tagger.repositories.memory_store import InMemoryKeyValueStore


class FakeClock:
    """Deterministic clock; every call moves one second forward"""

    def __init__(self, start: datetime = datetime(2025, 1, 15, 12, 0, tzinfo=timezone.utc)):
        self.current = start

    def __call__(self) -> datetime:
        now = self.current
        self.current = self.current + timedelta(seconds=1)
        return now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()

@pytest.fixture
def catalog() -> RuleCatalog:
    """The packaged rule catalog"""
    return RuleCatalog.load()

@pytest.fixture
def detectors(catalog: RuleCatalog) -> TagDetectorSet:
    return TagDetectorSet(catalog)

@pytest.fixture
def memory_store() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()

@pytest.fixture
def empty_mapping() -> TagMappingStore:
    """Tag mapping without any built-in entries"""
    return TagMappingStore(defaults={"mapping": {}})

@pytest.fixture
def learning_state() -> LearningState:
    return LearningState()

@pytest.fixture
def classifier(catalog, empty_mapping, learning_state, clock) -> Classifier:
    return Classifier(catalog=catalog, mapping=empty_mapping, state=learning_state, clock=clock)

@pytest.fixture
def coordinator(learning_state, memory_store, clock) -> LearningCoordinator:
    return LearningCoordinator(learning_state, memory_store, clock=clock)

@pytest.fixture
def make_transaction() -> Callable[..., Transaction]:
    """Build transactions with sensible defaults"""
    counter = {"next": 1}

    def _make(description: str, amount: int, **kwargs) -> Transaction:
        txn_id = kwargs.pop("id", None) or f"txn-{counter['next']}"
        counter["next"] += 1
        return Transaction(id=txn_id, description=description, amount=amount, **kwargs)

    return _make

@pytest.fixture
def sample_csv_file(tmp_path: Path) -> Path:
    """A small canonical CSV export"""
    path = tmp_path / "transactions.csv"
    path.write_text(
        "id,date,description,amount,debitCredit,counterparty,category,subcategory,tag\n"
        "1,2025-01-02,MONTHLY SALARY PAYSLIP,250000,Credit,ACME BV,,,\n"
        "2,2025-01-03,BUNQ SAVINGS TRANSFER,-20000,Debit,,,,\n"
        "3,2025-01-04,STOCK PURCHASE BROKERAGE LTD,-5000,Debit,,,,\n"
        "4,2025-01-05,RANDOM SHOP XYZ,-1500,Debit,,,,\n"
    )
    return path
