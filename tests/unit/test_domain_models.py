import pytest
from datetime import date, datetime, timezone

from transaction_tagger.domain.enums import TransactionType
from transaction_tagger.domain.learning import LearnedRule, LearningState
from transaction_tagger.domain.models import TagChange, Transaction, isoformat


@pytest.mark.unit
class TestTransaction:

    @pytest.mark.parametrize("amount", [12.5, "100", None, True])
    def test_amount_must_be_integer(self, amount):
        with pytest.raises(TypeError):
            Transaction(id="1", description="X", amount=amount)

    @pytest.mark.parametrize("amount,direction,expected", [
        (500, None, 500),
        (-500, None, -500),
        (500, TransactionType.DEBIT, -500),
        (-500, TransactionType.CREDIT, 500),
    ])
    def test_signed_amount(self, amount, direction, expected):
        txn = Transaction(id="1", description="X", amount=amount, debit_credit=direction)

        assert txn.signed_amount == expected

    def test_serialized_form(self):
        # Arrange
        txn = Transaction(
            id="1",
            description="BUNQ TOPUP",
            amount=-1000,
            date=date(2025, 1, 3),
            debit_credit=TransactionType.DEBIT,
            tag="Savings",
            override_history=[TagChange("2025-01-04T00:00:00.000Z", "Other", "Savings", "Manual update")],
        )

        # Act
        data = txn.to_dict()
        restored = Transaction.from_dict(data)

        # Assert
        assert data["debitCredit"] == "Debit"
        assert data["date"] == "2025-01-03"
        assert data["overrideHistory"][0] == {
            "timestamp": "2025-01-04T00:00:00.000Z",
            "oldTag": "Other",
            "newTag": "Savings",
            "reason": "Manual update",
        }
        assert restored == txn

    def test_repr(self):
        txn = Transaction(id="7", description="COFFEE", amount=350, debit_credit=TransactionType.DEBIT)

        assert repr(txn) == "Transaction(7, COFFEE, -350, tag=None)"


@pytest.mark.unit
class TestHelpers:

    def test_isoformat_uses_z_suffix(self):
        moment = datetime(2025, 1, 15, 12, 30, 0, 123456, tzinfo=timezone.utc)

        assert isoformat(moment) == "2025-01-15T12:30:00.123Z"

    def test_transaction_type_parse_is_lenient(self):
        assert TransactionType.parse("debit") is TransactionType.DEBIT
        assert TransactionType.parse(" CREDIT ") is TransactionType.CREDIT
        assert TransactionType.parse("sideways") is None
        assert TransactionType.parse(None) is None

    def test_learning_state_replace_rule(self):
        state = LearningState()
        first = LearnedRule("r1", "Savings", [], 0.7, 2, "2025-01-01T00:00:00.000Z")
        second = LearnedRule("r2", "Savings", [], 0.8, 3, "2025-01-02T00:00:00.000Z")

        assert state.replace_rule(first) is False
        assert state.replace_rule(second) is True
        assert state.rules == [second]
        assert state.version == 2
