import json
import pytest
from datetime import date
from pathlib import Path

from transaction_tagger.domain.enums import TransactionType
from transaction_tagger.parsers.base import RecordParseError, parse_amount
from transaction_tagger.parsers.csv_records import CSVRecordLoader
from transaction_tagger.parsers.json_records import JSONRecordLoader


@pytest.fixture
def csv_loader() -> CSVRecordLoader:
    return CSVRecordLoader()

@pytest.fixture
def json_loader() -> JSONRecordLoader:
    return JSONRecordLoader()


@pytest.mark.unit
class TestParseAmount:

    @pytest.mark.parametrize("raw,expected", [
        (1500, 1500),
        ("-20000", -20000),
        (" 42 ", 42),
        (12.0, 12),
    ])
    def test_integer_minor_units(self, raw, expected):
        assert parse_amount(raw) == expected

    @pytest.mark.parametrize("raw", ["12.50", 12.5, "", "abc", True])
    def test_rejects_non_integers(self, raw):
        with pytest.raises(ValueError):
            parse_amount(raw)


@pytest.mark.unit
class TestCSVRecordLoader:

    def test_parses_canonical_columns(self, csv_loader: CSVRecordLoader, sample_csv_file: Path):
        # Act
        transactions = csv_loader.parse(sample_csv_file)

        # Assert
        assert len(transactions) == 4
        salary = transactions[0]
        assert salary.id == "1"
        assert salary.amount == 250000
        assert salary.date == date(2025, 1, 2)
        assert salary.debit_credit == TransactionType.CREDIT
        assert salary.counterparty == "ACME BV"
        assert salary.category is None
        assert salary.tag is None

    def test_malformed_rows_are_skipped(self, csv_loader: CSVRecordLoader, tmp_path: Path):
        path = tmp_path / "bad_rows.csv"
        path.write_text(
            "id,description,amount\n"
            "1,GOOD ROW,-100\n"
            "2,FRACTIONAL,-12.50\n"
            "3,,-100\n"
            "4,NOT A NUMBER,abc\n"
        )

        transactions = csv_loader.parse(path)

        assert [t.id for t in transactions] == ["1"]

    def test_missing_id_gets_fallback(self, csv_loader: CSVRecordLoader, tmp_path: Path):
        path = tmp_path / "no_ids.csv"
        path.write_text("description,amount\nCOFFEE,-350\n")

        transactions = csv_loader.parse(path)

        assert transactions[0].id == "no_ids_0"

    def test_missing_required_column(self, csv_loader: CSVRecordLoader, tmp_path: Path):
        path = tmp_path / "no_amount.csv"
        path.write_text("id,description\n1,COFFEE\n")

        with pytest.raises(RecordParseError, match="Missing required columns"):
            csv_loader.parse(path)

    def test_empty_file(self, csv_loader: CSVRecordLoader, tmp_path: Path):
        path = tmp_path / "empty.csv"
        path.write_text("")

        with pytest.raises(RecordParseError):
            csv_loader.parse(path)

    def test_wrong_extension(self, csv_loader: CSVRecordLoader, tmp_path: Path):
        path = tmp_path / "records.txt"
        path.write_text("description,amount\nCOFFEE,-350\n")

        with pytest.raises(RecordParseError):
            csv_loader.parse(path)

    def test_missing_file(self, csv_loader: CSVRecordLoader, tmp_path: Path):
        with pytest.raises(FileNotFoundError):
            csv_loader.parse(tmp_path / "nope.csv")


@pytest.mark.unit
class TestJSONRecordLoader:

    def test_parses_array(self, json_loader: JSONRecordLoader, tmp_path: Path):
        # Arrange
        path = tmp_path / "export.json"
        path.write_text(json.dumps([
            {"id": 7, "description": "BUNQ TOPUP", "amount": -1000, "debit_credit": "debit", "tag": "Savings"},
            {"description": "SALARY", "amount": 250000.0},
        ]))

        # Act
        transactions = json_loader.parse(path)

        # Assert
        assert [t.id for t in transactions] == ["7", "export_1"]
        assert transactions[0].debit_credit == TransactionType.DEBIT
        assert transactions[0].tag == "Savings"
        assert transactions[1].amount == 250000

    def test_bad_entries_skipped(self, json_loader: JSONRecordLoader, tmp_path: Path):
        path = tmp_path / "mixed.json"
        path.write_text(json.dumps([
            "not a record",
            {"id": "a", "description": "FRACTIONAL", "amount": 12.5},
            {"id": "b", "description": "NO AMOUNT"},
            {"id": "c", "description": "FINE", "amount": -1},
        ]))

        transactions = json_loader.parse(path)

        assert [t.id for t in transactions] == ["c"]

    def test_object_instead_of_array(self, json_loader: JSONRecordLoader, tmp_path: Path):
        path = tmp_path / "object.json"
        path.write_text(json.dumps({"transactions": []}))

        with pytest.raises(RecordParseError, match="array"):
            json_loader.parse(path)

    def test_invalid_json(self, json_loader: JSONRecordLoader, tmp_path: Path):
        path = tmp_path / "broken.json"
        path.write_text("[{")

        with pytest.raises(RecordParseError):
            json_loader.parse(path)
