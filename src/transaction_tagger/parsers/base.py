from abc import ABC, abstractmethod
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from transaction_tagger.domain.enums import TransactionType
from transaction_tagger.domain.models import Transaction


class RecordParseError(ValueError):
    """Raised when a whole file cannot be read as transaction records."""
    pass


class RecordLoader(ABC):
    """
    Abstract base class for canonical record loaders.

    Loaders read files whose fields already follow the canonical record
    layout (id, description, amount in minor units, date, debitCredit,
    counterparty, category, subcategory, tag). A malformed file raises
    RecordParseError; a malformed row is skipped.
    """

    extensions: List[str] = []

    @abstractmethod
    def parse(self, filepath: Path | str) -> List[Transaction]:
        """
        Parse a file and return its transactions.

        Args:
            filepath: Path to the file

        Returns:
            List of Transaction objects

        Raises:
            FileNotFoundError: If file doesn't exist
            RecordParseError: If the file format is invalid
        """
        pass

    def validate_file(self, filepath: Path | str) -> Path:
        """
        Check the file exists and has a supported extension.

        Returns:
            The file as a Path

        Raises:
            FileNotFoundError: If file doesn't exist
            RecordParseError: If the extension is not supported
        """
        path = Path(filepath)
        if not path.exists():
            raise FileNotFoundError(f"File does not exist on path {path}")
        if self.extensions and path.suffix.lower() not in self.extensions:
            raise RecordParseError(
                f"{self.__class__.__name__} expects {', '.join(self.extensions)}, got {path.suffix}"
            )
        return path


FIELD_ALIASES = {
    "debit_credit": "debitCredit",
    "debitcredit": "debitCredit",
}


def parse_amount(value: Any) -> int:
    """
    Coerce a raw amount into integer minor units.

    Raises:
        ValueError: If the value has a fractional part or isn't numeric
    """
    if isinstance(value, bool):
        raise ValueError(f"Invalid amount: {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if not value.is_integer():
            raise ValueError(f"Amount must be in minor units (integer), got {value!r}")
        return int(value)
    text = str(value).strip().replace(" ", "")
    if not text:
        raise ValueError("Missing amount")
    return int(text)


def parse_date(value: Any) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value).strip()[:10])


def _clean(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def record_to_transaction(record: Dict[str, Any], fallback_id: str) -> Transaction:
    """
    Build a Transaction from a canonical record mapping.

    Raises:
        ValueError: If amount or date cannot be parsed
    """
    normalized = {FIELD_ALIASES.get(key.strip(), key.strip()): value for key, value in record.items()}
    return Transaction(
        id=_clean(normalized.get("id")) or fallback_id,
        description=_clean(normalized.get("description")) or "",
        amount=parse_amount(normalized.get("amount")),
        date=parse_date(normalized.get("date")),
        debit_credit=TransactionType.parse(_clean(normalized.get("debitCredit"))),
        counterparty=_clean(normalized.get("counterparty")),
        category=_clean(normalized.get("category")),
        subcategory=_clean(normalized.get("subcategory")),
        tag=_clean(normalized.get("tag")),
    )
