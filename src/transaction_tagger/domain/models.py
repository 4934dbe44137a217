from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional
from transaction_tagger.domain.enums import TransactionType


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def isoformat(moment: datetime) -> str:
    """ISO8601 with millisecond precision and a trailing Z"""
    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass
class TagChange:
    """One entry of a transaction's tag audit trail"""
    timestamp: str
    old_tag: Optional[str]
    new_tag: str
    reason: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "oldTag": self.old_tag,
            "newTag": self.new_tag,
            "reason": self.reason,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TagChange":
        return cls(
            timestamp=data["timestamp"],
            old_tag=data.get("oldTag"),
            new_tag=data["newTag"],
            reason=data.get("reason", ""),
        )


@dataclass
class Transaction:
    """
    Canonical transaction record.

    Amounts are signed integers in minor currency units (cents). When
    `debit_credit` is set it is trusted over the sign of `amount`.
    """
    id: str
    description: str
    amount: int
    date: Optional[date] = None
    debit_credit: Optional[TransactionType] = None
    counterparty: Optional[str] = None
    category: Optional[str] = None
    subcategory: Optional[str] = None
    tag: Optional[str] = None
    classification_confidence: Optional[float] = None
    classification_reason: Optional[str] = None
    override_history: List[TagChange] = field(default_factory=list)
    fix_history: List[TagChange] = field(default_factory=list)

    def __post_init__(self):
        if isinstance(self.amount, bool) or not isinstance(self.amount, int):
            raise TypeError(
                f"Transaction amount must be an integer in minor units, got {self.amount!r}"
            )

    @property
    def signed_amount(self) -> int:
        """Return amount with sign for direction checks"""
        if self.debit_credit == TransactionType.DEBIT:
            return -abs(self.amount)
        if self.debit_credit == TransactionType.CREDIT:
            return abs(self.amount)
        return self.amount

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "description": self.description,
            "amount": self.amount,
            "date": self.date.isoformat() if self.date else None,
            "debitCredit": self.debit_credit.value if self.debit_credit else None,
            "counterparty": self.counterparty,
            "category": self.category,
            "subcategory": self.subcategory,
            "tag": self.tag,
            "classificationConfidence": self.classification_confidence,
            "classificationReason": self.classification_reason,
            "overrideHistory": [change.to_dict() for change in self.override_history],
            "fixHistory": [change.to_dict() for change in self.fix_history],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Transaction":
        raw_date = data.get("date")
        return cls(
            id=str(data["id"]),
            description=data.get("description") or "",
            amount=int(data["amount"]),
            date=date.fromisoformat(raw_date) if raw_date else None,
            debit_credit=TransactionType.parse(data.get("debitCredit")),
            counterparty=data.get("counterparty"),
            category=data.get("category"),
            subcategory=data.get("subcategory"),
            tag=data.get("tag"),
            classification_confidence=data.get("classificationConfidence"),
            classification_reason=data.get("classificationReason"),
            override_history=[TagChange.from_dict(c) for c in data.get("overrideHistory", [])],
            fix_history=[TagChange.from_dict(c) for c in data.get("fixHistory", [])],
        )

    def __repr__(self):
        return f"Transaction({self.id}, {self.description[:30]}, {self.signed_amount:+d}, tag={self.tag})"


@dataclass(frozen=True)
class ClassificationResult:
    """
    Outcome of classifying one transaction.

    `category`/`subcategory` are None when the deciding strategy does not
    assign them; callers keep the record's existing values in that case.
    """
    tag: str
    confidence: float
    reason: str
    category: Optional[str] = None
    subcategory: Optional[str] = None
    source: str = "static"
