"""
Learning domain models.

These are the records produced from manual tag corrections and the rules
synthesized from them. Serialized forms keep the camelCase keys of the
export format so snapshots can be exchanged with older exports.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from transaction_tagger.domain.enums import ConditionType, PatternType


@dataclass(frozen=True)
class Pattern:
    """A piece of textual evidence extracted from a description"""
    type: PatternType
    pattern: str
    confidence: float

    @property
    def key(self) -> str:
        return f"{self.type.value}:{self.pattern}"

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type.value, "pattern": self.pattern, "confidence": self.confidence}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Pattern":
        return cls(
            type=PatternType(data["type"]),
            pattern=data["pattern"],
            confidence=float(data["confidence"]),
        )


@dataclass
class Condition:
    """
    One test of a learned rule.

    Pattern conditions carry `pattern_type` and `pattern`; the other kinds
    carry `value`.
    """
    type: ConditionType
    confidence: float
    frequency: float
    pattern_type: Optional[PatternType] = None
    pattern: Optional[str] = None
    value: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "type": self.type.value,
            "confidence": self.confidence,
            "frequency": self.frequency,
        }
        if self.type == ConditionType.PATTERN:
            data["patternType"] = self.pattern_type.value if self.pattern_type else None
            data["pattern"] = self.pattern
        else:
            data["value"] = self.value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Condition":
        pattern_type = data.get("patternType")
        return cls(
            type=ConditionType(data["type"]),
            confidence=float(data["confidence"]),
            frequency=float(data.get("frequency", 0.0)),
            pattern_type=PatternType(pattern_type) if pattern_type else None,
            pattern=data.get("pattern"),
            value=data.get("value"),
        )


@dataclass
class LearnedRule:
    """Rule synthesized from manual assignments. At most one exists per tag."""
    id: str
    tag: str
    conditions: List[Condition]
    confidence: float
    assignments_count: int
    created_at: str
    last_used: Optional[str] = None
    usage_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "tag": self.tag,
            "conditions": [c.to_dict() for c in self.conditions],
            "confidence": self.confidence,
            "assignmentsCount": self.assignments_count,
            "createdAt": self.created_at,
            "lastUsed": self.last_used,
            "usageCount": self.usage_count,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LearnedRule":
        return cls(
            id=data["id"],
            tag=data["tag"],
            conditions=[Condition.from_dict(c) for c in data.get("conditions", [])],
            confidence=float(data["confidence"]),
            assignments_count=int(data.get("assignmentsCount", 0)),
            created_at=data["createdAt"],
            last_used=data.get("lastUsed"),
            usage_count=int(data.get("usageCount", 0)),
        )


@dataclass(frozen=True)
class ManualAssignment:
    """A recorded user correction of a transaction's tag. Never mutated."""
    id: str
    timestamp: str
    transaction_id: str
    description: str
    category: Optional[str]
    subcategory: Optional[str]
    counterparty: Optional[str]
    amount: int
    assigned_tag: str
    patterns: List[Pattern] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp,
            "transactionId": self.transaction_id,
            "description": self.description,
            "category": self.category,
            "subcategory": self.subcategory,
            "counterparty": self.counterparty,
            "amount": self.amount,
            "assignedTag": self.assigned_tag,
            "patterns": [p.to_dict() for p in self.patterns],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ManualAssignment":
        return cls(
            id=str(data["id"]),
            timestamp=data["timestamp"],
            transaction_id=str(data["transactionId"]),
            description=data.get("description") or "",
            category=data.get("category"),
            subcategory=data.get("subcategory"),
            counterparty=data.get("counterparty"),
            amount=int(data.get("amount") or 0),
            assigned_tag=data["assignedTag"],
            patterns=[Pattern.from_dict(p) for p in data.get("patterns", [])],
        )


@dataclass
class LearningState:
    """
    Snapshot of everything the learning system owns.

    Passed explicitly to the classifier and the coordinator so tests can
    build deterministic fixtures. `version` increases on every mutation.
    """
    rules: List[LearnedRule] = field(default_factory=list)
    assignments: List[ManualAssignment] = field(default_factory=list)
    statistics: Dict[str, Any] = field(default_factory=dict)
    version: int = 0

    def rule_for(self, tag: str) -> Optional[LearnedRule]:
        for rule in self.rules:
            if rule.tag == tag:
                return rule
        return None

    def replace_rule(self, rule: LearnedRule) -> bool:
        """Replace the rule for `rule.tag` or append it. Returns True if replaced."""
        for i, existing in enumerate(self.rules):
            if existing.tag == rule.tag:
                self.rules[i] = rule
                self.touch()
                return True
        self.rules.append(rule)
        self.touch()
        return False

    def touch(self) -> None:
        self.version += 1

    def clear(self) -> None:
        self.rules = []
        self.assignments = []
        self.statistics = {}
        self.touch()
