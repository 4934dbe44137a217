"""
Static rule catalog.

Everything here is loaded once from config (`rules.json`) and never mutated
while classifying. Patterns are compiled case-insensitively up front.
"""
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from transaction_tagger.config.settings import ConfigLoader


def _compile_all(patterns: List[str]) -> List[re.Pattern]:
    return [re.compile(pattern, re.IGNORECASE) for pattern in patterns]


def _lower_all(values: List[str]) -> List[str]:
    return [value.lower() for value in values]


@dataclass(frozen=True)
class CategoryRule:
    """Description pattern -> category/subcategory with a fixed confidence"""
    pattern: re.Pattern
    category: str
    subcategory: str
    confidence: float

    def __post_init__(self):
        if not 0 < self.confidence <= 1:
            raise ValueError(f"Confidence must be in (0, 1], got {self.confidence}")

    @classmethod
    def from_config(cls, data: Dict[str, Any]) -> "CategoryRule":
        return cls(
            pattern=re.compile(data["pattern"], re.IGNORECASE),
            category=data["category"],
            subcategory=data["subcategory"],
            confidence=float(data["confidence"]),
        )


@dataclass(frozen=True)
class SpecialRule:
    """Deterministic description match that bypasses every other step"""
    pattern: re.Pattern
    tag: str
    reason: str
    category: Optional[str] = None
    subcategory: Optional[str] = None
    confidence: float = 1.0

    @classmethod
    def from_config(cls, data: Dict[str, Any]) -> "SpecialRule":
        return cls(
            pattern=re.compile(data["pattern"], re.IGNORECASE),
            tag=data["tag"],
            reason=data.get("reason", f"Special rule: {data['tag']}"),
            category=data.get("category"),
            subcategory=data.get("subcategory"),
        )


@dataclass(frozen=True)
class TagDetectorConfig:
    """Keyword/pattern tables for one tag detector"""
    tag: str
    keywords: List[str]
    account_patterns: List[re.Pattern]
    subcategories: List[str]
    confidence: float
    reason: str
    categories: List[str] = field(default_factory=list)

    @classmethod
    def from_config(cls, data: Dict[str, Any]) -> "TagDetectorConfig":
        return cls(
            tag=data["tag"],
            keywords=_lower_all(data.get("keywords", [])),
            account_patterns=_compile_all(data.get("account_patterns", [])),
            subcategories=_lower_all(data.get("subcategories", [])),
            confidence=float(data["confidence"]),
            reason=data["reason"],
            categories=_lower_all(data.get("categories", [])),
        )


@dataclass(frozen=True)
class InvestmentExclusions:
    """
    Disqualifying checks for investments. All must pass before any
    positive evidence is looked at. `minimum_amount` is in minor units.
    """
    require_negative_amount: bool
    minimum_amount: int
    fee_keywords: List[str]
    withdrawal_keywords: List[str]
    tax_keywords: List[str]
    savings_keywords: List[str]
    excluded_accounts: List[str]

    @classmethod
    def from_config(cls, data: Dict[str, Any]) -> "InvestmentExclusions":
        minimum_amount = data.get("minimum_amount", 1000)
        if isinstance(minimum_amount, bool) or not isinstance(minimum_amount, int):
            raise ValueError(f"minimum_amount must be an integer in minor units, got {minimum_amount!r}")
        return cls(
            require_negative_amount=bool(data.get("require_negative_amount", True)),
            minimum_amount=minimum_amount,
            fee_keywords=_lower_all(data.get("fee_keywords", [])),
            withdrawal_keywords=_lower_all(data.get("withdrawal_keywords", [])),
            tax_keywords=_lower_all(data.get("tax_keywords", [])),
            savings_keywords=_lower_all(data.get("savings_keywords", [])),
            excluded_accounts=_lower_all(data.get("excluded_accounts", [])),
        )


@dataclass(frozen=True)
class InvestmentDetectorConfig(TagDetectorConfig):
    exclusions: Optional[InvestmentExclusions] = None
    purchase_keywords: List[str] = field(default_factory=list)
    valid_categories: List[str] = field(default_factory=list)
    valid_subcategories: List[str] = field(default_factory=list)

    @classmethod
    def from_config(cls, data: Dict[str, Any]) -> "InvestmentDetectorConfig":
        base = TagDetectorConfig.from_config(data)
        return cls(
            tag=base.tag,
            keywords=base.keywords,
            account_patterns=base.account_patterns,
            subcategories=base.subcategories,
            confidence=base.confidence,
            reason=base.reason,
            categories=base.categories,
            exclusions=InvestmentExclusions.from_config(data.get("exclusions", {})),
            purchase_keywords=_lower_all(data.get("purchase_keywords", [])),
            valid_categories=_lower_all(data.get("valid_categories", [])),
            valid_subcategories=_lower_all(data.get("valid_subcategories", [])),
        )


@dataclass(frozen=True)
class IncomeDetectorConfig(TagDetectorConfig):
    require_positive_amount: bool = True
    excluded_keywords: List[str] = field(default_factory=list)

    @classmethod
    def from_config(cls, data: Dict[str, Any]) -> "IncomeDetectorConfig":
        base = TagDetectorConfig.from_config(data)
        return cls(
            tag=base.tag,
            keywords=base.keywords,
            account_patterns=base.account_patterns,
            subcategories=base.subcategories,
            confidence=base.confidence,
            reason=base.reason,
            categories=base.categories,
            require_positive_amount=bool(data.get("require_positive_amount", True)),
            excluded_keywords=_lower_all(data.get("excluded_keywords", [])),
        )


@dataclass(frozen=True)
class RuleCatalog:
    """
    The full static rule set.

    Usage:
        # Production - packaged defaults or config/rules.json
        catalog = RuleCatalog.load()

        # Testing - inject a config dict
        catalog = RuleCatalog.from_config({...})
    """
    special_rules: List[SpecialRule]
    category_rules: List[CategoryRule]
    savings: TagDetectorConfig
    transfers: TagDetectorConfig
    investments: InvestmentDetectorConfig
    income: IncomeDetectorConfig

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "RuleCatalog":
        """
        Build a catalog from a parsed rules config.

        Raises:
            KeyError: If a detector section is missing
            re.error: If a pattern does not compile
        """
        detectors = config["tag_detectors"]
        return cls(
            special_rules=[SpecialRule.from_config(r) for r in config.get("special_rules", [])],
            category_rules=[CategoryRule.from_config(r) for r in config.get("category_rules", [])],
            savings=TagDetectorConfig.from_config(detectors["savings"]),
            transfers=TagDetectorConfig.from_config(detectors["transfers"]),
            investments=InvestmentDetectorConfig.from_config(detectors["investments"]),
            income=IncomeDetectorConfig.from_config(detectors["income"]),
        )

    @classmethod
    def load(cls, config: Optional[Dict[str, Any]] = None) -> "RuleCatalog":
        if config is None:
            config = ConfigLoader.load_rules_config()
        return cls.from_config(config)

    def __repr__(self) -> str:
        return (
            f"RuleCatalog({len(self.special_rules)} special rules, "
            f"{len(self.category_rules)} category rules)"
        )
