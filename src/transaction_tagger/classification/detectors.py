"""
Tag detectors.

Each detector is a pure predicate over a transaction. They are evaluated in a
fixed order (savings -> transfers -> investments -> income) by the static
strategy, and reused to re-validate tags coming from learned rules or
imported data.
"""
from abc import ABC, abstractmethod
from typing import List, Optional

from transaction_tagger.classification import tags
from transaction_tagger.classification.catalog import (
    IncomeDetectorConfig,
    InvestmentDetectorConfig,
    RuleCatalog,
    TagDetectorConfig,
)
from transaction_tagger.domain.models import Transaction
from transaction_tagger.logging_setup import get_logger

logger = get_logger(__name__)


def _lower(value: Optional[str]) -> str:
    return (value or "").lower()


def _contains_any(text: str, keywords: List[str]) -> bool:
    return any(keyword in text for keyword in keywords)


class TagDetector(ABC):
    """Base class for all tag detectors"""

    def __init__(self, config: TagDetectorConfig):
        self.config = config

    @property
    def tag(self) -> str:
        return self.config.tag

    @property
    def confidence(self) -> float:
        return self.config.confidence

    @property
    def reason(self) -> str:
        return self.config.reason

    @abstractmethod
    def matches(self, transaction: Transaction) -> bool:
        """
        Check whether the transaction carries this detector's tag.

        Args:
            transaction: Transaction to check

        Returns:
            True if the tag applies
        """
        pass

    def validate(self, transaction: Transaction) -> bool:
        """Check an already assigned tag. Defaults to `matches`."""
        return self.matches(transaction)

    def __repr__(self):
        return f"{self.__class__.__name__}('{self.tag}')"


class KeywordTagDetector(TagDetector):
    """
    Detector driven by keywords, account patterns and subcategories.

    Used for savings and transfers. Direction does not matter: money moved to
    a savings account is savings whichever way the amount is signed.
    """

    def matches(self, transaction: Transaction) -> bool:
        description = _lower(transaction.description)
        category = _lower(transaction.category)
        subcategory = _lower(transaction.subcategory)

        if _contains_any(description, self.config.keywords):
            return True

        if any(pattern.search(description) for pattern in self.config.account_patterns):
            return True

        if subcategory and _contains_any(subcategory, self.config.subcategories):
            return True

        literal = self.config.categories
        return category in literal or subcategory in literal


class InvestmentDetector(TagDetector):
    """
    Two-gate investment detector.

    The exclusion gate runs first and every check must pass: outgoing money
    only, above the minimum amount, and no fee, withdrawal, tax or savings
    wording. Only then is positive evidence considered: an investment keyword,
    a brokerage account together with purchase wording, or a purchase-type
    subcategory.
    """
    config: InvestmentDetectorConfig

    def passes_exclusion_gate(self, transaction: Transaction) -> bool:
        exclusions = self.config.exclusions
        description = _lower(transaction.description)
        amount = transaction.signed_amount

        if exclusions.require_negative_amount and amount >= 0:
            return False

        if abs(amount) < exclusions.minimum_amount:
            return False

        if _contains_any(description, exclusions.fee_keywords):
            return False

        if _contains_any(description, exclusions.withdrawal_keywords):
            return False

        if _contains_any(description, exclusions.tax_keywords):
            return False

        if _contains_any(description, exclusions.savings_keywords):
            return False

        if _contains_any(description, exclusions.excluded_accounts):
            return False

        return True

    def passes_evidence_gate(self, transaction: Transaction) -> bool:
        description = _lower(transaction.description)
        subcategory = _lower(transaction.subcategory)

        if _contains_any(description, self.config.keywords):
            return True

        # An account name alone is not enough; money often just moves in and out
        if any(pattern.search(description) for pattern in self.config.account_patterns):
            if _contains_any(description, self.config.purchase_keywords):
                return True

        return subcategory in self.config.subcategories

    def matches(self, transaction: Transaction) -> bool:
        if not self.passes_exclusion_gate(transaction):
            return False
        return self.passes_evidence_gate(transaction)

    def validate(self, transaction: Transaction) -> bool:
        if not self.matches(transaction):
            return False

        category = _lower(transaction.category)
        subcategory = _lower(transaction.subcategory)

        if category and category != "other" and category not in self.config.valid_categories:
            logger.debug("Investment tag invalid: category %r is not an investment category", category)
            return False

        if subcategory and subcategory != "other" and subcategory not in self.config.valid_subcategories:
            logger.debug("Investment tag invalid: subcategory %r is not an investment subcategory", subcategory)
            return False

        return True


class IncomeDetector(TagDetector):
    """Positive amount plus income wording. Refunds are not income."""
    config: IncomeDetectorConfig

    def matches(self, transaction: Transaction) -> bool:
        description = _lower(transaction.description)

        if self.config.require_positive_amount and transaction.signed_amount <= 0:
            return False

        if _contains_any(description, self.config.excluded_keywords):
            return False

        return _contains_any(description, self.config.keywords)


class TagDetectorSet:
    """The detectors of a catalog, in evaluation order"""

    def __init__(self, catalog: RuleCatalog):
        self.savings = KeywordTagDetector(catalog.savings)
        self.transfers = KeywordTagDetector(catalog.transfers)
        self.investments = InvestmentDetector(catalog.investments)
        self.income = IncomeDetector(catalog.income)

    @property
    def ordered(self) -> List[TagDetector]:
        return [self.savings, self.transfers, self.investments, self.income]

    def detect(self, transaction: Transaction) -> Optional[TagDetector]:
        """Return the first detector that matches, or None"""
        for detector in self.ordered:
            if detector.matches(transaction):
                return detector
        return None

    def validate_tag(self, transaction: Transaction, tag: str) -> bool:
        """
        Check a tag from a learned rule or imported data against current rules.

        'Other' is always valid; tags without a detector are not trusted.
        """
        tag_lower = tag.strip().lower()
        if tag_lower == tags.OTHER.lower():
            return True

        for detector in self.ordered:
            if detector.tag.lower() == tag_lower:
                return detector.validate(transaction)

        logger.debug("Unknown tag %r - invalidating", tag)
        return False
