from datetime import datetime
from typing import Callable, List, Optional

from transaction_tagger.classification import tags
from transaction_tagger.classification.base import ClassificationStrategy
from transaction_tagger.classification.catalog import CategoryRule, SpecialRule
from transaction_tagger.classification.detectors import TagDetectorSet
from transaction_tagger.classification.tag_mapping import TagMappingStore
from transaction_tagger.domain.learning import LearningState
from transaction_tagger.domain.models import ClassificationResult, Transaction, utc_now
from transaction_tagger.learning.matcher import MATCH_THRESHOLD, apply_learned_rules
from transaction_tagger.logging_setup import get_logger

logger = get_logger(__name__)


class SpecialRuleStrategy(ClassificationStrategy):
    """
    Exact regex matches on the description, e.g. a payment processor's
    reference format. Deterministic, confidence 1.0.
    """
    name = "special"

    def __init__(self, special_rules: List[SpecialRule]):
        super().__init__()
        self.special_rules = special_rules

    def try_classify(self, transaction: Transaction) -> Optional[ClassificationResult]:
        description = transaction.description or ""
        for rule in self.special_rules:
            if rule.pattern.search(description):
                return ClassificationResult(
                    tag=rule.tag,
                    category=rule.category,
                    subcategory=rule.subcategory,
                    confidence=rule.confidence,
                    reason=rule.reason,
                    source=self.name,
                )
        return None

    def __repr__(self) -> str:
        return f"SpecialRuleStrategy({len(self.special_rules)} rules)"


class LearnedRuleStrategy(ClassificationStrategy):
    """
    Rules synthesized from manual corrections.

    A learned tag is only trusted when it still validates against the static
    tag detectors for this transaction.
    """
    name = "learned"

    def __init__(
        self,
        state: LearningState,
        detectors: TagDetectorSet,
        clock: Callable[[], datetime] = utc_now,
    ):
        super().__init__()
        self.state = state
        self.detectors = detectors
        self.clock = clock

    def try_classify(self, transaction: Transaction) -> Optional[ClassificationResult]:
        match = apply_learned_rules(self.state, transaction, clock=self.clock)
        if match is None or match.confidence <= MATCH_THRESHOLD:
            return None

        if not self.detectors.validate_tag(transaction, match.tag):
            logger.info(
                "Invalidating learned rule %s for %r: %s doesn't match current rules",
                match.rule_id, transaction.description, match.tag,
            )
            return None

        return ClassificationResult(
            tag=match.tag,
            confidence=match.confidence,
            reason=f"Learned rule: {match.rule_id}",
            source=self.name,
        )

    def __repr__(self) -> str:
        return f"LearnedRuleStrategy({len(self.state.rules)} rules, v{self.state.version})"


class TagMappingStrategy(ClassificationStrategy):
    """
    User-configured category/subcategory -> tag mapping.

    Outranks heuristics, except that a mapped Investments tag must still pass
    the investment exclusion gate.
    """
    name = "mapping"
    confidence = 0.9

    def __init__(self, mapping: TagMappingStore, detectors: TagDetectorSet):
        super().__init__()
        self.mapping = mapping
        self.detectors = detectors

    def try_classify(self, transaction: Transaction) -> Optional[ClassificationResult]:
        mapped_tag = self.mapping.get_tag(transaction.category, transaction.subcategory)
        if not mapped_tag:
            return None

        if (tags.canonical_tag(mapped_tag) == tags.INVESTMENTS
                and not self.detectors.investments.passes_exclusion_gate(transaction)):
            logger.info(
                "Ignoring mapping %s/%s -> %s for %r: fails investment exclusions",
                transaction.category, transaction.subcategory, mapped_tag, transaction.description,
            )
            return None

        logger.debug("User-defined mapping applied: %s/%s -> %s",
                     transaction.category, transaction.subcategory, mapped_tag)
        return ClassificationResult(
            tag=mapped_tag,
            confidence=self.confidence,
            reason=f"User-defined mapping: {transaction.category}/{transaction.subcategory} -> {mapped_tag}",
            source=self.name,
        )

    def __repr__(self) -> str:
        return f"TagMappingStrategy({self.mapping!r})"


class ExistingTagStrategy(ClassificationStrategy):
    """
    Keeps a tag the transaction already carries, but only if it still
    passes the detector semantics for that tag. Imported tags are never
    trusted blindly.
    """
    name = "existing"
    confidence = 0.8

    def __init__(self, detectors: TagDetectorSet):
        super().__init__()
        self.detectors = detectors

    def try_classify(self, transaction: Transaction) -> Optional[ClassificationResult]:
        existing = (transaction.tag or "").strip()
        if existing.lower() in tags.UNSET_TAGS:
            return None

        if not self.detectors.validate_tag(transaction, existing):
            logger.info("Invalidating existing tag %r for %r", existing, transaction.description)
            return None

        return ClassificationResult(
            tag=tags.canonical_tag(existing),
            confidence=self.confidence,
            reason=f"Validated existing tag: {existing.lower()}",
            source=self.name,
        )


class StaticRuleStrategy(ClassificationStrategy):
    """
    Fallback that always produces a result.

    Category comes from the first matching category rule; the tag from the
    first detector that matches (savings -> transfers -> investments ->
    income), otherwise Other. Confidence is the lower of the two.
    """
    name = "static"

    def __init__(self, category_rules: List[CategoryRule], detectors: TagDetectorSet):
        super().__init__()
        self.category_rules = category_rules
        self.detectors = detectors

    def assign_category(self, transaction: Transaction):
        """Return (category, subcategory, confidence) from the first matching rule"""
        description = transaction.description or ""
        for rule in self.category_rules:
            if rule.pattern.search(description):
                return rule.category, rule.subcategory, rule.confidence
        return tags.DEFAULT_CATEGORY, tags.DEFAULT_SUBCATEGORY, tags.DEFAULT_CONFIDENCE

    def try_classify(self, transaction: Transaction) -> ClassificationResult:
        category, subcategory, category_confidence = self.assign_category(transaction)

        detector = self.detectors.detect(transaction)
        if detector is not None:
            tag, tag_confidence, reason = detector.tag, detector.confidence, detector.reason
        else:
            tag, tag_confidence, reason = tags.OTHER, tags.DEFAULT_CONFIDENCE, tags.NO_INDICATORS_REASON

        return ClassificationResult(
            tag=tag,
            category=category,
            subcategory=subcategory,
            confidence=min(tag_confidence, category_confidence),
            reason=reason,
            source=self.name,
        )

    def __repr__(self) -> str:
        return f"StaticRuleStrategy({len(self.category_rules)} category rules)"
