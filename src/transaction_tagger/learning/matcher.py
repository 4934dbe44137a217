import re
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from transaction_tagger.domain.enums import ConditionType, PatternType
from transaction_tagger.domain.learning import Condition, LearnedRule, LearningState
from transaction_tagger.domain.models import Transaction, isoformat, utc_now
from transaction_tagger.logging_setup import get_logger

logger = get_logger(__name__)

MATCH_THRESHOLD = 0.6


@dataclass(frozen=True)
class LearnedMatch:
    tag: str
    confidence: float
    rule_id: str


def _condition_met(condition: Condition, description: str, category: str,
                   subcategory: str, counterparty: str) -> bool:
    if condition.type == ConditionType.PATTERN:
        pattern = condition.pattern or ""
        if condition.pattern_type == PatternType.SPECIAL_PATTERN:
            # case-sensitive escapes such as \D and \W must keep their case
            try:
                return re.search(pattern, description, re.IGNORECASE) is not None
            except re.error:
                logger.warning("Ignoring invalid learned pattern %r", condition.pattern)
                return False
        return bool(pattern) and pattern.lower() in description

    value = (condition.value or "").lower()
    if condition.type == ConditionType.CATEGORY:
        return category == value
    if condition.type == ConditionType.SUBCATEGORY:
        return subcategory == value
    if condition.type == ConditionType.COUNTERPARTY:
        return bool(value) and value in counterparty
    return False


def score_rule(rule: LearnedRule, transaction: Transaction) -> float:
    """
    Score a rule against a transaction.

    Sum of matched condition confidences divided by the total number of
    conditions, so unmatched conditions pull the score down. 0.0 when
    nothing matches.
    """
    if not rule.conditions:
        return 0.0

    description = (transaction.description or "").lower()
    category = (transaction.category or "").lower()
    subcategory = (transaction.subcategory or "").lower()
    counterparty = (transaction.counterparty or "").lower()

    matched = [
        c for c in rule.conditions
        if _condition_met(c, description, category, subcategory, counterparty)
    ]
    if not matched:
        return 0.0
    return sum(c.confidence for c in matched) / len(rule.conditions)


def apply_learned_rules(
    state: LearningState,
    transaction: Transaction,
    clock: Callable[[], datetime] = utc_now,
) -> Optional[LearnedMatch]:
    """
    Find the best learned rule for a transaction.

    Does not validate the rule's tag; the classifier does that. When a rule
    wins, its `last_used`/`usage_count` are updated.

    Returns:
        The winning match when its score exceeds 0.6, otherwise None
    """
    best_rule: Optional[LearnedRule] = None
    best_score = 0.0

    for rule in state.rules:
        score = score_rule(rule, transaction)
        if score > best_score:
            best_score = score
            best_rule = rule

    if best_rule is None or best_score <= MATCH_THRESHOLD:
        return None

    best_rule.last_used = isoformat(clock())
    best_rule.usage_count += 1

    logger.debug(
        "Applied learned rule %s: %r -> %r (confidence %.2f)",
        best_rule.id, transaction.description, best_rule.tag, best_score,
    )
    return LearnedMatch(tag=best_rule.tag, confidence=best_score, rule_id=best_rule.id)
