from collections import Counter
from datetime import datetime
from typing import Callable, Dict, List, Optional

from transaction_tagger.domain.enums import ConditionType
from transaction_tagger.domain.learning import Condition, LearnedRule, ManualAssignment, Pattern
from transaction_tagger.domain.models import isoformat, utc_now
from transaction_tagger.logging_setup import get_logger

logger = get_logger(__name__)

MIN_ASSIGNMENTS = 2
MIN_FREQUENCY = 0.5


class RuleSynthesizer:
    """
    Derives one learned rule per tag from the manual assignment ledger.

    For the assignments of a tag, every pattern, category, subcategory and
    counterparty is counted. Values seen in more than half of the
    assignments become conditions. Pattern conditions are weighted by the
    base confidence of their pattern type; the others by frequency alone.

    Usage:
        synthesizer = RuleSynthesizer()
        rule = synthesizer.synthesize("Savings", assignments)
    """

    def __init__(
        self,
        min_assignments: int = MIN_ASSIGNMENTS,
        min_frequency: float = MIN_FREQUENCY,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.min_assignments = min_assignments
        self.min_frequency = min_frequency
        self.clock = clock

    def synthesize(self, tag: str, assignments: List[ManualAssignment]) -> Optional[LearnedRule]:
        """
        Build a learned rule for `tag`.

        Args:
            tag: Tag the rule assigns
            assignments: All manual assignments to that tag

        Returns:
            The new rule, or None if there is not enough evidence
        """
        relevant = [a for a in assignments if a.assigned_tag == tag]
        if len(relevant) < self.min_assignments:
            return None

        conditions = self._conditions(relevant)
        if not conditions:
            logger.info("No pattern reached the frequency floor for tag %r", tag)
            return None

        now = self.clock()
        rule = LearnedRule(
            id=f"rule_{tag}_{int(now.timestamp() * 1000)}",
            tag=tag,
            conditions=conditions,
            confidence=sum(c.confidence for c in conditions) / len(conditions),
            assignments_count=len(relevant),
            created_at=isoformat(now),
        )
        logger.info(
            "Synthesized rule for tag %r from %d assignments (%d conditions)",
            tag, len(relevant), len(conditions),
        )
        return rule

    def group_by_tag(self, assignments: List[ManualAssignment]) -> Dict[str, List[ManualAssignment]]:
        """Group assignments by tag, keeping first-seen tag order"""
        grouped: Dict[str, List[ManualAssignment]] = {}
        for assignment in assignments:
            grouped.setdefault(assignment.assigned_tag, []).append(assignment)
        return grouped

    def _conditions(self, assignments: List[ManualAssignment]) -> List[Condition]:
        total = len(assignments)
        conditions: List[Condition] = []

        pattern_counts: Counter = Counter()
        patterns: Dict[str, Pattern] = {}
        for assignment in assignments:
            for pattern in {p.key: p for p in assignment.patterns}.values():
                pattern_counts[pattern.key] += 1
                patterns.setdefault(pattern.key, pattern)

        for key, count in pattern_counts.items():
            frequency = count / total
            if frequency > self.min_frequency:
                pattern = patterns[key]
                conditions.append(Condition(
                    type=ConditionType.PATTERN,
                    pattern_type=pattern.type,
                    pattern=pattern.pattern,
                    confidence=pattern.confidence * frequency,
                    frequency=frequency,
                ))

        fields = [
            (ConditionType.CATEGORY, lambda a: a.category),
            (ConditionType.SUBCATEGORY, lambda a: a.subcategory),
            (ConditionType.COUNTERPARTY, lambda a: a.counterparty),
        ]
        for condition_type, getter in fields:
            counts = Counter(getter(a) for a in assignments if getter(a))
            for value, count in counts.items():
                frequency = count / total
                if frequency > self.min_frequency:
                    conditions.append(Condition(
                        type=condition_type,
                        value=value,
                        confidence=frequency,
                        frequency=frequency,
                    ))

        return conditions
