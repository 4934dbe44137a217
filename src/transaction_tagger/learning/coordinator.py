from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from transaction_tagger.domain.learning import LearnedRule, LearningState, ManualAssignment
from transaction_tagger.domain.models import Transaction, isoformat, utc_now
from transaction_tagger.learning.patterns import extract_patterns
from transaction_tagger.learning.synthesizer import RuleSynthesizer
from transaction_tagger.logging_setup import get_logger
from transaction_tagger.repositories.base import KeyValueStore, PersistenceError

logger = get_logger(__name__)

LEARNED_RULES_KEY = "transaction_learning_rules"
MANUAL_ASSIGNMENTS_KEY = "transaction_manual_assignments"
RULE_STATISTICS_KEY = "transaction_rule_statistics"

TOP_RULES = 5


class LearningCoordinator:
    """
    Turns manual tag corrections into learned rules.

    Owns writes to the LearningState it is given; the Classifier reads the
    same object. Persistence is best-effort: failures are logged and the
    in-memory state stays authoritative for the session.

    Usage:
        state = LearningState()
        coordinator = LearningCoordinator(state, store)
        coordinator.load()

        coordinator.learn_from_assignment(transaction, "Savings")
    """

    def __init__(
        self,
        state: LearningState,
        store: Optional[KeyValueStore] = None,
        synthesizer: Optional[RuleSynthesizer] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.state = state
        self.store = store
        self.clock = clock
        self.synthesizer = synthesizer or RuleSynthesizer(clock=clock)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _persist(self, key: str, value: Any) -> bool:
        if self.store is None:
            return False
        try:
            self.store.persist(key, value)
            return True
        except PersistenceError:
            logger.exception("Error saving %s", key)
            return False

    def _load(self, key: str) -> Optional[Any]:
        if self.store is None:
            return None
        try:
            return self.store.load(key)
        except PersistenceError:
            logger.exception("Error loading %s", key)
            return None

    def save_rules(self) -> bool:
        return self._persist(LEARNED_RULES_KEY, [rule.to_dict() for rule in self.state.rules])

    def save_assignments(self) -> bool:
        return self._persist(MANUAL_ASSIGNMENTS_KEY, [a.to_dict() for a in self.state.assignments])

    def save_statistics(self) -> bool:
        return self._persist(RULE_STATISTICS_KEY, self.state.statistics)

    def load(self) -> LearningState:
        """
        Populate the state from the store.

        Each section is loaded independently; an unreadable section starts
        empty instead of failing the whole load.
        """
        self.state.rules = self._parse_section(
            LEARNED_RULES_KEY, self._load(LEARNED_RULES_KEY), LearnedRule.from_dict
        )
        self.state.assignments = self._parse_section(
            MANUAL_ASSIGNMENTS_KEY, self._load(MANUAL_ASSIGNMENTS_KEY), ManualAssignment.from_dict
        )
        statistics = self._load(RULE_STATISTICS_KEY)
        self.state.statistics = statistics if isinstance(statistics, dict) else {}
        self.state.touch()

        logger.info(
            "Loaded %d learned rules and %d manual assignments",
            len(self.state.rules), len(self.state.assignments),
        )
        return self.state

    @staticmethod
    def _parse_section(key: str, raw: Optional[Any], parse: Callable[[Dict[str, Any]], Any]) -> List[Any]:
        if not raw:
            return []
        try:
            return [parse(item) for item in raw]
        except (KeyError, TypeError, ValueError):
            logger.exception("Discarding malformed %s", key)
            return []

    # ------------------------------------------------------------------
    # Learning
    # ------------------------------------------------------------------

    def learn_from_assignment(self, transaction: Transaction, assigned_tag: str) -> ManualAssignment:
        """
        Record a manual tag assignment and refresh every learned rule.

        Args:
            transaction: The corrected transaction
            assigned_tag: Tag the user chose

        Returns:
            The ManualAssignment that was appended to the ledger
        """
        logger.info("Learning from manual assignment: %r -> %r", transaction.description, assigned_tag)

        now = self.clock()
        assignment = ManualAssignment(
            id=f"{int(now.timestamp() * 1000)}-{len(self.state.assignments)}",
            timestamp=isoformat(now),
            transaction_id=transaction.id,
            description=transaction.description,
            category=transaction.category,
            subcategory=transaction.subcategory,
            counterparty=transaction.counterparty,
            amount=transaction.amount,
            assigned_tag=assigned_tag,
            patterns=extract_patterns(transaction.description),
        )

        self.state.assignments.append(assignment)
        self.state.touch()
        self.save_assignments()

        self.analyze_and_create_rules()
        return assignment

    def analyze_and_create_rules(self) -> List[LearnedRule]:
        """
        Re-run the synthesizer for every tag with enough assignments.

        A tag whose assignments no longer produce any condition keeps its
        previous rule.

        Returns:
            The rules created or replaced in this pass
        """
        updated: List[LearnedRule] = []
        grouped = self.synthesizer.group_by_tag(self.state.assignments)

        for tag, assignments in grouped.items():
            if len(assignments) < self.synthesizer.min_assignments:
                continue
            rule = self.synthesizer.synthesize(tag, assignments)
            if rule is None:
                continue
            replaced = self.state.replace_rule(rule)
            logger.info("%s rule for tag %r", "Updated existing" if replaced else "Created new", tag)
            updated.append(rule)

        self.save_rules()
        self.update_rule_statistics()
        return updated

    # ------------------------------------------------------------------
    # Statistics, export/import, reset
    # ------------------------------------------------------------------

    def update_rule_statistics(self) -> Dict[str, Any]:
        rules = self.state.rules
        rules_by_tag: Dict[str, int] = {}
        for rule in rules:
            rules_by_tag[rule.tag] = rules_by_tag.get(rule.tag, 0) + 1

        stats = {
            "totalRules": len(rules),
            "totalAssignments": len(self.state.assignments),
            "rulesByTag": rules_by_tag,
            "mostUsedRules": [
                r.to_dict() for r in sorted(rules, key=lambda r: r.usage_count, reverse=True)[:TOP_RULES]
            ],
            "recentRules": [
                r.to_dict() for r in sorted(rules, key=lambda r: r.created_at, reverse=True)[:TOP_RULES]
            ],
        }

        self.state.statistics = stats
        self.save_statistics()
        return stats

    def export_learned_rules(self) -> Dict[str, Any]:
        """Full-state snapshot: {rules, assignments, statistics, exportedAt}"""
        return {
            "rules": [rule.to_dict() for rule in self.state.rules],
            "assignments": [a.to_dict() for a in self.state.assignments],
            "statistics": dict(self.state.statistics),
            "exportedAt": isoformat(self.clock()),
        }

    def import_learned_rules(self, data: Dict[str, Any]) -> bool:
        """
        Replace learning state with an exported snapshot.

        Each section present in `data` replaces the current one wholesale.
        Nothing is changed if any section fails to parse or the rules
        name the same tag twice.

        Returns:
            True on success, False if the data is malformed
        """
        try:
            rules = [LearnedRule.from_dict(r) for r in data["rules"]] if data.get("rules") is not None else None
            assignments = (
                [ManualAssignment.from_dict(a) for a in data["assignments"]]
                if data.get("assignments") is not None else None
            )
            statistics = data.get("statistics")
            if statistics is not None and not isinstance(statistics, dict):
                raise TypeError("statistics must be an object")
            if rules is not None:
                tags = [rule.tag for rule in rules]
                if len(tags) != len(set(tags)):
                    raise ValueError("snapshot holds more than one rule for a tag")
        except (AttributeError, KeyError, TypeError, ValueError):
            logger.exception("Error importing learned rules")
            return False

        if rules is not None:
            self.state.rules = rules
            self.save_rules()
        if assignments is not None:
            self.state.assignments = assignments
            self.save_assignments()
        if statistics is not None:
            self.state.statistics = statistics
            self.save_statistics()
        self.state.touch()

        logger.info("Imported learned rules successfully")
        return True

    def clear_learned_data(self) -> None:
        """Wipe ledger, rules and statistics, in memory and in the store"""
        self.state.clear()
        if self.store is not None:
            for key in (LEARNED_RULES_KEY, MANUAL_ASSIGNMENTS_KEY, RULE_STATISTICS_KEY):
                try:
                    self.store.remove(key)
                except PersistenceError:
                    logger.exception("Error removing %s", key)
        logger.info("Cleared all learned data")

    @property
    def total_rules(self) -> int:
        return len(self.state.rules)

    @property
    def total_assignments(self) -> int:
        return len(self.state.assignments)
