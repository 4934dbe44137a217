import pytest

from transaction_tagger.classification import Classifier, RuleCatalog, TagMappingStore
from transaction_tagger.classification.strategies import SpecialRuleStrategy
from transaction_tagger.domain.enums import ConditionType, PatternType
from transaction_tagger.domain.learning import Condition, LearnedRule, LearningState


def word(pattern: str, confidence: float = 0.7) -> Condition:
    return Condition(
        type=ConditionType.PATTERN,
        pattern_type=PatternType.EXACT_WORD,
        pattern=pattern,
        confidence=confidence,
        frequency=1.0,
    )


def learned_rule(tag: str, conditions, rule_id: str = None) -> LearnedRule:
    return LearnedRule(
        id=rule_id or f"rule_{tag}_1",
        tag=tag,
        conditions=conditions,
        confidence=sum(c.confidence for c in conditions) / len(conditions),
        assignments_count=2,
        created_at="2025-01-01T00:00:00.000Z",
    )


@pytest.mark.unit
class TestClassifierScenarios:
    """Reference transactions and their expected tags"""

    def test_stock_purchase_is_investment(self, classifier: Classifier, make_transaction):
        # Arrange
        txn = make_transaction("STOCK PURCHASE BROKERAGE LTD", -5000)

        # Act
        result = classifier.classify(txn)

        # Assert
        assert result.tag == "Investments"
        assert result.category == "Shopping"
        assert result.confidence == pytest.approx(0.7)

    def test_bunq_savings_is_savings(self, classifier: Classifier, make_transaction):
        result = classifier.classify(make_transaction("BUNQ SAVINGS TRANSFER", -20000))

        assert result.tag == "Savings"

    def test_salary_is_income(self, classifier: Classifier, make_transaction):
        result = classifier.classify(make_transaction("MONTHLY SALARY PAYSLIP", 250000))

        assert result.tag == "Income"
        assert result.reason == "Income indicators detected"

    def test_unknown_shop_is_other(self, classifier: Classifier, make_transaction):
        result = classifier.classify(make_transaction("RANDOM SHOP XYZ", -1500))

        assert result.tag == "Other"
        assert result.confidence == pytest.approx(0.5)
        assert result.reason == "No specific indicators detected - classified as Other"

    def test_category_assigned_from_first_matching_rule(self, classifier: Classifier, make_transaction):
        result = classifier.classify(make_transaction("ALBERT HEIJN 1234", -2500))

        assert result.category == "Groceries & Household"
        assert result.subcategory == "Supermarket"
        assert result.tag == "Other"

    def test_special_rule_wins(self, classifier: Classifier, make_transaction):
        result = classifier.classify(make_transaction("REVOLUT**1234* PAYMENT", -1000))

        assert result.tag == "Transfers"
        assert result.confidence == 1.0
        assert result.source == "special"


@pytest.mark.unit
class TestClassifierProperties:

    def test_classification_is_deterministic(self, classifier: Classifier, make_transaction):
        txn = make_transaction("BUNQ SAVINGS TRANSFER", -20000)

        assert classifier.classify(txn) == classifier.classify(txn)

    def test_every_transaction_gets_a_tag(self, classifier: Classifier, make_transaction):
        transactions = [
            make_transaction("", 0),
            make_transaction("   ", -1),
            make_transaction("ÜNICODE ÇAFÉ", 123),
            make_transaction("x" * 500, -999999999),
        ]

        results = classifier.classify_many(transactions)

        assert len(results) == len(transactions)
        for result in results:
            assert result.tag
            assert 0 < result.confidence <= 1
            assert result.reason

    def test_investments_never_assigned_to_incoming_money(self, catalog: RuleCatalog, learning_state, make_transaction):
        # Arrange - mapping, existing tag and learned rule all push Investments
        mapping = TagMappingStore(defaults={"mapping": {"Financial": {"Investment": "Investments"}}})
        learning_state.rules.append(learned_rule("Investments", [word("degiro")]))
        classifier = Classifier(catalog=catalog, mapping=mapping, state=learning_state)
        txn = make_transaction(
            "DEGIRO DEPOSIT", 50000,
            category="Financial", subcategory="Investment", tag="Investments",
        )

        # Act
        result = classifier.classify(txn)

        # Assert
        assert result.tag != "Investments"

    def test_existing_tag_kept_when_valid(self, classifier: Classifier, make_transaction):
        txn = make_transaction("MONTHLY SALARY", 100000, tag="income")

        result = classifier.classify(txn)

        assert result.tag == "Income"
        assert result.source == "existing"
        assert result.confidence == pytest.approx(0.8)

    def test_existing_tag_dropped_when_invalid(self, classifier: Classifier, make_transaction):
        txn = make_transaction("ETF PURCHASE", 500, tag="Investments")

        result = classifier.classify(txn)

        assert result.tag == "Other"
        assert result.source == "static"

    def test_unknown_existing_tag_is_reclassified(self, classifier: Classifier, make_transaction):
        txn = make_transaction("BUNQ TOPUP", -1000, tag="Groceries")

        result = classifier.classify(txn)

        assert result.tag == "Savings"

    def test_mapping_applies_case_insensitively(self, catalog: RuleCatalog, learning_state, make_transaction):
        mapping = TagMappingStore(defaults={"mapping": {"To your accounts": {"Savings": "Savings"}}})
        classifier = Classifier(catalog=catalog, mapping=mapping, state=learning_state)
        txn = make_transaction("ANYTHING", -1000, category="to your accounts", subcategory="SAVINGS")

        result = classifier.classify(txn)

        assert result.tag == "Savings"
        assert result.confidence == pytest.approx(0.9)
        assert result.source == "mapping"


@pytest.mark.unit
class TestLearnedRules:

    def test_learned_rule_applied_and_usage_recorded(self, classifier: Classifier, learning_state: LearningState, make_transaction):
        # Arrange
        special = Condition(
            type=ConditionType.PATTERN,
            pattern_type=PatternType.SPECIAL_PATTERN,
            pattern="bunq",
            confidence=0.95,
            frequency=1.0,
        )
        rule = learned_rule("Savings", [word("bunq"), special])
        learning_state.rules.append(rule)

        # Act
        result = classifier.classify(make_transaction("BUNQ TOPUP", -1000))

        # Assert
        assert result.tag == "Savings"
        assert result.source == "learned"
        assert result.reason == "Learned rule: rule_Savings_1"
        assert result.confidence == pytest.approx(0.825)
        assert rule.usage_count == 1
        assert rule.last_used == "2025-01-15T12:00:00.000Z"

    def test_learned_rule_rejected_when_tag_fails_validation(self, classifier: Classifier, learning_state: LearningState, make_transaction):
        learning_state.rules.append(learned_rule("Savings", [word("piggy"), word("bank")]))

        result = classifier.classify(make_transaction("PIGGY BANK TOPUP", -1000))

        assert result.tag == "Other"
        assert result.source == "static"

    def test_learned_other_always_validates(self, classifier: Classifier, learning_state: LearningState, make_transaction):
        learning_state.rules.append(learned_rule("Other", [word("tikkie"), word("transfer")]))

        result = classifier.classify(make_transaction("TIKKIE TRANSFER LUNCH", -1500))

        assert result.tag == "Other"
        assert result.source == "learned"

    def test_weak_learned_rule_ignored(self, classifier: Classifier, learning_state: LearningState, make_transaction):
        learning_state.rules.append(learned_rule("Other", [word("tikkie", 0.6)]))

        result = classifier.classify(make_transaction("TIKKIE TRANSFER LUNCH", -1500))

        assert result.tag == "Transfers"


@pytest.mark.unit
class TestClassifierChain:

    def test_chain_order(self, classifier: Classifier):
        info = classifier.get_chain_info().splitlines()

        assert len(info) == 5
        assert info[0].startswith("1. SpecialRuleStrategy")
        assert info[-1].startswith("5. StaticRuleStrategy")

    def test_failing_strategy_is_skipped(self, classifier: Classifier, make_transaction, mocker):
        # Arrange
        mocker.patch.object(SpecialRuleStrategy, "try_classify", side_effect=RuntimeError("boom"))

        # Act
        result = classifier.classify(make_transaction("MONTHLY SALARY PAYSLIP", 250000))

        # Assert
        assert result.tag == "Income"

    def test_repr(self, classifier: Classifier):
        assert repr(classifier) == "Classifier(5 strategies in chain)"
