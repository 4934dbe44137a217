"""
Feedback-driven rule learning.

Manual tag corrections are recorded with the patterns found in their
descriptions; once a tag has at least two corrections sharing evidence, a
learned rule is synthesized for it and picked up by the classifier.
"""
from transaction_tagger.learning.coordinator import LearningCoordinator
from transaction_tagger.learning.matcher import LearnedMatch, apply_learned_rules, score_rule
from transaction_tagger.learning.patterns import extract_patterns
from transaction_tagger.learning.synthesizer import RuleSynthesizer

__all__ = [
    "LearningCoordinator",
    "LearnedMatch",
    "RuleSynthesizer",
    "apply_learned_rules",
    "extract_patterns",
    "score_rule",
]
