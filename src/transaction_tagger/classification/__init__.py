"""
Transaction classification.

Assigns a tag, category and subcategory to each transaction using a chain
of responsibility: special rules, learned rules, the user tag mapping,
validated existing tags, and finally the static rule catalog.

Quick Start:
    >>> from transaction_tagger.classification import Classifier
    >>>
    >>> classifier = Classifier()
    >>> result = classifier.classify(transaction)
    >>> print(f"{result.tag} ({result.confidence:.2f}): {result.reason}")
"""
from transaction_tagger.classification.classifier import Classifier
from transaction_tagger.classification.base import ClassificationStrategy
from transaction_tagger.classification.catalog import RuleCatalog
from transaction_tagger.classification.detectors import TagDetectorSet
from transaction_tagger.classification.strategies import (
    SpecialRuleStrategy,
    LearnedRuleStrategy,
    TagMappingStrategy,
    ExistingTagStrategy,
    StaticRuleStrategy,
)
from transaction_tagger.classification.tag_mapping import TagMappingStore
from transaction_tagger.classification import tags

__all__ = [
    "Classifier",
    "ClassificationStrategy",
    "RuleCatalog",
    "TagDetectorSet",
    "SpecialRuleStrategy",
    "LearnedRuleStrategy",
    "TagMappingStrategy",
    "ExistingTagStrategy",
    "StaticRuleStrategy",
    "TagMappingStore",
    "tags",
]
