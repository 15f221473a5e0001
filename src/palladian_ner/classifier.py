"""Dictionary-based n-gram text classifier."""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections import defaultdict
from typing import Iterable

from .dictionary import DictionaryBuilder, DictionaryModel
from .features import FeatureSetting, extract_features
from .models import CategoryEntries

log = logging.getLogger(__name__)


class Scorer(ABC):
    """Turns the category counts of one matched term into per-category probabilities."""

    @abstractmethod
    def term_probabilities(self, counts: dict[str, int], model: DictionaryModel) -> dict[str, float]:
        ...

    def score(self, features: dict[str, int], model: DictionaryModel) -> CategoryEntries:
        """Sum ``p(c|term)^2 * freq(term)`` over all matched terms and normalise.

        Falls back to the category priors when no term is in the dictionary.
        """
        scores: dict[str, float] = defaultdict(float)
        for term, frequency in features.items():
            counts = model.get_counts(term)
            if not counts:
                continue
            for category, prob in self.term_probabilities(counts, model).items():
                scores[category] += prob * prob * frequency
        if not scores:
            return model.priors
        return CategoryEntries.from_counts(scores)


class DefaultScorer(Scorer):

    def term_probabilities(self, counts, model):
        total = sum(counts.values())
        return {c: n / total for c, n in counts.items()}


class CategoryEqualizationScorer(Scorer):
    """Divides each count by its category's total term count before normalising."""

    def term_probabilities(self, counts, model):
        weighted = {}
        for category, n in counts.items():
            size = model.category_term_count(category)
            if size > 0:
                weighted[category] = n / size
        total = sum(weighted.values())
        if total <= 0:
            return {}
        return {c: w / total for c, w in weighted.items()}


class TextClassifier:
    """Trains a DictionaryModel from ``(text, category)`` pairs and classifies texts against it."""

    def __init__(self, feature_setting: FeatureSetting, scorer: Scorer | None = None):
        self.feature_setting = feature_setting
        self.scorer = scorer or DefaultScorer()

    @classmethod
    def for_model(cls, model: DictionaryModel, scorer: Scorer | None = None) -> TextClassifier:
        if model.feature_setting is None:
            raise ValueError("dictionary has no feature setting and cannot be used for classification")
        return cls(model.feature_setting, scorer)

    def train(self, instances: Iterable[tuple[str, str]], min_count: int = 1) -> DictionaryModel:
        builder = DictionaryBuilder(self.feature_setting, min_count=min_count)
        for text, category in instances:
            builder.add_document(extract_features(text, self.feature_setting), category)
        return builder.create()

    def classify(self, text: str, model: DictionaryModel) -> CategoryEntries:
        features = extract_features(text, self.feature_setting)
        return self.scorer.score(features, model)
