"""Builds the dictionaries and word sets a trained model is made of."""
from __future__ import annotations

import logging
import random
from collections import Counter
from typing import Iterable, Sequence, TypeVar

from .classifier import TextClassifier
from .dictionary import DictionaryBuilder, DictionaryModel
from .features import ANNOTATION_FEATURE_SETTING, CONTEXT_FEATURE_SETTING
from .models import Annotation
from .settings import WINDOW_SIZE, TrainingSettings
from .text_utils import (
    SENTENCE_END,
    case_signature,
    character_context,
    left_contexts,
    starts_uppercase,
    tokenize,
)

log = logging.getLogger(__name__)

T = TypeVar("T")


def sample(items: Iterable[T], k: int, rng: random.Random) -> list[T]:
    """Reservoir sampling: ``k`` items drawn uniformly from ``items`` in one pass."""
    reservoir: list[T] = []
    for i, item in enumerate(items):
        if i < k:
            reservoir.append(item)
        else:
            j = rng.randint(0, i)
            if j < k:
                reservoir[j] = item
    return reservoir


def select_left_contexts(outside: Counter, inside: Counter, min_count: int = 1) -> set[str]:
    """Keep capitalized phrases seen left of annotations more often than inside them.

    A phrase qualifies if ``outside + inside >= min_count``,
    ``inside / outside < 1`` and ``outside >= 2``.
    """
    selected = set()
    for context, out_count in outside.items():
        if not starts_uppercase(context):
            continue
        in_count = inside.get(context, 0)
        if out_count + in_count < min_count:
            continue
        if in_count / out_count < 1 and out_count >= 2:
            selected.add(context)
    return selected


class DictionaryTrainer:
    """Builds the dictionaries of a model from gold annotations.

    The random generator is only used for equalizing tag counts; pass a
    seeded one for reproducible models.
    """

    def __init__(self, settings: TrainingSettings | None = None, rng: random.Random | None = None):
        self.settings = settings or TrainingSettings()
        self.rng = rng or random.Random(self.settings.seed)

    @property
    def min_count(self) -> int:
        return self.settings.min_dictionary_count

    def build_entity_dictionary(self, annotations: Iterable[Annotation]) -> DictionaryModel:
        log.info("Building entity dictionary")
        builder = DictionaryBuilder(min_count=self.min_count)
        for annotation in annotations:
            builder.add_document([annotation.value], annotation.tag)
        return builder.create()

    def build_annotation_dictionary(self, annotations: Iterable[Annotation]) -> DictionaryModel:
        log.info("Building annotation dictionary")
        classifier = TextClassifier(ANNOTATION_FEATURE_SETTING)
        return classifier.train(((a.value, a.tag) for a in annotations), min_count=self.min_count)

    def build_context_dictionary(self, text: str, annotations: Iterable[Annotation]) -> DictionaryModel:
        log.info("Building context dictionary")
        classifier = TextClassifier(CONTEXT_FEATURE_SETTING)
        instances = (
            (character_context(text, a.start, a.end, WINDOW_SIZE), a.tag) for a in annotations
        )
        return classifier.train(instances, min_count=self.min_count)

    def build_left_contexts(self, text: str, annotations: Iterable[Annotation]) -> set[str]:
        log.info("Building left contexts")
        outside: Counter = Counter()
        inside: Counter = Counter()
        for annotation in annotations:
            outside.update(left_contexts(text, annotation.start, 3))
            words = annotation.value.split()
            for i in range(1, len(words) + 1):
                inside[" ".join(words[:i])] += 1
        selected = select_left_contexts(outside, inside, self.min_count)
        log.debug("Left contexts: %s", sorted(selected))
        return selected

    def build_case_dictionary(self, text: str) -> set[str]:
        """Lower-cased tokens that are mostly written lowercase away from sentence starts."""
        log.info("Building case dictionary")
        builder = DictionaryBuilder(min_count=self.min_count)
        skip = True  # first token, and every token after a sentence end
        for token in tokenize(text):
            if skip:
                skip = False
            elif SENTENCE_END.fullmatch(token):
                skip = True
            else:
                token = token.strip()
                if len(token) > 1:
                    signature = case_signature(token)
                    if signature.lower().startswith("a"):
                        builder.add_document([token.lower()], signature[0])
        case_counts = builder.create()
        return {
            term for term, counts in case_counts.terms()
            if counts.get("a", 0) / sum(counts.values()) > 0.5
        }

    def equalize(self, annotations: Sequence[Annotation]) -> list[Annotation]:
        """Sample every tag down to the count of the rarest tag."""
        type_counts = Counter(a.tag for a in annotations)
        if not type_counts:
            return list(annotations)
        min_count = min(type_counts.values())
        equalized: list[Annotation] = []
        for tag in sorted(type_counts):
            of_type = [a for a in annotations if a.tag == tag]
            equalized.extend(sample(of_type, min_count, self.rng))
        log.info("Original distribution %s; reduced from %d to %d for equalization",
                 dict(type_counts), len(annotations), len(equalized))
        return sorted(equalized, key=lambda a: (a.start, a.end))
