"""Stages applied to classified annotations: re-scoring, overrides, merging, nesting."""
from __future__ import annotations

import logging
from typing import Iterable, Sequence

from .classifier import CategoryEqualizationScorer, TextClassifier
from .model import NerModel
from .models import NO_ENTITY, OUTSIDE_TAG, Annotation, CategoryEntries, ClassifiedAnnotation
from .settings import WINDOW_SIZE, LanguageMode, TaggingSettings
from .text_utils import character_context, text_offsets

log = logging.getLogger(__name__)


def _changed_pct(changed: int, total: int) -> float:
    return 100.0 * changed / total if changed else 0.0


def switch_tags_using_context(annotations: Sequence[ClassifiedAnnotation], text: str,
                              model: NerModel) -> list[ClassifiedAnnotation]:
    """Add the context classification of every annotation to its distribution.

    The sum of the two distributions is rescaled to add up to 1.
    """
    if model.context_dictionary is None or not len(model.context_dictionary):
        return list(annotations)
    classifier = TextClassifier.for_model(model.context_dictionary, CategoryEqualizationScorer())
    switched = []
    changed = 0
    for annotation in annotations:
        context = character_context(text, annotation.start, annotation.end, WINDOW_SIZE)
        entries = annotation.category_entries
        if len(context.strip()) > 2:
            context_entries = classifier.classify(context, model.context_dictionary)
            entries = entries.merge(context_entries).normalized()
        result = ClassifiedAnnotation.of(annotation, entries)
        if not result.same_tag(annotation):
            log.debug("Changed %s from %s to %s, context: %s",
                      annotation.value, annotation.tag, result.tag, context)
            changed += 1
        switched.append(result)
    log.debug("Changed %.2f %% using patterns", _changed_pct(changed, len(annotations)))
    return switched


def switch_tags_using_dictionary(annotations: Sequence[ClassifiedAnnotation],
                                 model: NerModel) -> list[ClassifiedAnnotation]:
    """Known entities take the distribution of their entity dictionary entry.

    With a concept likelihood order, the first listed concept the entry
    knows wins outright; without one the full distribution is kept.
    """
    switched = []
    changed = 0
    for annotation in annotations:
        entries = model.entity_dictionary.get_category_entries(annotation.value)
        if len(entries) > 0:
            for concept in model.concept_likelihood_order or ():
                if entries.probability(concept) > 0:
                    entries = CategoryEntries.single(concept)
                    break
            if annotation.tag != entries.most_likely_category:
                log.debug("Changed %s from %s to %s with dictionary",
                          annotation.value, annotation.tag, entries.most_likely_category)
                changed += 1
            annotation = ClassifiedAnnotation.of(annotation, entries)
        switched.append(annotation)
    log.debug("Changed %.2f %% using entity dictionary", _changed_pct(changed, len(annotations)))
    return switched


def remove_no_entities(annotations: Iterable[ClassifiedAnnotation]) -> list[ClassifiedAnnotation]:
    return [a for a in annotations if a.tag != NO_ENTITY]


def combine_annotations(annotations: Iterable[ClassifiedAnnotation], text: str) -> list[ClassifiedAnnotation]:
    """Merge same-tag annotations separated by nothing or one whitespace character.

    Outside-tagged annotations are dropped first. A merged annotation spans
    the text slice of its parts and keeps the distribution of the first part.
    """
    ordered = sorted((a for a in annotations if a.tag.upper() != OUTSIDE_TAG),
                     key=lambda a: (a.start, a.end))
    offsets = text_offsets(text)
    combined: list[ClassifiedAnnotation] = []
    for current in ordered:
        if combined:
            previous = combined[-1]
            gap = text[offsets.to_index(previous.end):offsets.to_index(current.start)]
            adjacent = current.start >= previous.end and (gap == "" or (len(gap) == 1 and gap.isspace()))
            if adjacent and current.same_tag(previous):
                combined[-1] = ClassifiedAnnotation(
                    start=previous.start,
                    value=text[offsets.to_index(previous.start):offsets.to_index(current.end)],
                    tag=previous.tag,
                    category_entries=previous.category_entries,
                )
                continue
        combined.append(current)
    return combined


def to_classified(annotations: Iterable[Annotation]) -> list[ClassifiedAnnotation]:
    """Wrap rule-based annotations with a certain distribution over their own tag."""
    return [ClassifiedAnnotation.of(a, CategoryEntries.single(a.tag)) for a in annotations]


def remove_nested(annotations: Iterable[ClassifiedAnnotation]) -> list[ClassifiedAnnotation]:
    """Drop every annotation lying inside the span of another one.

    Of identical spans the earliest in ``annotations`` is kept.
    """
    ordered = sorted(annotations, key=lambda a: (a.start, -a.end))
    kept: list[ClassifiedAnnotation] = []
    max_end = -1
    for annotation in ordered:
        if annotation.end <= max_end:
            continue
        kept.append(annotation)
        max_end = annotation.end
    return kept


def postprocess(annotations: Sequence[ClassifiedAnnotation], text: str, model: NerModel,
                settings: TaggingSettings | None = None) -> list[ClassifiedAnnotation]:
    settings = settings or model.settings
    log.debug("Start post processing %d annotations", len(annotations))
    result = list(annotations)
    if settings.switch_tag_using_context:
        result = switch_tags_using_context(result, text, model)
    if settings.switch_tag_using_dictionary:
        result = switch_tags_using_dictionary(result, model)
    result = remove_no_entities(result)
    if model.language_mode == LanguageMode.LANGUAGE_INDEPENDENT:
        result = combine_annotations(result, text)
    return result
