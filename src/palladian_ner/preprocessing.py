"""Correction stages applied to the raw candidate set before classification.

Every stage takes a set of candidates and returns a new set; the input is
never modified. ``preprocess`` runs the enabled stages in their fixed order:

1. remove_incorrectly_tagged      values blacklisted during Complete training
2. unwrap_entities                split ALL-UPPERCASE candidates into known parts
3. unwrap_with_context            strip learned left-context words ("President")
4. remove_date_fragments          "June John Hiatt" -> "John Hiatt"
5. remove_sentence_start_errors   single words that are usually lowercase
6. fix_start_errors               cut leading usually-lowercase words
7. remove_dates                   candidates that are only a date fragment
"""
from __future__ import annotations

import logging
from typing import AbstractSet

import regex

from .model import NerModel
from .models import CANDIDATE_TAG, Annotation
from .settings import TaggingSettings
from .text_utils import (
    is_completely_uppercase,
    is_date_fragment,
    strip_date_fragments,
    sub_phrases,
    utf16_length,
)

log = logging.getLogger(__name__)

_SINGLE_SPACE = regex.compile(r"\s")

Candidates = AbstractSet[Annotation]


def _replace(annotations: Candidates, to_remove: set, to_add: set) -> set[Annotation]:
    return (set(annotations) - to_remove) | to_add


def remove_incorrectly_tagged(annotations: Candidates, model: NerModel) -> set[Annotation]:
    kept = {a for a in annotations if a.value.lower() not in model.remove_annotations}
    log.debug("Removed %d incorrectly tagged entities in training data", len(annotations) - len(kept))
    return kept


def unwrap_entities(annotations: Candidates, model: NerModel) -> set[Annotation]:
    """Replace an all-uppercase candidate by the known entities it contains.

    "NEW YORK CITY AND DRESDEN" becomes "NEW YORK CITY" and "DRESDEN" if those
    are other candidates of the text or entries of the entity dictionary.
    """
    to_add: set[Annotation] = set()
    to_remove: set[Annotation] = set()
    for annotation in annotations:
        if not is_completely_uppercase(annotation.value):
            continue
        others = {a.value.lower() for a in annotations if a != annotation}
        unwrapped = {
            Annotation(start=annotation.start + offset, value=part, tag=CANDIDATE_TAG)
            for offset, part in sub_phrases(annotation.value)
            if part.lower() in others or model.entity_dictionary_contains(part)
        }
        if unwrapped:
            log.debug("Unwrapped %s in %d parts: %s", annotation.value, len(unwrapped),
                      sorted(a.value for a in unwrapped))
            to_add |= unwrapped
            to_remove.add(annotation)
    log.debug("Unwrapping removed %d, added %d entities", len(to_remove), len(to_add))
    return _replace(annotations, to_remove, to_add)


def unwrap_with_context(annotations: Candidates, model: NerModel) -> set[Annotation]:
    """Split a candidate at a learned left-context word.

    "President Barack Obama" with the left context "President" gives
    "Barack Obama"; parts of the cut-off prefix found in the entity
    dictionary become candidates of their own.
    """
    to_add: set[Annotation] = set()
    to_remove: set[Annotation] = set()
    contexts = sorted(model.left_contexts)
    for annotation in annotations:
        value = annotation.value
        if model.entity_dictionary_contains(value):
            continue
        for context in contexts:
            if value.find(context + " ") == 0:
                cut = len(context) + 1
            else:
                index = value.find(" " + context + " ")
                if index < 0:
                    continue
                cut = index + len(context) + 2
            suffix = value[cut:].lstrip()
            if suffix:
                suffix_start = annotation.start + utf16_length(value[:len(value) - len(suffix)])
                to_add.add(Annotation(start=suffix_start, value=suffix, tag=annotation.tag))
            for offset, part in sub_phrases(value[:cut]):
                if model.entity_dictionary_contains(part):
                    log.debug("Add from prefix %s", part)
                    to_add.add(Annotation(start=annotation.start + offset, value=part, tag=CANDIDATE_TAG))
            to_remove.add(annotation)
            log.debug("Add %s, delete %s (left context: %s)", suffix, value, context)
            break
    return _replace(annotations, to_remove, to_add)


def remove_date_fragments(annotations: Candidates) -> set[Annotation]:
    to_add: set[Annotation] = set()
    to_remove: set[Annotation] = set()
    for annotation in annotations:
        stripped = strip_date_fragments(annotation.start, annotation.value)
        if stripped is None:
            continue
        to_remove.add(annotation)
        start, value = stripped
        if value and not is_date_fragment(value):
            log.debug("Removed date fragment from '%s' gives '%s'", annotation.value, value)
            to_add.add(Annotation(start=start, value=value, tag=annotation.tag))
    log.debug("Removed %d partial date annotations", len(to_remove))
    return _replace(annotations, to_remove, to_add)


def remove_sentence_start_errors(annotations: Candidates, model: NerModel) -> set[Annotation]:
    """Drop single words such as "This" that are usually written lowercase."""
    case_dictionary = model.case_dictionary or frozenset()
    kept = {
        a for a in annotations
        if " " in a.value or a.value.lower() not in case_dictionary
    }
    log.debug("Removed %d words using case dictionary", len(annotations) - len(kept))
    return kept


def fix_start_errors(annotations: Candidates, model: NerModel) -> set[Annotation]:
    """Cut leading words that are usually lowercase from multi-word candidates.

    Cutting stops at the first word that is not in the case dictionary, or
    as soon as the remainder is a known entity. A candidate made only of
    such words is dropped.
    """
    case_dictionary = model.case_dictionary or frozenset()
    to_add: set[Annotation] = set()
    to_remove: set[Annotation] = set()
    for annotation in annotations:
        value = annotation.value
        parts = _SINGLE_SPACE.split(value)
        if len(parts) == 1:
            continue
        offset_cut = 0
        new_value = value
        for token in parts:
            if model.entity_dictionary_contains(new_value):
                break
            if token.lower() not in case_dictionary:
                break
            offset_cut += len(token) + 1
            if offset_cut >= len(value):
                break
            new_value = value[offset_cut:]
        if offset_cut >= len(value):
            log.debug("Drop '%s' completely because of lc/uc ratio", value)
            to_remove.add(annotation)
        elif offset_cut > 0:
            log.debug("Correct '%s' to '%s' because of lc/uc ratios", value, new_value)
            to_remove.add(annotation)
            to_add.add(Annotation(start=annotation.start + utf16_length(value[:offset_cut]),
                                  value=new_value, tag=annotation.tag))
    log.debug("Adding %d, removing %d through case dictionary unwrapping", len(to_add), len(to_remove))
    return _replace(annotations, to_remove, to_add)


def remove_dates(annotations: Candidates) -> set[Annotation]:
    kept = {a for a in annotations if not is_date_fragment(a.value)}
    log.debug("Removed %d purely date annotations", len(annotations) - len(kept))
    return kept


def preprocess(annotations: Candidates, model: NerModel,
               settings: TaggingSettings | None = None) -> set[Annotation]:
    settings = settings or model.settings
    result = set(annotations)
    if settings.remove_incorrectly_tagged_in_training:
        result = remove_incorrectly_tagged(result, model)
    if settings.unwrap_entities:
        result = unwrap_entities(result, model)
    if settings.unwrap_entities_with_context and model.left_contexts:
        result = unwrap_with_context(result, model)
    if settings.remove_date_fragments:
        result = remove_date_fragments(result)
    if settings.remove_sentence_start_errors and model.case_dictionary is not None:
        result = remove_sentence_start_errors(result, model)
    if settings.fix_start_errors and model.case_dictionary is not None:
        result = fix_start_errors(result, model)
    if settings.remove_dates:
        result = remove_dates(result)
    return result
