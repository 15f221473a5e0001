"""N-gram feature extraction for the dictionary classifiers."""
from __future__ import annotations

from collections import Counter
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .text_utils import tokenize


class TextFeatureType(str, Enum):
    CHAR_NGRAMS = "char"
    WORD_NGRAMS = "word"


class FeatureSetting(BaseModel):
    """Which n-grams to extract from a text and how many distinct ones to keep."""
    model_config = ConfigDict(frozen=True)

    feature_type: TextFeatureType = TextFeatureType.CHAR_NGRAMS
    min_n: int = Field(4, gt=0)
    max_n: int = Field(7, gt=0)
    max_terms: int = Field(800, gt=0)
    # word n-grams only
    min_term_length: int = 3
    max_term_length: int = 20

    @model_validator(mode="after")
    def _check_range(self) -> FeatureSetting:
        if self.max_n < self.min_n:
            raise ValueError(f"max_n ({self.max_n}) must be >= min_n ({self.min_n})")
        return self


ANNOTATION_FEATURE_SETTING = FeatureSetting(feature_type=TextFeatureType.CHAR_NGRAMS, min_n=2, max_n=8)
CONTEXT_FEATURE_SETTING = FeatureSetting(feature_type=TextFeatureType.CHAR_NGRAMS, min_n=4, max_n=6)


def _char_ngrams(text: str, min_n: int, max_n: int):
    if len(text) < min_n:
        yield text
        return
    for n in range(min_n, max_n + 1):
        for i in range(len(text) - n + 1):
            yield text[i:i + n]


def _word_ngrams(text: str, setting: FeatureSetting):
    words = tokenize(text)
    for n in range(setting.min_n, setting.max_n + 1):
        for i in range(len(words) - n + 1):
            term = " ".join(words[i:i + n])
            if n == 1 and not (setting.min_term_length <= len(term) <= setting.max_term_length):
                continue
            yield term


def extract_features(text: str, setting: FeatureSetting) -> Counter:
    """Lower-cased n-gram terms of ``text`` with their frequencies.

    At most ``setting.max_terms`` distinct terms are kept, in order of first
    occurrence.
    """
    text = text.lower()
    if not text.strip():
        return Counter()
    if setting.feature_type == TextFeatureType.CHAR_NGRAMS:
        terms = _char_ngrams(text, setting.min_n, setting.max_n)
    else:
        terms = _word_ngrams(text, setting)

    counts: Counter = Counter()
    for term in terms:
        if term not in counts and len(counts) >= setting.max_terms:
            continue
        counts[term] += 1
    return counts
