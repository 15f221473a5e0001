"""Term -> category count dictionaries, built once and then only queried."""
from __future__ import annotations

import logging
from collections import Counter, defaultdict
from typing import Any, Iterable, Iterator, Mapping

from .features import FeatureSetting
from .models import CategoryEntries

log = logging.getLogger(__name__)


class DictionaryModel:
    """Read-only mapping from a lower-cased term to per-category document counts.

    Besides the term table the model keeps the number of documents per
    category (the priors) and the summed term counts per category, which
    the category equalization scorer needs.
    """

    def __init__(
        self,
        terms: Mapping[str, Mapping[str, int]],
        category_doc_counts: Mapping[str, int],
        feature_setting: FeatureSetting | None = None,
    ):
        self._terms = {t: dict(c) for t, c in terms.items()}
        self._doc_counts = dict(category_doc_counts)
        term_sums: Counter = Counter()
        for counts in self._terms.values():
            term_sums.update(counts)
        self._term_sums = dict(term_sums)
        self.feature_setting = feature_setting

    @classmethod
    def empty(cls, feature_setting: FeatureSetting | None = None) -> DictionaryModel:
        return cls({}, {}, feature_setting)

    # ---- queries ----

    def get_counts(self, term: str) -> dict[str, int]:
        return self._terms.get(term.lower(), {})

    def get_category_entries(self, term: str) -> CategoryEntries:
        counts = self.get_counts(term)
        if not counts:
            return CategoryEntries()
        return CategoryEntries.from_counts(counts)

    def contains(self, term: str) -> bool:
        return term.lower() in self._terms

    __contains__ = contains

    def category_term_count(self, category: str) -> int:
        return self._term_sums.get(category, 0)

    @property
    def priors(self) -> CategoryEntries:
        return CategoryEntries.from_counts(self._doc_counts)

    @property
    def categories(self) -> list[str]:
        return sorted(self._doc_counts)

    @property
    def num_terms(self) -> int:
        return len(self._terms)

    @property
    def num_documents(self) -> int:
        return sum(self._doc_counts.values())

    def terms(self) -> Iterator[tuple[str, dict[str, int]]]:
        return iter(self._terms.items())

    def __len__(self) -> int:
        return len(self._terms)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DictionaryModel):
            return NotImplemented
        return (self._terms == other._terms and self._doc_counts == other._doc_counts
                and self.feature_setting == other.feature_setting)

    def __repr__(self) -> str:
        return (f"DictionaryModel(terms={self.num_terms}, categories={self.categories}, "
                f"documents={self.num_documents})")

    # ---- persistence ----

    def to_dict(self) -> dict[str, Any]:
        return {
            "feature_setting": self.feature_setting.model_dump(mode="json") if self.feature_setting else None,
            "category_doc_counts": self._doc_counts,
            "terms": self._terms,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> DictionaryModel:
        setting = data.get("feature_setting")
        return cls(
            terms=data.get("terms", {}),
            category_doc_counts=data.get("category_doc_counts", {}),
            feature_setting=FeatureSetting.model_validate(setting) if setting else None,
        )


class DictionaryBuilder:
    """Accumulates documents and produces one immutable DictionaryModel.

    A term whose count over all categories stays below ``min_count`` is
    pruned on ``create()``.
    """

    def __init__(self, feature_setting: FeatureSetting | None = None, min_count: int = 1):
        self.feature_setting = feature_setting
        self.min_count = min_count
        self._terms: dict[str, Counter] = defaultdict(Counter)
        self._doc_counts: Counter = Counter()

    def add_document(self, terms: Iterable[str], category: str) -> DictionaryBuilder:
        self._doc_counts[category] += 1
        for term in {t.lower() for t in terms}:
            self._terms[term][category] += 1
        return self

    def create(self) -> DictionaryModel:
        kept = {
            term: counts for term, counts in self._terms.items()
            if sum(counts.values()) >= self.min_count
        }
        pruned = len(self._terms) - len(kept)
        if pruned:
            log.debug("Pruned %d of %d terms below count %d", pruned, len(self._terms), self.min_count)
        return DictionaryModel(kept, self._doc_counts, self.feature_setting)
