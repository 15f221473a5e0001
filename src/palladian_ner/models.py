"""Pydantic models for annotations, category distributions and tagger output."""
from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .text_utils import utf16_length

# Pseudo-category of candidates known not to be entities
NO_ENTITY = "###NO_ENTITY###"
# Placeholder tag of unclassified candidates
CANDIDATE_TAG = "CANDIDATE"
# Generic "outside" tag used by column-format corpora
OUTSIDE_TAG = "O"


class CategoryEntries(BaseModel):
    """Category -> probability, ordered from most to least likely.

    Entries coming from independent scorers are summed by ``merge``; call
    ``normalized`` on the result to bring the values back into [0, 1].
    """
    model_config = ConfigDict(frozen=True)

    probabilities: dict[str, float] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _order_by_probability(cls, data: Any) -> Any:
        if isinstance(data, dict) and data.get("probabilities"):
            ordered = sorted(data["probabilities"].items(), key=lambda kv: (-kv[1], kv[0]))
            data = {**data, "probabilities": dict(ordered)}
        return data

    @classmethod
    def from_counts(cls, counts: dict[str, int | float]) -> CategoryEntries:
        total = sum(counts.values())
        if total <= 0:
            return cls()
        return cls(probabilities={c: n / total for c, n in counts.items() if n > 0})

    @classmethod
    def single(cls, category: str) -> CategoryEntries:
        return cls(probabilities={category: 1.0})

    @property
    def most_likely_category(self) -> str | None:
        return next(iter(self.probabilities), None)

    @property
    def categories(self) -> list[str]:
        return list(self.probabilities)

    def probability(self, category: str) -> float:
        return self.probabilities.get(category, 0.0)

    def merge(self, other: CategoryEntries) -> CategoryEntries:
        """Add the probabilities of ``other`` to this distribution."""
        merged = dict(self.probabilities)
        for category, prob in other.probabilities.items():
            merged[category] = merged.get(category, 0.0) + prob
        return CategoryEntries(probabilities=merged)

    def normalized(self) -> CategoryEntries:
        """Scale the probabilities so that they add up to 1."""
        total = sum(self.probabilities.values())
        if total <= 0:
            return self
        return CategoryEntries(probabilities={c: p / total for c, p in self.probabilities.items()})

    def __len__(self) -> int:
        return len(self.probabilities)


class Annotation(BaseModel):
    """A tagged span of text.

    ``start`` and ``end`` are UTF-16 code-unit offsets, ``end`` is exclusive.
    """
    model_config = ConfigDict(frozen=True)

    start: int = Field(..., ge=0)
    value: str = Field(..., min_length=1)
    tag: str = CANDIDATE_TAG

    @property
    def end(self) -> int:
        return self.start + utf16_length(self.value)

    def same_tag(self, other: Annotation) -> bool:
        return self.tag.lower() == other.tag.lower()

    def overlaps(self, other: Annotation) -> bool:
        return self.start < other.end and other.start < self.end

    def contains(self, other: Annotation) -> bool:
        return self.start <= other.start and other.end <= self.end


class ClassifiedAnnotation(Annotation):
    """An annotation whose tag is the most likely category of its distribution."""

    category_entries: CategoryEntries = Field(default_factory=CategoryEntries)

    @model_validator(mode="before")
    @classmethod
    def _tag_from_entries(cls, data: Any) -> Any:
        if isinstance(data, dict) and data.get("category_entries") is not None and not data.get("tag"):
            entries = data["category_entries"]
            if not isinstance(entries, CategoryEntries):
                entries = CategoryEntries.model_validate(entries)
            data = {**data, "category_entries": entries,
                    "tag": entries.most_likely_category or CANDIDATE_TAG}
        return data

    @classmethod
    def of(cls, annotation: Annotation, entries: CategoryEntries) -> ClassifiedAnnotation:
        return cls(start=annotation.start, value=annotation.value, category_entries=entries)

    @property
    def confidence(self) -> float:
        return self.category_entries.probability(self.tag)

    def to_entity(self) -> Entity:
        return Entity(
            text=self.value,
            label=self.tag,
            start=self.start,
            end=self.end,
            confidence=round(self.confidence, 4),
        )

    def __hash__(self) -> int:
        return hash((self.start, self.value, self.tag))


class Entity(BaseModel):
    """A single recognized entity, as written to JSONL rows and API responses."""
    text: str
    label: str
    start: int
    end: int
    confidence: float = 0.0


class NERResult(BaseModel):
    """NER output for a single text."""
    entities: list[Entity] = []
    entity_labels: list[str] = []

    @classmethod
    def from_annotations(cls, annotations: list[ClassifiedAnnotation]) -> NERResult:
        entities = [a.to_entity() for a in annotations]
        return cls(entities=entities, entity_labels=sorted({e.label for e in entities}))
