"""Compare predicted annotations with gold annotations, MUC style.

Error types of a prediction:

- CORRECT : exact boundaries, same tag
- ERROR1  : overlaps no gold annotation (false positive)
- ERROR3  : exact boundaries, different tag
- ERROR4  : overlapping boundaries, same tag
- ERROR5  : overlapping boundaries, different tag

ERROR2 marks a gold annotation no prediction overlaps (false negative).
"""
from __future__ import annotations

import bisect
import logging
from collections import Counter, defaultdict
from enum import Enum
from typing import Any, Optional, Sequence

from .models import Annotation

log = logging.getLogger(__name__)


class ErrorType(str, Enum):
    CORRECT = "CORRECT"
    ERROR1 = "ERROR1"
    ERROR2 = "ERROR2"
    ERROR3 = "ERROR3"
    ERROR4 = "ERROR4"
    ERROR5 = "ERROR5"


_PREDICTION_TYPES = (ErrorType.ERROR1, ErrorType.ERROR3, ErrorType.ERROR4, ErrorType.ERROR5, ErrorType.CORRECT)


def _f1(p: float, r: float) -> float:
    return 2 * p * r / (p + r) if p + r > 0 else 0.0


class EvaluationResult:
    """Classified predictions plus per-tag counts."""

    def __init__(self, gold_counts: Counter):
        self.annotations: dict[ErrorType, list[Annotation]] = defaultdict(list)
        # (error type, tag) -> count; predictions count under their predicted tag
        self.counts: Counter = Counter()
        self.gold_counts = gold_counts

    def add(self, error_type: ErrorType, annotation: Annotation) -> None:
        self.annotations[error_type].append(annotation)
        self.counts[(error_type, annotation.tag)] += 1

    def get_annotations(self, error_type: ErrorType) -> list[Annotation]:
        return list(self.annotations.get(error_type, []))

    def count(self, error_type: ErrorType, tag: Optional[str] = None) -> int:
        if tag is None:
            return sum(n for (t, _), n in self.counts.items() if t == error_type)
        return self.counts.get((error_type, tag), 0)

    def possible(self, tag: Optional[str] = None) -> int:
        if tag is None:
            return sum(self.gold_counts.values())
        return self.gold_counts.get(tag, 0)

    @property
    def tags(self) -> list[str]:
        return sorted(set(self.gold_counts) | {tag for _, tag in self.counts})

    def precision(self, tag: Optional[str] = None, muc: bool = False) -> float:
        c = self.count(ErrorType.CORRECT, tag)
        predicted = sum(self.count(t, tag) for t in _PREDICTION_TYPES)
        if predicted == 0:
            return 0.0
        if muc:
            partial = self.count(ErrorType.ERROR3, tag) + self.count(ErrorType.ERROR4, tag)
            return (partial + 2 * c) / (2 * predicted)
        return c / predicted

    def recall(self, tag: Optional[str] = None, muc: bool = False) -> float:
        possible = self.possible(tag)
        if possible == 0:
            return 0.0
        c = self.count(ErrorType.CORRECT, tag)
        if muc:
            partial = self.count(ErrorType.ERROR3, tag) + self.count(ErrorType.ERROR4, tag)
            return (partial + 2 * c) / (2 * possible)
        return c / possible

    def f1(self, tag: Optional[str] = None, muc: bool = False) -> float:
        return _f1(self.precision(tag, muc), self.recall(tag, muc))

    def _scores(self, tag: Optional[str]) -> dict[str, float]:
        return {
            "precision": round(self.precision(tag), 4),
            "recall": round(self.recall(tag), 4),
            "f1": round(self.f1(tag), 4),
            "muc_precision": round(self.precision(tag, muc=True), 4),
            "muc_recall": round(self.recall(tag, muc=True), 4),
            "muc_f1": round(self.f1(tag, muc=True), 4),
        }

    def summary(self) -> dict[str, Any]:
        return {
            "counts": {t.value: self.count(t) for t in ErrorType},
            "possible": self.possible(),
            "micro": self._scores(None),
            "tags": {tag: self._scores(tag) for tag in self.tags},
        }


def evaluate_annotations(predicted: Sequence[Annotation], gold: Sequence[Annotation]) -> EvaluationResult:
    """Classify every prediction against ``gold`` (assumed not to overlap itself)."""
    gold_sorted = sorted(gold, key=lambda a: (a.start, a.end))
    starts = [g.start for g in gold_sorted]
    result = EvaluationResult(Counter(g.tag for g in gold_sorted))
    hit = [False] * len(gold_sorted)

    for prediction in sorted(predicted, key=lambda a: (a.start, a.end)):
        exact = None
        overlapping = []
        j = bisect.bisect_left(starts, prediction.end) - 1
        while j >= 0 and gold_sorted[j].end > prediction.start:
            g = gold_sorted[j]
            hit[j] = True
            if g.start == prediction.start and g.end == prediction.end:
                exact = g
            else:
                overlapping.append(g)
            j -= 1

        if exact is not None:
            error_type = ErrorType.CORRECT if exact.same_tag(prediction) else ErrorType.ERROR3
        elif overlapping:
            same = any(g.same_tag(prediction) for g in overlapping)
            error_type = ErrorType.ERROR4 if same else ErrorType.ERROR5
        else:
            error_type = ErrorType.ERROR1
        result.add(error_type, prediction)

    for g, was_hit in zip(gold_sorted, hit):
        if not was_hit:
            result.add(ErrorType.ERROR2, g)

    log.info("Evaluation: %s", {t.value: result.count(t) for t in ErrorType})
    return result
