"""The trained model record and its gzip-compressed JSON persistence."""
from __future__ import annotations

import gzip
import json
import logging
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .dictionary import DictionaryModel
from .errors import ModelLoadError
from .settings import LanguageMode, TaggingSettings, TrainingMode

log = logging.getLogger(__name__)

FORMAT_VERSION = 1


class NerModel(BaseModel):
    """Everything a trained tagger needs; replaced wholesale, never edited in place."""
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    language_mode: LanguageMode = LanguageMode.ENGLISH
    training_mode: TrainingMode = TrainingMode.COMPLETE
    annotation_dictionary: DictionaryModel = Field(default_factory=DictionaryModel.empty)
    entity_dictionary: DictionaryModel = Field(default_factory=DictionaryModel.empty)
    context_dictionary: Optional[DictionaryModel] = None
    left_contexts: frozenset[str] = frozenset()
    # English mode only
    case_dictionary: Optional[frozenset[str]] = None
    # Complete training mode only, lower-cased values
    remove_annotations: frozenset[str] = frozenset()
    concept_likelihood_order: Optional[tuple[str, ...]] = None
    tagging_settings: Optional[TaggingSettings] = None

    @property
    def settings(self) -> TaggingSettings:
        """Tagging settings, defaulting to those of the language mode."""
        return self.tagging_settings or TaggingSettings.for_language(self.language_mode)

    def entity_dictionary_contains(self, value: str) -> bool:
        return self.entity_dictionary.contains(value)

    @property
    def tags(self) -> list[str]:
        return self.annotation_dictionary.categories

    def summary(self) -> dict[str, Any]:
        return {
            "language_mode": self.language_mode.value,
            "training_mode": self.training_mode.value,
            "tags": self.tags,
            "annotation_dictionary_terms": self.annotation_dictionary.num_terms,
            "entity_dictionary_terms": self.entity_dictionary.num_terms,
            "context_dictionary_terms": self.context_dictionary.num_terms if self.context_dictionary else 0,
            "left_contexts": len(self.left_contexts),
            "case_dictionary": len(self.case_dictionary) if self.case_dictionary is not None else 0,
            "remove_annotations": len(self.remove_annotations),
            "concept_likelihood_order": list(self.concept_likelihood_order or []),
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "format_version": FORMAT_VERSION,
            "language_mode": self.language_mode.value,
            "training_mode": self.training_mode.value,
            "annotation_dictionary": self.annotation_dictionary.to_dict(),
            "entity_dictionary": self.entity_dictionary.to_dict(),
            "context_dictionary": self.context_dictionary.to_dict() if self.context_dictionary else None,
            "left_contexts": sorted(self.left_contexts),
            "case_dictionary": sorted(self.case_dictionary) if self.case_dictionary is not None else None,
            "remove_annotations": sorted(self.remove_annotations),
            "concept_likelihood_order": list(self.concept_likelihood_order)
            if self.concept_likelihood_order is not None else None,
            "tagging_settings": self.tagging_settings.model_dump() if self.tagging_settings else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> NerModel:
        context = data.get("context_dictionary")
        case = data.get("case_dictionary")
        order = data.get("concept_likelihood_order")
        tagging = data.get("tagging_settings")
        return cls(
            language_mode=LanguageMode(data["language_mode"]),
            training_mode=TrainingMode(data["training_mode"]),
            annotation_dictionary=DictionaryModel.from_dict(data["annotation_dictionary"]),
            entity_dictionary=DictionaryModel.from_dict(data["entity_dictionary"]),
            context_dictionary=DictionaryModel.from_dict(context) if context is not None else None,
            left_contexts=frozenset(data.get("left_contexts", [])),
            case_dictionary=frozenset(case) if case is not None else None,
            remove_annotations=frozenset(data.get("remove_annotations", [])),
            concept_likelihood_order=tuple(order) if order is not None else None,
            tagging_settings=TaggingSettings.model_validate(tagging) if tagging else None,
        )


def save_model(model: NerModel, path: str | Path) -> Path:
    """Write the model as gzip-compressed JSON."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with gzip.open(path, "wt", encoding="utf-8") as f:
        json.dump(model.to_dict(), f, ensure_ascii=False)
    log.info("Model saved to %s: %s", path, model.summary())
    return path


def load_model(path: str | Path) -> NerModel:
    path = Path(path)
    try:
        with gzip.open(path, "rt", encoding="utf-8") as f:
            data = json.load(f)
        model = NerModel.from_dict(data)
    except (OSError, EOFError, json.JSONDecodeError) as e:
        raise ModelLoadError(f"Cannot read model file {path}: {e}") from e
    except (KeyError, TypeError, ValueError, ValidationError) as e:
        raise ModelLoadError(f"Malformed model file {path}: {e}") from e
    log.info("Model loaded from %s: %s", path, model.summary())
    return model
