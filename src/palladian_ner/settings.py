"""Training and tagging settings, plus the YAML config reader."""
from __future__ import annotations

import logging
import os
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field

log = logging.getLogger(__name__)

# -----------------------------
# Constants / Defaults
# -----------------------------
PROJECT_ROOT = Path(__file__).resolve().parents[2]
DEFAULT_CONFIG_PATH = PROJECT_ROOT / "configs" / "config.yaml"
DEFAULT_MODEL_PATH = PROJECT_ROOT / "models" / "palladian_ner.json.gz"
MODEL_PATH_ENV = "PALLADIAN_NER_MODEL"

# Characters taken on each side of an annotation for its context window
WINDOW_SIZE = 40


class LanguageMode(str, Enum):
    LANGUAGE_INDEPENDENT = "LanguageIndependent"
    ENGLISH = "English"


class TrainingMode(str, Enum):
    # second pass that learns from the tagger's own false positives
    COMPLETE = "Complete"
    SPARSE = "Sparse"


class TrainingSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    language_mode: LanguageMode = LanguageMode.ENGLISH
    training_mode: TrainingMode = TrainingMode.COMPLETE
    min_dictionary_count: int = Field(1, ge=1)
    equalize_type_counts: bool = False
    seed: Optional[int] = None


class TaggingSettings(BaseModel):
    """Switches for the optional pre- and post-processing stages."""
    model_config = ConfigDict(extra="forbid")

    remove_incorrectly_tagged_in_training: bool = True
    unwrap_entities: bool = True
    unwrap_entities_with_context: bool = True
    remove_date_fragments: bool = True
    remove_sentence_start_errors: bool = True
    fix_start_errors: bool = True
    remove_dates: bool = True
    switch_tag_using_context: bool = True
    switch_tag_using_dictionary: bool = True
    tag_urls: bool = True
    tag_dates: bool = True

    @classmethod
    def for_language(cls, mode: LanguageMode, **overrides: Any) -> TaggingSettings:
        if mode == LanguageMode.ENGLISH:
            return cls(**overrides)
        defaults = {name: False for name in cls.model_fields}
        defaults["switch_tag_using_context"] = True
        defaults["switch_tag_using_dictionary"] = True
        defaults.update(overrides)
        return cls(**defaults)


def _abs_from_project(p: Optional[str]) -> Optional[Path]:
    if not p:
        return None
    q = Path(p)
    return q if q.is_absolute() else (PROJECT_ROOT / q)


def read_config(cfg_path: Path = DEFAULT_CONFIG_PATH) -> Dict[str, Any]:
    """Read the YAML config into a flat dict; a missing file gives ``{}``."""
    cfg: Dict[str, Any] = {}
    if not cfg_path.exists():
        log.debug("No config at %s, using defaults", cfg_path)
        return cfg
    with open(cfg_path, "r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    paths = raw.get("paths") or {}
    model_path = _abs_from_project(paths.get("model_path"))
    if model_path:
        cfg["model_path"] = model_path

    cfg["training"] = dict(raw.get("training") or {})
    cfg["tagging"] = dict(raw.get("tagging") or {})
    return cfg


def load_settings(cfg_path: Path = DEFAULT_CONFIG_PATH) -> tuple[TrainingSettings, Dict[str, Any]]:
    """Return the configured training settings and the raw tagging overrides.

    Tagging overrides stay a dict because their defaults depend on the
    language mode of the model they are applied to.
    """
    cfg = read_config(cfg_path)
    training = TrainingSettings(**cfg.get("training", {}))
    tagging_overrides = cfg.get("tagging", {})
    # validate the keys now rather than at tagging time
    TaggingSettings.for_language(training.language_mode, **tagging_overrides)
    return training, tagging_overrides


def resolve_model_path(cfg_path: Path = DEFAULT_CONFIG_PATH) -> Path:
    env = os.environ.get(MODEL_PATH_ENV)
    if env:
        return Path(env)
    return read_config(cfg_path).get("model_path", DEFAULT_MODEL_PATH)
