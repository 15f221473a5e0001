"""FastAPI application exposing the Palladian NER tagger."""
from __future__ import annotations
import logging
from typing import Optional

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field

from src.palladian_ner.errors import ModelLoadError, ModelNotLoaded
from src.palladian_ner.models import Entity, NERResult
from src.palladian_ner.settings import TaggingSettings, resolve_model_path
from src.palladian_ner.tagger import PalladianNer

log = logging.getLogger(__name__)

app = FastAPI(
    title="Palladian NER API",
    description="Dictionary-based named entity recognition service.",
    version="1.0.0",
)

# ---------------------------------------------------------------------------
# Lazy-loaded global resources
# ---------------------------------------------------------------------------
_tagger: Optional[PalladianNer] = None


def _get_tagger() -> PalladianNer:
    """Load the model on first use; raises ModelNotLoaded if it cannot be read."""
    global _tagger
    if _tagger is None:
        path = resolve_model_path()
        if not path.exists():
            raise ModelNotLoaded(f"Model file not found: {path}")
        try:
            _tagger = PalladianNer.from_model_file(path)
        except ModelLoadError as e:
            raise ModelNotLoaded(str(e)) from e
    return _tagger


def set_tagger(tagger: Optional[PalladianNer]) -> None:
    """Replace the served tagger (None forces a reload from disk on next use)."""
    global _tagger
    _tagger = tagger


# ---------------------------------------------------------------------------
# Request / response models
# ---------------------------------------------------------------------------
class ExtractRequest(BaseModel):
    text: str = Field(..., description="Text to extract entities from")
    tag_urls: Optional[bool] = Field(None, description="Override URL tagging")
    tag_dates: Optional[bool] = Field(None, description="Override date tagging")


class ExtractResponse(BaseModel):
    entities: list[Entity]
    entity_labels: list[str]


class ModelInfo(BaseModel):
    language_mode: str
    training_mode: str
    tags: list[str]
    annotation_dictionary_terms: int
    entity_dictionary_terms: int
    context_dictionary_terms: int
    left_contexts: int
    case_dictionary: int
    remove_annotations: int
    concept_likelihood_order: list[str] = []


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------
@app.post("/api/entities/extract", response_model=ExtractResponse)
def extract_entities(req: ExtractRequest):
    """Extract named entities from the given text."""
    try:
        tagger = _get_tagger()
    except ModelNotLoaded as e:
        raise HTTPException(status_code=503, detail=str(e))

    overrides = {k: v for k, v in (("tag_urls", req.tag_urls), ("tag_dates", req.tag_dates)) if v is not None}
    if overrides:
        settings = tagger.settings.model_copy(update=overrides)
        tagger = PalladianNer(tagging_settings=settings, model=tagger.model)

    result = NERResult.from_annotations(tagger.get_annotations(req.text))
    return ExtractResponse(entities=result.entities, entity_labels=result.entity_labels)


@app.get("/api/model", response_model=ModelInfo)
def model_info():
    """Summary of the loaded model."""
    try:
        tagger = _get_tagger()
    except ModelNotLoaded as e:
        raise HTTPException(status_code=503, detail=str(e))
    return ModelInfo(**tagger.model.summary())


@app.get("/api/health")
def health_check():
    """Health check endpoint."""
    return {"status": "ok", "model_loaded": _tagger is not None}
