"""PalladianNer: dictionary-based named entity recognizer.

Tagging a text runs these steps:

    candidates (StringTagger in English mode, TokenTagger otherwise)
      -> preprocess          (correction stages on the candidate set)
      -> classify            (annotation dictionary, drop P(NO_ENTITY) >= 0.5)
      -> postprocess         (context and dictionary re-scoring, token merging)
      -> + URL / DATETIME annotations, remove nested, sort by position

Training builds an NerModel from a column-format corpus and/or seed
annotations. In Complete training mode the tagger is evaluated on its own
training data afterwards, and its false positives are fed back into the
annotation dictionary as NO_ENTITY examples.
"""
from __future__ import annotations

import logging
import random
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Iterable, Optional, Sequence

from pydantic import BaseModel

from .candidates import StringTagger, Tagger, TokenTagger
from .classifier import TextClassifier
from .corpus import ColumnCorpus, read_column_file
from .dictionary import DictionaryBuilder
from .errors import ModelNotLoaded
from .evaluation import ErrorType, EvaluationResult, evaluate_annotations
from .extra_taggers import DateTimeTagger, UrlTagger
from .model import NerModel, load_model, save_model
from .models import NO_ENTITY, Annotation, ClassifiedAnnotation
from .postprocessing import postprocess, remove_nested, to_classified
from .preprocessing import preprocess
from .settings import LanguageMode, TaggingSettings, TrainingMode, TrainingSettings
from .trainer import DictionaryTrainer

log = logging.getLogger(__name__)


class TaggingOutcome(BaseModel):
    """Result for one text of a batch; ``error`` is set instead of raising."""
    index: int
    annotations: list[ClassifiedAnnotation] = []
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class PalladianNer:

    def __init__(
        self,
        training_settings: TrainingSettings | None = None,
        tagging_settings: TaggingSettings | None = None,
        model: NerModel | None = None,
        rng: random.Random | None = None,
    ):
        self.training_settings = training_settings or TrainingSettings()
        self.tagging_settings = tagging_settings
        self.model = model
        self.trainer = DictionaryTrainer(self.training_settings, rng)
        self._url_tagger = UrlTagger()
        self._date_tagger = DateTimeTagger()

    @classmethod
    def from_model_file(cls, path: str | Path, tagging_settings: TaggingSettings | None = None) -> PalladianNer:
        return cls(tagging_settings=tagging_settings, model=load_model(path))

    def _require_model(self) -> NerModel:
        if self.model is None:
            raise ModelNotLoaded("No model loaded; train or load a model first")
        return self.model

    @property
    def settings(self) -> TaggingSettings:
        """Explicit tagging settings, else those stored with or implied by the model."""
        if self.tagging_settings is not None:
            return self.tagging_settings
        return self._require_model().settings

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------
    def load_model(self, path: str | Path) -> NerModel:
        self.model = load_model(path)
        return self.model

    def save_model(self, path: str | Path) -> Path:
        return save_model(self._require_model(), path)

    # ------------------------------------------------------------------
    # Training
    # ------------------------------------------------------------------
    def train(
        self,
        training_file: str | Path,
        annotations: Sequence[Annotation] = (),
        model_path: str | Path | None = None,
    ) -> NerModel:
        """Train on a column-format file plus optional extra annotations."""
        corpus = read_column_file(training_file)
        additional = list(annotations)
        if additional:
            log.info("Add %d additional training annotations", len(additional))

        if self.training_settings.language_mode == LanguageMode.LANGUAGE_INDEPENDENT:
            model, training_annotations = self._train_language_independent(corpus, additional)
        else:
            model, training_annotations = self._train_english(corpus, additional)
        self.model = model

        if self.training_settings.training_mode == TrainingMode.COMPLETE:
            self.model = self._retrain_with_errors(corpus, training_annotations)

        if model_path is not None:
            self.save_model(model_path)
        return self.model

    def _base_model(self, language_mode: LanguageMode) -> dict:
        return {
            "language_mode": language_mode,
            "training_mode": self.training_settings.training_mode,
            "tagging_settings": self.tagging_settings,
        }

    def _train_language_independent(self, corpus: ColumnCorpus, additional: list[Annotation]):
        text = corpus.text
        # single tokens for the classifier, whole spans ("Phil Simmons") for everything else
        token_annotations = corpus.token_annotations + additional
        combined = corpus.annotations + additional
        model = NerModel(
            **self._base_model(LanguageMode.LANGUAGE_INDEPENDENT),
            left_contexts=frozenset(self.trainer.build_left_contexts(text, combined)),
            context_dictionary=self.trainer.build_context_dictionary(text, combined),
            entity_dictionary=self.trainer.build_entity_dictionary(combined),
            annotation_dictionary=self.trainer.build_annotation_dictionary(token_annotations),
        )
        return model, token_annotations

    def _train_english(self, corpus: ColumnCorpus, additional: list[Annotation]):
        text = corpus.text
        file_annotations = list(corpus.annotations)
        case_dictionary = self.trainer.build_case_dictionary(text)
        if self.training_settings.equalize_type_counts:
            file_annotations = self.trainer.equalize(file_annotations)

        left_contexts = self.trainer.build_left_contexts(text, file_annotations)
        context_dictionary = self.trainer.build_context_dictionary(text, file_annotations)

        annotations = file_annotations + additional
        model = NerModel(
            **self._base_model(LanguageMode.ENGLISH),
            case_dictionary=frozenset(case_dictionary),
            left_contexts=frozenset(left_contexts),
            context_dictionary=context_dictionary,
            entity_dictionary=self.trainer.build_entity_dictionary(annotations),
            annotation_dictionary=self.trainer.build_annotation_dictionary(annotations),
        )
        return model, annotations

    def _retrain_with_errors(self, corpus: ColumnCorpus, training_annotations: list[Annotation]) -> NerModel:
        """Second pass: learn from the false positives on the training text.

        Only the annotation dictionary is rebuilt; the context and entity
        dictionaries stay as trained in the first pass.
        """
        log.info("Start retraining (because of complete dataset, no sparse annotations)")
        model = self._require_model()
        result = evaluate_annotations(self.get_annotations(corpus.text), corpus.annotations)
        gold_values = {a.value for a in corpus.annotations}

        extended = list(training_annotations)
        remove_annotations = set()
        for wrong in result.get_annotations(ErrorType.ERROR1):
            extended.append(Annotation(start=wrong.start, value=wrong.value, tag=NO_ENTITY))
            # values that are an entity elsewhere in the gold standard stay allowed
            if wrong.value not in gold_values:
                remove_annotations.add(wrong.value.lower())
        log.info("%d annotations need to be completely removed", len(remove_annotations))

        return model.model_copy(update={
            "remove_annotations": frozenset(remove_annotations),
            "annotation_dictionary": self.trainer.build_annotation_dictionary(extended),
        })

    def train_from_annotations(
        self,
        annotations: Iterable[Annotation],
        model_path: str | Path | None = None,
    ) -> NerModel:
        """Train from seed annotations alone; expect modest results."""
        annotations = list(annotations)
        self.model = NerModel(
            **self._base_model(LanguageMode.ENGLISH),
            entity_dictionary=self.trainer.build_entity_dictionary(annotations),
            annotation_dictionary=self.trainer.build_annotation_dictionary(annotations),
        )
        if model_path is not None:
            self.save_model(model_path)
        return self.model

    def set_entity_dictionary(self, path: str | Path) -> NerModel:
        """Replace the entity dictionary with the one in ``path``.

        The first line gives the concept likelihood order, e.g.
        ``per>org>country>city>loc``; every further line is
        ``CONCEPT###ENTITY``. Other lines are ignored.
        """
        model = self._require_model()
        builder = DictionaryBuilder(min_count=self.training_settings.min_dictionary_count)
        order: tuple[str, ...] | None = None
        with open(path, "r", encoding="utf-8") as f:
            for lineno, line in enumerate(f):
                line = line.rstrip("\r\n")
                if lineno == 0:
                    concepts = tuple(c.strip() for c in line.split(">") if c.strip())
                    order = concepts or None
                    continue
                split = line.split("###")
                if len(split) == 2 and split[0] and split[1]:
                    builder.add_document([split[1]], split[0])
        entity_dictionary = builder.create()
        self.model = model.model_copy(update={
            "entity_dictionary": entity_dictionary,
            "concept_likelihood_order": order,
        })
        log.info("Added %d entities to the dictionary", entity_dictionary.num_terms)
        return self.model

    # ------------------------------------------------------------------
    # Tagging
    # ------------------------------------------------------------------
    def _candidate_tagger(self, model: NerModel) -> Tagger:
        if model.language_mode == LanguageMode.LANGUAGE_INDEPENDENT:
            return TokenTagger()
        return StringTagger()

    def _classify_candidates(self, candidates: Iterable[Annotation], model: NerModel) -> list[ClassifiedAnnotation]:
        classifier = TextClassifier.for_model(model.annotation_dictionary)
        classified = []
        for candidate in sorted(candidates, key=lambda a: (a.start, a.end, a.tag)):
            entries = classifier.classify(candidate.value, model.annotation_dictionary)
            if entries.probability(NO_ENTITY) < 0.5:
                classified.append(ClassifiedAnnotation.of(candidate, entries))
        return classified

    def get_annotations(self, text: str) -> list[ClassifiedAnnotation]:
        """Tag ``text``; annotations are sorted by position and never nested."""
        model = self._require_model()
        settings = self.settings

        candidates = set(self._candidate_tagger(model).tag(text))
        candidates = preprocess(candidates, model, settings)
        annotations = self._classify_candidates(candidates, model)
        annotations = postprocess(annotations, text, model, settings)

        if settings.tag_urls:
            annotations += to_classified(self._url_tagger.tag(text))
        if settings.tag_dates:
            annotations += to_classified(self._date_tagger.tag(text))
        annotations = remove_nested(annotations)
        return sorted(annotations, key=lambda a: (a.start, a.end))

    def _tag_one(self, index: int, text: str) -> TaggingOutcome:
        try:
            return TaggingOutcome(index=index, annotations=self.get_annotations(text))
        except Exception as e:
            log.warning("Tagging text %d failed: %s", index, e)
            return TaggingOutcome(index=index, error=f"{type(e).__name__}: {e}")

    def get_annotations_batch(self, texts: Sequence[str], workers: int = 1) -> list[TaggingOutcome]:
        """Tag many texts; a failing text is reported in its outcome, not raised.

        The model is shared read-only, so ``workers > 1`` tags texts on a
        thread pool.
        """
        self._require_model()
        if workers <= 1:
            outcomes = [self._tag_one(i, t) for i, t in enumerate(texts)]
        else:
            with ThreadPoolExecutor(max_workers=workers) as pool:
                outcomes = list(pool.map(self._tag_one, range(len(texts)), texts))
        failed = sum(1 for o in outcomes if not o.ok)
        if failed:
            log.warning("%d of %d texts failed", failed, len(outcomes))
        return outcomes

    # ------------------------------------------------------------------
    # Evaluation
    # ------------------------------------------------------------------
    def evaluate(self, path: str | Path) -> EvaluationResult:
        """Tag the text of a column-format file and compare with its gold annotations."""
        self._require_model()
        corpus = read_column_file(path)
        return evaluate_annotations(self.get_annotations(corpus.text), corpus.annotations)
