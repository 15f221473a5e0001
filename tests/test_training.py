"""Tests for corpus reading, dictionary training, evaluation, persistence and settings."""
import gzip
import json
import random
from collections import Counter

import pytest
from pydantic import ValidationError

from src.palladian_ner.corpus import parse_column_lines, read_column_file
from src.palladian_ner.errors import ModelLoadError
from src.palladian_ner.evaluation import ErrorType, evaluate_annotations
from src.palladian_ner.model import NerModel, load_model, save_model
from src.palladian_ner.models import Annotation
from src.palladian_ner.settings import (
    MODEL_PATH_ENV,
    PROJECT_ROOT,
    LanguageMode,
    TaggingSettings,
    TrainingMode,
    TrainingSettings,
    load_settings,
    read_config,
    resolve_model_path,
)
from src.palladian_ner.trainer import DictionaryTrainer, sample, select_left_contexts


def A(start, value, tag):
    return Annotation(start=start, value=value, tag=tag)


# ---------------------------------------------------------------------------
# Column corpus
# ---------------------------------------------------------------------------
class TestColumnCorpus:
    LINES = [
        "-DOCSTART-\tO", "",
        "Phil\tB-PER", "Simmons\tI-PER", "lives\tO", "in\tO", "New\tB-LOC", "York\tI-LOC", ".\tO", "",
        "bad line",
        "Berlin\tLOC", "Paris\tB-LOC", "Rome\tB-LOC",
    ]

    def test_text_and_annotations(self):
        corpus = parse_column_lines(self.LINES)
        assert corpus.text == "Phil Simmons lives in New York .\nBerlin Paris Rome"
        assert [(a.start, a.value, a.tag) for a in corpus.annotations] == [
            (0, "Phil Simmons", "PER"),
            (22, "New York", "LOC"),
            (33, "Berlin", "LOC"),
            (40, "Paris", "LOC"),
            (46, "Rome", "LOC"),
        ]
        assert corpus.tags == ["LOC", "PER"]

    def test_token_annotations_include_outside(self):
        corpus = parse_column_lines(self.LINES)
        assert len(corpus.token_annotations) == 10
        assert corpus.token_annotations[2].tag == "O"
        for a in corpus.token_annotations:
            assert corpus.text[a.start:a.end] == a.value

    def test_offsets_count_utf16_units(self):
        corpus = parse_column_lines(["\U0001F600\tO", "Berlin\tB-LOC"])
        assert corpus.text == "\U0001F600 Berlin"
        assert [(a.start, a.value) for a in corpus.annotations] == [(3, "Berlin")]
        assert [a.start for a in corpus.token_annotations] == [0, 3]

    def test_malformed_lines_skipped(self):
        assert parse_column_lines(self.LINES).skipped_lines == 1

    def test_plain_tags_merge_consecutive_tokens(self):
        corpus = parse_column_lines(["Berlin\tLOC", "Paris\tLOC", "is\tO"])
        assert [a.value for a in corpus.annotations] == ["Berlin Paris"]

    def test_read_file(self, training_file):
        corpus = read_column_file(training_file)
        assert corpus.text.startswith("John Smith lives in Dresden .\nMary Jones")
        assert corpus.tags == ["LOC", "ORG", "PER"]


# ---------------------------------------------------------------------------
# Trainer
# ---------------------------------------------------------------------------
class TestSelectLeftContexts:
    def test_more_often_inside_rejected(self):
        assert select_left_contexts(Counter({"President": 1}), Counter({"President": 5})) == set()

    def test_more_often_outside_accepted(self):
        assert select_left_contexts(Counter({"President": 5}), Counter({"President": 1})) == {"President"}

    def test_lowercase_rejected(self):
        assert select_left_contexts(Counter({"said": 5}), Counter()) == set()

    def test_single_occurrence_rejected(self):
        assert select_left_contexts(Counter({"President": 1}), Counter()) == set()

    def test_min_count(self):
        assert select_left_contexts(Counter({"President": 2}), Counter(), min_count=3) == set()


class TestSample:
    def test_sample_size(self):
        drawn = sample(range(100), 10, random.Random(1))
        assert len(drawn) == 10
        assert len(set(drawn)) == 10

    def test_fewer_items_than_requested(self):
        assert sorted(sample(range(5), 10, random.Random(1))) == [0, 1, 2, 3, 4]

    def test_seeded_is_reproducible(self):
        assert sample(range(50), 5, random.Random(7)) == sample(range(50), 5, random.Random(7))


class TestDictionaryTrainer:
    def test_case_dictionary(self):
        trainer = DictionaryTrainer()
        case = trainer.build_case_dictionary("We like Berlin . We like Berlin . The cat and the dog .")
        assert "like" in case
        assert "the" in case
        assert "berlin" not in case
        # always at a sentence start, never counted
        assert "we" not in case

    def test_left_contexts(self):
        text = ("President Barack Obama spoke . President Joe Biden spoke . "
                "Yesterday President Donald Trump spoke .")
        annotations = [
            A(text.index(value), value, "PER") for value in ("Barack Obama", "Joe Biden", "Donald Trump")
        ]
        assert DictionaryTrainer().build_left_contexts(text, annotations) == {"President"}

    def test_entity_dictionary_min_count(self):
        trainer = DictionaryTrainer(TrainingSettings(min_dictionary_count=2))
        dictionary = trainer.build_entity_dictionary(
            [A(0, "Dresden", "LOC"), A(10, "Dresden", "LOC"), A(20, "Leipzig", "LOC")])
        assert "dresden" in dictionary
        assert "leipzig" not in dictionary

    def test_annotation_dictionary_has_feature_setting(self):
        dictionary = DictionaryTrainer().build_annotation_dictionary([A(0, "Dresden", "LOC")])
        assert dictionary.feature_setting is not None
        assert dictionary.categories == ["LOC"]

    def test_context_dictionary(self):
        text = "She lives in Paris today"
        dictionary = DictionaryTrainer().build_context_dictionary(text, [A(13, "Paris", "LOC")])
        assert dictionary.categories == ["LOC"]
        assert "live" in dictionary

    def test_equalize(self):
        annotations = [A(i * 10, f"Person{i}", "PER") for i in range(4)]
        annotations += [A(100 + i * 10, f"Place{i}", "LOC") for i in range(2)]
        trainer = DictionaryTrainer(TrainingSettings(seed=3))
        equalized = trainer.equalize(annotations)
        assert Counter(a.tag for a in equalized) == {"PER": 2, "LOC": 2}
        assert equalized == sorted(equalized, key=lambda a: (a.start, a.end))

    def test_equalize_is_reproducible(self):
        annotations = [A(i * 10, f"Person{i}", "PER") for i in range(8)] + [A(200, "Dresden", "LOC")]
        first = DictionaryTrainer(TrainingSettings(seed=5)).equalize(annotations)
        second = DictionaryTrainer(TrainingSettings(seed=5)).equalize(annotations)
        assert first == second


# ---------------------------------------------------------------------------
# Evaluation
# ---------------------------------------------------------------------------
class TestEvaluation:
    GOLD = [
        A(0, "John Smith", "PER"),
        A(20, "Dresden", "LOC"),
        A(40, "Siemens", "ORG"),
        A(60, "Berlin", "LOC"),
        A(100, "Paris", "LOC"),
    ]
    PREDICTED = [
        A(0, "John Smith", "PER"),     # correct
        A(20, "Dresden", "PER"),       # exact span, wrong tag
        A(40, "Siemens AG", "ORG"),    # overlap, same tag
        A(58, "X Berlin", "PER"),      # overlap, other tag
        A(80, "Foo", "PER"),           # false positive
    ]

    @pytest.fixture
    def result(self):
        return evaluate_annotations(self.PREDICTED, self.GOLD)

    def test_error_types(self, result):
        assert result.count(ErrorType.CORRECT) == 1
        assert result.count(ErrorType.ERROR1) == 1
        assert result.count(ErrorType.ERROR2) == 1
        assert result.count(ErrorType.ERROR3) == 1
        assert result.count(ErrorType.ERROR4) == 1
        assert result.count(ErrorType.ERROR5) == 1
        assert [a.value for a in result.get_annotations(ErrorType.ERROR2)] == ["Paris"]

    def test_exact_scores(self, result):
        assert result.precision() == pytest.approx(0.2)
        assert result.recall() == pytest.approx(0.2)
        assert result.f1() == pytest.approx(0.2)

    def test_muc_scores(self, result):
        assert result.precision(muc=True) == pytest.approx(0.4)
        assert result.recall(muc=True) == pytest.approx(0.4)

    def test_per_tag(self, result):
        assert result.precision("PER") == pytest.approx(0.25)
        assert result.recall("PER") == pytest.approx(1.0)
        assert result.count(ErrorType.ERROR2, "LOC") == 1

    def test_summary(self, result):
        summary = result.summary()
        assert summary["possible"] == 5
        assert summary["counts"]["ERROR1"] == 1
        assert set(summary["tags"]) == {"LOC", "ORG", "PER"}

    def test_no_predictions(self):
        result = evaluate_annotations([], self.GOLD)
        assert result.precision() == 0.0
        assert result.count(ErrorType.ERROR2) == 5


# ---------------------------------------------------------------------------
# Model persistence
# ---------------------------------------------------------------------------
class TestPersistence:
    def test_roundtrip(self, english_tagger, tmp_path):
        path = save_model(english_tagger.model, tmp_path / "model.json.gz")
        loaded = load_model(path)
        assert loaded.to_dict() == english_tagger.model.to_dict()
        assert loaded.language_mode == LanguageMode.ENGLISH
        assert loaded.case_dictionary == english_tagger.model.case_dictionary

    def test_roundtrip_optional_fields(self, tmp_path):
        model = NerModel(
            language_mode=LanguageMode.LANGUAGE_INDEPENDENT,
            concept_likelihood_order=("PER", "LOC"),
            tagging_settings=TaggingSettings(tag_urls=False),
        )
        loaded = load_model(save_model(model, tmp_path / "m.json.gz"))
        assert loaded.case_dictionary is None
        assert loaded.context_dictionary is None
        assert loaded.concept_likelihood_order == ("PER", "LOC")
        assert loaded.tagging_settings.tag_urls is False

    def test_not_gzip(self, tmp_path):
        path = tmp_path / "broken.json.gz"
        path.write_text("not a model", encoding="utf-8")
        with pytest.raises(ModelLoadError):
            load_model(path)

    def test_missing_fields(self, tmp_path):
        path = tmp_path / "partial.json.gz"
        with gzip.open(path, "wt", encoding="utf-8") as f:
            json.dump({"language_mode": "English"}, f)
        with pytest.raises(ModelLoadError):
            load_model(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(ModelLoadError):
            load_model(tmp_path / "nope.json.gz")

    def test_summary(self, english_tagger):
        summary = english_tagger.model.summary()
        assert summary["language_mode"] == "English"
        assert summary["training_mode"] == "Sparse"
        assert summary["tags"] == ["LOC", "ORG", "PER"]
        assert summary["entity_dictionary_terms"] > 0


# ---------------------------------------------------------------------------
# Settings / config
# ---------------------------------------------------------------------------
class TestSettings:
    def test_language_independent_defaults(self):
        settings = TaggingSettings.for_language(LanguageMode.LANGUAGE_INDEPENDENT)
        enabled = {name for name, value in settings.model_dump().items() if value}
        assert enabled == {"switch_tag_using_context", "switch_tag_using_dictionary"}

    def test_overrides(self):
        settings = TaggingSettings.for_language(LanguageMode.LANGUAGE_INDEPENDENT, tag_dates=True)
        assert settings.tag_dates is True
        assert TaggingSettings.for_language(LanguageMode.ENGLISH, tag_urls=False).tag_urls is False

    def test_unknown_setting_rejected(self):
        with pytest.raises(ValidationError):
            TaggingSettings(bogus=True)
        with pytest.raises(ValidationError):
            TrainingSettings(min_dictionary_count=0)

    def test_read_config(self, tmp_path):
        cfg = tmp_path / "config.yaml"
        cfg.write_text(
            "paths:\n"
            "  model_path: models/x.json.gz\n"
            "training:\n"
            "  language_mode: LanguageIndependent\n"
            "  training_mode: Sparse\n"
            "  min_dictionary_count: 2\n"
            "tagging:\n"
            "  tag_urls: false\n",
            encoding="utf-8",
        )
        assert read_config(cfg)["model_path"] == PROJECT_ROOT / "models" / "x.json.gz"
        training, tagging = load_settings(cfg)
        assert training.language_mode == LanguageMode.LANGUAGE_INDEPENDENT
        assert training.training_mode == TrainingMode.SPARSE
        assert training.min_dictionary_count == 2
        assert tagging == {"tag_urls": False}

    def test_missing_config(self, tmp_path):
        assert read_config(tmp_path / "none.yaml") == {}
        training, tagging = load_settings(tmp_path / "none.yaml")
        assert training == TrainingSettings()
        assert tagging == {}

    def test_bad_tagging_key(self, tmp_path):
        cfg = tmp_path / "config.yaml"
        cfg.write_text("tagging:\n  bogus: true\n", encoding="utf-8")
        with pytest.raises(ValidationError):
            load_settings(cfg)

    def test_model_path_from_env(self, tmp_path, monkeypatch):
        monkeypatch.setenv(MODEL_PATH_ENV, str(tmp_path / "env.json.gz"))
        assert resolve_model_path(tmp_path / "none.yaml") == tmp_path / "env.json.gz"

    def test_model_path_from_config(self, tmp_path, monkeypatch):
        monkeypatch.delenv(MODEL_PATH_ENV, raising=False)
        cfg = tmp_path / "config.yaml"
        cfg.write_text(f"paths:\n  model_path: {tmp_path / 'cfg.json.gz'}\n", encoding="utf-8")
        assert resolve_model_path(cfg) == tmp_path / "cfg.json.gz"
