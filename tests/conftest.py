"""Shared fixtures: a tiny IOB-tagged English corpus and taggers trained on it."""
from __future__ import annotations

import pytest

from src.palladian_ner.settings import LanguageMode, TrainingMode, TrainingSettings
from src.palladian_ner.tagger import PalladianNer

SENTENCES = [
    [("John", "B-PER"), ("Smith", "I-PER"), ("lives", "O"), ("in", "O"), ("Dresden", "B-LOC"), (".", "O")],
    [("Mary", "B-PER"), ("Jones", "I-PER"), ("visited", "O"), ("Berlin", "B-LOC"), (".", "O")],
    [("The", "O"), ("company", "O"), ("Siemens", "B-ORG"), ("hired", "O"),
     ("Peter", "B-PER"), ("Miller", "I-PER"), (".", "O")],
    [("In", "O"), ("Dresden", "B-LOC"), (",", "O"), ("Anna", "B-PER"), ("Schmidt", "I-PER"),
     ("met", "O"), ("Paul", "B-PER"), ("Weber", "I-PER"), (".", "O")],
    [("Berlin", "B-LOC"), ("is", "O"), ("big", "O"), (".", "O")],
    [("The", "O"), ("people", "O"), ("in", "O"), ("Berlin", "B-LOC"), ("like", "O"),
     ("Siemens", "B-ORG"), (".", "O")],
]


def column_text(sentences=SENTENCES) -> str:
    return "\n\n".join("\n".join(f"{tok}\t{tag}" for tok, tag in s) for s in sentences) + "\n"


@pytest.fixture
def training_file(tmp_path):
    path = tmp_path / "train.tsv"
    path.write_text("-DOCSTART-\tO\n\n" + column_text(), encoding="utf-8")
    return path


@pytest.fixture
def english_tagger(training_file):
    settings = TrainingSettings(training_mode=TrainingMode.SPARSE, seed=1)
    tagger = PalladianNer(training_settings=settings)
    tagger.train(training_file)
    return tagger


@pytest.fixture
def li_tagger(training_file):
    settings = TrainingSettings(
        language_mode=LanguageMode.LANGUAGE_INDEPENDENT,
        training_mode=TrainingMode.SPARSE,
        seed=1,
    )
    tagger = PalladianNer(training_settings=settings)
    tagger.train(training_file)
    return tagger
