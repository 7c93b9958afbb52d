"""Shared test fixtures for classification-framework tests."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from classification_framework.config import ClassifierConfig
from classification_framework.models import Document
from classification_framework.naive_bayes import NaiveBayesClassifier

# Label 0 documents use features 1-3, label 1 documents use features 4-6.
POSITIVE_FEATURES = (1, 2, 3)
NEGATIVE_FEATURES = (4, 5, 6)


@pytest.fixture
def separable_docs() -> list[Document]:
    """Ten documents per label over disjoint vocabularies."""
    docs = [Document(POSITIVE_FEATURES, 0) for _ in range(10)]
    docs += [Document(NEGATIVE_FEATURES, 1) for _ in range(10)]
    return docs


@pytest.fixture
def trained_nb(separable_docs) -> NaiveBayesClassifier:
    nb = NaiveBayesClassifier(labels={0, 1})
    nb.train(separable_docs)
    return nb


@pytest.fixture
def overlapping_docs() -> list[Document]:
    """Binary data where shared words make the classes overlap."""
    return [
        Document((1, 1, 2, 7), 0),
        Document((1, 2, 3, 8), 0),
        Document((2, 3, 7, 8), 0),
        Document((1, 3, 9), 0),
        Document((4, 5, 7, 9), 1),
        Document((4, 6, 8, 9), 1),
        Document((5, 6, 6, 7), 1),
        Document((4, 5, 8), 1),
    ]


@pytest.fixture
def unlabelled_docs() -> list[Document]:
    return [
        Document((1, 2, 7)),
        Document((1, 3, 8, 9)),
        Document((4, 6, 7)),
        Document((5, 6, 9)),
        Document((2, 3, 8)),
        Document((4, 5, 9, 9)),
    ]


@pytest.fixture
def three_class_docs() -> list[Document]:
    """Three labels, each with its own vocabulary plus a shared feature 99."""
    docs = []
    for label, features in ((0, (10, 11, 12)), (1, (20, 21, 22)), (2, (30, 31, 32))):
        for i in range(4):
            docs.append(Document(features + (99,) + features[i % 3 : i % 3 + 1], label))
    return docs


@pytest.fixture
def fast_config() -> ClassifierConfig:
    """Config with a small Newton-Raphson cap so solver tests stay quick."""
    return ClassifierConfig(max_newton_raphson_evaluations=200)


def _write_jsonl(path: Path, records: list[dict]) -> Path:
    path.write_text("\n".join(json.dumps(r) for r in records) + "\n", encoding="utf-8")
    return path


@pytest.fixture
def labelled_jsonl(tmp_path: Path) -> Path:
    records = [
        {"text": "A wonderful, moving film with brilliant acting", "label": "pos"},
        {"text": "Brilliant script and wonderful characters", "label": "pos"},
        {"text": "Moving and brilliant, a delight to watch", "label": "pos"},
        {"text": "Delightful acting and a wonderful story", "label": "pos"},
        {"text": "A boring, dreadful film with awful acting", "label": "neg"},
        {"text": "Dreadful script and boring characters", "label": "neg"},
        {"text": "Awful and boring, a chore to watch", "label": "neg"},
        {"text": "Tedious acting and a dreadful story", "label": "neg"},
    ]
    return _write_jsonl(tmp_path / "labelled.jsonl", records)


@pytest.fixture
def unlabelled_jsonl(tmp_path: Path) -> Path:
    records = [
        {"text": "wonderful brilliant delight"},
        {"text": "boring dreadful awful"},
        {"text": "moving story with brilliant characters"},
        {"text": "tedious chore of a script"},
    ]
    return _write_jsonl(tmp_path / "unlabelled.jsonl", records)


@pytest.fixture
def gold_jsonl(tmp_path: Path) -> Path:
    records = [
        {"text": "brilliant and wonderful", "label": "pos"},
        {"text": "dreadful and boring", "label": "neg"},
    ]
    return _write_jsonl(tmp_path / "gold.jsonl", records)
