"""Tests for text feature extraction and string indexing."""

from __future__ import annotations

import pytest

from classification_framework.indexer import StringIndexer
from classification_framework.models import UNLABELLED
from classification_framework.pipeline import FeatureExtractionPipeline


class TestStringIndexer:

    def test_first_seen_order(self):
        indexer = StringIndexer()
        assert indexer.index("b") == 0
        assert indexer.index("a") == 1
        assert indexer.index("b") == 0
        assert len(indexer) == 2

    def test_absent_without_adding(self):
        indexer = StringIndexer(["a"])
        assert indexer.index("z", add_if_absent=False) == -1
        assert "z" not in indexer

    def test_value_lookup(self):
        indexer = StringIndexer(["a", "b"])
        assert indexer.value(1) == "b"
        assert indexer.value(5) is None
        assert indexer.value(-1, default="?") == "?"

    def test_indices_drop_absent(self):
        indexer = StringIndexer(["a", "b"])
        assert indexer.indices(["b", "x", "a"], add_if_absent=False) == [1, 0]

    def test_list_round_trip(self):
        indexer = StringIndexer(["x", "y", "z"])
        assert StringIndexer.from_list(indexer.to_list()) == indexer

    def test_from_list_rejects_duplicates(self):
        with pytest.raises(ValueError, match="Duplicate"):
            StringIndexer.from_list(["a", "a"])


class TestFeatureExtractionPipeline:

    def test_tokens_are_lowercased_and_stopwords_removed(self):
        pipeline = FeatureExtractionPipeline()
        assert pipeline.extract_terms("The Film is GREAT") == ["film", "great"]

    def test_negations_are_kept(self):
        pipeline = FeatureExtractionPipeline()
        assert pipeline.extract_terms("not good, no plot") == ["not", "good", "no", "plot"]

    def test_keep_stop_words(self):
        pipeline = FeatureExtractionPipeline(remove_stop_words=False)
        assert pipeline.extract_terms("the film") == ["the", "film"]

    def test_ngrams(self):
        pipeline = FeatureExtractionPipeline(ngram_range=(1, 2), remove_stop_words=False)
        assert pipeline.extract_terms("very good film") == [
            "very", "good", "film", "very_good", "good_film",
        ]

    def test_invalid_ngram_range(self):
        with pytest.raises(ValueError):
            FeatureExtractionPipeline(ngram_range=(2, 1))

    def test_process_keeps_duplicates(self):
        pipeline = FeatureExtractionPipeline()
        doc = pipeline.process("great great film", label="pos")
        great = pipeline.feature_indexer.index("great")
        assert doc.features.count(great) == 2
        assert pipeline.label_string(doc.label) == "pos"
        assert doc.source == "great great film"

    def test_process_unlabelled(self):
        doc = FeatureExtractionPipeline().process("great film")
        assert doc.label == UNLABELLED
        assert not doc.is_labelled

    def test_prediction_time_does_not_grow_vocabulary(self):
        pipeline = FeatureExtractionPipeline()
        pipeline.process("great film", label="pos")
        doc = pipeline.process("great unseen words", add_features=False)
        assert len(pipeline.feature_indexer) == 2
        assert [pipeline.feature_string(f) for f in doc.features] == ["great"]

    def test_process_all_uses_record_ids(self):
        docs = FeatureExtractionPipeline().process_all([
            {"text": "great", "label": "pos", "id": "r1"},
            {"text": "awful"},
        ])
        assert docs[0].source == "r1"
        assert docs[0].is_labelled
        assert not docs[1].is_labelled
