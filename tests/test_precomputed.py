"""Tests for the frozen log-probability classifier."""

from __future__ import annotations

import dataclasses
import math
from concurrent.futures import ThreadPoolExecutor

import pytest

from classification_framework.models import ClassifierKind, Document
from classification_framework.naive_bayes import NaiveBayesClassifier
from classification_framework.precomputed import PrecomputedClassifier

FEATURE_SETS = [(1, 2, 3), (4, 5), (1, 4, 7), (), (9, 9, 2), (100,), (1, 2, 3, 4, 5, 6, 7, 8, 9)]


@pytest.fixture
def nb(overlapping_docs) -> NaiveBayesClassifier:
    nb = NaiveBayesClassifier(labels={0, 1})
    nb.train(overlapping_docs)
    nb.set_feature_alpha(7, 1, 3.0)
    nb.set_label_multiplier(0, 1.5)
    return nb


class TestPrecomputeEquivalence:

    @pytest.mark.parametrize("features", FEATURE_SETS)
    def test_scores_differ_by_shared_constant(self, nb, features):
        pc = nb.precompute()
        probs = nb.predict(features)
        scores = pc.log_scores(features)
        offsets = [math.log(probs[label]) - scores[label] for label in (0, 1)]
        assert offsets[0] == pytest.approx(offsets[1], abs=1e-9)

    @pytest.mark.parametrize("features", FEATURE_SETS)
    def test_same_predictions(self, nb, features):
        pc = nb.precompute()
        assert pc.predict(features) == pytest.approx(nb.predict(features))
        assert pc.best_label(features) == nb.best_label(features)

    def test_non_empirical_priors_are_baked(self, nb):
        nb.empirical_label_priors = False
        pc = nb.precompute()
        assert pc.predict((1, 2)) == pytest.approx(nb.predict((1, 2)))

    def test_tables_cover_labels_and_vocab(self, nb):
        pc = PrecomputedClassifier.from_classifier(nb)
        assert pc.labels == frozenset({0, 1})
        assert pc.vocab == frozenset(nb.vocab)
        assert pc.source_kind is ClassifierKind.NB
        assert pc.kind is ClassifierKind.NB_PRECOMPUTED


class TestImmutability:

    def test_cannot_reassign_fields(self, nb):
        pc = nb.precompute()
        with pytest.raises(dataclasses.FrozenInstanceError):
            pc.log_label_priors = {}

    def test_tables_are_read_only(self, nb):
        pc = nb.precompute()
        with pytest.raises(TypeError):
            pc.log_label_priors[0] = 0.0
        with pytest.raises(TypeError):
            pc.log_feature_likelihoods[0][1] = 0.0

    def test_snapshot_ignores_later_training(self, nb):
        pc = nb.precompute()
        before = pc.predict((4, 5))
        nb.train([Document((4, 5), 0)] * 20)
        assert pc.predict((4, 5)) == before

    def test_concurrent_inference(self, nb):
        pc = nb.precompute()
        expected = [pc.predict(f) for f in FEATURE_SETS]
        with ThreadPoolExecutor(max_workers=4) as pool:
            results = list(pool.map(pc.predict, FEATURE_SETS * 20))
        assert results == expected * 20
