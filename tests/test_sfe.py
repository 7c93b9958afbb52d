"""Tests for the self-training feature-expectation correction."""

from __future__ import annotations

import math

import pytest

from classification_framework.estimator import word_probabilities
from classification_framework.models import ClassifierKind, Document
from classification_framework.naive_bayes import NaiveBayesClassifier


@pytest.fixture
def sfe(overlapping_docs, unlabelled_docs) -> NaiveBayesClassifier:
    nb = NaiveBayesClassifier.self_training({0, 1})
    nb.train_semi_supervised(overlapping_docs, unlabelled_docs)
    return nb


class TestSelfTrainingExpectation:

    def test_kind(self, sfe):
        assert sfe.kind is ClassifierKind.NB_SFE

    def test_unlabelled_distribution(self, sfe, unlabelled_docs):
        assert sfe.adjustment.unlabelled_word_probs == pytest.approx(word_probabilities(unlabelled_docs))

    def test_norm_is_sum_over_labelled_documents(self, sfe, overlapping_docs):
        priors = sfe.label_priors()
        for label in (0, 1):
            direct = sum(
                priors[label] * math.prod(sfe.likelihood(f, label) for f in doc.features)
                for doc in overlapping_docs
            )
            assert sfe.adjustment.log_norms[label] == pytest.approx(math.log(direct))

    def test_corrected_log_likelihood(self, sfe, unlabelled_docs):
        p_u = word_probabilities(unlabelled_docs)
        norm = sfe.adjustment.log_norms[0]
        expected = math.log(sfe.likelihood(7, 0)) + math.log(p_u[7]) - norm
        assert sfe.log_likelihood(7, 0) == pytest.approx(expected)

    def test_feature_missing_from_unlabelled_data(self, sfe, unlabelled_docs):
        assert 99 not in word_probabilities(unlabelled_docs)
        sfe.train([Document((99,), 1)])
        expected = math.log(sfe.likelihood(99, 1)) - sfe.adjustment.log_norms[1]
        assert sfe.log_likelihood(99, 1) == pytest.approx(expected)

    def test_predict_is_a_distribution(self, sfe):
        for features in [(1, 2), (4, 5, 6), (7, 8, 9), ()]:
            probs = sfe.predict(features)
            assert sum(probs.values()) == pytest.approx(1.0)
            assert sfe.best_label(features) == max(probs, key=probs.get)

    def test_long_documents_keep_finite_norms(self, unlabelled_docs):
        long_docs = [Document((1, 2, 3) * 400, 0), Document((4, 5, 6) * 400, 1)]
        nb = NaiveBayesClassifier.self_training({0, 1})
        nb.train_semi_supervised(long_docs, unlabelled_docs)
        assert all(math.isfinite(v) for v in nb.adjustment.log_norms.values())
        assert nb.best_label((1, 2)) == 0

    def test_precompute_bakes_correction(self, sfe):
        pc = sfe.precompute()
        assert pc.source_kind is ClassifierKind.NB_SFE
        assert pc.predict((1, 7)) == pytest.approx(sfe.predict((1, 7)))
