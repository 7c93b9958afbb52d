"""Tests for the one-vs-rest composition."""

from __future__ import annotations

import math
from dataclasses import dataclass, field

import pytest

from classification_framework.config import ClassifierConfig
from classification_framework.errors import EmptyLabelSetError
from classification_framework.models import OTHER, ClassifierKind, Document
from classification_framework.naive_bayes import NaiveBayesClassifier
from classification_framework.ovr import OneVsRestClassifier, binarise
from classification_framework.precomputed import PrecomputedClassifier


@dataclass
class ExplodingAdjustment:
    """Standard likelihood whose fit fails for learners that own label 2."""

    kind: ClassifierKind = field(default=ClassifierKind.NB, init=False)

    def log_likelihood(self, nb, feature, label):
        return math.log(nb.likelihood(feature, label))

    def fit(self, nb, labelled, unlabelled):
        if 2 in nb.labels:
            raise RuntimeError("learner for label 2 failed")


@pytest.fixture
def ovr(three_class_docs) -> OneVsRestClassifier:
    ovr = OneVsRestClassifier({0, 1, 2})
    ovr.train(three_class_docs)
    return ovr


class TestComposition:

    def test_one_learner_per_label(self, ovr):
        assert set(ovr.learners) == {0, 1, 2}
        for label, learner in ovr.learners.items():
            assert learner.labels == {label, OTHER}

    def test_binary_problem_uses_single_learner(self, separable_docs):
        ovr = OneVsRestClassifier({0, 1})
        ovr.train(separable_docs)
        assert list(ovr.learners) == [OTHER]
        probs = ovr.predict((1, 2, 3))
        assert set(probs) == {0, 1}
        assert sum(probs.values()) == pytest.approx(1.0)
        assert probs[0] > 0.9

    def test_binary_problem_ignores_foreign_labels(self, separable_docs):
        ovr = OneVsRestClassifier({0, 1})
        ovr.train(separable_docs + [Document((5, 6), 7)])
        ovr.train_on_instance(8, (1, 2))
        probs = ovr.predict((1,))
        assert set(probs) == {0, 1}
        assert sum(probs.values()) == pytest.approx(1.0)
        assert ovr.learners[OTHER].labels == {0, 1}

    def test_multiclass_counts_foreign_labels_as_other(self, three_class_docs):
        ovr = OneVsRestClassifier({0, 1, 2})
        ovr.train(three_class_docs + [Document((40, 41), 7)])
        assert set(ovr.predict((40,))) == {0, 1, 2}

    def test_binarise(self):
        docs = [Document((1,), 0), Document((2,), 1), Document((3,))]
        relabelled = binarise(docs, 0)
        assert [d.label for d in relabelled] == [0, OTHER]

    def test_kind(self, ovr):
        assert ovr.kind is ClassifierKind.NB_OVR


class TestPrediction:

    @pytest.mark.parametrize("features", [(10, 11), (20, 99), (30, 31, 32), (99,), (), (500,)])
    def test_keys_are_exactly_the_labels(self, ovr, features):
        probs = ovr.predict(features)
        assert OTHER not in probs
        assert set(probs) == {0, 1, 2}
        assert all(0.0 <= p <= 1.0 for p in probs.values())

    def test_best_label(self, ovr):
        assert ovr.best_label((10, 11, 12)) == 0
        assert ovr.best_label((20, 21)) == 1
        assert ovr.best_label((31, 32, 99)) == 2

    def test_log_scores_drop_other(self, ovr):
        assert set(ovr.log_scores((10,))) == {0, 1, 2}

    def test_no_labels_raises(self):
        with pytest.raises(EmptyLabelSetError):
            OneVsRestClassifier(set()).predict((1,))

    def test_feature_marginals_learners(self, three_class_docs):
        config = ClassifierConfig(max_newton_raphson_evaluations=200)
        ovr = OneVsRestClassifier(
            {0, 1, 2}, lambda labels: NaiveBayesClassifier.feature_marginals(labels, config)
        )
        unlabelled = [Document(d.features) for d in three_class_docs]
        ovr.train(three_class_docs, unlabelled)
        probs = ovr.predict((20, 21, 22))
        assert set(probs) == {0, 1, 2}


class TestTraining:

    def test_failure_aborts_whole_composition(self, three_class_docs):
        ovr = OneVsRestClassifier(
            {0, 1, 2}, lambda labels: NaiveBayesClassifier(labels=labels, adjustment=ExplodingAdjustment())
        )
        before = dict(ovr.learners)
        with pytest.raises(RuntimeError, match="label 2"):
            ovr.train(three_class_docs, unlabelled=[Document((10, 20))])
        assert ovr.learners == before
        for learner in ovr.learners.values():
            assert learner.tables.doc_counts == {}

    def test_train_on_instance_routes_other(self):
        ovr = OneVsRestClassifier({0, 1, 2})
        ovr.train_on_instance(1, [5, 6])
        assert ovr.learners[1].tables.doc_counts == {1: 1.0}
        assert ovr.learners[0].tables.doc_counts == {OTHER: 1.0}
        assert ovr.learners[2].tables.doc_counts == {OTHER: 1.0}

    def test_train_on_instance_skips_unlabelled(self):
        ovr = OneVsRestClassifier({0, 1, 2})
        ovr.train_on_instance(-1, [5, 6])
        assert all(learner.tables.doc_counts == {} for learner in ovr.learners.values())


class TestSteering:

    def test_set_feature_alpha_routes_other(self):
        ovr = OneVsRestClassifier({0, 1, 2})
        ovr.set_feature_alpha(7, 0, 10.0)
        assert ovr.learners[0].labelled_features[0] == {7: 10.0}
        assert ovr.learners[1].labelled_features[OTHER] == {7: 10.0}

    def test_unlabel_feature(self):
        ovr = OneVsRestClassifier({0, 1, 2})
        ovr.set_feature_alpha(7, 0, 10.0)
        ovr.unlabel_feature(7, 0)
        assert all(7 not in learner.vocab for learner in ovr.learners.values())

    def test_label_alpha_and_multiplier_go_to_own_learner(self):
        ovr = OneVsRestClassifier({0, 1, 2})
        ovr.set_label_alpha(2, 4.0)
        ovr.set_label_multiplier(2, 0.5)
        assert ovr.learners[2].label_alphas == {2: 4.0}
        assert ovr.learners[2].label_multipliers == {2: 0.5}
        assert ovr.learners[0].label_alphas == {}

    def test_steering_changes_prediction(self, ovr):
        before = ovr.predict((99,))[2]
        ovr.set_feature_alpha(99, 2, 200.0)
        assert ovr.predict((99,))[2] > before


class TestPrecompute:

    def test_learners_are_frozen(self, ovr):
        frozen = ovr.precompute()
        assert all(isinstance(learner, PrecomputedClassifier) for learner in frozen.learners.values())
        for features in [(10, 11), (20, 99), (31,)]:
            assert frozen.predict(features) == pytest.approx(ovr.predict(features))

    def test_frozen_learners_reject_steering(self, ovr):
        frozen = ovr.precompute()
        with pytest.raises(TypeError):
            frozen.set_label_alpha(0, 1.0)
