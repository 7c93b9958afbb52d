"""One-vs-rest composition of binary Naive Bayes learners.

With more than two labels, one learner is trained per label on documents
relabelled to either that label or :data:`~classification_framework.models.OTHER`.
Predictions from all learners are merged and ``OTHER`` is dropped, so the
output keys are exactly the original labels. With two or fewer labels a
single learner is trained on the documents carrying one of those labels;
documents with any other label are ignored.

Learners are independent, so training fans out over a thread pool.
"""

from __future__ import annotations

import copy
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Iterable, Optional, Sequence, Union

from . import estimator
from .errors import EmptyLabelSetError
from .models import OTHER, ClassifierKind, Document, Label, is_valid_label, label_sort_key
from .naive_bayes import NaiveBayesClassifier
from .precomputed import PrecomputedClassifier

LOGGER = logging.getLogger(__name__)

Learner = Union[NaiveBayesClassifier, PrecomputedClassifier]
LearnerFactory = Callable[[set], NaiveBayesClassifier]


def binarise(documents: Iterable[Document], target: Label) -> list[Document]:
    """Relabel every labelled document to ``target`` or ``OTHER``."""
    return [
        doc if doc.label == target else doc.with_label(OTHER)
        for doc in documents
        if doc.is_labelled
    ]


class OneVsRestClassifier:
    """Compose binary learners into a multi-class classifier.

    Args:
        labels: The real labels of the problem.
        learner_factory: Called with a label set, returns a fresh learner.
            Defaults to a standard :class:`NaiveBayesClassifier`; pass
            :meth:`NaiveBayesClassifier.feature_marginals` for an inherently
            binary learner.
        workers: Maximum training threads (``None`` lets the executor decide).
    """

    def __init__(
        self,
        labels: Iterable[int],
        learner_factory: Optional[LearnerFactory] = None,
        workers: Optional[int] = None,
    ) -> None:
        self.labels: set[int] = set(labels)
        self.learner_factory: LearnerFactory = learner_factory or (lambda ls: NaiveBayesClassifier(labels=ls))
        self.workers = workers
        self.learners: dict[Label, Learner] = {}
        if self.is_binary:
            self.learners[OTHER] = self.learner_factory(set(self.labels))
        else:
            for label in self.sorted_labels():
                self.learners[label] = self.learner_factory({label, OTHER})

    @classmethod
    def from_learners(
        cls,
        labels: Iterable[int],
        learners: dict[Label, Learner],
        workers: Optional[int] = None,
    ) -> "OneVsRestClassifier":
        """Wrap already-built learners (used when loading or precomputing)."""
        ovr = cls.__new__(cls)
        ovr.labels = set(labels)
        ovr.learner_factory = lambda ls: NaiveBayesClassifier(labels=ls)
        ovr.workers = workers
        ovr.learners = dict(learners)
        return ovr

    @property
    def kind(self) -> ClassifierKind:
        return ClassifierKind.NB_OVR

    @property
    def is_binary(self) -> bool:
        return len(self.labels) <= 2

    @property
    def vocab(self) -> set[int]:
        vocab: set[int] = set()
        for learner in self.learners.values():
            vocab.update(learner.vocab)
        return vocab

    def sorted_labels(self) -> list[int]:
        return sorted(self.labels, key=label_sort_key)

    def _learner_for(self, label: Label) -> NaiveBayesClassifier:
        learner = self.learners[OTHER] if self.is_binary else self.learners[label]
        if not isinstance(learner, NaiveBayesClassifier):
            raise TypeError("Precomputed one-vs-rest classifiers cannot be modified")
        return learner

    # ------------------------------------------------------------------
    # Training
    # ------------------------------------------------------------------

    def train(
        self,
        labelled: Iterable[Document],
        unlabelled: Optional[Iterable[Document]] = None,
    ) -> None:
        """Train every learner; any failure aborts the whole composition.

        Learners are trained on copies and swapped in only once all of them
        succeed, so a failure leaves the previous ensemble untouched.
        """
        labelled = list(labelled)
        unlabelled = list(unlabelled) if unlabelled is not None else None
        if self.is_binary:
            jobs = {OTHER: [doc for doc in labelled if doc.label in self.labels]}
        else:
            jobs = {label: binarise(labelled, label) for label in self.sorted_labels()}

        for target in jobs:
            self._learner_for(target)

        def run(target: Label) -> tuple[Label, NaiveBayesClassifier]:
            learner = copy.deepcopy(self.learners[target])
            if unlabelled is None:
                learner.train(jobs[target])
            else:
                learner.train_semi_supervised(jobs[target], unlabelled)
            return target, learner

        with ThreadPoolExecutor(max_workers=self.workers) as pool:
            trained = dict(pool.map(run, jobs))
        self.learners.update(trained)
        LOGGER.info("Trained %d one-vs-rest learner(s) over %d labels", len(trained), len(self.labels))

    def train_on_instance(
        self,
        label: int,
        features: Sequence[int],
        label_probability: float = 1.0,
        weight: float = 1.0,
    ) -> None:
        """Count one document positively for its label, as OTHER elsewhere."""
        if not features or not is_valid_label(label):
            return
        if self.is_binary:
            if label in self.labels:
                self._learner_for(OTHER).train_on_instance(label, features, label_probability, weight)
            return
        for target in self.sorted_labels():
            self._learner_for(target).train_on_instance(
                label if target == label else OTHER, features, label_probability, weight
            )

    # ------------------------------------------------------------------
    # Steering passthroughs
    # ------------------------------------------------------------------

    def set_label_alpha(self, label: int, alpha: float) -> None:
        self._learner_for(label).set_label_alpha(label, alpha)

    def set_feature_alpha(self, feature: int, label: int, alpha: float) -> None:
        if self.is_binary:
            self._learner_for(OTHER).set_feature_alpha(feature, label, alpha)
            return
        for target in self.sorted_labels():
            self._learner_for(target).set_feature_alpha(feature, label if target == label else OTHER, alpha)

    def unlabel_feature(self, feature: int, label: int) -> None:
        if self.is_binary:
            self._learner_for(OTHER).unlabel_feature(feature, label)
            return
        for target in self.sorted_labels():
            self._learner_for(target).unlabel_feature(feature, label if target == label else OTHER)

    def set_label_multiplier(self, label: int, multiplier: float) -> None:
        self._learner_for(label).set_label_multiplier(label, multiplier)

    # ------------------------------------------------------------------
    # Prediction
    # ------------------------------------------------------------------

    def _merge(self, per_learner: Iterable[dict[Label, float]]) -> dict[Label, float]:
        merged: dict[Label, float] = {}
        for scores in per_learner:
            merged.update(scores)
        return {label: score for label, score in merged.items() if label in self.labels}

    def log_scores(self, features: Sequence[int]) -> dict[Label, float]:
        if not self.labels:
            raise EmptyLabelSetError("Classifier has no labels.")
        return self._merge(learner.log_scores(features) for learner in self.learners.values())

    def predict(self, features: Sequence[int]) -> dict[Label, float]:
        """Merged per-label probabilities; keys are exactly the real labels.

        For more than two labels each value is that label's probability
        against OTHER in its own learner, so values need not sum to 1.
        """
        if not self.labels:
            raise EmptyLabelSetError("Classifier has no labels.")
        return self._merge(learner.predict(features) for learner in self.learners.values())

    def best_label(self, features: Sequence[int]) -> Label:
        return estimator.argmax(self.predict(features))

    def label_priors(self) -> dict[Label, float]:
        return self._merge(
            learner.label_priors() for learner in self.learners.values()
            if isinstance(learner, NaiveBayesClassifier)
        )

    def precompute(self) -> "OneVsRestClassifier":
        """Ensemble of frozen learners, ready for concurrent bulk inference."""
        frozen: dict[Label, Learner] = {}
        for target, learner in self.learners.items():
            frozen[target] = learner.precompute() if isinstance(learner, NaiveBayesClassifier) else learner
        return OneVsRestClassifier.from_learners(self.labels, frozen, self.workers)
