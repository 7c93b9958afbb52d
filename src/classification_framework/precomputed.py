"""Read-only Naive Bayes with pre-baked log probabilities.

A :class:`PrecomputedClassifier` is a snapshot of a
:class:`~classification_framework.naive_bayes.NaiveBayesClassifier`: the
log prior of every label and the (adjusted) log-likelihood of every
``(label, feature)`` pair are computed once, so prediction is a table lookup
plus a sum. It cannot be trained; rebuild it from the counting classifier
after any update. Instances are immutable and safe to share between
threads.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Mapping, Sequence

from . import estimator
from .errors import EmptyLabelSetError
from .models import ClassifierKind, Label, label_sort_key

if TYPE_CHECKING:
    from .naive_bayes import NaiveBayesClassifier


@dataclass(frozen=True)
class PrecomputedClassifier:
    """Immutable log-prior and log-likelihood tables.

    Args:
        log_label_priors: ``{label: log P(label)}``.
        log_feature_likelihoods: ``{label: {feature: log P(feature|label)}}``.
        source_kind: Kind of the classifier the tables were derived from.
    """

    log_label_priors: Mapping[Label, float]
    log_feature_likelihoods: Mapping[Label, Mapping[int, float]] = field(repr=False)
    source_kind: ClassifierKind = ClassifierKind.NB
    labels: frozenset = field(init=False, repr=False)
    vocab: frozenset = field(init=False, repr=False)

    def __post_init__(self) -> None:
        priors = MappingProxyType(dict(self.log_label_priors))
        likelihoods = MappingProxyType(
            {label: MappingProxyType(dict(table)) for label, table in self.log_feature_likelihoods.items()}
        )
        vocab: set[int] = set()
        for table in likelihoods.values():
            vocab.update(table)
        object.__setattr__(self, "log_label_priors", priors)
        object.__setattr__(self, "log_feature_likelihoods", likelihoods)
        object.__setattr__(self, "labels", frozenset(priors))
        object.__setattr__(self, "vocab", frozenset(vocab))

    @classmethod
    def from_classifier(cls, nb: "NaiveBayesClassifier") -> "PrecomputedClassifier":
        """Bake every ``(label, feature)`` probability of ``nb``.

        Uses ``nb``'s likelihood adjustment, so feature-marginals and SFE
        classifiers freeze into their adjusted form.
        """
        raw_priors = nb.label_priors()
        log_priors: dict[Label, float] = {}
        likelihoods: dict[Label, dict[int, float]] = {}
        for label in nb.sorted_labels():
            log_priors[label] = estimator.safe_log(raw_priors[label])
            likelihoods[label] = {feature: nb.log_likelihood(feature, label) for feature in nb.vocab}
        return cls(log_priors, likelihoods, nb.kind)

    @property
    def kind(self) -> ClassifierKind:
        return ClassifierKind.NB_PRECOMPUTED

    def sorted_labels(self) -> list[Label]:
        return sorted(self.labels, key=label_sort_key)

    def log_scores(self, features: Sequence[int]) -> dict[Label, float]:
        """Unnormalised ``log P(label) + sum(log P(f|label))``."""
        if not self.labels:
            raise EmptyLabelSetError("Classifier has no labels.")
        known = [f for f in features if f in self.vocab]
        scores: dict[Label, float] = {}
        for label in self.sorted_labels():
            table = self.log_feature_likelihoods[label]
            scores[label] = self.log_label_priors[label] + sum(table[f] for f in known)
        return scores

    def predict(self, features: Sequence[int]) -> dict[Label, float]:
        return estimator.softmax(self.log_scores(features))

    def best_label(self, features: Sequence[int]) -> Label:
        return estimator.argmax(self.log_scores(features))
