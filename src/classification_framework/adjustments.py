"""Pluggable per-feature log-likelihood strategies.

A :class:`~classification_framework.naive_bayes.NaiveBayesClassifier`
delegates ``log P(feature|label)`` to one of these. Each strategy may carry
state fitted from labelled and unlabelled data after the counts are in.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Hashable, Optional, Protocol, Sequence

from . import estimator
from .feature_marginals import compute_feature_marginals
from .models import ClassifierKind, Document

if TYPE_CHECKING:
    from .naive_bayes import NaiveBayesClassifier

LOGGER = logging.getLogger(__name__)


class LikelihoodAdjustment(Protocol):
    kind: ClassifierKind

    def log_likelihood(self, nb: "NaiveBayesClassifier", feature: int, label: Hashable) -> float: ...

    def fit(
        self,
        nb: "NaiveBayesClassifier",
        labelled: Sequence[Document],
        unlabelled: Sequence[Document],
    ) -> None: ...


@dataclass
class StandardLikelihood:
    """The plain smoothed likelihood; fitting is a no-op."""

    kind: ClassifierKind = field(default=ClassifierKind.NB, init=False)

    def log_likelihood(self, nb: "NaiveBayesClassifier", feature: int, label: Hashable) -> float:
        return math.log(nb.likelihood(feature, label))

    def fit(self, nb, labelled, unlabelled) -> None:
        return None


@dataclass
class FeatureMarginalsAdjustment:
    """Override likelihoods with feature-marginals optimised probabilities.

    Features with no optimised probability fall back to the standard
    smoothed likelihood.

    Args:
        max_evaluations: Newton-Raphson iteration cap; ``None`` uses the
            classifier's ``config.max_newton_raphson_evaluations``.
    """

    max_evaluations: Optional[int] = None
    opt_class_cond_probs: dict[Hashable, dict[int, float]] = field(default_factory=dict, repr=False)
    kind: ClassifierKind = field(default=ClassifierKind.NB_FM, init=False)

    def log_likelihood(self, nb: "NaiveBayesClassifier", feature: int, label: Hashable) -> float:
        probability = self.opt_class_cond_probs.get(label, {}).get(feature)
        if probability is not None and probability > 0:
            return math.log(probability)
        return math.log(nb.likelihood(feature, label))

    def fit(
        self,
        nb: "NaiveBayesClassifier",
        labelled: Sequence[Document],
        unlabelled: Sequence[Document],
    ) -> None:
        labels = nb.sorted_labels()
        if len(labels) > 2:
            LOGGER.warning(
                "Feature marginals is binary but got %d labels; using %r vs %r. "
                "Wrap the classifier in a OneVsRestClassifier for multi-class problems.",
                len(labels), labels[0], labels[1],
            )
        if len(labels) < 2:
            raise ValueError(f"Feature marginals needs two labels, got {labels}")
        max_evaluations = self.max_evaluations or nb.config.max_newton_raphson_evaluations
        self.opt_class_cond_probs = compute_feature_marginals(
            labelled, unlabelled, labels[0], labels[1], max_evaluations
        )


@dataclass
class SelfTrainingExpectation:
    """Self-training feature expectation (SFE) correction.

    Each feature's log-likelihood becomes::

        log P(f|l) + log P_u(f) - log sum_doc [P(l) * prod_f P(f|l)]

    where ``P_u`` is the word distribution of the unlabelled data and the
    sum runs over the labelled documents. The normaliser is kept in log
    space so long documents do not underflow.
    """

    unlabelled_word_probs: dict[int, float] = field(default_factory=dict, repr=False)
    log_norms: dict[Hashable, float] = field(default_factory=dict, repr=False)
    kind: ClassifierKind = field(default=ClassifierKind.NB_SFE, init=False)

    def log_likelihood(self, nb: "NaiveBayesClassifier", feature: int, label: Hashable) -> float:
        value = math.log(nb.likelihood(feature, label))
        word_prob = self.unlabelled_word_probs.get(feature)
        if word_prob:
            value += math.log(word_prob)
        return value - self.log_norms.get(label, 0.0)

    def fit(
        self,
        nb: "NaiveBayesClassifier",
        labelled: Sequence[Document],
        unlabelled: Sequence[Document],
    ) -> None:
        self.unlabelled_word_probs = estimator.word_probabilities(unlabelled)
        priors = nb.label_priors()
        self.log_norms = {}
        for label in nb.sorted_labels():
            log_prior = estimator.safe_log(priors[label])
            terms = [
                log_prior + sum(
                    math.log(nb.likelihood(f, label)) for f in doc.features if f in nb.vocab
                )
                for doc in labelled
                if doc.is_labelled
            ]
            norm = estimator.log_sum_exp(terms) if terms else 0.0
            self.log_norms[label] = norm if math.isfinite(norm) else 0.0
        LOGGER.debug(
            "SFE fitted on %d unlabelled word types, %d labels",
            len(self.unlabelled_word_probs), len(self.log_norms),
        )
