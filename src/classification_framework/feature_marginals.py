"""Feature-marginals semi-supervised adjustment for binary Naive Bayes.

Implements the method of Lucas & Downey (2013), "Exploiting the Feature
Marginals for Semi-Supervised Text Classification". The unlabelled data
fixes each word's marginal probability ``P(w)``; for every word we then
look for the class-conditional probability ``theta = P(w|+)`` that
maximises the labelled-data likelihood subject to::

    P(w) = theta * P(t|+) + P(w|-) * P(t|-)

Setting the derivative to zero gives the rational constraint solved here
by Newton-Raphson (see :class:`FeatureMarginalsConstraint`). Variable names
follow the paper.
"""

from __future__ import annotations

import logging
import math
from collections import Counter
from dataclasses import dataclass
from typing import Hashable, Sequence

from scipy.optimize import newton

from .errors import SolverFailure
from .estimator import word_probabilities
from .models import Document

LOGGER = logging.getLogger(__name__)

ABSOLUTE_ACCURACY = 1e-6


@dataclass(frozen=True)
class FeatureMarginalsConstraint:
    """``f(theta) = 0`` whose root is the optimised ``P(w|+)``.

    ::

        N(w|+)/theta + N(!w|+)/(theta - 1)
            + l*N(w|-)/(l*theta - k) + l*N(!w|-)/(l*theta - k + 1)

    with ``l = P(t|+)/P(t|-)`` and ``k = P(w)/P(t|-)``. Poles sit at
    ``theta = 0``, ``theta = 1``, ``theta = k/l`` and ``theta = (k-1)/l``;
    evaluating exactly on one raises :class:`ZeroDivisionError`.
    """

    n_w_pos: float
    n_not_w_pos: float
    n_w_neg: float
    n_not_w_neg: float
    k: float
    l: float

    def value(self, theta: float) -> float:
        theta = _finite(theta)
        return (
            self.n_w_pos / theta
            + self.n_not_w_pos / (theta - 1)
            + (self.l * self.n_w_neg) / (self.l * theta - self.k)
            + (self.l * self.n_not_w_neg) / (self.l * theta - self.k + 1)
        )

    def derivative(self, theta: float) -> float:
        theta = _finite(theta)
        l_squared = self.l * self.l
        return -(
            self.n_w_pos / theta ** 2
            + self.n_not_w_pos / (theta - 1) ** 2
            + l_squared * self.n_w_neg / (self.l * theta - self.k) ** 2
            + l_squared * self.n_not_w_neg / (self.l * theta - self.k + 1) ** 2
        )

    __call__ = value


def _finite(theta: float) -> float:
    theta = float(theta)
    if not math.isfinite(theta):
        raise SolverFailure(f"iterate diverged to {theta}")
    return theta


def solve_constraint(
    constraint: FeatureMarginalsConstraint,
    lower: float,
    upper: float,
    max_evaluations: int,
) -> float:
    """Newton-Raphson from the midpoint of ``[lower, upper]``.

    The iterate is not confined to the interval; callers must validate the
    root.

    Raises:
        SolverFailure: On non-convergence within ``max_evaluations``
            iterations, a zero derivative, or landing on a pole.
    """
    start = lower + (upper - lower) / 2.0
    try:
        root = newton(
            constraint.value,
            start,
            fprime=constraint.derivative,
            tol=ABSOLUTE_ACCURACY,
            maxiter=max_evaluations,
        )
    except (RuntimeError, ZeroDivisionError, OverflowError) as exc:
        raise SolverFailure(str(exc)) from exc
    root = float(root)
    if not math.isfinite(root):
        raise SolverFailure(f"solver returned {root}")
    return root


def compute_feature_marginals(
    labelled: Sequence[Document],
    unlabelled: Sequence[Document],
    positive_label: Hashable,
    other_label: Hashable,
    max_evaluations: int,
) -> dict[Hashable, dict[int, float]]:
    """Optimised class-conditional word probabilities for both classes.

    Any labelled document whose label is not ``positive_label`` counts as
    negative. Words whose constraint has no acceptable root are left out,
    so the classifier falls back to its smoothed likelihood for them.

    Returns:
        ``{positive_label: {word: P(w|+)}, other_label: {word: P(w|-)}}``,
        each normalised to sum to 1 (or empty).
    """
    word_prob = word_probabilities(unlabelled)

    pos_word_counts: Counter[int] = Counter()
    neg_word_counts: Counter[int] = Counter()
    for doc in labelled:
        if not doc.is_labelled:
            continue
        if doc.label == positive_label:
            pos_word_counts.update(doc.features)
        else:
            neg_word_counts.update(doc.features)

    pos_token_count = sum(pos_word_counts.values())
    neg_token_count = sum(neg_word_counts.values())
    token_count = pos_token_count + neg_token_count
    if token_count == 0 or pos_token_count == 0 or neg_token_count == 0 or not word_prob:
        LOGGER.warning(
            "Feature marginals skipped: positive tokens=%d, negative tokens=%d, unlabelled types=%d",
            pos_token_count, neg_token_count, len(word_prob),
        )
        return {positive_label: {}, other_label: {}}

    # P(t|+), P(t|-)
    pos_token_prob = pos_token_count / token_count
    neg_token_prob = 1.0 - pos_token_prob
    l = pos_token_prob / neg_token_prob

    pos_optimised: dict[int, float] = {}
    neg_optimised: dict[int, float] = {}
    skipped = 0
    for word, p_w in word_prob.items():
        n_w_pos = pos_word_counts.get(word, 0)
        n_not_w_pos = pos_token_count - n_w_pos
        n_w_neg = neg_word_counts.get(word, 0)
        n_not_w_neg = neg_token_count - n_w_neg
        if not (n_not_w_pos > 0 and n_w_neg > 0):
            continue

        k = p_w / neg_token_prob
        upper = p_w / pos_token_prob
        constraint = FeatureMarginalsConstraint(n_w_pos, n_not_w_pos, n_w_neg, n_not_w_neg, k, l)
        try:
            theta = solve_constraint(constraint, 0.0, upper, max_evaluations)
        except SolverFailure as exc:
            LOGGER.debug("No feature-marginals root for word %s: %s", word, exc)
            skipped += 1
            continue

        if not (0.0 < theta <= upper):
            skipped += 1
            continue
        pos_optimised[word] = theta
        p_w_neg = (p_w - theta * pos_token_prob) / neg_token_prob
        if p_w_neg > 0:
            neg_optimised[word] = p_w_neg

    LOGGER.info(
        "Feature marginals optimised %d words (%d skipped)", len(pos_optimised), skipped
    )
    return {
        positive_label: _normalise(pos_optimised),
        other_label: _normalise(neg_optimised),
    }


def _normalise(probabilities: dict[int, float]) -> dict[int, float]:
    total = sum(probabilities.values())
    if total <= 0:
        return {}
    return {word: p / total for word, p in probabilities.items()}
