"""Smoothed probability estimates over count tables.

Every function here is pure: it reads a :class:`CountTables` snapshot plus
smoothing constants and returns numbers. The counting classifier, the
precomputed classifier and the likelihood adjustments all funnel through
these so the arithmetic lives in exactly one place.

Feature likelihood (a Dirichlet-smoothed multinomial)::

    P(f|l) = (feature_smoothing + alpha[l][f] + joint[l][f])
             / (alpha_total[l] + feature_smoothing * |V| + label_count[l])

Label prior::

    P(l) ∝ multiplier[l] * (label_smoothing + label_alpha[l] + docs[l])

where ``docs[l]`` is replaced by 1 when empirical priors are disabled.
"""

from __future__ import annotations

import math
from collections import Counter
from typing import Hashable, Iterable, Mapping

from .counts import CountTables
from .models import Document


def feature_likelihood(
    tables: CountTables,
    vocab_size: int,
    feature: int,
    label: Hashable,
    feature_smoothing: float,
) -> float:
    """Return ``P(feature|label)``; strictly positive for positive smoothing."""
    numerator = feature_smoothing + tables.feature_alpha(label, feature) + tables.joint(label, feature)
    denominator = (
        tables.feature_alpha_totals.get(label, 0.0)
        + feature_smoothing * vocab_size
        + tables.label_counts.get(label, 0.0)
    )
    return numerator / denominator


def label_priors(
    tables: CountTables,
    labels: Iterable[Hashable],
    label_smoothing: float,
    empirical: bool = True,
) -> dict[Hashable, float]:
    """Return ``{label: P(label)}`` normalised over ``labels``."""
    numerators: dict[Hashable, float] = {}
    for label in labels:
        multiplier = tables.label_multipliers.get(label, 1.0)
        empirical_count = tables.doc_counts.get(label, 0.0) if empirical else 1.0
        numerators[label] = multiplier * (
            label_smoothing + tables.label_alphas.get(label, 0.0) + empirical_count
        )
    total = sum(numerators.values())
    if total <= 0:
        # Zero smoothing on an untrained label set: fall back to uniform.
        return {label: 1.0 / len(numerators) for label in numerators} if numerators else {}
    return {label: value / total for label, value in numerators.items()}


def word_probabilities(documents: Iterable[Document]) -> dict[int, float]:
    """Empirical ``P(w)``: occurrences of ``w`` over all feature occurrences."""
    counts: Counter[int] = Counter()
    for doc in documents:
        counts.update(doc.features)
    total = sum(counts.values())
    if total == 0:
        return {}
    return {feature: count / total for feature, count in counts.items()}


def log_sum_exp(values: Iterable[float]) -> float:
    """Compute ``log(sum(exp(v)))`` without overflow or underflow."""
    values = list(values)
    if not values:
        return -math.inf
    peak = max(values)
    if peak == -math.inf:
        return -math.inf
    return peak + math.log(sum(math.exp(v - peak) for v in values))


def softmax(log_scores: Mapping[Hashable, float]) -> dict[Hashable, float]:
    """Normalise unnormalised log scores into a probability distribution.

    Subtracts the maximum before exponentiating so the largest term is
    exactly ``exp(0) = 1``.
    """
    peak = max(log_scores.values())
    if peak == -math.inf:
        return {label: 1.0 / len(log_scores) for label in log_scores}
    exp_scores = {label: math.exp(score - peak) for label, score in log_scores.items()}
    total = sum(exp_scores.values())
    return {label: score / total for label, score in exp_scores.items()}


def safe_log(value: float) -> float:
    """``log`` that maps zero (e.g. a zero label multiplier) to ``-inf``."""
    return math.log(value) if value > 0 else -math.inf


def argmax(scores: Mapping[Hashable, float]) -> Hashable:
    """Key with the greatest value; the first one seen wins ties."""
    return max(scores, key=scores.__getitem__)
