"""Counting Naive Bayes classifier with EM and pseudo-count steering.

The classifier stores raw weighted counts rather than probabilities, so it
can be trained incrementally, merged with other classifiers and steered by
a human annotator through pseudo-counts ("alphas"). Probabilities are
derived on demand by :mod:`classification_framework.estimator`.

Two common training regimes::

    # Bootstrap style: EM with the classifier labelling its own data
    nb = NaiveBayesClassifier(labels={0, 1})
    nb.set_feature_alpha(feature=17, label=0, alpha=50)
    nb.train(labelled_docs)
    nb.em_train(unlabelled_docs)

    # Dualist style: a pseudo-count-only classifier drives the E-step
    steering = NaiveBayesClassifier(labels={0, 1})
    steering.set_feature_alpha(feature=17, label=0, alpha=50)
    final = NaiveBayesClassifier(labels={0, 1})
    final.train(labelled_docs)
    final.em_train(unlabelled_docs, classifier=steering)

Variants (feature marginals, self-training feature expectation) are not
subclasses: they are :class:`~classification_framework.adjustments.LikelihoodAdjustment`
strategies that replace the per-feature log-likelihood.

For bulk inference, freeze the classifier with :meth:`NaiveBayesClassifier.precompute`.
"""

from __future__ import annotations

import logging
import math
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Iterable, Optional, Protocol, Sequence

from . import estimator
from .adjustments import (
    FeatureMarginalsAdjustment,
    LikelihoodAdjustment,
    SelfTrainingExpectation,
    StandardLikelihood,
)
from .config import ClassifierConfig
from .counts import CountTables
from .errors import EmptyLabelSetError
from .models import ClassifierKind, Document, Label, is_valid_label, label_sort_key

if TYPE_CHECKING:
    from .precomputed import PrecomputedClassifier

LOGGER = logging.getLogger(__name__)


class Classifier(Protocol):
    """Anything that can assign label probabilities to a feature list."""

    def predict(self, features: Sequence[int]) -> dict[Label, float]: ...

    def best_label(self, features: Sequence[int]) -> Label: ...


@dataclass
class NaiveBayesClassifier:
    """Multinomial Naive Bayes over integer features, stored as counts.

    Args:
        labels: Labels to pre-seed. Needed when the classifier must assign
            probability to labels it has not been trained on yet (e.g. an
            empty classifier used to bootstrap EM).
        config: Smoothing constants and training defaults.
        adjustment: Per-feature likelihood strategy. Defaults to the
            standard smoothed likelihood.
    """

    labels: set = field(default_factory=set)
    config: ClassifierConfig = field(default_factory=ClassifierConfig)
    adjustment: LikelihoodAdjustment = field(default_factory=StandardLikelihood)

    # Learned state
    vocab: set[int] = field(default_factory=set, repr=False)
    tables: CountTables = field(default_factory=CountTables, repr=False)

    def __post_init__(self) -> None:
        self.labels = set(self.labels)
        self.vocab = set(self.vocab)
        # Each classifier owns its config; the setters below replace it.
        self.config = replace(self.config)

    @classmethod
    def feature_marginals(
        cls,
        labels: Iterable[Label],
        config: Optional[ClassifierConfig] = None,
    ) -> "NaiveBayesClassifier":
        """Binary classifier whose likelihoods follow Lucas & Downey (2013)."""
        return cls(labels=set(labels), config=config or ClassifierConfig(), adjustment=FeatureMarginalsAdjustment())

    @classmethod
    def self_training(
        cls,
        labels: Iterable[Label] = (),
        config: Optional[ClassifierConfig] = None,
    ) -> "NaiveBayesClassifier":
        """Classifier using the self-training feature-expectation correction."""
        return cls(labels=set(labels), config=config or ClassifierConfig(), adjustment=SelfTrainingExpectation())

    @property
    def kind(self) -> ClassifierKind:
        return self.adjustment.kind

    @property
    def label_smoothing(self) -> float:
        return self.config.label_smoothing

    @label_smoothing.setter
    def label_smoothing(self, value: float) -> None:
        self.config = replace(self.config, label_smoothing=value)

    @property
    def feature_smoothing(self) -> float:
        return self.config.feature_smoothing

    @feature_smoothing.setter
    def feature_smoothing(self, value: float) -> None:
        self.config = replace(self.config, feature_smoothing=value)

    @property
    def empirical_label_priors(self) -> bool:
        return self.config.empirical_label_priors

    @empirical_label_priors.setter
    def empirical_label_priors(self, value: bool) -> None:
        self.config = replace(self.config, empirical_label_priors=value)

    def sorted_labels(self) -> list[Label]:
        return sorted(self.labels, key=label_sort_key)

    # ------------------------------------------------------------------
    # Training
    # ------------------------------------------------------------------

    def train_on_instance(
        self,
        label: Label,
        features: Sequence[int],
        label_probability: float = 1.0,
        weight: float = 1.0,
    ) -> None:
        """Count a single document. Every training path ends up here.

        Documents with no features or no label (``label < 0``) are skipped.

        Args:
            label: Label of the document.
            features: Features extracted from the document (duplicates count).
            label_probability: Probability of the label; 1 for gold labels,
                the posterior for EM soft labels.
            weight: Extra weighting applied to the counts.
        """
        if not features or not is_valid_label(label):
            return
        self.labels.add(label)
        self.vocab.update(features)
        self.tables.add_observation(label, features, label_probability * weight)

    def train(self, documents: Iterable[Document], weight: float = 1.0) -> int:
        """Train on labelled documents, skipping unlabelled or empty ones.

        Returns:
            Number of documents actually counted.
        """
        trained = 0
        for doc in documents:
            if doc.features and doc.is_labelled:
                self.train_on_instance(doc.label, doc.features, 1.0, weight)
                trained += 1
        LOGGER.debug("Trained on %d labelled documents (weight=%s)", trained, weight)
        return trained

    def train_weighted(self, documents: Sequence[Document], weights: Sequence[float]) -> int:
        """Train with a separate weight per document.

        Raises:
            ValueError: If ``weights`` and ``documents`` differ in length.
        """
        documents = list(documents)
        weights = list(weights)
        if len(documents) != len(weights):
            raise ValueError(
                f"documents ({len(documents)}) and weights ({len(weights)}) must have same length"
            )
        trained = 0
        for doc, weight in zip(documents, weights):
            if doc.features and doc.is_labelled:
                self.train_on_instance(doc.label, doc.features, 1.0, weight)
                trained += 1
        return trained

    def train_semi_supervised(
        self,
        labelled: Iterable[Document],
        unlabelled: Iterable[Document],
        weight: float = 1.0,
    ) -> None:
        """Train on labelled counts, then fit the likelihood adjustment.

        The standard adjustment ignores the unlabelled data; use
        :meth:`em_train` for EM-style semi-supervision.
        """
        labelled = list(labelled)
        unlabelled = list(unlabelled)
        self.train(labelled, weight)
        self.adjustment.fit(self, labelled, unlabelled)

    def em_train(
        self,
        documents: Iterable[Document],
        weight: Optional[float] = None,
        classifier: Optional[Classifier] = None,
        workers: Optional[int] = None,
    ) -> "NaiveBayesClassifier":
        """Run exactly one Expectation-Maximisation cycle.

        E-step: ``classifier`` (this one by default) assigns a label
        distribution to every document, and a scratch classifier counts each
        document once per label, weighted by ``posterior * weight``.
        M-step: the scratch counts are added into this classifier.

        Repeated calls accumulate further evidence; iteration control is left
        to the caller so re-labelling can be interleaved between cycles.

        Args:
            documents: Documents to soft-label; their gold labels are ignored.
            weight: Down-weighting of soft counts (defaults to
                ``config.em_weight``, normally 0.1).
            classifier: Classifier used for the E-step.
            workers: Thread count for classifying documents in the E-step.

        Returns:
            The scratch classifier holding this cycle's soft counts.
        """
        weight = self.config.em_weight if weight is None else weight
        classifier = self if classifier is None else classifier
        scratch = self._e_step(list(documents), weight, classifier, workers)
        self.merge(scratch)
        LOGGER.debug(
            "EM cycle merged %.3f soft documents across %d labels",
            sum(scratch.tables.doc_counts.values()),
            len(scratch.labels),
        )
        return scratch

    def _e_step(
        self,
        documents: list[Document],
        weight: float,
        classifier: Classifier,
        workers: Optional[int],
    ) -> "NaiveBayesClassifier":
        documents = [doc for doc in documents if doc.features]
        scratch = NaiveBayesClassifier(config=self.config)
        if not documents:
            return scratch
        if workers and workers > 1:
            with ThreadPoolExecutor(max_workers=workers) as pool:
                posteriors = list(pool.map(lambda d: classifier.predict(d.features), documents))
        else:
            posteriors = [classifier.predict(doc.features) for doc in documents]
        for doc, distribution in zip(documents, posteriors):
            for label, probability in distribution.items():
                scratch.train_on_instance(label, doc.features, probability, weight)
        return scratch

    def merge(self, other: "NaiveBayesClassifier") -> None:
        """Add another classifier's real counts to this one (the M-step)."""
        self.labels |= other.labels
        self.vocab |= other.vocab
        self.tables.merge(other.tables)

    # ------------------------------------------------------------------
    # Probabilities
    # ------------------------------------------------------------------

    def likelihood(self, feature: int, label: Label) -> float:
        """Smoothed ``P(feature|label)``."""
        return estimator.feature_likelihood(
            self.tables, len(self.vocab), feature, label, self.config.feature_smoothing
        )

    def label_priors(self) -> dict[Label, float]:
        """``P(label)`` for every known label."""
        return estimator.label_priors(
            self.tables,
            self.sorted_labels(),
            self.config.label_smoothing,
            self.config.empirical_label_priors,
        )

    def log_likelihood(self, feature: int, label: Label) -> float:
        """Per-feature log-likelihood after the adjustment strategy."""
        return self.adjustment.log_likelihood(self, feature, label)

    def log_scores(self, features: Sequence[int]) -> dict[Label, float]:
        """``log P(label) + sum(log P(f|label))`` for every label.

        Features outside the vocabulary contribute nothing.

        Raises:
            EmptyLabelSetError: If the classifier knows no labels.
        """
        if not self.labels:
            raise EmptyLabelSetError("Classifier has no labels. Train it or pre-seed labels first.")
        priors = self.label_priors()
        known = [f for f in features if f in self.vocab]
        scores: dict[Label, float] = {}
        for label in self.sorted_labels():
            score = estimator.safe_log(priors[label])
            for feature in known:
                score += self.adjustment.log_likelihood(self, feature, label)
            scores[label] = score
        return scores

    def predict(self, features: Sequence[int]) -> dict[Label, float]:
        """Return ``{label: P(label|features)}`` summing to 1."""
        return estimator.softmax(self.log_scores(features))

    def best_label(self, features: Sequence[int]) -> Label:
        """Return the most probable label."""
        return estimator.argmax(self.log_scores(features))

    def precompute(self) -> "PrecomputedClassifier":
        """Freeze current probabilities into a fast, read-only classifier."""
        from .precomputed import PrecomputedClassifier

        return PrecomputedClassifier.from_classifier(self)

    # ------------------------------------------------------------------
    # Steering: pseudo-counts and multipliers
    # ------------------------------------------------------------------

    def set_label_alpha(self, label: Label, alpha: float) -> None:
        """Set the pseudo-count of ``label`` (replaces any previous value)."""
        if alpha < 0:
            raise ValueError("alpha must be non-negative")
        self.labels.add(label)
        self.tables.label_alphas[label] = alpha

    def set_feature_alpha(self, feature: int, label: Label, alpha: float) -> None:
        """Set the pseudo-count of ``feature`` under ``label``."""
        if alpha < 0:
            raise ValueError("alpha must be non-negative")
        self.labels.add(label)
        self.vocab.add(feature)
        self.tables.set_feature_alpha(label, feature, alpha)

    def unlabel_feature(self, feature: int, label: Label) -> None:
        """Drop the pseudo-count of ``feature`` under ``label``.

        The feature also leaves the vocabulary when nothing else references it.
        """
        self.tables.remove_feature_alpha(label, feature)
        if not self.tables.references(feature):
            self.vocab.discard(feature)

    def set_label_multiplier(self, label: Label, multiplier: float) -> None:
        if multiplier < 0:
            raise ValueError("multiplier must be non-negative")
        self.tables.label_multipliers[label] = multiplier

    @property
    def labelled_features(self) -> dict[Label, dict[int, float]]:
        """Feature pseudo-counts per label."""
        return self.tables.feature_alphas

    @property
    def label_alphas(self) -> dict[Label, float]:
        return self.tables.label_alphas

    @property
    def label_multipliers(self) -> dict[Label, float]:
        return self.tables.label_multipliers

    # ------------------------------------------------------------------
    # Pruning
    # ------------------------------------------------------------------

    def feature_count(self, feature: int) -> float:
        """Real plus pseudo counts of ``feature`` summed over all labels."""
        return sum(
            self.tables.feature_alpha(label, feature) + self.tables.joint(label, feature)
            for label in self.labels
        )

    def get_infrequent_features(self, cutoff: float) -> set[int]:
        """Features whose total count (real + pseudo) is below ``cutoff``."""
        return {feature for feature in self.vocab if self.feature_count(feature) < cutoff}

    def trim_infrequent_features(self, cutoff: float) -> set[int]:
        """Delete every infrequent feature. Irreversible.

        Returns:
            The deleted features.
        """
        features = self.get_infrequent_features(cutoff)
        for feature in features:
            self.delete_feature(feature)
        if features:
            LOGGER.info("Trimmed %d features below count %s", len(features), cutoff)
        return features

    def delete_feature(self, feature: int) -> None:
        """Erase all real counts, pseudo-counts and vocabulary membership."""
        for label in list(self.tables.joint_counts):
            self.tables.remove_joint(label, feature)
        for label in list(self.tables.feature_alphas):
            self.tables.remove_feature_alpha(label, feature)
        self.vocab.discard(feature)

    # ------------------------------------------------------------------
    # Inspection
    # ------------------------------------------------------------------

    def most_informative_features(self, label: Label, top_n: int = 20) -> list[tuple[int, float]]:
        """Features most indicative of ``label`` relative to the others.

        Measures how much more likely a feature is under the target label
        compared to the average of all other labels, in log space.

        Raises:
            ValueError: If ``label`` is unknown.
        """
        if label not in self.labels:
            raise ValueError(f"Unknown label: {label}. Known: {self.sorted_labels()}")
        others = [l for l in self.sorted_labels() if l != label]
        ratios: list[tuple[int, float]] = []
        for feature in self.vocab:
            target = self.log_likelihood(feature, label)
            if others:
                target -= sum(self.log_likelihood(feature, o) for o in others) / len(others)
            ratios.append((feature, round(target, 4)))
        ratios.sort(key=lambda x: (-x[1], x[0]))
        return ratios[:top_n]

    def pairwise_label_kld(self) -> dict[tuple[Label, Label], float]:
        """Kullback-Leibler divergence (bits) between label language models.

        Uses the smoothed likelihoods, so pseudo-counts are included.
        """
        labels = self.sorted_labels()
        models = {
            label: {feature: self.likelihood(feature, label) for feature in self.vocab}
            for label in labels
        }
        divergences: dict[tuple[Label, Label], float] = {}
        for p in labels:
            for q in labels:
                total = 0.0
                if p != q:
                    for feature, pk in models[p].items():
                        qk = models[q][feature]
                        if pk > 0 and qk > 0 and pk != qk:
                            total += pk * math.log2(pk / qk)
                divergences[(p, q)] = total
        return divergences
