"""Evaluation metrics and cross-validation for the classifiers.

Labels are whatever hashable ids the classifier uses (normally the ints
from a label :class:`~classification_framework.indexer.StringIndexer`).
"""

from __future__ import annotations

import logging
import random
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Callable, Hashable, Iterable, NamedTuple, Optional, Sequence

from .errors import EvaluationError
from .models import ClassifierKind, Document, label_sort_key
from .naive_bayes import Classifier, NaiveBayesClassifier
from .ovr import OneVsRestClassifier

LOGGER = logging.getLogger(__name__)

ClassifierFactory = Callable[[set], object]


# ---------------------------------------------------------------------------
# Evaluation Metrics
# ---------------------------------------------------------------------------

class LabelMeasures(NamedTuple):
    precision: float
    recall: float
    fb1: float


@dataclass
class ClassificationMetrics:
    """Confusion counts of a classifier over gold documents, with derived measures.

    Every label the classifier knows gets a row and a column in the
    confusion matrix, even when it never occurs in the gold data.

    Attributes:
        labels: Labels in display order.
        confusion_matrix: ``{actual: {predicted: count}}`` over ``labels``.
        measures: Per-label precision, recall and FB1.
    """

    labels: list[Hashable] = field(default_factory=list)
    confusion_matrix: dict[Hashable, dict[Hashable, int]] = field(default_factory=dict)
    measures: dict[Hashable, LabelMeasures] = field(default_factory=dict)

    @property
    def total_documents(self) -> int:
        return sum(sum(row.values()) for row in self.confusion_matrix.values())

    @property
    def total_correct(self) -> int:
        return sum(self.confusion_matrix[label][label] for label in self.labels)

    @property
    def accuracy(self) -> float:
        total = self.total_documents
        return self.total_correct / total if total else 0.0

    @property
    def macro_fb1(self) -> float:
        if not self.measures:
            return 0.0
        return sum(m.fb1 for m in self.measures.values()) / len(self.measures)

    @property
    def support(self) -> dict[Hashable, int]:
        """Gold document count per label."""
        return {label: sum(self.confusion_matrix[label].values()) for label in self.labels}

    def precision(self, label: Hashable) -> float:
        return self.measures[label].precision

    def recall(self, label: Hashable) -> float:
        return self.measures[label].recall

    def fb1(self, label: Hashable) -> float:
        return self.measures[label].fb1

    def to_dict(self) -> dict:
        return {
            "accuracy": round(self.accuracy, 4),
            "macro_fb1": round(self.macro_fb1, 4),
            "total_documents": self.total_documents,
            "total_correct": self.total_correct,
            "per_class": {
                str(label): {name: round(value, 4) for name, value in m._asdict().items()}
                for label, m in self.measures.items()
            },
            "confusion_matrix": {
                str(actual): {str(predicted): n for predicted, n in row.items()}
                for actual, row in self.confusion_matrix.items()
            },
        }

    def summary(self, names: Optional[Callable[[Hashable], str]] = None) -> str:
        """Per-label measures, accuracy and the confusion matrix as text."""
        names = names or str
        width = max([len(names(label)) for label in self.labels] + [8])
        lines = [f"{'Label':<{width}} {'Precision':>10} {'Recall':>10} {'FB1':>10} {'Support':>8}"]
        support = self.support
        for label in self.labels:
            m = self.measures[label]
            lines.append(
                f"{names(label):<{width}} {m.precision:>10.3f} {m.recall:>10.3f} "
                f"{m.fb1:>10.3f} {support[label]:>8}"
            )
        lines += [
            "",
            f"Accuracy: {self.accuracy:.3f} ({self.total_correct}/{self.total_documents})",
            "",
            "Confusion matrix (rows = actual, columns = predicted)",
            " " * width + "".join(f" {names(label):>{width}}" for label in self.labels),
        ]
        for actual in self.labels:
            row = self.confusion_matrix[actual]
            lines.append(
                f"{names(actual):<{width}}" + "".join(f" {row[p]:>{width}}" for p in self.labels)
            )
        return "\n".join(lines)


def compute_metrics(
    y_true: Sequence[Hashable],
    y_pred: Sequence[Hashable],
    labels: Iterable[Hashable] = (),
) -> ClassificationMetrics:
    """Tabulate gold against predicted labels.

    Args:
        y_true: Gold labels.
        y_pred: Predicted labels, aligned with ``y_true``.
        labels: Extra labels to include even if absent from both sequences.

    A label that is never predicted has precision 1, and one that never
    occurs in the gold data has recall 1, since neither made a mistake.

    Raises:
        ValueError: If the two sequences differ in length.
    """
    if len(y_true) != len(y_pred):
        raise ValueError("y_true and y_pred must have the same length")

    ordered = sorted(set(labels) | set(y_true) | set(y_pred), key=label_sort_key)
    matrix = {actual: dict.fromkeys(ordered, 0) for actual in ordered}
    for actual, predicted in zip(y_true, y_pred):
        matrix[actual][predicted] += 1

    measures = {}
    for label in ordered:
        true_positives = matrix[label][label]
        predicted_as = sum(matrix[other][label] for other in ordered)
        actually = sum(matrix[label].values())
        precision = true_positives / predicted_as if predicted_as else 1.0
        recall = true_positives / actually if actually else 1.0
        both = precision + recall
        measures[label] = LabelMeasures(precision, recall, 2 * precision * recall / both if both else 0.0)

    return ClassificationMetrics(labels=ordered, confusion_matrix=matrix, measures=measures)


def evaluate(classifier: Classifier, gold_documents: Iterable[Document]) -> ClassificationMetrics:
    """Score ``classifier`` against labelled documents.

    Unlabelled documents are ignored. Every label of the classifier appears
    in the result.

    Raises:
        EvaluationError: If a gold label is unknown to the classifier, or
            there is nothing to evaluate.
    """
    known = set(getattr(classifier, "labels", ()))
    y_true: list[Hashable] = []
    y_pred: list[Hashable] = []
    for doc in gold_documents:
        if not doc.is_labelled:
            continue
        if known and doc.label not in known:
            raise EvaluationError(
                f"Gold label {doc.label!r} is not among the classifier's labels "
                f"{sorted(known, key=label_sort_key)}"
            )
        y_true.append(doc.label)
        y_pred.append(classifier.best_label(doc.features))
    if not y_true:
        raise EvaluationError("No labelled documents to evaluate")
    metrics = compute_metrics(y_true, y_pred, known)
    LOGGER.info("Evaluated %d documents: accuracy %.4f", len(y_true), metrics.accuracy)
    return metrics


# ---------------------------------------------------------------------------
# Cross-Validation
# ---------------------------------------------------------------------------

def stratified_k_fold(
    labels: Sequence[Hashable],
    k: int = 5,
    seed: int = 42,
) -> list[tuple[list[int], list[int]]]:
    """Split indices into ``k`` (train, test) pairs with similar label mixes.

    Each label's indices are shuffled and dealt across the folds in turn,
    continuing from the fold where the previous label stopped, so fold
    sizes differ by at most one.
    """
    if k < 2:
        raise ValueError("k must be at least 2")
    rng = random.Random(seed)

    by_label: dict[Hashable, list[int]] = defaultdict(list)
    for idx, label in enumerate(labels):
        by_label[label].append(idx)

    test_folds: list[list[int]] = [[] for _ in range(k)]
    dealt = 0
    for label in sorted(by_label, key=label_sort_key):
        indices = by_label[label]
        rng.shuffle(indices)
        for idx in indices:
            test_folds[dealt % k].append(idx)
            dealt += 1

    folds = []
    for test in test_folds:
        held_out = set(test)
        folds.append(([i for i in range(len(labels)) if i not in held_out], sorted(test)))
    return folds


def fit_classifier(
    classifier,
    labelled: Sequence[Document],
    unlabelled: Optional[Sequence[Document]] = None,
    em_iterations: int = 0,
    em_weight: Optional[float] = None,
) -> None:
    """Train ``classifier`` with whichever regime its type supports.

    Counting classifiers are trained semi-supervised when unlabelled data is
    given (fitting their likelihood adjustment), then run ``em_iterations``
    EM cycles over it. One-vs-rest ensembles pass the unlabelled data to
    each learner and do not run EM. Settings that need unlabelled data are
    ignored with a warning when there is none.
    """
    if em_iterations and not unlabelled:
        LOGGER.warning("No unlabelled documents; ignoring %d EM iteration(s)", em_iterations)
        em_iterations = 0
    if isinstance(classifier, OneVsRestClassifier):
        if em_iterations:
            LOGGER.warning("EM is not run for one-vs-rest classifiers; ignoring %d iteration(s)", em_iterations)
        classifier.train(labelled, unlabelled or None)
        return
    if not isinstance(classifier, NaiveBayesClassifier):
        raise TypeError(f"Cannot train {type(classifier).__name__}")
    if unlabelled:
        classifier.train_semi_supervised(labelled, unlabelled)
        for _ in range(em_iterations):
            classifier.em_train(unlabelled, weight=em_weight)
    else:
        if classifier.kind is not ClassifierKind.NB:
            LOGGER.warning("%s needs unlabelled documents; training counts only", classifier.kind.value)
        classifier.train(labelled)


def cross_validate(
    documents: Sequence[Document],
    k: int = 5,
    classifier_factory: Optional[ClassifierFactory] = None,
    unlabelled: Optional[Sequence[Document]] = None,
    em_iterations: int = 0,
    seed: int = 42,
) -> list[ClassificationMetrics]:
    """Run stratified k-fold cross-validation.

    Args:
        documents: Labelled documents; unlabelled ones are dropped.
        k: Number of folds.
        classifier_factory: Called with the full label set for each fold.
            Defaults to a standard :class:`NaiveBayesClassifier`.
        unlabelled: Optional unlabelled pool for semi-supervised training.
        em_iterations: EM cycles over ``unlabelled`` per fold.
        seed: Random seed for fold generation.

    Returns:
        List of ClassificationMetrics (one per fold).
    """
    factory = classifier_factory or (lambda labels: NaiveBayesClassifier(labels=labels))
    labelled = [doc for doc in documents if doc.is_labelled]
    labels = [doc.label for doc in labelled]
    label_set = set(labels)

    results: list[ClassificationMetrics] = []
    for fold, (train_idx, test_idx) in enumerate(stratified_k_fold(labels, k=k, seed=seed)):
        if not test_idx:
            continue
        classifier = factory(set(label_set))
        fit_classifier(
            classifier,
            [labelled[i] for i in train_idx],
            unlabelled,
            em_iterations,
        )
        metrics = evaluate(classifier, [labelled[i] for i in test_idx])
        LOGGER.debug("Fold %d: accuracy %.4f", fold, metrics.accuracy)
        results.append(metrics)

    return results
