"""Classification Framework -- semi-supervised Naive Bayes text classification."""

__version__ = "0.1.0"

from .adjustments import (
    FeatureMarginalsAdjustment,
    LikelihoodAdjustment,
    SelfTrainingExpectation,
    StandardLikelihood,
)
from .config import ClassifierConfig
from .counts import CountTables
from .errors import (
    ClassificationFrameworkError,
    EmptyLabelSetError,
    EvaluationError,
    ModelFormatError,
    SolverFailure,
)
from .evaluation import (
    ClassificationMetrics,
    LabelMeasures,
    compute_metrics,
    cross_validate,
    evaluate,
    fit_classifier,
    stratified_k_fold,
)
from .indexer import StringIndexer
from .models import OTHER, UNLABELLED, ClassifierKind, Document, Label
from .naive_bayes import Classifier, NaiveBayesClassifier
from .ovr import OneVsRestClassifier
from .persistence import ModelSerializer, ModelState
from .pipeline import FeatureExtractionPipeline
from .precomputed import PrecomputedClassifier

__all__ = [
    # Core
    "Document",
    "Label",
    "OTHER",
    "UNLABELLED",
    "ClassifierKind",
    "ClassifierConfig",
    "CountTables",
    # Classifiers
    "Classifier",
    "NaiveBayesClassifier",
    "PrecomputedClassifier",
    "OneVsRestClassifier",
    # Likelihood adjustments
    "LikelihoodAdjustment",
    "StandardLikelihood",
    "FeatureMarginalsAdjustment",
    "SelfTrainingExpectation",
    # Persistence and features
    "StringIndexer",
    "ModelSerializer",
    "ModelState",
    "FeatureExtractionPipeline",
    # Evaluation
    "ClassificationMetrics",
    "LabelMeasures",
    "compute_metrics",
    "cross_validate",
    "evaluate",
    "fit_classifier",
    "stratified_k_fold",
    # Errors
    "ClassificationFrameworkError",
    "EmptyLabelSetError",
    "EvaluationError",
    "ModelFormatError",
    "SolverFailure",
]
