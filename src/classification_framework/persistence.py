"""JSON persistence for classifiers, training data and indexers.

Integer feature and label ids are only meaningful next to the indexers that
produced them, so on disk every id is written as its string. Loading with a
different indexer re-indexes the model against it.

A saved model directory holds::

    model.json       classifier state (tagged by ``kind``)
    metadata.json    free-form metadata plus ``classifier_kind``
    training.json    the training documents
    indexers.json    {"features": [...], "labels": [...]}
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Optional, Union

from .adjustments import FeatureMarginalsAdjustment, SelfTrainingExpectation, StandardLikelihood
from .config import ClassifierConfig
from .counts import CountTables
from .errors import ModelFormatError
from .indexer import StringIndexer
from .models import OTHER, UNLABELLED, ClassifierKind, Document, Label
from .naive_bayes import NaiveBayesClassifier
from .ovr import OneVsRestClassifier
from .precomputed import PrecomputedClassifier

LOGGER = logging.getLogger(__name__)

FORMAT_VERSION = "1.0"

MODEL_FILE = "model.json"
METADATA_FILE = "metadata.json"
TRAINING_FILE = "training.json"
INDEXERS_FILE = "indexers.json"

AnyClassifier = Union[NaiveBayesClassifier, PrecomputedClassifier, OneVsRestClassifier]

_LABEL_TABLES = ("doc_counts", "label_counts", "label_alphas", "feature_alpha_totals", "label_multipliers")
_NESTED_TABLES = ("joint_counts", "feature_alphas")


class ModelSerializer:
    """Converts classifiers to and from JSON-ready dicts.

    Without indexers, ids are written as decimal strings.

    Args:
        feature_indexer: Maps feature ids to strings.
        label_indexer: Maps label ids to strings.
    """

    def __init__(
        self,
        feature_indexer: Optional[StringIndexer] = None,
        label_indexer: Optional[StringIndexer] = None,
    ) -> None:
        self.feature_indexer = feature_indexer
        self.label_indexer = label_indexer
        self._loaders: dict[ClassifierKind, Callable[[dict], AnyClassifier]] = {
            ClassifierKind.NB: self._load_naive_bayes,
            ClassifierKind.NB_FM: self._load_naive_bayes,
            ClassifierKind.NB_SFE: self._load_naive_bayes,
            ClassifierKind.NB_OVR: self._load_ovr,
            ClassifierKind.NB_PRECOMPUTED: self._load_precomputed,
        }

    # ------------------------------------------------------------------
    # Key conversion
    # ------------------------------------------------------------------

    def feature_name(self, feature: int) -> str:
        if self.feature_indexer is None:
            return str(feature)
        name = self.feature_indexer.value(feature)
        if name is None:
            raise ModelFormatError(f"Feature id {feature} is not in the feature indexer")
        return name

    def label_name(self, label: Label) -> str:
        if label is OTHER:
            return OTHER.name
        if self.label_indexer is None:
            return str(label)
        name = self.label_indexer.value(label)
        if name is None:
            raise ModelFormatError(f"Label id {label} is not in the label indexer")
        return name

    def feature_id(self, name: str) -> int:
        if self.feature_indexer is None:
            return _parse_int(name, "feature")
        return self.feature_indexer.index(name)

    def label_id(self, name: str) -> Label:
        if name == OTHER.name:
            return OTHER
        if self.label_indexer is None:
            return _parse_int(name, "label")
        return self.label_indexer.index(name)

    def _dump_labelled(self, table: dict) -> dict[str, Any]:
        return {self.label_name(label): value for label, value in table.items()}

    def _dump_features(self, table: dict) -> dict[str, Any]:
        return {self.feature_name(feature): value for feature, value in table.items()}

    def _load_labelled(self, table: dict) -> dict:
        return {self.label_id(name): value for name, value in table.items()}

    def _load_features(self, table: dict) -> dict:
        return {self.feature_id(name): value for name, value in table.items()}

    # ------------------------------------------------------------------
    # Dump
    # ------------------------------------------------------------------

    def dump(self, classifier: AnyClassifier) -> dict:
        """Return a JSON-ready dict tagged with the classifier's ``kind``."""
        if isinstance(classifier, OneVsRestClassifier):
            return self._dump_ovr(classifier)
        if isinstance(classifier, PrecomputedClassifier):
            return self._dump_precomputed(classifier)
        if isinstance(classifier, NaiveBayesClassifier):
            return self._dump_naive_bayes(classifier)
        raise ModelFormatError(f"Cannot serialize {type(classifier).__name__}")

    def _dump_naive_bayes(self, nb: NaiveBayesClassifier) -> dict:
        tables: dict[str, Any] = {}
        for name in _LABEL_TABLES:
            tables[name] = self._dump_labelled(getattr(nb.tables, name))
        for name in _NESTED_TABLES:
            tables[name] = {
                self.label_name(label): self._dump_features(inner)
                for label, inner in getattr(nb.tables, name).items()
            }
        return {
            "kind": nb.kind.value,
            "config": nb.config.to_dict(),
            "labels": [self.label_name(label) for label in nb.sorted_labels()],
            "vocab": [self.feature_name(feature) for feature in sorted(nb.vocab)],
            "tables": tables,
            "adjustment": self._dump_adjustment(nb),
        }

    def _dump_adjustment(self, nb: NaiveBayesClassifier) -> dict:
        adjustment = nb.adjustment
        if isinstance(adjustment, FeatureMarginalsAdjustment):
            return {
                "max_evaluations": adjustment.max_evaluations,
                "opt_class_cond_probs": {
                    self.label_name(label): self._dump_features(probs)
                    for label, probs in adjustment.opt_class_cond_probs.items()
                },
            }
        if isinstance(adjustment, SelfTrainingExpectation):
            return {
                "unlabelled_word_probs": self._dump_features(adjustment.unlabelled_word_probs),
                "log_norms": self._dump_labelled(adjustment.log_norms),
            }
        return {}

    def _dump_ovr(self, ovr: OneVsRestClassifier) -> dict:
        return {
            "kind": ovr.kind.value,
            "labels": [self.label_name(label) for label in ovr.sorted_labels()],
            "workers": ovr.workers,
            "learners": [
                {"target": self.label_name(target), "model": self.dump(learner)}
                for target, learner in ovr.learners.items()
            ],
        }

    def _dump_precomputed(self, pc: PrecomputedClassifier) -> dict:
        return {
            "kind": pc.kind.value,
            "source_kind": pc.source_kind.value,
            "log_label_priors": self._dump_labelled(pc.log_label_priors),
            "log_feature_likelihoods": {
                self.label_name(label): self._dump_features(table)
                for label, table in pc.log_feature_likelihoods.items()
            },
        }

    # ------------------------------------------------------------------
    # Load
    # ------------------------------------------------------------------

    def load(self, data: dict) -> AnyClassifier:
        """Rebuild a classifier from :meth:`dump` output.

        Raises:
            ModelFormatError: On an unknown ``kind`` or missing fields.
        """
        if not isinstance(data, dict):
            raise ModelFormatError(f"Model data must be an object, got {type(data).__name__}")
        kind = _parse_kind(data.get("kind"))
        try:
            return self._loaders[kind](data)
        except (KeyError, TypeError, AttributeError) as exc:
            raise ModelFormatError(f"Malformed {kind.value} model: {exc!r}") from exc

    def _load_naive_bayes(self, data: dict) -> NaiveBayesClassifier:
        kind = _parse_kind(data["kind"])
        raw_tables = data["tables"]
        tables = CountTables()
        for name in _LABEL_TABLES:
            setattr(tables, name, self._load_labelled(raw_tables.get(name, {})))
        for name in _NESTED_TABLES:
            setattr(tables, name, {
                self.label_id(label): self._load_features(inner)
                for label, inner in raw_tables.get(name, {}).items()
            })
        try:
            config = ClassifierConfig.from_dict(data.get("config", {}))
        except ValueError as exc:
            raise ModelFormatError(f"Invalid classifier config: {exc}") from exc
        return NaiveBayesClassifier(
            labels={self.label_id(name) for name in data["labels"]},
            config=config,
            adjustment=self._load_adjustment(kind, data.get("adjustment", {})),
            vocab={self.feature_id(name) for name in data["vocab"]},
            tables=tables,
        )

    def _load_adjustment(self, kind: ClassifierKind, data: dict):
        if kind is ClassifierKind.NB_FM:
            return FeatureMarginalsAdjustment(
                max_evaluations=data.get("max_evaluations"),
                opt_class_cond_probs={
                    self.label_id(label): self._load_features(probs)
                    for label, probs in data.get("opt_class_cond_probs", {}).items()
                },
            )
        if kind is ClassifierKind.NB_SFE:
            return SelfTrainingExpectation(
                unlabelled_word_probs=self._load_features(data.get("unlabelled_word_probs", {})),
                log_norms=self._load_labelled(data.get("log_norms", {})),
            )
        return StandardLikelihood()

    def _load_ovr(self, data: dict) -> OneVsRestClassifier:
        learners = {
            self.label_id(entry["target"]): self.load(entry["model"])
            for entry in data["learners"]
        }
        for learner in learners.values():
            if isinstance(learner, OneVsRestClassifier):
                raise ModelFormatError("One-vs-rest learners cannot be nested")
        return OneVsRestClassifier.from_learners(
            [self.label_id(name) for name in data["labels"]],
            learners,
            workers=data.get("workers"),
        )

    def _load_precomputed(self, data: dict) -> PrecomputedClassifier:
        return PrecomputedClassifier(
            log_label_priors=self._load_labelled(data["log_label_priors"]),
            log_feature_likelihoods={
                self.label_id(label): self._load_features(table)
                for label, table in data["log_feature_likelihoods"].items()
            },
            source_kind=_parse_kind(data.get("source_kind", ClassifierKind.NB.value)),
        )

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    def dump_document(self, doc: Document) -> dict:
        return {
            "features": [self.feature_name(feature) for feature in doc.features],
            "label": self.label_name(doc.label) if doc.is_labelled else None,
            "source": doc.source,
        }

    def load_document(self, data: dict) -> Document:
        label = data.get("label")
        return Document(
            features=tuple(self.feature_id(name) for name in data["features"]),
            label=UNLABELLED if label is None else self.label_id(label),
            source=data.get("source"),
        )


@dataclass
class ModelState:
    """A trained classifier bundled with the data needed to reuse it.

    Example::

        state = ModelState(nb, training_docs, pipeline.feature_indexer, pipeline.label_indexer)
        state.save("models/sentiment")
        restored = ModelState.load("models/sentiment")
    """

    classifier: AnyClassifier
    training_documents: list[Document] = field(default_factory=list)
    feature_indexer: StringIndexer = field(default_factory=StringIndexer)
    label_indexer: StringIndexer = field(default_factory=StringIndexer)
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def classifier_kind(self) -> ClassifierKind:
        return self.classifier.kind

    def save(self, directory: Union[str, Path]) -> Path:
        """Write the four model files into ``directory`` (created if needed).

        Raises:
            NotADirectoryError: If ``directory`` exists and is a file.
        """
        path = Path(directory)
        if path.exists() and not path.is_dir():
            raise NotADirectoryError(f"Not a directory: {path}")
        path.mkdir(parents=True, exist_ok=True)

        serializer = ModelSerializer(self.feature_indexer, self.label_indexer)
        metadata = {
            **self.metadata,
            "version": FORMAT_VERSION,
            "classifier_kind": self.classifier_kind.value,
        }
        _write_json(path / MODEL_FILE, serializer.dump(self.classifier))
        _write_json(path / METADATA_FILE, metadata)
        _write_json(path / TRAINING_FILE, [serializer.dump_document(doc) for doc in self.training_documents])
        _write_json(path / INDEXERS_FILE, {
            "features": self.feature_indexer.to_list(),
            "labels": self.label_indexer.to_list(),
        })
        LOGGER.info("Saved %s model to %s", self.classifier_kind.value, path)
        return path

    @classmethod
    def load(
        cls,
        directory: Union[str, Path],
        feature_indexer: Optional[StringIndexer] = None,
        label_indexer: Optional[StringIndexer] = None,
    ) -> "ModelState":
        """Load a model directory written by :meth:`save`.

        Passing indexers re-indexes the model and its training data against
        them; strings they do not yet know are appended.

        Raises:
            FileNotFoundError: If the directory or one of its files is missing.
            NotADirectoryError: If ``directory`` is a file.
            ModelFormatError: If a file is malformed or the kinds disagree.
        """
        path = Path(directory)
        if not path.exists():
            raise FileNotFoundError(f"Model directory not found: {path}")
        if not path.is_dir():
            raise NotADirectoryError(f"Not a directory: {path}")

        stored = _read_json(path / INDEXERS_FILE)
        try:
            stored_features = StringIndexer.from_list(stored["features"])
            stored_labels = StringIndexer.from_list(stored["labels"])
        except (KeyError, TypeError, ValueError) as exc:
            raise ModelFormatError(f"Malformed {INDEXERS_FILE}: {exc!r}") from exc
        feature_indexer = stored_features if feature_indexer is None else feature_indexer
        label_indexer = stored_labels if label_indexer is None else label_indexer

        serializer = ModelSerializer(feature_indexer, label_indexer)
        metadata = _read_json(path / METADATA_FILE)
        if not isinstance(metadata, dict):
            raise ModelFormatError(f"{METADATA_FILE} must hold an object")
        classifier = serializer.load(_read_json(path / MODEL_FILE))
        declared = metadata.get("classifier_kind")
        if declared is not None and declared != classifier.kind.value:
            raise ModelFormatError(
                f"{METADATA_FILE} declares {declared} but {MODEL_FILE} holds {classifier.kind.value}"
            )

        raw_documents = _read_json(path / TRAINING_FILE)
        try:
            documents = [serializer.load_document(doc) for doc in raw_documents]
        except (KeyError, TypeError) as exc:
            raise ModelFormatError(f"Malformed {TRAINING_FILE}: {exc!r}") from exc

        metadata = {k: v for k, v in metadata.items() if k not in ("version", "classifier_kind")}
        LOGGER.info("Loaded %s model from %s", classifier.kind.value, path)
        return cls(classifier, documents, feature_indexer, label_indexer, metadata)


def _parse_kind(value: Any) -> ClassifierKind:
    try:
        return ClassifierKind(value)
    except ValueError as exc:
        raise ModelFormatError(f"Unknown classifier kind: {value!r}") from exc


def _parse_int(name: str, what: str) -> int:
    try:
        return int(name)
    except (TypeError, ValueError) as exc:
        raise ModelFormatError(f"Expected an integer {what} id, got {name!r}") from exc


def _write_json(path: Path, data: Any) -> None:
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)


def _read_json(path: Path) -> Any:
    if not path.is_file():
        raise FileNotFoundError(f"Missing model file: {path}")
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except json.JSONDecodeError as exc:
        raise ModelFormatError(f"Invalid JSON in {path.name}: {exc}") from exc
