"""Data models shared by the classifiers."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union


class ClassifierKind(str, Enum):
    """Closed set of classifier kinds understood by the serializer."""

    NB = "NB"
    NB_FM = "NB_FM"
    NB_SFE = "NB_SFE"
    NB_OVR = "NB_OVR"
    NB_PRECOMPUTED = "NB_PRECOMPUTED"


class OtherLabel:
    """The synthetic "everything else" class used by one-vs-rest learners.

    There is exactly one instance, :data:`OTHER`. It is deliberately not an
    ``int`` so it can never collide with a real label.
    """

    _instance: "OtherLabel | None" = None
    name = "__OVR_OTHER_LABEL__"

    def __new__(cls) -> "OtherLabel":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "OTHER"

    def __reduce__(self):
        return (OtherLabel, ())


OTHER = OtherLabel()

#: A class label: a non-negative int, or :data:`OTHER` inside OVR learners.
Label = Union[int, OtherLabel]

UNLABELLED = -1


def label_sort_key(label: Label) -> tuple[int, int]:
    """Order real labels numerically and place :data:`OTHER` last."""
    if label is OTHER:
        return (1, 0)
    return (0, label)


def is_valid_label(label: Label) -> bool:
    return label is OTHER or label >= 0


@dataclass(frozen=True)
class Document:
    """A training or test unit: a multiset of indexed features plus a label.

    ``features`` keeps duplicates (counts matter). ``label`` is ``-1`` for
    unlabelled documents. ``source`` is an opaque reference back to the
    original text or id and never takes part in computation.
    """

    features: tuple[int, ...]
    label: Label = UNLABELLED
    source: Any = field(default=None, compare=False)

    def __post_init__(self) -> None:
        if not isinstance(self.features, tuple):
            object.__setattr__(self, "features", tuple(self.features))

    @property
    def is_labelled(self) -> bool:
        return is_valid_label(self.label)

    def with_label(self, label: Label) -> "Document":
        """Return a copy of this document carrying a different label."""
        return Document(self.features, label, self.source)
