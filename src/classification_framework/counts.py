"""Frequency and pseudo-count tables owned by a counting classifier."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Hashable, Iterable, Mapping

# Every table is keyed by label first; labels are ints or the OVR OTHER marker.
LabelKey = Hashable


@dataclass
class CountTables:
    """Weighted real counts plus human-supplied pseudo-counts.

    Attributes:
        doc_counts: Weighted number of documents per label.
        label_counts: Weighted number of feature occurrences per label.
        joint_counts: Per label, weighted co-occurrence count of each feature.
        label_alphas: Label pseudo-counts.
        feature_alphas: Per label, feature pseudo-counts.
        feature_alpha_totals: Per label, sum of its feature pseudo-counts.
        label_multipliers: Post-hoc scalar applied to the label prior only.
    """

    doc_counts: dict[LabelKey, float] = field(default_factory=dict)
    label_counts: dict[LabelKey, float] = field(default_factory=dict)
    joint_counts: dict[LabelKey, dict[int, float]] = field(default_factory=dict)
    label_alphas: dict[LabelKey, float] = field(default_factory=dict)
    feature_alphas: dict[LabelKey, dict[int, float]] = field(default_factory=dict)
    feature_alpha_totals: dict[LabelKey, float] = field(default_factory=dict)
    label_multipliers: dict[LabelKey, float] = field(default_factory=dict)

    def joint(self, label: LabelKey, feature: int) -> float:
        return self.joint_counts.get(label, {}).get(feature, 0.0)

    def feature_alpha(self, label: LabelKey, feature: int) -> float:
        return self.feature_alphas.get(label, {}).get(feature, 0.0)

    def add_observation(self, label: LabelKey, features: Iterable[int], amount: float) -> None:
        """Count one document's features under ``label`` with mass ``amount``."""
        _add(self.doc_counts, label, amount)
        joint = self.joint_counts.setdefault(label, {})
        for feature in features:
            _add(self.label_counts, label, amount)
            _add(joint, feature, amount)

    def set_feature_alpha(self, label: LabelKey, feature: int, alpha: float) -> None:
        alphas = self.feature_alphas.setdefault(label, {})
        previous = alphas.get(feature, 0.0)
        _add(self.feature_alpha_totals, label, alpha - previous)
        alphas[feature] = alpha

    def remove_feature_alpha(self, label: LabelKey, feature: int) -> None:
        alphas = self.feature_alphas.get(label)
        if alphas is None or feature not in alphas:
            return
        _add(self.feature_alpha_totals, label, -alphas.pop(feature))

    def remove_joint(self, label: LabelKey, feature: int) -> None:
        joint = self.joint_counts.get(label)
        if joint is None or feature not in joint:
            return
        count = joint.pop(feature)
        self.label_counts[label] = max(0.0, self.label_counts.get(label, 0.0) - count)

    def references(self, feature: int) -> bool:
        """Whether any label has real or pseudo counts for ``feature``."""
        return any(feature in joint for joint in self.joint_counts.values()) or any(
            feature in alphas for alphas in self.feature_alphas.values()
        )

    def merge(self, other: "CountTables") -> None:
        """Add ``other``'s real counts into this table (the M-step reduction)."""
        _add_all(self.doc_counts, other.doc_counts)
        _add_all(self.label_counts, other.label_counts)
        for label, joint in other.joint_counts.items():
            _add_all(self.joint_counts.setdefault(label, {}), joint)

    def copy(self) -> "CountTables":
        return CountTables(
            doc_counts=dict(self.doc_counts),
            label_counts=dict(self.label_counts),
            joint_counts={k: dict(v) for k, v in self.joint_counts.items()},
            label_alphas=dict(self.label_alphas),
            feature_alphas={k: dict(v) for k, v in self.feature_alphas.items()},
            feature_alpha_totals=dict(self.feature_alpha_totals),
            label_multipliers=dict(self.label_multipliers),
        )


def _add(table: dict, key: Hashable, amount: float) -> None:
    table[key] = table.get(key, 0.0) + amount


def _add_all(table: dict, other: Mapping) -> None:
    for key, amount in other.items():
        _add(table, key, amount)
