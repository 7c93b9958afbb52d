"""Tests for the shared data models."""

from __future__ import annotations

import copy
import pickle

from classification_framework.models import (
    OTHER,
    UNLABELLED,
    ClassifierKind,
    Document,
    OtherLabel,
    is_valid_label,
    label_sort_key,
)


class TestOtherLabel:

    def test_singleton(self):
        assert OtherLabel() is OTHER

    def test_survives_copy_and_pickle(self):
        assert copy.deepcopy(OTHER) is OTHER
        assert pickle.loads(pickle.dumps(OTHER)) is OTHER

    def test_never_equals_an_int(self):
        assert OTHER != -1
        assert all(OTHER != i for i in range(5))

    def test_sorts_last(self):
        assert sorted([OTHER, 3, 0], key=label_sort_key) == [0, 3, OTHER]

    def test_is_valid_label(self):
        assert is_valid_label(OTHER)
        assert is_valid_label(0)
        assert not is_valid_label(UNLABELLED)


class TestDocument:

    def test_features_become_tuple(self):
        doc = Document([1, 2, 2], 0)
        assert doc.features == (1, 2, 2)

    def test_default_is_unlabelled(self):
        assert not Document((1,)).is_labelled

    def test_source_ignored_in_equality(self):
        assert Document((1,), 0, source="a") == Document((1,), 0, source="b")

    def test_with_label(self):
        doc = Document((1,), 0, source="s").with_label(OTHER)
        assert doc.label is OTHER
        assert doc.source == "s"


class TestClassifierKind:

    def test_values_are_strings(self):
        assert ClassifierKind("NB_OVR") is ClassifierKind.NB_OVR
        assert ClassifierKind.NB == "NB"
