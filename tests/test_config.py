"""Tests for ClassifierConfig validation and environment loading."""

from __future__ import annotations

import pytest

from classification_framework.config import ClassifierConfig


class TestClassifierConfig:

    def test_defaults(self):
        config = ClassifierConfig()
        assert config.label_smoothing == 5.0
        assert config.feature_smoothing == 1.0
        assert config.empirical_label_priors is True
        assert config.max_newton_raphson_evaluations == 1_000_000
        assert config.em_weight == 0.1

    @pytest.mark.parametrize("kwargs", [
        {"label_smoothing": -1.0},
        {"feature_smoothing": 0.0},
        {"max_newton_raphson_evaluations": 0},
        {"em_weight": 0.0},
    ])
    def test_invalid_values_rejected(self, kwargs):
        with pytest.raises(ValueError):
            ClassifierConfig(**kwargs)

    def test_zero_label_smoothing_allowed(self):
        assert ClassifierConfig(label_smoothing=0.0).label_smoothing == 0.0

    def test_from_env(self):
        env = {
            "CLASSIFIER_LABEL_SMOOTHING": "2.5",
            "CLASSIFIER_EMPIRICAL_LABEL_PRIORS": "false",
            "CLASSIFIER_MAX_NEWTON_RAPHSON_EVALUATIONS": "500",
            "CLASSIFIER_EM_WEIGHT": " ",
            "UNRELATED": "x",
        }
        config = ClassifierConfig.from_env(env)
        assert config.label_smoothing == 2.5
        assert config.empirical_label_priors is False
        assert config.max_newton_raphson_evaluations == 500
        assert config.em_weight == 0.1

    def test_from_env_custom_prefix(self):
        config = ClassifierConfig.from_env({"NB_FEATURE_SMOOTHING": "0.5"}, prefix="NB_")
        assert config.feature_smoothing == 0.5

    def test_from_env_reads_process_environment(self, monkeypatch):
        monkeypatch.setenv("CLASSIFIER_EM_WEIGHT", "0.3")
        assert ClassifierConfig.from_env().em_weight == 0.3

    @pytest.mark.parametrize("env", [
        {"CLASSIFIER_LABEL_SMOOTHING": "lots"},
        {"CLASSIFIER_EMPIRICAL_LABEL_PRIORS": "maybe"},
        {"CLASSIFIER_FEATURE_SMOOTHING": "-2"},
    ])
    def test_from_env_invalid(self, env):
        with pytest.raises(ValueError):
            ClassifierConfig.from_env(env)

    def test_dict_round_trip(self):
        config = ClassifierConfig(label_smoothing=1.0, em_weight=0.4)
        assert ClassifierConfig.from_dict(config.to_dict()) == config

    def test_from_dict_ignores_unknown_keys(self):
        assert ClassifierConfig.from_dict({"em_weight": 0.2, "legacy": True}).em_weight == 0.2
