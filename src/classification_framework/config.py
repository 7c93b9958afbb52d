"""Configuration knobs for the Naive Bayes classifiers."""

from __future__ import annotations

import os
from dataclasses import asdict, dataclass, fields
from typing import Any, Mapping, Optional

DEFAULT_LABEL_SMOOTHING = 5.0
DEFAULT_FEATURE_SMOOTHING = 1.0
DEFAULT_MAX_NEWTON_RAPHSON_EVALUATIONS = 1_000_000
DEFAULT_EM_WEIGHT = 0.1

_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off"}


@dataclass
class ClassifierConfig:
    """Smoothing constants and training defaults.

    Args:
        label_smoothing: Additive constant for every label prior numerator.
        feature_smoothing: Additive constant for every feature likelihood
            numerator. Must be positive so no likelihood is ever zero.
        empirical_label_priors: When ``False`` every label receives the same
            empirical term of 1, so priors are driven only by smoothing,
            pseudo-counts and multipliers.
        max_newton_raphson_evaluations: Iteration cap for the
            feature-marginals root finder.
        em_weight: Default weight applied to soft counts gathered by EM.

    Raises:
        ValueError: If any parameter is out of range.
    """

    label_smoothing: float = DEFAULT_LABEL_SMOOTHING
    feature_smoothing: float = DEFAULT_FEATURE_SMOOTHING
    empirical_label_priors: bool = True
    max_newton_raphson_evaluations: int = DEFAULT_MAX_NEWTON_RAPHSON_EVALUATIONS
    em_weight: float = DEFAULT_EM_WEIGHT

    def __post_init__(self) -> None:
        if self.label_smoothing < 0:
            raise ValueError("label_smoothing must be non-negative")
        if self.feature_smoothing <= 0:
            raise ValueError("feature_smoothing must be positive")
        if self.max_newton_raphson_evaluations < 1:
            raise ValueError("max_newton_raphson_evaluations must be at least 1")
        if self.em_weight <= 0:
            raise ValueError("em_weight must be positive")

    @classmethod
    def from_env(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        prefix: str = "CLASSIFIER_",
    ) -> "ClassifierConfig":
        """Build a config from ``CLASSIFIER_*`` environment variables.

        Unset variables keep their defaults, e.g. ``CLASSIFIER_LABEL_SMOOTHING=2``.
        """
        env = os.environ if environ is None else environ
        values: dict[str, Any] = {}
        for f in fields(cls):
            raw = env.get(prefix + f.name.upper())
            if raw is None or raw.strip() == "":
                continue
            values[f.name] = _coerce(f.name, raw.strip(), f.type)
        return cls(**values)

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ClassifierConfig":
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})


def _coerce(name: str, raw: str, type_name: Any) -> Any:
    type_name = str(type_name)
    if type_name == "bool":
        lowered = raw.lower()
        if lowered in _TRUTHY:
            return True
        if lowered in _FALSY:
            return False
        raise ValueError(f"{name} must be a boolean, got {raw!r}")
    try:
        if type_name == "int":
            return int(raw)
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be numeric, got {raw!r}") from exc
