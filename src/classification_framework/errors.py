"""Exception types raised by the classification framework."""

from __future__ import annotations


class ClassificationFrameworkError(Exception):
    """Base class for errors raised by this package."""


class EmptyLabelSetError(ClassificationFrameworkError, RuntimeError):
    """Raised when predicting with a classifier that knows no labels."""


class EvaluationError(ClassificationFrameworkError, ValueError):
    """Raised when gold-standard data is incompatible with a classifier."""


class ModelFormatError(ClassificationFrameworkError, ValueError):
    """Raised when a serialized model cannot be interpreted."""


class SolverFailure(ClassificationFrameworkError, ArithmeticError):
    """Raised when the Newton-Raphson solver cannot produce a usable root."""
