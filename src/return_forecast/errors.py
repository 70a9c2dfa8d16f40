"""
Exception hierarchy for the forecasting pipeline.

Every error carries a ``context`` dict (counts, indices, signal names) so the
caller can diagnose the failure without re-running the stage.
"""

from typing import Any, Dict, List, Optional


class ForecastError(Exception):
    """Base class for all pipeline errors."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.context = context or {}


# Bad input shape or configuration


class MissingSignalError(ForecastError):
    """A required named signal is absent from the raw series."""

    def __init__(self, missing: List[str], available: List[str]):
        super().__init__(
            f"Missing required signals: {missing}. Available: {available}",
            context={"missing": list(missing), "available": list(available)},
        )
        self.missing = list(missing)
        self.available = list(available)


class InvalidSeriesError(ForecastError):
    """Raw series are misaligned or contain invalid entries."""


class InsufficientDataError(ForecastError):
    """Not enough rows for the requested windowing."""


class InvalidRatioError(ForecastError):
    """Train/validation ratios are out of range or sum above 1."""


class ShapeMismatchError(ForecastError):
    """Matrix width does not match fitted parameters."""


class LengthMismatchError(ForecastError):
    """Two aligned arrays have different lengths."""

    def __init__(self, expected: int, actual: int, what: str = "arrays"):
        super().__init__(
            f"Length mismatch between {what}: {expected} != {actual}",
            context={"expected": expected, "actual": actual},
        )


# Stage called out of order


class NotFittedError(ForecastError):
    """Standardizer used before fit()."""


class ModelNotTrainedError(ForecastError):
    """Forecast requested before a training session produced a usable model."""


# Training failures


class TrainingFailedError(ForecastError):
    """
    The trainable model failed (divergence, non-finite loss, exception).

    ``history`` holds the epoch records collected before the failure.
    """

    def __init__(self, message: str, history: Optional[list] = None, **context: Any):
        super().__init__(message, context=context)
        self.history = list(history or [])


class TrainingInProgressError(ForecastError):
    """A training session is already running on this orchestrator."""
