"""Forecasting module."""

from .confidence import prediction_confidence
from .forecaster import Forecaster, PredictionResult

__all__ = [
    "Forecaster",
    "PredictionResult",
    "prediction_confidence",
]
