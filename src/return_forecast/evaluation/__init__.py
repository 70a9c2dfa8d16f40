"""Evaluation module."""

from .metrics import (
    directional_accuracy,
    evaluate_session,
    mae,
    point_forecast_metrics,
    rmse,
)

__all__ = [
    "rmse",
    "mae",
    "directional_accuracy",
    "point_forecast_metrics",
    "evaluate_session",
]
