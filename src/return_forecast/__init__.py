"""
Return Forecast

GRU forecasting of short-horizon market returns: feature engineering,
leakage-aware scaling, chronological windowing, orchestrated training and
recursive multi-day forecasts.
"""

__version__ = "0.3.0"

from . import data, evaluation, features, forecasting, models, training

__all__ = ["data", "features", "models", "training", "forecasting", "evaluation"]
