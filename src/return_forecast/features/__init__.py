"""Feature engineering, scaling and sequencing module."""

from .engineering import (
    FeatureEngineer,
    FeatureSet,
    compute_forward_return,
    compute_log_returns,
    compute_momentum,
    compute_rolling_volatility,
    compute_rsi,
    compute_sma,
)
from .scaling import StandardizationParams, Standardizer
from .sequences import DatasetSplit, DatasetSplitter, SequenceBuilder, SequenceSet

__all__ = [
    "compute_log_returns",
    "compute_rolling_volatility",
    "compute_sma",
    "compute_momentum",
    "compute_rsi",
    "compute_forward_return",
    "FeatureEngineer",
    "FeatureSet",
    "Standardizer",
    "StandardizationParams",
    "SequenceBuilder",
    "SequenceSet",
    "DatasetSplitter",
    "DatasetSplit",
]
