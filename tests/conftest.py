"""Pytest configuration and shared fixtures."""

import numpy as np
import pytest

from return_forecast.config import FeatureConfig, PipelineConfig
from return_forecast.data import RawSeries, generate_synthetic_series
from return_forecast.features import (
    DatasetSplitter,
    SequenceBuilder,
    StandardizationParams,
    Standardizer,
)
from return_forecast.training import EpochRecord, TrainingHistory, TrainingSession

from stubs import MeanModel, make_raw


@pytest.fixture
def synthetic_raw() -> RawSeries:
    """Seeded synthetic market data with the six default signals."""
    return generate_synthetic_series(days=300, seed=7)


@pytest.fixture
def ramp_raw() -> RawSeries:
    return make_raw(30)


@pytest.fixture
def small_feature_config() -> FeatureConfig:
    """Short indicator windows so small series still produce rows."""
    return FeatureConfig(
        volatility_windows=[3],
        sma_windows=[2],
        momentum_window=2,
        rsi_window=3,
        horizon=2,
    )


@pytest.fixture
def small_config(small_feature_config) -> PipelineConfig:
    return PipelineConfig(
        features=small_feature_config,
        lookback=5,
        epochs=2,
        train_ratio=0.7,
        val_ratio=0.1,
    )


@pytest.fixture
def unit_params() -> StandardizationParams:
    """Identity scaling for a single column."""
    return StandardizationParams(mean=np.array([0.0]), std=np.array([1.0]), n_samples=1)


@pytest.fixture
def trained_history() -> TrainingHistory:
    return TrainingHistory(
        [
            EpochRecord(epoch=1, train_loss=0.02, val_loss=0.0004),
            EpochRecord(epoch=2, train_loss=0.01, val_loss=0.0004),
        ]
    )


@pytest.fixture
def univariate_split():
    """Width-1 windows over a ramp, split 70/15/15."""
    series = np.arange(40, dtype=np.float64)
    sequences = SequenceBuilder().build_univariate(series, lookback=4)
    return DatasetSplitter().split(sequences, 0.7, 0.15)


@pytest.fixture
def mean_session(unit_params, trained_history) -> TrainingSession:
    """Session around a window-mean stub with identity scaling and lookback 3."""
    return TrainingSession(
        model=MeanModel(),
        feature_params=unit_params,
        target_params=unit_params,
        lookback=3,
        history=trained_history,
        feature_names=["return"],
    )


@pytest.fixture
def fitted_scaler() -> Standardizer:
    return Standardizer().fit(np.array([[1.0, 10.0], [3.0, 30.0]]))
