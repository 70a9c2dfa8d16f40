"""
End-to-end pipeline: raw series -> features -> scaling -> sequences -> split
-> training session -> evaluation and recursive forecast.

LEAKAGE PREVENTION: with ``standardize_scope="train"`` (default) the
feature and target scalers are fit only on rows reachable from training
windows and then applied unchanged everywhere else. ``"all"`` fits on the
whole matrix, which leaks validation/test statistics into training.
"""

from dataclasses import dataclass
from typing import Callable, List, Optional

import numpy as np
from loguru import logger

from return_forecast.config import PipelineConfig
from return_forecast.data.series import RawSeries, log_returns_from_prices
from return_forecast.errors import InsufficientDataError, ShapeMismatchError
from return_forecast.evaluation.metrics import evaluate_session
from return_forecast.features.engineering import FeatureEngineer, FeatureSet
from return_forecast.features.scaling import StandardizationParams, Standardizer
from return_forecast.features.sequences import (
    DatasetSplit,
    DatasetSplitter,
    SequenceBuilder,
    SequenceSet,
)
from return_forecast.forecasting.forecaster import Forecaster, PredictionResult
from return_forecast.models.base import SequenceModel
from return_forecast.models.training import GRUTrainer
from return_forecast.training.orchestrator import ProgressCallback, TrainingOrchestrator
from return_forecast.training.session import TrainingSession

ModelFactory = Callable[[int, PipelineConfig], SequenceModel]


def default_model_factory(
    input_size: int,
    config: PipelineConfig,
    device: Optional[str] = None,
) -> SequenceModel:
    """Bundled GRU capability configured from the pipeline options."""
    kwargs = {"device": device} if device else {}
    return GRUTrainer(
        input_size=input_size,
        epochs=config.epochs,
        batch_size=config.batch_size,
        learning_rate=config.learning_rate,
        seed=config.seed,
        **kwargs,
    )


@dataclass
class PreparedData:
    """Everything a training session and forecast need, already normalized."""

    sequences: SequenceSet
    split: DatasetSplit
    feature_params: StandardizationParams
    target_params: StandardizationParams
    feature_names: List[str]
    latest_window: np.ndarray
    scope: str
    feature_set: Optional[FeatureSet] = None
    target_dates: Optional[object] = None

    @property
    def lookback(self) -> int:
        return self.sequences.lookback

    @property
    def width(self) -> int:
        return self.sequences.width


class ForecastPipeline:
    """
    Wires the pipeline stages together under one PipelineConfig.

    Usage:
        pipeline = ForecastPipeline(PipelineConfig(lookback=60, epochs=20))
        prepared = pipeline.prepare(raw)
        session = pipeline.train(prepared, progress_callback=print)
        metrics = pipeline.evaluate(session, prepared)
        forecast = pipeline.forecast(session, prepared)
    """

    def __init__(
        self,
        config: Optional[PipelineConfig] = None,
        model_factory: Optional[ModelFactory] = None,
        orchestrator: Optional[TrainingOrchestrator] = None,
    ):
        self.config = config or PipelineConfig()
        self.model_factory = model_factory or default_model_factory
        self.orchestrator = orchestrator or TrainingOrchestrator()
        self.engineer = FeatureEngineer(self.config.features)
        self.builder = SequenceBuilder()
        self.splitter = DatasetSplitter()

    def _train_end(self, n_rows: int) -> int:
        """Number of training windows for ``n_rows`` aligned rows."""
        lookback = self.config.lookback
        if lookback >= n_rows:
            raise InsufficientDataError(
                f"lookback={lookback} requires more than {lookback} rows, got {n_rows}",
                context={"lookback": lookback, "rows": n_rows},
            )
        train_end, _ = self.splitter.cut_points(
            n_rows - lookback, self.config.train_ratio, self.config.val_ratio
        )
        if train_end == 0:
            raise InsufficientDataError(
                f"train_ratio={self.config.train_ratio} leaves no training windows "
                f"out of {n_rows - lookback}",
                context={"sequences": n_rows - lookback},
            )
        return train_end

    def _fit_scalers(self, rows: np.ndarray, targets: np.ndarray, train_end: int):
        lookback = self.config.lookback
        if self.config.standardize_scope == "all":
            logger.warning(
                "standardize_scope='all': scaling fit on the full matrix, "
                "validation/test statistics leak into training"
            )
            fit_rows, fit_targets = rows, targets
        else:
            # Training windows cover rows [0, train_end - 1 + lookback)
            fit_rows = rows[: train_end - 1 + lookback]
            fit_targets = targets[lookback : lookback + train_end]

        feature_scaler = Standardizer().fit(fit_rows)
        target_scaler = Standardizer().fit(fit_targets)
        return feature_scaler, target_scaler

    def prepare(self, raw: RawSeries) -> PreparedData:
        """Multivariate path: engineered features, forward-return target."""
        cfg = self.config
        feature_set = self.engineer.transform(raw)
        rows = feature_set.matrix
        targets = feature_set.target

        if not 0 <= cfg.feedback_column < rows.shape[1]:
            raise ShapeMismatchError(
                f"feedback_column={cfg.feedback_column} out of range for {rows.shape[1]} features",
                context={"feedback_column": cfg.feedback_column, "width": rows.shape[1]},
            )

        train_end = self._train_end(rows.shape[0])
        feature_scaler, target_scaler = self._fit_scalers(rows, targets, train_end)

        sequences = self.builder.build(
            feature_scaler.transform(rows),
            target_scaler.transform_column(targets),
            cfg.lookback,
        )
        split = self.splitter.split(sequences, cfg.train_ratio, cfg.val_ratio)

        live = feature_set.live_features.to_numpy(dtype=np.float64)
        latest_window = feature_scaler.transform(live[-cfg.lookback :])

        target_dates = None
        if feature_set.dates is not None:
            target_dates = feature_set.dates[cfg.lookback :]

        return PreparedData(
            sequences=sequences,
            split=split,
            feature_params=feature_scaler.params,
            target_params=target_scaler.params,
            feature_names=list(feature_set.feature_names),
            latest_window=latest_window,
            scope=cfg.standardize_scope,
            feature_set=feature_set,
            target_dates=target_dates,
        )

    def prepare_univariate(self, prices) -> PreparedData:
        """
        Return-only path: log returns, width-1 windows, next-log-return target.

        One scaler serves both features and targets, so the recursive loop
        feeds predictions back in exactly the space the model was trained in.
        """
        cfg = self.config
        returns = log_returns_from_prices(prices)
        n = returns.shape[0]
        train_end = self._train_end(n)

        scaler = Standardizer()
        if cfg.standardize_scope == "all":
            logger.warning("standardize_scope='all': return scaling fit on the full series")
            scaler.fit(returns)
        else:
            # Training windows and their targets span returns [0, train_end + lookback)
            scaler.fit(returns[: train_end + cfg.lookback])

        normalized = scaler.transform_column(returns)
        sequences = self.builder.build_univariate(normalized, cfg.lookback)
        split = self.splitter.split(sequences, cfg.train_ratio, cfg.val_ratio)

        return PreparedData(
            sequences=sequences,
            split=split,
            feature_params=scaler.params,
            target_params=scaler.params,
            feature_names=["return"],
            latest_window=normalized[-cfg.lookback :].reshape(-1, 1),
            scope=cfg.standardize_scope,
        )

    def train(
        self,
        prepared: PreparedData,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> TrainingSession:
        model = self.model_factory(prepared.width, self.config)
        return self.orchestrator.train(
            model,
            prepared.split,
            feature_params=prepared.feature_params,
            target_params=prepared.target_params,
            lookback=prepared.lookback,
            progress_callback=progress_callback,
            feature_names=prepared.feature_names,
            feedback_column=self.config.feedback_column if prepared.width > 1 else 0,
        )

    def evaluate(self, session: TrainingSession, prepared: PreparedData):
        return evaluate_session(session, prepared.split.test)

    def forecast(
        self,
        session: TrainingSession,
        prepared: PreparedData,
        days: Optional[int] = None,
    ) -> List[PredictionResult]:
        return Forecaster(session).forecast(prepared.latest_window, days or self.config.forecast_days)
