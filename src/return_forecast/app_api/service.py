"""
Stateful service behind the HTTP API.

Holds the loaded dataset, the orchestrator and the most recent successful
training session. One instance lives on ``app.state``; handlers never touch
module-level model state.
"""

import threading
from functools import partial
from typing import Dict, List, Optional

import pandas as pd
from loguru import logger

from return_forecast.config import PipelineConfig, Settings
from return_forecast.data import RawSeries, generate_synthetic_series, summarize_series
from return_forecast.errors import (
    ForecastError,
    ModelNotTrainedError,
    TrainingInProgressError,
)
from return_forecast.forecasting import PredictionResult
from return_forecast.pipeline import (
    ForecastPipeline,
    ModelFactory,
    PreparedData,
    default_model_factory,
)
from return_forecast.training import EpochRecord, TrainingOrchestrator, TrainingSession

from .schemas import TrainRequest


class ForecastService:
    """Coordinates training runs and forecasts for the API handlers."""

    def __init__(
        self,
        config: Optional[PipelineConfig] = None,
        model_factory: Optional[ModelFactory] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or Settings.from_env()
        self.base_config = config or PipelineConfig(seed=self.settings.seed)
        self.model_factory = model_factory or partial(default_model_factory, device=self.settings.device)
        self.orchestrator = TrainingOrchestrator()

        self.raw: Optional[RawSeries] = None
        self.session: Optional[TrainingSession] = None
        self.metrics: Optional[Dict[str, float]] = None
        self.last_error: Optional[str] = None

        self._pipeline: Optional[ForecastPipeline] = None
        self._prepared: Optional[PreparedData] = None
        self._session_raw: Optional[RawSeries] = None
        self._pending = False
        self._state_lock = threading.Lock()

    @property
    def is_training(self) -> bool:
        return self._pending or self.orchestrator.is_training

    @property
    def has_model(self) -> bool:
        return self.session is not None

    def load_series(self, request: TrainRequest) -> RawSeries:
        if request.series:
            return RawSeries(request.series, dates=request.dates)
        logger.info(f"No series supplied, generating {request.synthetic_days} synthetic days")
        return generate_synthetic_series(days=request.synthetic_days, seed=self.base_config.seed)

    def begin_training(self, raw: RawSeries, mode: str, overrides: Dict):
        """
        Validate options and prepare data synchronously, then mark a run as pending.

        Returns:
            (pipeline, prepared) to hand to run_training on a background worker

        Raises:
            TrainingInProgressError: a run is pending or in flight
            pydantic.ValidationError: the option overrides are invalid
            ForecastError: the data cannot be prepared
        """
        with self._state_lock:
            if self.is_training:
                raise TrainingInProgressError(
                    "Training already in progress",
                    context={"epochs_so_far": len(self.orchestrator.history)},
                )

            base = self.base_config.model_dump()
            features = {**base["features"], **overrides.get("features", {})}
            config = PipelineConfig(**{**base, **overrides, "features": features})
            pipeline = ForecastPipeline(config, self.model_factory, self.orchestrator)

            if mode == "univariate":
                raw.require([config.features.price_signal])
                prepared = pipeline.prepare_univariate(raw[config.features.price_signal])
            else:
                prepared = pipeline.prepare(raw)

            self.raw = raw
            self.last_error = None
            # stop() may arrive before the background task starts the run
            self.orchestrator.reset_cancel()
            self._pending = True

        logger.info(
            f"Training queued: mode={mode}, lookback={config.lookback}, epochs={config.epochs}, "
            f"split={prepared.split.sizes}"
        )
        return pipeline, prepared

    def run_training(self, pipeline: ForecastPipeline, prepared: PreparedData, raw: RawSeries):
        """Blocking training run; the outcome is recorded on the service."""
        session = None
        metrics = None
        error = None
        try:
            session = pipeline.train(prepared)
            if len(prepared.split.test):
                metrics = pipeline.evaluate(session, prepared)
        except ForecastError as e:
            error = str(e)
            logger.error(f"Training run failed: {e}")
        finally:
            with self._state_lock:
                self._pending = False
                self.last_error = error
                if error is None and session is not None:
                    self.session = session
                    self.metrics = metrics
                    self._pipeline = pipeline
                    self._prepared = prepared
                    self._session_raw = raw

    def stop(self) -> bool:
        """Request cancellation; returns False when nothing is running."""
        if not self.is_training:
            return False
        self.orchestrator.cancel()
        return True

    def history(self) -> List[EpochRecord]:
        return list(self.orchestrator.history.records)

    def forecast(self, days: Optional[int] = None):
        """
        Recursive forecast from the latest window of the last trained session.

        Returns:
            (session, results, dates); dates is None when the data carried no dates
        """
        with self._state_lock:
            session, pipeline, prepared, raw = (
                self.session,
                self._pipeline,
                self._prepared,
                self._session_raw,
            )
        if session is None:
            raise ModelNotTrainedError("Model must be trained before prediction")

        results: List[PredictionResult] = pipeline.forecast(session, prepared, days)

        dates = None
        if raw is not None and raw.dates is not None:
            start = raw.dates[-1] + pd.offsets.BDay(1)
            dates = [d.strftime("%Y-%m-%d") for d in pd.bdate_range(start=start, periods=len(results))]
        return session, results, dates

    def stats(self) -> Optional[Dict]:
        """Summary of the loaded dataset, or None before any data was loaded."""
        if self.raw is None:
            return None
        return summarize_series(self.raw, self.base_config.features.price_signal)
