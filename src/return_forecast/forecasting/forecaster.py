"""
Batch and recursive multi-step forecasting from a trained session.

The model works in normalized space. Reported values are denormalized with
the session's target parameters; the recursive loop feeds each prediction
back into the window in the feedback column's normalized feature space.
"""

from dataclasses import asdict, dataclass
from typing import List, Optional, Tuple

import numpy as np
from loguru import logger

from return_forecast.errors import (
    InsufficientDataError,
    ModelNotTrainedError,
    ShapeMismatchError,
)
from return_forecast.features.engineering import FeatureSet
from return_forecast.features.sequences import SequenceSet
from return_forecast.training.session import TrainingSession

from .confidence import prediction_confidence


@dataclass(frozen=True)
class PredictionResult:
    """One forecast value. ``step`` is 1-based for recursive forecasts."""

    step: int
    normalized: float
    value: float
    confidence: float

    def to_dict(self):
        return asdict(self)


class Forecaster:
    """
    Produces predictions from a TrainingSession.

    Usage:
        forecaster = Forecaster(session)
        held_out = forecaster.predict_batch(split.test)
        next_days = forecaster.forecast(latest_window, days=5)
    """

    def __init__(self, session: Optional[TrainingSession]):
        if session is None or session.model is None:
            raise ModelNotTrainedError("No trained model available; run a training session first")
        if not session.history:
            raise ModelNotTrainedError(
                f"Session {session.session_id} has no completed epochs",
                context={"session_id": session.session_id},
            )
        self.session = session
        self._target_scaler = session.target_scaler
        self._feature_scaler = session.feature_scaler
        self._target_std = float(session.target_params.std[0])

    @property
    def lookback(self) -> int:
        return self.session.lookback

    @property
    def width(self) -> int:
        return self.session.feature_params.n_features

    def _result(self, step: int, normalized: float) -> PredictionResult:
        value = float(self._target_scaler.inverse_transform_column([normalized])[0])
        return PredictionResult(
            step=step,
            normalized=float(normalized),
            value=value,
            confidence=prediction_confidence(self.session.history, value, self._target_std),
        )

    def predict_batch(self, sequences: SequenceSet) -> List[PredictionResult]:
        """Single predict call over a block of windows; results align with ``sequences``."""
        if len(sequences) == 0:
            return []
        if sequences.width != self.width:
            raise ShapeMismatchError(
                f"Sequences have width {sequences.width}, session expects {self.width}",
                context={"expected": self.width, "actual": sequences.width},
            )

        normalized = np.asarray(self.session.model.predict(sequences.x), dtype=np.float64).reshape(-1)
        if normalized.shape[0] != len(sequences):
            raise ShapeMismatchError(
                f"Model returned {normalized.shape[0]} predictions for {len(sequences)} windows",
                context={"expected": len(sequences), "actual": normalized.shape[0]},
            )
        return [self._result(i, p) for i, p in enumerate(normalized)]

    def _check_window(self, window) -> np.ndarray:
        arr = np.asarray(window, dtype=np.float64)
        if arr.ndim == 1:
            arr = arr.reshape(-1, 1)
        if arr.shape != (self.lookback, self.width):
            raise ShapeMismatchError(
                f"Window must have shape ({self.lookback}, {self.width}), got {arr.shape}",
                context={"expected": (self.lookback, self.width), "actual": arr.shape},
            )
        return arr

    def step(self, window: np.ndarray) -> Tuple[float, np.ndarray]:
        """
        One recursive step: predict from ``window`` and return the normalized
        prediction with the next window.

        The next window drops the oldest row and appends a copy of the last
        row with the prediction written into the feedback column. The
        prediction is in target space, so it is denormalized and restandardized
        with that column's feature params before it is written. The input
        window is not modified.
        """
        pred = float(np.asarray(self.session.model.predict(window[np.newaxis]), dtype=np.float64).reshape(-1)[0])
        column = self.session.feedback_column
        value = self._target_scaler.inverse_transform_column([pred])
        new_row = window[-1].copy()
        new_row[column] = self._feature_scaler.transform_column(value, column)[0]
        next_window = np.vstack([window[1:], new_row[np.newaxis]])
        return pred, next_window

    def forecast(self, window, days: int) -> List[PredictionResult]:
        """
        Recursive forecast of ``days`` steps from the most recent normalized window.

        Raises:
            ShapeMismatchError: window is not (lookback, width)
            ValueError: days < 1
        """
        if days < 1:
            raise ValueError(f"days must be positive, got {days}")

        current = self._check_window(window).copy()
        results = []
        for step in range(1, days + 1):
            pred, current = self.step(current)
            results.append(self._result(step, pred))

        logger.info(
            f"Recursive forecast ({days} steps): "
            + ", ".join(f"{r.value:+.5f}" for r in results)
        )
        return results

    def latest_window(self, feature_set: FeatureSet) -> np.ndarray:
        """Standardized last ``lookback`` rows of the live features."""
        live = feature_set.live_features.to_numpy(dtype=np.float64)
        if live.shape[0] < self.lookback:
            raise InsufficientDataError(
                f"Need {self.lookback} live rows for a window, have {live.shape[0]}",
                context={"lookback": self.lookback, "rows": live.shape[0]},
            )
        return self.session.feature_scaler.transform(live[-self.lookback :])

    def forecast_from_features(self, feature_set: FeatureSet, days: int) -> List[PredictionResult]:
        return self.forecast(self.latest_window(feature_set), days)
