"""
Evaluation metrics for return forecasts.

Point metrics only (RMSE, MAE, directional accuracy). All functions are pure.
"""

from typing import Dict

import numpy as np
from loguru import logger
from sklearn.metrics import mean_absolute_error, mean_squared_error

from return_forecast.errors import InsufficientDataError, LengthMismatchError
from return_forecast.features.sequences import SequenceSet
from return_forecast.forecasting.forecaster import Forecaster
from return_forecast.training.session import TrainingSession


def _aligned(actual, predicted):
    y_true = np.asarray(actual, dtype=np.float64).reshape(-1)
    y_pred = np.asarray(predicted, dtype=np.float64).reshape(-1)
    if y_true.shape[0] != y_pred.shape[0]:
        raise LengthMismatchError(y_true.shape[0], y_pred.shape[0], what="actual and predicted")
    if y_true.shape[0] == 0:
        raise InsufficientDataError("Cannot score an empty prediction set")
    return y_true, y_pred


def rmse(actual, predicted) -> float:
    """
    Root mean squared error: sqrt(mean((actual - predicted)^2)).

    Raises:
        LengthMismatchError: arrays differ in length
        InsufficientDataError: arrays are empty
    """
    y_true, y_pred = _aligned(actual, predicted)
    return float(np.sqrt(mean_squared_error(y_true, y_pred)))


def mae(actual, predicted) -> float:
    y_true, y_pred = _aligned(actual, predicted)
    return float(mean_absolute_error(y_true, y_pred))


def directional_accuracy(actual, predicted) -> float:
    """
    Fraction of predictions with the same sign as the realised value (0-1).
    """
    y_true, y_pred = _aligned(actual, predicted)
    return float(np.mean(np.sign(y_true) == np.sign(y_pred)))


def point_forecast_metrics(actual, predicted) -> Dict[str, float]:
    """RMSE, MAE and directional accuracy in one dict."""
    return {
        "rmse": rmse(actual, predicted),
        "mae": mae(actual, predicted),
        "directional_accuracy": directional_accuracy(actual, predicted),
        "n": int(np.asarray(actual).reshape(-1).shape[0]),
    }


def evaluate_session(session: TrainingSession, test_set: SequenceSet) -> Dict[str, float]:
    """
    Score a session on a held-out block, in original return scale.

    Targets in ``test_set`` are normalized; they are denormalized with the
    session's target parameters before comparison.
    """
    forecaster = Forecaster(session)
    predictions = forecaster.predict_batch(test_set)
    predicted = np.array([p.value for p in predictions], dtype=np.float64)
    actual = session.target_scaler.inverse_transform_column(test_set.y)

    metrics = point_forecast_metrics(actual, predicted)
    logger.info(
        f"Evaluation on {metrics['n']} held-out windows: RMSE={metrics['rmse']:.6f}, "
        f"MAE={metrics['mae']:.6f}, directional={metrics['directional_accuracy']:.2%}"
    )
    return metrics
