"""
Heuristic confidence for a single forecast value.

This is a documented policy, not a statistical interval: it blends how well
the last session validated with how extreme the predicted return is.
"""

import math
from typing import Optional

from return_forecast.training.history import TrainingHistory

MIN_CONFIDENCE = 0.1
MAX_CONFIDENCE = 0.95
DEFAULT_CONFIDENCE = 0.5

LOSS_SCALE = 10.0
MAGNITUDE_SCALE = 2.0


def loss_confidence(mean_val_loss: float) -> float:
    """1 - sqrt(loss) * 10, floored at 0."""
    return max(0.0, 1.0 - math.sqrt(max(mean_val_loss, 0.0)) * LOSS_SCALE)


def magnitude_confidence(value: float) -> float:
    """1 - |value| * 2, floored at 0. Large predicted moves score lower."""
    return max(0.0, 1.0 - abs(value) * MAGNITUDE_SCALE)


def prediction_confidence(
    history: Optional[TrainingHistory],
    value: float,
    target_std: float = 1.0,
) -> float:
    """
    Confidence in [0.1, 0.95] for a predicted return ``value``.

    Validation losses are MSEs of standardized targets; ``target_std`` (the
    target scaler's std) converts them to return units before scoring, so
    the loss term and ``value`` are on the same scale.

    Returns exactly 0.5 when there is no history or no finite validation
    loss to judge the model by.
    """
    if history is None or not history:
        return DEFAULT_CONFIDENCE

    mean_val_loss = history.mean_val_loss()
    if mean_val_loss is None or not math.isfinite(value):
        return DEFAULT_CONFIDENCE

    return_scale_loss = mean_val_loss * target_std ** 2
    blended = (loss_confidence(return_scale_loss) + magnitude_confidence(value)) / 2
    return min(MAX_CONFIDENCE, max(MIN_CONFIDENCE, blended))
