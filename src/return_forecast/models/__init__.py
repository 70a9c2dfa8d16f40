"""Models module."""

from .base import EpochCallback, SequenceModel
from .gru_regressor import GRURegressor
from .training import GRUTrainer

__all__ = [
    "EpochCallback",
    "SequenceModel",
    "GRURegressor",
    "GRUTrainer",
]
