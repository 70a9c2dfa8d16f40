"""Trainable sequence-model interface consumed by the orchestrator."""

from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional

import numpy as np

# (epoch, train_loss, val_loss) reported after every completed epoch
EpochCallback = Callable[[int, float, Optional[float]], None]


class SequenceModel(ABC):
    """
    Interface for trainable sequence regressors.
    Implement this to plug a new model into the pipeline.
    """

    @abstractmethod
    def fit(
        self,
        train_x: np.ndarray,
        train_y: np.ndarray,
        val_x: Optional[np.ndarray],
        val_y: Optional[np.ndarray],
        epoch_callback: Optional[EpochCallback] = None,
    ) -> Dict[str, Any]:
        """
        Train the model.

        Args:
            train_x: (n, lookback, width) training windows
            train_y: (n,) normalized targets
            val_x: Validation windows (may be empty or None)
            val_y: Validation targets
            epoch_callback: Called once per finished epoch, in order

        Returns:
            Final history dict with 'train_loss' and 'val_loss' lists
        """
        pass

    @abstractmethod
    def predict(self, x: np.ndarray) -> np.ndarray:
        """
        Predict normalized targets.

        Args:
            x: (n, lookback, width) windows

        Returns:
            (n,) predictions
        """
        pass

    @abstractmethod
    def stop(self):
        """Ask a running fit() to return after the current epoch."""
        pass
