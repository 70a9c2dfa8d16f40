"""Deterministic SequenceModel stand-ins for orchestrator, forecaster and API tests."""

import math
import threading
from typing import Any, Dict, List, Optional

import numpy as np
import pandas as pd

from return_forecast.data import RawSeries
from return_forecast.models.base import SequenceModel


def make_raw(n: int, with_dates: bool = False) -> RawSeries:
    """Smooth, strictly positive signals with both up and down moves."""
    t = np.arange(n, dtype=np.float64)
    wave = np.sin(t / 2.0)
    signals = {
        "spx": 100.0 + t + 3.0 * wave,
        "vix": 20.0 + 2.0 * np.cos(t / 3.0),
        "spy": 10.0 + 0.1 * t + 0.3 * wave,
        "tnx": 2.0 + 0.01 * t,
        "dxy": 95.0 + np.sin(t / 5.0),
        "spy_volume": 1.0e6 + 1.0e4 * t,
    }
    dates = None
    if with_dates:
        dates = [d.strftime("%Y-%m-%d") for d in pd.bdate_range("2024-01-01", periods=n)]
    return RawSeries(signals, dates=dates)


class MeanModel(SequenceModel):
    """
    Predicts the mean of each window. ``fit`` reports ``epochs`` decreasing
    losses and honors stop() between epochs.
    """

    def __init__(self, epochs: int = 3, with_val: bool = True):
        self.epochs = epochs
        self.with_val = with_val
        self.stop_calls = 0
        self.fit_calls = 0
        self.seen_train_y: Optional[np.ndarray] = None
        self._stopped = False

    def fit(self, train_x, train_y, val_x, val_y, epoch_callback=None) -> Dict[str, Any]:
        self.fit_calls += 1
        self._stopped = False
        self.seen_train_y = np.array(train_y, copy=True)
        history: Dict[str, List] = {"train_loss": [], "val_loss": []}
        for epoch in range(1, self.epochs + 1):
            train_loss = 1.0 / epoch
            val_loss = 0.5 / epoch if self.with_val and val_y is not None else None
            history["train_loss"].append(train_loss)
            history["val_loss"].append(val_loss)
            if epoch_callback is not None:
                epoch_callback(epoch, train_loss, val_loss)
            if self._stopped:
                break
        return history

    def predict(self, x):
        return np.asarray(x, dtype=np.float64).mean(axis=(1, 2))

    def stop(self):
        self.stop_calls += 1
        self._stopped = True


class DivergingModel(MeanModel):
    """Reports one finite epoch, then a NaN training loss."""

    def fit(self, train_x, train_y, val_x, val_y, epoch_callback=None):
        epoch_callback(1, 0.8, 0.4)
        epoch_callback(2, math.nan, 0.4)
        epoch_callback(3, 0.2, 0.1)
        return {}


class ExplodingModel(MeanModel):
    """Raises from inside fit after two epochs."""

    def fit(self, train_x, train_y, val_x, val_y, epoch_callback=None):
        epoch_callback(1, 0.8, 0.4)
        epoch_callback(2, 0.6, 0.3)
        raise RuntimeError("CUDA out of memory")


class GatedModel(MeanModel):
    """Blocks inside fit until ``release`` is set; ``started`` marks entry."""

    def __init__(self, epochs: int = 3):
        super().__init__(epochs=epochs)
        self.started = threading.Event()
        self.release = threading.Event()

    def fit(self, train_x, train_y, val_x, val_y, epoch_callback=None):
        self.started.set()
        self.release.wait(timeout=10)
        return super().fit(train_x, train_y, val_x, val_y, epoch_callback)


class ConstantModel(MeanModel):
    """Always predicts the same normalized value."""

    def __init__(self, value: float, epochs: int = 2):
        super().__init__(epochs=epochs)
        self.value = value

    def predict(self, x):
        return np.full(np.asarray(x).shape[0], self.value, dtype=np.float64)
