"""
Lookback windowing and chronological dataset splitting.

LEAKAGE CHECK: window i covers rows [i, i+lookback) and is paired with the
target at row i+lookback. Splits are contiguous index ranges, never shuffled.
"""

import math
from dataclasses import dataclass
from typing import Tuple

import numpy as np
from loguru import logger
from numpy.lib.stride_tricks import sliding_window_view

from return_forecast.errors import (
    InsufficientDataError,
    InvalidRatioError,
    LengthMismatchError,
)


@dataclass
class SequenceSet:
    """
    A block of windows and their targets.

    x: (n, lookback, width) windows
    y: (n,) targets
    start_indices: (n,) row index where each window starts
    """

    x: np.ndarray
    y: np.ndarray
    start_indices: np.ndarray

    def __len__(self) -> int:
        return int(self.y.shape[0])

    @property
    def lookback(self) -> int:
        return int(self.x.shape[1])

    @property
    def width(self) -> int:
        return int(self.x.shape[2])

    def slice(self, start: int, stop: int) -> "SequenceSet":
        return SequenceSet(
            x=self.x[start:stop].copy(),
            y=self.y[start:stop].copy(),
            start_indices=self.start_indices[start:stop].copy(),
        )


class SequenceBuilder:
    """Slices row-aligned features/targets into fixed-length windows."""

    def build(self, feature_rows, targets, lookback: int) -> SequenceSet:
        """
        Emit one window per start index i in [0, len - lookback).

        Args:
            feature_rows: (n, width) array-like of feature rows
            targets: (n,) targets aligned with ``feature_rows``
            lookback: window length

        Returns:
            SequenceSet with len == n - lookback and y[i] == targets[i + lookback]
        """
        rows = np.asarray(feature_rows, dtype=np.float64)
        if rows.ndim == 1:
            rows = rows.reshape(-1, 1)
        y_all = np.asarray(targets, dtype=np.float64).reshape(-1)

        n = rows.shape[0]
        if y_all.shape[0] != n:
            raise LengthMismatchError(n, y_all.shape[0], what="feature rows and targets")
        if lookback < 1 or lookback >= n:
            raise InsufficientDataError(
                f"lookback={lookback} requires more than {lookback} rows, got {n}",
                context={"lookback": lookback, "rows": n},
            )

        count = n - lookback
        # sliding_window_view yields (n - lookback + 1, width, lookback); last window has no target
        windows = sliding_window_view(rows, lookback, axis=0)[:count]
        x = windows.transpose(0, 2, 1).copy()
        y = y_all[lookback:].copy()

        logger.info(
            f"Created {count} sequences: lookback={lookback}, width={rows.shape[1]}, rows={n}"
        )
        return SequenceSet(x=x, y=y, start_indices=np.arange(count))

    def build_univariate(self, series, lookback: int) -> SequenceSet:
        """
        Single-column mode: each row is a scalar and the target is the next value.
        """
        values = np.asarray(series, dtype=np.float64).reshape(-1)
        return self.build(values.reshape(-1, 1), values, lookback)


@dataclass
class DatasetSplit:
    """Contiguous train / validation / test partitions of a SequenceSet."""

    train: SequenceSet
    validation: SequenceSet
    test: SequenceSet
    train_end: int
    val_end: int

    @property
    def sizes(self) -> Tuple[int, int, int]:
        return len(self.train), len(self.validation), len(self.test)


class DatasetSplitter:
    """Chronological train/validation/test partitioning."""

    @staticmethod
    def validate_ratios(train_ratio: float, val_ratio: float) -> None:
        for name, ratio in (("train_ratio", train_ratio), ("val_ratio", val_ratio)):
            if not 0.0 <= ratio <= 1.0 or math.isnan(ratio):
                raise InvalidRatioError(
                    f"{name} must be in [0, 1], got {ratio}",
                    context={name: ratio},
                )
        if train_ratio + val_ratio > 1.0 + 1e-12:
            raise InvalidRatioError(
                f"train_ratio + val_ratio must be <= 1, got {train_ratio} + {val_ratio}",
                context={"train_ratio": train_ratio, "val_ratio": val_ratio},
            )

    def cut_points(self, n: int, train_ratio: float, val_ratio: float) -> Tuple[int, int]:
        """
        Index cut points for ``n`` sequences.

        Returns:
            (train_end, val_end): train = [0, train_end), val = [train_end, val_end),
            test = [val_end, n)
        """
        self.validate_ratios(train_ratio, val_ratio)
        train_end = int(math.floor(n * train_ratio))
        val_end = min(n, train_end + int(math.floor(n * val_ratio)))
        return train_end, val_end

    def split(self, sequences: SequenceSet, train_ratio: float, val_ratio: float) -> DatasetSplit:
        """
        STRICT TIME ORDERING: train < validation < test, no shuffle.
        """
        n = len(sequences)
        train_end, val_end = self.cut_points(n, train_ratio, val_ratio)

        split = DatasetSplit(
            train=sequences.slice(0, train_end),
            validation=sequences.slice(train_end, val_end),
            test=sequences.slice(val_end, n),
            train_end=train_end,
            val_end=val_end,
        )

        logger.info(
            f"Time split: train={len(split.train)}, val={len(split.validation)}, "
            f"test={len(split.test)} (ratios: {train_ratio:.2f}/{val_ratio:.2f}/"
            f"{1 - train_ratio - val_ratio:.2f})"
        )
        return split
