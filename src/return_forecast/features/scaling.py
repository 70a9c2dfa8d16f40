"""
Z-score standardization with an exact inverse.

LEAKAGE PREVENTION: parameters must be fit on training-eligible rows only
and then applied unchanged to validation, test and live data.
"""

from dataclasses import dataclass
from typing import Optional

import numpy as np
from loguru import logger

from return_forecast.errors import NotFittedError, ShapeMismatchError


@dataclass(frozen=True)
class StandardizationParams:
    """Per-feature mean and std. Arrays are read-only once created."""

    mean: np.ndarray
    std: np.ndarray
    n_samples: int

    def __post_init__(self):
        for arr in (self.mean, self.std):
            arr.setflags(write=False)

    @property
    def n_features(self) -> int:
        return int(self.mean.shape[0])


def _as_matrix(values) -> np.ndarray:
    """Coerce to a 2-D float64 array; 1-D input becomes a single column."""
    arr = np.asarray(values, dtype=np.float64)
    if arr.ndim == 1:
        arr = arr.reshape(-1, 1)
    if arr.ndim != 2:
        raise ShapeMismatchError(
            f"Expected a 1-D or 2-D array, got shape {arr.shape}",
            context={"shape": arr.shape},
        )
    return arr


class Standardizer:
    """
    Fits column means/stds and applies (x - mean) / std.

    A column with zero std is given std=1 so constant features pass through
    centred instead of dividing by zero.
    """

    def __init__(self):
        self.params: Optional[StandardizationParams] = None

    @property
    def is_fitted(self) -> bool:
        return self.params is not None

    def fit(self, matrix) -> "Standardizer":
        """
        Compute population mean/std over every row of ``matrix``.

        Refitting replaces the params object; an existing one is never mutated.
        """
        X = _as_matrix(matrix)
        if X.shape[0] == 0:
            raise ShapeMismatchError("Cannot fit standardizer on an empty matrix")

        mean = X.mean(axis=0)
        std = X.std(axis=0)
        zero = std == 0
        if zero.any():
            logger.warning(f"Standardizer: {int(zero.sum())} constant column(s), std clamped to 1")
        std = np.where(zero, 1.0, std)

        self.params = StandardizationParams(mean=mean, std=std, n_samples=X.shape[0])
        logger.info(f"Standardizer fit on {X.shape[0]} rows x {X.shape[1]} columns")
        return self

    def _require_params(self, X: np.ndarray) -> StandardizationParams:
        if self.params is None:
            raise NotFittedError("Standardizer.transform called before fit")
        if X.shape[1] != self.params.n_features:
            raise ShapeMismatchError(
                f"Expected {self.params.n_features} columns, got {X.shape[1]}",
                context={"expected": self.params.n_features, "actual": X.shape[1]},
            )
        return self.params

    def transform(self, matrix) -> np.ndarray:
        X = _as_matrix(matrix)
        params = self._require_params(X)
        return (X - params.mean) / params.std

    def inverse_transform(self, matrix) -> np.ndarray:
        X = _as_matrix(matrix)
        params = self._require_params(X)
        return X * params.std + params.mean

    def fit_transform(self, matrix) -> np.ndarray:
        return self.fit(matrix).transform(matrix)

    def transform_column(self, values, column: int = 0) -> np.ndarray:
        """Standardize a 1-D array using the params of a single column."""
        params = self._column_params(column)
        return (np.asarray(values, dtype=np.float64) - params[0]) / params[1]

    def inverse_transform_column(self, values, column: int = 0) -> np.ndarray:
        """Denormalize a 1-D array using the params of a single column."""
        params = self._column_params(column)
        return np.asarray(values, dtype=np.float64) * params[1] + params[0]

    def _column_params(self, column: int):
        if self.params is None:
            raise NotFittedError("Standardizer used before fit")
        if not 0 <= column < self.params.n_features:
            raise ShapeMismatchError(
                f"Column {column} out of range for {self.params.n_features} features",
                context={"column": column, "n_features": self.params.n_features},
            )
        return float(self.params.mean[column]), float(self.params.std[column])

    @classmethod
    def from_params(cls, params: StandardizationParams) -> "Standardizer":
        scaler = cls()
        scaler.params = params
        return scaler
