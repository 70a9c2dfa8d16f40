"""Tests for evaluation metrics."""

import dataclasses
import math

import numpy as np
import pytest

from return_forecast.errors import InsufficientDataError, LengthMismatchError
from return_forecast.evaluation import (
    directional_accuracy,
    evaluate_session,
    mae,
    point_forecast_metrics,
    rmse,
)
from return_forecast.features import StandardizationParams


class TestRmse:
    def test_zero_for_identical(self):
        x = np.array([0.1, -0.2, 0.3])
        assert rmse(x, x) == 0.0

    def test_symmetric(self):
        a = [1.0, 2.0, 3.0]
        b = [1.5, 1.0, 4.0]
        assert rmse(a, b) == pytest.approx(rmse(b, a))

    def test_value(self):
        assert rmse([0.0, 0.0], [3.0, 4.0]) == pytest.approx(math.sqrt(12.5))

    def test_length_mismatch(self):
        with pytest.raises(LengthMismatchError) as exc_info:
            rmse([1.0, 2.0], [1.0])
        assert exc_info.value.context == {"expected": 2, "actual": 1}

    def test_empty(self):
        with pytest.raises(InsufficientDataError):
            rmse([], [])


class TestPointMetrics:
    def test_mae(self):
        assert mae([1.0, -1.0], [2.0, 1.0]) == pytest.approx(1.5)

    def test_directional_accuracy(self):
        assert directional_accuracy([0.1, -0.2, 0.3, -0.1], [0.2, 0.1, 0.5, -0.3]) == 0.75

    def test_point_forecast_metrics(self):
        metrics = point_forecast_metrics([0.0, 0.0], [3.0, 4.0])
        assert set(metrics) == {"rmse", "mae", "directional_accuracy", "n"}
        assert metrics["mae"] == pytest.approx(3.5)
        assert metrics["n"] == 2


class TestEvaluateSession:
    def test_scores_in_original_scale(self, mean_session, univariate_split):
        target = StandardizationParams(mean=np.array([1.0]), std=np.array([2.0]), n_samples=5)
        session = dataclasses.replace(mean_session, target_params=target)
        test = univariate_split.test

        metrics = evaluate_session(session, test)

        predicted = test.x.mean(axis=(1, 2)) * 2.0 + 1.0
        actual = test.y * 2.0 + 1.0
        assert metrics["rmse"] == pytest.approx(rmse(actual, predicted))
        assert metrics["n"] == len(test)
