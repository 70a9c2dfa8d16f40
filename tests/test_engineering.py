"""Tests for indicator computation and FeatureEngineer."""

import math

import numpy as np
import pandas as pd
import pytest

from return_forecast.config import FeatureConfig
from return_forecast.data import RawSeries
from return_forecast.errors import (
    InsufficientDataError,
    InvalidSeriesError,
    MissingSignalError,
)
from return_forecast.features import (
    FeatureEngineer,
    compute_forward_return,
    compute_log_returns,
    compute_momentum,
    compute_rolling_volatility,
    compute_rsi,
    compute_sma,
)

from stubs import make_raw

PRICES = [100.0, 101.0, 102.0, 101.0, 103.0, 105.0]


@pytest.fixture
def price_frame() -> pd.DataFrame:
    return pd.DataFrame({"spx": PRICES})


class TestIndicators:
    """Hand-checked values on a six-day price path."""

    def test_log_returns_zero_at_first_row(self, price_frame):
        df = compute_log_returns(price_frame, "spx")
        assert df["spx_ret"].iloc[0] == 0.0
        assert df["spx_ret"].iloc[1] == pytest.approx(math.log(101 / 100))
        assert df["spx_ret"].iloc[3] == pytest.approx(math.log(101 / 102))

    def test_input_frame_not_modified(self, price_frame):
        compute_log_returns(price_frame, "spx")
        assert list(price_frame.columns) == ["spx"]

    def test_rolling_volatility_population_std(self, price_frame):
        df = compute_log_returns(price_frame, "spx")
        df = compute_rolling_volatility(df, window=2, return_col="spx_ret")
        vol = df["spx_ret_vol_2"]
        assert vol.iloc[:2].isna().all()
        expected = np.std([math.log(101 / 100), math.log(102 / 101)])
        assert vol.iloc[2] == pytest.approx(expected)

    def test_sma_undefined_before_window(self, price_frame):
        sma = compute_sma(price_frame, window=3, price_col="spx")["spx_sma_3"]
        assert sma.iloc[:2].isna().all()
        assert sma.iloc[2] == pytest.approx(101.0)
        assert sma.iloc[5] == pytest.approx((101 + 103 + 105) / 3)

    def test_momentum(self, price_frame):
        mom = compute_momentum(price_frame, window=2, price_col="spx")["spx_mom_2"]
        assert mom.iloc[:2].isna().all()
        assert mom.iloc[2] == pytest.approx(0.02)

    def test_rsi_values(self, price_frame):
        rsi = compute_rsi(price_frame, window=3, price_col="spx")["spx_rsi_3"].to_numpy()
        np.testing.assert_allclose(rsi[:3], 50.0)
        assert rsi[3] == pytest.approx(100 - 100 / 3)
        assert rsi[4] == pytest.approx(75.0)
        assert rsi[5] == pytest.approx(80.0)

    def test_rsi_is_100_without_losses(self):
        df = pd.DataFrame({"spx": np.linspace(100, 130, 40)})
        rsi = compute_rsi(df, window=14, price_col="spx")["spx_rsi_14"].to_numpy()
        assert np.all(rsi[14:] == 100.0)

    def test_rsi_bounded(self):
        rng = np.random.default_rng(0)
        prices = 100 * np.exp(np.cumsum(rng.normal(0, 0.02, 500)))
        rsi = compute_rsi(pd.DataFrame({"spx": prices}), 14, "spx")["spx_rsi_14"]
        assert rsi.between(0, 100).all()

    def test_forward_return_looks_ahead(self, price_frame):
        fwd = compute_forward_return(price_frame, horizon=2, price_col="spx")["spx_ret_2d_fwd"]
        assert fwd.iloc[0] == pytest.approx(math.log(102 / 100))
        assert fwd.iloc[-2:].isna().all()


class TestFeatureEngineer:
    """Test suite for FeatureEngineer.transform."""

    def test_valid_start_and_row_count(self, ramp_raw, small_feature_config):
        fs = FeatureEngineer(small_feature_config).transform(ramp_raw)
        # volatility window 3 is the longest warm-up
        assert fs.valid_start == 3
        assert len(fs) == 30 - 2 - 3
        assert fs.target.shape == (len(fs),)
        assert not fs.features.isna().any().any()
        assert len(fs.live_features) == 30 - 3

    def test_column_order(self, small_feature_config):
        cols = FeatureEngineer(small_feature_config).feature_columns()
        assert cols == [
            "spx_ret",
            "vix_ret",
            "spy_ret",
            "tnx_ret",
            "dxy_ret",
            "spy_volume",
            "spx_ret_vol_3",
            "spx_sma_2",
            "spx_mom_2",
            "spx_rsi_3",
        ]

    def test_target_is_forward_log_return(self, ramp_raw, small_feature_config):
        fs = FeatureEngineer(small_feature_config).transform(ramp_raw)
        spx = ramp_raw["spx"]
        i = fs.valid_start
        assert fs.target[0] == pytest.approx(math.log(spx[i + 2] / spx[i]))
        assert fs.target_name == "spx_ret_2d_fwd"

    def test_default_config_on_synthetic(self, synthetic_raw):
        fs = FeatureEngineer().transform(synthetic_raw)
        assert fs.valid_start == 63
        assert len(fs) == 300 - 5 - 63
        assert len(fs.feature_names) == 12
        assert np.isfinite(fs.matrix).all()
        assert fs.dates is not None and len(fs.dates) == len(fs)

    def test_causality(self, small_feature_config):
        """Features at row t do not change when later data is appended."""
        engineer = FeatureEngineer(small_feature_config)
        full = engineer.transform(make_raw(40))
        head = engineer.transform(make_raw(25))

        n_live = len(head.live_features)
        np.testing.assert_allclose(
            head.live_features.to_numpy(),
            full.live_features.to_numpy()[:n_live],
        )
        np.testing.assert_allclose(head.target, full.target[: len(head.target)])

    def test_missing_signal(self, ramp_raw, small_feature_config):
        signals = {name: ramp_raw[name] for name in ramp_raw.names if name != "dxy"}
        with pytest.raises(MissingSignalError) as exc_info:
            FeatureEngineer(small_feature_config).transform(RawSeries(signals))
        assert exc_info.value.missing == ["dxy"]

    def test_non_positive_price_rejected(self, ramp_raw, small_feature_config):
        signals = {name: np.array(ramp_raw[name]) for name in ramp_raw.names}
        signals["spx"][10] = 0.0
        with pytest.raises(InvalidSeriesError) as exc_info:
            FeatureEngineer(small_feature_config).transform(RawSeries(signals))
        assert exc_info.value.context["indices"] == [10]

    def test_insufficient_rows(self):
        with pytest.raises(InsufficientDataError):
            FeatureEngineer(FeatureConfig()).transform(make_raw(40))

    def test_custom_signal_set(self):
        config = FeatureConfig(
            return_signals=["spx"],
            level_signals=[],
            volatility_windows=[2],
            sma_windows=[2],
            momentum_window=1,
            rsi_window=2,
            horizon=1,
        )
        raw = RawSeries({"spx": make_raw(12)["spx"]})
        fs = FeatureEngineer(config).transform(raw)
        assert fs.feature_names == ["spx_ret", "spx_ret_vol_2", "spx_sma_2", "spx_mom_1", "spx_rsi_2"]
        assert len(fs) == 12 - 1 - 2
