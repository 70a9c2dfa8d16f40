"""
Feature engineering pipeline for return forecasting.

CRITICAL: Every feature at row i uses ONLY raw data at indices <= i.
The forward-return target is the only column that looks ahead, and it is
never part of the feature matrix.
"""

from dataclasses import dataclass, field
from typing import List, Optional

import numpy as np
import pandas as pd
from loguru import logger
from numpy.lib.stride_tricks import sliding_window_view
from ta.trend import SMAIndicator

from return_forecast.config import FeatureConfig
from return_forecast.data.series import RawSeries
from return_forecast.errors import InsufficientDataError, InvalidSeriesError

NEUTRAL_RSI = 50.0


def compute_log_returns(df: pd.DataFrame, price_col: str) -> pd.DataFrame:
    """
    Compute log-returns: r_t = log(P_t / P_{t-1}).

    Defined as 0 at the first row (no previous price).

    Returns:
        DataFrame with '{price_col}_ret' column added
    """
    df = df.copy()
    df[f"{price_col}_ret"] = np.log(df[price_col] / df[price_col].shift(1)).fillna(0.0)
    return df


def compute_rolling_volatility(df: pd.DataFrame, window: int, return_col: str) -> pd.DataFrame:
    """
    Population standard deviation of the last ``window`` returns ending at t.

    Undefined (NaN) for t < window, so the leading zero return of row 0
    never enters a defined value.

    Returns:
        DataFrame with '{return_col}_vol_{window}' column added
    """
    df = df.copy()
    vol = df[return_col].rolling(window=window, min_periods=window).std(ddof=0)
    vol.iloc[:window] = np.nan
    df[f"{return_col}_vol_{window}"] = vol
    return df


def compute_sma(df: pd.DataFrame, window: int, price_col: str) -> pd.DataFrame:
    """
    Simple moving average of the raw level; NaN for t < window - 1.

    Returns:
        DataFrame with '{price_col}_sma_{window}' column added
    """
    df = df.copy()
    sma = SMAIndicator(close=df[price_col], window=window, fillna=False).sma_indicator()
    df[f"{price_col}_sma_{window}"] = sma
    return df


def compute_momentum(df: pd.DataFrame, window: int, price_col: str) -> pd.DataFrame:
    """
    Momentum: P_t / P_{t-window} - 1; NaN for t < window.

    Returns:
        DataFrame with '{price_col}_mom_{window}' column added
    """
    df = df.copy()
    df[f"{price_col}_mom_{window}"] = df[price_col] / df[price_col].shift(window) - 1.0
    return df


def compute_rsi(df: pd.DataFrame, window: int, price_col: str) -> pd.DataFrame:
    """
    Relative Strength Index from simple averages of the trailing ``window``
    price changes.

    RSI = 100 - 100 / (1 + avg_gain / avg_loss); exactly 100 when the average
    loss is zero. Rows before the window fills (t < window) get the neutral
    value 50.

    Each window is summed independently (not as a running sum) so that a
    window with no losses yields an exact zero.

    Returns:
        DataFrame with '{price_col}_rsi_{window}' column added
    """
    df = df.copy()
    prices = df[price_col].to_numpy(dtype=np.float64)
    rsi = np.full(len(prices), NEUTRAL_RSI)

    if len(prices) > window:
        changes = np.diff(prices)
        windows = sliding_window_view(changes, window)  # windows[k] ends at price index k + window
        avg_gain = np.where(windows > 0, windows, 0.0).sum(axis=1) / window
        avg_loss = np.where(windows < 0, -windows, 0.0).sum(axis=1) / window

        values = np.full(len(windows), 100.0)
        has_loss = avg_loss != 0
        rs = avg_gain[has_loss] / avg_loss[has_loss]
        values[has_loss] = 100.0 - 100.0 / (1.0 + rs)
        rsi[window:] = values

    df[f"{price_col}_rsi_{window}"] = rsi
    return df


def compute_forward_return(df: pd.DataFrame, horizon: int, price_col: str) -> pd.DataFrame:
    """
    Forward log-return target: log(P_{t+horizon} / P_t).

    LOOK-AHEAD: NaN for the last ``horizon`` rows. Target only, never a feature.

    Returns:
        DataFrame with '{price_col}_ret_{horizon}d_fwd' column added
    """
    df = df.copy()
    df[f"{price_col}_ret_{horizon}d_fwd"] = np.log(df[price_col].shift(-horizon) / df[price_col])
    return df


@dataclass
class FeatureSet:
    """
    Engineered features aligned with their target.

    ``features``/``target``/``dates`` cover rows [valid_start, n - horizon) of
    the raw series. ``live_features`` extends to the last raw row (where the
    target is not yet known) and is what forecasting reads its most recent
    window from.
    """

    features: pd.DataFrame
    target: np.ndarray
    valid_start: int
    feature_names: List[str]
    target_name: str
    live_features: pd.DataFrame
    dates: Optional[pd.DatetimeIndex] = None
    live_dates: Optional[pd.DatetimeIndex] = None
    raw_length: int = field(default=0)

    def __len__(self) -> int:
        return len(self.features)

    @property
    def matrix(self) -> np.ndarray:
        return self.features.to_numpy(dtype=np.float64)


class FeatureEngineer:
    """
    Turns aligned raw series into a feature matrix and forward-return target.
    """

    def __init__(self, config: Optional[FeatureConfig] = None):
        self.config = config or FeatureConfig()

    def feature_columns(self) -> List[str]:
        """Fixed output column order."""
        cfg = self.config
        price = cfg.price_signal
        cols = [f"{name}_ret" for name in cfg.return_signals]
        cols += list(cfg.level_signals)
        cols += [f"{price}_ret_vol_{w}" for w in cfg.volatility_windows]
        cols += [f"{price}_sma_{w}" for w in cfg.sma_windows]
        cols.append(f"{price}_mom_{cfg.momentum_window}")
        cols.append(f"{price}_rsi_{cfg.rsi_window}")
        return list(dict.fromkeys(cols))

    def transform(self, raw: RawSeries) -> FeatureSet:
        """
        Compute features and target for the configured signals.

        Raises:
            MissingSignalError: a required signal is absent
            InvalidSeriesError: a log-transformed signal has non-positive values
            InsufficientDataError: warm-up plus horizon leaves no rows
        """
        cfg = self.config
        raw.require(cfg.required_signals)

        price = cfg.price_signal
        for name in dict.fromkeys([price, *cfg.return_signals]):
            bad = np.flatnonzero(raw[name] <= 0)
            if bad.size:
                raise InvalidSeriesError(
                    f"Signal '{name}' must be strictly positive for log-returns; "
                    f"{bad.size} bad values, first at index {int(bad[0])}",
                    context={"signal": name, "indices": bad[:20].tolist()},
                )

        n = len(raw)
        df = pd.DataFrame({name: raw[name] for name in cfg.required_signals})

        # 1. Log-returns for every return signal (price index always included)
        for name in dict.fromkeys([price, *cfg.return_signals]):
            df = compute_log_returns(df, price_col=name)

        # 2. Rolling indicators on the price index
        for window in cfg.volatility_windows:
            df = compute_rolling_volatility(df, window=window, return_col=f"{price}_ret")
        for window in cfg.sma_windows:
            df = compute_sma(df, window=window, price_col=price)
        df = compute_momentum(df, window=cfg.momentum_window, price_col=price)
        df = compute_rsi(df, window=cfg.rsi_window, price_col=price)

        # 3. Target
        df = compute_forward_return(df, horizon=cfg.horizon, price_col=price)
        target_name = f"{price}_ret_{cfg.horizon}d_fwd"

        feature_cols = self.feature_columns()
        complete = df[feature_cols].notna().all(axis=1).to_numpy()
        if not complete.any():
            raise InsufficientDataError(
                f"No row has every indicator defined ({n} rows, longest warm-up exceeds data)",
                context={"rows": n},
            )
        valid_start = int(np.argmax(complete))
        end = n - cfg.horizon

        if valid_start >= end:
            raise InsufficientDataError(
                f"Not enough rows after warm-up: valid_start={valid_start}, "
                f"horizon={cfg.horizon}, rows={n}",
                context={"valid_start": valid_start, "horizon": cfg.horizon, "rows": n},
            )

        live = df.iloc[valid_start:][feature_cols].reset_index(drop=True)
        features = live.iloc[: end - valid_start].copy()
        target = df[target_name].to_numpy(dtype=np.float64)[valid_start:end].copy()

        dates = live_dates = None
        if raw.dates is not None:
            live_dates = raw.dates[valid_start:]
            dates = raw.dates[valid_start:end]

        logger.info(
            f"Feature engineering complete: {len(features)} rows x {len(feature_cols)} features, "
            f"valid_start={valid_start}, horizon={cfg.horizon}, live rows={len(live)}"
        )

        return FeatureSet(
            features=features,
            target=target,
            valid_start=valid_start,
            feature_names=feature_cols,
            target_name=target_name,
            live_features=live,
            dates=dates,
            live_dates=live_dates,
            raw_length=n,
        )
