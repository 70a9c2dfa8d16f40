"""Aligned raw market series and summary statistics."""

from typing import Dict, Iterator, List, Mapping, Optional, Sequence

import numpy as np
import pandas as pd
from loguru import logger

from return_forecast.errors import InvalidSeriesError, MissingSignalError


class RawSeries:
    """
    Ordered-by-date mapping of named signals to equal-length float arrays.

    One entry per trading day. Signals are validated on construction:
    every array must have the same length and contain only finite numbers.
    Invalid entries are rejected, never imputed.
    """

    def __init__(
        self,
        signals: Mapping[str, Sequence[float]],
        dates: Optional[Sequence] = None,
    ):
        if not signals:
            raise InvalidSeriesError("RawSeries requires at least one signal")

        lengths = {name: len(values) for name, values in signals.items()}
        if len(set(lengths.values())) != 1:
            raise InvalidSeriesError(
                f"Signals have different lengths: {lengths}",
                context={"lengths": lengths},
            )

        self._signals: Dict[str, np.ndarray] = {}
        for name, values in signals.items():
            try:
                arr = np.array(values, dtype=np.float64)
            except (TypeError, ValueError) as e:
                raise InvalidSeriesError(
                    f"Signal '{name}' contains non-numeric entries: {e}",
                    context={"signal": name},
                ) from e

            bad = np.flatnonzero(~np.isfinite(arr))
            if bad.size:
                raise InvalidSeriesError(
                    f"Signal '{name}' has {bad.size} missing/non-finite entries "
                    f"(first at index {int(bad[0])})",
                    context={"signal": name, "indices": bad[:20].tolist()},
                )
            arr.setflags(write=False)
            self._signals[name] = arr

        n = next(iter(lengths.values()))
        if dates is not None:
            if len(dates) != n:
                raise InvalidSeriesError(
                    f"Dates length {len(dates)} does not match signal length {n}",
                    context={"dates": len(dates), "signals": n},
                )
            try:
                self.dates = pd.DatetimeIndex(pd.to_datetime(list(dates)))
            except (TypeError, ValueError) as e:
                raise InvalidSeriesError(f"Unparseable dates: {e}") from e
        else:
            self.dates = None

        self._length = n

    def __len__(self) -> int:
        return self._length

    def __contains__(self, name: str) -> bool:
        return name in self._signals

    def __getitem__(self, name: str) -> np.ndarray:
        return self._signals[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._signals)

    @property
    def names(self) -> List[str]:
        return list(self._signals)

    def require(self, names: Sequence[str]) -> None:
        """Raise MissingSignalError if any of ``names`` is absent."""
        missing = [n for n in names if n not in self._signals]
        if missing:
            raise MissingSignalError(missing, self.names)

    @classmethod
    def from_frame(cls, df: pd.DataFrame, date_col: Optional[str] = None) -> "RawSeries":
        """
        Build from a DataFrame with one numeric column per signal.

        Args:
            df: DataFrame sorted or sortable by date
            date_col: Optional date column; if given, rows are sorted by it

        Returns:
            RawSeries over every non-date column
        """
        dates = None
        if date_col is not None:
            df = df.sort_values(date_col).reset_index(drop=True)
            dates = df[date_col].tolist()
            df = df.drop(columns=[date_col])

        obj_cols = df.select_dtypes(exclude=[np.number]).columns.tolist()
        if obj_cols:
            raise InvalidSeriesError(
                f"Non-numeric columns in frame: {obj_cols}",
                context={"columns": obj_cols},
            )

        return cls({col: df[col].to_numpy() for col in df.columns}, dates=dates)

    def to_frame(self) -> pd.DataFrame:
        df = pd.DataFrame({name: arr for name, arr in self._signals.items()})
        if self.dates is not None:
            df.insert(0, "date", self.dates)
        return df

    def __repr__(self):
        return f"<RawSeries({len(self)} rows, signals={self.names})>"


def _validated_prices(prices: Sequence[float]) -> np.ndarray:
    prices = np.asarray(prices, dtype=np.float64)
    if prices.size < 2:
        raise InvalidSeriesError(
            f"Need at least 2 prices to compute returns, got {prices.size}",
            context={"n": int(prices.size)},
        )
    if np.any(prices <= 0) or not np.all(np.isfinite(prices)):
        raise InvalidSeriesError("Prices must be finite and strictly positive")
    return prices


def returns_from_prices(prices: Sequence[float]) -> np.ndarray:
    """Simple returns ``P_t / P_{t-1} - 1``; one element shorter than ``prices``."""
    prices = _validated_prices(prices)
    return prices[1:] / prices[:-1] - 1.0


def log_returns_from_prices(prices: Sequence[float]) -> np.ndarray:
    """Log returns ``ln(P_t / P_{t-1})``; one element shorter than ``prices``."""
    prices = _validated_prices(prices)
    return np.log(prices[1:] / prices[:-1])


def summarize_series(raw: RawSeries, price_signal: str = "spx") -> Dict[str, object]:
    """
    Summary statistics for a loaded dataset.

    Returns:
        Dict with total_days, min/max/last price, mean daily return and
        daily volatility (both in percent), and the signal names
    """
    raw.require([price_signal])
    prices = raw[price_signal]

    stats: Dict[str, object] = {
        "total_days": len(raw),
        "min_price": round(float(prices.min()), 2),
        "max_price": round(float(prices.max()), 2),
        "last_price": round(float(prices[-1]), 2),
        "features": [name for name in raw.names if name != price_signal],
    }

    if len(prices) > 1:
        returns = returns_from_prices(prices)
        stats["mean_return"] = round(float(np.mean(returns)) * 100, 4)
        stats["volatility"] = round(float(np.std(returns)) * 100, 4)

    logger.info(f"Series summary for '{price_signal}': {stats}")
    return stats
