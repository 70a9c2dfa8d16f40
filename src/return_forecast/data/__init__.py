"""Raw series containers and synthetic data."""

from .series import RawSeries, log_returns_from_prices, returns_from_prices, summarize_series
from .synthetic import DEFAULT_REGIMES, Regime, generate_synthetic_series

__all__ = [
    "RawSeries",
    "returns_from_prices",
    "log_returns_from_prices",
    "summarize_series",
    "Regime",
    "DEFAULT_REGIMES",
    "generate_synthetic_series",
]
