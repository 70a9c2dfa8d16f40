"""
Synthetic market generator.

Simulates an S&P 500-like index through a cycle of market regimes with
seasonality, a Monday volatility effect, fat-tailed shocks and mild return
autocorrelation, plus co-moving auxiliary signals (volatility index, ETF,
10y yield, dollar index, ETF volume). Deterministic for a given seed.
"""

from dataclasses import dataclass
from typing import List

import numpy as np
import pandas as pd
from loguru import logger

from .series import RawSeries


@dataclass(frozen=True)
class Regime:
    duration: int
    drift: float
    volatility: float


DEFAULT_REGIMES: List[Regime] = [
    Regime(duration=150, drift=0.0005, volatility=0.008),  # Bull market
    Regime(duration=100, drift=-0.0002, volatility=0.015),  # Correction
    Regime(duration=200, drift=0.0004, volatility=0.010),  # Recovery
    Regime(duration=120, drift=0.0006, volatility=0.009),  # Strong bull
    Regime(duration=80, drift=-0.0003, volatility=0.018),  # Volatility spike
    Regime(duration=100, drift=0.0003, volatility=0.012),  # Normal
]


def generate_synthetic_series(
    days: int = 750,
    seed: int = 42,
    start_price: float = 4000.0,
    start_date: str = "2020-01-01",
    regimes: List[Regime] = DEFAULT_REGIMES,
) -> RawSeries:
    """
    Generate ``days`` trading days of synthetic market data.

    Args:
        days: Number of trading days (default 750, about 3 years)
        seed: Seed for numpy's Generator
        start_price: Initial index level
        start_date: First business day of the series
        regimes: Regime cycle to iterate through

    Returns:
        RawSeries with signals spx, vix, spy, tnx, dxy, spy_volume
    """
    if days < 2:
        raise ValueError(f"days must be >= 2, got {days}")

    rng = np.random.default_rng(seed)
    dates = pd.bdate_range(start=start_date, periods=days)

    spx = np.empty(days)
    vix = np.empty(days)
    tnx = np.empty(days)
    dxy = np.empty(days)
    volume = np.empty(days)
    returns = np.zeros(days)

    spx[0], vix[0], tnx[0], dxy[0] = start_price, 18.0, 1.9, 96.0
    volume[0] = 8.0e7

    regime_index = 0
    regime_days = 0

    for day in range(1, days):
        regime = regimes[regime_index % len(regimes)]
        date = dates[day]

        # Lower volatility mid-year, higher into autumn
        seasonal = 1 + 0.1 * np.sin(2 * np.pi * (date.month - 1) / 12)
        monday = 1.2 if date.dayofweek == 0 else 1.0

        drift = regime.drift * seasonal
        vol = regime.volatility * seasonal * monday

        if rng.random() < 0.05:
            shock = (rng.random() - 0.5) * vol * 3
        else:
            shock = (rng.random() - 0.5) * vol

        momentum = returns[day - 1] * 0.1 if day > 1 else 0.0
        ret = drift + momentum + shock

        # Rare overnight gap
        if rng.random() < 0.01:
            ret += rng.choice([-1.0, 1.0]) * 0.02

        returns[day] = ret
        spx[day] = spx[day - 1] * (1 + ret)

        # Volatility index mean-reverts to a regime-dependent level and jumps on selloffs
        vix_target = 12.0 + regime.volatility * 1000
        vix[day] = max(
            9.0,
            vix[day - 1] + 0.1 * (vix_target - vix[day - 1]) - 150 * ret + rng.normal(0, 0.4),
        )
        tnx[day] = max(0.1, tnx[day - 1] * np.exp(rng.normal(0, 0.012)))
        dxy[day] = dxy[day - 1] * np.exp(rng.normal(0, 0.003))
        volume[day] = 8.0e7 * (1 + 20 * abs(ret)) * np.exp(rng.normal(0, 0.15))

        regime_days += 1
        if regime_days >= regime.duration:
            regime_index += 1
            regime_days = 0

    spy = spx / 10.0 * np.exp(rng.normal(0, 0.0005, size=days))

    logger.info(
        f"Generated {days} days of synthetic data: "
        f"spx {spx[0]:.2f} -> {spx[-1]:.2f}, regimes visited={regime_index + 1}"
    )

    return RawSeries(
        {
            "spx": spx,
            "vix": vix,
            "spy": spy,
            "tnx": tnx,
            "dxy": dxy,
            "spy_volume": volume,
        },
        dates=dates,
    )
