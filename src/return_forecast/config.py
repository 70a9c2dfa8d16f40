"""Configuration models and runtime settings."""

import os
import sys
from typing import List, Literal

import torch
from loguru import logger
from pydantic import BaseModel, Field, PositiveInt, model_validator


class FeatureConfig(BaseModel):
    """Which signals to read and which indicator windows to compute."""

    price_signal: str = Field("spx", description="Price index used for indicators and target")
    return_signals: List[str] = Field(
        default_factory=lambda: ["spx", "vix", "spy", "tnx", "dxy"],
        description="Signals converted to log-returns",
    )
    level_signals: List[str] = Field(
        default_factory=lambda: ["spy_volume"],
        description="Signals passed through at raw level",
    )
    volatility_windows: List[PositiveInt] = Field(default_factory=lambda: [21, 63])
    sma_windows: List[PositiveInt] = Field(default_factory=lambda: [10, 50])
    momentum_window: PositiveInt = 10
    rsi_window: PositiveInt = 14
    horizon: PositiveInt = Field(5, description="Forward-return horizon in trading days")

    @property
    def required_signals(self) -> List[str]:
        """Union of every configured signal, in first-seen order."""
        names = [self.price_signal, *self.return_signals, *self.level_signals]
        return list(dict.fromkeys(names))


class PipelineConfig(BaseModel):
    """End-to-end pipeline options."""

    features: FeatureConfig = Field(default_factory=FeatureConfig)
    lookback: PositiveInt = Field(60, description="Sequence window length")
    train_ratio: float = Field(0.7, ge=0.0, le=1.0)
    val_ratio: float = Field(0.15, ge=0.0, le=1.0)
    forecast_days: PositiveInt = Field(5, description="Recursive forecast steps")
    epochs: PositiveInt = 50
    batch_size: PositiveInt = 32
    learning_rate: float = Field(1e-3, gt=0.0)
    standardize_scope: Literal["train", "all"] = Field(
        "train",
        description="'train' fits scaling on training rows only; 'all' fits on the full matrix",
    )
    feedback_column: int = Field(0, ge=0, description="Column receiving recursive predictions")
    seed: int = 42

    @model_validator(mode="after")
    def check_ratios(self):
        if self.train_ratio + self.val_ratio > 1.0 + 1e-12:
            raise ValueError(
                f"train_ratio + val_ratio must be <= 1, got {self.train_ratio} + {self.val_ratio}"
            )
        return self


class Settings(BaseModel):
    """Process-level settings read from the environment."""

    log_level: str = "INFO"
    device: str = "cpu"
    seed: int = 42

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            device=os.getenv("DEFAULT_DEVICE", "cuda" if torch.cuda.is_available() else "cpu"),
            seed=int(os.getenv("RANDOM_SEED", "42")),
        )


def configure_logging(level: str = "INFO") -> None:
    """Route loguru output to stderr at the given level."""
    logger.remove()
    logger.add(sys.stderr, level=level.upper())
    logger.debug(f"Logging configured at {level.upper()}")
