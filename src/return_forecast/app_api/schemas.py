"""Pydantic schemas for API requests and responses."""

from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field, PositiveInt, model_validator

PIPELINE_FIELDS = (
    "lookback",
    "epochs",
    "batch_size",
    "learning_rate",
    "train_ratio",
    "val_ratio",
    "standardize_scope",
    "forecast_days",
    "seed",
)
FEATURE_FIELDS = (
    "horizon",
    "volatility_windows",
    "sma_windows",
    "momentum_window",
    "rsi_window",
)


class TrainRequest(BaseModel):
    """Request schema for model training."""

    series: Optional[Dict[str, List[float]]] = Field(
        None, description="Named signal arrays of equal length, oldest first"
    )
    dates: Optional[List[str]] = Field(None, description="ISO dates aligned with the series")
    synthetic_days: Optional[int] = Field(
        None, ge=2, description="Generate a synthetic market of this length instead of uploading series"
    )
    mode: Literal["multivariate", "univariate"] = Field(
        "multivariate", description="'univariate' trains on price returns only"
    )
    lookback: Optional[int] = Field(None, ge=1, description="Sequence window length")
    epochs: Optional[int] = Field(None, ge=1, description="Training epochs")
    batch_size: Optional[int] = Field(None, ge=1, description="Batch size")
    learning_rate: Optional[float] = Field(None, gt=0, description="Learning rate")
    train_ratio: Optional[float] = Field(None, ge=0, le=1)
    val_ratio: Optional[float] = Field(None, ge=0, le=1)
    standardize_scope: Optional[Literal["train", "all"]] = None
    forecast_days: Optional[int] = Field(None, ge=1, description="Default recursive forecast steps")
    seed: Optional[int] = None

    horizon: Optional[int] = Field(None, ge=1, description="Forward-return horizon of the target")
    volatility_windows: Optional[List[PositiveInt]] = Field(None, min_length=1, description="Rolling volatility windows")
    sma_windows: Optional[List[PositiveInt]] = Field(None, min_length=1, description="SMA windows")
    momentum_window: Optional[int] = Field(None, ge=1)
    rsi_window: Optional[int] = Field(None, ge=1)

    @model_validator(mode="before")
    @classmethod
    def default_to_synthetic(cls, data):
        """Fall back to a synthetic market when no series is supplied."""
        if isinstance(data, dict) and not data.get("series") and not data.get("synthetic_days"):
            data = {**data, "synthetic_days": 750}
        return data

    def config_overrides(self) -> Dict:
        """
        Options set on the request, shaped like PipelineConfig.

        Indicator options go under ``"features"`` as a partial FeatureConfig.
        """
        overrides = {name: getattr(self, name) for name in PIPELINE_FIELDS if getattr(self, name) is not None}
        features = {name: getattr(self, name) for name in FEATURE_FIELDS if getattr(self, name) is not None}
        if features:
            overrides["features"] = features
        return overrides


class TrainResponse(BaseModel):
    """Response schema for a started training session."""

    status: str
    message: str
    mode: str
    lookback: int
    epochs: int
    feature_names: List[str]
    train_size: int
    val_size: int
    test_size: int


class StopResponse(BaseModel):
    status: str
    message: str


class EpochLoss(BaseModel):
    epoch: int
    train_loss: float
    val_loss: Optional[float] = None


class HistoryResponse(BaseModel):
    """Loss curves of the running or most recent session."""

    is_training: bool
    session_id: Optional[str] = None
    cancelled: bool = False
    error: Optional[str] = None
    epochs: List[EpochLoss]


class PredictionItem(BaseModel):
    step: int
    date: Optional[str] = None
    value: float
    normalized: float
    confidence: float


class ForecastResponse(BaseModel):
    """Response schema for recursive forecasts."""

    session_id: str
    days: int
    predictions: List[PredictionItem]


class StatsResponse(BaseModel):
    """Dataset summary and held-out metrics of the current session."""

    summary: Dict
    session_id: Optional[str] = None
    epochs_completed: int = 0
    metrics: Optional[Dict[str, float]] = None


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    timestamp: str
    is_training: bool
    has_model: bool
