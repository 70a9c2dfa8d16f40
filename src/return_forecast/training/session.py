"""Handle to the products of one training run."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional
from uuid import uuid4

from return_forecast.features.scaling import StandardizationParams, Standardizer
from return_forecast.models.base import SequenceModel

from .history import TrainingHistory


def _new_session_id() -> str:
    return f"gru_{datetime.now(timezone.utc).strftime('%Y%m%d_%H%M%S')}_{uuid4().hex[:8]}"


@dataclass
class TrainingSession:
    """
    Everything the forecaster and evaluator need from a finished run:
    the trained model, the scaling parameters it was trained under, the
    window length and the loss history.

    Passed explicitly to consumers; there is no process-wide current model.
    """

    model: SequenceModel
    feature_params: StandardizationParams
    target_params: StandardizationParams
    lookback: int
    history: TrainingHistory
    feature_names: List[str] = field(default_factory=list)
    feedback_column: int = 0
    cancelled: bool = False
    session_id: str = field(default_factory=_new_session_id)
    completed_at: Optional[datetime] = None

    @property
    def feature_scaler(self) -> Standardizer:
        return Standardizer.from_params(self.feature_params)

    @property
    def target_scaler(self) -> Standardizer:
        return Standardizer.from_params(self.target_params)

    @property
    def epochs_completed(self) -> int:
        return len(self.history)

    def __repr__(self):
        return (
            f"<TrainingSession({self.session_id} epochs={self.epochs_completed} "
            f"lookback={self.lookback} cancelled={self.cancelled})>"
        )
