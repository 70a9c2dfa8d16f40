"""Training orchestration module."""

from .history import EpochRecord, TrainingHistory
from .orchestrator import ProgressCallback, TrainingOrchestrator
from .session import TrainingSession

__all__ = [
    "EpochRecord",
    "TrainingHistory",
    "TrainingOrchestrator",
    "TrainingSession",
    "ProgressCallback",
]
