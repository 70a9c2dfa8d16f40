"""Per-epoch loss history for a training run."""

import math
import threading
from dataclasses import asdict, dataclass
from typing import List, Optional, Tuple

import numpy as np
import pandas as pd


@dataclass(frozen=True)
class EpochRecord:
    """Losses reported at one epoch boundary."""

    epoch: int
    train_loss: float
    val_loss: Optional[float] = None


class TrainingHistory:
    """
    Append-only, ordered-by-epoch record of (train_loss, val_loss).

    Single writer (the orchestrator); readers get immutable snapshots, so a
    progress observer on another thread can read while training appends.
    """

    def __init__(self, records: Optional[List[EpochRecord]] = None):
        self._lock = threading.Lock()
        self._records: List[EpochRecord] = []
        for record in records or []:
            self.append(record)

    def reset(self):
        with self._lock:
            self._records = []

    def append(self, record: EpochRecord):
        with self._lock:
            if self._records and record.epoch <= self._records[-1].epoch:
                raise ValueError(
                    f"Epoch {record.epoch} reported after epoch {self._records[-1].epoch}"
                )
            self._records.append(record)

    @property
    def records(self) -> Tuple[EpochRecord, ...]:
        with self._lock:
            return tuple(self._records)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def __bool__(self) -> bool:
        return len(self) > 0

    def copy(self) -> "TrainingHistory":
        return TrainingHistory(list(self.records))

    @property
    def train_losses(self) -> List[float]:
        return [r.train_loss for r in self.records]

    @property
    def val_losses(self) -> List[Optional[float]]:
        return [r.val_loss for r in self.records]

    @property
    def last(self) -> Optional[EpochRecord]:
        records = self.records
        return records[-1] if records else None

    def mean_val_loss(self) -> Optional[float]:
        """Mean of the finite validation losses, or None if there are none."""
        values = [v for v in self.val_losses if v is not None and math.isfinite(v)]
        if not values:
            return None
        return float(np.mean(values))

    def to_frame(self) -> pd.DataFrame:
        """Loss curves as a DataFrame (epoch, train_loss, val_loss)."""
        return pd.DataFrame(
            [asdict(r) for r in self.records],
            columns=["epoch", "train_loss", "val_loss"],
        )
