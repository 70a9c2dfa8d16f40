"""
Training-session orchestration around a SequenceModel.

The orchestrator owns the epoch history, surfaces progress, handles
cooperative cancellation at epoch boundaries and converts model failures
into TrainingFailedError. Sequences are passed to the model in
chronological order and never reordered here.
"""

import math
import queue
import threading
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterator, List, Optional

from loguru import logger

from return_forecast.errors import (
    InsufficientDataError,
    TrainingFailedError,
    TrainingInProgressError,
)
from return_forecast.features.scaling import StandardizationParams
from return_forecast.features.sequences import DatasetSplit
from return_forecast.models.base import SequenceModel

from .history import EpochRecord, TrainingHistory
from .session import TrainingSession

ProgressCallback = Callable[[EpochRecord], None]

_STREAM_DONE = object()


def _is_finite(value: Optional[float]) -> bool:
    return value is None or math.isfinite(value)


class TrainingOrchestrator:
    """
    Runs one training session at a time.

    Usage:
        orchestrator = TrainingOrchestrator()
        session = orchestrator.train(model, split, feature_params=fp, target_params=tp,
                                     lookback=60, progress_callback=print)

    or, as a stream of epoch records:
        for record in orchestrator.stream(model, split, ...):
            ...
        session = orchestrator.last_session
    """

    def __init__(self):
        self.history = TrainingHistory()
        self.last_session: Optional[TrainingSession] = None
        self._run_lock = threading.Lock()
        self._cancel_event = threading.Event()

    @property
    def is_training(self) -> bool:
        return self._run_lock.locked()

    def cancel(self):
        """
        Request the running session to stop at the next epoch boundary.

        A cancel issued while idle applies to the next run unless
        reset_cancel() is called first.
        """
        if self.is_training:
            logger.info("Cancellation requested; stopping after current epoch")
        self._cancel_event.set()

    def reset_cancel(self):
        """Drop any pending cancel; call when a new run is queued."""
        self._cancel_event.clear()

    def train(
        self,
        model: SequenceModel,
        split: DatasetSplit,
        *,
        feature_params: StandardizationParams,
        target_params: StandardizationParams,
        lookback: int,
        progress_callback: Optional[ProgressCallback] = None,
        feature_names: Optional[List[str]] = None,
        feedback_column: int = 0,
    ) -> TrainingSession:
        """
        Fit ``model`` on the train/validation partitions of ``split``.

        Returns:
            TrainingSession; ``cancelled`` is True if cancel() cut the run short

        Raises:
            TrainingInProgressError: another session is running on this orchestrator
            TrainingFailedError: the model diverged or raised; ``history`` holds
                the epochs completed before the failure
        """
        self._begin()
        try:
            return self._run(
                model,
                split,
                feature_params=feature_params,
                target_params=target_params,
                lookback=lookback,
                progress_callback=progress_callback,
                feature_names=feature_names,
                feedback_column=feedback_column,
            )
        finally:
            self._end()

    def stream(self, model: SequenceModel, split: DatasetSplit, **kwargs: Any) -> Iterator[EpochRecord]:
        """
        Train on a worker thread and yield EpochRecords as epochs finish.

        The session is stored in ``last_session`` when the stream ends; a
        training failure is re-raised from the iterator.
        """
        if "progress_callback" in kwargs:
            raise TypeError("stream() yields records itself; progress_callback is not accepted")

        self._begin()
        records: "queue.Queue[Any]" = queue.Queue()
        outcome: Dict[str, Any] = {}

        def worker():
            try:
                outcome["session"] = self._run(model, split, progress_callback=records.put, **kwargs)
            except Exception as e:
                outcome["error"] = e
            finally:
                self._end()
                records.put(_STREAM_DONE)

        thread = threading.Thread(target=worker, name="training-orchestrator", daemon=True)
        thread.start()

        while True:
            item = records.get()
            if item is _STREAM_DONE:
                break
            yield item

        thread.join()
        if "error" in outcome:
            raise outcome["error"]

    def _begin(self):
        if not self._run_lock.acquire(blocking=False):
            raise TrainingInProgressError(
                "A training session is already running on this orchestrator",
                context={"epochs_so_far": len(self.history)},
            )
        self.history.reset()

    def _end(self):
        # A cancel belongs to the run it was issued for
        self._cancel_event.clear()
        self._run_lock.release()

    def _run(
        self,
        model: SequenceModel,
        split: DatasetSplit,
        *,
        feature_params: StandardizationParams,
        target_params: StandardizationParams,
        lookback: int,
        progress_callback: Optional[ProgressCallback] = None,
        feature_names: Optional[List[str]] = None,
        feedback_column: int = 0,
    ) -> TrainingSession:
        if len(split.train) == 0:
            raise InsufficientDataError(
                "Training partition is empty",
                context={"sizes": split.sizes},
            )

        stop_requested = False

        def on_epoch(epoch: int, train_loss: float, val_loss: Optional[float]):
            nonlocal stop_requested

            if not (_is_finite(train_loss) and _is_finite(val_loss)):
                raise TrainingFailedError(
                    f"Non-finite loss at epoch {epoch}: train={train_loss}, val={val_loss}",
                    history=list(self.history.records),
                    epoch=epoch,
                )

            record = EpochRecord(
                epoch=int(epoch),
                train_loss=float(train_loss),
                val_loss=None if val_loss is None else float(val_loss),
            )
            self.history.append(record)

            if progress_callback is not None:
                progress_callback(record)

            if self._cancel_event.is_set() and not stop_requested:
                stop_requested = True
                model.stop()

        val = split.validation
        logger.info(
            f"Training session starting: train={len(split.train)}, val={len(val)}, "
            f"test={len(split.test)}, lookback={lookback}"
        )

        try:
            model.fit(
                split.train.x,
                split.train.y,
                val.x if len(val) else None,
                val.y if len(val) else None,
                on_epoch,
            )
        except TrainingFailedError as e:
            logger.error(f"Training failed after {len(e.history)} epochs: {e}")
            raise
        except Exception as e:
            history = list(self.history.records)
            logger.exception(f"Model fit raised after {len(history)} epochs: {e}")
            raise TrainingFailedError(
                f"Model fit failed: {e}",
                history=history,
                epochs_completed=len(history),
            ) from e

        cancelled = self._cancel_event.is_set()
        session = TrainingSession(
            model=model,
            feature_params=feature_params,
            target_params=target_params,
            lookback=lookback,
            history=self.history.copy(),
            feature_names=list(feature_names or []),
            feedback_column=feedback_column,
            cancelled=cancelled,
            completed_at=datetime.now(timezone.utc),
        )
        self.last_session = session

        last = session.history.last
        logger.info(
            f"Training session {session.session_id} finished: epochs={session.epochs_completed}, "
            f"cancelled={cancelled}, final_train_loss={last.train_loss if last else None}, "
            f"final_val_loss={last.val_loss if last else None}"
        )
        return session
