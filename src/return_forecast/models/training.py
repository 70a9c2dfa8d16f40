"""Training loop for GRURegressor, exposed through the SequenceModel interface."""

import threading
from typing import Any, Dict, Optional

import numpy as np
import torch
import torch.nn.functional as F
from loguru import logger
from torch.utils.data import DataLoader, TensorDataset
from tqdm import tqdm

from .base import EpochCallback, SequenceModel
from .gru_regressor import GRURegressor


class GRUTrainer(SequenceModel):
    """
    Trainer for GRURegressor with MSE regression loss.

    Batches are served in chronological order (no shuffling). ``stop()`` is
    honored at the next epoch boundary.
    """

    def __init__(
        self,
        input_size: int,
        epochs: int = 50,
        batch_size: int = 32,
        learning_rate: float = 1e-3,
        device: str = "cuda" if torch.cuda.is_available() else "cpu",
        seed: int = 42,
        max_grad_norm: float = 10.0,
        **model_kwargs: Any,
    ):
        """
        Initialize trainer.

        Args:
            input_size: Features per timestep
            epochs: Maximum number of epochs per fit()
            batch_size: Batch size
            learning_rate: Adam learning rate
            device: 'cuda' or 'cpu'
            seed: Random seed for reproducibility
            max_grad_norm: Gradient clipping threshold
            **model_kwargs: Forwarded to GRURegressor
        """
        # Set seeds before building the network so weights are reproducible
        torch.manual_seed(seed)
        np.random.seed(seed)
        if torch.cuda.is_available():
            torch.cuda.manual_seed_all(seed)

        self.model = GRURegressor(input_size=input_size, **model_kwargs).to(device)
        self.device = device
        self.epochs = epochs
        self.batch_size = batch_size
        self.learning_rate = learning_rate
        self.max_grad_norm = max_grad_norm
        self._stop_event = threading.Event()

        logger.info(f"Initialized GRUTrainer on device: {device}, torch={torch.__version__}")

    def stop(self):
        logger.info("GRUTrainer: stop requested, finishing current epoch")
        self._stop_event.set()

    def fit(
        self,
        train_x: np.ndarray,
        train_y: np.ndarray,
        val_x: Optional[np.ndarray],
        val_y: Optional[np.ndarray],
        epoch_callback: Optional[EpochCallback] = None,
    ) -> Dict[str, Any]:
        self._stop_event.clear()

        train_loader = self._create_dataloader(train_x, train_y)
        val_loader = None
        if val_x is not None and val_y is not None and len(val_y) > 0:
            val_loader = self._create_dataloader(val_x, val_y)

        optimizer = torch.optim.Adam(self.model.parameters(), lr=self.learning_rate)

        history: Dict[str, Any] = {"train_loss": [], "val_loss": [], "epoch": []}

        logger.info(
            f"Starting training for {self.epochs} epochs "
            f"({len(train_y)} train / {0 if val_loader is None else len(val_y)} val sequences)"
        )

        for epoch in range(self.epochs):
            train_loss = self._train_epoch(train_loader, optimizer)
            val_loss = self._validate_epoch(val_loader) if val_loader is not None else None

            history["train_loss"].append(train_loss)
            history["val_loss"].append(val_loss)
            history["epoch"].append(epoch + 1)

            if val_loss is not None:
                logger.info(
                    f"Epoch {epoch+1}/{self.epochs} - "
                    f"Train Loss: {train_loss:.6f}, Val Loss: {val_loss:.6f}"
                )
            else:
                logger.info(f"Epoch {epoch+1}/{self.epochs} - Train Loss: {train_loss:.6f}")

            if epoch_callback is not None:
                epoch_callback(epoch + 1, train_loss, val_loss)

            if self._stop_event.is_set():
                logger.info(f"Training stopped after {epoch+1} epochs")
                break

        logger.info("Training complete")
        return history

    def predict(self, x: np.ndarray) -> np.ndarray:
        self.model.eval()
        inputs = torch.as_tensor(np.asarray(x), dtype=torch.float32)
        outputs = []

        with torch.no_grad():
            for start in range(0, inputs.shape[0], self.batch_size):
                batch = inputs[start : start + self.batch_size].to(self.device)
                outputs.append(self.model(batch).cpu().numpy())

        if not outputs:
            return np.empty(0, dtype=np.float64)
        return np.concatenate(outputs).astype(np.float64)

    def _train_epoch(self, train_loader: DataLoader, optimizer: torch.optim.Optimizer) -> float:
        """Run one training epoch; returns NaN if every batch diverged."""
        self.model.train()
        total_loss = 0.0
        n_batches = 0

        for batch_x, batch_y in tqdm(train_loader, desc="Training", leave=False):
            batch_x = batch_x.to(self.device)
            batch_y = batch_y.to(self.device)

            predictions = self.model(batch_x)
            loss = F.mse_loss(predictions, batch_y)

            # Skip NaN/Inf batches
            if not torch.isfinite(loss):
                logger.warning("Non-finite loss encountered, skipping batch")
                continue

            optimizer.zero_grad()
            loss.backward()
            torch.nn.utils.clip_grad_norm_(self.model.parameters(), max_norm=self.max_grad_norm)
            optimizer.step()

            total_loss += loss.item()
            n_batches += 1

        if n_batches == 0:
            return float("nan")
        return total_loss / n_batches

    def _validate_epoch(self, val_loader: DataLoader) -> float:
        """Mean-squared error over the validation set."""
        self.model.eval()
        total_loss = 0.0
        n_samples = 0

        with torch.no_grad():
            for batch_x, batch_y in val_loader:
                batch_x = batch_x.to(self.device)
                batch_y = batch_y.to(self.device)
                predictions = self.model(batch_x)
                total_loss += F.mse_loss(predictions, batch_y, reduction="sum").item()
                n_samples += batch_y.shape[0]

        return total_loss / max(n_samples, 1)

    def _create_dataloader(self, x: np.ndarray, y: np.ndarray) -> DataLoader:
        """Create a chronological (unshuffled) DataLoader from numpy arrays."""
        dataset = TensorDataset(
            torch.as_tensor(np.asarray(x), dtype=torch.float32),
            torch.as_tensor(np.asarray(y), dtype=torch.float32),
        )
        return DataLoader(dataset, batch_size=self.batch_size, shuffle=False)
