"""
Stacked GRU regressor for next-step / forward-return prediction.

Outputs one point forecast per input window; trained with MSE loss.
"""

import torch
import torch.nn as nn
from loguru import logger


class GRURegressor(nn.Module):
    """
    Two-layer GRU regressor.

    Architecture:
    - GRU(hidden_size) over the full window, returning every timestep
    - Dropout
    - GRU(second_hidden_size) keeping only the final hidden state
    - Dropout
    - Dense(dense_size) + ReLU
    - Linear output head producing a single value per window
    """

    def __init__(
        self,
        input_size: int,
        hidden_size: int = 128,
        second_hidden_size: int = 64,
        dense_size: int = 32,
        dropout: float = 0.2,
    ):
        """
        Initialize GRU Regressor.

        Args:
            input_size: Number of features per timestep
            hidden_size: Units of the first GRU layer
            second_hidden_size: Units of the second GRU layer
            dense_size: Width of the dense layer before the output head
            dropout: Dropout rate after each GRU layer
        """
        super().__init__()

        # GUARD: input_size must NEVER be 0, clamp to 1 minimum
        if input_size < 1:
            logger.warning(f"GRURegressor.__init__ received input_size={input_size}, clamping to 1")
            input_size = 1

        self.input_size = input_size
        self.hidden_size = hidden_size
        self.second_hidden_size = second_hidden_size

        self.gru1 = nn.GRU(input_size=input_size, hidden_size=hidden_size, batch_first=True)
        self.dropout1 = nn.Dropout(dropout)
        self.gru2 = nn.GRU(input_size=hidden_size, hidden_size=second_hidden_size, batch_first=True)
        self.dropout2 = nn.Dropout(dropout)
        self.dense = nn.Linear(second_hidden_size, dense_size)
        self.output_layer = nn.Linear(dense_size, 1)

        n_params = sum(p.numel() for p in self.parameters())
        logger.info(
            f"Initialized GRURegressor: hidden={hidden_size}/{second_hidden_size}, "
            f"dense={dense_size}, input={input_size}, params={n_params}"
        )

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        """
        Args:
            x: (batch, lookback, input_size)

        Returns:
            predictions: (batch,)
        """
        out, _ = self.gru1(x)
        out = self.dropout1(out)
        _, hidden = self.gru2(out)  # hidden: (1, batch, second_hidden_size)
        out = self.dropout2(hidden[-1])
        out = torch.relu(self.dense(out))
        return self.output_layer(out).squeeze(-1)
