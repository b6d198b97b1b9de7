"""
pitchset.models.attention
~~~~~~~~~~~~~~~~~~~~~~~~~

Self-attention network over the bins of a feature vector, with a single
linear head producing multi-label logits.
"""

from __future__ import annotations

import math

import torch
import torch.nn as nn

from pitchset.config import LOG_EPSILON, ModelConfig, PipelineConfig


def sinusoidal_positions(length: int, d_model: int) -> torch.Tensor:
    """Fixed sine/cosine position signal of shape ``(length, d_model)``."""
    position = torch.arange(length, dtype=torch.float32).unsqueeze(1)
    div_term = torch.exp(
        torch.arange(0, d_model, 2, dtype=torch.float32) * (-math.log(10000.0) / d_model)
    )
    table = torch.zeros(length, d_model)
    table[:, 0::2] = torch.sin(position * div_term)
    table[:, 1::2] = torch.cos(position * div_term[: d_model // 2])
    return table


class PitchAttention(nn.Module):
    """Attention-based multi-label pitch classifier.

    Architecture
    ------------
    1. Tokenise: every input bin becomes a 1-d token (optionally
       ``log(|x| + eps)`` first)
    2. Linear token embedding to ``d_model``
    3. Add a fixed sinusoidal position signal (bin order carries frequency)
    4. ``n_layers`` pre-norm blocks: LayerNorm → multi-head self-attention →
       residual, then LayerNorm → Linear → GELU → Linear → residual
    5. Mean-pool over tokens
    6. Linear head → raw logits (losses apply sigmoid/softmax themselves)

    Parameters
    ----------
    input_dim : int
        Feature width ``W`` (also the token count ``T``).
    output_dim : int
        Target width.
    d_model : int
        Token embedding dimension.
    n_heads : int
        Attention heads; each head has width ``d_model // n_heads``.
    n_layers : int
        Number of stacked attention + feed-forward blocks.
    ff_dim : int
        Hidden width of the feed-forward network.
    dropout : float
        Dropout applied to attention weights and both residual branches.
    log_tokens : bool
        Apply ``log(|x| + eps)`` to the inputs before embedding.
    """

    def __init__(
        self,
        input_dim: int,
        output_dim: int,
        d_model: int = 64,
        n_heads: int = 4,
        n_layers: int = 1,
        ff_dim: int = 128,
        dropout: float = 0.1,
        log_tokens: bool = False,
    ) -> None:
        super().__init__()
        self.input_dim = input_dim
        self.output_dim = output_dim
        self.log_tokens = log_tokens

        self.embed = nn.Linear(1, d_model)
        self.register_buffer(
            "positions", sinusoidal_positions(input_dim, d_model), persistent=False
        )

        encoder_layer = nn.TransformerEncoderLayer(
            d_model=d_model,
            nhead=n_heads,
            dim_feedforward=ff_dim,
            dropout=dropout,
            activation="gelu",
            batch_first=True,
            norm_first=True,
        )
        self.encoder = nn.TransformerEncoder(
            encoder_layer,
            num_layers=n_layers,
            enable_nested_tensor=False,
        )

        self.head = nn.Linear(d_model, output_dim)

    @classmethod
    def from_config(cls, pipeline: PipelineConfig, model: ModelConfig) -> PitchAttention:
        return cls(
            input_dim=pipeline.input_width,
            output_dim=pipeline.target_width,
            d_model=model.d_model,
            n_heads=model.n_heads,
            n_layers=model.n_layers,
            ff_dim=model.ff_dim,
            dropout=model.dropout,
            log_tokens=model.log_tokens,
        )

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        """Run a forward pass.

        Parameters
        ----------
        x : Tensor, shape ``(batch, input_dim)``
            Encoded feature vectors.

        Returns
        -------
        Tensor, shape ``(batch, output_dim)``
            Raw logits.
        """
        if x.dim() != 2 or x.shape[1] != self.input_dim:
            raise ValueError(
                f"Expected input of shape (batch, {self.input_dim}), got {tuple(x.shape)}."
            )
        if self.log_tokens:
            x = torch.log(x.abs() + LOG_EPSILON)

        # (batch, W) → (batch, T, 1) → (batch, T, d_model)
        h = self.embed(x.unsqueeze(-1))
        h = h + self.positions.to(h.dtype)
        h = self.encoder(h)

        return self.head(h.mean(dim=1))
