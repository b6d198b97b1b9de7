"""Tests for the attention model and the loss."""

from __future__ import annotations

import pytest
import torch

from pitchset.config import Loader, ModelConfig, PipelineConfig, TargetEncoding
from pitchset.data.targets import TargetEncoder
from pitchset.models.attention import PitchAttention, sinusoidal_positions
from pitchset.training.losses import PitchSetLoss


def test_output_shape(tiny_model_config: ModelConfig) -> None:
    pipeline = PipelineConfig(loader=Loader.NOTE_BINNED, target=TargetEncoding.FOLDED_BASS)
    model = PitchAttention.from_config(pipeline, tiny_model_config)
    logits = model(torch.randn(3, 128))
    assert logits.shape == (3, 24)


def test_rejects_wrong_width(tiny_model_config: ModelConfig) -> None:
    model = PitchAttention.from_config(PipelineConfig(), tiny_model_config)
    with pytest.raises(ValueError):
        model(torch.randn(2, 64))


def test_positions_not_persisted(tiny_model_config: ModelConfig) -> None:
    model = PitchAttention.from_config(PipelineConfig(), tiny_model_config)
    assert "positions" not in model.state_dict()


def test_log_tokens_handles_zeros() -> None:
    model = PitchAttention(input_dim=12, output_dim=12, d_model=8, n_heads=2, ff_dim=16, log_tokens=True)
    assert torch.isfinite(model(torch.zeros(1, 12))).all()


def test_sinusoidal_positions() -> None:
    table = sinusoidal_positions(10, 8)
    assert table.shape == (10, 8)
    assert torch.allclose(table[0, 0::2], torch.zeros(4))
    assert torch.allclose(table[0, 1::2], torch.ones(4))


@pytest.mark.parametrize("encoding", list(TargetEncoding))
def test_loss_is_finite_scalar(encoding: TargetEncoding) -> None:
    loss_fn = PitchSetLoss(encoding)
    targets = torch.from_numpy(TargetEncoder(encoding).encode([48, 52, 55])).unsqueeze(0)
    loss = loss_fn(torch.randn(1, encoding.width), targets)
    assert loss.dim() == 0
    assert torch.isfinite(loss)


def test_folded_bass_loss_sums_both_terms() -> None:
    loss_fn = PitchSetLoss(TargetEncoding.FOLDED_BASS)
    logits = torch.zeros(1, 24)
    targets = torch.from_numpy(TargetEncoder(TargetEncoding.FOLDED_BASS).encode([48])).unsqueeze(0)
    # Uniform bass logits give ln(12); zero note logits give ln(2) per slot.
    expected = torch.log(torch.tensor(12.0)) + torch.log(torch.tensor(2.0))
    assert loss_fn(logits, targets) == pytest.approx(float(expected), rel=1e-5)
