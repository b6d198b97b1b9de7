"""Shared fixtures: tiny models and a handful of synthetic samples."""

from __future__ import annotations

import numpy as np
import pytest

from pitchset.config import ModelConfig, PipelineConfig, TrainConfig
from pitchset.data.dataset import Provenance, Sample
from pitchset.data.simulation import simulate_sample
from pitchset.theory.pitch import parse_pitch


@pytest.fixture
def rng() -> np.random.Generator:
    return np.random.default_rng(1234)


@pytest.fixture
def tiny_model_config() -> ModelConfig:
    return ModelConfig(d_model=16, n_heads=2, n_layers=1, ff_dim=32, dropout=0.0)


@pytest.fixture
def tiny_train_config() -> TrainConfig:
    return TrainConfig(epochs=1, batch_size=8, oversample_factor=2, validation_fraction=0.2, seed=7)


@pytest.fixture
def pipeline() -> PipelineConfig:
    return PipelineConfig()


@pytest.fixture
def c_major() -> list[int]:
    return [parse_pitch("C4"), parse_pitch("E4"), parse_pitch("G4")]


@pytest.fixture
def samples(rng: np.random.Generator) -> list[Sample]:
    """Twenty simulated samples plus five captured ones."""
    out = [simulate_sample([root, root + 4, root + 7], rng) for root in range(40, 60)]
    for root in range(45, 50):
        simulated = simulate_sample([root], rng)
        out.append(
            Sample(
                spectrum=simulated.spectrum,
                pitches=simulated.pitches,
                provenance=Provenance.CAPTURED,
            )
        )
    return out
