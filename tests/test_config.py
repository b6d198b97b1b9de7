"""Tests for configuration validation."""

from __future__ import annotations

import pytest

from pitchset.config import (
    Loader,
    ModelConfig,
    PipelineConfig,
    StorePrecision,
    TargetEncoding,
    TrainConfig,
    TrainPrecision,
)
from pitchset.errors import ConfigurationError


def test_from_flags_picks_single_choice() -> None:
    assert Loader.from_flags(mel=True) is Loader.MEL
    assert TargetEncoding.from_flags(folded=True, full=False) is TargetEncoding.FOLDED
    assert TrainPrecision.from_flags(bf16=True) is TrainPrecision.BF16
    assert StorePrecision.from_flags(half=True) is StorePrecision.HALF


@pytest.mark.parametrize(
    "flags",
    [{}, {"mel": True, "frequency": True}, {"mel": False}],
)
def test_from_flags_requires_exactly_one(flags: dict[str, bool]) -> None:
    with pytest.raises(ConfigurationError):
        Loader.from_flags(**flags)


def test_from_flags_rejects_unknown() -> None:
    with pytest.raises(ConfigurationError):
        TargetEncoding.from_flags(chords=True)


def test_configuration_error_is_value_error() -> None:
    with pytest.raises(ValueError):
        TrainPrecision.from_flags()


def test_pipeline_accepts_strings() -> None:
    config = PipelineConfig(loader="frequency_pooled", target="full", train_precision="fp16")
    assert config.loader is Loader.FREQUENCY_POOLED
    assert config.target is TargetEncoding.FULL
    assert config.train_precision.is_reduced
    assert PipelineConfig.from_dict(config.to_dict()) == config


def test_pipeline_rejects_unknown_value() -> None:
    with pytest.raises(ConfigurationError):
        PipelineConfig(loader="cqt")


def test_model_config_divisibility() -> None:
    with pytest.raises(ConfigurationError):
        ModelConfig(d_model=30, n_heads=4)


def test_train_config_validation() -> None:
    with pytest.raises(ConfigurationError):
        TrainConfig(epochs=0)
    with pytest.raises(ConfigurationError):
        TrainConfig(validation_fraction=1.0)
