"""Tests for samples, sample files, splits and data loading."""

from __future__ import annotations

from pathlib import Path

import numpy as np
import pytest
import torch

from pitchset.config import PipelineConfig, TargetEncoding
from pitchset.data.dataset import (
    Provenance,
    Sample,
    SpectrumDataset,
    load_folder,
    load_sample,
    make_loader,
    oversample,
    save_sample,
    split_samples,
)
from pitchset.data.features import FeatureEncoder
from pitchset.data.simulation import (
    NoiseKind,
    chord_shapes,
    noise_samples,
    noise_spectrum,
    simulate_dataset,
)
from pitchset.data.targets import TargetEncoder
from pitchset.errors import DatasetError
from pitchset.theory.pitch import names_for


# ── Sample files ─────────────────────────────────────────────────────
def test_sample_file_round_trip(tmp_path: Path, samples: list[Sample]) -> None:
    original = samples[0]
    path = save_sample(tmp_path, original, prefix="guitar_")

    assert path.name.startswith("guitar_" + names_for(original.pitches) + "_")
    assert path.suffix == ".bin"
    assert path.stat().st_size == 8192 * 4 + 16

    loaded = load_sample(path)
    assert np.array_equal(loaded.spectrum, original.spectrum)
    assert loaded.pitches == original.pitches
    assert loaded.label == original.label
    assert loaded.provenance is Provenance.CAPTURED


def test_label_is_big_endian(tmp_path: Path) -> None:
    sample = Sample(spectrum=np.zeros(8192), pitches=frozenset({0}))
    raw = save_sample(tmp_path, sample).read_bytes()
    assert raw[-16:] == (1).to_bytes(16, "big")


def test_truncated_file_rejected(tmp_path: Path) -> None:
    path = tmp_path / "broken.bin"
    path.write_bytes(b"\x00" * 100)
    with pytest.raises(DatasetError):
        load_sample(path)


def test_load_folder_sorted(tmp_path: Path, samples: list[Sample]) -> None:
    for sample in samples[:4]:
        save_sample(tmp_path, sample)
    loaded = load_folder(tmp_path)
    assert len(loaded) == 4
    assert [s.path.name for s in loaded] == sorted(p.name for p in tmp_path.glob("*.bin"))


def test_load_folder_missing(tmp_path: Path) -> None:
    with pytest.raises(DatasetError):
        load_folder(tmp_path / "nope")


def test_sample_is_read_only() -> None:
    sample = Sample(spectrum=np.ones(8192))
    with pytest.raises(ValueError):
        sample.spectrum[0] = 2.0


# ── Splits ───────────────────────────────────────────────────────────
def test_oversample_multiplies_captured(samples: list[Sample]) -> None:
    captured = sum(s.provenance is Provenance.CAPTURED for s in samples)
    simulated = len(samples) - captured
    out = oversample(samples, factor=16)
    assert sum(s.provenance is Provenance.CAPTURED for s in out) == captured * 16
    assert sum(s.provenance is Provenance.SIMULATED for s in out) == simulated


def test_split_samples(samples: list[Sample]) -> None:
    splits = split_samples(samples, validation_fraction=0.2, oversample_factor=4, seed=3)
    assert len(splits.validation) == 4
    assert len(splits.captured) == 1
    assert all(s.provenance is Provenance.CAPTURED for s in splits.captured)
    assert len(splits.train_unique) == 20
    assert len(splits.train) == 16 + 4 * 4
    assert splits.tuning is splits.validation


def test_split_is_seeded(samples: list[Sample]) -> None:
    a = split_samples(samples, seed=11)
    b = split_samples(samples, seed=11)
    assert [id(s) for s in a.train] == [id(s) for s in b.train]


def test_tuning_falls_back_to_train(samples: list[Sample]) -> None:
    splits = split_samples(samples, validation_fraction=0.0)
    assert not splits.validation and not splits.captured
    assert splits.tuning is splits.train_unique


def test_empty_dataset_rejected() -> None:
    with pytest.raises(DatasetError):
        split_samples([])


# ── Torch dataset / loader ───────────────────────────────────────────
def test_spectrum_dataset_item(samples: list[Sample]) -> None:
    dataset = SpectrumDataset(
        samples, FeatureEncoder(PipelineConfig()), TargetEncoder(TargetEncoding.FOLDED_BASS)
    )
    item = dataset[0]
    assert item["features"].shape == (128,)
    assert item["targets"].shape == (24,)
    assert item["features"].dtype == torch.float32


def test_loader_order_is_seeded(samples: list[Sample]) -> None:
    features, targets = FeatureEncoder(PipelineConfig()), TargetEncoder(TargetEncoding.FULL)
    first = next(iter(make_loader(samples, features, targets, batch_size=5, shuffle=True, seed=9)))
    second = next(iter(make_loader(samples, features, targets, batch_size=5, shuffle=True, seed=9)))
    assert torch.equal(first["targets"], second["targets"])


# ── Simulation ───────────────────────────────────────────────────────
def test_simulate_dataset_size_and_seed() -> None:
    a = simulate_dataset(count=1, seed=5, roots=(30, 31))
    b = simulate_dataset(count=1, seed=5, roots=(30, 31))
    assert len(a) == 10
    assert all(np.array_equal(x.spectrum, y.spectrum) for x, y in zip(a, b))
    assert all(s.provenance is Provenance.SIMULATED for s in a)


def test_chord_shapes(rng: np.random.Generator) -> None:
    shapes = chord_shapes(24, rng)
    assert [len(s) for s in shapes] == [1, 1, 2, 3, 4]
    assert all(s[0] == 24 for s in shapes)


def test_noise_samples_are_empty() -> None:
    noise = noise_samples(4, seed=1)
    assert all(not s.pitches and s.provenance is Provenance.NOISE for s in noise)
    assert all(s.spectrum.any() for s in noise)


def test_silent_noise_kind(rng: np.random.Generator) -> None:
    assert not noise_spectrum(NoiseKind.NONE, rng).any()
