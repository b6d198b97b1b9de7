"""Tests for threshold tuning and decoding."""

from __future__ import annotations

import numpy as np
import pytest

from pitchset.config import TargetEncoding
from pitchset.errors import ConfigurationError
from pitchset.evaluation.thresholds import (
    ThresholdTable,
    apply_thresholds,
    best_f1_threshold,
    one_hot_argmax,
    probabilities_from_logits,
    tune_thresholds,
)


def test_thresholds_always_in_range(rng: np.random.Generator) -> None:
    for _ in range(5):
        probabilities = rng.random((50, 12))
        targets = (rng.random((50, 12)) > 0.7).astype(np.float32)
        table = tune_thresholds(probabilities, targets, TargetEncoding.FOLDED)
        assert len(table) == 12
        assert all(0.05 <= t <= 0.95 for t in table.values)


def test_zero_positive_class_gets_default(rng: np.random.Generator) -> None:
    probabilities = rng.random((30, 12))
    targets = (rng.random((30, 12)) > 0.5).astype(np.float32)
    targets[:, 3] = 0
    table = tune_thresholds(probabilities, targets, TargetEncoding.FOLDED)
    assert table[3] == 0.5


def test_separable_class_threshold() -> None:
    scores = np.array([0.1, 0.2, 0.6, 0.7])
    truth = np.array([0, 0, 1, 1])
    assert best_f1_threshold(scores, truth) == pytest.approx(0.6)


def test_threshold_is_clamped() -> None:
    assert best_f1_threshold(np.array([0.001, 0.999]), np.array([0, 1])) == 0.95
    assert best_f1_threshold(np.array([0.01, 0.02]), np.array([1, 1])) == 0.05


def test_bass_slots_keep_default(rng: np.random.Generator) -> None:
    probabilities = rng.random((40, 24))
    targets = (rng.random((40, 24)) > 0.5).astype(np.float32)
    table = tune_thresholds(probabilities, targets, TargetEncoding.FOLDED_BASS)
    assert table.values[:12] == (0.5,) * 12


def test_bass_decoding_selects_exactly_one(rng: np.random.Generator) -> None:
    probabilities = rng.random((25, 24))
    probabilities[0, :12] = 0.3  # all tied
    decisions = apply_thresholds(probabilities, ThresholdTable.default(24), TargetEncoding.FOLDED_BASS)
    assert (decisions[:, :12].sum(axis=1) == 1).all()
    assert decisions[0, 0] == 1


def test_apply_thresholds_is_inclusive() -> None:
    table = ThresholdTable((0.4, 0.6))
    decisions = apply_thresholds(np.array([[0.4, 0.59]]), table, TargetEncoding.FOLDED)
    assert decisions.tolist() == [[1.0, 0.0]]


def test_width_mismatch() -> None:
    with pytest.raises(ConfigurationError):
        apply_thresholds(np.zeros((1, 12)), ThresholdTable.default(24), TargetEncoding.FOLDED)


def test_table_rejects_out_of_range() -> None:
    with pytest.raises(ConfigurationError):
        ThresholdTable((0.5, 0.99))


def test_bass_probabilities_are_softmax() -> None:
    probabilities = probabilities_from_logits(np.zeros((2, 24)), TargetEncoding.FOLDED_BASS)
    assert probabilities[:, :12].sum(axis=1) == pytest.approx([1.0, 1.0])
    assert probabilities[:, 12:] == pytest.approx(np.full((2, 12), 0.5))


def test_one_hot_argmax() -> None:
    assert one_hot_argmax(np.array([[0.1, 0.9, 0.3]])).tolist() == [[0.0, 1.0, 0.0]]
