"""Tests for the metrics engine."""

from __future__ import annotations

import numpy as np
import pandas as pd
import pytest

from pitchset.config import TargetEncoding
from pitchset.errors import DatasetError
from pitchset.evaluation.metrics import class_labels, compute_metrics
from pitchset.evaluation.thresholds import ThresholdTable


@pytest.fixture
def split(rng: np.random.Generator) -> tuple[np.ndarray, np.ndarray]:
    targets = (rng.random((40, 12)) > 0.6).astype(np.float32)
    targets[:, 11] = 0
    noise = rng.normal(0.0, 0.3, size=targets.shape)
    probabilities = np.clip(0.25 + 0.5 * targets + noise, 0.0, 1.0)
    return probabilities, targets


def test_order_invariant(split: tuple[np.ndarray, np.ndarray], rng: np.random.Generator) -> None:
    probabilities, targets = split
    table = ThresholdTable.default(12)
    order = rng.permutation(len(targets))

    a = compute_metrics(probabilities, targets, table, TargetEncoding.FOLDED)
    b = compute_metrics(probabilities[order], targets[order], table, TargetEncoding.FOLDED)

    assert a.macro_accuracy == b.macro_accuracy
    assert a.macro_precision == b.macro_precision
    assert a.macro_recall == b.macro_recall
    assert a.macro_f1 == b.macro_f1


def test_idempotent(split: tuple[np.ndarray, np.ndarray]) -> None:
    probabilities, targets = split
    table = ThresholdTable.default(12)
    first = compute_metrics(probabilities, targets, table, TargetEncoding.FOLDED)
    second = compute_metrics(probabilities, targets, table, TargetEncoding.FOLDED)
    assert first.as_dict() == second.as_dict()


def test_zero_support_included_with_zero_scores(split: tuple[np.ndarray, np.ndarray]) -> None:
    probabilities, targets = split
    probabilities[:, 11] = 0.0
    report = compute_metrics(probabilities, targets, ThresholdTable.default(12), TargetEncoding.FOLDED)

    stats = report.per_class[11]
    assert stats.support == 0
    assert (stats.precision, stats.recall, stats.f1, stats.pr_auc) == (0.0, 0.0, 0.0, 0.0)
    assert [s.index for s in report.zero_support] == [11]
    assert report.macro_f1 == pytest.approx(np.mean([s.f1 for s in report.per_class]))
    assert 11 not in [s.index for s in report.lowest_precision]


def test_perfect_predictions() -> None:
    targets = np.array([[1, 0, 0], [0, 1, 0], [0, 0, 0]] + [[0, 0, 1]], dtype=np.float32)
    report = compute_metrics(targets.copy(), targets, (0.5, 0.5, 0.5), TargetEncoding.FOLDED)
    assert report.hamming_score == 1.0
    assert report.macro_f1 == 1.0
    assert report.macro_pr_auc == pytest.approx(1.0)
    # The empty third sample counts as a perfect match.
    assert report.sample_f1 == 1.0


def test_hamming_score_uses_fixed_half() -> None:
    targets = np.array([[1, 0], [0, 1]], dtype=np.float32)
    probabilities = np.array([[0.6, 0.4], [0.6, 0.4]])
    report = compute_metrics(probabilities, targets, (0.05, 0.05), TargetEncoding.FOLDED)
    assert report.hamming_score == 0.5


def test_lowest_lists_are_ranked(split: tuple[np.ndarray, np.ndarray]) -> None:
    probabilities, targets = split
    report = compute_metrics(
        probabilities, targets, ThresholdTable.default(12), TargetEncoding.FOLDED, top_n=3
    )
    precisions = [s.precision for s in report.lowest_precision]
    assert len(precisions) == 3
    assert precisions == sorted(precisions)


def test_report_helpers(split: tuple[np.ndarray, np.ndarray]) -> None:
    probabilities, targets = split
    report = compute_metrics(
        probabilities, targets, ThresholdTable.default(12), TargetEncoding.FOLDED, split="captured"
    )
    frame = report.per_class_frame()
    assert isinstance(frame, pd.DataFrame)
    assert list(frame.index) == class_labels(TargetEncoding.FOLDED)
    assert report.summary().startswith("[captured]")
    assert report.as_dict()["samples"] == 40


def test_folded_bass_labels() -> None:
    labels = class_labels(TargetEncoding.FOLDED_BASS)
    assert len(labels) == 24
    assert labels[0] == "bass:C" and labels[12] == "C"


def test_empty_split_rejected() -> None:
    with pytest.raises(DatasetError):
        compute_metrics(np.zeros((0, 12)), np.zeros((0, 12)), ThresholdTable.default(12), "folded")


def test_exact_match_counts_whole_rows() -> None:
    targets = np.array([[1, 0, 1], [0, 1, 0], [1, 1, 0], [0, 0, 0]], dtype=np.float32)
    probabilities = targets.copy()
    # One wrong slot in the third row spoils only that row.
    probabilities[2, 1] = 0.0
    report = compute_metrics(probabilities, targets, (0.5, 0.5, 0.5), TargetEncoding.FOLDED)
    assert report.exact_match == pytest.approx(0.75)
    assert report.baseline_exact_match is None
    assert "exact=0.7500" in report.summary()


def test_baseline_exact_match() -> None:
    targets = np.array([[1, 0], [0, 1], [1, 1], [0, 0]], dtype=np.float32)
    baseline = np.array([[1, 0], [1, 1], [1, 1], [0, 1]], dtype=np.float32)
    report = compute_metrics(
        targets.copy(), targets, (0.5, 0.5), TargetEncoding.FOLDED, baseline=baseline
    )
    assert report.exact_match == 1.0
    assert report.baseline_exact_match == pytest.approx(0.5)
    assert "deterministic baseline exact=0.5000" in report.summary()


def test_baseline_shape_mismatch_rejected() -> None:
    targets = np.eye(3, dtype=np.float32)
    with pytest.raises(ValueError):
        compute_metrics(
            targets, targets, (0.5,) * 3, TargetEncoding.FOLDED, baseline=np.zeros((2, 3))
        )
