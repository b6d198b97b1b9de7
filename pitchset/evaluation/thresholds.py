"""
pitchset.evaluation.thresholds
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~

Per-class decision thresholds and the decoder that applies them.

After training, each output class gets the threshold that maximises its F1
on a held-out split, clamped to ``[0.05, 0.95]``. Classes without positive
examples keep the default of 0.5. Under ``folded_bass`` the bass slots are
never thresholded: the bass is the arg-max of their 12 logits.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Sequence

import numpy as np
from numpy.typing import ArrayLike
from scipy.special import expit, softmax
from sklearn.metrics import precision_recall_curve

from pitchset.config import (
    DEFAULT_THRESHOLD,
    MAX_THRESHOLD,
    MIN_THRESHOLD,
    TargetEncoding,
)
from pitchset.data.targets import BASS_SLICE
from pitchset.errors import ConfigurationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ThresholdTable:
    """Read-only mapping from class index to decision threshold."""

    values: tuple[float, ...]

    def __post_init__(self) -> None:
        values = tuple(float(v) for v in self.values)
        for index, value in enumerate(values):
            if not MIN_THRESHOLD <= value <= MAX_THRESHOLD:
                raise ConfigurationError(
                    f"Threshold {value} for class {index} outside "
                    f"[{MIN_THRESHOLD}, {MAX_THRESHOLD}]."
                )
        object.__setattr__(self, "values", values)

    @classmethod
    def default(cls, width: int) -> ThresholdTable:
        return cls((DEFAULT_THRESHOLD,) * width)

    def __len__(self) -> int:
        return len(self.values)

    def __getitem__(self, index: int) -> float:
        return self.values[index]

    def as_array(self) -> np.ndarray:
        return np.asarray(self.values, dtype=np.float64)


def _bass_slots(encoding: TargetEncoding) -> slice | None:
    return BASS_SLICE if TargetEncoding(encoding).has_bass else None


def probabilities_from_logits(logits: ArrayLike, encoding: TargetEncoding) -> np.ndarray:
    """Sigmoid on every slot, except softmax over the bass slots of ``folded_bass``."""
    logits = np.asarray(logits, dtype=np.float64)
    probabilities = expit(logits)
    bass = _bass_slots(encoding)
    if bass is not None:
        probabilities[..., bass] = softmax(logits[..., bass], axis=-1)
    return probabilities


def best_f1_threshold(scores: ArrayLike, truth: ArrayLike) -> float:
    """Threshold maximising F1 for one class, clamped to the allowed range.

    Candidates are the distinct scores (the full precision–recall sweep).
    Returns the default 0.5 when *truth* has no positives.
    """
    scores = np.asarray(scores, dtype=np.float64)
    truth = np.asarray(truth) > 0.5
    if not truth.any():
        return DEFAULT_THRESHOLD

    precision, recall, candidates = precision_recall_curve(truth, scores)
    precision, recall = precision[:-1], recall[:-1]
    denominator = precision + recall
    f1 = np.divide(
        2.0 * precision * recall,
        denominator,
        out=np.zeros_like(denominator),
        where=denominator > 0,
    )
    best = float(candidates[int(np.argmax(f1))])
    return float(np.clip(best, MIN_THRESHOLD, MAX_THRESHOLD))


def tune_thresholds(
    probabilities: ArrayLike,
    targets: ArrayLike,
    encoding: TargetEncoding,
) -> ThresholdTable:
    """Search a threshold per class on a held-out split.

    Parameters
    ----------
    probabilities : array, shape ``(N, C)``
        Output of :func:`probabilities_from_logits`.
    targets : array, shape ``(N, C)``
        Ground-truth target vectors.
    encoding : TargetEncoding
        Active encoding; bass slots keep the default threshold.

    Returns
    -------
    ThresholdTable
    """
    probabilities = np.asarray(probabilities, dtype=np.float64)
    targets = np.asarray(targets)
    if probabilities.shape != targets.shape or probabilities.ndim != 2:
        raise ValueError(
            f"Shape mismatch: probabilities {probabilities.shape}, targets {targets.shape}."
        )

    width = probabilities.shape[1]
    bass = _bass_slots(encoding)
    skip = set(range(width)[bass]) if bass is not None else set()
    searched = [c for c in range(width) if c not in skip]

    values = [DEFAULT_THRESHOLD] * width
    for c in searched:
        values[c] = best_f1_threshold(probabilities[:, c], targets[:, c])

    fallback = sum(1 for c in searched if not (targets[:, c] > 0.5).any())
    if fallback:
        logger.info("%d class(es) without positives kept threshold %.2f", fallback, DEFAULT_THRESHOLD)
    return ThresholdTable(tuple(values))


def apply_thresholds(
    probabilities: ArrayLike,
    thresholds: ThresholdTable | Sequence[float],
    encoding: TargetEncoding,
) -> np.ndarray:
    """Binary decisions ``(N, C)``.

    Every slot is ``probability >= threshold`` except the ``folded_bass``
    bass slots, where exactly one (the arg-max) is set per sample.
    """
    probabilities = np.asarray(probabilities, dtype=np.float64)
    table = thresholds.as_array() if isinstance(thresholds, ThresholdTable) else np.asarray(thresholds)
    if table.shape[0] != probabilities.shape[-1]:
        raise ConfigurationError(
            f"Threshold table has {table.shape[0]} classes, outputs have {probabilities.shape[-1]}."
        )

    decisions = (probabilities >= table).astype(np.float32)
    bass = _bass_slots(encoding)
    if bass is not None:
        decisions[..., bass] = one_hot_argmax(probabilities[..., bass])
    return decisions


def one_hot_argmax(scores: np.ndarray) -> np.ndarray:
    """One-hot of the arg-max along the last axis (ties go to the lowest index)."""
    out = np.zeros(scores.shape, dtype=np.float32)
    np.put_along_axis(out, np.argmax(scores, axis=-1)[..., None], 1.0, axis=-1)
    return out

