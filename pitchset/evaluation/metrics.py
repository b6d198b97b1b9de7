"""
pitchset.evaluation.metrics
~~~~~~~~~~~~~~~~~~~~~~~~~~~

Multi-label evaluation of a split.

Macro metrics average over *every* class, including classes with no
positive examples, which contribute 0 precision/recall/F1. This keeps
numbers comparable across experiments even though it drags macro scores
down when rare classes are absent.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Sequence

import numpy as np
import pandas as pd
from numpy.typing import ArrayLike
from sklearn.metrics import (
    accuracy_score,
    auc,
    f1_score,
    hamming_loss,
    multilabel_confusion_matrix,
    precision_recall_curve,
    precision_recall_fscore_support,
)

from pitchset.config import DEFAULT_THRESHOLD, TargetEncoding
from pitchset.errors import DatasetError
from pitchset.evaluation.thresholds import ThresholdTable, apply_thresholds
from pitchset.theory.pitch import PITCH_CLASS_LABELS, pitch_name


def class_labels(encoding: TargetEncoding) -> list[str]:
    """Display names of the output classes, in slot order."""
    encoding = TargetEncoding(encoding)
    if encoding is TargetEncoding.FULL:
        return [pitch_name(i) for i in range(encoding.width)]
    if encoding is TargetEncoding.FOLDED:
        return list(PITCH_CLASS_LABELS)
    return [f"bass:{p}" for p in PITCH_CLASS_LABELS] + list(PITCH_CLASS_LABELS)


@dataclass(frozen=True)
class ClassStats:
    index: int
    label: str
    support: int
    predicted: int
    accuracy: float
    precision: float
    recall: float
    f1: float
    pr_auc: float


@dataclass(frozen=True)
class MetricsReport:
    """Aggregate and per-class statistics for one split."""

    split: str
    samples: int
    hamming_score: float
    macro_accuracy: float
    macro_precision: float
    macro_recall: float
    macro_f1: float
    macro_pr_auc: float
    sample_f1: float
    per_class: tuple[ClassStats, ...]
    lowest_precision: tuple[ClassStats, ...]
    lowest_recall: tuple[ClassStats, ...]
    zero_support: tuple[ClassStats, ...]
    exact_match: float = 0.0
    baseline_exact_match: float | None = None

    def as_dict(self) -> dict[str, object]:
        return asdict(self)

    def per_class_frame(self) -> pd.DataFrame:
        """Per-class statistics as a DataFrame indexed by class label."""
        return pd.DataFrame([asdict(s) for s in self.per_class]).set_index("label")

    def summary(self) -> str:
        lines = [
            f"[{self.split}] n={self.samples} "
            f"hamming={self.hamming_score:.4f} "
            f"acc={self.macro_accuracy:.4f} "
            f"P={self.macro_precision:.4f} "
            f"R={self.macro_recall:.4f} "
            f"F1={self.macro_f1:.4f} "
            f"PR-AUC={self.macro_pr_auc:.4f} "
            f"sample-F1={self.sample_f1:.4f} "
            f"exact={self.exact_match:.4f}",
        ]
        if self.baseline_exact_match is not None:
            lines.append(f"  deterministic baseline exact={self.baseline_exact_match:.4f}")
        for title, rows in (
            ("lowest precision", self.lowest_precision),
            ("lowest recall", self.lowest_recall),
        ):
            if rows:
                lines.append(f"  {title}:")
                lines.extend(
                    f"    {s.label:>8} P={s.precision:.3f} R={s.recall:.3f} "
                    f"support={s.support} predicted={s.predicted}"
                    for s in rows
                )
        if self.zero_support:
            names = ", ".join(s.label for s in self.zero_support)
            lines.append(f"  zero support: {names}")
        return "\n".join(lines)


def _pr_auc(truth: np.ndarray, scores: np.ndarray) -> float:
    if not truth.any():
        return 0.0
    precision, recall, _ = precision_recall_curve(truth, scores)
    return float(auc(recall, precision))


def compute_metrics(
    probabilities: ArrayLike,
    targets: ArrayLike,
    thresholds: ThresholdTable | Sequence[float],
    encoding: TargetEncoding,
    split: str = "validation",
    top_n: int = 5,
    baseline: ArrayLike | None = None,
) -> MetricsReport:
    """Evaluate one split.

    Parameters
    ----------
    probabilities : array, shape ``(N, C)``
        Per-class probabilities (see
        :func:`~pitchset.evaluation.thresholds.probabilities_from_logits`).
    targets : array, shape ``(N, C)``
        Ground-truth target vectors.
    thresholds : ThresholdTable | sequence of float
        Per-class decision thresholds.
    encoding : TargetEncoding
        Active encoding (bass slots are decoded by arg-max).
    split : str
        Name recorded in the report.
    top_n : int
        Length of the lowest-precision / lowest-recall lists.
    baseline : array, shape ``(N, C)``, optional
        Target-encoded decisions of the deterministic guesser on the same
        samples; its exact-match rate is reported alongside the model.

    Returns
    -------
    MetricsReport

    Raises
    ------
    DatasetError
        If the split is empty.
    """
    probabilities = np.asarray(probabilities, dtype=np.float64)
    truth = (np.asarray(targets) > 0.5).astype(np.int64)
    if probabilities.shape != truth.shape or probabilities.ndim != 2:
        raise ValueError(
            f"Shape mismatch: probabilities {probabilities.shape}, targets {truth.shape}."
        )
    n_samples, n_classes = truth.shape
    if n_samples == 0:
        raise DatasetError(f"Cannot compute metrics for empty split {split!r}.")

    predicted = apply_thresholds(probabilities, thresholds, encoding).astype(np.int64)
    labels = list(range(n_classes))

    hamming = 1.0 - float(
        hamming_loss(truth, (probabilities >= DEFAULT_THRESHOLD).astype(np.int64))
    )

    precision, recall, f1, support = precision_recall_fscore_support(
        truth, predicted, labels=labels, average=None, zero_division=0
    )
    confusion = multilabel_confusion_matrix(truth, predicted, labels=labels)
    accuracy = (confusion[:, 0, 0] + confusion[:, 1, 1]) / n_samples
    predicted_counts = predicted.sum(axis=0)
    pr_auc = np.array([_pr_auc(truth[:, c], probabilities[:, c]) for c in labels])

    exact_match = float(accuracy_score(truth, predicted))
    baseline_exact_match = None
    if baseline is not None:
        guessed = (np.asarray(baseline) > 0.5).astype(np.int64)
        if guessed.shape != truth.shape:
            raise ValueError(
                f"Shape mismatch: baseline {guessed.shape}, targets {truth.shape}."
            )
        baseline_exact_match = float(accuracy_score(truth, guessed))

    sample_f1 = float(
        f1_score(truth, predicted, labels=labels, average="samples", zero_division=1.0)
    )

    names = class_labels(encoding)
    if len(names) != n_classes:
        names = [str(c) for c in labels]
    per_class = tuple(
        ClassStats(
            index=c,
            label=names[c],
            support=int(support[c]),
            predicted=int(predicted_counts[c]),
            accuracy=float(accuracy[c]),
            precision=float(precision[c]),
            recall=float(recall[c]),
            f1=float(f1[c]),
            pr_auc=float(pr_auc[c]),
        )
        for c in labels
    )

    supported = [s for s in per_class if s.support > 0]
    return MetricsReport(
        split=split,
        samples=n_samples,
        hamming_score=hamming,
        macro_accuracy=float(np.mean(accuracy)),
        macro_precision=float(np.mean(precision)),
        macro_recall=float(np.mean(recall)),
        macro_f1=float(np.mean(f1)),
        macro_pr_auc=float(np.mean(pr_auc)),
        sample_f1=sample_f1,
        per_class=per_class,
        lowest_precision=tuple(sorted(supported, key=lambda s: (s.precision, s.index))[:top_n]),
        lowest_recall=tuple(sorted(supported, key=lambda s: (s.recall, s.index))[:top_n]),
        zero_support=tuple(s for s in per_class if s.support == 0),
        exact_match=exact_match,
        baseline_exact_match=baseline_exact_match,
    )
