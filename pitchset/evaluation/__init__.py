"""pitchset.evaluation: Threshold calibration, decoding and metrics."""

from pitchset.evaluation.metrics import ClassStats, MetricsReport, class_labels, compute_metrics
from pitchset.evaluation.thresholds import (
    ThresholdTable,
    apply_thresholds,
    best_f1_threshold,
    one_hot_argmax,
    probabilities_from_logits,
    tune_thresholds,
)

__all__: list[str] = [
    "ClassStats",
    "MetricsReport",
    "ThresholdTable",
    "apply_thresholds",
    "best_f1_threshold",
    "class_labels",
    "compute_metrics",
    "one_hot_argmax",
    "probabilities_from_logits",
    "tune_thresholds",
]
