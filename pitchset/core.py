"""
pitchset.core
~~~~~~~~~~~~~

High-level pipeline: the "glue" that connects feature encoding, the
model, threshold tuning and metrics into one-liner calls, plus the
persisted model artifact.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Dict, List, Sequence

import numpy as np
import torch
from numpy.typing import ArrayLike
from torch.utils.data import DataLoader

from pitchset.config import (
    ModelConfig,
    PipelineConfig,
    StorePrecision,
    TargetEncoding,
    TrainConfig,
)
from pitchset.data.dataset import Sample, make_loader, split_samples
from pitchset.data.features import FeatureEncoder, Guesser
from pitchset.data.targets import BASS_SLICE, NOTES_SLICE, TargetEncoder
from pitchset.errors import ConfigurationError
from pitchset.evaluation.metrics import MetricsReport, compute_metrics
from pitchset.evaluation.thresholds import (
    ThresholdTable,
    apply_thresholds,
    probabilities_from_logits,
    tune_thresholds,
)
from pitchset.models.attention import PitchAttention
from pitchset.training.trainer import Trainer
from pitchset.utils.backend import resolve_device

logger = logging.getLogger(__name__)

ARTIFACT_FORMAT_VERSION: int = 1

_ARTIFACT_KEYS = (
    "pipeline",
    "model_config",
    "input_width",
    "target_width",
    "thresholds",
    "model_state_dict",
)


# ── Artifact ─────────────────────────────────────────────────────────
@dataclass
class Artifact:
    """A trained model together with everything needed to run it."""

    model: PitchAttention
    thresholds: ThresholdTable
    pipeline: PipelineConfig
    model_config: ModelConfig


def save_artifact(
    path: str | Path,
    model: PitchAttention,
    thresholds: ThresholdTable,
    pipeline: PipelineConfig,
    model_config: ModelConfig,
) -> Path:
    """Persist parameters, thresholds and configuration with ``torch.save``.

    Parameters are stored as fp16 when ``pipeline.store_precision`` is
    ``half``.
    """
    if len(thresholds) != pipeline.target_width:
        raise ConfigurationError(
            f"Threshold table has {len(thresholds)} classes, "
            f"target encoding {pipeline.target.value} has {pipeline.target_width}."
        )

    state = model.state_dict()
    if pipeline.store_precision is StorePrecision.HALF:
        state = {k: v.half() if v.is_floating_point() else v for k, v in state.items()}
    state = {k: v.detach().cpu() for k, v in state.items()}

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    torch.save(
        {
            "format_version": ARTIFACT_FORMAT_VERSION,
            "pipeline": pipeline.to_dict(),
            "model_config": asdict(model_config),
            "input_width": pipeline.input_width,
            "target_width": pipeline.target_width,
            "thresholds": list(thresholds.values),
            "model_state_dict": state,
        },
        path,
    )
    logger.info("Saved artifact to %s", path)
    return path


def _check_compatible(stored: PipelineConfig, expected: PipelineConfig) -> None:
    for name in ("loader", "target", "include_guess"):
        have, want = getattr(stored, name), getattr(expected, name)
        if have != want:
            raise ConfigurationError(
                f"Artifact was trained with {name}={getattr(have, 'value', have)!r}, "
                f"runtime configuration has {getattr(want, 'value', want)!r}."
            )


def load_artifact(
    path: str | Path,
    expected: PipelineConfig | None = None,
    device: str | torch.device = "cpu",
) -> Artifact:
    """Load an artifact written by :func:`save_artifact`.

    Parameters
    ----------
    path : str | Path
        Artifact file.
    expected : PipelineConfig, optional
        Runtime configuration; any loader / target / guess / width
        mismatch is rejected before the model is built.
    device : str | torch.device
        Where to place the model.

    Raises
    ------
    ConfigurationError
        If the artifact does not match *expected* or is malformed.
    """
    payload = torch.load(str(path), map_location="cpu", weights_only=False)
    if not isinstance(payload, dict):
        raise ConfigurationError(
            f"Artifact {path} holds a {type(payload).__name__}, not an artifact dict."
        )
    version = payload.get("format_version")
    if version != ARTIFACT_FORMAT_VERSION:
        raise ConfigurationError(f"Unsupported artifact format version {version!r}.")
    missing = [key for key in _ARTIFACT_KEYS if key not in payload]
    if missing:
        raise ConfigurationError(f"Artifact {path} is missing {', '.join(missing)}.")

    try:
        pipeline = PipelineConfig.from_dict(payload["pipeline"])
    except (KeyError, TypeError, ValueError) as exc:
        raise ConfigurationError(f"Artifact pipeline configuration is invalid: {exc}") from exc
    if (payload["input_width"], payload["target_width"]) != (
        pipeline.input_width,
        pipeline.target_width,
    ):
        raise ConfigurationError("Artifact widths do not match its own configuration.")
    if expected is not None:
        _check_compatible(pipeline, expected)
        if (expected.input_width, expected.target_width) != (
            payload["input_width"],
            payload["target_width"],
        ):
            raise ConfigurationError(
                f"Artifact widths ({payload['input_width']}, {payload['target_width']}) "
                f"differ from runtime ({expected.input_width}, {expected.target_width})."
            )

    thresholds = ThresholdTable(tuple(payload["thresholds"]))
    if len(thresholds) != pipeline.target_width:
        raise ConfigurationError("Artifact threshold table width does not match its target.")

    try:
        model_config = ModelConfig(**payload["model_config"])
    except (KeyError, TypeError, ValueError) as exc:
        raise ConfigurationError(f"Artifact model configuration is invalid: {exc}") from exc
    model = PitchAttention.from_config(pipeline, model_config)
    try:
        state = {
            k: v.float() if v.is_floating_point() else v
            for k, v in payload["model_state_dict"].items()
        }
        model.load_state_dict(state)
    except (AttributeError, RuntimeError) as exc:
        raise ConfigurationError(f"Artifact parameters do not fit the model: {exc}") from exc
    model = model.to(resolve_device(device)).eval()
    return Artifact(model=model, thresholds=thresholds, pipeline=pipeline, model_config=model_config)


# ── Inference ────────────────────────────────────────────────────────
@dataclass(frozen=True)
class InferenceResult:
    """Decoded output for one spectrum.

    ``pitches`` are absolute pitch indices under ``full`` and pitch classes
    under the folded encodings. ``bass`` is only set under ``folded_bass``.
    ``deltas`` is ``probabilities - thresholds`` per class.
    """

    pitches: tuple[int, ...]
    bass: int | None
    probabilities: np.ndarray
    deltas: np.ndarray


def infer(
    spectrum: ArrayLike,
    model: PitchAttention,
    thresholds: ThresholdTable,
    encoder: FeatureEncoder,
) -> InferenceResult:
    """Run the model on a single spectrum and decode the result.

    Parameters
    ----------
    spectrum : array, shape ``(8192,)``
        Magnitude spectrum.
    model : PitchAttention
        A trained model.
    thresholds : ThresholdTable
        Per-class thresholds, usually from the artifact.
    encoder : FeatureEncoder
        Feature encoder built from the same pipeline configuration.

    Returns
    -------
    InferenceResult
    """
    encoding = encoder.config.target
    if (
        len(thresholds) != encoding.width
        or model.output_dim != encoding.width
        or model.input_dim != encoder.width
    ):
        raise ConfigurationError(
            f"Model/threshold widths do not match the {encoding.value} pipeline."
        )

    device = next(model.parameters()).device
    features = torch.from_numpy(encoder.encode(spectrum)).unsqueeze(0).to(device)
    model.eval()
    with torch.no_grad():
        logits = model(features).float().cpu().numpy()

    probabilities = probabilities_from_logits(logits, encoding)[0]
    decisions = apply_thresholds(probabilities[None], thresholds, encoding)[0]
    deltas = probabilities - thresholds.as_array()

    bass = None
    if encoding is TargetEncoding.FOLDED_BASS:
        bass = int(np.argmax(decisions[BASS_SLICE]))
        decisions = decisions[NOTES_SLICE]
    pitches = tuple(int(i) for i in np.flatnonzero(decisions))
    return InferenceResult(pitches=pitches, bass=bass, probabilities=probabilities, deltas=deltas)


# ── Training pipeline ────────────────────────────────────────────────
def guess_targets(
    samples: Sequence[Sample], guesser: Guesser, targets: TargetEncoder
) -> np.ndarray:
    """Target-encode the deterministic guesser's pitch decisions for *samples*."""
    rows = []
    for sample in samples:
        guess = np.asarray(guesser(sample.spectrum), dtype=np.float32).reshape(-1)
        rows.append(targets.encode(np.flatnonzero(guess > 0.5).tolist()))
    return np.stack(rows) if rows else np.zeros((0, targets.width), dtype=np.float32)


@dataclass
class TrainingResult:
    model: PitchAttention
    thresholds: ThresholdTable
    history: Dict[str, List[float]]
    reports: Dict[str, MetricsReport] = field(default_factory=dict)


def train(
    samples: Sequence[Sample],
    pipeline: PipelineConfig | None = None,
    model_config: ModelConfig | None = None,
    train_config: TrainConfig | None = None,
    device: str | torch.device = "cpu",
    checkpoint_dir: str | Path | None = None,
    guesser: Guesser | None = None,
    progress: bool = True,
) -> TrainingResult:
    """Split, train, tune thresholds and evaluate in one call.

    Thresholds are tuned on the validation split, falling back to the
    held-out captured split and then to the (non-oversampled) training
    samples. A report is produced for every non-empty held-out split, or
    for the training samples when there are none. When a *guesser* is
    supplied, the captured report also carries the guesser's own
    exact-match rate as a baseline.
    """
    pipeline = pipeline or PipelineConfig()
    model_config = model_config or ModelConfig()
    train_config = train_config or TrainConfig()

    features = FeatureEncoder(pipeline, guesser)
    targets = TargetEncoder(pipeline.target)
    torch_device = resolve_device(device)
    torch.manual_seed(train_config.seed)

    splits = split_samples(
        samples,
        validation_fraction=train_config.validation_fraction,
        oversample_factor=train_config.oversample_factor,
        seed=train_config.seed,
    )

    def loader(part: Sequence[Sample], shuffle: bool = False) -> DataLoader:  # type: ignore[type-arg]
        return make_loader(
            part,
            features,
            targets,
            batch_size=train_config.batch_size,
            shuffle=shuffle,
            workers=train_config.workers,
            seed=train_config.seed,
        )

    model = PitchAttention.from_config(pipeline, model_config)
    trainer = Trainer(
        model,
        pipeline,
        train_config,
        device=torch_device,
        checkpoint_dir=checkpoint_dir,
        progress=progress,
    )
    history = trainer.fit(
        loader(splits.train, shuffle=True),
        loader(splits.validation) if splits.validation else None,
    )

    logits, truth = trainer.collect(loader(splits.tuning))
    thresholds = tune_thresholds(
        probabilities_from_logits(logits, pipeline.target), truth, pipeline.target
    )

    held_out = {"validation": splits.validation, "captured": splits.captured}
    if not any(held_out.values()):
        held_out = {"train": splits.train_unique}

    reports: Dict[str, MetricsReport] = {}
    for name, part in held_out.items():
        if not part:
            continue
        logits, truth = trainer.collect(loader(part))
        baseline = None
        if name == "captured" and guesser is not None:
            baseline = guess_targets(part, guesser, targets)
        report = compute_metrics(
            probabilities_from_logits(logits, pipeline.target),
            truth,
            thresholds,
            pipeline.target,
            split=name,
            baseline=baseline,
        )
        logger.info("%s", report.summary())
        reports[name] = report

    return TrainingResult(
        model=trainer.model,
        thresholds=thresholds,
        history=history,
        reports=reports,
    )
