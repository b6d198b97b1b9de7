"""
pitchset
~~~~~~~~

Attention-based pitch-set detection from magnitude spectra.

Quick-start::

    import pitchset as ps

    # Configuration (exactly one loader / target / precision)
    pipeline = ps.PipelineConfig(loader="mel", target="folded_bass")

    # Synthetic training data
    samples = ps.simulate_dataset(count=2000, seed=0)

    # Train, tune thresholds and evaluate
    result = ps.train(samples, pipeline, train_config=ps.TrainConfig(epochs=4))
    print(result.reports["validation"].summary())

    # Persist and reload
    ps.save_artifact("model.pt", result.model, result.thresholds,
                     pipeline, ps.ModelConfig())
    artifact = ps.load_artifact("model.pt", expected=pipeline)

    # Inference on one spectrum
    out = ps.infer(spectrum, artifact.model, artifact.thresholds,
                   ps.FeatureEncoder(pipeline))

Subpackages
-----------
models      Attention network.
data        Feature/target encoding, sample files, simulation, datasets.
theory      Pitch indexing and label masks.
training    Training loop, loss and loss scaling.
evaluation  Threshold tuning, decoding and metrics.
utils       Device/backend resolution.
"""

from __future__ import annotations

__version__: str = "0.1.0"

# ── Core pipeline ────────────────────────────────────────────────────
from pitchset.core import (
    Artifact,
    InferenceResult,
    TrainingResult,
    infer,
    load_artifact,
    save_artifact,
    train,
)

# ── Config ───────────────────────────────────────────────────────────
from pitchset.config import (
    Loader,
    ModelConfig,
    PipelineConfig,
    StorePrecision,
    TargetEncoding,
    TrainConfig,
    TrainPrecision,
)
from pitchset.errors import BackendError, ConfigurationError, DatasetError, PitchsetError

# ── Model ────────────────────────────────────────────────────────────
from pitchset.models.attention import PitchAttention

# ── Data ─────────────────────────────────────────────────────────────
from pitchset.data.dataset import (
    Provenance,
    Sample,
    SpectrumDataset,
    load_folder,
    load_sample,
    save_sample,
    split_samples,
)
from pitchset.data.features import FeatureEncoder
from pitchset.data.simulation import noise_samples, simulate_dataset
from pitchset.data.targets import TargetEncoder

# ── Theory ───────────────────────────────────────────────────────────
from pitchset.theory.pitch import PITCH_CLASS_LABELS, fold, parse_pitch, pitch_name

# ── Training ─────────────────────────────────────────────────────────
from pitchset.training.losses import PitchSetLoss
from pitchset.training.scaling import LossScaleState
from pitchset.training.trainer import Trainer

# ── Evaluation ───────────────────────────────────────────────────────
from pitchset.evaluation.metrics import MetricsReport, compute_metrics
from pitchset.evaluation.thresholds import ThresholdTable, tune_thresholds

# ── Utils ────────────────────────────────────────────────────────────
from pitchset.utils.backend import resolve_device

__all__: list[str] = [
    # pipeline
    "Artifact",
    "InferenceResult",
    "TrainingResult",
    "infer",
    "load_artifact",
    "save_artifact",
    "train",
    # config
    "Loader",
    "ModelConfig",
    "PipelineConfig",
    "StorePrecision",
    "TargetEncoding",
    "TrainConfig",
    "TrainPrecision",
    # errors
    "BackendError",
    "ConfigurationError",
    "DatasetError",
    "PitchsetError",
    # model
    "PitchAttention",
    # data
    "FeatureEncoder",
    "Provenance",
    "Sample",
    "SpectrumDataset",
    "TargetEncoder",
    "load_folder",
    "load_sample",
    "noise_samples",
    "save_sample",
    "simulate_dataset",
    "split_samples",
    # theory
    "PITCH_CLASS_LABELS",
    "fold",
    "parse_pitch",
    "pitch_name",
    # training
    "LossScaleState",
    "PitchSetLoss",
    "Trainer",
    # evaluation
    "MetricsReport",
    "ThresholdTable",
    "compute_metrics",
    "tune_thresholds",
    # utils
    "resolve_device",
]
