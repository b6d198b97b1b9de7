"""
pitchset.data.dataset
~~~~~~~~~~~~~~~~~~~~~

Samples, the on-disk sample format, and the PyTorch dataset that feeds the
trainer.

A captured sample file holds 8192 big-endian ``float32`` magnitudes
followed by a big-endian unsigned 128-bit label mask (bit ``i`` set when
pitch ``i`` sounds).

Captured samples are oversampled in the training split and also kept as
a separate held-out split so they can be evaluated on their own.
"""

from __future__ import annotations

import enum
import hashlib
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Sequence

import numpy as np
import torch
from torch.utils.data import DataLoader, Dataset

from pitchset.config import DEFAULT_OVERSAMPLE_FACTOR, FREQUENCY_SPACE_SIZE
from pitchset.data.features import FeatureEncoder
from pitchset.data.targets import TargetEncoder
from pitchset.errors import DatasetError
from pitchset.theory.pitch import id_mask, names_for, pitches_from_mask

logger = logging.getLogger(__name__)

_SPECTRUM_DTYPE = np.dtype(">f4")
_LABEL_BYTES = 16
_RECORD_BYTES = FREQUENCY_SPACE_SIZE * _SPECTRUM_DTYPE.itemsize + _LABEL_BYTES


class Provenance(str, enum.Enum):
    CAPTURED = "captured"
    SIMULATED = "simulated"
    NOISE = "synthesized_noise"


@dataclass(frozen=True, eq=False)
class Sample:
    """One labelled spectrum.

    Parameters
    ----------
    spectrum : np.ndarray, shape ``(8192,)``
        Magnitude spectrum (stored read-only).
    pitches : frozenset[int]
        Sounding pitch indices.
    provenance : Provenance
        Where the sample came from; drives oversampling.
    bass : int, optional
        Bass pitch index. Defaults to the lowest sounding pitch.
    path : Path, optional
        Source file, when loaded from disk.
    """

    spectrum: np.ndarray
    pitches: frozenset[int] = field(default_factory=frozenset)
    provenance: Provenance = Provenance.SIMULATED
    bass: int | None = None
    path: Path | None = None

    def __post_init__(self) -> None:
        spectrum = np.array(self.spectrum, dtype=np.float32)
        if spectrum.shape != (FREQUENCY_SPACE_SIZE,):
            raise DatasetError(
                f"Sample spectrum must have shape ({FREQUENCY_SPACE_SIZE},), got {spectrum.shape}."
            )
        spectrum.flags.writeable = False
        object.__setattr__(self, "spectrum", spectrum)
        object.__setattr__(self, "pitches", frozenset(int(p) for p in self.pitches))
        object.__setattr__(self, "provenance", Provenance(self.provenance))

    @property
    def label(self) -> int:
        """128-bit label mask."""
        return id_mask(self.pitches)


# ── Sample files ─────────────────────────────────────────────────────
def load_sample(path: str | Path, provenance: Provenance = Provenance.CAPTURED) -> Sample:
    """Read a binary sample file.

    Raises
    ------
    DatasetError
        If the file is missing, truncated or carries an invalid label.
    """
    path = Path(path)
    try:
        raw = path.read_bytes()
    except OSError as exc:
        raise DatasetError(f"Cannot read sample {path}: {exc}") from exc
    if len(raw) != _RECORD_BYTES:
        raise DatasetError(
            f"Sample {path} has {len(raw)} bytes, expected {_RECORD_BYTES}."
        )

    spectrum = np.frombuffer(raw, dtype=_SPECTRUM_DTYPE, count=FREQUENCY_SPACE_SIZE)
    label = int.from_bytes(raw[-_LABEL_BYTES:], "big")
    try:
        pitches = pitches_from_mask(label)
    except ValueError as exc:
        raise DatasetError(f"Sample {path}: {exc}") from exc

    return Sample(
        spectrum=spectrum.astype(np.float32),
        pitches=frozenset(pitches),
        provenance=provenance,
        path=path,
    )


def save_sample(destination: str | Path, sample: Sample, prefix: str = "") -> Path:
    """Write *sample* into *destination* and return the new file's path.

    The file name is ``{prefix}{note_names}_{hash}.bin``.
    """
    destination = Path(destination)
    destination.mkdir(parents=True, exist_ok=True)

    data = sample.spectrum.astype(_SPECTRUM_DTYPE).tobytes()
    data += sample.label.to_bytes(_LABEL_BYTES, "big")
    digest = hashlib.blake2b(data, digest_size=8).hexdigest()

    path = destination / f"{prefix}{names_for(sample.pitches)}_{digest}.bin"
    path.write_bytes(data)
    return path


def load_folder(directory: str | Path, provenance: Provenance = Provenance.CAPTURED) -> List[Sample]:
    """Load every ``*.bin`` sample in *directory* (sorted by file name)."""
    directory = Path(directory)
    if not directory.is_dir():
        raise DatasetError(f"Sample directory {directory} does not exist.")
    samples = [load_sample(p, provenance) for p in sorted(directory.glob("*.bin"))]
    logger.info("Loaded %d %s samples from %s", len(samples), provenance.value, directory)
    return samples


# ── Splits ───────────────────────────────────────────────────────────
def oversample(samples: Iterable[Sample], factor: int = DEFAULT_OVERSAMPLE_FACTOR) -> List[Sample]:
    """Replicate captured samples *factor* times; other samples appear once."""
    if factor < 1:
        raise ValueError(f"Oversample factor must be >= 1, got {factor}.")
    out: List[Sample] = []
    for sample in samples:
        copies = factor if sample.provenance is Provenance.CAPTURED else 1
        out.extend([sample] * copies)
    return out


@dataclass
class DatasetSplits:
    """Train / validation partition plus the held-out captured split."""

    train: List[Sample]
    validation: List[Sample]
    captured: List[Sample]
    train_unique: List[Sample] = field(default_factory=list)

    @property
    def tuning(self) -> List[Sample]:
        """Split used for threshold search (validation, else captured, else train)."""
        if self.validation:
            return self.validation
        if self.captured:
            return self.captured
        return self.train_unique


def split_samples(
    samples: Sequence[Sample],
    validation_fraction: float = 0.1,
    oversample_factor: int = DEFAULT_OVERSAMPLE_FACTOR,
    seed: int = 0,
) -> DatasetSplits:
    """Partition *samples* per provenance and oversample the training part.

    Each provenance group is shuffled with *seed* and its first
    ``round(len * validation_fraction)`` items are held out. Held-out
    captured samples form the ``captured`` split; the rest form
    ``validation``.

    Raises
    ------
    DatasetError
        If *samples* is empty or no training samples remain.
    """
    if not samples:
        raise DatasetError("Cannot build a dataset from zero samples.")

    rng = np.random.default_rng(seed)
    train: List[Sample] = []
    validation: List[Sample] = []
    captured: List[Sample] = []

    for provenance in Provenance:
        group = [s for s in samples if s.provenance is provenance]
        if not group:
            continue
        order = rng.permutation(len(group))
        n_held = int(round(len(group) * validation_fraction))
        held = [group[i] for i in order[:n_held]]
        kept = [group[i] for i in order[n_held:]]
        train.extend(kept)
        if provenance is Provenance.CAPTURED:
            captured.extend(held)
        else:
            validation.extend(held)

    if not train:
        raise DatasetError("No samples left for training after the validation split.")

    splits = DatasetSplits(
        train=oversample(train, oversample_factor),
        validation=validation,
        captured=captured,
        train_unique=train,
    )
    logger.info(
        "Dataset splits: train=%d (unique %d), validation=%d, captured=%d",
        len(splits.train), len(train), len(validation), len(captured),
    )
    return splits


# ── PyTorch dataset ──────────────────────────────────────────────────
class SpectrumDataset(Dataset):  # type: ignore[type-arg]
    """Encodes samples on access into ``{"features", "targets"}`` tensors.

    Parameters
    ----------
    samples : sequence of Sample
        The samples (already oversampled, if desired).
    features : FeatureEncoder
        Active loader.
    targets : TargetEncoder
        Active target encoding.
    """

    def __init__(
        self,
        samples: Sequence[Sample],
        features: FeatureEncoder,
        targets: TargetEncoder,
    ) -> None:
        self.samples = list(samples)
        self.features = features
        self.targets = targets

    def __len__(self) -> int:
        return len(self.samples)

    def __getitem__(self, idx: int) -> Dict[str, torch.Tensor]:
        sample = self.samples[idx]
        return {
            "features": torch.from_numpy(self.features.encode(sample.spectrum)),
            "targets": torch.from_numpy(self.targets.encode(sample.pitches, sample.bass)),
        }


def make_loader(
    samples: Sequence[Sample],
    features: FeatureEncoder,
    targets: TargetEncoder,
    batch_size: int,
    shuffle: bool = False,
    workers: int = 0,
    seed: int = 0,
) -> DataLoader:  # type: ignore[type-arg]
    """Wrap *samples* in a :class:`DataLoader`; shuffling is seeded."""
    generator = torch.Generator()
    generator.manual_seed(seed)
    return DataLoader(
        SpectrumDataset(samples, features, targets),
        batch_size=batch_size,
        shuffle=shuffle,
        num_workers=workers,
        generator=generator,
    )
