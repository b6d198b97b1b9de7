"""pitchset.data: Feature/target encoding, samples and datasets."""

from pitchset.data.dataset import (
    DatasetSplits,
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
from pitchset.data.simulation import noise_samples, simulate_dataset, simulate_sample
from pitchset.data.targets import BASS_SLICE, NOTES_SLICE, TargetEncoder

__all__: list[str] = [
    "BASS_SLICE",
    "NOTES_SLICE",
    "DatasetSplits",
    "FeatureEncoder",
    "Provenance",
    "Sample",
    "SpectrumDataset",
    "TargetEncoder",
    "load_folder",
    "load_sample",
    "make_loader",
    "noise_samples",
    "oversample",
    "save_sample",
    "simulate_dataset",
    "simulate_sample",
    "split_samples",
]
