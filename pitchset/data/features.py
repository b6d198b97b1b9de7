"""
pitchset.data.features
~~~~~~~~~~~~~~~~~~~~~~

Spectrum → fixed-width feature vector.

Four interchangeable loaders are supported (see :class:`~pitchset.config.Loader`):

* **note-binned convolution**: energy summed over each semitone's tight
  frequency band (128 values),
* **mel**: a bank of 512 overlapping triangular mel filters,
* **frequency**: the raw 8192-bin spectrum,
* **frequency pooled**: the spectrum average-pooled by a factor of 4.

Every base vector is peak-normalised; the optional 128-element
deterministic guess is then prepended and the whole vector standardised to
zero mean and unit variance. Encoding is pure: identical spectra always
give bit-identical features.
"""

from __future__ import annotations

import functools
import warnings
from typing import Callable

import librosa
import numpy as np
from numpy.typing import ArrayLike

from pitchset.config import (
    DETERMINISTIC_GUESS_SIZE,
    FREQUENCY_POOL_FACTOR,
    FREQUENCY_SPACE_SIZE,
    MEL_SPACE_SIZE,
    NOTE_SIGNATURE_SIZE,
    Loader,
    PipelineConfig,
)
from pitchset.errors import ConfigurationError, DatasetError
from pitchset.theory.pitch import tight_frequency_range

Guesser = Callable[[np.ndarray], ArrayLike]
"""External deterministic detector: spectrum → 128-element presence array."""

# Pitches whose tight band is scanned by the note-binned loader.
_FIRST_BINNED_PITCH = 7
_BINNED_PITCH_COUNT = 90


# ── Kernels ──────────────────────────────────────────────────────────
@functools.lru_cache(maxsize=1)
def _note_bands() -> tuple[tuple[int, int, int], ...]:
    bands = []
    for index in range(_FIRST_BINNED_PITCH, _FIRST_BINNED_PITCH + _BINNED_PITCH_COUNT):
        low, high = tight_frequency_range(index)
        low_bin, high_bin = int(round(low)), int(round(high))
        if high_bin >= FREQUENCY_SPACE_SIZE:
            continue
        bands.append((index, low_bin, high_bin))
    return tuple(bands)


@functools.lru_cache(maxsize=1)
def _mel_filters() -> np.ndarray:
    # n_fft chosen so that the rfft grid has exactly one bin per Hz.
    n_fft = 2 * (FREQUENCY_SPACE_SIZE - 1)
    with warnings.catch_warnings():
        # The lowest filters are narrower than one bin; librosa warns about it.
        warnings.simplefilter("ignore", UserWarning)
        filters = librosa.filters.mel(
            sr=n_fft,
            n_fft=n_fft,
            n_mels=MEL_SPACE_SIZE,
            fmin=0.0,
            fmax=n_fft / 2.0,
            htk=True,
            norm=None,
        )
    filters = filters.astype(np.float32)
    filters.flags.writeable = False
    return filters


def note_binned_convolution(spectrum: np.ndarray) -> np.ndarray:
    """Project *spectrum* onto one energy bin per absolute pitch.

    Returns
    -------
    np.ndarray, shape ``(128,)``
        Slot ``i`` holds the summed magnitude of pitch ``i``'s band; pitches
        outside the scanned range stay zero.
    """
    out = np.zeros(NOTE_SIGNATURE_SIZE, dtype=np.float32)
    for index, low, high in _note_bands():
        out[index] = spectrum[low:high].sum(dtype=np.float32)
    return out


def mel_filter_banks(spectrum: np.ndarray) -> np.ndarray:
    """Apply the 512 triangular mel filters to *spectrum*."""
    return _mel_filters() @ spectrum.astype(np.float32, copy=False)


def average_pool(spectrum: np.ndarray, factor: int = FREQUENCY_POOL_FACTOR) -> np.ndarray:
    """Average consecutive groups of *factor* bins."""
    if spectrum.shape[-1] % factor:
        raise ValueError(f"Spectrum length {spectrum.shape[-1]} not divisible by {factor}.")
    return spectrum.reshape(-1, factor).mean(axis=1, dtype=np.float32)


# ── Normalisation ────────────────────────────────────────────────────
def normalize_peak(values: np.ndarray) -> np.ndarray:
    """Divide by the maximum value; all-zero (or non-positive) input is returned as-is."""
    peak = values.max(initial=0.0)
    if peak == 0.0:
        return values
    return values / peak


def standardize(values: np.ndarray) -> np.ndarray:
    """Zero mean, unit variance. A constant vector becomes all zeros."""
    values = values.astype(np.float64)
    std = values.std()
    if std == 0.0:
        return np.zeros(values.shape, dtype=np.float32)
    return ((values - values.mean()) / std).astype(np.float32)


_BASE_TRANSFORMS: dict[Loader, Callable[[np.ndarray], np.ndarray]] = {
    Loader.NOTE_BINNED: note_binned_convolution,
    Loader.MEL: mel_filter_banks,
    Loader.FREQUENCY: lambda spectrum: spectrum.astype(np.float32, copy=True),
    Loader.FREQUENCY_POOLED: average_pool,
}


class FeatureEncoder:
    """Turn spectra into the feature vectors expected by the model.

    Parameters
    ----------
    config : PipelineConfig
        Supplies the loader and whether the deterministic guess is prepended.
    guesser : callable, optional
        Deterministic pitch detector. Required when ``config.include_guess``.
    """

    def __init__(self, config: PipelineConfig, guesser: Guesser | None = None) -> None:
        if config.include_guess and guesser is None:
            raise ConfigurationError(
                "The deterministic-guess add-on is enabled but no guesser was supplied."
            )
        self.config = config
        self.guesser = guesser
        self._transform = _BASE_TRANSFORMS[config.loader]

    @property
    def width(self) -> int:
        return self.config.input_width

    def encode(self, spectrum: ArrayLike) -> np.ndarray:
        """Encode a single spectrum.

        Returns
        -------
        np.ndarray, shape ``(W,)``, dtype float32
        """
        spectrum = np.asarray(spectrum, dtype=np.float32)
        if spectrum.shape != (FREQUENCY_SPACE_SIZE,):
            raise DatasetError(
                f"Expected a spectrum of shape ({FREQUENCY_SPACE_SIZE},), got {spectrum.shape}."
            )

        features = normalize_peak(self._transform(spectrum))
        if self.config.include_guess:
            features = np.concatenate([self._guess(spectrum), features])

        return standardize(features)

    __call__ = encode

    def encode_batch(self, spectra: ArrayLike) -> np.ndarray:
        """Encode a ``(N, F)`` stack of spectra into ``(N, W)``."""
        spectra = np.asarray(spectra, dtype=np.float32)
        if spectra.ndim != 2:
            raise DatasetError(f"Expected a 2-D stack of spectra, got shape {spectra.shape}.")
        out = np.empty((spectra.shape[0], self.width), dtype=np.float32)
        for row, spectrum in enumerate(spectra):
            out[row] = self.encode(spectrum)
        return out

    def _guess(self, spectrum: np.ndarray) -> np.ndarray:
        if self.guesser is None:
            raise ConfigurationError("No deterministic guesser was supplied.")
        guess = np.asarray(self.guesser(spectrum), dtype=np.float32).reshape(-1)
        if guess.shape != (DETERMINISTIC_GUESS_SIZE,):
            raise ConfigurationError(
                f"Deterministic guess must have {DETERMINISTIC_GUESS_SIZE} elements, "
                f"got {guess.shape[0]}."
            )
        return guess
