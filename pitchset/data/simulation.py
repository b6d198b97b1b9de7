"""
pitchset.data.simulation
~~~~~~~~~~~~~~~~~~~~~~~~

Synthetic training spectra.

A simulated sample starts from a coloured-noise basis (none, pink, white
or brown) and paints a wobbled harmonic series for every sounding note.
Chord sets are drawn the same way for every root: two single notes, one
dyad, one triad and one tetrad.
"""

from __future__ import annotations

import enum
import logging
from typing import Final, Iterable, List, Sequence

import numpy as np

from pitchset.config import FREQUENCY_SPACE_SIZE, NOTE_SIGNATURE_SIZE
from pitchset.data.dataset import Provenance, Sample
from pitchset.theory.pitch import pitch_frequency

logger = logging.getLogger(__name__)

# ── Simulation constants ─────────────────────────────────────────────
HARMONICS: Final[int] = 13
PEAK_STRENGTH: Final[float] = 4000.0
WOBBLE_DIVISOR: Final[float] = 35.0
NOISE_LEVEL: Final[float] = 40.0

FIRST_ROOT: Final[int] = 24
ROOT_COUNT: Final[int] = 60

# Semitone intervals stacked on each root.
SECOND_INTERVALS: Final[tuple[int, ...]] = (1, 2, 3, 4, 5)
THIRD_INTERVALS: Final[tuple[int, ...]] = (6, 7, 8, 9)
EXTENSION_INTERVALS: Final[tuple[int, ...]] = (10, 11, 13, 14, 15, 16, 17, 18, 20, 21, 22)


class NoiseKind(str, enum.Enum):
    NONE = "none"
    PINK = "pink"
    WHITE = "white"
    BROWN = "brown"

    @property
    def exponent(self) -> float:
        """Spectral power slope ``1 / f**exponent``."""
        return {"none": 0.0, "white": 0.0, "pink": 1.0, "brown": 2.0}[self.value]


def noise_spectrum(kind: NoiseKind, rng: np.random.Generator, level: float = NOISE_LEVEL) -> np.ndarray:
    """Magnitude spectrum of coloured noise with mean magnitude ≈ *level*."""
    if kind is NoiseKind.NONE:
        return np.zeros(FREQUENCY_SPACE_SIZE, dtype=np.float32)
    bins = np.arange(1, FREQUENCY_SPACE_SIZE + 1, dtype=np.float64)
    envelope = bins ** (-kind.exponent / 2.0)
    envelope /= envelope.mean()
    magnitudes = rng.rayleigh(scale=1.0, size=FREQUENCY_SPACE_SIZE) * envelope
    return (level * magnitudes / np.sqrt(np.pi / 2.0)).astype(np.float32)


def add_note(
    spectrum: np.ndarray,
    pitch: int,
    rng: np.random.Generator,
    peak_radius: float = 2.0,
    harmonic_decay: float = 0.1,
    frequency_wobble: float = 0.2,
) -> None:
    """Paint the harmonic series of *pitch* into *spectrum* in place."""

    def wobble() -> float:
        return 1.0 + rng.uniform(-frequency_wobble, frequency_wobble) / WOBBLE_DIVISOR

    fundamental = pitch_frequency(pitch) * wobble()
    strength = 1.0

    for k in range(1, HARMONICS + 1):
        frequency = k * fundamental * wobble()
        if frequency - peak_radius < 0.0 or frequency + peak_radius > FREQUENCY_SPACE_SIZE:
            continue

        peak = PEAK_STRENGTH * strength * rng.uniform(0.8, 1.0)
        bins = np.arange(round(frequency - peak_radius), round(frequency + peak_radius))
        bins = bins[bins < FREQUENCY_SPACE_SIZE]
        shape = 1.0 - np.tanh((2.0 / peak_radius) * np.abs(bins - frequency))
        spectrum[bins] += (peak * shape).astype(np.float32)

        strength *= 1.0 - harmonic_decay


def simulate_sample(
    pitches: Iterable[int],
    rng: np.random.Generator,
    peak_radius: float = 2.0,
    harmonic_decay: float = 0.1,
    frequency_wobble: float = 0.2,
    noise: NoiseKind | None = None,
) -> Sample:
    """Synthesise one labelled spectrum.

    Parameters
    ----------
    pitches : iterable of int
        Pitch indices to sound.
    rng : np.random.Generator
        Source of randomness (wobble, peak strength, noise).
    peak_radius : float
        Half-width in bins of each harmonic peak.
    harmonic_decay : float
        Fractional strength lost per successive harmonic.
    frequency_wobble : float
        Detuning amount; frequencies move by up to ``wobble / 35``.
    noise : NoiseKind, optional
        Noise basis. Drawn uniformly when omitted.
    """
    pitches = sorted(set(pitches))
    if noise is None:
        noise = list(NoiseKind)[rng.integers(len(NoiseKind))]

    spectrum = noise_spectrum(noise, rng)
    for pitch in pitches:
        add_note(spectrum, pitch, rng, peak_radius, harmonic_decay, frequency_wobble)

    return Sample(spectrum=spectrum, pitches=frozenset(pitches), provenance=Provenance.SIMULATED)


def chord_shapes(root: int, rng: np.random.Generator) -> List[List[int]]:
    """The five note sets drawn for *root* (pitches above 127 are dropped)."""
    second = root + int(rng.choice(SECOND_INTERVALS))
    third = root + int(rng.choice(THIRD_INTERVALS))
    extension = root + int(rng.choice(EXTENSION_INTERVALS))
    shapes = [
        [root],
        [root],
        [root, second],
        [root, second, third],
        [root, second, third, extension],
    ]
    return [sorted({p for p in shape if p < NOTE_SIGNATURE_SIZE}) for shape in shapes]


def simulate_dataset(
    count: int,
    seed: int = 0,
    peak_radius: float = 2.0,
    harmonic_decay: float = 0.1,
    frequency_wobble: float = 0.2,
    roots: Sequence[int] = tuple(range(FIRST_ROOT, FIRST_ROOT + ROOT_COUNT)),
) -> List[Sample]:
    """Generate ``count * len(roots) * 5`` simulated samples."""
    rng = np.random.default_rng(seed)
    samples = [
        simulate_sample(shape, rng, peak_radius, harmonic_decay, frequency_wobble)
        for _ in range(count)
        for root in roots
        for shape in chord_shapes(root, rng)
    ]
    logger.info("Simulated %d samples", len(samples))
    return samples


def noise_samples(count: int, seed: int = 0) -> List[Sample]:
    """Pure-noise spectra with an empty pitch set."""
    rng = np.random.default_rng(seed)
    kinds = [k for k in NoiseKind if k is not NoiseKind.NONE]
    return [
        Sample(
            spectrum=noise_spectrum(kinds[i % len(kinds)], rng),
            provenance=Provenance.NOISE,
        )
        for i in range(count)
    ]
