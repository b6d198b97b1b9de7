"""
pitchset.data.targets
~~~~~~~~~~~~~~~~~~~~~

Ground-truth pitch sets → target vectors.

=============  ======  ==================================================
scheme         width   layout
=============  ======  ==================================================
full           128     multi-hot, one slot per absolute pitch
folded         12      multi-hot, one slot per pitch class
folded_bass    24      one-hot bass pitch class, then folded multi-hot
=============  ======  ==================================================

Under ``folded_bass`` the bass slot and the multi-hot slot are derived
independently; nothing forces the bass pitch class to appear in the mask.
"""

from __future__ import annotations

from typing import Iterable

import numpy as np

from pitchset.config import NOTE_SIGNATURE_SIZE, PITCH_CLASS_COUNT, TargetEncoding
from pitchset.theory.pitch import fold

BASS_SLICE = slice(0, PITCH_CLASS_COUNT)
"""Bass slots inside a ``folded_bass`` vector."""

NOTES_SLICE = slice(PITCH_CLASS_COUNT, 2 * PITCH_CLASS_COUNT)
"""Pitch-class slots inside a ``folded_bass`` vector."""


def full_mask(pitches: Iterable[int]) -> np.ndarray:
    mask = np.zeros(NOTE_SIGNATURE_SIZE, dtype=np.float32)
    for index in pitches:
        mask[index] = 1.0
    return mask


def folded_mask(pitches: Iterable[int]) -> np.ndarray:
    mask = np.zeros(PITCH_CLASS_COUNT, dtype=np.float32)
    for index in pitches:
        mask[fold(index)] = 1.0
    return mask


def bass_one_hot(bass: int | None) -> np.ndarray:
    """One-hot pitch class of *bass*; all zeros when there is no bass."""
    mask = np.zeros(PITCH_CLASS_COUNT, dtype=np.float32)
    if bass is not None:
        mask[fold(bass)] = 1.0
    return mask


class TargetEncoder:
    """Encode pitch sets under a single :class:`~pitchset.config.TargetEncoding`."""

    def __init__(self, encoding: TargetEncoding) -> None:
        self.encoding = TargetEncoding(encoding)

    @property
    def width(self) -> int:
        return self.encoding.width

    def encode(self, pitches: Iterable[int], bass: int | None = None) -> np.ndarray:
        """Build the target vector for one sample.

        Parameters
        ----------
        pitches : iterable of int
            Sounding pitch indices (0–127).
        bass : int, optional
            Bass pitch index. Defaults to the lowest sounding pitch.

        Returns
        -------
        np.ndarray, shape ``(width,)``, dtype float32
        """
        pitches = sorted(set(pitches))
        if self.encoding is TargetEncoding.FULL:
            return full_mask(pitches)
        if self.encoding is TargetEncoding.FOLDED:
            return folded_mask(pitches)

        if bass is None and pitches:
            bass = pitches[0]
        return np.concatenate([bass_one_hot(bass), folded_mask(pitches)])

    __call__ = encode
