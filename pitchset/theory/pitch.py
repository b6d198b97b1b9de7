"""
pitchset.theory.pitch
~~~~~~~~~~~~~~~~~~~~~

Pitch index ↔ name / frequency mappings, octave folding and the 128-bit
label masks used by the sample files.

Pitch indices count semitones from C0, so ``12 * octave + pitch_class``:
C4 is 48 and A4 (440 Hz) is 57. Keeps all *musical* logic isolated from
the neural-network and signal-processing code.
"""

from __future__ import annotations

import re
from typing import Final, Iterable, Tuple

import librosa

from pitchset.config import NOTE_SIGNATURE_SIZE, PITCH_CLASS_COUNT

# ── Pitch-class mapping (0–11) ───────────────────────────────────────
# Enharmonic equivalence: Db and C# both map to 1, etc.
PITCH_CLASSES: Final[dict[str, int]] = {
    'C': 0, 'C#': 1, 'Db': 1, 'D': 2, 'D#': 3, 'Eb': 3,
    'E': 4, 'F': 5, 'F#': 6, 'Gb': 6, 'G': 7, 'G#': 8,
    'Ab': 8, 'A': 9, 'A#': 10, 'Bb': 10, 'B': 11,
}

PITCH_CLASS_LABELS: Final[list[str]] = [
    "C", "C#", "D", "Eb", "E", "F",
    "F#", "G", "Ab", "A", "Bb", "B",
]
"""Canonical pitch-class labels (sharps for C♯/F♯, flats elsewhere)."""

# librosa counts MIDI notes from C-1, one octave below our C0.
_MIDI_OFFSET: Final[int] = 12

# Asymmetric half-widths of the band attributed to one semitone.
_TIGHT_LOW: Final[float] = 1.0 - 1.0 / 17.462 / 8.0
_TIGHT_HIGH: Final[float] = 1.0 + 1.0 / 16.8196 / 8.0

_PITCH_RE: Final[re.Pattern[str]] = re.compile(r'^([A-G][#b]?)(-?\d+)$')


def _check_index(index: int) -> int:
    if not 0 <= index < NOTE_SIGNATURE_SIZE:
        raise ValueError(f"Pitch index {index} outside 0–{NOTE_SIGNATURE_SIZE - 1}.")
    return int(index)


def pitch_frequency(index: int) -> float:
    """Return the equal-tempered frequency (Hz) of pitch *index*.

    >>> round(pitch_frequency(57), 3)
    440.0
    """
    return float(librosa.midi_to_hz(_check_index(index) + _MIDI_OFFSET))


def tight_frequency_range(index: int) -> Tuple[float, float]:
    """Narrow ``(low, high)`` band in Hz attributed to pitch *index*."""
    frequency = pitch_frequency(index)
    return frequency * _TIGHT_LOW, frequency * _TIGHT_HIGH


def fold(index: int) -> int:
    """Map an absolute pitch to its pitch class (octave-independent)."""
    return _check_index(index) % PITCH_CLASS_COUNT


def pitch_name(index: int) -> str:
    """Human-readable name, e.g. ``48 → 'C4'``."""
    octave, pitch_class = divmod(_check_index(index), PITCH_CLASS_COUNT)
    return f"{PITCH_CLASS_LABELS[pitch_class]}{octave}"


def parse_pitch(name: str) -> int:
    """Convert a name such as ``'C4'``, ``'F#3'`` or ``'Bb2'`` to a pitch index.

    Raises
    ------
    ValueError
        If *name* is not a recognised pitch or falls outside the 0–127 range.
    """
    match = _PITCH_RE.match(name.strip())
    if not match:
        raise ValueError(f"Unrecognised pitch name {name!r}.")
    pitch_str, octave_str = match.groups()
    return _check_index(int(octave_str) * PITCH_CLASS_COUNT + PITCH_CLASSES[pitch_str])


# ── Label masks ──────────────────────────────────────────────────────
def id_mask(pitches: Iterable[int]) -> int:
    """Pack pitch indices into a 128-bit integer (bit ``i`` = pitch ``i``)."""
    mask = 0
    for index in pitches:
        mask |= 1 << _check_index(index)
    return mask


def pitches_from_mask(mask: int) -> list[int]:
    """Inverse of :func:`id_mask`; returns sorted pitch indices."""
    if mask < 0 or mask >> NOTE_SIGNATURE_SIZE:
        raise ValueError(f"Mask {mask:#x} does not fit in {NOTE_SIGNATURE_SIZE} bits.")
    return [i for i in range(NOTE_SIGNATURE_SIZE) if mask >> i & 1]


def names_for(pitches: Iterable[int]) -> str:
    """Concatenated names used in sample file names, e.g. ``'C4E4G4'``."""
    return "".join(pitch_name(i) for i in sorted(pitches))
