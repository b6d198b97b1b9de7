"""pitchset.theory: Pitch indexing, folding and label masks."""

from pitchset.theory.pitch import (
    PITCH_CLASS_LABELS,
    PITCH_CLASSES,
    fold,
    id_mask,
    names_for,
    parse_pitch,
    pitch_frequency,
    pitch_name,
    pitches_from_mask,
    tight_frequency_range,
)

__all__: list[str] = [
    "PITCH_CLASSES",
    "PITCH_CLASS_LABELS",
    "fold",
    "id_mask",
    "names_for",
    "parse_pitch",
    "pitch_frequency",
    "pitch_name",
    "pitches_from_mask",
    "tight_frequency_range",
]
