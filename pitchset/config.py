"""
pitchset.config
~~~~~~~~~~~~~~~

Global constants and the explicit pipeline configuration.

Centralises all magic numbers so they can be imported once and shared
across every submodule. The active loader, target encoding and precision
settings live in a :class:`PipelineConfig` that is validated once and then
passed to every component, instead of being read from ambient state.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Final, Mapping

from pitchset.errors import ConfigurationError

# ── Spectrum ─────────────────────────────────────────────────────────
FREQUENCY_SPACE_SIZE: Final[int] = 8192
"""Number of magnitude bins in a spectrum (bin ``k`` is roughly ``k`` Hz)."""

MEL_SPACE_SIZE: Final[int] = 512
"""Number of triangular mel filters in the mel loader."""

FREQUENCY_POOL_FACTOR: Final[int] = 4
"""Average-pooling factor of the pooled frequency loader."""

# ── Pitch space ──────────────────────────────────────────────────────
NOTE_SIGNATURE_SIZE: Final[int] = 128
"""Number of absolute pitch slots (index 0 = C0)."""

PITCH_CLASS_COUNT: Final[int] = 12
"""Number of pitch classes in one octave (C through B)."""

DETERMINISTIC_GUESS_SIZE: Final[int] = NOTE_SIGNATURE_SIZE
"""The deterministic guess vector mirrors the absolute pitch signature."""

# ── Thresholds ───────────────────────────────────────────────────────
DEFAULT_THRESHOLD: Final[float] = 0.5
"""Threshold used for classes without positive examples."""

MIN_THRESHOLD: Final[float] = 0.05
MAX_THRESHOLD: Final[float] = 0.95

# ── Training defaults ────────────────────────────────────────────────
DEFAULT_OVERSAMPLE_FACTOR: Final[int] = 16
"""How many times captured samples are replicated in the training set."""

INITIAL_LOSS_SCALE: Final[float] = 2.0**16
LOSS_SCALE_GROWTH_INTERVAL: Final[int] = 2000

LOG_EPSILON: Final[float] = 1e-6
"""Added before every logarithm taken on features."""


def _exactly_one(kind: str, flags: Mapping[str, bool]) -> str:
    enabled = [name for name, on in flags.items() if on]
    if len(enabled) != 1:
        choices = ", ".join(flags)
        found = ", ".join(enabled) if enabled else "none"
        raise ConfigurationError(
            f"Enable exactly one {kind} (one of: {choices}); got {found}."
        )
    return enabled[0]


# ── Closed strategy sets ─────────────────────────────────────────────
class Loader(str, enum.Enum):
    """Strategy that maps a spectrum onto a feature vector."""

    NOTE_BINNED = "note_binned_convolution"
    MEL = "mel"
    FREQUENCY = "frequency"
    FREQUENCY_POOLED = "frequency_pooled"

    @property
    def base_width(self) -> int:
        """Width of the feature vector before the optional guess prefix."""
        return _LOADER_WIDTHS[self]

    @classmethod
    def from_flags(cls, **flags: bool) -> Loader:
        """Pick the single enabled loader out of boolean *flags*.

        Keys are the enum values, e.g. ``Loader.from_flags(mel=True)``.

        Raises
        ------
        ConfigurationError
            If zero or several loaders are enabled, or a key is unknown.
        """
        return cls(_exactly_one("loader", _complete(cls, flags)))


class TargetEncoding(str, enum.Enum):
    """Ground-truth encoding and its associated loss wiring."""

    FULL = "full"
    FOLDED = "folded"
    FOLDED_BASS = "folded_bass"

    @property
    def width(self) -> int:
        return _TARGET_WIDTHS[self]

    @property
    def has_bass(self) -> bool:
        return self is TargetEncoding.FOLDED_BASS

    @classmethod
    def from_flags(cls, **flags: bool) -> TargetEncoding:
        """Pick the single enabled target encoding out of boolean *flags*."""
        return cls(_exactly_one("target encoding", _complete(cls, flags)))


class TrainPrecision(str, enum.Enum):
    FP32 = "fp32"
    FP16 = "fp16"
    BF16 = "bf16"

    @property
    def is_reduced(self) -> bool:
        return self is not TrainPrecision.FP32

    @classmethod
    def from_flags(cls, **flags: bool) -> TrainPrecision:
        return cls(_exactly_one("training precision", _complete(cls, flags)))


class StorePrecision(str, enum.Enum):
    FULL = "full"
    HALF = "half"

    @classmethod
    def from_flags(cls, **flags: bool) -> StorePrecision:
        return cls(_exactly_one("storage precision", _complete(cls, flags)))


def _complete(enum_cls: type[enum.Enum], flags: Mapping[str, bool]) -> dict[str, bool]:
    known = [member.value for member in enum_cls]
    unknown = set(flags) - set(known)
    if unknown:
        raise ConfigurationError(
            f"Unknown {enum_cls.__name__} option(s): {', '.join(sorted(unknown))}."
        )
    return {value: bool(flags.get(value, False)) for value in known}


_LOADER_WIDTHS: Final[dict[Loader, int]] = {
    Loader.NOTE_BINNED: NOTE_SIGNATURE_SIZE,
    Loader.MEL: MEL_SPACE_SIZE,
    Loader.FREQUENCY: FREQUENCY_SPACE_SIZE,
    Loader.FREQUENCY_POOLED: FREQUENCY_SPACE_SIZE // FREQUENCY_POOL_FACTOR,
}

_TARGET_WIDTHS: Final[dict[TargetEncoding, int]] = {
    TargetEncoding.FULL: NOTE_SIGNATURE_SIZE,
    TargetEncoding.FOLDED: PITCH_CLASS_COUNT,
    TargetEncoding.FOLDED_BASS: 2 * PITCH_CLASS_COUNT,
}


# ── Pipeline configuration ───────────────────────────────────────────
@dataclass(frozen=True)
class PipelineConfig:
    """Everything that fixes the shape of the pipeline.

    An artifact trained under one configuration is rejected when loaded
    under another.

    Parameters
    ----------
    loader : Loader
        Spectrum → feature strategy.
    target : TargetEncoding
        Ground-truth encoding.
    include_guess : bool
        Prepend the 128-element deterministic guess to the features.
    train_precision : TrainPrecision
        Element type used for forward/backward passes.
    store_precision : StorePrecision
        Element type used when persisting parameters.
    """

    loader: Loader = Loader.NOTE_BINNED
    target: TargetEncoding = TargetEncoding.FOLDED_BASS
    include_guess: bool = False
    train_precision: TrainPrecision = TrainPrecision.FP32
    store_precision: StorePrecision = StorePrecision.FULL

    def __post_init__(self) -> None:
        # Accept plain strings (e.g. from a JSON artifact) but store enums.
        for name, enum_cls in (
            ("loader", Loader),
            ("target", TargetEncoding),
            ("train_precision", TrainPrecision),
            ("store_precision", StorePrecision),
        ):
            value = getattr(self, name)
            try:
                object.__setattr__(self, name, enum_cls(value))
            except ValueError as exc:
                raise ConfigurationError(
                    f"Invalid {name} {value!r}; expected one of "
                    f"{[m.value for m in enum_cls]}."
                ) from exc

    @property
    def input_width(self) -> int:
        """Feature vector width ``W``."""
        extra = DETERMINISTIC_GUESS_SIZE if self.include_guess else 0
        return self.loader.base_width + extra

    @property
    def target_width(self) -> int:
        return self.target.width

    def to_dict(self) -> dict[str, object]:
        return {
            "loader": self.loader.value,
            "target": self.target.value,
            "include_guess": self.include_guess,
            "train_precision": self.train_precision.value,
            "store_precision": self.store_precision.value,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> PipelineConfig:
        return cls(**data)  # type: ignore[arg-type]


@dataclass(frozen=True)
class ModelConfig:
    """Attention network hyper-parameters."""

    d_model: int = 64
    n_heads: int = 4
    n_layers: int = 1
    ff_dim: int = 128
    dropout: float = 0.1
    log_tokens: bool = False

    def __post_init__(self) -> None:
        if self.d_model <= 0 or self.n_heads <= 0 or self.n_layers <= 0:
            raise ConfigurationError("d_model, n_heads and n_layers must be positive.")
        if self.d_model % self.n_heads != 0:
            raise ConfigurationError(
                f"d_model ({self.d_model}) must be divisible by n_heads ({self.n_heads})."
            )
        if not 0.0 <= self.dropout < 1.0:
            raise ConfigurationError(f"dropout must be in [0, 1), got {self.dropout}.")


@dataclass(frozen=True)
class TrainConfig:
    """Numeric hyper-parameters supplied at training invocation."""

    epochs: int = 16
    batch_size: int = 100
    learning_rate: float = 1e-3
    weight_decay: float = 1e-4
    beta1: float = 0.9
    beta2: float = 0.999
    epsilon: float = 1e-8
    oversample_factor: int = DEFAULT_OVERSAMPLE_FACTOR
    validation_fraction: float = 0.1
    workers: int = 0
    seed: int = 76980
    initial_loss_scale: float = INITIAL_LOSS_SCALE
    growth_interval: int = LOSS_SCALE_GROWTH_INTERVAL

    def __post_init__(self) -> None:
        if self.epochs < 1:
            raise ConfigurationError(f"epochs must be >= 1, got {self.epochs}.")
        if self.batch_size < 1:
            raise ConfigurationError(f"batch_size must be >= 1, got {self.batch_size}.")
        if self.learning_rate <= 0:
            raise ConfigurationError("learning_rate must be positive.")
        if self.oversample_factor < 1:
            raise ConfigurationError(
                f"oversample_factor must be >= 1, got {self.oversample_factor}."
            )
        if not 0.0 <= self.validation_fraction < 1.0:
            raise ConfigurationError("validation_fraction must be in [0, 1).")
        if self.growth_interval < 1 or self.initial_loss_scale <= 0:
            raise ConfigurationError("Invalid loss-scale settings.")
