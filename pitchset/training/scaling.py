"""
pitchset.training.scaling
~~~~~~~~~~~~~~~~~~~~~~~~~

Dynamic loss scaling for reduced-precision training.

The scaling itself is done by :class:`torch.amp.GradScaler` (halve on
overflow, double after ``growth_interval`` clean steps). Between steps the
scaler's state is carried as an immutable :class:`LossScaleState`: every
training step receives the current value, rebuilds a scaler from it, and
returns the next value read back from the scaler.
"""

from __future__ import annotations

from dataclasses import dataclass, replace

from torch.amp import GradScaler

from pitchset.config import INITIAL_LOSS_SCALE, LOSS_SCALE_GROWTH_INTERVAL

GROWTH_FACTOR: float = 2.0
BACKOFF_FACTOR: float = 0.5


@dataclass(frozen=True)
class LossScaleState:
    """Loss multiplier plus a consecutive-success counter.

    Parameters
    ----------
    scale : float
        Factor applied to the loss before backpropagation.
    good_steps : int
        Successful (finite-gradient) steps since the last growth or backoff.
    growth_interval : int
        Successful steps required before the scale doubles.
    enabled : bool
        When *False* the scale stays at 1.0 and never changes. Steps with
        non-finite gradients are still skipped.
    """

    scale: float = INITIAL_LOSS_SCALE
    good_steps: int = 0
    growth_interval: int = LOSS_SCALE_GROWTH_INTERVAL
    enabled: bool = True

    @classmethod
    def disabled(cls) -> LossScaleState:
        return cls(scale=1.0, enabled=False)

    def make_scaler(self, device_type: str) -> GradScaler:
        """Build a :class:`GradScaler` positioned at this state."""
        scaler = GradScaler(
            device_type,
            init_scale=self.scale,
            growth_factor=GROWTH_FACTOR,
            backoff_factor=BACKOFF_FACTOR,
            growth_interval=self.growth_interval,
        )
        scaler.load_state_dict(
            {
                "scale": self.scale,
                "growth_factor": GROWTH_FACTOR,
                "backoff_factor": BACKOFF_FACTOR,
                "growth_interval": self.growth_interval,
                "_growth_tracker": self.good_steps,
            }
        )
        return scaler

    def advance(self, scaler: GradScaler) -> LossScaleState:
        """State after ``scaler.update()``; a disabled state never moves."""
        if not self.enabled:
            return self
        return replace(
            self,
            scale=float(scaler.get_scale()),
            good_steps=int(scaler.state_dict()["_growth_tracker"]),
        )
