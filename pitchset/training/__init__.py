"""pitchset.training: Training loop, loss wiring and loss scaling."""

from pitchset.training.losses import PitchSetLoss
from pitchset.training.scaling import LossScaleState
from pitchset.training.trainer import StepResult, Trainer, train_step

__all__: list[str] = ["Trainer", "PitchSetLoss", "LossScaleState", "StepResult", "train_step"]
