"""
pitchset.training.trainer
~~~~~~~~~~~~~~~~~~~~~~~~~

Training loop for the PitchAttention model.

One step is: forward (under autocast when reduced precision is active) →
loss → scaled backward → unscale → overflow check, driven by
:class:`torch.amp.GradScaler`. Steps with non-finite gradients are skipped
and the loss scale backs off; they never abort the run. The learning rate
follows a cosine curve from the initial rate to near zero across every
step of the run. Checkpoints are written only at epoch boundaries.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Tuple

import numpy as np
import torch
import torch.nn as nn
from torch.optim import Optimizer
from torch.optim.lr_scheduler import CosineAnnealingLR
from torch.utils.data import DataLoader
from tqdm import tqdm

from pitchset.config import PipelineConfig, TrainConfig, TrainPrecision
from pitchset.training.losses import PitchSetLoss
from pitchset.training.scaling import LossScaleState

logger = logging.getLogger(__name__)

# Floor of the cosine schedule, relative to the initial learning rate.
MIN_LR_RATIO = 1e-3

_AUTOCAST_DTYPES = {
    TrainPrecision.FP32: None,
    TrainPrecision.FP16: torch.float16,
    TrainPrecision.BF16: torch.bfloat16,
}


@dataclass(frozen=True)
class StepResult:
    """Outcome of one optimisation step."""

    loss: float
    skipped: bool
    scale_state: LossScaleState


def train_step(
    model: nn.Module,
    optimizer: Optimizer,
    loss_fn: nn.Module,
    features: torch.Tensor,
    targets: torch.Tensor,
    scale_state: LossScaleState,
    autocast_dtype: torch.dtype | None = None,
) -> StepResult:
    """Run one step and return the next loss-scale state.

    Parameters are left untouched when any gradient is non-finite; the
    scaler skips the optimiser step and backs off.
    """
    optimizer.zero_grad(set_to_none=True)
    scaler = scale_state.make_scaler(features.device.type)

    with torch.autocast(
        device_type=features.device.type,
        dtype=autocast_dtype,
        enabled=autocast_dtype is not None,
    ):
        logits = model(features)
    loss = loss_fn(logits, targets)

    scaler.scale(loss).backward()
    scaler.unscale_(optimizer)
    scaler.step(optimizer)
    scaler.update()

    # The scaler only shrinks the scale when it found inf/NaN and skipped.
    skipped = scaler.get_scale() < scale_state.scale
    next_state = scale_state.advance(scaler)
    if skipped:
        optimizer.zero_grad(set_to_none=True)
        logger.debug(
            "Non-finite gradients; step skipped, loss scale %.1f → %.1f",
            scale_state.scale, next_state.scale,
        )
    return StepResult(loss=float(loss.detach()), skipped=skipped, scale_state=next_state)


class Trainer:
    """Training harness for :class:`~pitchset.models.PitchAttention`.

    Parameters
    ----------
    model : nn.Module
        The model to train.
    pipeline : PipelineConfig
        Supplies the target encoding (loss) and training precision.
    config : TrainConfig
        Optimiser and schedule hyper-parameters.
    device : str | torch.device
        Target device (``'cpu'``, ``'cuda'``, ``'cuda:0'``, …).
    checkpoint_dir : str | Path | None
        Directory to save checkpoints to. If *None*, no checkpoints are saved.
    progress : bool
        Show a tqdm progress bar per epoch.
    """

    def __init__(
        self,
        model: nn.Module,
        pipeline: PipelineConfig,
        config: TrainConfig,
        device: str | torch.device = "cpu",
        checkpoint_dir: str | Path | None = None,
        progress: bool = True,
    ) -> None:
        self.device = torch.device(device)
        self.model = model.to(self.device)
        self.pipeline = pipeline
        self.config = config
        self.loss_fn = PitchSetLoss(pipeline.target)
        self.optimizer = torch.optim.AdamW(
            self.model.parameters(),
            lr=config.learning_rate,
            betas=(config.beta1, config.beta2),
            eps=config.epsilon,
            weight_decay=config.weight_decay,
        )
        self.scheduler: CosineAnnealingLR | None = None
        self.checkpoint_dir = Path(checkpoint_dir) if checkpoint_dir else None
        self.progress = progress

        self.autocast_dtype = _AUTOCAST_DTYPES[pipeline.train_precision]
        if pipeline.train_precision.is_reduced:
            self.scale_state = LossScaleState(
                scale=config.initial_loss_scale,
                growth_interval=config.growth_interval,
            )
        else:
            self.scale_state = LossScaleState.disabled()

    def fit(
        self,
        train_loader: DataLoader,  # type: ignore[type-arg]
        val_loader: DataLoader | None = None,  # type: ignore[type-arg]
        epochs: int | None = None,
    ) -> dict[str, list[float]]:
        """Run the full training loop.

        Parameters
        ----------
        train_loader : DataLoader
            Training batches of ``{"features", "targets"}``.
        val_loader : DataLoader, optional
            Validation data (evaluated at the end of each epoch).
        epochs : int, optional
            Overrides ``config.epochs``.

        Returns
        -------
        dict[str, list[float]]
            History with ``'train_loss'``, ``'skipped_steps'``,
            ``'loss_scale'``, ``'lr'`` and optionally ``'val_loss'``.
        """
        epochs = epochs or self.config.epochs
        steps_per_epoch = len(train_loader)
        if steps_per_epoch == 0:
            raise ValueError("Training loader yields no batches.")

        self.scheduler = CosineAnnealingLR(
            self.optimizer,
            T_max=epochs * steps_per_epoch,
            eta_min=self.config.learning_rate * MIN_LR_RATIO,
        )

        history: dict[str, list[float]] = {
            "train_loss": [],
            "skipped_steps": [],
            "loss_scale": [],
            "lr": [],
        }
        if val_loader is not None:
            history["val_loss"] = []

        for epoch in range(1, epochs + 1):
            train_loss, skipped = self._train_epoch(train_loader, epoch)
            history["train_loss"].append(train_loss)
            history["skipped_steps"].append(float(skipped))
            history["loss_scale"].append(self.scale_state.scale)
            history["lr"].append(self.optimizer.param_groups[0]["lr"])

            message = f"epoch {epoch}/{epochs} train_loss={train_loss:.4f}"
            if val_loader is not None:
                val_loss = self._validate(val_loader)
                history["val_loss"].append(val_loss)
                message += f" val_loss={val_loss:.4f}"
            if skipped:
                message += f" skipped={skipped} loss_scale={self.scale_state.scale:g}"
            logger.info(message)

            if self.checkpoint_dir is not None:
                self.save_checkpoint(epoch)

        return history

    def _train_epoch(self, loader: DataLoader, epoch: int) -> Tuple[float, int]:  # type: ignore[type-arg]
        """Run a single training epoch. Returns mean loss and skipped-step count."""
        assert self.scheduler is not None
        self.model.train()
        total_loss = 0.0
        n_batches = 0
        skipped = 0
        for batch in tqdm(loader, desc=f"epoch {epoch}", leave=False, disable=not self.progress):
            features = batch["features"].to(self.device)
            targets = batch["targets"].to(self.device)

            result = train_step(
                self.model,
                self.optimizer,
                self.loss_fn,
                features,
                targets,
                self.scale_state,
                self.autocast_dtype,
            )
            self.scale_state = result.scale_state
            self.scheduler.step()

            if result.skipped:
                skipped += 1
                continue
            total_loss += result.loss
            n_batches += 1
        return total_loss / max(n_batches, 1), skipped

    def _validate(self, loader: DataLoader) -> float:  # type: ignore[type-arg]
        """Run validation. Returns mean loss."""
        self.model.eval()
        total_loss = 0.0
        n_batches = 0
        with torch.no_grad():
            for batch in loader:
                logits = self.model(batch["features"].to(self.device))
                loss = self.loss_fn(logits, batch["targets"].to(self.device))
                total_loss += float(loss)
                n_batches += 1
        return total_loss / max(n_batches, 1)

    def collect(self, loader: DataLoader) -> Tuple[np.ndarray, np.ndarray]:  # type: ignore[type-arg]
        """Return ``(logits, targets)`` for every batch in *loader* as arrays."""
        self.model.eval()
        logits, targets = [], []
        with torch.no_grad():
            for batch in loader:
                logits.append(self.model(batch["features"].to(self.device)).float().cpu())
                targets.append(batch["targets"])
        if not logits:
            width = self.pipeline.target_width
            return np.zeros((0, width), np.float32), np.zeros((0, width), np.float32)
        return torch.cat(logits).numpy(), torch.cat(targets).numpy()

    def save_checkpoint(self, epoch: int) -> Path:
        """Persist model, optimiser and scheduler state.

        Parameters
        ----------
        epoch : int
            Current epoch number (used in the filename).

        Returns
        -------
        Path
            Path to the saved checkpoint file.
        """
        assert self.checkpoint_dir is not None
        self.checkpoint_dir.mkdir(parents=True, exist_ok=True)
        path = self.checkpoint_dir / f"checkpoint_epoch{epoch:04d}.pt"
        torch.save(
            {
                "epoch": epoch,
                "pipeline": self.pipeline.to_dict(),
                "model_state_dict": self.model.state_dict(),
                "optimizer_state_dict": self.optimizer.state_dict(),
                "scheduler_state_dict": (
                    self.scheduler.state_dict() if self.scheduler is not None else None
                ),
            },
            path,
        )
        return path
