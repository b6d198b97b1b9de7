"""
pitchset.training.losses
~~~~~~~~~~~~~~~~~~~~~~~~

Loss wiring for the three target encodings.
"""

from __future__ import annotations

import torch
import torch.nn as nn
import torch.nn.functional as F

from pitchset.config import TargetEncoding
from pitchset.data.targets import BASS_SLICE, NOTES_SLICE


class PitchSetLoss(nn.Module):
    """Multi-label loss matching a :class:`~pitchset.config.TargetEncoding`.

    * ``full`` / ``folded``: binary cross-entropy (with logits) over every
      slot, averaged.
    * ``folded_bass``: categorical cross-entropy over the 12 bass slots
      plus binary cross-entropy over the 12 pitch-class slots. The two
      terms are summed, not averaged.

    Parameters
    ----------
    encoding : TargetEncoding
        Active target encoding.
    """

    def __init__(self, encoding: TargetEncoding) -> None:
        super().__init__()
        self.encoding = TargetEncoding(encoding)

    def forward(
        self,
        logits: torch.Tensor,
        targets: torch.Tensor,
    ) -> torch.Tensor:
        """Compute the scalar loss.

        Parameters
        ----------
        logits : Tensor, shape ``(N, C)``
            Raw model outputs.
        targets : Tensor, shape ``(N, C)``
            Target vectors from :class:`~pitchset.data.targets.TargetEncoder`.

        Returns
        -------
        Tensor
            Scalar loss.
        """
        logits = logits.float()
        targets = targets.float()
        if not self.encoding.has_bass:
            return F.binary_cross_entropy_with_logits(logits, targets)

        # The one-hot bass row is used as class probabilities so that an
        # empty pitch set (all-zero row) contributes no categorical loss.
        bass_loss = F.cross_entropy(logits[:, BASS_SLICE], targets[:, BASS_SLICE])
        note_loss = F.binary_cross_entropy_with_logits(
            logits[:, NOTES_SLICE], targets[:, NOTES_SLICE]
        )
        return bass_loss + note_loss
