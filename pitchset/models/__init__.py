"""pitchset.models: Neural network architectures."""

from pitchset.models.attention import PitchAttention, sinusoidal_positions

__all__: list[str] = ["PitchAttention", "sinusoidal_positions"]
