"""
pitchset.errors
~~~~~~~~~~~~~~~

Exception hierarchy. Configuration, data and backend problems are fatal
and surface before (or instead of) training; numeric overflow never
raises.
"""

from __future__ import annotations


class PitchsetError(Exception):
    """Base class for every error raised by :mod:`pitchset`."""


class ConfigurationError(PitchsetError, ValueError):
    """Invalid or inconsistent pipeline configuration."""


class DatasetError(PitchsetError):
    """Empty or malformed dataset or sample file."""


class BackendError(PitchsetError, RuntimeError):
    """The requested compute backend is unavailable."""
