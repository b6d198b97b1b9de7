"""pitchset.utils: Device and backend helpers."""

from pitchset.utils.backend import is_remote, parse_remote, resolve_device

__all__: list[str] = [
    "is_remote",
    "parse_remote",
    "resolve_device",
]
