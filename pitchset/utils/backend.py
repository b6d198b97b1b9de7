"""
pitchset.utils.backend
~~~~~~~~~~~~~~~~~~~~~~

Turns a backend name from the configuration into a ``torch.device``.

Accepted names are ``cpu``, ``cuda``, ``cuda:N``, ``mps`` and ``auto``
(CUDA, then MPS, then CPU). A ``scheme://host:port`` endpoint names a
remote compute backend. Remote endpoints are always refused with a
:class:`~pitchset.errors.BackendError`: this process only executes
locally, so no connection is ever attempted.
"""

from __future__ import annotations

import logging
import re
from urllib.parse import urlsplit

import torch

from pitchset.errors import BackendError

logger = logging.getLogger(__name__)

_CUDA_INDEX = re.compile(r"^cuda:(\d+)$")


def is_remote(name: str) -> bool:
    """Return *True* if *name* looks like ``scheme://host:port``."""
    return "://" in name


def parse_remote(uri: str) -> tuple[str, int]:
    """Split a remote backend endpoint into ``(host, port)``.

    Raises
    ------
    BackendError
        If the URI does not have the form ``scheme://host:port``.
    """
    try:
        parts = urlsplit(uri)
        port = parts.port
    except ValueError as exc:
        raise BackendError(f"Remote backend {uri!r} has an invalid port.") from exc
    if not parts.hostname or port is None:
        raise BackendError(f"Remote backend {uri!r} must have the form scheme://host:port.")
    return parts.hostname, port


def resolve_device(name: str | torch.device = "auto") -> torch.device:
    """Resolve a backend name to a usable ``torch.device``.

    Parameters
    ----------
    name : str | torch.device
        ``'cpu'``, ``'cuda'``, ``'cuda:N'``, ``'mps'``, ``'auto'`` or a
        remote ``scheme://host:port`` endpoint.

    Returns
    -------
    torch.device

    Raises
    ------
    BackendError
        If the requested device is not available. Remote endpoints always
        raise, whether or not anything listens there.
    """
    if isinstance(name, torch.device):
        name = str(name)
    name = name.strip().lower()

    if is_remote(name):
        host, port = parse_remote(name)
        raise BackendError(
            f"Remote backend {host}:{port} is not supported; run on a local device instead."
        )

    if name == "auto":
        if torch.cuda.is_available():
            device = torch.device("cuda")
        elif torch.backends.mps.is_available():
            device = torch.device("mps")
        else:
            device = torch.device("cpu")
        logger.info("Auto-selected device %s", device)
        return device

    if name == "cpu":
        return torch.device("cpu")

    if name == "mps":
        if not torch.backends.mps.is_available():
            raise BackendError("MPS backend requested but not available.")
        return torch.device("mps")

    match = _CUDA_INDEX.match(name)
    if name == "cuda" or match:
        if not torch.cuda.is_available():
            raise BackendError(f"{name} requested but CUDA is not available.")
        if match and int(match.group(1)) >= torch.cuda.device_count():
            raise BackendError(
                f"{name} requested but only {torch.cuda.device_count()} CUDA device(s) exist."
            )
        return torch.device(name)

    raise BackendError(f"Unknown backend {name!r}.")
