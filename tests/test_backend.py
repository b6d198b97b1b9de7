"""Tests for backend resolution."""

from __future__ import annotations

import socket

import pytest
import torch

from pitchset.errors import BackendError
from pitchset.utils.backend import is_remote, parse_remote, resolve_device


def test_cpu() -> None:
    assert resolve_device("cpu") == torch.device("cpu")
    assert resolve_device(torch.device("cpu")) == torch.device("cpu")


def test_auto_returns_a_device() -> None:
    assert isinstance(resolve_device("auto"), torch.device)


def test_unknown_backend() -> None:
    with pytest.raises(BackendError):
        resolve_device("tpu")


@pytest.mark.skipif(torch.cuda.is_available(), reason="CUDA present")
def test_missing_cuda() -> None:
    with pytest.raises(BackendError):
        resolve_device("cuda:0")


def test_backend_error_is_runtime_error() -> None:
    with pytest.raises(RuntimeError):
        resolve_device("tpu")


def test_remote_endpoint_refused_without_connecting() -> None:
    # Nothing listens on port 1; the refusal must not depend on that.
    uri = "tcp://127.0.0.1:1"
    assert is_remote(uri)
    with pytest.raises(BackendError, match="not supported"):
        resolve_device(uri)


def test_parse_remote() -> None:
    assert parse_remote("grpc://compute.local:7000") == ("compute.local", 7000)


@pytest.mark.parametrize("uri", ["tcp://localhost", "tcp://:7000", "tcp://host:notaport"])
def test_malformed_remote(uri: str) -> None:
    with pytest.raises(BackendError, match="Remote backend"):
        resolve_device(uri)


def test_reachable_remote_is_still_unsupported() -> None:
    with socket.socket() as server:
        server.bind(("127.0.0.1", 0))
        server.listen(1)
        port = server.getsockname()[1]
        with pytest.raises(BackendError, match="not supported"):
            resolve_device(f"tcp://127.0.0.1:{port}")
