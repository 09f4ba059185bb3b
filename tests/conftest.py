"""Shared fixtures for hellostream tests."""

from __future__ import annotations

import socket
from collections.abc import Callable, Iterator

import pytest


@pytest.fixture
def make_refused_port() -> Iterator[Callable[[], int]]:
    """Factory for loopback ports that are bound but not listening.

    Connecting to such a port is refused immediately.
    """
    held: list[socket.socket] = []

    def make() -> int:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.bind(("127.0.0.1", 0))
        held.append(sock)
        return sock.getsockname()[1]

    yield make
    for sock in held:
        sock.close()


@pytest.fixture
def refused_port(make_refused_port: Callable[[], int]) -> int:
    return make_refused_port()


@pytest.fixture
def make_listener() -> Iterator[Callable[[], socket.socket]]:
    """Factory for plain non-blocking loopback listeners, closed on teardown."""
    listeners: list[socket.socket] = []

    def make() -> socket.socket:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.bind(("127.0.0.1", 0))
        sock.listen(8)
        sock.setblocking(False)
        listeners.append(sock)
        return sock

    yield make
    for sock in listeners:
        sock.close()
