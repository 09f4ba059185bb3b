from __future__ import annotations

import logging
import socket
from collections.abc import Callable

import pytest

from hellostream import ConnectError, connect
from tests.utils import loopback, pending_connections


class RecordingFactory:
    """Socket factory that records each allocation and can fail on demand."""

    def __init__(self, fail_on: set[int] | None = None) -> None:
        self.calls: list[tuple[int, int, int]] = []
        self.sockets: list[socket.socket] = []
        self._fail_on = fail_on or set()

    def __call__(self, family: int, kind: int, protocol: int) -> socket.socket:
        self.calls.append((family, kind, protocol))
        if len(self.calls) in self._fail_on:
            raise OSError("no sockets left")
        sock = socket.socket(family, kind, protocol)
        self.sockets.append(sock)
        return sock


async def test_first_candidate_wins(make_listener: Callable[[], socket.socket]) -> None:
    first, second = make_listener(), make_listener()
    factory = RecordingFactory()

    sock, endpoint = await connect(
        [loopback(first.getsockname()[1]), loopback(second.getsockname()[1])],
        socket_factory=factory,
    )
    with sock:
        assert endpoint.port == first.getsockname()[1]
        assert sock.getpeername()[1] == first.getsockname()[1]
        assert sock.getblocking() is False

    assert len(factory.calls) == 1
    assert pending_connections(first) == 1
    assert pending_connections(second) == 0


async def test_falls_back_in_order_and_stops_at_first_success(
    make_refused_port: Callable[[], int],
    make_listener: Callable[[], socket.socket],
    caplog: pytest.LogCaptureFixture,
) -> None:
    refused_a, refused_b = make_refused_port(), make_refused_port()
    winner, never = make_listener(), make_listener()
    candidates = [
        loopback(refused_a),
        loopback(refused_b),
        loopback(winner.getsockname()[1]),
        loopback(never.getsockname()[1]),
    ]
    factory = RecordingFactory()

    with caplog.at_level(logging.WARNING, logger="hellostream.connector"):
        sock, endpoint = await connect(candidates, socket_factory=factory)
    sock.close()

    assert endpoint == candidates[2]
    assert len(factory.calls) == 3
    failures = [r.getMessage() for r in caplog.records]
    assert len(failures) == 2
    assert f":{refused_a} failed" in failures[0]
    assert f":{refused_b} failed" in failures[1]
    # failed attempts released their sockets
    assert all(s.fileno() == -1 for s in factory.sockets[:2])
    assert pending_connections(never) == 0


async def test_exhaustion_tries_each_candidate_once(
    make_refused_port: Callable[[], int],
    caplog: pytest.LogCaptureFixture,
) -> None:
    ports = [make_refused_port() for _ in range(3)]
    factory = RecordingFactory()

    with caplog.at_level(logging.WARNING, logger="hellostream.connector"):
        with pytest.raises(ConnectError) as excinfo:
            await connect([loopback(p) for p in ports], socket_factory=factory)

    assert excinfo.value.reason == "exhausted"
    assert excinfo.value.exit_code == 2
    assert len(factory.calls) == 3
    messages = [r.getMessage() for r in caplog.records]
    assert [next(i for i, p in enumerate(ports) if f":{p} " in m) for m in messages] == [0, 1, 2]
    assert all(s.fileno() == -1 for s in factory.sockets)


async def test_socket_allocation_failure_skips_candidate(
    make_listener: Callable[[], socket.socket],
) -> None:
    listener = make_listener()
    port = listener.getsockname()[1]
    factory = RecordingFactory(fail_on={1})

    sock, endpoint = await connect([loopback(port), loopback(port)], socket_factory=factory)
    sock.close()

    assert len(factory.calls) == 2
    assert endpoint.port == port


async def test_empty_candidates_is_exhaustion() -> None:
    with pytest.raises(ConnectError):
        await connect([])


async def test_uses_candidate_socket_parameters(
    make_listener: Callable[[], socket.socket],
) -> None:
    listener = make_listener()
    candidate = loopback(listener.getsockname()[1])
    factory = RecordingFactory()

    sock, _ = await connect(iter([candidate]), socket_factory=factory)
    sock.close()

    assert factory.calls == [(candidate.family, candidate.kind, candidate.protocol)]
