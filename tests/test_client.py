from __future__ import annotations

import asyncio
import errno
import socket

import pytest

from hellostream import (
    HELLO,
    ConnectError,
    ConnectionServer,
    ReceiveError,
    ResolutionError,
    fetch,
)


@pytest.fixture
async def server_port():
    async with ConnectionServer("127.0.0.1", 0) as server:
        task = asyncio.create_task(server.serve_forever())
        yield server.address[1]
        task.cancel()


async def test_fetch_receives_payload(server_port: int) -> None:
    fetched = await fetch("127.0.0.1", server_port)
    assert fetched.data == HELLO
    assert fetched.endpoint.host == "127.0.0.1"
    assert fetched.endpoint.port == server_port


async def test_fetch_localhost_falls_back_to_listening_family(server_port: int) -> None:
    # the server only listens on IPv4; an IPv6 localhost candidate is refused first
    fetched = await fetch("localhost", str(server_port))
    assert fetched.endpoint.host == "127.0.0.1"
    assert fetched.data == HELLO


async def test_fetch_reads_one_bounded_chunk(server_port: int) -> None:
    fetched = await fetch("127.0.0.1", server_port, max_size=6)
    assert fetched.data == HELLO[:5]


async def test_fetch_connect_exhausted(refused_port: int) -> None:
    with pytest.raises(ConnectError):
        await fetch("127.0.0.1", refused_port)


async def test_fetch_unresolvable() -> None:
    with pytest.raises(ResolutionError):
        await fetch("127.0.0.1", "no-such-service-hellostream")


async def test_fetch_wraps_receive_failure(
    server_port: int, monkeypatch: pytest.MonkeyPatch,
) -> None:
    loop = asyncio.get_running_loop()

    async def reset(sock: socket.socket, nbytes: int) -> bytes:
        raise ConnectionResetError(errno.ECONNRESET, "Connection reset by peer")

    monkeypatch.setattr(loop, "sock_recv", reset)

    with pytest.raises(ReceiveError) as excinfo:
        await fetch("127.0.0.1", server_port)

    assert excinfo.value.reason == "recv"
    assert excinfo.value.exit_code == 1
    assert isinstance(excinfo.value.__cause__, ConnectionResetError)


@pytest.mark.parametrize("max_size", [1, 0, -1])
async def test_fetch_rejects_buffer_without_room_to_read(max_size: int) -> None:
    with pytest.raises(ValueError):
        await fetch("127.0.0.1", 1, max_size=max_size)
