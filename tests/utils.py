"""Test utilities for hellostream tests."""

from __future__ import annotations

import asyncio
import socket
import time
from collections.abc import Awaitable, Callable

from hellostream import Endpoint


async def retry_until(
    condition: Callable[[], bool | Awaitable[bool]],
    *,
    timeout: float = 5.0,
    interval: float = 0.01,
    message: str = "Condition not met within timeout",
) -> None:
    """Wait until a condition is met, with timeout.

    Args:
        condition: A callable that returns True when the condition is met
        timeout: Maximum time to wait in seconds
        interval: Time between checks in seconds
        message: Error message if timeout is reached

    Raises:
        TimeoutError: If condition is not met within timeout
    """
    start = time.monotonic()
    while time.monotonic() - start < timeout:
        result = condition()

        if asyncio.iscoroutine(result):
            result = await result

        if result:
            return

        await asyncio.sleep(interval)
    raise TimeoutError(message)


def loopback(port: int) -> Endpoint:
    """IPv4 loopback candidate for *port*."""
    return Endpoint(
        family=socket.AF_INET,
        kind=socket.SOCK_STREAM,
        protocol=socket.IPPROTO_TCP,
        sockaddr=("127.0.0.1", port),
    )


async def read_until_eof(host: str, port: int) -> bytes:
    """Connect with asyncio streams and read until the server closes."""
    reader, writer = await asyncio.open_connection(host, port)
    try:
        return await reader.read()
    finally:
        writer.close()
        await writer.wait_closed()


def pending_connections(listener: socket.socket) -> int:
    """Accept and close everything queued on a non-blocking listener."""
    count = 0
    while True:
        try:
            conn, _ = listener.accept()
        except BlockingIOError:
            return count
        conn.close()
        count += 1
