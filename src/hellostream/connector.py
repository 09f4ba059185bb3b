"""Active side: connect to the first reachable candidate endpoint."""

from __future__ import annotations

import asyncio
import logging
import socket
from collections.abc import Callable, Iterable
from typing import TypeAlias

from hellostream.endpoint import Endpoint
from hellostream.errors import ConnectError


__all__ = ["SocketFactory", "connect"]

_logger = logging.getLogger("hellostream.connector")


SocketFactory: TypeAlias = Callable[[int, int, int], socket.socket]


async def connect(
    candidates: Iterable[Endpoint],
    *,
    socket_factory: SocketFactory = socket.socket,
    logger: logging.Logger | None = None,
) -> tuple[socket.socket, Endpoint]:
    """Open a stream connection to the first candidate that accepts it.

    Candidates are tried strictly in order.  A candidate whose socket cannot
    be allocated or whose connection attempt fails is logged and skipped;
    its socket is closed before moving on.  Iteration stops at the first
    success, so later candidates are never touched.

    Parameters
    ----------
    candidates : Iterable[Endpoint]
        Ordered candidates, usually from ``resolve(..., Role.ACTIVE)``.
    socket_factory : SocketFactory
        Callable ``(family, kind, protocol) -> socket``.

    Returns
    -------
    tuple[socket.socket, Endpoint]
        The connected, non-blocking socket and the candidate it reached.

    Raises
    ------
    ConnectError
        If every candidate failed (``reason == "exhausted"``).
    """
    log = logger or _logger
    loop = asyncio.get_running_loop()
    attempted = 0
    for endpoint in candidates:
        attempted += 1
        try:
            sock = socket_factory(endpoint.family, endpoint.kind, endpoint.protocol)
        except OSError as exc:
            log.warning("client: socket for %s failed: %s", endpoint, exc)
            continue

        try:
            sock.setblocking(False)
            await loop.sock_connect(sock, endpoint.sockaddr)
        except OSError as exc:
            sock.close()
            log.warning("client: connect to %s failed: %s", endpoint, exc)
            continue
        except BaseException:
            sock.close()
            raise

        log.debug("client: connected to %s after %d attempt(s)", endpoint, attempted)
        return sock, endpoint

    raise ConnectError("exhausted", f"{attempted} candidate(s) tried")
