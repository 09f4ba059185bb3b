"""Connecting side: fetch whatever the server sends in a single read."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from hellostream.config import DEFAULT_PORT
from hellostream.connector import connect
from hellostream.endpoint import Endpoint, Family, Role, resolve
from hellostream.errors import ReceiveError


__all__ = ["Fetched", "fetch"]

logger = logging.getLogger("hellostream.client")


@dataclass(frozen=True)
class Fetched:
    """What one ``fetch`` call connected to and received."""

    endpoint: Endpoint
    data: bytes


async def fetch(
    host: str,
    port: str | int = DEFAULT_PORT,
    *,
    max_size: int = 100,
    family: Family = Family.UNSPEC,
) -> Fetched:
    """Connect to *host* and return the bytes of one bounded read.

    At most ``max_size - 1`` bytes are read, with a single ``recv``.  The
    read does not loop, so a message split across deliveries comes back
    truncated to its first chunk.

    Raises
    ------
    ValueError
        If *max_size* is less than 2.
    ResolutionError
        If *host* cannot be resolved.
    ConnectError
        If no candidate accepted the connection.
    ReceiveError
        If the read fails; the socket is closed.
    """
    if max_size < 2:
        msg = f"max_size must be at least 2, got {max_size}"
        raise ValueError(msg)
    candidates = await resolve(host, port, Role.ACTIVE, family=family)
    sock, endpoint = await connect(candidates, logger=logger)
    loop = asyncio.get_running_loop()
    with sock:
        try:
            data = await loop.sock_recv(sock, max_size - 1)
        except OSError as exc:
            raise ReceiveError("recv", str(exc)) from exc
    return Fetched(endpoint=endpoint, data=data)
