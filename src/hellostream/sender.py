"""Full-buffer transmission over a transport that may short-write.

``send_all`` keeps offering the unsent suffix of a buffer to a
``Transmitter`` until everything is out or the transmitter fails, and
reports exactly how many bytes made it.

Examples
--------
>>> result = await send_all(SocketTransmitter(sock), b"\\n\\nHello, world!\\n\\n")
>>> result.status, result.bytes_sent
(<SendStatus.COMPLETE: 'complete'>, 17)
"""

from __future__ import annotations

import asyncio
import enum
import logging
import socket
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from collections.abc import Buffer


__all__ = [
    "SendResult",
    "SendStatus",
    "SocketTransmitter",
    "Transmitter",
    "send_all",
]

logger = logging.getLogger("hellostream.sender")


class Transmitter(Protocol):
    """A send primitive that may transmit fewer bytes than requested.

    ``send`` returns how many leading bytes of *data* were transmitted,
    never more than ``len(data)``, and raises ``OSError`` on failure.
    """

    async def send(self, data: memoryview) -> int: ...


class SendStatus(enum.Enum):
    COMPLETE = "complete"
    PARTIAL = "partial"
    ERROR = "error"


@dataclass(frozen=True)
class SendResult:
    """Outcome of one ``send_all`` call.

    Parameters
    ----------
    bytes_sent : int
        Bytes transmitted before the call returned.
    status : SendStatus
        ``COMPLETE`` when the whole buffer went out, ``ERROR`` when the
        transmitter raised, ``PARTIAL`` when it stopped making progress
        without raising.
    error : OSError | None
        The transmitter's exception for ``ERROR`` results.
    """

    bytes_sent: int
    status: SendStatus
    error: OSError | None = None

    @property
    def complete(self) -> bool:
        return self.status is SendStatus.COMPLETE


class SocketTransmitter:
    """``Transmitter`` over a non-blocking stream socket.

    Each ``send`` performs one ``socket.send``; when the kernel buffer is
    full it waits for writability on the running loop and tries again, so a
    call returns only once some progress was made or an error occurred.
    """

    def __init__(self, sock: socket.socket) -> None:
        self._sock = sock

    async def send(self, data: memoryview) -> int:
        while True:
            try:
                return self._sock.send(data)
            except (BlockingIOError, InterruptedError):
                await self._writable()

    async def _writable(self) -> None:
        loop = asyncio.get_running_loop()
        waiter: asyncio.Future[None] = loop.create_future()
        fd = self._sock.fileno()

        def wake() -> None:
            if not waiter.done():
                waiter.set_result(None)

        loop.add_writer(fd, wake)
        try:
            await waiter
        finally:
            loop.remove_writer(fd)


async def send_all(transmitter: Transmitter, data: Buffer) -> SendResult:
    """Transmit all of *data*, resending the remainder after short writes.

    Parameters
    ----------
    transmitter : Transmitter
        The underlying send primitive.
    data : Buffer
        Bytes-like object to send.  Only its unsent suffix is ever passed
        to the transmitter.

    Returns
    -------
    SendResult
        ``bytes_sent`` always equals the sum of the transmitter's reported
        progress.
    """
    view = memoryview(data).cast("B")
    total = len(view)
    sent = 0
    while sent < total:
        try:
            n = await transmitter.send(view[sent:])
        except OSError as exc:
            logger.debug("send failed after %d of %d bytes: %s", sent, total, exc)
            return SendResult(bytes_sent=sent, status=SendStatus.ERROR, error=exc)
        if n <= 0:
            logger.debug("send stalled after %d of %d bytes", sent, total)
            return SendResult(bytes_sent=sent, status=SendStatus.PARTIAL)
        sent += n
    return SendResult(bytes_sent=sent, status=SendStatus.COMPLETE)
