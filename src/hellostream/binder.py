"""Passive side: bind the first usable candidate and start listening.

The bind and listen steps are exposed separately so ``ConnectionServer``
can move through its ``BOUND`` and ``LISTENING`` states one at a time;
``bind_and_listen`` chains them for callers that do not care.
"""

from __future__ import annotations

import logging
import socket
from collections.abc import Iterable

from hellostream.connector import SocketFactory
from hellostream.endpoint import Endpoint
from hellostream.errors import BindError, SetupError


__all__ = ["bind_and_listen", "bind_first", "check_backlog", "listen"]

_logger = logging.getLogger("hellostream.binder")


def bind_first(
    candidates: Iterable[Endpoint],
    *,
    reuse_address: bool = True,
    socket_factory: SocketFactory = socket.socket,
    logger: logging.Logger | None = None,
) -> tuple[socket.socket, Endpoint]:
    """Bind a socket to the first candidate that accepts the bind.

    ``SO_REUSEADDR`` is enabled before binding so a restarted server can
    reclaim a port the kernel still holds in ``TIME_WAIT``.

    Parameters
    ----------
    candidates : Iterable[Endpoint]
        Ordered candidates, usually from ``resolve(None, port, Role.PASSIVE)``.
    reuse_address : bool
        Whether to set ``SO_REUSEADDR``.
    socket_factory : SocketFactory
        Callable ``(family, kind, protocol) -> socket``.

    Returns
    -------
    tuple[socket.socket, Endpoint]
        The bound (not yet listening) socket and its candidate.

    Raises
    ------
    BindError
        ``reason == "exhausted"`` if no candidate could be bound.
    SetupError
        If ``SO_REUSEADDR`` cannot be applied; this is not retried.
    """
    log = logger or _logger
    attempted = 0
    for endpoint in candidates:
        attempted += 1
        try:
            sock = socket_factory(endpoint.family, endpoint.kind, endpoint.protocol)
        except OSError as exc:
            log.warning("server: socket for %s failed: %s", endpoint, exc)
            continue

        if reuse_address:
            try:
                sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            except OSError as exc:
                sock.close()
                raise SetupError("setsockopt", str(exc)) from exc

        try:
            sock.bind(endpoint.sockaddr)
        except OSError as exc:
            sock.close()
            log.warning("server: bind to %s failed: %s", endpoint, exc)
            continue

        log.debug("server: bound %s after %d attempt(s)", endpoint, attempted)
        return sock, endpoint

    raise BindError("exhausted", f"{attempted} candidate(s) tried")


def check_backlog(backlog: int) -> None:
    """Raise ``ValueError`` unless *backlog* is a positive integer."""
    if backlog < 1:
        msg = f"backlog must be positive, got {backlog}"
        raise ValueError(msg)


def listen(sock: socket.socket, backlog: int) -> None:
    """Start listening on a bound socket and switch it to non-blocking.

    Raises
    ------
    ValueError
        If *backlog* is not a positive integer; the socket is closed.
    BindError
        ``reason == "listen_failed"``; the socket is closed.
    """
    try:
        check_backlog(backlog)
    except ValueError:
        sock.close()
        raise
    try:
        sock.listen(backlog)
        sock.setblocking(False)
    except OSError as exc:
        sock.close()
        raise BindError("listen_failed", str(exc)) from exc


def bind_and_listen(
    candidates: Iterable[Endpoint],
    backlog: int,
    *,
    reuse_address: bool = True,
    socket_factory: SocketFactory = socket.socket,
    logger: logging.Logger | None = None,
) -> tuple[socket.socket, Endpoint]:
    """Bind the first usable candidate and listen with *backlog*."""
    check_backlog(backlog)
    sock, endpoint = bind_first(
        candidates,
        reuse_address=reuse_address,
        socket_factory=socket_factory,
        logger=logger,
    )
    listen(sock, backlog)
    return sock, endpoint
