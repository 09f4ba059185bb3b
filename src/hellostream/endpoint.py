"""Candidate endpoint resolution.

Turns a host/port pair plus constraints into an ordered, single-pass
iterator of ``Endpoint`` records.  The order is the resolver's preference
and callers try candidates in that order, stopping at the first success.

Examples
--------
>>> candidates = await resolve("localhost", "3490", Role.ACTIVE)
>>> for endpoint in candidates:
...     print(endpoint.host, endpoint.port)
127.0.0.1 3490
"""

from __future__ import annotations

import asyncio
import enum
import logging
import socket
from collections.abc import Iterator
from dataclasses import dataclass
from typing import Any

from hellostream.errors import ResolutionError


__all__ = [
    "Endpoint",
    "Family",
    "Role",
    "format_address",
    "resolve",
]

logger = logging.getLogger("hellostream.endpoint")


class Role(enum.Enum):
    """Whether candidates are meant for connecting or for binding."""

    ACTIVE = "active"
    PASSIVE = "passive"


class Family(enum.Enum):
    """Address family constraint applied during resolution."""

    UNSPEC = socket.AF_UNSPEC
    INET = socket.AF_INET
    INET6 = socket.AF_INET6

    @classmethod
    def parse(cls, value: str) -> Family:
        """Parse a configuration value such as ``"inet6"``.

        Raises
        ------
        ValueError
            If *value* names no known family.
        """
        try:
            return cls[value.upper()]
        except KeyError:
            msg = f"Unknown address family: {value!r}"
            raise ValueError(msg) from None


@dataclass(frozen=True)
class Endpoint:
    """One resolved candidate for ``connect()`` or ``bind()``.

    Parameters
    ----------
    family : socket.AddressFamily
        ``AF_INET`` or ``AF_INET6``.
    kind : socket.SocketKind
        Always ``SOCK_STREAM`` here.
    protocol : int
        Transport protocol number as reported by the resolver.
    sockaddr : tuple
        Address tuple accepted by ``socket.connect``/``socket.bind``.

    Examples
    --------
    >>> ep = Endpoint(socket.AF_INET, socket.SOCK_STREAM, 6, ("127.0.0.1", 3490))
    >>> ep.host, ep.port
    ('127.0.0.1', 3490)
    >>> ep.packed
    b'\\x7f\\x00\\x00\\x01'
    """

    family: socket.AddressFamily
    kind: socket.SocketKind
    protocol: int
    sockaddr: tuple[Any, ...]

    @property
    def host(self) -> str:
        """Presentation form of the address."""
        return str(self.sockaddr[0])

    @property
    def port(self) -> int:
        return int(self.sockaddr[1])

    @property
    def packed(self) -> bytes:
        """Binary (network order) form of the address."""
        return socket.inet_pton(self.family, self.host)

    def __str__(self) -> str:
        if self.family == socket.AF_INET6:
            return f"[{self.host}]:{self.port}"
        return f"{self.host}:{self.port}"


def format_address(sockaddr: Any) -> str:
    """Return the presentation form of a peer address for log lines.

    Accepts the tuple returned by ``accept()``/``getpeername()`` for either
    family and falls back to ``str()`` for anything else.
    """
    if isinstance(sockaddr, tuple) and sockaddr:
        return str(sockaddr[0])
    return str(sockaddr)


def _candidates(
    infos: list[tuple[Any, ...]],
) -> Iterator[Endpoint]:
    for family, kind, protocol, _canonname, sockaddr in infos:
        yield Endpoint(
            family=socket.AddressFamily(family),
            kind=socket.SocketKind(kind),
            protocol=protocol,
            sockaddr=tuple(sockaddr),
        )


async def resolve(
    host: str | None,
    port: str | int,
    role: Role,
    *,
    family: Family = Family.UNSPEC,
) -> Iterator[Endpoint]:
    """Resolve *host* and *port* into an ordered iterator of candidates.

    Parameters
    ----------
    host : str | None
        Host name or literal address.  ``None`` with ``Role.PASSIVE`` means
        every local address (the wildcard).
    port : str | int
        Port number or service name.
    role : Role
        ``PASSIVE`` requests addresses suitable for ``bind()``.
    family : Family
        ``UNSPEC`` lets IPv4 and IPv6 candidates appear in system order.

    Returns
    -------
    Iterator[Endpoint]
        Finite, single-pass iterator in resolver preference order.

    Raises
    ------
    ResolutionError
        If the lookup fails or produces no stream candidate.
    """
    flags = socket.AI_PASSIVE if role is Role.PASSIVE else 0
    loop = asyncio.get_running_loop()
    try:
        infos = await loop.getaddrinfo(
            host,
            port,
            family=family.value,
            type=socket.SOCK_STREAM,
            flags=flags,
        )
    except (socket.gaierror, UnicodeError) as exc:
        raise ResolutionError("unresolvable", f"{host or '*'}:{port}: {exc}") from exc

    if not infos:
        raise ResolutionError("no_candidates", f"{host or '*'}:{port}")

    logger.debug(
        "Resolved %s:%s (%s) to %d candidate(s)",
        host or "*", port, role.value, len(infos),
    )
    return _candidates(infos)
