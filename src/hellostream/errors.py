"""Exception hierarchy for endpoint resolution, connection setup and serving.

Every fatal condition carries the process exit status the command-line
entry points use when it escapes to the top level.
"""

from __future__ import annotations

from typing import Literal, TypeAlias


__all__ = [
    "BindError",
    "ConnectError",
    "HelloStreamError",
    "ReceiveError",
    "ResolutionError",
    "SetupError",
]


BindFailure: TypeAlias = Literal["exhausted", "listen_failed"]


class HelloStreamError(Exception):
    """Base class for fatal hellostream errors.

    Parameters
    ----------
    reason : str
        Short machine-readable reason.
    detail : str | None
        Human-readable detail appended to the message.
    """

    exit_code: int = 1

    def __init__(self, reason: str, detail: str | None = None) -> None:
        self.reason = reason
        self.detail = detail
        message = reason if detail is None else f"{reason}: {detail}"
        super().__init__(message)


class ResolutionError(HelloStreamError):
    """Raised when a host/service pair resolves to no candidate endpoint."""

    exit_code = 1


class ConnectError(HelloStreamError):
    """Raised when every candidate endpoint refused the connection."""

    exit_code = 2

    def __init__(self, reason: str = "exhausted", detail: str | None = None) -> None:
        super().__init__(reason, detail)


class BindError(HelloStreamError):
    """Raised when no candidate could be bound, or listening failed.

    ``reason`` is ``"exhausted"`` when every bind attempt failed and
    ``"listen_failed"`` when ``listen()`` failed after a successful bind.
    The latter is a setup failure and exits with a different status.
    """

    def __init__(self, reason: BindFailure, detail: str | None = None) -> None:
        super().__init__(reason, detail)
        self.exit_code = 2 if reason == "exhausted" else 3


class ReceiveError(HelloStreamError):
    """Raised when reading the server's reply fails after connecting."""

    exit_code = 1


class SetupError(HelloStreamError):
    """Raised when a socket option required at startup cannot be applied."""

    exit_code = 3
