"""TOML-based configuration for the hellostream client and server.

Provides ``load_config`` / ``discover_config`` for loading
``hellostream.toml`` into a small hierarchy of frozen dataclasses.
"""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal, TypeAlias


__all__ = [
    "CONFIG_FILENAME",
    "DEFAULT_PORT",
    "HELLO",
    "ClientConfig",
    "HelloStreamConfig",
    "LoggingConfig",
    "ServerConfig",
    "discover_config",
    "load_config",
]


FamilyName: TypeAlias = Literal["unspec", "inet", "inet6"]

CONFIG_FILENAME = "hellostream.toml"
DEFAULT_PORT = "3490"
HELLO = b"\n\nHello, world!\n\n"


@dataclass(frozen=True)
class ServerConfig:
    """Listening side settings.

    Parameters
    ----------
    host : str | None
        Local address to bind.  ``None`` binds every local address.
    port : str
        Port number or service name.
    backlog : int
        Maximum queued, not yet accepted connections.
    family : FamilyName
        Address family constraint.
    payload : bytes
        Bytes sent to every accepted connection.
    reuse_address : bool
        Whether ``SO_REUSEADDR`` is set before binding.

    Examples
    --------
    >>> ServerConfig(port="8080", backlog=32)
    ServerConfig(host=None, port='8080', backlog=32, ...)
    """

    host: str | None = None
    port: str = DEFAULT_PORT
    backlog: int = 10
    family: FamilyName = "unspec"
    payload: bytes = HELLO
    reuse_address: bool = True

    def __post_init__(self) -> None:
        if self.backlog < 1:
            msg = f"server.backlog must be positive, got {self.backlog}"
            raise ValueError(msg)


@dataclass(frozen=True)
class ClientConfig:
    """Connecting side settings.

    ``max_size`` is the receive buffer size; one byte of it is reserved,
    so at most ``max_size - 1`` bytes are read.
    """

    port: str = DEFAULT_PORT
    max_size: int = 100
    family: FamilyName = "unspec"

    def __post_init__(self) -> None:
        if self.max_size < 2:
            msg = f"client.max_size must be at least 2, got {self.max_size}"
            raise ValueError(msg)


@dataclass(frozen=True)
class LoggingConfig:
    level: str = "INFO"


@dataclass(frozen=True)
class HelloStreamConfig:
    """Top-level configuration.

    Examples
    --------
    >>> config = HelloStreamConfig()
    >>> config.server.port
    '3490'
    """

    server: ServerConfig = field(default_factory=ServerConfig)
    client: ClientConfig = field(default_factory=ClientConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def discover_config(start: Path | None = None) -> Path | None:
    """Walk up from *start* (default: cwd) looking for ``hellostream.toml``.

    Returns
    -------
    Path | None
        Path to the discovered config file, or ``None`` if not found.
    """
    current = (start or Path.cwd()).resolve()
    while True:
        candidate = current / CONFIG_FILENAME
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            return None
        current = parent


def _server_config(raw: dict[str, Any]) -> ServerConfig:
    values = dict(raw)
    if "port" in values:
        values["port"] = str(values["port"])
    if "payload" in values:
        values["payload"] = str(values["payload"]).encode("utf-8")
    return ServerConfig(**values)


def _client_config(raw: dict[str, Any]) -> ClientConfig:
    values = dict(raw)
    if "port" in values:
        values["port"] = str(values["port"])
    return ClientConfig(**values)


def load_config(path: Path | None = None) -> HelloStreamConfig:
    """Load a ``HelloStreamConfig`` from a TOML file.

    If *path* is ``None``, auto-discovers ``hellostream.toml`` by walking up
    from the current working directory.  Returns the default config if no
    file is found.

    Parameters
    ----------
    path : Path | None
        Explicit path to a TOML config file.

    Returns
    -------
    HelloStreamConfig

    Raises
    ------
    FileNotFoundError
        If an explicit *path* is given but does not exist.

    Examples
    --------
    >>> config = load_config(Path("hellostream.toml"))
    >>> config.server.backlog
    10
    """
    if path is None:
        discovered = discover_config()
        if discovered is None:
            return HelloStreamConfig()
        path = discovered

    if not path.exists():
        msg = f"Config file not found: {path}"
        raise FileNotFoundError(msg)

    with path.open("rb") as f:
        raw = tomllib.load(f)

    return HelloStreamConfig(
        server=_server_config(raw.get("server", {})),
        client=_client_config(raw.get("client", {})),
        logging=LoggingConfig(**raw.get("logging", {})),
    )
