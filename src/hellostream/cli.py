"""Command-line entry points: ``hellostream-client`` and ``hellostream-server``.

Usage::

    hellostream-server
    hellostream-client localhost

Both read ``hellostream.toml`` (discovered from the working directory) for
ports, limits and the log level.  Fatal errors are printed to stderr and
mapped to the exit status carried by the exception; an invalid
configuration file exits with status 1.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from collections.abc import Sequence
from typing import NoReturn

from hellostream.client import fetch
from hellostream.config import HelloStreamConfig, load_config
from hellostream.endpoint import Family
from hellostream.errors import HelloStreamError
from hellostream.server import ConnectionServer


__all__ = ["client_main", "server_main"]

log = logging.getLogger("hellostream.cli")


class _ArgumentParser(argparse.ArgumentParser):
    """Argument parser whose usage errors exit with status 1."""

    def error(self, message: str) -> NoReturn:
        self.print_usage(sys.stderr)
        self.exit(1, f"{self.prog}: error: {message}\n")


def _config_error(prog: str, exc: Exception) -> int:
    print(f"{prog}: config: {exc}", file=sys.stderr)
    return 1


def _setup_logging(config: HelloStreamConfig) -> None:
    logging.basicConfig(
        level=config.logging.level.upper(),
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
        datefmt="%H:%M:%S",
    )


async def _run_client(host: str, config: HelloStreamConfig, family: Family) -> None:
    fetched = await fetch(
        host,
        config.client.port,
        max_size=config.client.max_size,
        family=family,
    )
    print(f"client: connecting to {fetched.endpoint.host}")
    print(f"client: received {fetched.data.decode('utf-8', errors='replace')}")


def client_main(argv: Sequence[str] | None = None) -> int:
    parser = _ArgumentParser(
        prog="hellostream-client",
        description="Connect to a hellostream server and print what it sends.",
    )
    parser.add_argument("hostname", help="server host name or address")
    args = parser.parse_args(argv)

    try:
        config = load_config()
        family = Family.parse(config.client.family)
    except (TypeError, ValueError) as exc:
        return _config_error(parser.prog, exc)
    _setup_logging(config)
    try:
        asyncio.run(_run_client(args.hostname, config, family))
    except HelloStreamError as exc:
        print(f"{parser.prog}: {exc}", file=sys.stderr)
        return exc.exit_code
    return 0


async def _run_server(config: HelloStreamConfig) -> None:
    async with ConnectionServer.from_config(config.server) as server:
        await server.serve_forever()


def server_main(argv: Sequence[str] | None = None) -> int:
    parser = _ArgumentParser(
        prog="hellostream-server",
        description="Send a greeting to every connection on the configured port.",
    )
    parser.parse_args(argv)

    try:
        config = load_config()
        Family.parse(config.server.family)
    except (TypeError, ValueError) as exc:
        return _config_error(parser.prog, exc)
    _setup_logging(config)
    try:
        asyncio.run(_run_server(config))
    except HelloStreamError as exc:
        print(f"{parser.prog}: {exc}", file=sys.stderr)
        return exc.exit_code
    except KeyboardInterrupt:
        log.info("server: shutting down")
    return 0

