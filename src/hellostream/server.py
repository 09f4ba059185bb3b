"""Concurrent connection server.

``ConnectionServer`` binds and listens on the first usable passive
candidate, accepts connections in a loop and hands each one to its own
worker task.  Finished workers are reclaimed by a separate task that is
woken by a completion queue, so the accept loop never waits on a worker.

Lifecycle: ``IDLE -> BOUND -> LISTENING -> ACCEPTING -> TERMINATED``.

Examples
--------
>>> async with ConnectionServer(port="3490") as server:
...     await server.serve_forever()
"""

from __future__ import annotations

import asyncio
import enum
import logging
import socket
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, TypeAlias

from hellostream import binder
from hellostream.config import DEFAULT_PORT, HELLO, ServerConfig
from hellostream.connector import SocketFactory
from hellostream.endpoint import Endpoint, Family, Role, format_address, resolve
from hellostream.sender import SocketTransmitter, send_all


__all__ = [
    "ConnectionHandler",
    "ConnectionServer",
    "ServerState",
    "WorkerRecord",
]


ConnectionHandler: TypeAlias = Callable[[socket.socket, str], Awaitable[None]]


class ServerState(enum.Enum):
    IDLE = "idle"
    BOUND = "bound"
    LISTENING = "listening"
    ACCEPTING = "accepting"
    TERMINATED = "terminated"


@dataclass
class WorkerRecord:
    """One in-flight per-connection worker.

    The worker task owns ``sock`` exclusively and closes it on every exit
    path; the record itself is dropped by the reclamation task.
    """

    worker_id: int
    peer: str
    sock: socket.socket
    task: asyncio.Task[None] | None = field(default=None, repr=False)


class ConnectionServer:
    """Accept loop with one isolated worker task per connection.

    Parameters
    ----------
    host : str | None
        Local address to bind.  ``None`` binds every local address.
    port : str | int
        Port number or service name (``"0"`` for an OS-assigned port).
    backlog : int
        Maximum queued, not yet accepted connections.  Must be positive;
        ``ValueError`` is raised here, before any socket exists.
    family : Family
        Address family constraint for resolution.
    payload : bytes
        Bytes the default handler sends to every connection.
    handler : ConnectionHandler | None
        Replaces the default payload handler.  Called as
        ``await handler(sock, peer)``; the socket is closed afterwards.
    reuse_address : bool
        Whether ``SO_REUSEADDR`` is set before binding.
    socket_factory : SocketFactory
        Callable ``(family, kind, protocol) -> socket`` used for binding.
    logger : logging.Logger or None
        Logger instance.  Defaults to ``hellostream.server``.

    Examples
    --------
    >>> server = ConnectionServer("127.0.0.1", 0)
    >>> await server.start()
    >>> host, port = server.address[:2]
    >>> serve = asyncio.create_task(server.serve_forever())
    >>> await server.close()
    """

    def __init__(
        self,
        host: str | None = None,
        port: str | int = DEFAULT_PORT,
        *,
        backlog: int = 10,
        family: Family = Family.UNSPEC,
        payload: bytes = HELLO,
        handler: ConnectionHandler | None = None,
        reuse_address: bool = True,
        socket_factory: SocketFactory = socket.socket,
        logger: logging.Logger | None = None,
    ) -> None:
        binder.check_backlog(backlog)
        self._host = host
        self._port = port
        self._backlog = backlog
        self._family = family
        self._payload = payload
        self._handler: ConnectionHandler = handler or self._send_payload
        self._reuse_address = reuse_address
        self._socket_factory = socket_factory
        self._logger = logger or logging.getLogger("hellostream.server")
        self._state = ServerState.IDLE
        self._listener: socket.socket | None = None
        self._endpoint: Endpoint | None = None
        self._workers: dict[int, WorkerRecord] = {}
        self._completions: asyncio.Queue[int] = asyncio.Queue()
        self._reclaimer: asyncio.Task[None] | None = None
        self._serve_task: asyncio.Task[Any] | None = None
        self._next_worker_id = 0
        self._accepted = 0
        self._reclaimed = 0

    @classmethod
    def from_config(cls, config: ServerConfig, **kwargs: Any) -> ConnectionServer:
        """Build a server from the ``[server]`` table of ``hellostream.toml``."""
        return cls(
            config.host,
            config.port,
            backlog=config.backlog,
            family=Family.parse(config.family),
            payload=config.payload,
            reuse_address=config.reuse_address,
            **kwargs,
        )

    @property
    def state(self) -> ServerState:
        return self._state

    @property
    def endpoint(self) -> Endpoint | None:
        """The candidate the listener was bound to."""
        return self._endpoint

    @property
    def address(self) -> tuple[Any, ...]:
        """The listener's actual local address (resolved port included)."""
        return self._bound_listener().getsockname()

    @property
    def live_workers(self) -> int:
        """Workers accepted but not yet reclaimed."""
        return len(self._workers)

    @property
    def accepted(self) -> int:
        return self._accepted

    @property
    def reclaimed(self) -> int:
        return self._reclaimed

    def _expect(self, state: ServerState) -> None:
        if self._state is not state:
            msg = f"expected server state {state.value}, got {self._state.value}"
            raise RuntimeError(msg)

    def _bound_listener(self) -> socket.socket:
        if self._listener is None:
            msg = "server is not bound"
            raise RuntimeError(msg)
        return self._listener

    async def bind(self) -> None:
        """Resolve passive candidates and bind the first usable one."""
        self._expect(ServerState.IDLE)
        candidates = await resolve(
            self._host, self._port, Role.PASSIVE, family=self._family,
        )
        self._listener, self._endpoint = binder.bind_first(
            candidates,
            reuse_address=self._reuse_address,
            socket_factory=self._socket_factory,
            logger=self._logger,
        )
        self._state = ServerState.BOUND

    def listen(self) -> None:
        """Start listening on the bound socket."""
        self._expect(ServerState.BOUND)
        listener = self._bound_listener()
        try:
            binder.listen(listener, self._backlog)
        except Exception:
            listener.close()
            self._listener = None
            self._state = ServerState.TERMINATED
            raise
        self._state = ServerState.LISTENING

    async def start(self) -> None:
        """Bind, listen and start the reclamation task."""
        await self.bind()
        self.listen()
        self._ensure_reclaimer()
        self._logger.debug("server: listening on %s", self._endpoint)

    def _ensure_reclaimer(self) -> None:
        if self._reclaimer is None:
            self._reclaimer = asyncio.get_running_loop().create_task(
                self._reclaim_loop(), name="hellostream-reclaimer",
            )

    async def serve_forever(self) -> None:
        """Accept connections until the server is closed or cancelled.

        Accept errors are logged and the loop carries on.
        """
        if self._state is ServerState.IDLE:
            await self.start()
        self._expect(ServerState.LISTENING)
        listener = self._bound_listener()
        self._ensure_reclaimer()
        self._state = ServerState.ACCEPTING
        self._serve_task = asyncio.current_task()
        loop = asyncio.get_running_loop()

        self._logger.info("server: waiting for connections...")
        while self._state is ServerState.ACCEPTING:
            try:
                conn, addr = await loop.sock_accept(listener)
            except OSError as exc:
                if self._state is not ServerState.ACCEPTING:
                    break
                self._logger.warning("server: accept failed: %s", exc)
                continue
            self._dispatch(conn, addr)

    def _dispatch(self, conn: socket.socket, addr: Any) -> None:
        conn.setblocking(False)
        self._next_worker_id += 1
        worker_id = self._next_worker_id
        record = WorkerRecord(worker_id=worker_id, peer=format_address(addr), sock=conn)
        self._logger.info("server: got connection from %s", record.peer)

        task = asyncio.get_running_loop().create_task(
            self._run_worker(record), name=f"hellostream-worker-{worker_id}",
        )
        record.task = task
        self._workers[worker_id] = record
        self._accepted += 1
        # Runs in the loop's callback context: only enqueue, reclaim later.
        task.add_done_callback(lambda _t: self._completions.put_nowait(worker_id))

    async def _run_worker(self, record: WorkerRecord) -> None:
        try:
            await self._handler(record.sock, record.peer)
        finally:
            record.sock.close()

    async def _send_payload(self, sock: socket.socket, peer: str) -> None:
        result = await send_all(SocketTransmitter(sock), self._payload)
        if not result.complete:
            self._logger.warning(
                "server: sendall to %s failed (%s): only sent %d of %d bytes",
                peer, result.error or result.status.value,
                result.bytes_sent, len(self._payload),
            )
        self._logger.info("server: sent %d bytes to %s", result.bytes_sent, peer)

    async def _reclaim_loop(self) -> None:
        while True:
            worker_id = await self._completions.get()
            self._reclaim(worker_id)

    def _reclaim(self, worker_id: int) -> None:
        record = self._workers.pop(worker_id, None)
        if record is None:
            return
        if record.sock.fileno() != -1:
            record.sock.close()
        task = record.task
        if task is not None and task.done() and not task.cancelled():
            exc = task.exception()
            if exc is not None:
                self._logger.error(
                    "server: worker %d for %s failed", worker_id, record.peer,
                    exc_info=exc,
                )
        self._reclaimed += 1
        self._logger.debug("server: reclaimed worker %d (%s)", worker_id, record.peer)

    async def close(self) -> None:
        """Stop accepting, cancel and reclaim live workers, close the listener."""
        if self._state is ServerState.TERMINATED:
            return
        self._state = ServerState.TERMINATED

        serve_task = self._serve_task
        if serve_task is not None and serve_task is not asyncio.current_task():
            serve_task.cancel()
            await asyncio.gather(serve_task, return_exceptions=True)

        tasks = [r.task for r in self._workers.values() if r.task is not None]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

        while not self._completions.empty():
            self._reclaim(self._completions.get_nowait())
        for worker_id in list(self._workers):
            self._reclaim(worker_id)

        if self._reclaimer is not None:
            self._reclaimer.cancel()
            await asyncio.gather(self._reclaimer, return_exceptions=True)
            self._reclaimer = None

        if self._listener is not None:
            self._listener.close()
        self._logger.debug(
            "server: closed after %d connection(s), %d reclaimed",
            self._accepted, self._reclaimed,
        )

    async def __aenter__(self) -> ConnectionServer:
        await self.start()
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()
