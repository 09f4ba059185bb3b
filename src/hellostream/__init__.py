from hellostream.binder import bind_and_listen, bind_first, listen
from hellostream.client import Fetched, fetch
from hellostream.config import (
    DEFAULT_PORT,
    HELLO,
    ClientConfig,
    HelloStreamConfig,
    LoggingConfig,
    ServerConfig,
    discover_config,
    load_config,
)
from hellostream.connector import connect
from hellostream.endpoint import Endpoint, Family, Role, format_address, resolve
from hellostream.errors import (
    BindError,
    ConnectError,
    HelloStreamError,
    ReceiveError,
    ResolutionError,
    SetupError,
)
from hellostream.sender import (
    SendResult,
    SendStatus,
    SocketTransmitter,
    Transmitter,
    send_all,
)
from hellostream.server import (
    ConnectionHandler,
    ConnectionServer,
    ServerState,
    WorkerRecord,
)

__all__ = [
    # endpoints
    "Endpoint",
    "Family",
    "Role",
    "format_address",
    "resolve",
    # connect / bind
    "connect",
    "bind_and_listen",
    "bind_first",
    "listen",
    # sending
    "SendResult",
    "SendStatus",
    "SocketTransmitter",
    "Transmitter",
    "send_all",
    # serving
    "ConnectionHandler",
    "ConnectionServer",
    "ServerState",
    "WorkerRecord",
    # client
    "Fetched",
    "fetch",
    # config
    "DEFAULT_PORT",
    "HELLO",
    "ClientConfig",
    "HelloStreamConfig",
    "LoggingConfig",
    "ServerConfig",
    "discover_config",
    "load_config",
    # errors
    "BindError",
    "ConnectError",
    "HelloStreamError",
    "ReceiveError",
    "ResolutionError",
    "SetupError",
]
