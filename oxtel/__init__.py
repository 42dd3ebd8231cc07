# oxtel/__init__.py

from oxtel.core.errors import (
    ConfigError,
    DecodeError,
    DisconnectedError,
    OxtelConnectError,
    OxtelError,
    ResponseTimeoutError,
    WriteError,
)
from oxtel.protocol.tallies import TallyEvent
from oxtel.runtime.client import OxtelClient, connect
from oxtel.runtime.state import ConnectionState, ConnectionStatus

__version__ = "0.1.0"

__all__ = [
    "OxtelClient", "connect",
    "ConnectionState", "ConnectionStatus",
    "TallyEvent",
    "OxtelError", "ConfigError", "OxtelConnectError", "DisconnectedError",
    "WriteError", "ResponseTimeoutError", "DecodeError",
]
