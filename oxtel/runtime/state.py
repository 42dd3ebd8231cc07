# oxtel/runtime/state.py
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from oxtel.protocol.engine import EngineStats


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    CLOSING = "closing"


@dataclass(frozen=True)
class ConnectionStatus:
    """
    A snapshot of the client connection, safe to share across threads.
    """
    state: ConnectionState
    address: str
    port: int
    pending_prefix: Optional[str] = None
    last_error: Optional[str] = None
    stats: Optional[EngineStats] = None

    @property
    def connected(self) -> bool:
        return self.state is ConnectionState.CONNECTED
