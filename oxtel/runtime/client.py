# oxtel/runtime/client.py
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable, Iterator, Optional

from oxtel.core.errors import DisconnectedError, OxtelConnectError
from oxtel.protocol.classifier import TallyClassifier
from oxtel.protocol.engine import DEFAULT_EVENT_QUEUE_SIZE, DEFAULT_RESPONSE_TIMEOUT_S, CommandSink, ProtocolEngine
from oxtel.protocol.tallies import TallyEvent
from oxtel.runtime.state import ConnectionState, ConnectionStatus
from oxtel.transport.base import StreamTransport
from oxtel.transport.errors import TransportError
from oxtel.transport.tcp import TCPTransport

if TYPE_CHECKING:
    from oxtel.app.config import OxtelConfig

DEFAULT_PORT = 9100
DEFAULT_CONNECT_TIMEOUT_S = 5.0
DEFAULT_READ_TIMEOUT_S = 0.1

TransportFactory = Callable[..., StreamTransport]


@dataclass
class OxtelClient:
    """
    One persistent connection to an Oxtel appliance.

    Responsibilities:
      - open/close the TCP transport
      - start/stop the ProtocolEngine RX thread
      - single, idempotent shutdown (explicit or after a transport failure)
      - translate low-level failures into operator-safe errors

    Lifecycle: DISCONNECTED -> CONNECTING -> CONNECTED -> CLOSING -> DISCONNECTED.
    There is no automatic reconnection; call connect() again for a fresh session.
    """

    address: str
    port: int = DEFAULT_PORT
    response_timeout_s: float = DEFAULT_RESPONSE_TIMEOUT_S
    connect_timeout_s: float = DEFAULT_CONNECT_TIMEOUT_S
    read_timeout_s: float = DEFAULT_READ_TIMEOUT_S
    event_queue_size: int = DEFAULT_EVENT_QUEUE_SIZE
    cmd_sink: Optional[CommandSink] = None
    logger: Optional[logging.Logger] = None
    on_event: Optional[Callable[[TallyEvent], None]] = None
    classifier: Optional[TallyClassifier] = None
    transport_factory: TransportFactory = field(default=TCPTransport, repr=False)

    def __post_init__(self) -> None:
        self._log = self.logger or logging.getLogger(__name__)
        self._state_lock = threading.Lock()
        self._state = ConnectionState.DISCONNECTED
        self._transport: Optional[StreamTransport] = None
        self._engine: Optional[ProtocolEngine] = None
        self._last_error: Optional[str] = None

    @classmethod
    def from_config(cls, cfg: "OxtelConfig", **kwargs) -> "OxtelClient":
        return cls(
            address=cfg.address,
            port=cfg.port,
            response_timeout_s=cfg.response_timeout_s,
            connect_timeout_s=cfg.connect_timeout_s,
            read_timeout_s=cfg.read_timeout_s,
            event_queue_size=cfg.event_queue_size,
            **kwargs,
        )

    # ---------------- State ----------------
    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED

    def status(self) -> ConnectionStatus:
        with self._state_lock:
            engine = self._engine
            return ConnectionStatus(
                state=self._state,
                address=self.address,
                port=int(self.port),
                pending_prefix=engine.pending_prefix if engine else None,
                last_error=self._last_error,
                stats=engine.stats() if engine else None,
            )

    # ---------------- Lifecycle ----------------
    def connect(self) -> None:
        with self._state_lock:
            if self._state is ConnectionState.CONNECTED:
                return
            if self._state is not ConnectionState.DISCONNECTED:
                raise RuntimeError(f"connect() while connection is {self._state.value}")
            self._state = ConnectionState.CONNECTING
            self._last_error = None

        try:
            transport = self.transport_factory(
                self.address,
                int(self.port),
                connect_timeout=self.connect_timeout_s,
                read_timeout=self.read_timeout_s,
            )
        except Exception as e:
            self._set_disconnected(str(e))
            raise

        try:
            transport.open()
        except TransportError as e:
            self._log.error("TRANSPORT_OPEN_FAILED address=%s port=%s error=%s", self.address, self.port, e)
            self._set_disconnected(str(e))
            raise OxtelConnectError(
                "Could not connect to the Oxtel device.",
                hint=str(e),
                details={"address": self.address, "port": int(self.port)},
            ) from None

        try:
            engine = ProtocolEngine(
                transport,
                response_timeout_s=self.response_timeout_s,
                event_queue_size=self.event_queue_size,
                classifier=self.classifier,
                cmd_sink=self.cmd_sink,
                logger=self._log,
            )
        except Exception as e:
            self._log.exception("PROTOCOL_ENGINE_INIT_FAILED")
            transport.close()
            self._set_disconnected(str(e))
            raise OxtelConnectError(
                "Failed to initialize protocol engine.",
                hint=str(e),
                details={"address": self.address, "port": int(self.port)},
            ) from None

        engine.on_event = self._dispatch_event
        engine.on_transport_lost = self._on_transport_lost

        with self._state_lock:
            self._transport = transport
            self._engine = engine
            self._state = ConnectionState.CONNECTED

        engine.start_rx_thread()
        self._log.info("CONNECTED address=%s port=%s", self.address, self.port)

    def disconnect(self, reason: Optional[BaseException] = None) -> bool:
        """
        Close the connection. Safe to call repeatedly, concurrently, and from
        the RX thread. Returns True only for the call that performed the shutdown.
        """
        with self._state_lock:
            if self._state is not ConnectionState.CONNECTED:
                return False
            self._state = ConnectionState.CLOSING
            engine, transport = self._engine, self._transport

        self._log.info("DISCONNECTING address=%s port=%s", self.address, self.port)

        if engine is not None:
            # Cancel first so the reader does not report the socket close as a failure.
            engine.stop_rx_thread(join=False)
            engine.close(reason)

        if transport is not None:
            try:
                transport.close()
            except Exception:
                self._log.exception("Failed to close transport")

        if engine is not None:
            engine.stop_rx_thread()

        with self._state_lock:
            self._transport = None
            self._state = ConnectionState.DISCONNECTED

        self._log.info("DISCONNECTED address=%s port=%s", self.address, self.port)
        return True

    def _set_disconnected(self, error: Optional[str]) -> None:
        with self._state_lock:
            self._state = ConnectionState.DISCONNECTED
            self._last_error = error

    def _on_transport_lost(self, exc: Exception) -> None:
        self._log.warning("CONNECTION_LOST address=%s port=%s error=%s", self.address, self.port, exc)
        with self._state_lock:
            self._last_error = str(exc)
        self.disconnect(exc)

    # ---------------- Commands ----------------
    def _require_engine(self) -> ProtocolEngine:
        engine = self._engine
        if self._state is not ConnectionState.CONNECTED or engine is None:
            raise DisconnectedError(
                "Not connected to the Oxtel device.",
                hint="Call connect() first.",
                details={"state": self._state.value},
            )
        return engine

    def send(self, raw_command: str) -> None:
        """Fire-and-forget: escape, frame and write one command."""
        self._require_engine().send_command(raw_command)

    def send_and_await_response(
        self,
        prefix: str,
        params: str = "",
        timeout: Optional[float] = None,
    ) -> str:
        """Send prefix+params and return the body of the reply carrying the same prefix."""
        return self._require_engine().send_and_await_response(prefix, params, timeout=timeout)

    # ---------------- Events ----------------
    def _dispatch_event(self, event: TallyEvent) -> None:
        cb = self.on_event
        if cb is not None:
            cb(event)

    def get_event(self, timeout: Optional[float] = 0.1) -> Optional[TallyEvent]:
        engine = self._engine
        if engine is None:
            return None
        return engine.get_event(timeout=timeout)

    def iter_events(self) -> Iterator[TallyEvent]:
        engine = self._engine
        if engine is None:
            return iter(())
        return engine.iter_events()

    def __enter__(self) -> "OxtelClient":
        self.connect()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.disconnect()


def connect(address: str, port: int = DEFAULT_PORT, **kwargs) -> OxtelClient:
    """Create an OxtelClient and connect it."""
    client = OxtelClient(address, port, **kwargs)
    client.connect()
    return client
