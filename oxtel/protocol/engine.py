# oxtel/protocol/engine.py
from __future__ import annotations

import itertools
import logging
import queue
import threading
import time
from dataclasses import dataclass, replace
from typing import Any, Callable, Iterator, Mapping, Optional, Protocol as TypingProtocol

from oxtel.core.errors import DecodeError, DisconnectedError, ResponseTimeoutError, WriteError
from oxtel.transport.errors import TransportError
from .classifier import TallyClassifier
from .core import FrameParser, encode_command
from .tallies import TallyEvent
from ._internal.pending_request import PendingRequest
from ._internal.rx_worker import RxWorker

DEFAULT_RESPONSE_TIMEOUT_S = 5.0
DEFAULT_EVENT_QUEUE_SIZE = 256

_POLL_S = 0.1


class TransportIO(TypingProtocol):
    """Minimal I/O interface for ProtocolEngine."""
    def write(self, data: bytes) -> int: ...
    def read(self, size: int) -> bytes: ...
    def flush(self) -> None: ...


@dataclass(frozen=True, slots=True)
class CommandEvent:
    """Lifecycle of one correlated request, reported to a CommandSink."""
    name: str                   # request prefix, e.g. "Ua"
    kind: str                   # "send" | "ok" | "timeout" | "error"
    request_id: str
    payload: Mapping[str, Any]


class CommandSink(TypingProtocol):
    def on_command(self, event: CommandEvent) -> None: ...


@dataclass
class EngineStats:
    frames_rx: int = 0
    responses: int = 0
    events_delivered: int = 0
    events_dropped: int = 0
    decode_errors: int = 0
    timeouts: int = 0


class ProtocolEngine:
    """
    Dispatcher/correlator for one Oxtel connection.

    Sends escaped command frames, routes every inbound frame either to the
    single outstanding request (prefix match) or, classified, to the event
    queue. Correlated requests are serialized internally: a second caller
    waits for the first one to finish instead of stealing its response.
    """

    READ_CHUNK = 4096

    def __init__(
        self,
        transport: TransportIO,
        *,
        response_timeout_s: float = DEFAULT_RESPONSE_TIMEOUT_S,
        event_queue_size: int = DEFAULT_EVENT_QUEUE_SIZE,
        classifier: Optional[TallyClassifier] = None,
        cmd_sink: Optional[CommandSink] = None,
        logger: Optional[logging.Logger] = None,
    ):
        if int(event_queue_size) < 1:
            raise ValueError("event_queue_size must be >= 1")

        self.transport = transport

        self._log = logger or logging.getLogger(__name__)
        self._cmd_sink = cmd_sink

        self.response_timeout_s = float(response_timeout_s)

        self._parser = FrameParser(logger=self._log)
        self._classifier = classifier or TallyClassifier(logger=self._log)

        self._rx_thread: Optional[RxWorker] = None
        self.on_event: Optional[Callable[[TallyEvent], None]] = None
        self.on_transport_lost: Optional[Callable[[Exception], None]] = None

        self._lock = threading.Lock()
        self._request_gate = threading.Lock()
        self._pending: Optional[PendingRequest] = None
        self._events: "queue.Queue[TallyEvent]" = queue.Queue(maxsize=int(event_queue_size))
        self._closed = False
        self._stats = EngineStats()
        self._request_ids = itertools.count(1)

    # ---------------- State ----------------
    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending_prefix(self) -> Optional[str]:
        pending = self._pending
        return pending.prefix if pending is not None else None

    def stats(self) -> EngineStats:
        with self._lock:
            return replace(self._stats)

    # ---------------- Command API ----------------
    def send_command(self, payload: str) -> None:
        """Escape, frame and write one command. Does not wait for a reply."""
        if self._closed:
            raise DisconnectedError(
                "Cannot send: connection is closed.",
                details={"payload": payload},
            )

        try:
            self._write_frame(payload)
        except TransportError as e:
            err = self._write_error(payload, e)
            self._transport_lost(e)
            raise err from None

    def _write_frame(self, payload: str) -> None:
        raw = encode_command(payload)
        self._log.debug("SENDING_FRAME len=%d raw=%r", len(raw), raw)
        try:
            self.transport.write(raw)
            self.transport.flush()
        except TransportError as e:
            self._log.error("CMD_SEND_FAILED payload=%r error=%s", payload, e)
            raise

    @staticmethod
    def _write_error(payload: str, cause: TransportError) -> WriteError:
        return WriteError(
            "Failed to write command frame.",
            hint=str(cause),
            details={"payload": payload},
        )

    def send_and_await_response(
        self,
        prefix: str,
        params: str = "",
        timeout: Optional[float] = None,
    ) -> str:
        """
        Send `prefix + params` and return the body of the first inbound frame
        starting with `prefix` (text after the prefix, terminator removed).

        Raises ResponseTimeoutError if nothing matches within the window.
        """
        if not prefix:
            raise ValueError("prefix must not be empty")

        timeout_s = self.response_timeout_s if timeout is None else float(timeout)

        with self._request_gate:
            pending = PendingRequest(prefix, timeout_s)
            self._attach_sink(pending, params, str(next(self._request_ids)))

            with self._lock:
                closed = self._closed
                if not closed:
                    self._pending = pending
            if closed:
                err = DisconnectedError("Cannot send: connection is closed.", details={"prefix": prefix})
                pending.fail(err)
                raise err

            try:
                self._write_frame(prefix + params)
            except TransportError as e:
                # fail with the real cause before close() can fail it as a disconnect
                err = self._write_error(prefix + params, e)
                pending.fail(err)
                self._clear_pending(pending)
                self._transport_lost(e)
                raise err from None

            try:
                return pending.wait()
            except ResponseTimeoutError:
                with self._lock:
                    self._stats.timeouts += 1
                self._log.warning("CMD_TIMEOUT prefix=%s timeout_s=%.3f", prefix, timeout_s)
                raise
            finally:
                self._clear_pending(pending)

    def _clear_pending(self, pending: PendingRequest) -> None:
        with self._lock:
            if self._pending is pending:
                self._pending = None

    # ---------------- Command telemetry ----------------
    def _attach_sink(self, pending: PendingRequest, params: str, request_id: str) -> None:
        if self._cmd_sink is None:
            return

        prefix = pending.prefix
        start_ts = pending.created_at  # perf_counter base

        self._emit(CommandEvent(name=prefix, kind="send", request_id=request_id, payload={"params": params}))

        def _on_done(fut) -> None:
            rtt_ms = (time.perf_counter() - start_ts) * 1000.0
            exc = fut.exception()
            if exc is None:
                kind, payload = "ok", {"params": params, "response": fut.result(), "rtt_ms": rtt_ms}
            elif isinstance(exc, ResponseTimeoutError):
                kind, payload = "timeout", {"params": params, "rtt_ms": rtt_ms}
            else:
                kind, payload = "error", {"params": params, "error": str(exc), "rtt_ms": rtt_ms}
            self._emit(CommandEvent(name=prefix, kind=kind, request_id=request_id, payload=payload))

        pending.add_done_callback(_on_done)

    def _emit(self, event: CommandEvent) -> None:
        try:
            self._cmd_sink.on_command(event)  # type: ignore[union-attr]
        except Exception:
            self._log.exception("CMD_SINK_ERROR kind=%s prefix=%s", event.kind, event.name)

    # ---------------- RX Thread ----------------
    def start_rx_thread(self) -> None:
        if self._rx_thread is None or not self._rx_thread.is_alive():
            self._rx_thread = RxWorker(self)
            self._rx_thread.start()
            self._log.info("RX_THREAD_STARTED")

    def stop_rx_thread(self, *, join: bool = True, timeout: Optional[float] = 2.0) -> None:
        worker = self._rx_thread
        if worker is None:
            return
        worker.stop()
        # disconnect() may run on the RX thread itself (implicit disconnect on read failure)
        if join and worker is not threading.current_thread():
            worker.join(timeout)
            self._log.info("RX_THREAD_STOPPED")

    @property
    def rx_running(self) -> bool:
        return self._rx_thread is not None and self._rx_thread.is_alive()

    def _on_rx_failure(self, exc: TransportError) -> None:
        self._log.warning("RX_TRANSPORT_LOST error=%s", exc)
        self._transport_lost(exc)

    def _transport_lost(self, exc: Exception) -> None:
        cb = self.on_transport_lost
        if cb is None:
            self.close(exc)
            return
        try:
            cb(exc)
        except Exception:
            self._log.exception("ON_TRANSPORT_LOST_CALLBACK_ERROR")
            self.close(exc)

    # ---------------- RX Pump ----------------
    def _pump_rx(self) -> None:
        data = self.transport.read(self.READ_CHUNK)
        if data:
            self._parser.feed(data)

        while True:
            frame = self._parser.get_frame()
            if frame is None:
                break
            self._route(frame)

    def _route(self, frame: str) -> None:
        with self._lock:
            if self._closed:
                return
            self._stats.frames_rx += 1

            pending = self._pending
            if pending is not None and pending.matches(frame):
                self._pending = None
            else:
                pending = None

        if pending is not None:
            if pending.set_response(frame):
                with self._lock:
                    self._stats.responses += 1
                self._log.debug("RESPONSE_MATCHED prefix=%s", pending.prefix)
                return
            # Caller already gave up (timeout); treat the late frame like any other.
            self._log.debug("LATE_RESPONSE prefix=%s", pending.prefix)

        try:
            event = self._classifier.classify(frame)
        except DecodeError as e:
            with self._lock:
                self._stats.decode_errors += 1
            self._log.warning("TALLY_DECODE_FAILED raw=%r error=%s", frame, e)
            return

        self._handle_event(event)

    # ---------------- Event Queue ----------------
    def _handle_event(self, event: TallyEvent) -> None:
        try:
            self._events.put_nowait(event)
        except queue.Full:
            with self._lock:
                self._stats.events_dropped += 1
                dropped = self._stats.events_dropped
            self._log.warning("EVENT_QUEUE_FULL dropped=%d type=%s", dropped, type(event).__name__)
        else:
            with self._lock:
                self._stats.events_delivered += 1

        if self.on_event:
            try:
                self.on_event(event)
            except Exception:
                self._log.exception("ON_EVENT_CALLBACK_ERROR")

    def get_event(self, timeout: Optional[float] = _POLL_S) -> Optional[TallyEvent]:
        """
        Return the next tally, or None if none arrived within `timeout`.

        timeout=None waits until an event arrives or the engine is closed.
        """
        deadline = None if timeout is None else time.monotonic() + float(timeout)
        while True:
            if deadline is None:
                wait = _POLL_S
            else:
                wait = min(_POLL_S, deadline - time.monotonic())
            try:
                if wait > 0:
                    return self._events.get(timeout=wait)
                return self._events.get_nowait()
            except queue.Empty:
                if self._closed:
                    return None
                if deadline is not None and time.monotonic() >= deadline:
                    return None

    def iter_events(self) -> Iterator[TallyEvent]:
        """Yield tallies until the engine is closed and the queue is drained."""
        while True:
            event = self.get_event(timeout=None)
            if event is None:
                return
            yield event

    # ---------------- Shutdown ----------------
    def close(self, reason: Optional[BaseException] = None) -> None:
        """Stop routing frames and fail the outstanding request. Idempotent."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            pending, self._pending = self._pending, None

        if pending is not None:
            pending.fail(
                DisconnectedError(
                    "Connection closed while waiting for a response.",
                    hint=str(reason) if reason else None,
                    details={"prefix": pending.prefix},
                )
            )
        self._log.info("ENGINE_CLOSED stats=%s", self.stats())

    # ---------------- Factory ----------------
    @classmethod
    def create(
        cls,
        transport: TransportIO,
        *,
        response_timeout_s: float = DEFAULT_RESPONSE_TIMEOUT_S,
        event_queue_size: int = DEFAULT_EVENT_QUEUE_SIZE,
        classifier: Optional[TallyClassifier] = None,
        cmd_sink: Optional[CommandSink] = None,
        logger: Optional[logging.Logger] = None,
        on_event: Optional[Callable[[TallyEvent], None]] = None,
        on_transport_lost: Optional[Callable[[Exception], None]] = None,
    ) -> "ProtocolEngine":
        engine = cls(
            transport,
            response_timeout_s=response_timeout_s,
            event_queue_size=event_queue_size,
            classifier=classifier,
            cmd_sink=cmd_sink,
            logger=logger,
        )
        engine.on_event = on_event
        engine.on_transport_lost = on_transport_lost
        engine.start_rx_thread()
        return engine
