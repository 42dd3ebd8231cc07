from __future__ import annotations

import logging
import threading
import time

import pytest

import oxtel.protocol.engine as eng_mod
from oxtel.core.errors import DisconnectedError, ResponseTimeoutError, WriteError
from oxtel.protocol.tallies import PlayStateTally, RawUnrecognized, VideoTally
from oxtel.transport.errors import TransportClosedError, TransportIOError


class FakeTransport:
    """Minimal TransportIO stub."""
    def __init__(self):
        self.writes: list[bytes] = []
        self.read_data: bytes = b""
        self.raise_on_write: Exception | None = None
        self.raise_on_read: Exception | None = None

    def write(self, data: bytes) -> int:
        if self.raise_on_write:
            raise self.raise_on_write
        self.writes.append(data)
        return len(data)

    def read(self, size: int) -> bytes:
        if self.raise_on_read:
            raise self.raise_on_read
        # Return whatever is staged (single-shot)
        data = self.read_data
        self.read_data = b""
        return data

    def flush(self) -> None:
        return None


class RecordingSink:
    def __init__(self):
        self.events = []

    def on_command(self, event) -> None:
        self.events.append(event)


def _make_engine(**kwargs):
    transport = FakeTransport()
    engine = eng_mod.ProtocolEngine(transport, logger=logging.getLogger("test"), **kwargs)
    return engine, transport


def _await_in_thread(engine, prefix, params="", timeout=None):
    """Run send_and_await_response on a worker thread; returns (thread, result dict)."""
    out: dict = {}

    def _run():
        try:
            out["body"] = engine.send_and_await_response(prefix, params, timeout=timeout)
        except Exception as e:
            out["error"] = e

    t = threading.Thread(target=_run, daemon=True)
    t.start()

    deadline = time.monotonic() + 1.0
    while engine.pending_prefix != prefix and time.monotonic() < deadline:
        time.sleep(0.001)
    assert engine.pending_prefix == prefix
    return t, out


# -----------------------------
# Sending
# -----------------------------

def test_send_command_escapes_and_terminates():
    engine, transport = _make_engine()
    engine.send_command("Y90a:b.swf")
    assert transport.writes == [b"Y90a\\3Ab.swf:"]


def test_send_command_failure_raises_write_error_and_reports_loss():
    engine, transport = _make_engine()
    lost = []
    engine.on_transport_lost = lost.append

    transport.raise_on_write = TransportClosedError("broken pipe")

    with pytest.raises(WriteError):
        engine.send_command("U0")

    assert len(lost) == 1
    assert isinstance(lost[0], TransportClosedError)


def test_send_command_failure_without_callback_closes_engine():
    engine, transport = _make_engine()
    transport.raise_on_write = TransportIOError("io")

    with pytest.raises(WriteError):
        engine.send_command("U0")

    assert engine.closed


def test_send_after_close_raises_disconnected():
    engine, _ = _make_engine()
    engine.close()
    with pytest.raises(DisconnectedError):
        engine.send_command("U0")
    with pytest.raises(DisconnectedError):
        engine.send_and_await_response("Ua")


def test_empty_prefix_rejected():
    engine, _ = _make_engine()
    with pytest.raises(ValueError):
        engine.send_and_await_response("")


# -----------------------------
# Correlation
# -----------------------------

def test_prefix_correlation_returns_body():
    engine, transport = _make_engine()
    t, out = _await_in_thread(engine, "Ua")

    engine._route("Ua0320019201000FF0000FF")
    t.join(timeout=1.0)

    assert out == {"body": "0320019201000FF0000FF"}
    assert transport.writes == [b"Ua:"]
    assert engine.pending_prefix is None
    assert engine.stats().responses == 1


def test_params_are_appended_to_prefix():
    engine, transport = _make_engine()
    t, out = _await_in_thread(engine, "jAY", "0")
    engine._route("jAY003")
    t.join(timeout=1.0)

    assert transport.writes == [b"jAY0:"]
    assert out["body"] == "003"


def test_response_is_not_classified_as_event():
    # "YS" is also a tally prefix: while it is outstanding, the frame is a response.
    engine, _ = _make_engine()
    t, out = _await_in_thread(engine, "YS")

    engine._route("YS11")
    t.join(timeout=1.0)

    assert out["body"] == "11"
    assert engine.get_event(timeout=0) is None


def test_non_matching_frames_are_events_while_request_outstanding():
    engine, _ = _make_engine()
    t, out = _await_in_thread(engine, "Ua")

    engine._route("YS11")
    assert isinstance(engine.get_event(timeout=0), PlayStateTally)
    assert engine.pending_prefix == "Ua"

    engine._route("Ua01")
    t.join(timeout=1.0)
    assert out["body"] == "01"


def test_second_frame_with_same_prefix_becomes_event():
    engine, _ = _make_engine()
    t, out = _await_in_thread(engine, "YS")
    engine._route("YS01")
    t.join(timeout=1.0)

    engine._route("YS11")
    ev = engine.get_event(timeout=0)
    assert out["body"] == "01"
    assert isinstance(ev, PlayStateTally)


def test_timeout_raises_and_clears_pending():
    engine, _ = _make_engine(response_timeout_s=0.05)

    start = time.monotonic()
    with pytest.raises(ResponseTimeoutError):
        engine.send_and_await_response("Ua")
    elapsed = time.monotonic() - start

    assert elapsed < 1.0
    assert engine.pending_prefix is None
    assert engine.stats().timeouts == 1


def test_per_call_timeout_overrides_default():
    engine, _ = _make_engine(response_timeout_s=30.0)
    with pytest.raises(ResponseTimeoutError):
        engine.send_and_await_response("Ua", timeout=0.02)


def test_send_failure_clears_pending():
    engine, transport = _make_engine()
    engine.on_transport_lost = lambda exc: None
    transport.raise_on_write = TransportIOError("io")

    with pytest.raises(WriteError):
        engine.send_and_await_response("Ua")

    assert engine.pending_prefix is None


def test_close_fails_outstanding_request():
    engine, _ = _make_engine()
    t, out = _await_in_thread(engine, "Ua")

    engine.close(TransportClosedError("eof"))
    t.join(timeout=1.0)

    assert isinstance(out["error"], DisconnectedError)


def test_correlated_calls_are_serialized():
    engine, transport = _make_engine()
    t1, out1 = _await_in_thread(engine, "Ua")

    out2: dict = {}
    t2 = threading.Thread(
        target=lambda: out2.setdefault("body", engine.send_and_await_response("Ub")),
        daemon=True,
    )
    t2.start()
    time.sleep(0.05)

    # Second caller is queued behind the first: nothing sent for it yet.
    assert transport.writes == [b"Ua:"]
    assert engine.pending_prefix == "Ua"

    engine._route("Ua01")
    t1.join(timeout=1.0)

    deadline = time.monotonic() + 1.0
    while engine.pending_prefix != "Ub" and time.monotonic() < deadline:
        time.sleep(0.001)
    engine._route("Ub02")
    t2.join(timeout=1.0)

    assert out1["body"] == "01"
    assert out2["body"] == "02"
    assert transport.writes == [b"Ua:", b"Ub:"]


# -----------------------------
# Events
# -----------------------------

def test_pump_rx_parses_and_classifies_events():
    engine, transport = _make_engine()
    transport.read_data = b"Y60101010000FF:ZZ:"

    engine._pump_rx()

    assert isinstance(engine.get_event(timeout=0), VideoTally)
    assert engine.get_event(timeout=0) == RawUnrecognized(raw="ZZ")
    assert engine.stats().frames_rx == 2


def test_pump_rx_propagates_transport_errors():
    engine, transport = _make_engine()
    transport.raise_on_read = TransportClosedError("eof")
    with pytest.raises(TransportClosedError):
        engine._pump_rx()


def test_malformed_tally_is_dropped_and_counted():
    engine, transport = _make_engine()
    transport.read_data = b"YSZZ:YS11:"

    engine._pump_rx()

    assert isinstance(engine.get_event(timeout=0), PlayStateTally)
    assert engine.get_event(timeout=0) is None
    assert engine.stats().decode_errors == 1


def test_full_queue_drops_without_blocking():
    engine, _ = _make_engine(event_queue_size=2)

    start = time.monotonic()
    for _ in range(10):
        engine._route("YS11")
    assert time.monotonic() - start < 0.5

    st = engine.stats()
    assert st.events_delivered == 2
    assert st.events_dropped == 8


def test_on_event_callback_invoked_and_errors_swallowed():
    engine, _ = _make_engine()
    seen = []
    engine.on_event = seen.append
    engine._route("YS11")
    assert len(seen) == 1

    def boom(_):
        raise RuntimeError("handler failed")

    engine.on_event = boom
    engine._route("YS10")  # must not raise
    assert engine.stats().events_delivered == 2


def test_frames_after_close_are_ignored():
    engine, _ = _make_engine()
    engine.close()
    engine._route("YS11")
    assert engine.get_event(timeout=0) is None
    assert engine.stats().frames_rx == 0


def test_iter_events_drains_then_stops_after_close():
    engine, _ = _make_engine()
    engine._route("YS11")
    engine._route("YS10")
    engine.close()

    events = list(engine.iter_events())
    assert [e.raw for e in events] == ["YS11", "YS10"]


def test_get_event_timeout_returns_none():
    engine, _ = _make_engine()
    start = time.monotonic()
    assert engine.get_event(timeout=0.05) is None
    assert time.monotonic() - start < 0.5


def test_queue_size_must_be_positive():
    with pytest.raises(ValueError):
        eng_mod.ProtocolEngine(FakeTransport(), event_queue_size=0)


# -----------------------------
# Command telemetry
# -----------------------------

def test_sink_receives_send_and_ok():
    sink = RecordingSink()
    engine, _ = _make_engine(cmd_sink=sink)
    t, _out = _await_in_thread(engine, "Ua", "1")
    engine._route("Ua99")
    t.join(timeout=1.0)

    kinds = [e.kind for e in sink.events]
    assert kinds == ["send", "ok"]
    assert sink.events[1].payload["response"] == "99"
    assert sink.events[1].payload["params"] == "1"
    assert sink.events[0].request_id == sink.events[1].request_id


def test_sink_receives_timeout():
    sink = RecordingSink()
    engine, _ = _make_engine(cmd_sink=sink, response_timeout_s=0.02)
    with pytest.raises(ResponseTimeoutError):
        engine.send_and_await_response("Ua")
    assert [e.kind for e in sink.events] == ["send", "timeout"]


def test_failing_sink_does_not_break_request():
    class BadSink(RecordingSink):
        def on_command(self, event) -> None:
            raise RuntimeError("sink down")

    engine, _ = _make_engine(cmd_sink=BadSink())
    t, out = _await_in_thread(engine, "Ua")
    engine._route("Ua01")
    t.join(timeout=1.0)
    assert out["body"] == "01"


# -----------------------------
# RX thread
# -----------------------------

def test_rx_thread_reports_read_failure_once():
    engine, transport = _make_engine()
    lost = []
    engine.on_transport_lost = lost.append
    transport.raise_on_read = TransportClosedError("eof")

    engine.start_rx_thread()
    deadline = time.monotonic() + 1.0
    while engine.rx_running and time.monotonic() < deadline:
        time.sleep(0.005)

    assert not engine.rx_running
    assert len(lost) == 1


def test_create_starts_rx_thread_and_stop_joins():
    transport = FakeTransport()
    engine = eng_mod.ProtocolEngine.create(transport, logger=logging.getLogger("test"))
    try:
        assert engine.rx_running
    finally:
        engine.stop_rx_thread()
    assert not engine.rx_running


def test_sink_reports_write_failure_not_disconnect():
    sink = RecordingSink()
    engine, transport = _make_engine(cmd_sink=sink)
    transport.raise_on_write = TransportClosedError("broken pipe")

    with pytest.raises(WriteError):
        engine.send_and_await_response("Ua")

    assert engine.closed
    assert [e.kind for e in sink.events] == ["send", "error"]
    assert sink.events[1].payload["error"] == "Failed to write command frame."
