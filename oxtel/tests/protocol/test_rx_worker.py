from __future__ import annotations

import logging
import time

from oxtel.protocol._internal.rx_worker import RxWorker
from oxtel.transport.errors import TransportClosedError


class FakeEngine:
    def __init__(self):
        self._log = logging.getLogger("test")
        self.pending_prefix = None
        self.calls = 0
        self.raise_once = False
        self.raise_transport: Exception | None = None
        self.failures: list[Exception] = []

    def _pump_rx(self):
        self.calls += 1
        if self.raise_transport is not None:
            raise self.raise_transport
        if self.raise_once:
            self.raise_once = False
            raise RuntimeError("boom")
        time.sleep(0.001)

    def _on_rx_failure(self, exc):
        self.failures.append(exc)


def test_rx_worker_stops_cleanly():
    eng = FakeEngine()
    w = RxWorker(eng)

    w.start()
    time.sleep(0.01)
    w.stop()
    w.join(timeout=0.5)

    assert not w.is_alive()
    assert eng.calls > 0
    assert eng.failures == []


def test_rx_worker_keeps_running_after_unexpected_exception():
    eng = FakeEngine()
    eng.raise_once = True
    w = RxWorker(eng)

    w.start()

    deadline = time.time() + 0.5
    while eng.calls < 2 and time.time() < deadline:
        time.sleep(0.005)

    w.stop()
    w.join(timeout=0.5)

    assert not w.is_alive()
    assert eng.calls >= 2


def test_rx_worker_exits_and_reports_transport_error():
    eng = FakeEngine()
    err = TransportClosedError("peer closed")
    eng.raise_transport = err
    w = RxWorker(eng)

    w.start()
    w.join(timeout=0.5)

    assert not w.is_alive()
    assert eng.calls == 1
    assert eng.failures == [err]


def test_rx_worker_does_not_report_error_after_stop():
    eng = FakeEngine()
    eng.raise_transport = TransportClosedError("closed by us")
    w = RxWorker(eng)
    w.stop()

    # run() inline: stop is already set, so the loop never reads
    w.run()

    assert eng.calls == 0
    assert eng.failures == []
