# oxtel/protocol/_internal/rx_worker.py
from __future__ import annotations

import threading
from typing import TYPE_CHECKING

from oxtel.transport.errors import TransportError

if TYPE_CHECKING:
    from oxtel.protocol.engine import ProtocolEngine


class RxWorker(threading.Thread):
    """
    Thread that continuously reads from the transport and feeds ProtocolEngine.

    Stops on stop(), or on the first transport error (which is reported to the
    engine so the owning client can disconnect).
    """

    def __init__(self, proto_engine: "ProtocolEngine"):
        super().__init__(name="oxtel-rx", daemon=True)
        self.engine = proto_engine
        self._stop_event = threading.Event()

    def run(self) -> None:
        while not self._stop_event.is_set():
            try:
                self.engine._pump_rx()
            except TransportError as e:
                if not self._stop_event.is_set():
                    self.engine._on_rx_failure(e)
                return
            except Exception:
                self.engine._log.exception(
                    "RX_WORKER_EXCEPTION pending=%s",
                    getattr(self.engine, "pending_prefix", None),
                )
                self._stop_event.wait(0.01)

    def stop(self) -> None:
        self._stop_event.set()
