from __future__ import annotations

import logging
import time
from dataclasses import fields
from pathlib import Path
from typing import Optional

from oxtel.app.config import OxtelConfig
from oxtel.protocol.engine import CommandEvent
from oxtel.protocol.tallies import TallyEvent
from oxtel.runtime.client import OxtelClient

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


# ---------------- Command trace sink ----------------

class LogCommandSink:
    """Log correlated-request telemetry at DEBUG."""
    def __init__(self, logger: Optional[logging.Logger] = None):
        self._log = logger or logging.getLogger("oxtel.cli.trace")

    def on_command(self, event: CommandEvent) -> None:
        self._log.debug("CMD %s prefix=%s id=%s %s", event.kind, event.name, event.request_id, dict(event.payload))


# ---------------- Logging ----------------

def configure_logging(level: str, log_file: Optional[Path] = None) -> None:
    """
    Configure the root logger (idempotent).
    Kept in CLI (presentation-layer concern).
    """
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    if not any(type(h) is logging.StreamHandler for h in root.handlers):
        sh = logging.StreamHandler()
        sh.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(sh)

    if log_file is None:
        return

    log_file.parent.mkdir(parents=True, exist_ok=True)
    target = str(log_file.resolve())
    for h in root.handlers:
        if isinstance(h, logging.FileHandler) and getattr(h, "baseFilename", None) == target:
            return

    fh = logging.FileHandler(log_file, encoding="utf-8", delay=True)
    fh.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(fh)


# ---------------- Printing ----------------

def format_event(event: TallyEvent) -> str:
    name = type(event).__name__
    body = " ".join(f"{f.name}={getattr(event, f.name)!r}" for f in fields(event) if f.name != "raw")
    return f"{name} raw={event.raw!r}" + (f" {body}" if body else "")


# ---------------- Commands ----------------

def _client(cfg: OxtelConfig) -> OxtelClient:
    return OxtelClient.from_config(cfg, cmd_sink=LogCommandSink())


def cmd_monitor(cfg: OxtelConfig, *, secs: Optional[float] = None) -> int:
    deadline = time.monotonic() + secs if secs else None

    with _client(cfg) as client:
        print(f"Connected to {cfg.address}:{cfg.port}. Waiting for tallies (Ctrl+C to stop)...")
        try:
            while deadline is None or time.monotonic() < deadline:
                event = client.get_event(timeout=0.2)
                if event is None:
                    if not client.is_connected:
                        break
                    continue
                print(format_event(event))
        except KeyboardInterrupt:
            pass

        st = client.status()

    if st.last_error:
        print(f"Connection lost: {st.last_error}")
    if st.stats is not None:
        s = st.stats
        print(f"frames={s.frames_rx} events={s.events_delivered} dropped={s.events_dropped} decode_errors={s.decode_errors}")
    return 0


def cmd_send(cfg: OxtelConfig, *, raw: str) -> int:
    with _client(cfg) as client:
        client.send(raw)
    print("OK")
    return 0


def cmd_query(cfg: OxtelConfig, *, prefix: str, params: str = "") -> int:
    with _client(cfg) as client:
        body = client.send_and_await_response(prefix, params)
    print(body)
    return 0
