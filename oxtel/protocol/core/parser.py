from __future__ import annotations

import logging
from typing import Optional

from .framing import ENCODING, TERMINATOR_BYTE

MAX_FRAME_BYTES = 1 << 20


class FrameParser:
    """Split an inbound byte stream into terminator-delimited text frames."""

    def __init__(self, logger: Optional[logging.Logger] = None, max_frame_bytes: int = MAX_FRAME_BYTES):
        self.buffer = bytearray()
        self.max_frame_bytes = int(max_frame_bytes)
        self._log = logger or logging.getLogger(__name__)
        self._discarding = False

    # ---------------- Public API ----------------
    def feed(self, data: bytes) -> None:
        """Feed raw bytes into the parser buffer."""
        self.buffer.extend(data)
        self._log.debug(
            "Parser fed %d bytes, buffer_len=%d",
            len(data),
            len(self.buffer),
        )

    def get_frame(self) -> Optional[str]:
        """
        Return the next complete frame without its terminator, if available.

        Surrounding whitespace (e.g. CR/LF between frames) is trimmed and
        frames that are empty after trimming are skipped. A frame longer than
        `max_frame_bytes` is dropped up to and including its terminator.
        """
        while True:
            idx = self.buffer.find(TERMINATOR_BYTE)
            if idx < 0:
                if len(self.buffer) > self.max_frame_bytes:
                    self._log.warning(
                        "Frame exceeds %d bytes without terminator, discarding %d bytes",
                        self.max_frame_bytes,
                        len(self.buffer),
                    )
                    self.buffer.clear()
                    self._discarding = True
                return None  # Wait for more bytes

            raw = bytes(self.buffer[:idx])
            del self.buffer[: idx + len(TERMINATOR_BYTE)]

            if self._discarding:
                # tail of a frame whose head was already thrown away
                self._discarding = False
                continue

            if len(raw) > self.max_frame_bytes:
                self._log.warning("Frame too large: %d bytes (max=%d), dropped", len(raw), self.max_frame_bytes)
                continue

            frame = raw.decode(ENCODING, errors="replace").strip()
            if not frame:
                self._log.debug("Empty frame skipped")
                continue

            self._log.debug("Parsed frame len=%d text=%r", len(frame), frame)
            return frame

    def reset(self) -> None:
        self.buffer.clear()
        self._discarding = False
