from __future__ import annotations

from typing import Protocol


class StreamTransport(Protocol):
    """
    What OxtelClient needs from a byte-stream connection to the appliance.

    read(n) returns 1..n bytes, or b"" when nothing arrived within the read
    timeout; end-of-stream raises TransportClosedError instead. write() sends
    the whole buffer. close() may be called more than once and from a thread
    other than the reader.
    """

    def open(self) -> None: ...
    def close(self) -> None: ...
    def is_open(self) -> bool: ...
    def read(self, n: int) -> bytes: ...
    def write(self, data: bytes) -> int: ...
    def flush(self) -> None: ...
