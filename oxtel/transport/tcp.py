from __future__ import annotations

import select
import socket
import threading
from typing import Optional

from .errors import TransportClosedError, TransportIOError, TransportOpenError


class TCPTransport:
    """
    TCP stream transport implemented via the socket module.

    The socket itself stays blocking (or bounded by `write_timeout`). Only
    read() polls: it waits at most `read_timeout` seconds for data so a reader
    thread can observe cancellation between reads, while a write to a peer that
    is slow to drain its receive window simply blocks until the frame is out.
    """

    def __init__(
        self,
        host: str,
        port: int,
        connect_timeout: float = 5.0,
        read_timeout: float = 0.1,
        write_timeout: Optional[float] = None,
    ):
        self.host = host
        self.port = int(port)
        self.connect_timeout = connect_timeout
        self.read_timeout = read_timeout
        self.write_timeout = write_timeout
        self.sock: Optional[socket.socket] = None
        self._close_lock = threading.Lock()
        # one frame on the wire at a time; sendall() may be interrupted mid-buffer otherwise
        self._write_lock = threading.Lock()

    def open(self) -> None:
        try:
            self.sock = socket.create_connection(
                (self.host, self.port),
                timeout=self.connect_timeout,
            )
            self.sock.settimeout(self.write_timeout)
            self.sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        except OSError as e:
            self.sock = None
            raise TransportOpenError(f"TCP connect to {self.host}:{self.port} failed: {e}") from None

    def close(self) -> None:
        with self._close_lock:
            sock, self.sock = self.sock, None
        if sock is None:
            return
        try:
            sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            # already reset by the peer
            pass
        finally:
            sock.close()

    def is_open(self) -> bool:
        return self.sock is not None

    def read(self, n: int) -> bytes:
        sock = self.sock
        if sock is None:
            raise TransportIOError("read while transport not open")

        try:
            ready, _, _ = select.select([sock], [], [], self.read_timeout)
            if not ready:
                return b""
            data = sock.recv(n)
        except (ConnectionResetError, ConnectionAbortedError) as e:
            raise TransportClosedError(f"TCP read failed: {e}") from None
        except (OSError, ValueError) as e:
            # select() on a socket closed by another thread
            if self.sock is None:
                raise TransportClosedError("transport closed") from None
            raise TransportIOError(f"TCP read failed: {e}") from None

        if not data:
            raise TransportClosedError("peer closed the connection")
        return data

    def write(self, data: bytes) -> int:
        sock = self.sock
        if sock is None:
            raise TransportIOError("write while transport not open")

        try:
            with self._write_lock:
                sock.sendall(data)
            return len(data)
        except (BrokenPipeError, ConnectionResetError, ConnectionAbortedError) as e:
            raise TransportClosedError(f"TCP write failed: {e}") from None
        except socket.timeout:
            raise TransportIOError(
                f"TCP write did not complete within {self.write_timeout}s"
            ) from None
        except OSError as e:
            raise TransportIOError(f"TCP write failed: {e}") from None

    def flush(self) -> None:
        # sendall() hands the whole frame to the kernel; nothing is buffered here.
        if self.sock is None:
            raise TransportIOError("flush while transport not open")
