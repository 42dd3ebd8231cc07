from __future__ import annotations

import threading
import time
from concurrent.futures import Future, TimeoutError as FutureTimeout
from typing import Any, Callable, Optional

from oxtel.core.errors import ResponseTimeoutError


class PendingRequest:
    """Holds a Future for the single outstanding correlated request."""

    def __init__(self, prefix: str, timeout_s: float):
        self.prefix = str(prefix)
        self.timeout_s = float(timeout_s)
        self.created_at = time.perf_counter()
        self.future: Future = Future()
        self._lock = threading.Lock()

    def add_done_callback(self, cb: Callable[[Future], Any]) -> Any:
        """Forward callback registration to the underlying Future."""
        return self.future.add_done_callback(cb)

    def done(self) -> bool:
        return self.future.done()

    def matches(self, frame: str) -> bool:
        return frame.startswith(self.prefix)

    def set_response(self, frame: str) -> bool:
        """Resolve with the frame text after the prefix. Returns False if already resolved."""
        with self._lock:
            if self.future.done():
                return False
            self.future.set_result(frame[len(self.prefix):])
            return True

    def fail(self, exc: BaseException) -> bool:
        with self._lock:
            if self.future.done():
                return False
            self.future.set_exception(exc)
            return True

    def wait(self, timeout: Optional[float] = None) -> str:
        """
        Block until the response body arrives.

        Raises ResponseTimeoutError when the window elapses, or whatever
        exception the request was failed with (e.g. DisconnectedError).
        """
        timeout_s = self.timeout_s if timeout is None else float(timeout)
        try:
            return self.future.result(timeout=timeout_s)
        except FutureTimeout:
            self.fail(
                ResponseTimeoutError(
                    f"Timed out waiting for response to '{self.prefix}' after {timeout_s}s",
                    details={"prefix": self.prefix, "timeout_s": timeout_s},
                )
            )
            # A response may have landed between the timeout and fail(); the future decides.
            return self.future.result(timeout=0)
