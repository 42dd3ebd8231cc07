# oxtel/core/errors.py
from __future__ import annotations


class OxtelError(Exception):
    """
    Base class for all expected operational errors raised by the Oxtel client.
    """

    #: Stable machine-readable identifier (for CLI exit mapping, logging, etc.)
    code: str = "unknown"

    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        details: dict | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.hint = hint
        self.details = details or {}

    def __str__(self) -> str:
        return self.message


# ---------------------------------------------------------------------------
# Configuration errors (no network access yet)
# ---------------------------------------------------------------------------

class ConfigError(OxtelError):
    """
    Client configuration is invalid.

    Examples:
      - unknown key in the YAML config file
      - port out of range
      - non-positive timeout or queue size
    """
    code = "config_error"


# ---------------------------------------------------------------------------
# Connection lifecycle errors
# ---------------------------------------------------------------------------

class OxtelConnectError(OxtelError, ConnectionError):
    """
    The TCP connection to the appliance could not be established.

    Examples:
      - host unreachable / connection refused
      - DNS resolution failure
      - connect timeout
    """
    code = "connect_error"


class DisconnectedError(OxtelError):
    """
    The connection is (or became) closed.

    Examples:
      - send() after disconnect()
      - a pending request aborted because the peer went away
    """
    code = "disconnected"


class WriteError(OxtelError):
    """
    Writing a command frame to the socket failed (usually a dropped peer).
    """
    code = "write_error"


# ---------------------------------------------------------------------------
# Protocol errors
# ---------------------------------------------------------------------------

class ResponseTimeoutError(OxtelError, TimeoutError):
    """
    No frame carrying the request prefix arrived within the response window.
    """
    code = "response_timeout"


class DecodeError(OxtelError, ValueError):
    """
    A tally or response field does not match its declared base or width.

    Examples:
      - non-hex character in a hex field
      - frame shorter than its fixed layout
      - missing comma-separated part in a dynamic config tally
    """
    code = "decode_error"
