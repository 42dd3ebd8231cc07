from __future__ import annotations

TERMINATOR = ":"
TERMINATOR_BYTE = TERMINATOR.encode("ascii")
ENCODING = "utf-8"

# Order matters: the backslash must be escaped first so later escapes are not re-escaped.
ESCAPES: tuple[tuple[str, str], ...] = (
    ("\\", "\\5C"),
    ("|", "\\7C"),
    (";", "\\3B"),
    (TERMINATOR, "\\3A"),
)


def escape(payload: str) -> str:
    """Replace reserved characters with a backslash + two-hex-digit code."""
    for char, code in ESCAPES:
        payload = payload.replace(char, code)
    return payload


def unescape(text: str) -> str:
    """
    Inverse of escape().

    Inbound frames are never unescaped by the receive path; this is for
    callers that need the literal text back (e.g. a filename they sent).
    """
    for char, code in reversed(ESCAPES):
        text = text.replace(code, char)
    return text


def encode_command(command: str) -> bytes:
    """Escape a command and append the frame terminator."""
    return (escape(command) + TERMINATOR).encode(ENCODING)
