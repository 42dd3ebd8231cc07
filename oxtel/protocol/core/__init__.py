# protocol/core/__init__.py

from .framing import TERMINATOR, encode_command, escape, unescape
from .parser import FrameParser
from .types import FieldDef

__all__ = [
    "TERMINATOR", "encode_command", "escape", "unescape",
    "FrameParser",
    "FieldDef",
]
