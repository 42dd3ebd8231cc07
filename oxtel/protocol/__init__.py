# protocol/__init__.py

# Core classes
from .core import FrameParser, encode_command, escape, unescape
from .classifier import TallyClassifier, TallySpec
from .engine import EngineStats, ProtocolEngine

__all__ = [
    "FrameParser", "encode_command", "escape", "unescape",
    "TallyClassifier", "TallySpec",
    "EngineStats", "ProtocolEngine",
]
