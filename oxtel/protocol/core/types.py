# oxtel/protocol/core/types.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

# Positional field kinds -> numeric base (None = not numeric)
FIELD_BASES: dict[str, Optional[int]] = {
    "hex": 16,
    "dec": 10,
    "bool": 2,
    "skip": None,
    "rest": None,
}


@dataclass(frozen=True)
class FieldDef:
    """One fixed-width positional field. width is ignored for kind='rest'."""
    name: str
    width: int
    kind: str = "hex"

    def __post_init__(self) -> None:
        if self.kind not in FIELD_BASES:
            raise ValueError(f"Unknown field kind '{self.kind}' for field '{self.name}'")
        if self.kind != "rest" and self.width < 1:
            raise ValueError(f"Field '{self.name}' must be at least one character wide")


def hex_field(name: str, width: int = 1) -> FieldDef:
    return FieldDef(name, width, "hex")


def dec_field(name: str, width: int = 1) -> FieldDef:
    return FieldDef(name, width, "dec")


def bool_field(name: str) -> FieldDef:
    return FieldDef(name, 1, "bool")


def skip_field(width: int = 1) -> FieldDef:
    return FieldDef("_", width, "skip")


def rest_field(name: str) -> FieldDef:
    return FieldDef(name, 0, "rest")
