from __future__ import annotations

import string
from enum import IntEnum
from typing import Any, Dict, Sequence, Type, TypeVar, Union

from oxtel.core.errors import DecodeError
from oxtel.protocol.core.types import FIELD_BASES, FieldDef

_DIGITS = {
    16: frozenset(string.hexdigits),
    10: frozenset(string.digits),
    2: frozenset("01"),
}

E = TypeVar("E", bound=IntEnum)


def parse_number(text: str, base: int, *, field: str = "?") -> int:
    """
    Strictly parse `text` in `base`.

    int() alone would accept signs, underscores and whitespace, none of which
    are valid inside a fixed-width field.
    """
    if not text or any(c not in _DIGITS[base] for c in text):
        raise DecodeError(
            f"Field '{field}' is not a base-{base} number: {text!r}",
            details={"field": field, "text": text, "base": base},
        )
    return int(text, base)


def decode_fields(layout: Sequence[FieldDef], data: str) -> Dict[str, Any]:
    """
    Decode `data` according to a fixed positional layout.

    Numeric fields become ints, 'bool' fields become True/False, a 'rest' field
    takes the remaining text. Skipped fields are not returned. Text after the
    last fixed field is ignored.
    """
    result: Dict[str, Any] = {}
    pos = 0

    for field in layout:
        if field.kind == "rest":
            result[field.name] = data[pos:]
            pos = len(data)
            continue

        end = pos + field.width
        if end > len(data):
            raise DecodeError(
                f"Frame too short for field '{field.name}' "
                f"(need {end} chars, have {len(data)})",
                details={"field": field.name, "data": data},
            )
        chunk = data[pos:end]
        pos = end

        if field.kind == "skip":
            continue

        value = parse_number(chunk, FIELD_BASES[field.kind], field=field.name)  # type: ignore[arg-type]
        result[field.name] = bool(value) if field.kind == "bool" else value

    return result


def split_fields(data: str, sep: str = ",") -> list[str]:
    return data.split(sep)


def require_part(parts: Sequence[str], idx: int, *, field: str) -> str:
    if idx >= len(parts):
        raise DecodeError(
            f"Missing part {idx} ('{field}') in {len(parts)}-part payload",
            details={"field": field, "parts": list(parts)},
        )
    return parts[idx]


def as_enum(enum_cls: Type[E], value: int) -> Union[E, int]:
    """Return the enum member for `value`, or the plain int when it is not a known member."""
    try:
        return enum_cls(value)
    except ValueError:
        return value
