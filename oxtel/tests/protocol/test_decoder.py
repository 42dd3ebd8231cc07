from __future__ import annotations

import pytest

import oxtel.protocol.core.decoder as dec_mod
from oxtel.core.errors import DecodeError
from oxtel.protocol.core.enums import Layer
from oxtel.protocol.core.types import FieldDef, bool_field, dec_field, hex_field, rest_field, skip_field


def test_parse_number_hex_and_dec():
    assert dec_mod.parse_number("FF", 16) == 255
    assert dec_mod.parse_number("ff", 16) == 255
    assert dec_mod.parse_number("09", 10) == 9


@pytest.mark.parametrize("text,base", [("G", 16), ("A", 10), ("", 16), ("+1", 10), (" 1", 10), ("1_0", 10), ("2", 2)])
def test_parse_number_rejects_invalid_text(text, base):
    with pytest.raises(DecodeError):
        dec_mod.parse_number(text, base, field="x")


def test_decode_fields_mixed_bases_per_field():
    layout = (hex_field("a"), dec_field("b", 2), hex_field("c", 2))
    assert dec_mod.decode_fields(layout, "A19FF") == {"a": 10, "b": 19, "c": 255}


def test_decode_fields_same_text_differs_by_base():
    assert dec_mod.decode_fields((hex_field("x", 2),), "10") == {"x": 16}
    assert dec_mod.decode_fields((dec_field("x", 2),), "10") == {"x": 10}


def test_decode_fields_hex_letter_in_decimal_field_fails():
    with pytest.raises(DecodeError):
        dec_mod.decode_fields((dec_field("port", 2),), "1A")


def test_decode_fields_skip_and_rest():
    layout = (hex_field("layer"), skip_field(), rest_field("name"))
    assert dec_mod.decode_fields(layout, "3Xclip.mov") == {"layer": 3, "name": "clip.mov"}


def test_decode_fields_rest_may_be_empty():
    assert dec_mod.decode_fields((hex_field("layer"), rest_field("name")), "0") == {"layer": 0, "name": ""}


def test_decode_fields_bool():
    layout = (bool_field("a"), bool_field("b"))
    assert dec_mod.decode_fields(layout, "10") == {"a": True, "b": False}

    with pytest.raises(DecodeError):
        dec_mod.decode_fields(layout, "12")


def test_decode_fields_too_short_raises():
    with pytest.raises(DecodeError) as ei:
        dec_mod.decode_fields((hex_field("a", 2), hex_field("b", 2)), "0A1")
    assert ei.value.details["field"] == "b"


def test_decode_fields_ignores_trailing_text():
    assert dec_mod.decode_fields((hex_field("a"),), "1FFFF") == {"a": 1}


def test_field_def_rejects_unknown_kind_and_zero_width():
    with pytest.raises(ValueError):
        FieldDef("x", 1, "octal")
    with pytest.raises(ValueError):
        FieldDef("x", 0, "hex")


def test_require_part():
    parts = dec_mod.split_fields("000101,eth0")
    assert dec_mod.require_part(parts, 1, field="iface") == "eth0"
    with pytest.raises(DecodeError):
        dec_mod.require_part(parts, 2, field="ip")


def test_as_enum_known_and_unknown_values():
    assert dec_mod.as_enum(Layer, 3) is Layer.LAYER_3
    out = dec_mod.as_enum(Layer, 12)
    assert out == 12
    assert not isinstance(out, Layer)


def test_decode_error_is_value_error():
    with pytest.raises(ValueError):
        dec_mod.parse_number("Z", 16)
