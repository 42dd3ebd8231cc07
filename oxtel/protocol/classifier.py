# oxtel/protocol/classifier.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, Mapping, Optional, Sequence, Tuple

from .core.decoder import as_enum, decode_fields, parse_number, require_part, split_fields
from .core.enums import (
    AudioSource,
    Direction,
    ExternalIODirection,
    ExternalInputId,
    ExternalIOType,
    ExternalOutputId,
    KeyerPosition,
    Layer,
    MediaAction,
    MixerInput,
    PlayState,
    VideoSource,
)
from .core.types import FieldDef, bool_field, dec_field, hex_field, rest_field, skip_field
from .tallies import (
    AudioProfileTally,
    ExternalIODynamicConfigChangedTally,
    ExternalIOSourceChangedTally,
    ImageLoadTally,
    ImagePreloadTally,
    KeyerPositionTally,
    LockTally,
    Locks,
    MediaTally,
    MediaTypes,
    PlayStateTally,
    RawUnrecognized,
    TallyEvent,
    VideoTally,
)

# build(raw, decoded_fields, data_after_prefix) -> event
TallyBuilder = Callable[[str, Dict[str, Any], str], TallyEvent]


@dataclass(frozen=True)
class TallySpec:
    prefix: str
    layout: Tuple[FieldDef, ...]
    build: TallyBuilder


# ---------------- Builders ----------------

def _keyer_position(raw: str, f: Dict[str, Any], _data: str) -> TallyEvent:
    return KeyerPositionTally(
        raw=raw,
        layer=as_enum(Layer, f["layer"]),
        direction=as_enum(KeyerPosition, f["direction"]),
    )


def _image_load(raw: str, f: Dict[str, Any], _data: str) -> TallyEvent:
    return ImageLoadTally(raw=raw, layer=as_enum(Layer, f["layer"]), template=f["template"])


def _image_preload(raw: str, f: Dict[str, Any], _data: str) -> TallyEvent:
    return ImagePreloadTally(raw=raw, layer=as_enum(Layer, f["layer"]), template=f["template"])


def _media(raw: str, f: Dict[str, Any], _data: str) -> TallyEvent:
    media_type = MediaTypes(
        unused1=f["unused1"],
        unused2=f["unused2"],
        unused3=f["unused3"],
        unused4=f["unused4"],
        unused5=f["unused5"],
        images=f["images"],
    )
    return MediaTally(
        raw=raw,
        media_type=media_type,
        action=as_enum(MediaAction, f["action"]),
        filename=f["filename"],
    )


def _play_state(raw: str, f: Dict[str, Any], _data: str) -> TallyEvent:
    return PlayStateTally(
        raw=raw,
        layer=as_enum(Layer, f["layer"]),
        state=as_enum(PlayState, f["state"]),
    )


def _video(raw: str, f: Dict[str, Any], _data: str) -> TallyEvent:
    return VideoTally(
        raw=raw,
        mixer_input=as_enum(MixerInput, f["mixer_input"]),
        layer0=as_enum(Direction, f["layer0"]),
        layer1=as_enum(Direction, f["layer1"]),
        mixer_a_source=as_enum(VideoSource, f["mixer_a_source"]),
        mixer_b_source=as_enum(VideoSource, f["mixer_b_source"]),
        unused1=f["unused1"],
        unused2=f["unused2"],
    )


def _audio_profile(raw: str, f: Dict[str, Any], _data: str) -> TallyEvent:
    return AudioProfileTally(raw=raw, source=as_enum(AudioSource, f["source"]), profile=f["profile"])


def _locks(raw: str, f: Dict[str, Any], _data: str) -> TallyEvent:
    return LockTally(
        raw=raw,
        session_locks=Locks.from_mask(f["session"]),
        permanent_locks=Locks.from_mask(f["permanent"]),
    )


def _io_id(direction: int, io_id: int) -> int:
    if direction == ExternalIODirection.IN:
        return as_enum(ExternalInputId, io_id)
    if direction == ExternalIODirection.OUT:
        return as_enum(ExternalOutputId, io_id)
    return io_id


def _ext_io_source_changed(raw: str, f: Dict[str, Any], _data: str) -> TallyEvent:
    return ExternalIOSourceChangedTally(
        raw=raw,
        io_direction=as_enum(ExternalIODirection, f["direction"]),
        io_id=_io_id(f["direction"], f["io_id"]),
        io_type=as_enum(ExternalIOType, f["io_type"]),
        configuration_id=f["configuration_id"],
        state=f["state"],
    )


def _ext_io_dynamic_config_changed(raw: str, f: Dict[str, Any], data: str) -> TallyEvent:
    io_type = f["io_type"]
    # Part 0 is the fixed-width header; the rest depends on the IO type.
    parts = split_fields(data)
    extra: Dict[str, Any] = {}

    if io_type != ExternalIOType.SDI:
        extra["local_interface"] = require_part(parts, 1, field="local_interface")

    if io_type in (ExternalIOType.ST_2022_6, ExternalIOType.ST_2022_6_2022_7):
        extra["ip_address"] = require_part(parts, 2, field="ip_address")
        extra["port"] = parse_number(require_part(parts, 3, field="port"), 10, field="port")

    if io_type == ExternalIOType.ST_2022_6_2022_7:
        extra["ip_address2"] = require_part(parts, 4, field="ip_address2")
        extra["port2"] = parse_number(require_part(parts, 5, field="port2"), 10, field="port2")

    if io_type == ExternalIOType.ST_2110:
        extra["sdp_file_name"] = require_part(parts, 2, field="sdp_file_name")

    return ExternalIODynamicConfigChangedTally(
        raw=raw,
        io_direction=as_enum(ExternalIODirection, f["direction"]),
        io_id=_io_id(f["direction"], f["io_id"]),
        io_type=as_enum(ExternalIOType, io_type),
        **extra,
    )


# ---------------- Table ----------------

_EXT_IO_HEADER = (
    hex_field("direction", 2),
    hex_field("io_id", 2),
    hex_field("io_type", 2),
)

DEFAULT_TALLY_SPECS: Tuple[TallySpec, ...] = (
    TallySpec("3", (hex_field("layer"), skip_field(), dec_field("direction")), _keyer_position),
    TallySpec("Y9", (hex_field("layer"), rest_field("template")), _image_load),
    TallySpec("YA", (hex_field("layer"), rest_field("template")), _image_preload),
    TallySpec(
        "YB",
        (
            bool_field("unused1"),
            bool_field("unused2"),
            bool_field("unused3"),
            bool_field("unused4"),
            bool_field("unused5"),
            bool_field("images"),
            hex_field("action"),
            rest_field("filename"),
        ),
        _media,
    ),
    TallySpec("YS", (hex_field("layer"), hex_field("state")), _play_state),
    TallySpec(
        "Y6",
        (
            hex_field("mixer_input"),
            hex_field("layer0"),
            hex_field("layer1"),
            hex_field("mixer_a_source"),
            hex_field("mixer_b_source"),
            hex_field("unused1", 2),
            hex_field("unused2", 2),
        ),
        _video,
    ),
    TallySpec("jAY", (hex_field("source"), hex_field("profile", 2)), _audio_profile),
    TallySpec("hOLY", (hex_field("session", 8), hex_field("permanent", 8)), _locks),
    TallySpec(
        "hXSY",
        _EXT_IO_HEADER + (hex_field("configuration_id", 2), hex_field("state", 2)),
        _ext_io_source_changed,
    ),
    TallySpec("hXDCY", _EXT_IO_HEADER, _ext_io_dynamic_config_changed),
)


class TallyClassifier:
    """
    Map an unsolicited frame to a typed tally by longest-prefix match.

    Specs are tried longest prefix first, so "hXDCY" wins over any shorter
    prefix that the same frame happens to start with.
    """

    def __init__(
        self,
        specs: Iterable[TallySpec] = DEFAULT_TALLY_SPECS,
        logger: Optional[logging.Logger] = None,
    ):
        self._log = logger or logging.getLogger(__name__)
        ordered = sorted(specs, key=lambda s: len(s.prefix), reverse=True)

        seen: Dict[str, TallySpec] = {}
        for spec in ordered:
            if not spec.prefix:
                raise ValueError("Tally prefix must not be empty")
            if spec.prefix in seen:
                raise ValueError(f"Duplicate tally prefix '{spec.prefix}'")
            seen[spec.prefix] = spec

        self._specs: Tuple[TallySpec, ...] = tuple(ordered)

    @property
    def specs(self) -> Sequence[TallySpec]:
        return self._specs

    @property
    def prefixes(self) -> Mapping[str, TallySpec]:
        return {s.prefix: s for s in self._specs}

    def match(self, frame: str) -> Optional[TallySpec]:
        for spec in self._specs:
            if frame.startswith(spec.prefix):
                return spec
        return None

    def classify(self, frame: str) -> TallyEvent:
        """
        Decode `frame` (terminator already removed).

        Raises DecodeError when a field violates its declared base or width.
        """
        spec = self.match(frame)
        if spec is None:
            return RawUnrecognized(raw=frame)

        data = frame[len(spec.prefix):]
        fields = decode_fields(spec.layout, data)
        event = spec.build(frame, fields, data)
        self._log.debug("Classified prefix=%s as %s", spec.prefix, type(event).__name__)
        return event
