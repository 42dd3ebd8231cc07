# oxtel/protocol/tallies.py
"""
Typed records for unsolicited frames ("tallies") pushed by the appliance.

Every record carries `raw`: the frame text without its terminator, exactly as
received (inbound frames are never unescaped).
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union

from .core.enums import (
    AudioSource,
    Direction,
    ExternalIODirection,
    ExternalIOType,
    KeyerPosition,
    Layer,
    MediaAction,
    MixerInput,
    PlayState,
    VideoSource,
)

# Decoded enum fields fall back to int for values the enum does not know.
LayerValue = Union[Layer, int]

_LOCK_MIXER = 0x00000001
_LOCK_LAYER0 = 0x00000100
_LOCK_LAYER_COUNT = 8


@dataclass(frozen=True, slots=True)
class TallyEvent:
    raw: str


@dataclass(frozen=True, slots=True)
class RawUnrecognized(TallyEvent):
    """A frame that matched no known tally prefix."""


@dataclass(frozen=True, slots=True)
class KeyerPositionTally(TallyEvent):
    layer: LayerValue
    direction: Union[KeyerPosition, int]


@dataclass(frozen=True, slots=True)
class ImageLoadTally(TallyEvent):
    layer: LayerValue
    template: str


@dataclass(frozen=True, slots=True)
class ImagePreloadTally(TallyEvent):
    layer: LayerValue
    template: str


@dataclass(frozen=True, slots=True)
class MediaTypes:
    """Media-type flags of a media tally. Only `images` is defined by the device."""
    unused1: bool = False
    unused2: bool = False
    unused3: bool = False
    unused4: bool = False
    unused5: bool = False
    images: bool = False


@dataclass(frozen=True, slots=True)
class MediaTally(TallyEvent):
    media_type: MediaTypes
    action: Union[MediaAction, int]
    filename: str


@dataclass(frozen=True, slots=True)
class PlayStateTally(TallyEvent):
    layer: LayerValue
    state: Union[PlayState, int]


@dataclass(frozen=True, slots=True)
class VideoTally(TallyEvent):
    mixer_input: Union[MixerInput, int]
    layer0: Union[Direction, int]
    layer1: Union[Direction, int]
    mixer_a_source: Union[VideoSource, int]
    mixer_b_source: Union[VideoSource, int]
    unused1: int
    unused2: int


@dataclass(frozen=True, slots=True)
class AudioProfileTally(TallyEvent):
    source: Union[AudioSource, int]
    profile: int


@dataclass(frozen=True, slots=True)
class Locks:
    mixer: bool = False
    layer0: bool = False
    layer1: bool = False
    layer2: bool = False
    layer3: bool = False
    layer4: bool = False
    layer5: bool = False
    layer6: bool = False
    layer7: bool = False

    @classmethod
    def from_mask(cls, mask: int) -> "Locks":
        layers = {
            f"layer{n}": bool(mask & (_LOCK_LAYER0 << n))
            for n in range(_LOCK_LAYER_COUNT)
        }
        return cls(mixer=bool(mask & _LOCK_MIXER), **layers)

    def to_mask(self) -> int:
        mask = _LOCK_MIXER if self.mixer else 0
        for n in range(_LOCK_LAYER_COUNT):
            if getattr(self, f"layer{n}"):
                mask |= _LOCK_LAYER0 << n
        return mask


@dataclass(frozen=True, slots=True)
class LockTally(TallyEvent):
    session_locks: Locks
    permanent_locks: Locks


@dataclass(frozen=True, slots=True)
class ExternalIOSourceChangedTally(TallyEvent):
    io_direction: Union[ExternalIODirection, int]
    io_id: int
    io_type: Union[ExternalIOType, int]
    configuration_id: int
    state: int


@dataclass(frozen=True, slots=True)
class ExternalIODynamicConfigChangedTally(TallyEvent):
    io_direction: Union[ExternalIODirection, int]
    io_id: int
    io_type: Union[ExternalIOType, int]
    local_interface: Optional[str] = None
    ip_address: Optional[str] = None
    port: Optional[int] = None
    ip_address2: Optional[str] = None
    port2: Optional[int] = None
    sdp_file_name: Optional[str] = None
