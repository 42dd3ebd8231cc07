from __future__ import annotations

from enum import IntEnum


class Layer(IntEnum):
    LAYER_0 = 0
    LAYER_1 = 1
    LAYER_2 = 2
    LAYER_3 = 3
    LAYER_4 = 4
    LAYER_5 = 5
    LAYER_6 = 6
    LAYER_7 = 7


class Direction(IntEnum):
    DOWN = 0x0
    UP = 0x1
    TOGGLE = 0x2


class KeyerPosition(IntEnum):
    DOWN = 0x0
    UP = 0x1
    IN_TRANSITION = 0x2


class MediaAction(IntEnum):
    DELETED = 0x0
    ADDED = 0x1
    MODIFIED = 0x2


class PlayState(IntEnum):
    STOPPED = 0x0
    PLAYING = 0x1


class MixerInput(IntEnum):
    A = 0x0
    B = 0x1
    IN_BETWEEN = 0x2


class VideoSource(IntEnum):
    PLAYER_A = 0x0
    EXT_IN_1 = 0x1
    PLAYER_B = 0x6
    EXT_IN_2 = 0x7
    EXT_IN_3 = 0x8
    EXT_IN_4 = 0x9
    EXT_IN_5 = 0xA
    EXT_IN_6 = 0xB
    COLOR = 0xF


class AudioSource(IntEnum):
    PLAYER_A = 0x0
    EXT_IN_1 = 0x1
    PLAYER_B = 0x6
    EXT_IN_2 = 0x7
    EXT_IN_3 = 0x8
    EXT_IN_4 = 0x9
    EXT_IN_5 = 0xA
    EXT_IN_6 = 0xB
    GFX_AUDIO = 0xE


class ExternalIOType(IntEnum):
    SDI = 0x0
    ST_2022_6 = 0x1
    ST_2110 = 0x3
    ST_2022_6_2022_7 = 0x4


class ExternalIODirection(IntEnum):
    IN = 0x0
    OUT = 0x1


# io_id meaning depends on ExternalIODirection: inputs and outputs share the numeric range.
class ExternalInputId(IntEnum):
    EXT_IN_1 = 0x1
    EXT_IN_2 = 0x7
    EXT_IN_3 = 0x8
    EXT_IN_4 = 0x9
    EXT_IN_5 = 0xA
    EXT_IN_6 = 0xB
    AES_IN = 0xE


class ExternalOutputId(IntEnum):
    PRIMARY = 0x0
    SECONDARY = 0x1
    CLEAN_PRIMARY = 0x2
    CLEAN_SECONDARY = 0x3
