"""
Format-version thresholds for every field whose presence or encoding changed
across map releases. Decoders and the writer ask ``field_encoding`` (or the
per-document ``Layout``) instead of comparing version numbers themselves.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from typing import Dict, Tuple

MIN_FORMAT_VERSION = 1
MAX_FORMAT_VERSION = 21
LABELS_RELOCATED_VERSION = 21


class Field(Enum):
    CUSTOM_ENV_COLORS = "custom_env_colors"
    ROOM_HASH_INDEX = "room_hash_index"
    MAP_USER_DATA = "map_user_data"
    MAP_SYMBOL_FONT = "map_symbol_font"
    ROOM_ID_HASH = "room_id_hash"
    MAP_LABELS = "map_labels"
    AREA_USER_DATA = "area_user_data"
    AREA_LAST_ZOOM = "area_last_zoom"
    AREA_LABELS = "area_labels"
    LABEL_POSITION = "label_position"
    LABEL_FLAGS = "label_flags"
    SPECIAL_EXITS = "special_exits"
    SPECIAL_EXIT_LOCKS = "special_exit_locks"
    SYMBOL = "symbol"
    SYMBOL_COLOR = "symbol_color"
    ROOM_USER_DATA = "room_user_data"
    CUSTOM_LINES = "custom_lines"
    CUSTOM_LINE_COLOR = "custom_line_color"
    CUSTOM_LINE_STYLE = "custom_line_style"
    EXIT_LOCKS = "exit_locks"
    EXIT_STUBS = "exit_stubs"
    EXIT_WEIGHTS = "exit_weights"
    DOORS = "doors"


class Encoding(Enum):
    ABSENT = "absent"
    PRESENT = "present"
    # special exits: destination -> lock-prefixed command, then command -> destination
    BY_DESTINATION = "by_destination"
    BY_COMMAND = "by_command"
    SYMBOL_BYTE = "symbol_byte"
    SYMBOL_STRING = "symbol_string"
    RGB_LIST = "rgb_list"
    QCOLOR = "qcolor"
    STYLE_NAME = "style_name"
    STYLE_ENUM = "style_enum"
    POINT_2D = "point_2d"
    VECTOR_3D = "vector_3d"


# (first version, encoding) steps in ascending order; below the first step a
# field is absent.
_GATES: Dict[Field, Tuple[Tuple[int, Encoding], ...]] = {
    Field.CUSTOM_ENV_COLORS: ((5, Encoding.PRESENT),),
    Field.ROOM_HASH_INDEX: ((18, Encoding.PRESENT),),
    Field.MAP_USER_DATA: ((17, Encoding.PRESENT),),
    Field.MAP_SYMBOL_FONT: ((19, Encoding.PRESENT),),
    Field.ROOM_ID_HASH: ((7, Encoding.PRESENT),),
    Field.MAP_LABELS: ((MIN_FORMAT_VERSION, Encoding.PRESENT), (LABELS_RELOCATED_VERSION, Encoding.ABSENT)),
    Field.AREA_USER_DATA: ((17, Encoding.PRESENT),),
    Field.AREA_LAST_ZOOM: ((21, Encoding.PRESENT),),
    Field.AREA_LABELS: ((LABELS_RELOCATED_VERSION, Encoding.PRESENT),),
    Field.LABEL_POSITION: ((MIN_FORMAT_VERSION, Encoding.POINT_2D), (12, Encoding.VECTOR_3D)),
    Field.LABEL_FLAGS: ((15, Encoding.PRESENT),),
    Field.SPECIAL_EXITS: ((6, Encoding.BY_DESTINATION), (21, Encoding.BY_COMMAND)),
    Field.SPECIAL_EXIT_LOCKS: ((21, Encoding.PRESENT),),
    Field.SYMBOL: ((9, Encoding.SYMBOL_BYTE), (19, Encoding.SYMBOL_STRING)),
    Field.SYMBOL_COLOR: ((21, Encoding.PRESENT),),
    Field.ROOM_USER_DATA: ((10, Encoding.PRESENT),),
    Field.CUSTOM_LINES: ((11, Encoding.PRESENT),),
    Field.CUSTOM_LINE_COLOR: ((11, Encoding.RGB_LIST), (20, Encoding.QCOLOR)),
    Field.CUSTOM_LINE_STYLE: ((11, Encoding.STYLE_NAME), (20, Encoding.STYLE_ENUM)),
    Field.EXIT_LOCKS: ((11, Encoding.PRESENT),),
    Field.EXIT_STUBS: ((13, Encoding.PRESENT),),
    Field.EXIT_WEIGHTS: ((16, Encoding.PRESENT),),
    Field.DOORS: ((16, Encoding.PRESENT),),
}


def is_supported(version: int) -> bool:
    return MIN_FORMAT_VERSION <= version <= MAX_FORMAT_VERSION


def field_encoding(version: int, field: Field) -> Encoding:
    encoding = Encoding.ABSENT
    for threshold, candidate in _GATES[field]:
        if version < threshold:
            break
        encoding = candidate
    return encoding


@dataclass(frozen=True)
class Layout:
    """Every field encoding resolved for one format version."""

    version: int
    encodings: Dict[Field, Encoding]

    def __getitem__(self, field: Field) -> Encoding:
        return self.encodings[field]

    def has(self, field: Field) -> bool:
        return self.encodings[field] is not Encoding.ABSENT


@lru_cache(maxsize=None)
def layout_for(version: int) -> Layout:
    return Layout(version, {field: field_encoding(version, field) for field in Field})
