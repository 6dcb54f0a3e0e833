"""
Decoder for the pre-QDataStream map files that open with the ``ATADNOOM``
tag. Strings there are single-byte length prefixed ASCII and there is no
area field on rooms, so every room is filed under the default area.
"""

from __future__ import annotations

import logging
from typing import Dict, List

from .cursor import ByteCursor
from .entities import (
    DEFAULT_AREA_ID,
    EXIT_SLOTS,
    NO_EXIT,
    SHORT_DIRECTIONS,
    Area,
    Color,
    Label,
    LegacyLine,
    MapDocument,
    Room,
    direction_index,
)
from .errors import UnsupportedVersion
from .sequences import read_count

logger = logging.getLogger(__name__)

LEGACY_TAG = b"ATADNOOM"
LEGACY_MIN_VERSION = 1
LEGACY_MAX_VERSION = 3
DEFAULT_AREA_NAME = "Default Area"
# Legacy labels carry a font point size instead of a box; map units per point
# and the average glyph width relative to the point size.
LEGACY_POINT_UNITS = 0.05
LEGACY_GLYPH_WIDTH = 0.6


def _read_short_string(cursor: ByteCursor) -> str:
    length = cursor.read_uint8()
    if not length:
        return ""
    return cursor.read_bytes(length).decode("latin-1")


def _rgb_color(value: int) -> Color:
    return Color.from_rgb((value >> 16) & 0xFF, (value >> 8) & 0xFF, value & 0xFF)


def _decode_room(cursor: ByteCursor, version: int) -> Room:
    room_id = cursor.read_int32("legacy.room.id")
    x = cursor.read_int32()
    y = cursor.read_int32()
    z = cursor.read_int32()
    name = _read_short_string(cursor)
    environment = cursor.read_int32("legacy.room.environment")

    exits = [NO_EXIT] * EXIT_SLOTS
    special_exits: Dict[str, int] = {}
    special_locks: List[str] = []
    exit_locks: List[int] = []
    exit_weights: Dict[str, int] = {}
    for _ in range(read_count(cursor, field="legacy.room.exits")):
        direction = _read_short_string(cursor)
        target = cursor.read_int32()
        locked = False
        weight = 0
        if version >= 3:
            locked = cursor.read_bool()
            weight = cursor.read_int32()
        slot = direction_index(direction)
        if slot is None:
            special_exits[direction] = target
            if locked:
                special_locks.append(direction)
            continue
        exits[slot] = target
        if locked:
            exit_locks.append(slot)
        if weight > 0:
            exit_weights[SHORT_DIRECTIONS[slot]] = weight

    return Room(
        id=room_id,
        area_id=DEFAULT_AREA_ID,
        x=x,
        y=y,
        z=z,
        exits=tuple(exits),
        environment=environment,
        name=name,
        special_exits=special_exits,
        special_exit_locks=special_locks,
        exit_locks=exit_locks,
        exit_weights=exit_weights,
    )


def _decode_line(cursor: ByteCursor) -> LegacyLine:
    coords = [cursor.read_int32("legacy.line") for _ in range(6)]
    color = cursor.read_int32()
    style = cursor.read_int8()
    width = cursor.read_int8()
    return LegacyLine(tuple(coords[:3]), tuple(coords[3:]), color, style, width)


def _decode_label(cursor: ByteCursor, label_id: int) -> Label:
    x = cursor.read_int32("legacy.label")
    y = cursor.read_int32()
    z = cursor.read_int32()
    text = _read_short_string(cursor)
    color = cursor.read_int32()
    size = cursor.read_int8()
    show_background = cursor.read_bool()
    return Label(
        id=label_id,
        area_id=DEFAULT_AREA_ID,
        position=(float(x), float(y), float(z)),
        size=(
            max(len(text), 1) * size * LEGACY_GLYPH_WIDTH * LEGACY_POINT_UNITS,
            size * LEGACY_POINT_UNITS,
        ),
        text=text,
        foreground=_rgb_color(color),
        background=Color(spec=1 if show_background else 0),
    )


def decode_legacy(cursor: ByteCursor, document: MapDocument) -> MapDocument:
    """Fill ``document`` from a tagged legacy stream; the cursor sits on the tag."""

    cursor.read_bytes(len(LEGACY_TAG), "legacy.tag")
    version = cursor.read_uint8("legacy.version")
    if not LEGACY_MIN_VERSION <= version <= LEGACY_MAX_VERSION:
        raise UnsupportedVersion(version, offset=len(LEGACY_TAG))
    document.format_version = version
    document.legacy = True
    logger.debug("legacy map version %d", version)

    for _ in range(read_count(cursor, field="legacy.areas")):
        area_id = cursor.read_int32("legacy.area.id")
        name = _read_short_string(cursor)
        document.area_names[area_id] = name
        document.areas[area_id] = Area(id=area_id, name=name)

    for _ in range(read_count(cursor, field="legacy.rooms")):
        room = _decode_room(cursor, version)
        document.rooms[room.id] = room

    default = document.areas.get(DEFAULT_AREA_ID)
    document.areas[DEFAULT_AREA_ID] = Area(
        id=DEFAULT_AREA_ID,
        name=default.name if default is not None and default.name else DEFAULT_AREA_NAME,
        rooms=sorted(document.rooms),
        z_levels=sorted({room.z for room in document.rooms.values()}),
    )
    document.area_names.setdefault(DEFAULT_AREA_ID, document.areas[DEFAULT_AREA_ID].name)

    for env_id in range(1, read_count(cursor, field="legacy.environments") + 1):
        document.environment_names[env_id] = _read_short_string(cursor)
        document.custom_env_colors[env_id] = _rgb_color(cursor.read_int32())

    if version >= 2:
        for _ in range(read_count(cursor, field="legacy.customLines")):
            document.legacy_lines.append(_decode_line(cursor))

    if version >= 3:
        labels = [_decode_label(cursor, idx) for idx in range(read_count(cursor, field="legacy.labels"))]
        if labels:
            document.labels_by_area[DEFAULT_AREA_ID] = labels

    return document
