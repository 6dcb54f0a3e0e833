"""
Straight-line decoders for the map's nested records.

Each routine reads its record's fields in wire order and returns a finished
entity. Version-dependent fields are resolved through ``versions.Layout``.
Nothing here catches decode errors; the assembler decides what a failure
means for the document as a whole.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Tuple

from .cursor import ByteCursor
from .entities import (
    EXIT_SLOTS,
    Area,
    AreaExit,
    BoundingBox,
    Color,
    Font,
    Label,
    Room,
)
from .errors import MalformedField
from .pixmap import scan_embedded_png
from .sequences import (
    read_bool,
    read_color,
    read_count,
    read_int,
    read_int_list,
    read_ordered_map,
    read_point,
    read_sequence,
    read_string,
    read_uint,
    read_uint_list,
    read_vector3d,
)
from .versions import Encoding, Field, Layout

logger = logging.getLogger(__name__)

# Qt::PenStyle values and the names older maps stored instead of them.
PEN_NONE = 0
PEN_SOLID = 1
PEN_DASH = 2
PEN_DOT = 3
PEN_DASH_DOT = 4
PEN_DASH_DOT_DOT = 5

PEN_STYLE_NAMES: Dict[str, int] = {
    "nopen": PEN_NONE,
    "solid line": PEN_SOLID,
    "dash line": PEN_DASH,
    "dot line": PEN_DOT,
    "dash dot line": PEN_DASH_DOT,
    "dash dot dot line": PEN_DASH_DOT_DOT,
}

FONT_RESYNC_WINDOW = 8192
FONT_FAMILY_MAX_BYTES = 2048


# --- map-level tables -----------------------------------------------------


def decode_env_colors(cursor: ByteCursor) -> Dict[int, int]:
    return read_ordered_map(cursor, read_int, read_int, field="envColors")


def decode_area_names(cursor: ByteCursor) -> Dict[int, str]:
    return read_ordered_map(cursor, read_int, read_string, field="areaNames")


def decode_custom_env_colors(cursor: ByteCursor) -> Dict[int, Color]:
    return read_ordered_map(cursor, read_int, read_color, field="customEnvColors")


def decode_hash_table(cursor: ByteCursor, *, field: str) -> Dict[str, int]:
    return read_ordered_map(cursor, read_string, read_uint, field=field)


def decode_user_data(cursor: ByteCursor, *, field: str = "userData") -> Dict[str, str]:
    return read_ordered_map(cursor, read_string, read_string, field=field)


def _find_font_family(window: bytes) -> int | None:
    for idx in range(max(len(window) - 6, 0)):
        length = int.from_bytes(window[idx:idx + 4], "big")
        if not 0 < length <= FONT_FAMILY_MAX_BYTES or length % 2:
            continue
        if window[idx + 4] == 0 and 0x20 <= window[idx + 5] < 0x7F:
            return idx
    return None


def _read_font_family(cursor: ByteCursor, resync: bool) -> str:
    start = cursor.position
    try:
        return cursor.read_qstring("mapSymbolFont.family")
    except MalformedField:
        if not resync:
            raise
        hit = _find_font_family(cursor.peek(FONT_RESYNC_WINDOW + 6))
        if hit is None:
            raise
        logger.warning(
            "font family at 0x%X unreadable, resuming at plausible string 0x%X",
            start,
            cursor.position + hit,
        )
        cursor.skip(hit)
        return cursor.read_qstring("mapSymbolFont.family")


def decode_font(cursor: ByteCursor, *, resync: bool = True) -> Font:
    family = _read_font_family(cursor, resync)
    cursor.field = "mapSymbolFont"
    style_name = cursor.read_qstring()
    point_size = cursor.read_float64()
    pixel_size = cursor.read_int32()
    style_hint = cursor.read_int8()
    style_strategy = cursor.read_uint16()
    cursor.skip(1)
    weight = cursor.read_int8()
    font_bits = cursor.read_int8()
    stretch = cursor.read_uint16()
    extended_bits = cursor.read_int8()
    letter_spacing = cursor.read_int32()
    word_spacing = cursor.read_int32()
    hinting = cursor.read_int8()
    capitalization = cursor.read_int8()
    return Font(
        family=family,
        style_name=style_name,
        point_size=point_size,
        pixel_size=pixel_size,
        style_hint=style_hint,
        style_strategy=style_strategy,
        weight=weight,
        font_bits=font_bits,
        stretch=stretch,
        extended_bits=extended_bits,
        letter_spacing=letter_spacing,
        word_spacing=word_spacing,
        hinting_preference=hinting,
        capitalization=capitalization,
    )


# --- labels ---------------------------------------------------------------


def decode_label(cursor: ByteCursor, layout: Layout, area_id: int) -> Label:
    offset = cursor.position
    label_id = cursor.read_int32("label.id")
    if layout[Field.LABEL_POSITION] is Encoding.VECTOR_3D:
        position = read_vector3d(cursor)
    else:
        x, y = read_point(cursor)
        position = (x, y, 0.0)
    cursor.skip(16, "label.unused")
    width = cursor.read_float64("label.size")
    height = cursor.read_float64()
    text = cursor.read_qstring("label.text")
    cursor.field = "label.colors"
    foreground = read_color(cursor)
    background = read_color(cursor)
    cursor.read_uint32("label.pixmap")
    pixmap = scan_embedded_png(cursor)
    no_scaling = True
    show_on_top = True
    if layout.has(Field.LABEL_FLAGS):
        no_scaling = cursor.read_bool("label.noScaling")
        show_on_top = cursor.read_bool("label.showOnTop")
    logger.debug("@0x%X label %d area %d (%d image bytes)", offset, label_id, area_id, len(pixmap or b""))
    return Label(
        id=label_id,
        area_id=area_id,
        position=position,
        size=(width, height),
        text=text,
        foreground=foreground,
        background=background,
        pixmap=pixmap,
        no_scaling=no_scaling,
        show_on_top=show_on_top,
    )


def decode_label_list(cursor: ByteCursor, layout: Layout, area_id: int) -> List[Label]:
    return read_sequence(cursor, lambda c: decode_label(c, layout, area_id), field="labels")


# --- areas ----------------------------------------------------------------


def _read_area_exit(cursor: ByteCursor) -> AreaExit:
    room_id = cursor.read_int32()
    destination = cursor.read_int32()
    direction = cursor.read_int32()
    return AreaExit(room_id, destination, direction)


def decode_area(cursor: ByteCursor, area_id: int, layout: Layout, name: str = "") -> Area:
    offset = cursor.position
    rooms = read_uint_list(cursor, field="area.rooms")
    z_levels = read_int_list(cursor, field="area.zLevels")
    exits = read_sequence(cursor, _read_area_exit, field="area.exits")
    grid_mode = cursor.read_bool("area.gridMode")
    cursor.field = "area.bounds"
    max_x, max_y, max_z = (cursor.read_int32() for _ in range(3))
    min_x, min_y, min_z = (cursor.read_int32() for _ in range(3))
    span = read_vector3d(cursor)
    x_max_by_z = read_ordered_map(cursor, read_int, read_int, field="area.xMaxForZ")
    y_max_by_z = read_ordered_map(cursor, read_int, read_int, field="area.yMaxForZ")
    x_min_by_z = read_ordered_map(cursor, read_int, read_int, field="area.xMinForZ")
    y_min_by_z = read_ordered_map(cursor, read_int, read_int, field="area.yMinForZ")
    cursor.field = "area.pos"
    position = read_vector3d(cursor)
    is_zone = cursor.read_bool("area.isZone")
    zone_area_ref = cursor.read_int32("area.zoneAreaRef")
    user_data: Dict[str, str] = {}
    if layout.has(Field.AREA_USER_DATA):
        user_data = decode_user_data(cursor, field="area.userData")
    last_zoom = None
    if layout.has(Field.AREA_LAST_ZOOM):
        last_zoom = cursor.read_float64("area.lastZoom")
    labels: List[Label] = []
    if layout.has(Field.AREA_LABELS):
        labels = decode_label_list(cursor, layout, area_id)
    logger.debug("@0x%X area %d: %d rooms, %d labels", offset, area_id, len(rooms), len(labels))
    return Area(
        id=area_id,
        name=name,
        rooms=rooms,
        z_levels=z_levels,
        exits=exits,
        grid_mode=grid_mode,
        bounds=BoundingBox(min_x, min_y, min_z, max_x, max_y, max_z),
        span=span,
        x_max_by_z=x_max_by_z,
        y_max_by_z=y_max_by_z,
        x_min_by_z=x_min_by_z,
        y_min_by_z=y_min_by_z,
        position=position,
        is_zone=is_zone,
        zone_area_ref=zone_area_ref,
        user_data=user_data,
        last_zoom=last_zoom,
        labels=labels,
    )


# --- rooms ----------------------------------------------------------------


def _decode_special_exits(cursor: ByteCursor, layout: Layout) -> Tuple[Dict[str, int], List[str]]:
    encoding = layout[Field.SPECIAL_EXITS]
    if encoding is Encoding.ABSENT:
        return {}, []
    if encoding is Encoding.BY_COMMAND:
        exits = read_ordered_map(cursor, read_string, read_int, field="room.specialExits")
        locks: List[str] = []
        if layout.has(Field.SPECIAL_EXIT_LOCKS):
            locks = read_sequence(cursor, read_string, field="room.specialExitLocks")
        return exits, locks

    # Older maps keyed the table by destination and folded the lock state
    # into a leading "0"/"1" on the command. Several commands may share one
    # destination, so this is read pairwise instead of as a keyed map.
    exits = {}
    locks = []
    for _ in range(read_count(cursor, field="room.specialExits")):
        destination = cursor.read_int32()
        command = cursor.read_qstring()
        if command[:1] in ("0", "1"):
            if command[0] == "1":
                locks.append(command[1:])
            command = command[1:]
        exits[command] = destination
    return exits, locks


def _decode_symbol(cursor: ByteCursor, layout: Layout) -> str:
    encoding = layout[Field.SYMBOL]
    if encoding is Encoding.SYMBOL_STRING:
        return cursor.read_qstring("room.symbol")
    if encoding is Encoding.SYMBOL_BYTE:
        code = cursor.read_uint8("room.symbol")
        return chr(code) if code else ""
    return ""


def _read_rgb_list(cursor: ByteCursor) -> Color:
    channels = read_int_list(cursor, field="room.customLinesColor")
    red, green, blue = (list(channels) + [0, 0, 0])[:3]
    return Color.from_rgb(red & 0xFF, green & 0xFF, blue & 0xFF)


def _read_style_name(cursor: ByteCursor) -> int:
    name = cursor.read_qstring()
    return PEN_STYLE_NAMES.get(name.strip().lower(), PEN_SOLID)


def _decode_custom_lines(cursor: ByteCursor, layout: Layout):
    lines = read_ordered_map(
        cursor,
        read_string,
        lambda c: read_sequence(c, read_point, field="room.customLines.points"),
        field="room.customLines",
    )
    arrows = read_ordered_map(cursor, read_string, read_bool, field="room.customLinesArrow")
    if layout[Field.CUSTOM_LINE_COLOR] is Encoding.QCOLOR:
        colors = read_ordered_map(cursor, read_string, read_color, field="room.customLinesColor")
    else:
        colors = read_ordered_map(cursor, read_string, _read_rgb_list, field="room.customLinesColor")
    if layout[Field.CUSTOM_LINE_STYLE] is Encoding.STYLE_ENUM:
        styles = read_ordered_map(cursor, read_string, read_int, field="room.customLinesStyle")
    else:
        styles = read_ordered_map(cursor, read_string, _read_style_name, field="room.customLinesStyle")
    return lines, arrows, colors, styles


def decode_room(cursor: ByteCursor, room_id: int, layout: Layout) -> Room:
    offset = cursor.position
    area_id = cursor.read_int32("room.area")
    cursor.field = "room.position"
    x = cursor.read_int32()
    y = cursor.read_int32()
    z = cursor.read_int32()
    cursor.field = "room.exits"
    exits = tuple(cursor.read_int32() for _ in range(EXIT_SLOTS))
    environment = cursor.read_int32("room.environment")
    weight = cursor.read_int32("room.weight")
    name = cursor.read_qstring("room.name")
    locked = cursor.read_bool("room.isLocked")
    special_exits, special_exit_locks = _decode_special_exits(cursor, layout)
    symbol = _decode_symbol(cursor, layout)

    symbol_color = None
    if layout.has(Field.SYMBOL_COLOR):
        cursor.field = "room.symbolColor"
        color = read_color(cursor)
        symbol_color = color if color.valid else None

    user_data: Dict[str, str] = {}
    if layout.has(Field.ROOM_USER_DATA):
        user_data = decode_user_data(cursor, field="room.userData")

    lines: Dict[str, List[Tuple[float, float]]] = {}
    arrows: Dict[str, bool] = {}
    colors: Dict[str, Color] = {}
    styles: Dict[str, int] = {}
    if layout.has(Field.CUSTOM_LINES):
        lines, arrows, colors, styles = _decode_custom_lines(cursor, layout)

    exit_locks: List[int] = []
    if layout.has(Field.EXIT_LOCKS):
        exit_locks = read_int_list(cursor, field="room.exitLocks")
    stubs: List[int] = []
    if layout.has(Field.EXIT_STUBS):
        stubs = read_int_list(cursor, field="room.stubs")
    exit_weights: Dict[str, int] = {}
    if layout.has(Field.EXIT_WEIGHTS):
        exit_weights = read_ordered_map(cursor, read_string, read_int, field="room.exitWeights")
    doors: Dict[str, int] = {}
    if layout.has(Field.DOORS):
        doors = read_ordered_map(cursor, read_string, read_int, field="room.doors")
    logger.debug("@0x%X room %d area %d at (%d,%d,%d)", offset, room_id, area_id, x, y, z)

    return Room(
        id=room_id,
        area_id=area_id,
        x=x,
        y=y,
        z=z,
        exits=exits,
        environment=environment,
        weight=weight,
        name=name,
        locked=locked,
        special_exits=special_exits,
        special_exit_locks=special_exit_locks,
        symbol=symbol,
        symbol_color=symbol_color,
        user_data=user_data,
        custom_lines=lines,
        custom_line_arrows=arrows,
        custom_line_colors=colors,
        custom_line_styles=styles,
        exit_locks=exit_locks,
        stubs=stubs,
        exit_weights=exit_weights,
        doors=doors,
    )
