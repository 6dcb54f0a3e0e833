"""
Serialize a ``MapDocument`` back into the binary map format.

Only what fixtures and round-trip checks need: any supported format version
can be targeted, and every version-gated field follows ``versions.Layout`` so
the writer and the decoders agree on the same thresholds.
"""

from __future__ import annotations

import struct
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Mapping, Sequence, TypeVar

from .entities import DIRECTIONS, NO_EXIT, Area, Color, Font, Label, MapDocument, Room
from .legacy import LEGACY_POINT_UNITS, LEGACY_TAG
from .records import PEN_SOLID, PEN_STYLE_NAMES
from .versions import MAX_FORMAT_VERSION, Encoding, Field, Layout, is_supported, layout_for

K = TypeVar("K")
V = TypeVar("V")

_STYLE_BY_VALUE = {value: name for name, value in PEN_STYLE_NAMES.items()}


class StreamWriter:
    def __init__(self) -> None:
        self._chunks = bytearray()

    def getvalue(self) -> bytes:
        return bytes(self._chunks)

    def __len__(self) -> int:
        return len(self._chunks)

    def raw(self, data: bytes) -> None:
        self._chunks.extend(data)

    def uint8(self, value: int) -> None:
        self._chunks.extend(struct.pack(">B", value & 0xFF))

    def int8(self, value: int) -> None:
        self._chunks.extend(struct.pack(">b", value))

    def boolean(self, value: bool) -> None:
        self.uint8(1 if value else 0)

    def uint16(self, value: int) -> None:
        self._chunks.extend(struct.pack(">H", value & 0xFFFF))

    def int32(self, value: int) -> None:
        self._chunks.extend(struct.pack(">i", value))

    def uint32(self, value: int) -> None:
        self._chunks.extend(struct.pack(">I", value & 0xFFFFFFFF))

    def float64(self, value: float) -> None:
        self._chunks.extend(struct.pack(">d", value))

    def qstring(self, value: str | None) -> None:
        if value is None:
            self.uint32(0xFFFFFFFF)
            return
        payload = value.encode("utf-16-be")
        self.uint32(len(payload))
        self.raw(payload)

    def short_string(self, value: str) -> None:
        payload = value.encode("latin-1")
        self.uint8(len(payload))
        self.raw(payload)

    def sequence(self, items: Sequence[V], write_item: Callable[[V], None]) -> None:
        self.int32(len(items))
        for item in items:
            write_item(item)

    def ordered_map(self, mapping: Mapping[K, V], write_key: Callable[[K], None], write_value: Callable[[V], None]) -> None:
        self.int32(len(mapping))
        for key, value in mapping.items():
            write_key(key)
            write_value(value)

    def color(self, color: Color) -> None:
        self.int8(color.spec)
        for channel in (color.alpha, color.red, color.green, color.blue, color.pad):
            self.uint16(channel)

    def point(self, point: Iterable[float]) -> None:
        for value in point:
            self.float64(value)


def _write_font(out: StreamWriter, font: Font) -> None:
    out.qstring(font.family)
    out.qstring(font.style_name)
    out.float64(font.point_size)
    out.int32(font.pixel_size)
    out.int8(font.style_hint)
    out.uint16(font.style_strategy)
    out.uint8(0)
    out.int8(font.weight)
    out.int8(font.font_bits)
    out.uint16(font.stretch)
    out.int8(font.extended_bits)
    out.int32(font.letter_spacing)
    out.int32(font.word_spacing)
    out.int8(font.hinting_preference)
    out.int8(font.capitalization)


def _write_label(out: StreamWriter, label: Label, layout: Layout) -> None:
    out.int32(label.id)
    if layout[Field.LABEL_POSITION] is Encoding.VECTOR_3D:
        out.point(label.position)
    else:
        out.point(label.position[:2])
    out.float64(0.0)
    out.float64(0.0)
    out.point(label.size)
    out.qstring(label.text)
    out.color(label.foreground)
    out.color(label.background)
    out.uint32(1 if label.pixmap else 0)
    if label.pixmap:
        out.raw(label.pixmap)
    if layout.has(Field.LABEL_FLAGS):
        out.boolean(label.no_scaling)
        out.boolean(label.show_on_top)


def _write_area(out: StreamWriter, area: Area, labels: List[Label], layout: Layout) -> None:
    out.sequence(area.rooms, out.uint32)
    out.sequence(area.z_levels, out.int32)
    out.int32(len(area.exits))
    for area_exit in area.exits:
        out.int32(area_exit.room_id)
        out.int32(area_exit.destination)
        out.int32(area_exit.direction)
    out.boolean(area.grid_mode)
    bounds = area.bounds
    for value in (bounds.max_x, bounds.max_y, bounds.max_z, bounds.min_x, bounds.min_y, bounds.min_z):
        out.int32(value)
    out.point(area.span)
    for extrema in (area.x_max_by_z, area.y_max_by_z, area.x_min_by_z, area.y_min_by_z):
        out.ordered_map(extrema, out.int32, out.int32)
    out.point(area.position)
    out.boolean(area.is_zone)
    out.int32(area.zone_area_ref)
    if layout.has(Field.AREA_USER_DATA):
        out.ordered_map(area.user_data, out.qstring, out.qstring)
    if layout.has(Field.AREA_LAST_ZOOM):
        out.float64(area.last_zoom if area.last_zoom is not None else 0.0)
    if layout.has(Field.AREA_LABELS):
        out.sequence(labels, lambda label: _write_label(out, label, layout))


def _write_special_exits(out: StreamWriter, room: Room, layout: Layout) -> None:
    encoding = layout[Field.SPECIAL_EXITS]
    if encoding is Encoding.BY_COMMAND:
        out.ordered_map(room.special_exits, out.qstring, out.int32)
        if layout.has(Field.SPECIAL_EXIT_LOCKS):
            out.sequence(room.special_exit_locks, out.qstring)
    elif encoding is Encoding.BY_DESTINATION:
        out.int32(len(room.special_exits))
        for command, destination in room.special_exits.items():
            prefix = "1" if command in room.special_exit_locks else "0"
            out.int32(destination)
            out.qstring(prefix + command)


def _write_rgb_list(out: StreamWriter, color: Color) -> None:
    out.sequence(list(color.to_rgba()[:3]), out.int32)


def _write_style_name(out: StreamWriter, style: int) -> None:
    out.qstring(_STYLE_BY_VALUE.get(style, _STYLE_BY_VALUE[PEN_SOLID]))


def _write_room(out: StreamWriter, room: Room, layout: Layout) -> None:
    out.int32(room.id)
    out.int32(room.area_id)
    out.int32(room.x)
    out.int32(room.y)
    out.int32(room.z)
    for target in room.exits:
        out.int32(target)
    out.int32(room.environment)
    out.int32(room.weight)
    out.qstring(room.name)
    out.boolean(room.locked)
    _write_special_exits(out, room, layout)

    symbol = layout[Field.SYMBOL]
    if symbol is Encoding.SYMBOL_STRING:
        out.qstring(room.symbol)
    elif symbol is Encoding.SYMBOL_BYTE:
        code = ord(room.symbol[0]) if room.symbol else 0
        out.uint8(code if code < 0x100 else 0)
    if layout.has(Field.SYMBOL_COLOR):
        out.color(room.symbol_color or Color(spec=0, alpha=0xFFFF))
    if layout.has(Field.ROOM_USER_DATA):
        out.ordered_map(room.user_data, out.qstring, out.qstring)
    if layout.has(Field.CUSTOM_LINES):
        out.ordered_map(room.custom_lines, out.qstring, lambda points: out.sequence(points, out.point))
        out.ordered_map(room.custom_line_arrows, out.qstring, out.boolean)
        if layout[Field.CUSTOM_LINE_COLOR] is Encoding.QCOLOR:
            out.ordered_map(room.custom_line_colors, out.qstring, out.color)
        else:
            out.ordered_map(room.custom_line_colors, out.qstring, lambda color: _write_rgb_list(out, color))
        if layout[Field.CUSTOM_LINE_STYLE] is Encoding.STYLE_ENUM:
            out.ordered_map(room.custom_line_styles, out.qstring, out.int32)
        else:
            out.ordered_map(room.custom_line_styles, out.qstring, lambda style: _write_style_name(out, style))
    if layout.has(Field.EXIT_LOCKS):
        out.sequence(room.exit_locks, out.int32)
    if layout.has(Field.EXIT_STUBS):
        out.sequence(room.stubs, out.int32)
    if layout.has(Field.EXIT_WEIGHTS):
        out.ordered_map(room.exit_weights, out.qstring, out.int32)
    if layout.has(Field.DOORS):
        out.ordered_map(room.doors, out.qstring, out.int32)


def _grouped_labels(document: MapDocument) -> Dict[int, List[Label]]:
    grouped: Dict[int, List[Label]] = {}
    for label in document.iter_labels():
        grouped.setdefault(label.area_id, []).append(label)
    return grouped


def encode_document(document: MapDocument, version: int | None = None) -> bytes:
    target = version if version is not None else (document.format_version or MAX_FORMAT_VERSION)
    if not is_supported(target):
        raise ValueError(f"cannot write format version {target}")
    layout = layout_for(target)
    out = StreamWriter()
    labels = _grouped_labels(document)

    out.int32(target)
    out.ordered_map(document.env_colors, out.int32, out.int32)
    out.ordered_map(document.area_names, out.int32, out.qstring)
    if layout.has(Field.CUSTOM_ENV_COLORS):
        out.ordered_map(document.custom_env_colors, out.int32, out.color)
    if layout.has(Field.ROOM_HASH_INDEX):
        out.ordered_map(document.room_hash_index, out.qstring, out.uint32)
    if layout.has(Field.MAP_USER_DATA):
        out.ordered_map(document.user_data, out.qstring, out.qstring)
    if layout.has(Field.MAP_SYMBOL_FONT):
        _write_font(out, document.symbol_font or Font(family="Bitstream Vera Sans Mono"))
        out.float64(document.font_fudge_factor)
        out.boolean(document.use_only_map_font)

    out.int32(len(document.areas))
    for area_id, area in document.areas.items():
        out.int32(area_id)
        _write_area(out, area, labels.get(area_id, []), layout)

    if layout.has(Field.ROOM_ID_HASH):
        out.ordered_map(document.room_id_hash, out.qstring, out.int32)

    if layout.has(Field.MAP_LABELS):
        out.int32(len(labels))
        for area_id, bucket in labels.items():
            out.int32(len(bucket))
            out.int32(area_id)
            for label in bucket:
                _write_label(out, label, layout)

    for room in document.rooms.values():
        _write_room(out, room, layout)
    return out.getvalue()


def encode_legacy(document: MapDocument, version: int = 3) -> bytes:
    """Tagged legacy layout; rooms lose everything that format cannot carry."""

    out = StreamWriter()
    out.raw(LEGACY_TAG)
    out.uint8(version)
    named = {area_id: area.name for area_id, area in document.areas.items()}
    out.int32(len(named))
    for area_id, name in named.items():
        out.int32(area_id)
        out.short_string(name)

    out.int32(len(document.rooms))
    for room in document.rooms.values():
        out.int32(room.id)
        out.int32(room.x)
        out.int32(room.y)
        out.int32(room.z)
        out.short_string(room.name)
        out.int32(room.environment)
        exits = [(name, target) for name, target in zip(DIRECTIONS, room.exits) if target != NO_EXIT]
        exits.extend(room.special_exits.items())
        out.int32(len(exits))
        for name, target in exits:
            out.short_string(name)
            out.int32(target)
            if version >= 3:
                out.boolean(False)
                out.int32(0)

    out.int32(len(document.environment_names))
    for env_id, name in document.environment_names.items():
        out.short_string(name)
        red, green, blue, _ = document.custom_env_colors.get(env_id, Color()).to_rgba()
        out.int32((red << 16) | (green << 8) | blue)

    if version >= 2:
        out.int32(len(document.legacy_lines))
        for line in document.legacy_lines:
            for value in (*line.start, *line.end):
                out.int32(value)
            out.int32(line.color)
            out.int8(line.style)
            out.int8(line.width)

    if version >= 3:
        legacy_labels = list(document.iter_labels())
        out.int32(len(legacy_labels))
        for label in legacy_labels:
            for value in label.position:
                out.int32(int(value))
            out.short_string(label.text)
            red, green, blue, _ = label.foreground.to_rgba()
            out.int32((red << 16) | (green << 8) | blue)
            out.int8(round(label.size[1] / LEGACY_POINT_UNITS))
            out.boolean(label.background.valid)
    return out.getvalue()


def write_document(document: MapDocument, destination: Path, version: int | None = None) -> None:
    destination.parent.mkdir(parents=True, exist_ok=True)
    destination.write_bytes(encode_document(document, version))

