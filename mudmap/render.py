"""
Rasterize the neighbourhood of one room with Pillow.

Only rooms of the centre room's area and z-level inside a square radius are
drawn. Layering, bottom to top: other-level ghosts, background labels, exits
and custom lines, rooms, the player highlight, foreground labels.
"""

from __future__ import annotations

import io
import logging
import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Sequence, Tuple

import numpy as np
from PIL import Image, ImageDraw, ImageFont

from .entities import (
    DIR_DOWN,
    DIR_UP,
    DOOR_CLOSED,
    DOOR_LOCKED,
    DOOR_OPEN,
    NO_EXIT,
    SHORT_DIRECTIONS,
    Label,
    MapDocument,
    Room,
)
from .palette import DEFAULT_ENV_COLORS, RGBA, custom_colors, environment_color, lightness
from .records import PEN_DASH, PEN_DASH_DOT, PEN_DASH_DOT_DOT, PEN_DOT, PEN_NONE, PEN_SOLID

logger = logging.getLogger(__name__)

Point = Tuple[float, float]

# Screen-space unit vectors for the eight planar directions (screen y grows down).
DIRECTION_VECTORS: Sequence[Point] = (
    (0.0, -1.0),
    (0.707, -0.707),
    (1.0, 0.0),
    (0.707, 0.707),
    (0.0, 1.0),
    (-0.707, 0.707),
    (-1.0, 0.0),
    (-0.707, -0.707),
)
OPPOSITE_DIRECTION = (4, 5, 6, 7, 0, 1, 2, 3)

DOOR_COLORS: Dict[int, RGBA] = {
    DOOR_OPEN: (10, 155, 10, 255),
    DOOR_CLOSED: (155, 155, 10, 255),
    DOOR_LOCKED: (155, 10, 10, 255),
}
AREA_EXIT_COLOR: RGBA = (200, 100, 100, 255)
ONE_WAY_COLOR: RGBA = (180, 180, 180, 180)
BLACK: RGBA = (0, 0, 0, 255)
WHITE: RGBA = (255, 255, 255, 255)


@dataclass
class RenderConfig:
    width: int = 800
    height: int = 600
    radius: int = 15
    room_size: int = 20
    room_spacing: int = 25
    room_round: bool = False
    room_border: bool = True
    show_symbol: bool = True
    exit_width: int = 2
    exit_color: RGBA = (180, 180, 180, 255)
    background_color: RGBA = (30, 30, 30, 255)
    border_color: RGBA = (100, 100, 100, 255)
    player_color: RGBA = (255, 100, 100, 200)
    show_upper_level: bool = False
    show_lower_level: bool = False
    upper_level_alpha: int = 80
    lower_level_alpha: int = 80
    ansi_fallback: bool = False
    env_colors: Dict[int, RGBA] = field(default_factory=lambda: dict(DEFAULT_ENV_COLORS))


@dataclass
class RenderResult:
    image: Image.Image
    center_room: int
    area_id: int
    area_name: str
    z_level: int
    rooms_drawn: int


class RoomIndex:
    """Column arrays over every room so window queries are a single mask."""

    def __init__(self, rooms: Iterable[Room]) -> None:
        rooms = list(rooms)
        self.ids = np.fromiter((room.id for room in rooms), dtype=np.int64, count=len(rooms))
        self.columns = np.array(
            [(room.x, room.y, room.z, room.area_id) for room in rooms], dtype=np.int64
        ).reshape(-1, 4)

    def __len__(self) -> int:
        return int(self.ids.size)

    def window(self, area_id: int, center_x: int, center_y: int, z: int, radius: int) -> List[int]:
        if not len(self):
            return []
        xs, ys, zs, areas = self.columns.T
        mask = (
            (areas == area_id)
            & (zs == z)
            & (np.abs(xs - center_x) <= radius)
            & (np.abs(ys - center_y) <= radius)
        )
        return self.ids[mask].tolist()


def _dashed_line(draw: ImageDraw.ImageDraw, start: Point, end: Point, fill: RGBA, dash: float, gap: float, width: int = 1) -> None:
    length = math.hypot(end[0] - start[0], end[1] - start[1])
    if length < 1:
        return
    ux = (end[0] - start[0]) / length
    uy = (end[1] - start[1]) / length
    pos = 0.0
    while pos < length:
        stop = min(pos + dash, length)
        draw.line(
            [(start[0] + ux * pos, start[1] + uy * pos), (start[0] + ux * stop, start[1] + uy * stop)],
            fill=fill,
            width=width,
        )
        pos = stop + gap


class MapRenderer:
    def __init__(self, document: MapDocument, config: RenderConfig | None = None) -> None:
        self.document = document
        self.config = config or RenderConfig()
        self.index = RoomIndex(document.rooms.values())
        self.custom = custom_colors(document)
        self.font = ImageFont.load_default()

    # --- geometry ---------------------------------------------------------

    def _to_screen(self, x: float, y: float, center: Room) -> Point:
        spacing = self.config.room_spacing
        return (
            self.config.width / 2 + (x - center.x) * spacing,
            self.config.height / 2 - (y - center.y) * spacing,
        )

    def _collect(self, center: Room, z: int) -> List[Room]:
        ids = self.index.window(center.area_id, center.x, center.y, z, self.config.radius)
        rooms = [self.document.rooms[room_id] for room_id in ids]
        rooms.sort(key=lambda room: (-room.y, room.x))
        return rooms

    def _env_color(self, room: Room) -> RGBA:
        return environment_color(
            room.environment,
            self.document.env_colors,
            self.custom,
            self.config.env_colors,
            ansi_fallback=self.config.ansi_fallback,
        )

    # --- primitives -------------------------------------------------------

    def _arrow_head(self, draw: ImageDraw.ImageDraw, tip: Point, direction: Point, fill: RGBA) -> None:
        length = max(4, self.config.room_size // 4)
        angle = math.pi / 6
        dx, dy = direction
        cos_a, sin_a = math.cos(angle), math.sin(angle)
        left = (tip[0] - length * (dx * cos_a - dy * sin_a), tip[1] - length * (dy * cos_a + dx * sin_a))
        right = (tip[0] - length * (dx * cos_a + dy * sin_a), tip[1] - length * (dy * cos_a - dx * sin_a))
        draw.line([tip, left], fill=fill, width=1)
        draw.line([tip, right], fill=fill, width=1)

    def _styled_line(self, draw: ImageDraw.ImageDraw, start: Point, end: Point, fill: RGBA, style: int) -> None:
        if style == PEN_NONE:
            return
        if style == PEN_DOT:
            _dashed_line(draw, start, end, fill, 1, 3)
        elif style in (PEN_DASH, PEN_DASH_DOT, PEN_DASH_DOT_DOT):
            _dashed_line(draw, start, end, fill, 6, 4)
        else:
            draw.line([start, end], fill=fill, width=1)

    # --- layers -----------------------------------------------------------

    def _draw_other_level(self, draw: ImageDraw.ImageDraw, center: Room, lower: bool) -> None:
        cfg = self.config
        if lower:
            color = (50, 50, 70, cfg.lower_level_alpha)
            offset = (-2, 2)
        else:
            color = (70, 70, 50, cfg.upper_level_alpha)
            offset = (2, -2)
        half = cfg.room_size / 2
        for room in self._collect(center, center.z + (-1 if lower else 1)):
            sx, sy = self._to_screen(room.x, room.y, center)
            box = [sx + offset[0] - half, sy + offset[1] - half, sx + offset[0] + half - 1, sy + offset[1] + half - 1]
            if lower:
                draw.rectangle(box, fill=color)
            else:
                draw.rectangle(box, outline=color)

    def _draw_labels(self, image: Image.Image, draw: ImageDraw.ImageDraw, center: Room, on_top: bool) -> None:
        cfg = self.config
        for label in self.document.labels_for_area(center.area_id):
            if label.show_on_top != on_top or int(label.position[2]) != center.z:
                continue
            sx, sy = self._to_screen(label.position[0], label.position[1], center)
            width = int(label.size[0] * cfg.room_spacing)
            height = int(label.size[1] * cfg.room_spacing)
            if width <= 0 or height <= 0:
                continue
            if sx + width < 0 or sx > cfg.width or sy + height < 0 or sy > cfg.height:
                continue
            if label.pixmap:
                self._paste_label(image, label, int(sx), int(sy), width, height)
            elif label.text:
                if label.background.valid:
                    draw.rectangle([sx, sy, sx + width - 1, sy + height - 1], fill=label.background.to_rgba())
                draw.text((sx + 2, sy + 2), label.text, fill=label.foreground.to_rgba(), font=self.font)

    def _paste_label(self, image: Image.Image, label: Label, x: int, y: int, width: int, height: int) -> None:
        try:
            picture = Image.open(io.BytesIO(label.pixmap)).convert("RGBA")
        except OSError:
            logger.debug("label %d image could not be decoded", label.id)
            return
        if not label.no_scaling:
            picture = picture.resize((width, height), Image.Resampling.NEAREST)
        image.paste(picture, (x, y), picture)

    def _draw_exit_stub(self, draw: ImageDraw.ImageDraw, origin: Point, direction: int) -> None:
        half = self.config.room_size / 2
        vx, vy = DIRECTION_VECTORS[direction]
        start = (origin[0] + vx * half, origin[1] + vy * half)
        end = (start[0] + vx * half * 0.8, start[1] + vy * half * 0.8)
        color = self.config.exit_color
        draw.line([start, end], fill=color, width=self.config.exit_width)
        dot = max(2, self.config.room_size // 10)
        draw.ellipse([end[0] - dot, end[1] - dot, end[0] + dot, end[1] + dot], fill=color)

    def _draw_area_exit(self, draw: ImageDraw.ImageDraw, origin: Point, direction: int) -> None:
        half = self.config.room_size / 2
        vx, vy = DIRECTION_VECTORS[direction]
        start = (origin[0] + vx * half, origin[1] + vy * half)
        end = (start[0] + vx * half * 1.2, start[1] + vy * half * 1.2)
        draw.line([start, end], fill=AREA_EXIT_COLOR, width=self.config.exit_width)
        self._arrow_head(draw, end, (vx, vy), AREA_EXIT_COLOR)

    def _draw_door(self, draw: ImageDraw.ImageDraw, room: Room, direction: int, start: Point, end: Point) -> None:
        color = DOOR_COLORS.get(room.doors.get(SHORT_DIRECTIONS[direction], 0))
        if color is None:
            return
        mx = (start[0] + end[0]) / 2
        my = (start[1] + end[1]) / 2
        size = max(3, self.config.room_size // 6)
        draw.line([(mx - size, my - size), (mx + size, my + size)], fill=color, width=1)
        draw.line([(mx + size, my - size), (mx - size, my + size)], fill=color, width=1)

    def _draw_custom_lines(self, draw: ImageDraw.ImageDraw, room: Room, center: Room) -> None:
        for name, points in room.custom_lines.items():
            if not points:
                continue
            color = self.config.exit_color
            if name in room.custom_line_colors:
                color = room.custom_line_colors[name].to_rgba()
            style = room.custom_line_styles.get(name, PEN_SOLID)
            path = [self._to_screen(room.x, room.y, center)]
            path.extend(self._to_screen(round(px), round(py), center) for px, py in points)
            for start, end in zip(path, path[1:]):
                self._styled_line(draw, start, end, color, style)
            if room.custom_line_arrows.get(name):
                dx = path[-1][0] - path[-2][0]
                dy = path[-1][1] - path[-2][1]
                length = math.hypot(dx, dy)
                if length > 0:
                    self._arrow_head(draw, path[-1], (dx / length, dy / length), color)

    def _draw_legacy_lines(self, draw: ImageDraw.ImageDraw, center: Room) -> None:
        for line in self.document.legacy_lines:
            if line.start[2] != center.z and line.end[2] != center.z:
                continue
            red, green, blue = (line.color >> 16) & 0xFF, (line.color >> 8) & 0xFF, line.color & 0xFF
            start = self._to_screen(line.start[0], line.start[1], center)
            end = self._to_screen(line.end[0], line.end[1], center)
            self._styled_line(draw, start, end, (red, green, blue, 255), line.style)

    def _draw_exits(self, draw: ImageDraw.ImageDraw, rooms: List[Room], center: Room) -> None:
        in_view = {room.id for room in rooms}
        drawn = set()
        half = self.config.room_size / 2
        for room in rooms:
            origin = self._to_screen(room.x, room.y, center)
            for direction in range(8):
                target_id = room.exits[direction]
                if target_id == NO_EXIT:
                    continue
                target = self.document.rooms.get(target_id)
                if target is None:
                    continue
                if target.area_id != center.area_id:
                    self._draw_area_exit(draw, origin, direction)
                    continue
                if target.z != room.z or target_id not in in_view:
                    self._draw_exit_stub(draw, origin, direction)
                    continue
                key = (min(room.id, target_id), max(room.id, target_id))
                if key in drawn:
                    continue
                drawn.add(key)

                dest = self._to_screen(target.x, target.y, center)
                dx, dy = dest[0] - origin[0], dest[1] - origin[1]
                length = math.hypot(dx, dy)
                if length < 1:
                    continue
                nx, ny = dx / length, dy / length
                start = (origin[0] + nx * half, origin[1] + ny * half)
                end = (dest[0] - nx * half, dest[1] - ny * half)
                if target.exits[OPPOSITE_DIRECTION[direction]] != room.id:
                    _dashed_line(draw, start, end, ONE_WAY_COLOR, 1, 3, self.config.exit_width)
                    self._arrow_head(draw, end, (nx, ny), ONE_WAY_COLOR)
                else:
                    draw.line([start, end], fill=self.config.exit_color, width=self.config.exit_width)
                self._draw_door(draw, room, direction, start, end)

            for direction in room.stubs:
                if 0 <= direction < 8 and room.exits[direction] == NO_EXIT:
                    self._draw_exit_stub(draw, origin, direction)

            self._draw_custom_lines(draw, room, center)

    def _draw_up_down(self, draw: ImageDraw.ImageDraw, room: Room, cx: float, cy: float, fill_color: RGBA) -> None:
        size = self.config.room_size
        tip = size / 20.0
        base = size / 3.1
        contrast = BLACK if lightness(fill_color) > 127 else WHITE
        for direction, sign in ((DIR_UP, 1), (DIR_DOWN, -1)):
            real = room.exits[direction] != NO_EXIT
            if not real and direction not in room.stubs:
                continue
            door = DOOR_COLORS.get(room.door(direction))
            triangle = [
                (cx, cy + sign * tip),
                (cx - base, cy + sign * base),
                (cx + base, cy + sign * base),
            ]
            if real:
                draw.polygon(triangle, fill=door or contrast, outline=contrast)
            else:
                # stub: outline with a cross hatch
                draw.polygon(triangle, outline=door or contrast)
                draw.line([triangle[1], (cx + base / 2, cy + sign * (tip + base) / 2)], fill=door or contrast)
                draw.line([triangle[2], (cx - base / 2, cy + sign * (tip + base) / 2)], fill=door or contrast)

    def _draw_symbol(self, draw: ImageDraw.ImageDraw, room: Room, cx: float, cy: float, fill_color: RGBA) -> None:
        if room.symbol_color is not None:
            color = room.symbol_color.to_rgba()
        else:
            color = BLACK if lightness(fill_color) > 127 else WHITE
        glyph = room.symbol[0]
        left, top, right, bottom = draw.textbbox((0, 0), glyph, font=self.font)
        draw.text((cx - (right - left) / 2 - left, cy - (bottom - top) / 2 - top), glyph, fill=color, font=self.font)

    def _draw_room(self, draw: ImageDraw.ImageDraw, room: Room, cx: float, cy: float) -> None:
        cfg = self.config
        half = cfg.room_size / 2
        fill = self._env_color(room)
        box = [cx - half, cy - half, cx + half - 1, cy + half - 1]
        outline = cfg.border_color if cfg.room_border else None
        if cfg.room_round:
            draw.ellipse(box, fill=fill, outline=outline)
        else:
            draw.rectangle(box, fill=fill, outline=outline)
        self._draw_up_down(draw, room, cx, cy, fill)
        if cfg.show_symbol and room.symbol:
            self._draw_symbol(draw, room, cx, cy, fill)

    def _draw_player(self, draw: ImageDraw.ImageDraw) -> None:
        cfg = self.config
        cx, cy = cfg.width / 2, cfg.height / 2
        outer = cfg.room_size // 2 + 8
        inner = cfg.room_size // 2 + 2
        red, green, blue, alpha = cfg.player_color
        for radius in range(outer, inner - 1, -1):
            t = (radius - inner) / (outer - inner)
            ring = (red, green, blue, int(alpha * (1.0 - t * 0.7)))
            draw.ellipse([cx - radius, cy - radius, cx + radius, cy + radius], outline=ring)
        for radius in (inner, inner + 1):
            draw.ellipse([cx - radius, cy - radius, cx + radius, cy + radius], outline=cfg.player_color)

    def render(self, room_id: int) -> RenderResult:
        center = self.document.get_room(room_id)
        if center is None:
            raise ValueError(f"room {room_id} not found")
        area = self.document.get_area(center.area_id)
        if area is None:
            raise ValueError(f"area {center.area_id} not found")

        cfg = self.config
        image = Image.new("RGB", (cfg.width, cfg.height), cfg.background_color[:3])
        draw = ImageDraw.Draw(image, "RGBA")
        rooms = self._collect(center, center.z)

        if cfg.show_lower_level:
            self._draw_other_level(draw, center, lower=True)
        if cfg.show_upper_level:
            self._draw_other_level(draw, center, lower=False)
        self._draw_labels(image, draw, center, on_top=False)
        self._draw_legacy_lines(draw, center)
        self._draw_exits(draw, rooms, center)

        drawn = 0
        margin = cfg.room_size
        for room in rooms:
            sx, sy = self._to_screen(room.x, room.y, center)
            if sx < -margin or sx > cfg.width + margin or sy < -margin or sy > cfg.height + margin:
                continue
            self._draw_room(draw, room, sx, sy)
            drawn += 1

        self._draw_player(draw)
        self._draw_labels(image, draw, center, on_top=True)
        logger.debug("rendered %d rooms around %d (area %d, z %d)", drawn, room_id, center.area_id, center.z)
        return RenderResult(
            image=image,
            center_room=room_id,
            area_id=center.area_id,
            area_name=self.document.area_name(center.area_id),
            z_level=center.z,
            rooms_drawn=drawn,
        )


def render_fragment(document: MapDocument, room_id: int, config: RenderConfig | None = None) -> RenderResult:
    return MapRenderer(document, config).render(room_id)


def image_format_for(path: Path) -> str:
    return "PNG" if path.suffix.lower() == ".png" else "WEBP"


def encode_image(image: Image.Image, fmt: str = "WEBP", quality: int = 85) -> bytes:
    buffer = io.BytesIO()
    if fmt.upper() == "PNG":
        image.save(buffer, format="PNG", optimize=True)
    else:
        image.save(buffer, format="WEBP", quality=quality, lossless=quality >= 100)
    return buffer.getvalue()


def save_image(image: Image.Image, destination: Path, fmt: str | None = None, quality: int = 85) -> None:
    destination.parent.mkdir(parents=True, exist_ok=True)
    destination.write_bytes(encode_image(image, fmt or image_format_for(destination), quality))
