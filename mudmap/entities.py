from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Tuple

NO_EXIT = -1
DEFAULT_AREA_ID = -1

DIRECTIONS = (
    "north",
    "northeast",
    "east",
    "southeast",
    "south",
    "southwest",
    "west",
    "northwest",
    "up",
    "down",
    "in",
    "out",
)
SHORT_DIRECTIONS = ("n", "ne", "e", "se", "s", "sw", "w", "nw", "up", "down", "in", "out")
EXIT_SLOTS = len(DIRECTIONS)

DIR_NORTH, DIR_NORTHEAST, DIR_EAST, DIR_SOUTHEAST = 0, 1, 2, 3
DIR_SOUTH, DIR_SOUTHWEST, DIR_WEST, DIR_NORTHWEST = 4, 5, 6, 7
DIR_UP, DIR_DOWN, DIR_IN, DIR_OUT = 8, 9, 10, 11

DOOR_NONE = 0
DOOR_OPEN = 1
DOOR_CLOSED = 2
DOOR_LOCKED = 3

Point2D = Tuple[float, float]
Vector3D = Tuple[float, float, float]


def direction_index(name: str) -> int | None:
    """Slot index for a long or short direction name, ``None`` if unknown."""
    lowered = name.strip().lower()
    if lowered in DIRECTIONS:
        return DIRECTIONS.index(lowered)
    if lowered in SHORT_DIRECTIONS:
        return SHORT_DIRECTIONS.index(lowered)
    return None


@dataclass(frozen=True)
class Color:
    """QColor as stored on the wire: spec byte plus five 16-bit channels."""

    spec: int = 1
    alpha: int = 0xFFFF
    red: int = 0
    green: int = 0
    blue: int = 0
    pad: int = 0

    @property
    def valid(self) -> bool:
        return self.spec != 0

    def to_rgba(self) -> Tuple[int, int, int, int]:
        return (self.red >> 8, self.green >> 8, self.blue >> 8, self.alpha >> 8)

    @classmethod
    def from_rgb(cls, red: int, green: int, blue: int, alpha: int = 255) -> "Color":
        return cls(1, alpha * 0x101, red * 0x101, green * 0x101, blue * 0x101, 0)


@dataclass(frozen=True)
class Font:
    family: str = ""
    style_name: str = ""
    point_size: float = -1.0
    pixel_size: int = -1
    style_hint: int = 0
    style_strategy: int = 0
    weight: int = 50
    font_bits: int = 0
    stretch: int = 0
    extended_bits: int = 0
    letter_spacing: int = 0
    word_spacing: int = 0
    hinting_preference: int = 0
    capitalization: int = 0


@dataclass(frozen=True)
class AreaExit:
    room_id: int
    destination: int
    direction: int


@dataclass(frozen=True)
class BoundingBox:
    min_x: int = 0
    min_y: int = 0
    min_z: int = 0
    max_x: int = 0
    max_y: int = 0
    max_z: int = 0


@dataclass(frozen=True)
class Label:
    id: int
    area_id: int
    position: Vector3D
    size: Point2D
    text: str = ""
    foreground: Color = field(default_factory=Color)
    background: Color = field(default_factory=Color)
    pixmap: bytes | None = None
    no_scaling: bool = True
    show_on_top: bool = True


@dataclass(frozen=True)
class Area:
    id: int
    name: str = ""
    rooms: List[int] = field(default_factory=list)
    z_levels: List[int] = field(default_factory=list)
    exits: List[AreaExit] = field(default_factory=list)
    grid_mode: bool = False
    bounds: BoundingBox = field(default_factory=BoundingBox)
    span: Vector3D = (0.0, 0.0, 0.0)
    x_max_by_z: Dict[int, int] = field(default_factory=dict)
    y_max_by_z: Dict[int, int] = field(default_factory=dict)
    x_min_by_z: Dict[int, int] = field(default_factory=dict)
    y_min_by_z: Dict[int, int] = field(default_factory=dict)
    position: Vector3D = (0.0, 0.0, 0.0)
    is_zone: bool = False
    zone_area_ref: int = 0
    user_data: Dict[str, str] = field(default_factory=dict)
    last_zoom: float | None = None
    labels: List[Label] = field(default_factory=list)


@dataclass(frozen=True)
class Room:
    id: int
    area_id: int
    x: int
    y: int
    z: int
    exits: Tuple[int, ...] = (NO_EXIT,) * EXIT_SLOTS
    environment: int = -1
    weight: int = 1
    name: str = ""
    locked: bool = False
    special_exits: Dict[str, int] = field(default_factory=dict)
    special_exit_locks: List[str] = field(default_factory=list)
    symbol: str = ""
    symbol_color: Color | None = None
    user_data: Dict[str, str] = field(default_factory=dict)
    custom_lines: Dict[str, List[Point2D]] = field(default_factory=dict)
    custom_line_arrows: Dict[str, bool] = field(default_factory=dict)
    custom_line_colors: Dict[str, Color] = field(default_factory=dict)
    custom_line_styles: Dict[str, int] = field(default_factory=dict)
    exit_locks: List[int] = field(default_factory=list)
    stubs: List[int] = field(default_factory=list)
    exit_weights: Dict[str, int] = field(default_factory=dict)
    doors: Dict[str, int] = field(default_factory=dict)

    @property
    def position(self) -> Tuple[int, int, int]:
        return (self.x, self.y, self.z)

    def exit_to(self, direction: int) -> int:
        return self.exits[direction]

    def iter_exits(self) -> Iterator[Tuple[int, int]]:
        """Yield ``(slot, target)`` for every populated standard exit."""
        for slot, target in enumerate(self.exits):
            if target != NO_EXIT:
                yield slot, target

    def door(self, direction: int) -> int:
        return self.doors.get(SHORT_DIRECTIONS[direction], DOOR_NONE)


@dataclass(frozen=True)
class LegacyLine:
    start: Tuple[int, int, int]
    end: Tuple[int, int, int]
    color: int
    style: int
    width: int


@dataclass
class MapDocument:
    format_version: int = 0
    env_colors: Dict[int, int] = field(default_factory=dict)
    area_names: Dict[int, str] = field(default_factory=dict)
    custom_env_colors: Dict[int, Color] = field(default_factory=dict)
    room_hash_index: Dict[str, int] = field(default_factory=dict)
    room_id_hash: Dict[str, int] = field(default_factory=dict)
    user_data: Dict[str, str] = field(default_factory=dict)
    symbol_font: Font | None = None
    font_fudge_factor: float = 1.0
    use_only_map_font: bool = False
    areas: Dict[int, Area] = field(default_factory=dict)
    rooms: Dict[int, Room] = field(default_factory=dict)
    labels_by_area: Dict[int, List[Label]] = field(default_factory=dict)
    legacy: bool = False
    environment_names: Dict[int, str] = field(default_factory=dict)
    legacy_lines: List[LegacyLine] = field(default_factory=list)

    def get_room(self, room_id: int) -> Room | None:
        return self.rooms.get(room_id)

    def get_area(self, area_id: int) -> Area | None:
        return self.areas.get(area_id)

    def area_name(self, area_id: int) -> str:
        area = self.areas.get(area_id)
        if area is not None and area.name:
            return area.name
        return self.area_names.get(area_id, "")

    def rooms_in_area(self, area_id: int) -> List[Room]:
        return [room for room in self.rooms.values() if room.area_id == area_id]

    def labels_for_area(self, area_id: int) -> List[Label]:
        area = self.areas.get(area_id)
        if area is not None and area.labels:
            return list(area.labels)
        return list(self.labels_by_area.get(area_id, ()))

    def iter_labels(self) -> Iterator[Label]:
        for area in self.areas.values():
            yield from area.labels
        for labels in self.labels_by_area.values():
            yield from labels

    @property
    def room_count(self) -> int:
        return len(self.rooms)

    @property
    def area_count(self) -> int:
        return len(self.areas)

    @property
    def label_count(self) -> int:
        return sum(1 for _ in self.iter_labels())
