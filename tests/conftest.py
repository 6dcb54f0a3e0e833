from __future__ import annotations

import io
from dataclasses import replace
from typing import Dict, List

import pytest
from PIL import Image

from mudmap.entities import NO_EXIT, Area, Color, Label, MapDocument, Room
from mudmap.versions import LABELS_RELOCATED_VERSION

ROOM_NAME = "Przestronny korytarz."


def tiny_png(color=(200, 30, 30, 255), size=(4, 4)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGBA", size, color).save(buffer, format="PNG")
    return buffer.getvalue()


def exits(**targets: int):
    slots = [NO_EXIT] * 12
    order = ("n", "ne", "e", "se", "s", "sw", "w", "nw", "up", "down", "in", "out")
    for name, target in targets.items():
        slots[order.index(name)] = target
    return tuple(slots)


def place_labels(document: MapDocument, labels: List[Label]) -> None:
    """File labels where the target format version stores them."""
    if document.format_version >= LABELS_RELOCATED_VERSION:
        for area_id in {label.area_id for label in labels}:
            area = document.areas[area_id]
            owned = [label for label in labels if label.area_id == area_id]
            document.areas[area_id] = replace(area, labels=area.labels + owned)
    else:
        for label in labels:
            document.labels_by_area.setdefault(label.area_id, []).append(label)


def two_room_document(version: int = 20, labels: List[Label] | None = None) -> MapDocument:
    document = MapDocument(format_version=version)
    document.area_names = {-1: "Default Area"}
    document.areas[-1] = Area(id=-1, name="Default Area", rooms=[1, 2], z_levels=[0])
    document.rooms[1] = Room(
        id=1, area_id=-1, x=0, y=-1, z=0, exits=exits(n=2), environment=1, name=ROOM_NAME
    )
    document.rooms[2] = Room(
        id=2, area_id=-1, x=0, y=0, z=0, exits=exits(s=1), environment=1, name=ROOM_NAME
    )
    if labels:
        place_labels(document, labels)
    return document


def scale_document(version: int = 20) -> MapDocument:
    """64 areas, 26758 rooms and 397 labels spread over 51 areas."""
    area_count = 64
    room_count = 26758
    document = MapDocument(format_version=version)
    members: Dict[int, List[int]] = {area_id: [] for area_id in range(1, area_count + 1)}
    for room_id in range(1, room_count + 1):
        area_id = (room_id - 1) % area_count + 1
        members[area_id].append(room_id)
        east = room_id + area_count if room_id + area_count <= room_count else NO_EXIT
        document.rooms[room_id] = Room(
            id=room_id,
            area_id=area_id,
            x=(room_id - 1) // area_count,
            y=0,
            z=0,
            exits=exits(e=east),
            environment=(room_id % 16) + 1,
            name=f"room {room_id}",
        )
    for area_id, rooms in members.items():
        document.area_names[area_id] = f"area {area_id}"
        document.areas[area_id] = Area(id=area_id, name=f"area {area_id}", rooms=rooms, z_levels=[0])
    pixmap = tiny_png()
    labels = [
        Label(
            id=index,
            area_id=index % 51 + 1,
            position=(2.0, 0.0, 0.0),
            size=(1.0, 1.0),
            text=f"label {index}",
            foreground=Color.from_rgb(255, 255, 255),
            background=Color.from_rgb(0, 0, 0),
            pixmap=pixmap,
        )
        for index in range(397)
    ]
    place_labels(document, labels)
    return document


@pytest.fixture
def png_bytes() -> bytes:
    return tiny_png()


@pytest.fixture
def two_rooms() -> MapDocument:
    return two_room_document()


@pytest.fixture(scope="session")
def scale_map() -> MapDocument:
    return scale_document()
