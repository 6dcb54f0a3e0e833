from __future__ import annotations

from dataclasses import dataclass, field
from typing import List

from .entities import DIRECTIONS, NO_EXIT, BoundingBox, MapDocument


@dataclass(frozen=True)
class ReferentialIntegrityWarning:
    """
    One dangling or suspicious reference found in a decoded map. These are
    reported, never repaired: the document stays exactly as decoded.
    """

    kind: str
    message: str
    room_id: int | None = None
    area_id: int | None = None


@dataclass(frozen=True)
class MapStats:
    rooms: int
    areas: int
    environments: int
    labels: int
    bounds: BoundingBox | None
    z_levels: List[int] = field(default_factory=list)


def validate_document(document: MapDocument) -> List[ReferentialIntegrityWarning]:
    warnings: List[ReferentialIntegrityWarning] = []
    if document.format_version <= 0:
        warnings.append(
            ReferentialIntegrityWarning("invalid_version", f"non-positive format version {document.format_version}")
        )

    rooms = document.rooms
    for room in rooms.values():
        if room.area_id not in document.areas:
            warnings.append(
                ReferentialIntegrityWarning(
                    "missing_area",
                    f"room {room.id} belongs to unknown area {room.area_id}",
                    room_id=room.id,
                    area_id=room.area_id,
                )
            )
        for slot, target in room.iter_exits():
            if target not in rooms:
                warnings.append(
                    ReferentialIntegrityWarning(
                        "broken_exit",
                        f"room {room.id} {DIRECTIONS[slot]} exit leads to missing room {target}",
                        room_id=room.id,
                    )
                )
        for command, target in room.special_exits.items():
            if target != NO_EXIT and target not in rooms:
                warnings.append(
                    ReferentialIntegrityWarning(
                        "broken_special_exit",
                        f"room {room.id} special exit {command!r} leads to missing room {target}",
                        room_id=room.id,
                    )
                )
        if room.weight < 1:
            warnings.append(
                ReferentialIntegrityWarning("low_weight", f"room {room.id} has weight {room.weight}", room_id=room.id)
            )

    for area in document.areas.values():
        for member in area.rooms:
            if member not in rooms:
                warnings.append(
                    ReferentialIntegrityWarning(
                        "unknown_area_member",
                        f"area {area.id} lists missing room {member}",
                        room_id=member,
                        area_id=area.id,
                    )
                )
    return warnings


def document_stats(document: MapDocument) -> MapStats:
    environments = set(document.env_colors) | set(document.custom_env_colors)
    rooms = list(document.rooms.values())
    if not rooms:
        return MapStats(len(rooms), document.area_count, len(environments), document.label_count, None, [])
    xs = [room.x for room in rooms]
    ys = [room.y for room in rooms]
    zs = [room.z for room in rooms]
    bounds = BoundingBox(min(xs), min(ys), min(zs), max(xs), max(ys), max(zs))
    return MapStats(
        rooms=len(rooms),
        areas=document.area_count,
        environments=len(environments),
        labels=document.label_count,
        bounds=bounds,
        z_levels=sorted(set(zs)),
    )
