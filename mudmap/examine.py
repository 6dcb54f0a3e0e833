"""
Human-readable structure dump of a map file.

The dump walks the same sections the decoder does and reports counts per
section; with ``debug`` it also lists area names, every room, every label and
the raw byte-offset trace collected while decoding.
"""

from __future__ import annotations

from pathlib import Path
from typing import List

from .assembler import parse_document
from .config import ParserOptions
from .cursor import Source
from .entities import SHORT_DIRECTIONS, Label, MapDocument, Room
from .logging import SectionTrace

LABEL_TEXT_LIMIT = 30


def format_room(room: Room) -> str:
    exits = [f"{SHORT_DIRECTIONS[slot]}:{target}" for slot, target in room.iter_exits()]
    exits.extend(f"spec({command}):{target}" for command, target in sorted(room.special_exits.items()))
    exit_text = " ".join(exits) if exits else "none"
    return (
        f"id={room.id} area={room.area_id} pos=({room.x},{room.y},{room.z}) "
        f"exits=[{exit_text}] name='{room.name}' env={room.environment}"
    )


def format_label(label: Label) -> str:
    text = label.text
    if len(text) > LABEL_TEXT_LIMIT:
        text = text[: LABEL_TEXT_LIMIT - 3] + "..."
    x, y, z = label.position
    width, height = label.size
    return (
        f"id={label.id} pos=({x:.1f},{y:.1f},{z:.1f}) size=({width:.1f},{height:.1f}) "
        f"text='{text}' noScale={str(label.no_scaling).lower()} onTop={str(label.show_on_top).lower()}"
    )


def _describe(document: MapDocument, debug: bool) -> List[str]:
    lines = [f"version = {document.format_version}"]

    lines.append("areaNames QMap<int,QString>:")
    lines.append(f"  count = {len(document.area_names)}")
    if debug:
        for area_id, name in sorted(document.area_names.items()):
            lines.append(f"  id={area_id} name='{name}'")

    total_members = sum(len(area.rooms) for area in document.areas.values())
    lines.append("areas MudletAreas:")
    lines.append(f"  count = {document.area_count} areas, total rooms = {total_members}")
    if debug:
        for area in document.areas.values():
            lines.append(
                f"  area id={area.id} name='{document.area_name(area.id)}' rooms={len(area.rooms)} "
                f"zLevels={list(area.z_levels)}"
            )

    labelled_areas = set()
    for label in document.iter_labels():
        labelled_areas.add(label.area_id)
    lines.append("labels MudletLabels:")
    lines.append(f"  areas with labels = {len(labelled_areas)}, total labels = {document.label_count}")
    if debug:
        for label in document.iter_labels():
            lines.append(f"  area={label.area_id} {format_label(label)}")

    lines.append("rooms MudletRooms:")
    lines.append(f"  total rooms = {document.room_count}")
    if debug:
        for room in document.rooms.values():
            lines.append(f"  {format_room(room)}")
    return lines


def examine_source(source: Source, debug: bool = False, options: ParserOptions | None = None) -> List[str]:
    trace = SectionTrace(record_items=debug)
    result = parse_document(source, options, trace)
    lines = _describe(result.document, debug)
    if result.error is not None:
        lines.append(f"error: {result.error}")
    lines.append("trace:")
    lines.extend(f"  {line}" for line in trace.lines())
    return lines


def examine_map(path: Path | str, debug: bool = False, options: ParserOptions | None = None) -> List[str]:
    """Dump ``path``; a missing file raises ``FileNotFoundError``."""
    with open(path, "rb") as handle:
        return examine_source(handle, debug, options)
