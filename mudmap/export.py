from __future__ import annotations

import base64
import json
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict

from .entities import Area, Color, Label, MapDocument, Room


def _color(color: Color | None) -> Dict[str, int] | None:
    if color is None:
        return None
    red, green, blue, alpha = color.to_rgba()
    return {"r": red, "g": green, "b": blue, "a": alpha, "valid": color.valid}


def _label(label: Label) -> Dict[str, Any]:
    return {
        "id": label.id,
        "areaId": label.area_id,
        "position": list(label.position),
        "size": list(label.size),
        "text": label.text,
        "foreground": _color(label.foreground),
        "background": _color(label.background),
        "pixmap": base64.b64encode(label.pixmap).decode("ascii") if label.pixmap else None,
        "noScaling": label.no_scaling,
        "showOnTop": label.show_on_top,
    }


def _area(area: Area) -> Dict[str, Any]:
    return {
        "id": area.id,
        "name": area.name,
        "rooms": list(area.rooms),
        "zLevels": list(area.z_levels),
        "exits": [asdict(area_exit) for area_exit in area.exits],
        "gridMode": area.grid_mode,
        "bounds": asdict(area.bounds),
        "isZone": area.is_zone,
        "zoneAreaRef": area.zone_area_ref,
        "userData": dict(area.user_data),
        "lastZoom": area.last_zoom,
        "labels": [_label(label) for label in area.labels],
    }


def _room(room: Room) -> Dict[str, Any]:
    return {
        "id": room.id,
        "area": room.area_id,
        "x": room.x,
        "y": room.y,
        "z": room.z,
        "name": room.name,
        "environment": room.environment,
        "weight": room.weight,
        "exits": list(room.exits),
        "isLocked": room.locked,
        "specialExits": dict(room.special_exits),
        "specialExitLocks": list(room.special_exit_locks),
        "symbol": room.symbol,
        "symbolColor": _color(room.symbol_color),
        "userData": dict(room.user_data),
        "customLines": {name: [list(point) for point in points] for name, points in room.custom_lines.items()},
        "customLinesArrow": dict(room.custom_line_arrows),
        "customLinesColor": {name: _color(color) for name, color in room.custom_line_colors.items()},
        "customLinesStyle": dict(room.custom_line_styles),
        "exitLocks": list(room.exit_locks),
        "stubs": list(room.stubs),
        "exitWeights": dict(room.exit_weights),
        "doors": dict(room.doors),
    }


def document_to_dict(document: MapDocument) -> Dict[str, Any]:
    return {
        "version": document.format_version,
        "legacy": document.legacy,
        "envColors": {str(key): value for key, value in document.env_colors.items()},
        "areaNames": {str(key): value for key, value in document.area_names.items()},
        "customEnvColors": {str(key): _color(value) for key, value in document.custom_env_colors.items()},
        "userData": dict(document.user_data),
        "symbolFont": asdict(document.symbol_font) if document.symbol_font else None,
        "areas": [_area(area) for area in document.areas.values()],
        "labels": {str(area_id): [_label(label) for label in labels] for area_id, labels in document.labels_by_area.items()},
        "rooms": [_room(room) for room in document.rooms.values()],
    }


def export_json(document: MapDocument, destination: Path) -> None:
    destination.parent.mkdir(parents=True, exist_ok=True)
    payload = document_to_dict(document)
    destination.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
