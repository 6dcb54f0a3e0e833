from __future__ import annotations

from typing import Dict, Mapping, Tuple

from .entities import MapDocument

RGBA = Tuple[int, int, int, int]

FALLBACK_ENVIRONMENT = 1
FALLBACK_GRAY: RGBA = (128, 128, 128, 255)

# The 16 ANSI colours the client assigns to environments 1..16.
DEFAULT_ENV_COLORS: Dict[int, RGBA] = {
    1: (128, 0, 0, 255),
    2: (0, 128, 0, 255),
    3: (128, 128, 0, 255),
    4: (0, 0, 128, 255),
    5: (128, 0, 128, 255),
    6: (0, 128, 128, 255),
    7: (192, 192, 192, 255),
    8: (64, 64, 64, 255),
    9: (255, 0, 0, 255),
    10: (0, 255, 0, 255),
    11: (255, 255, 0, 255),
    12: (0, 0, 255, 255),
    13: (255, 0, 255, 255),
    14: (0, 255, 255, 255),
    15: (255, 255, 255, 255),
    16: (128, 128, 128, 255),
}


def ansi256(index: int) -> RGBA:
    """xterm colour for 16..255: a 6x6x6 cube, then a 24-step grey ramp."""
    if 16 <= index < 232:
        base = index - 16
        levels = (base // 36, (base % 36) // 6, base % 6)
        red, green, blue = (0 if level == 0 else (level - 1) * 40 + 95 for level in levels)
        return (red, green, blue, 255)
    if 232 <= index < 256:
        grey = (index - 232) * 10 + 8
        return (grey, grey, grey, 255)
    return FALLBACK_GRAY


def custom_colors(document: MapDocument) -> Dict[int, RGBA]:
    return {env_id: color.to_rgba() for env_id, color in document.custom_env_colors.items()}


def environment_color(
    environment: int,
    env_map: Mapping[int, int],
    custom: Mapping[int, RGBA],
    defaults: Mapping[int, RGBA] = DEFAULT_ENV_COLORS,
    *,
    ansi_fallback: bool = False,
) -> RGBA:
    """
    Resolve a room's fill colour. The map's environment table may redirect an
    id first; ids that are neither a default nor a custom colour render as
    environment 1 unless ``ansi_fallback`` asks for the xterm palette.
    """

    env = env_map.get(environment, environment)
    if env in defaults:
        return defaults[env]
    if env in custom:
        return custom[env]
    if ansi_fallback and 16 <= env < 256:
        return ansi256(env)
    return defaults.get(FALLBACK_ENVIRONMENT, FALLBACK_GRAY)


def lightness(color: RGBA) -> int:
    return (color[0] + color[1] + color[2]) // 3
