from __future__ import annotations

from typing import Callable, Dict, List, TypeVar

from .cursor import ByteCursor
from .entities import Color, Point2D, Vector3D
from .errors import MalformedField

K = TypeVar("K")
V = TypeVar("V")
T = TypeVar("T")

MAX_ELEMENTS = 1_000_000


def read_count(cursor: ByteCursor, *, field: str, ceiling: int = MAX_ELEMENTS) -> int:
    offset = cursor.position
    count = cursor.read_int32(field)
    if count < 0:
        raise MalformedField(f"negative element count {count}", offset=offset, field=field)
    if count > ceiling:
        raise MalformedField(f"element count {count} exceeds {ceiling}", offset=offset, field=field)
    return count


def read_sequence(
    cursor: ByteCursor,
    decode_element: Callable[[ByteCursor], T],
    *,
    field: str,
    ceiling: int = MAX_ELEMENTS,
) -> List[T]:
    count = read_count(cursor, field=field, ceiling=ceiling)
    items: List[T] = []
    for _ in range(count):
        items.append(decode_element(cursor))
    return items


def read_ordered_map(
    cursor: ByteCursor,
    decode_key: Callable[[ByteCursor], K],
    decode_value: Callable[[ByteCursor], V],
    *,
    field: str,
    ceiling: int = MAX_ELEMENTS,
) -> Dict[K, V]:
    """
    Qt map: count then alternating key/value. Entries keep stream order; a
    repeated key keeps the last value, as QMap does on load.
    """

    count = read_count(cursor, field=field, ceiling=ceiling)
    result: Dict[K, V] = {}
    for _ in range(count):
        key = decode_key(cursor)
        result[key] = decode_value(cursor)
    return result


def read_int(cursor: ByteCursor) -> int:
    return cursor.read_int32()


def read_uint(cursor: ByteCursor) -> int:
    return cursor.read_uint32()


def read_string(cursor: ByteCursor) -> str:
    return cursor.read_qstring()


def read_bool(cursor: ByteCursor) -> bool:
    return cursor.read_bool()


def read_int_list(cursor: ByteCursor, *, field: str) -> List[int]:
    return read_sequence(cursor, read_int, field=field)


def read_uint_list(cursor: ByteCursor, *, field: str) -> List[int]:
    return read_sequence(cursor, read_uint, field=field)


def read_color(cursor: ByteCursor) -> Color:
    spec = cursor.read_int8()
    alpha = cursor.read_uint16()
    red = cursor.read_uint16()
    green = cursor.read_uint16()
    blue = cursor.read_uint16()
    pad = cursor.read_uint16()
    return Color(spec, alpha, red, green, blue, pad)


def read_point(cursor: ByteCursor) -> Point2D:
    x = cursor.read_float64()
    y = cursor.read_float64()
    return (x, y)


def read_vector3d(cursor: ByteCursor) -> Vector3D:
    x = cursor.read_float64()
    y = cursor.read_float64()
    z = cursor.read_float64()
    return (x, y, z)
