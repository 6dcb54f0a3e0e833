import struct

import pytest

from mudmap.cursor import ByteCursor
from mudmap.errors import MalformedField
from mudmap.sequences import read_color, read_int, read_int_list, read_ordered_map, read_string, read_vector3d
from mudmap.writer import StreamWriter


def test_int_list():
    cursor = ByteCursor(struct.pack(">iiii", 3, 7, -1, 9))
    assert read_int_list(cursor, field="stubs") == [7, -1, 9]


def test_negative_count_is_malformed():
    cursor = ByteCursor(struct.pack(">i", -4))
    with pytest.raises(MalformedField) as excinfo:
        read_int_list(cursor, field="room.stubs")
    assert excinfo.value.field == "room.stubs"


def test_ordered_map_keeps_stream_order_and_last_duplicate():
    out = StreamWriter()
    out.int32(3)
    for key, value in (("zeta", 1), ("alpha", 2), ("zeta", 3)):
        out.qstring(key)
        out.int32(value)
    cursor = ByteCursor(out.getvalue())
    result = read_ordered_map(cursor, read_string, read_int, field="doors")
    assert result == {"zeta": 3, "alpha": 2}
    assert list(result) == ["zeta", "alpha"]


def test_color_channels():
    blob = b"\x01" + struct.pack(">5H", 0xFFFF, 0x1234, 0xFF00, 0x0000, 0)
    color = read_color(ByteCursor(blob))
    assert color.valid
    assert color.to_rgba() == (0x12, 0xFF, 0x00, 0xFF)


def test_invalid_color_spec():
    blob = b"\x00" + struct.pack(">5H", 0xFFFF, 0, 0, 0, 0)
    assert not read_color(ByteCursor(blob)).valid


def test_vector3d():
    cursor = ByteCursor(struct.pack(">3d", 1.0, -2.5, 3.0))
    assert read_vector3d(cursor) == (1.0, -2.5, 3.0)
