from dataclasses import replace

import pytest

from conftest import ROOM_NAME, exits, two_room_document
from mudmap.assembler import parse_document
from mudmap.cursor import ByteCursor
from mudmap.entities import NO_EXIT, Color
from mudmap.errors import MalformedField
from mudmap.records import PEN_DASH, PEN_DOT, PEN_SOLID, _read_style_name, decode_font
from mudmap.writer import StreamWriter, encode_document


def _roundtrip_room(version, **changes):
    document = two_room_document(version)
    document.rooms[1] = replace(document.rooms[1], **changes)
    result = parse_document(encode_document(document))
    assert result.ok, result.error
    return result.document.rooms[1]


def test_special_exits_with_lock_prefix_before_21():
    room = _roundtrip_room(20, special_exits={"wejdz do portalu": 2, "zejdz": 2}, special_exit_locks=["zejdz"])
    assert room.special_exits == {"wejdz do portalu": 2, "zejdz": 2}
    assert room.special_exit_locks == ["zejdz"]


def test_special_exits_by_command_at_21():
    room = _roundtrip_room(21, special_exits={"wejdz do portalu": 2}, special_exit_locks=["wejdz do portalu"])
    assert room.special_exits == {"wejdz do portalu": 2}
    assert room.special_exit_locks == ["wejdz do portalu"]


def test_special_exits_absent_before_6():
    room = _roundtrip_room(5, special_exits={"portal": 2})
    assert room.special_exits == {}


def test_single_byte_symbol():
    assert _roundtrip_room(12, symbol="$").symbol == "$"
    assert _roundtrip_room(12, symbol="").symbol == ""


def test_string_symbol_and_color():
    room = _roundtrip_room(21, symbol="★", symbol_color=Color.from_rgb(10, 20, 30))
    assert room.symbol == "★"
    assert room.symbol_color.to_rgba() == (10, 20, 30, 255)
    assert _roundtrip_room(21).symbol_color is None


def test_custom_lines_before_20_use_names_and_rgb():
    room = _roundtrip_room(
        19,
        custom_lines={"n": [(0.0, 1.0), (1.0, 1.0)]},
        custom_line_arrows={"n": True},
        custom_line_colors={"n": Color.from_rgb(255, 128, 0)},
        custom_line_styles={"n": PEN_DOT},
    )
    assert room.custom_lines == {"n": [(0.0, 1.0), (1.0, 1.0)]}
    assert room.custom_line_arrows == {"n": True}
    assert room.custom_line_colors["n"].to_rgba() == (255, 128, 0, 255)
    assert room.custom_line_styles == {"n": PEN_DOT}


def test_custom_lines_from_20_use_enum_and_qcolor():
    room = _roundtrip_room(
        20,
        custom_lines={"e": [(1.0, 0.0)]},
        custom_line_colors={"e": Color.from_rgb(1, 2, 3)},
        custom_line_styles={"e": PEN_DASH},
    )
    assert room.custom_line_styles == {"e": PEN_DASH}
    assert room.custom_line_colors["e"].to_rgba() == (1, 2, 3, 255)


def test_unknown_pen_style_name_is_solid():
    out = StreamWriter()
    out.qstring("wavy line")
    assert _read_style_name(ByteCursor(out.getvalue())) == PEN_SOLID


def test_sentinels_and_tail_fields_preserved():
    room = _roundtrip_room(
        20,
        environment=-1,
        exits=exits(n=2, up=7),
        stubs=[4, 9],
        exit_locks=[0],
        exit_weights={"n": 3},
        doors={"n": 2},
        user_data={"key": "value"},
        weight=5,
        locked=True,
    )
    assert room.environment == -1
    assert room.exits[0] == 2
    assert room.exits[8] == 7
    assert room.exits[1] == NO_EXIT
    assert room.stubs == [4, 9]
    assert room.exit_locks == [0]
    assert room.exit_weights == {"n": 3}
    assert room.doors == {"n": 2}
    assert room.door(0) == 2
    assert room.user_data == {"key": "value"}
    assert room.weight == 5
    assert room.locked is True
    assert room.name == ROOM_NAME


def test_font_resync_skips_garbage():
    out = StreamWriter()
    out.uint32(3)
    out.raw(b"\x00" * 7)
    out.qstring("Monospace")
    out.qstring("")
    out.float64(10.0)
    out.int32(-1)
    out.int8(0)
    out.uint16(0)
    out.uint8(0)
    out.int8(50)
    out.int8(0)
    out.uint16(100)
    out.int8(0)
    out.int32(0)
    out.int32(0)
    out.int8(0)
    out.int8(0)
    cursor = ByteCursor(out.getvalue())
    font = decode_font(cursor)
    assert font.family == "Monospace"
    assert font.point_size == 10.0
    assert font.stretch == 100
    assert cursor.at_end()


def test_font_without_resync_raises():
    out = StreamWriter()
    out.uint32(3)
    out.raw(b"\x00" * 40)
    with pytest.raises(MalformedField):
        decode_font(ByteCursor(out.getvalue()), resync=False)
