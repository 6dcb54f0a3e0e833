from dataclasses import replace

import pytest
from PIL import Image

from conftest import exits, tiny_png, two_room_document
from mudmap.entities import Color, Label, Room
from mudmap.palette import DEFAULT_ENV_COLORS, ansi256, environment_color
from mudmap.render import RenderConfig, RoomIndex, render_fragment, save_image


def test_room_index_window(two_rooms):
    two_rooms.rooms[3] = Room(id=3, area_id=-1, x=5, y=0, z=0)
    two_rooms.rooms[4] = Room(id=4, area_id=-1, x=0, y=0, z=1)
    two_rooms.rooms[5] = Room(id=5, area_id=7, x=0, y=0, z=0)
    index = RoomIndex(two_rooms.rooms.values())
    assert len(index) == 5
    assert sorted(index.window(-1, 0, 0, 0, 1)) == [1, 2]
    assert sorted(index.window(-1, 0, 0, 0, 5)) == [1, 2, 3]
    assert index.window(-1, 0, 0, 1, 5) == [4]
    assert RoomIndex([]).window(-1, 0, 0, 0, 5) == []


def test_render_two_rooms(two_rooms):
    result = render_fragment(two_rooms, 2)
    assert result.image.size == (800, 600)
    assert result.center_room == 2
    assert result.area_id == -1
    assert result.area_name == "Default Area"
    assert result.z_level == 0
    assert result.rooms_drawn == 2
    assert result.image.getpixel((400, 300)) == DEFAULT_ENV_COLORS[1][:3]
    assert result.image.getpixel((5, 5)) == RenderConfig().background_color[:3]


def test_render_respects_radius(two_rooms):
    result = render_fragment(two_rooms, 2, RenderConfig(radius=0, width=200, height=200))
    assert result.rooms_drawn == 1
    assert result.image.size == (200, 200)


def test_unknown_room_or_area(two_rooms):
    with pytest.raises(ValueError):
        render_fragment(two_rooms, 999)
    two_rooms.rooms[3] = Room(id=3, area_id=12, x=0, y=0, z=0)
    with pytest.raises(ValueError):
        render_fragment(two_rooms, 3)


def test_render_full_feature_room():
    label = Label(
        id=1,
        area_id=-1,
        position=(-1.0, 1.0, 0.0),
        size=(2.0, 1.0),
        text="Rynek",
        pixmap=tiny_png(),
        no_scaling=False,
        show_on_top=True,
    )
    text_label = Label(id=2, area_id=-1, position=(1.0, 1.0, 0.0), size=(2.0, 1.0), text="Brama", show_on_top=False)
    document = two_room_document(labels=[label, text_label])
    document.rooms[2] = replace(
        document.rooms[2],
        exits=exits(s=1, e=3, up=4, w=50),
        stubs=[1, 9],
        doors={"s": 3},
        symbol="$",
        environment=300,
        custom_lines={"ne": [(1.0, 1.0), (2.0, 2.0)]},
        custom_line_arrows={"ne": True},
        custom_line_colors={"ne": Color.from_rgb(0, 255, 0)},
        custom_line_styles={"ne": 3},
    )
    document.rooms[3] = Room(id=3, area_id=-1, x=1, y=0, z=0, environment=2)
    document.rooms[4] = Room(id=4, area_id=-1, x=0, y=0, z=1)
    document.rooms[50] = Room(id=50, area_id=9, x=-1, y=0, z=0)
    config = RenderConfig(room_round=True, show_upper_level=True, show_lower_level=True, ansi_fallback=True)
    result = render_fragment(document, 2, config)
    assert result.rooms_drawn == 3


def test_environment_color_fallbacks():
    custom = {40: (1, 2, 3, 255)}
    assert environment_color(2, {}, custom) == DEFAULT_ENV_COLORS[2]
    assert environment_color(7, {7: 9}, custom) == DEFAULT_ENV_COLORS[9]
    assert environment_color(40, {}, custom) == (1, 2, 3, 255)
    assert environment_color(300, {}, custom) == DEFAULT_ENV_COLORS[1]
    assert environment_color(196, {}, custom) == DEFAULT_ENV_COLORS[1]
    assert environment_color(196, {}, custom, ansi_fallback=True) == (255, 0, 0, 255)
    assert ansi256(232) == (8, 8, 8, 255)


@pytest.mark.parametrize("name, fmt", [("snap.png", "PNG"), ("snap.webp", "WEBP")])
def test_save_image(tmp_path, two_rooms, name, fmt):
    result = render_fragment(two_rooms, 1, RenderConfig(width=120, height=90))
    destination = tmp_path / "out" / name
    save_image(result.image, destination)
    with Image.open(destination) as reloaded:
        assert reloaded.format == fmt
        assert reloaded.size == (120, 90)
