import logging
import struct
from dataclasses import replace

import pytest

from conftest import ROOM_NAME, tiny_png, two_room_document
from mudmap.assembler import DocumentAssembler, Section, parse_document, parse_document_file
from mudmap.config import ParserOptions
from mudmap.entities import NO_EXIT, Area, Color, Label, MapDocument, Room
from mudmap.errors import MalformedField, TruncatedStream, UnsupportedVersion
from mudmap.logging import SectionTrace
from mudmap.writer import StreamWriter, encode_document, write_document


def _label(label_id=0, **changes):
    label = Label(
        id=label_id,
        area_id=-1,
        position=(2.0, 0.0, 0.0),
        size=(3.0, 1.0),
        text="Rynek",
        foreground=Color.from_rgb(255, 255, 255),
        background=Color.from_rgb(0, 0, 0),
        pixmap=tiny_png(),
        no_scaling=False,
        show_on_top=False,
    )
    return replace(label, **changes)


def _prefix_and_rooms(document):
    full = encode_document(document)
    prefix = encode_document(replace(document, rooms={}))
    assert full.startswith(prefix)
    return prefix, full[len(prefix):]


@pytest.mark.parametrize("version", [20, 21])
def test_two_room_map(version):
    document = two_room_document(version, labels=[_label()])
    result = parse_document(encode_document(document))
    assert result.ok, result.error
    decoded = result.document
    assert decoded.format_version == version
    assert decoded.room_count == 2
    assert decoded.area_count == 1
    assert decoded.area_name(-1) == "Default Area"
    assert decoded.get_room(1).position == (0, -1, 0)
    assert decoded.get_room(2).position == (0, 0, 0)
    assert decoded.get_room(1).name == ROOM_NAME
    assert decoded.get_room(1).exits[0] == 2
    assert decoded.get_room(2).exits[4] == 1
    assert [room.id for room in decoded.rooms_in_area(-1)] == [1, 2]

    labels = decoded.labels_for_area(-1)
    assert len(labels) == 1
    assert labels[0].text == "Rynek"
    assert labels[0].pixmap == tiny_png()
    assert labels[0].size == (3.0, 1.0)
    assert labels[0].no_scaling is False
    assert decoded.label_count == 1
    if version >= 21:
        assert decoded.areas[-1].labels
        assert not decoded.labels_by_area
    else:
        assert decoded.labels_by_area[-1]


def test_file_source(tmp_path):
    path = tmp_path / "maps" / "2lok.dat"
    write_document(two_room_document(), path)
    result = parse_document_file(path)
    assert result.ok
    assert result.document.room_count == 2


def test_truncated_room_keeps_earlier_rooms():
    blob = encode_document(two_room_document())
    result = parse_document(blob[:-10])
    assert isinstance(result.error, TruncatedStream)
    assert result.error.section == Section.ROOMS.value
    assert result.error.record == 2
    assert list(result.document.rooms) == [1]
    assert result.document.area_count == 1


def test_empty_stream():
    result = parse_document(b"")
    assert isinstance(result.error, TruncatedStream)
    assert result.error.field == "version"
    assert result.document.room_count == 0


@pytest.mark.parametrize("version", [0, 22])
def test_unsupported_version_builds_nothing(version):
    result = parse_document(struct.pack(">i", version) + b"\x00" * 64)
    assert isinstance(result.error, UnsupportedVersion)
    assert result.error.version == version
    assert result.error.offset == 0
    assert result.document.room_count == 0
    assert result.document.area_count == 0


def test_resync_after_malformed_labels():
    prefix, rooms = _prefix_and_rooms(two_room_document())
    corrupt = prefix[:-4] + struct.pack(">i", -1) + rooms
    assembler = DocumentAssembler(corrupt)
    result = assembler.run()
    assert result.ok
    assert result.document.room_count == 2
    assert assembler.abandoned == [Section.LABELS]


def test_strict_mode_reports_malformed_labels():
    prefix, rooms = _prefix_and_rooms(two_room_document())
    corrupt = prefix[:-4] + struct.pack(">i", -1) + rooms
    result = parse_document(corrupt, ParserOptions(strict=True))
    assert isinstance(result.error, MalformedField)
    assert result.error.section == Section.LABELS.value
    assert result.document.room_count == 0
    assert result.document.area_count == 1


def test_skip_labels_resumes_at_rooms():
    document = two_room_document(20, labels=[_label(0), _label(1, text="Brama")])
    assembler = DocumentAssembler(encode_document(document), ParserOptions(skip_labels=True))
    result = assembler.run()
    assert result.ok
    assert result.document.room_count == 2
    assert result.document.label_count == 0
    assert assembler.abandoned == [Section.LABELS]


def test_strict_mode_decodes_labels_despite_skip():
    document = two_room_document(20, labels=[_label()])
    result = parse_document(encode_document(document), ParserOptions(skip_labels=True, strict=True))
    assert result.ok
    assert result.document.label_count == 1


def test_skip_labels_without_rooms():
    document = replace(two_room_document(20, labels=[_label()]), rooms={})
    result = parse_document(encode_document(document), ParserOptions(skip_labels=True))
    assert result.ok
    assert result.document.room_count == 0


def test_non_positive_room_id_stops_decoding():
    blob = encode_document(two_room_document()) + struct.pack(">i", 0) + b"\xde\xad"
    result = parse_document(blob)
    assert result.ok
    assert result.document.room_count == 2


def test_trace_records_sections_and_items():
    trace = SectionTrace(record_items=True)
    parse_document(encode_document(two_room_document()), trace=trace)
    lines = "\n".join(trace.lines())
    assert "[version] version = 20" in lines
    assert "areas count = 1" in lines
    assert "[rooms] room 2" in lines
    assert "total rooms = 2" in lines


def test_trace_flush(tmp_path):
    trace = SectionTrace(destination=tmp_path / "trace.log")
    parse_document(encode_document(two_room_document()), trace=trace)
    trace.flush()
    assert "total rooms = 2" in (tmp_path / "trace.log").read_text(encoding="utf-8")


def test_scale_map(scale_map, tmp_path):
    path = tmp_path / "large.dat"
    write_document(scale_map, path)
    result = parse_document_file(path)
    assert result.ok, result.error
    decoded = result.document
    assert decoded.room_count == 26758
    assert decoded.area_count == 64
    assert decoded.label_count == 397
    assert len(decoded.labels_by_area) == 51
    assert decoded.get_room(26758).area_id == 6


def _patch_custom_env_count(document, count):
    """Overwrite the customEnvColors element count that follows areaNames."""
    blob = encode_document(document)
    head = StreamWriter()
    head.int32(document.format_version)
    head.ordered_map(document.env_colors, head.int32, head.int32)
    head.ordered_map(document.area_names, head.int32, head.qstring)
    offset = len(head)
    return blob[:offset] + struct.pack(">i", count) + blob[offset + 4:]


def _chained_areas_document():
    """Area ids overlap room ids, so area member lists resemble room records."""
    document = MapDocument(format_version=20)
    members = {1: [], 2: []}
    for room_id in range(1, 41):
        area_id = 1 if room_id % 2 else 2
        members[area_id].append(room_id)
        east = room_id + 2 if room_id + 2 <= 40 else NO_EXIT
        document.rooms[room_id] = Room(
            id=room_id,
            area_id=area_id,
            x=room_id,
            y=0,
            z=0,
            exits=(east, 3, 4, 5, 6, 7, 8, 9, 10, 11, 12, 13),
            name=f"room {room_id}",
        )
    for area_id, rooms in members.items():
        document.area_names[area_id] = f"area {area_id}"
        document.areas[area_id] = Area(id=area_id, name=f"area {area_id}", rooms=rooms, z_levels=[0])
    return document


def test_resync_from_global_tables_skips_area_records():
    assembler = DocumentAssembler(_patch_custom_env_count(_chained_areas_document(), -7))
    result = assembler.run()
    assert result.ok, result.error
    assert result.document.room_count == 40
    assert result.document.get_room(40).name == "room 40"
    assert assembler.abandoned == [Section.GLOBAL_TABLES]


def test_resync_from_global_tables_on_scale_map(scale_map):
    assembler = DocumentAssembler(_patch_custom_env_count(scale_map, -7))
    result = assembler.run()
    assert result.ok, result.error
    assert result.document.room_count == 26758
    assert assembler.abandoned == [Section.GLOBAL_TABLES]


def test_options_default_to_environment(monkeypatch):
    monkeypatch.setenv("MUDMAP_SKIP_LABELS", "1")
    document = two_room_document(20, labels=[_label()])
    result = parse_document(encode_document(document))
    assert result.ok
    assert result.document.room_count == 2
    assert result.document.label_count == 0


def test_explicit_options_override_environment(monkeypatch):
    monkeypatch.setenv("MUDMAP_SKIP_LABELS", "1")
    document = two_room_document(20, labels=[_label()])
    result = parse_document(encode_document(document), ParserOptions())
    assert result.document.label_count == 1


def test_verbose_logs_record_offsets(caplog):
    package_logger = logging.getLogger("mudmap")
    previous = package_logger.level
    try:
        caplog.set_level(logging.DEBUG, logger="mudmap")
        package_logger.setLevel(logging.WARNING)
        document = two_room_document(20, labels=[_label()])
        parse_document(encode_document(document), ParserOptions(verbose=True))
        assert package_logger.level == logging.DEBUG
    finally:
        package_logger.setLevel(previous)
    messages = [record.getMessage() for record in caplog.records if record.name == "mudmap.records"]
    assert any(message.startswith("@0x") and "area -1" in message for message in messages)
    assert any(message.startswith("@0x") and "label 0 area -1" in message for message in messages)
    assert any(message.startswith("@0x") and "room 2 area -1 at (0,0,0)" in message for message in messages)


@pytest.mark.parametrize("version", [20, 21])
def test_two_rooms_with_special_exit_only(version):
    document = MapDocument(format_version=version)
    document.area_names = {-1: "Default Area"}
    document.areas[-1] = Area(id=-1, name="Default Area", rooms=[1, 2], z_levels=[0])
    document.rooms[1] = Room(id=1, area_id=-1, x=0, y=0, z=0, name=ROOM_NAME, special_exits={"east-passage": 2})
    document.rooms[2] = Room(id=2, area_id=-1, x=0, y=-1, z=0, name=ROOM_NAME)
    result = parse_document(encode_document(document), ParserOptions())
    assert result.ok, result.error
    decoded = result.document
    assert decoded.area_name(-1) == "Default Area"
    assert decoded.get_room(1).position == (0, 0, 0)
    assert decoded.get_room(2).position == (0, -1, 0)
    assert decoded.get_room(1).special_exits == {"east-passage": 2}
    assert decoded.get_room(1).special_exit_locks == []
    for room_id in (1, 2):
        assert decoded.get_room(room_id).exits == (NO_EXIT,) * 12
    assert list(decoded.get_room(1).iter_exits()) == []
