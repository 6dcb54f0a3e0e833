"""
Top-level map decoding.

``DocumentAssembler`` walks the stream through a fixed sequence of sections
and builds a ``MapDocument``. Errors never escape ``parse_document``: they are
returned next to whatever was decoded before the failure, so callers always
get a best-effort partial map.
"""

from __future__ import annotations

import logging
import struct
from enum import Enum
from pathlib import Path
from typing import List, NamedTuple, Set

from .config import ParserOptions
from .cursor import ByteCursor, Source
from .entities import EXIT_SLOTS, NO_EXIT, MapDocument
from .errors import MalformedField, MapDecodeError, TruncatedStream, UnsupportedVersion
from .legacy import LEGACY_TAG, decode_legacy
from .logging import SectionTrace
from .records import (
    decode_area,
    decode_area_names,
    decode_custom_env_colors,
    decode_env_colors,
    decode_font,
    decode_hash_table,
    decode_label,
    decode_room,
    decode_user_data,
)
from .sequences import read_count
from .versions import Field, Layout, is_supported, layout_for

logger = logging.getLogger(__name__)

MAX_ROOM_ID = 50_000_000
RESYNC_CHUNK = 64 * 1024
# bytes handed to a trial decode of a resync candidate
RESYNC_TRIAL_BYTES = 1024 * 1024
# room id, area id, x, y, z and the twelve exit slots
_ROOM_PROBE = struct.Struct(">ii3i%di" % EXIT_SLOTS)


class Section(Enum):
    START = "start"
    VERSION = "version"
    GLOBAL_TABLES = "global_tables"
    AREAS = "areas"
    ROOM_ID_HASH = "room_id_hash"
    LABELS = "labels"
    ROOMS = "rooms"
    DONE = "done"


RECOVERABLE_SECTIONS = (Section.GLOBAL_TABLES, Section.ROOM_ID_HASH, Section.LABELS)


class ParseResult(NamedTuple):
    document: MapDocument
    error: MapDecodeError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _plausible_room_start(window: bytes, offset: int, known_areas: Set[int]) -> bool:
    values = _ROOM_PROBE.unpack_from(window, offset)
    room_id, area_id = values[0], values[1]
    if not 0 < room_id <= MAX_ROOM_ID or area_id not in known_areas:
        return False
    return all(target == NO_EXIT or target > 0 for target in values[5:])


class DocumentAssembler:
    def __init__(
        self,
        source: Source,
        options: ParserOptions | None = None,
        trace: SectionTrace | None = None,
    ) -> None:
        self.cursor = ByteCursor(source)
        self.options = options if options is not None else ParserOptions.from_env()
        if self.options.verbose:
            logging.getLogger("mudmap").setLevel(logging.DEBUG)
        self.trace = trace
        self.document = MapDocument()
        self.section = Section.START
        self.abandoned: List[Section] = []
        self.layout: Layout | None = None

    def _enter(self, section: Section) -> None:
        self.section = section
        offset = self.cursor.position
        logger.debug("@0x%X entering %s", offset, section.value)
        if self.trace is not None:
            self.trace.record(offset, section.value, "begin")

    def _mark(self, note: str) -> None:
        if self.trace is not None:
            self.trace.record(self.cursor.position, self.section.value, note)

    def run(self) -> ParseResult:
        try:
            if self.cursor.peek(len(LEGACY_TAG)) == LEGACY_TAG:
                self._enter(Section.VERSION)
                decode_legacy(self.cursor, self.document)
            else:
                layout = self._read_version()
                if self._decode_prefix(layout):
                    self._decode_rooms(layout)
            self._enter(Section.DONE)
        except MapDecodeError as exc:
            exc.annotate(section=self.section.value)
            logger.warning("map decode stopped: %s", exc)
            return ParseResult(self.document, exc)
        return ParseResult(self.document)

    # --- sections ---------------------------------------------------------

    def _read_version(self) -> Layout:
        self._enter(Section.VERSION)
        version = self.cursor.read_int32("version")
        self.document.format_version = version
        if not is_supported(version):
            raise UnsupportedVersion(version)
        self._mark(f"version = {version}")
        self.layout = layout_for(version)
        return self.layout

    def _decode_prefix(self, layout: Layout) -> bool:
        """
        Decode everything ahead of the rooms. Returns False when the rest of
        the stream holds no room records to decode.
        """

        steps = (
            (Section.GLOBAL_TABLES, self._decode_global_tables),
            (Section.AREAS, self._decode_areas),
            (Section.ROOM_ID_HASH, self._decode_room_id_hash),
            (Section.LABELS, self._decode_labels),
        )
        for section, step in steps:
            self._enter(section)
            try:
                outcome = step(layout)
            except MalformedField as exc:
                if section not in RECOVERABLE_SECTIONS or not self.options.resync:
                    raise
                exc.annotate(section=section.value)
                if not self._resynchronize(str(exc)):
                    raise
                return True
            if outcome is not None:
                return outcome
        return True

    def _decode_global_tables(self, layout: Layout) -> None:
        cursor = self.cursor
        document = self.document
        self._mark("envColors")
        document.env_colors = decode_env_colors(cursor)
        self._mark("areaNames")
        document.area_names = decode_area_names(cursor)
        if layout.has(Field.CUSTOM_ENV_COLORS):
            self._mark("customEnvColors")
            document.custom_env_colors = decode_custom_env_colors(cursor)
        if layout.has(Field.ROOM_HASH_INDEX):
            self._mark("roomDbHashToRoomId")
            document.room_hash_index = decode_hash_table(cursor, field="roomDbHashToRoomId")
        if layout.has(Field.MAP_USER_DATA):
            self._mark("userData")
            document.user_data = decode_user_data(cursor)
        if layout.has(Field.MAP_SYMBOL_FONT):
            self._mark("mapSymbolFont")
            document.symbol_font = decode_font(cursor, resync=self.options.resync)
            document.font_fudge_factor = cursor.read_float64("mapFontFudgeFactor")
            document.use_only_map_font = cursor.read_bool("useOnlyMapFont")

    def _decode_areas(self, layout: Layout) -> None:
        count = read_count(self.cursor, field="areas")
        self._mark(f"areas count = {count}")
        for _ in range(count):
            area_id = self.cursor.read_int32("area.id")
            if self.trace is not None:
                self.trace.item(self.cursor.position, self.section.value, f"area {area_id}")
            try:
                area = decode_area(self.cursor, area_id, layout, self.document.area_names.get(area_id, ""))
            except MapDecodeError as exc:
                raise exc.annotate(section=self.section.value, record=area_id)
            self.document.areas[area_id] = area

    def _decode_room_id_hash(self, layout: Layout) -> None:
        if layout.has(Field.ROOM_ID_HASH):
            self.document.room_id_hash = decode_hash_table(self.cursor, field="roomIdHash")

    def _decode_labels(self, layout: Layout) -> bool | None:
        if not layout.has(Field.MAP_LABELS):
            return None
        cursor = self.cursor
        groups = read_count(cursor, field="labels")
        self._mark(f"label groups = {groups}")
        if groups and self.options.skip_labels:
            if self.options.resync:
                if not self._resynchronize("labels skipped on request"):
                    logger.warning("no room records found after skipped labels")
                    return False
                return True
            logger.debug("strict mode: decoding labels despite skip request")
        for _ in range(groups):
            total = read_count(cursor, field="labels.total")
            area_id = cursor.read_int32("labels.areaId")
            bucket = self.document.labels_by_area.setdefault(area_id, [])
            for _ in range(total):
                label = decode_label(cursor, layout, area_id)
                bucket.append(label)
        return None

    def _decode_rooms(self, layout: Layout) -> None:
        self._enter(Section.ROOMS)
        cursor = self.cursor
        rooms = self.document.rooms
        while not cursor.at_end(4):
            offset = cursor.position
            room_id = cursor.read_int32("room.id")
            if room_id <= 0:
                logger.warning("non-positive room id %d at 0x%X, ignoring the rest of the stream", room_id, offset)
                break
            if self.trace is not None:
                self.trace.item(offset, self.section.value, f"room {room_id}")
            try:
                rooms[room_id] = decode_room(cursor, room_id, layout)
            except MapDecodeError as exc:
                raise exc.annotate(section=self.section.value, record=room_id)
            if len(rooms) % 10_000 == 0:
                logger.debug("decoded %d rooms", len(rooms))
        self._mark(f"total rooms = {len(rooms)}")

    # --- recovery ---------------------------------------------------------

    def _known_area_ids(self) -> Set[int]:
        return set(self.document.areas) | set(self.document.area_names)

    def _find_room_start(self) -> int | None:
        known = self._known_area_ids()
        if not known:
            return None
        cursor = self.cursor
        probe = _ROOM_PROBE.size
        while True:
            window = cursor.peek(RESYNC_CHUNK + probe)
            for idx in range(len(window) - probe + 1):
                if _plausible_room_start(window, idx, known) and self._confirm_room_start(idx, known):
                    cursor.skip(idx)
                    return cursor.position
            if len(window) < RESYNC_CHUNK + probe:
                return None
            cursor.skip(RESYNC_CHUNK)

    def _confirm_room_start(self, offset: int, known: Set[int]) -> bool:
        """
        Decode a whole room at ``offset`` bytes past the cursor on a snapshot.
        The candidate stands only if that room decodes and is followed by
        another plausible room or by the end of the stream.
        """

        snapshot = self.cursor.peek(offset + RESYNC_TRIAL_BYTES)
        complete = len(snapshot) < offset + RESYNC_TRIAL_BYTES
        trial = ByteCursor(snapshot[offset:])
        try:
            room_id = trial.read_int32()
            decode_room(trial, room_id, self.layout)
        except TruncatedStream:
            return not complete
        except MapDecodeError:
            return False
        rest = trial.peek(_ROOM_PROBE.size)
        if len(rest) == _ROOM_PROBE.size:
            return _plausible_room_start(rest, 0, known)
        return not complete or not rest

    def _resynchronize(self, reason: str) -> bool:
        start = self.cursor.position
        found = self._find_room_start()
        if found is None:
            logger.warning("resync from 0x%X failed (%s): no plausible room record", start, reason)
            return False
        logger.warning(
            "resync: abandoned %s at 0x%X (%s), rooms resume at 0x%X",
            self.section.value,
            start,
            reason,
            found,
        )
        self.abandoned.append(self.section)
        self._mark(f"resync to 0x{found:X}")
        return True


def parse_document(source: Source, options: ParserOptions | None = None, trace: SectionTrace | None = None) -> ParseResult:
    return DocumentAssembler(source, options, trace).run()


def parse_document_file(path: Path | str, options: ParserOptions | None = None, trace: SectionTrace | None = None) -> ParseResult:
    with open(path, "rb") as handle:
        return parse_document(handle, options, trace)
