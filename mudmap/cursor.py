from __future__ import annotations

import struct
from typing import BinaryIO, Union

from .errors import MalformedField, TruncatedStream

CHUNK_SIZE = 64 * 1024
NULL_STRING_LENGTH = 0xFFFFFFFF
MAX_STRING_BYTES = 10_000_000

_U16 = struct.Struct(">H")
_I32 = struct.Struct(">i")
_U32 = struct.Struct(">I")
_F64 = struct.Struct(">d")

Source = Union[bytes, bytearray, memoryview, BinaryIO]


class ByteCursor:
    """
    Forward-only big-endian reader over an in-memory blob or a binary file.

    File sources are pulled in CHUNK_SIZE slices; once bytes are consumed they
    are dropped on the next refill so a large map never sits in memory twice.
    ``position`` is always the absolute offset from the start of the source.
    """

    def __init__(self, source: Source, *, chunk_size: int = CHUNK_SIZE) -> None:
        if isinstance(source, (bytes, bytearray, memoryview)):
            self._buf = bytes(source)
            self._stream: BinaryIO | None = None
        else:
            self._buf = b""
            self._stream = source
        self._chunk_size = chunk_size
        self._pos = 0
        self._base = 0
        self.field: str | None = None

    @property
    def position(self) -> int:
        return self._base + self._pos

    def _available(self) -> int:
        return len(self._buf) - self._pos

    def _fill(self, count: int) -> bool:
        if self._available() >= count:
            return True
        if self._stream is None:
            return False
        if self._pos:
            self._buf = self._buf[self._pos:]
            self._base += self._pos
            self._pos = 0
        parts = [self._buf]
        have = len(self._buf)
        while have < count:
            chunk = self._stream.read(max(self._chunk_size, count - have))
            if not chunk:
                self._stream = None
                break
            parts.append(chunk)
            have += len(chunk)
        self._buf = b"".join(parts)
        return have >= count

    def _take(self, count: int, field: str | None) -> int:
        if field is not None:
            self.field = field
        if not self._fill(count):
            raise TruncatedStream(
                f"needed {count} bytes but only {self._available()} remain",
                offset=self.position,
                field=self.field,
            )
        start = self._pos
        self._pos += count
        return start

    def at_end(self, count: int = 1) -> bool:
        """True when fewer than ``count`` bytes are left."""
        return not self._fill(count)

    def peek(self, count: int) -> bytes:
        self._fill(count)
        return self._buf[self._pos:self._pos + count]

    def skip(self, count: int, field: str | None = None) -> None:
        self._take(count, field)

    def read_bytes(self, count: int, field: str | None = None) -> bytes:
        start = self._take(count, field)
        return self._buf[start:start + count]

    def read_uint8(self, field: str | None = None) -> int:
        start = self._take(1, field)
        return self._buf[start]

    def read_int8(self, field: str | None = None) -> int:
        value = self.read_uint8(field)
        return value - 0x100 if value & 0x80 else value

    def read_bool(self, field: str | None = None) -> bool:
        return self.read_uint8(field) != 0

    def read_uint16(self, field: str | None = None) -> int:
        start = self._take(2, field)
        return _U16.unpack_from(self._buf, start)[0]

    def read_int32(self, field: str | None = None) -> int:
        start = self._take(4, field)
        return _I32.unpack_from(self._buf, start)[0]

    def read_uint32(self, field: str | None = None) -> int:
        start = self._take(4, field)
        return _U32.unpack_from(self._buf, start)[0]

    def read_float64(self, field: str | None = None) -> float:
        start = self._take(8, field)
        return _F64.unpack_from(self._buf, start)[0]

    def read_qstring(self, field: str | None = None) -> str:
        """
        Qt string: uint32 byte length then UTF-16-BE payload. The all-ones
        length is Qt's null string and decodes to ``""`` without a payload.
        Impossible lengths are rejected before any payload byte is consumed.
        """

        offset = self.position
        length = self.read_uint32(field)
        if length == NULL_STRING_LENGTH:
            return ""
        if length % 2:
            raise MalformedField(f"odd string byte length {length}", offset=offset, field=self.field)
        if length > MAX_STRING_BYTES:
            raise MalformedField(f"string byte length {length} exceeds limit", offset=offset, field=self.field)
        return self.read_bytes(length).decode("utf-16-be", errors="replace")
