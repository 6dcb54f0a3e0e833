from __future__ import annotations


class MapDecodeError(Exception):
    """
    Base class for every decoding failure. Carries enough context to locate
    the problem inside a multi-megabyte map: the byte offset where the failing
    read started, the field being decoded, and the assembler section / record
    id active at the time (filled in by the assembler as the error bubbles up).
    """

    def __init__(
        self,
        message: str,
        *,
        offset: int | None = None,
        field: str | None = None,
        section: str | None = None,
        record: int | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.offset = offset
        self.field = field
        self.section = section
        self.record = record

    def annotate(self, *, section: str | None = None, record: int | None = None) -> "MapDecodeError":
        if section is not None and self.section is None:
            self.section = section
        if record is not None and self.record is None:
            self.record = record
        return self

    def __str__(self) -> str:
        parts = [self.message]
        if self.offset is not None:
            parts.append(f"offset=0x{self.offset:X}")
        if self.field:
            parts.append(f"field={self.field}")
        if self.section:
            parts.append(f"section={self.section}")
        if self.record is not None:
            parts.append(f"record={self.record}")
        return " | ".join(parts)


class TruncatedStream(MapDecodeError):
    """The source ran out of bytes in the middle of a field."""


class MalformedField(MapDecodeError):
    """A length or count prefix is structurally impossible."""


class UnsupportedVersion(MapDecodeError):
    def __init__(self, version: int, *, offset: int | None = 0) -> None:
        super().__init__(f"unsupported map format version {version}", offset=offset, field="version")
        self.version = version
