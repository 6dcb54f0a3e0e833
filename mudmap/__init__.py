"""
Decoder, writer and renderer for Mudlet-style binary map files.
"""

from .assembler import DocumentAssembler, ParseResult, Section, parse_document, parse_document_file
from .config import ParserOptions
from .cursor import ByteCursor
from .entities import (
    DIRECTIONS,
    NO_EXIT,
    Area,
    AreaExit,
    BoundingBox,
    Color,
    Font,
    Label,
    LegacyLine,
    MapDocument,
    Room,
)
from .errors import MalformedField, MapDecodeError, TruncatedStream, UnsupportedVersion
from .export import document_to_dict, export_json
from .logging import SectionTrace, configure_logging
from .render import RenderConfig, RenderResult, render_fragment, save_image
from .validate import MapStats, ReferentialIntegrityWarning, document_stats, validate_document
from .versions import MAX_FORMAT_VERSION, MIN_FORMAT_VERSION, Field, field_encoding, layout_for
from .writer import encode_document, encode_legacy, write_document

__all__ = [
    "DocumentAssembler",
    "ParseResult",
    "Section",
    "parse_document",
    "parse_document_file",
    "ParserOptions",
    "ByteCursor",
    "DIRECTIONS",
    "NO_EXIT",
    "Area",
    "AreaExit",
    "BoundingBox",
    "Color",
    "Font",
    "Label",
    "LegacyLine",
    "MapDocument",
    "Room",
    "MapDecodeError",
    "MalformedField",
    "TruncatedStream",
    "UnsupportedVersion",
    "document_to_dict",
    "export_json",
    "SectionTrace",
    "configure_logging",
    "RenderConfig",
    "RenderResult",
    "render_fragment",
    "save_image",
    "MapStats",
    "ReferentialIntegrityWarning",
    "document_stats",
    "validate_document",
    "MAX_FORMAT_VERSION",
    "MIN_FORMAT_VERSION",
    "Field",
    "field_encoding",
    "layout_for",
    "encode_document",
    "encode_legacy",
    "write_document",
]
