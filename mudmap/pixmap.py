from __future__ import annotations

import logging

from .cursor import ByteCursor
from .errors import TruncatedStream

logger = logging.getLogger(__name__)

PNG_SIGNATURE = b"\x89PNG"
PNG_TRAILER_TAG = b"IEND"
PNG_TRAILER_CRC_BYTES = 4


def scan_embedded_png(cursor: ByteCursor) -> bytes | None:
    """
    Consume one embedded PNG and return it verbatim.

    The stream gives no length for the image, so we look for the 4-byte PNG
    signature and then walk byte by byte until the ``IEND`` chunk tag, taking
    the 4 checksum bytes that follow it. The returned blob runs from the
    signature through that checksum. When the signature is missing nothing is
    consumed and ``None`` is returned.
    """

    if cursor.peek(4) != PNG_SIGNATURE:
        return None

    start = cursor.position
    blob = bytearray(cursor.read_bytes(4, "label.pixmap"))
    window = b""
    while window != PNG_TRAILER_TAG:
        if cursor.at_end():
            raise TruncatedStream(
                "embedded image ended before its IEND trailer",
                offset=cursor.position,
                field="label.pixmap",
            )
        byte = cursor.read_bytes(1)
        blob += byte
        window = (window + byte)[-4:]
    blob += cursor.read_bytes(PNG_TRAILER_CRC_BYTES, "label.pixmap")
    logger.debug("embedded png at 0x%X: %d bytes", start, len(blob))
    return bytes(blob)
