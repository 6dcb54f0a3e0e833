from __future__ import annotations

import logging
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, TextIO, Tuple

LOG_FORMAT = "%(levelname)s %(name)s: %(message)s"


def configure_logging(verbose: bool = False, stream: TextIO | None = None) -> logging.Logger:
    """Attach a single stream handler to the package logger."""
    root = logging.getLogger("mudmap")
    for handler in list(root.handlers):
        if getattr(handler, "_mudmap_handler", False):
            root.removeHandler(handler)
    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler._mudmap_handler = True  # type: ignore[attr-defined]
    root.addHandler(handler)
    root.setLevel(logging.DEBUG if verbose else logging.INFO)
    return root


@dataclass
class SectionTrace:
    """
    Offset log of section boundaries and per-record events, filled in by the
    assembler while it walks the stream. ``flush`` writes it out when a
    destination is set.
    """

    destination: Path | None = None
    record_items: bool = False
    events: List[Tuple[int, str, str]] = field(default_factory=list)

    def record(self, offset: int, section: str, note: str) -> None:
        self.events.append((offset, section, note))

    def item(self, offset: int, section: str, note: str) -> None:
        if self.record_items:
            self.events.append((offset, section, note))

    def lines(self) -> List[str]:
        return [f"@0x{offset:08X} [{section}] {note}" for offset, section, note in self.events]

    def flush(self) -> None:
        if self.destination is None or not self.events:
            return
        self.destination.parent.mkdir(parents=True, exist_ok=True)
        self.destination.write_text("\n".join(self.lines()) + "\n", encoding="utf-8")
