#!/usr/bin/env python3
"""
Decode a Mudlet-style binary map and optionally render a fragment of it.

    python mapsnap.py map.dat --stats --validate
    python mapsnap.py map.dat --room 1234 --output room.webp --radius 10
    python mapsnap.py map.dat --examine --debug
"""

from __future__ import annotations

import argparse
import sys
import threading
from pathlib import Path
from typing import List, Sequence

from mudmap.assembler import ParseResult, parse_document_file
from mudmap.config import ParserOptions
from mudmap.examine import examine_map
from mudmap.export import export_json
from mudmap.logging import configure_logging
from mudmap.render import RenderConfig, render_fragment, save_image
from mudmap.validate import document_stats, validate_document

DEFAULT_TIMEOUT = 30.0


def parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Decode a Mudlet map file and render a snapshot around one room."
    )
    parser.add_argument("map", type=Path, help="Path to the binary map file")
    parser.add_argument("--room", type=int, help="Room id to centre the rendered fragment on")
    parser.add_argument(
        "-o",
        "--output",
        type=Path,
        help="Image destination (.webp or .png, defaults to room_<id>.webp)",
    )
    parser.add_argument("--dump-json", type=Path, help="Write the decoded map as JSON to this path")
    parser.add_argument("--validate", action="store_true", help="Report dangling references")
    parser.add_argument("--stats", action="store_true", help="Print map statistics")
    parser.add_argument("--examine", action="store_true", help="Print the section-by-section structure dump")
    parser.add_argument("--debug", action="store_true", help="Verbose logging and per-record examine output")
    parser.add_argument(
        "--timeout",
        type=float,
        default=DEFAULT_TIMEOUT,
        help="Give up on parsing after this many seconds",
    )
    parser.add_argument("--skip-labels", action="store_true", help="Jump over the labels section")
    parser.add_argument("--strict", action="store_true", help="Disable resynchronization heuristics")

    render = parser.add_argument_group("rendering")
    render.add_argument("--width", type=int, default=800, help="Image width in pixels")
    render.add_argument("--height", type=int, default=600, help="Image height in pixels")
    render.add_argument("--radius", type=int, default=15, help="Rooms drawn around the centre room")
    render.add_argument("--room-size", type=int, default=20, help="Room size in pixels")
    render.add_argument("--room-spacing", type=int, default=25, help="Distance between room centres in pixels")
    render.add_argument("--quality", type=int, default=85, help="WEBP quality (100 = lossless)")
    render.add_argument("--round", action="store_true", help="Draw rooms as circles")
    render.add_argument("--upper", action="store_true", help="Ghost the level above")
    render.add_argument("--lower", action="store_true", help="Ghost the level below")
    return parser.parse_args(argv)


def _options(args: argparse.Namespace) -> ParserOptions:
    options = ParserOptions.from_env()
    options.skip_labels = options.skip_labels or args.skip_labels
    options.strict = options.strict or args.strict
    options.verbose = options.verbose or args.debug
    return options


def _parse_with_timeout(path: Path, options: ParserOptions, timeout: float) -> ParseResult | None:
    """
    Run the parse on a daemon thread; ``None`` means the deadline passed. An
    exception raised by the worker is re-raised here.
    """

    outcome: List[ParseResult] = []
    failures: List[BaseException] = []

    def work() -> None:
        try:
            outcome.append(parse_document_file(path, options))
        except Exception as exc:
            failures.append(exc)

    worker = threading.Thread(
        target=work,
        name="mapsnap-parse",
        daemon=True,
    )
    worker.start()
    worker.join(timeout)
    if worker.is_alive():
        return None
    if failures:
        raise failures[0]
    return outcome[0]


def _render_config(args: argparse.Namespace) -> RenderConfig:
    return RenderConfig(
        width=args.width,
        height=args.height,
        radius=args.radius,
        room_size=args.room_size,
        room_spacing=args.room_spacing,
        room_round=args.round,
        show_upper_level=args.upper,
        show_lower_level=args.lower,
    )


def _print_stats(result: ParseResult) -> None:
    document = result.document
    stats = document_stats(document)
    print(f"[i] Map version: {document.format_version}")
    print(f"[i] Rooms: {stats.rooms}  Areas: {stats.areas}  Environments: {stats.environments}  Labels: {stats.labels}")
    print(f"[i] Z levels: {stats.z_levels}")
    if stats.bounds is not None:
        box = stats.bounds
        print(
            f"[i] Bounding box: X({box.min_x},{box.max_x}) Y({box.min_y},{box.max_y}) Z({box.min_z},{box.max_z})"
        )
    for area_id in sorted(document.areas):
        print(f"    {area_id:4d}: {document.area_name(area_id)}")


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(sys.argv[1:] if argv is None else argv)
    options = _options(args)
    configure_logging(options.verbose)

    if not args.map.is_file():
        print(f"[error] Map file not found: {args.map}")
        return 1

    if args.examine:
        print(f"[+] Examining {args.map}")
        for line in examine_map(args.map, debug=args.debug, options=options):
            print(line)
        return 0

    print(f"[+] Parsing {args.map} (timeout {args.timeout:g}s)")
    try:
        result = _parse_with_timeout(args.map, options, args.timeout)
    except OSError as exc:
        print(f"[error] Could not read {args.map}: {exc}")
        return 1
    if result is None:
        print(f"[error] Parsing did not finish within {args.timeout:g} seconds")
        return 1
    document = result.document
    if result.error is not None:
        print(f"[error] {result.error}")
        print(f"[i] Partial map: {document.room_count} rooms, {document.area_count} areas")
        return 1
    print(f"[+] Decoded {document.room_count} rooms, {document.area_count} areas, {document.label_count} labels")

    if args.stats:
        _print_stats(result)

    if args.validate:
        warnings = validate_document(document)
        if warnings:
            print(f"[i] {len(warnings)} validation warnings:")
            for index, warning in enumerate(warnings, 1):
                print(f"    {index}. {warning.kind}: {warning.message}")
        else:
            print("[+] No validation warnings")

    if args.dump_json:
        export_json(document, args.dump_json)
        print(f"[+] JSON written to {args.dump_json}")

    if args.room is not None:
        try:
            rendered = render_fragment(document, args.room, _render_config(args))
        except ValueError as exc:
            print(f"[error] {exc}")
            return 1
        output_path = args.output or Path(f"room_{args.room}.webp")
        save_image(rendered.image, output_path, quality=args.quality)
        print(f"[+] Image written to {output_path}")
        print(f"[i] Centre room {rendered.center_room}, area {rendered.area_name!r} ({rendered.area_id}), z {rendered.z_level}")
        print(f"[i] Rooms drawn: {rendered.rooms_drawn}, image {rendered.image.width}x{rendered.image.height}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
