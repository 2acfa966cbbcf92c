"""layout-ingest CLI.

Commands:
    detect: Print the detected format of a layout file.
    parse: Parse a layout file and print a summary or canonical JSON geometry.
    schema: Print the JSON Schema of the exported geometry.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from . import __version__
from .config import load_ingest_config
from .detect import LayoutFormat, detect_layout_format
from .errors import LayoutIngestError
from .geometry import GEOMETRY_SCHEMA, Geometry, canonical_json_dumps, geometry_canonical_json, write_geometry_json
from .ingest import load_layout

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the layout-ingest CLI.

    Returns:
        ArgumentParser with the detect, parse and schema subcommands configured.
    """
    parser = argparse.ArgumentParser(
        prog="layout-ingest",
        description="Read Qucs, Sonnet and KiCad layouts into a canonical geometry",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (can be repeated)",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to an ingest config YAML file",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    detect_cmd = subparsers.add_parser("detect", help="Print the detected layout format")
    detect_cmd.add_argument("path", type=Path, help="Layout file")

    parse_cmd = subparsers.add_parser("parse", help="Parse a layout file into geometry")
    parse_cmd.add_argument("path", type=Path, help="Layout file")
    parse_cmd.add_argument(
        "--format",
        choices=[fmt.value for fmt in LayoutFormat],
        default=None,
        help="Skip detection and parse as this format",
    )
    parse_cmd.add_argument(
        "--json",
        nargs="?",
        const="-",
        default=None,
        help="Emit canonical JSON geometry to stdout or to the given file",
    )

    subparsers.add_parser("schema", help="Print the JSON Schema of the exported geometry")

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the layout-ingest CLI.

    Args:
        argv: Command line arguments (defaults to sys.argv).

    Returns:
        Exit code (0 for success, 1 for ingest errors).
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    log_level = logging.WARNING
    if args.verbose >= 1:
        log_level = logging.INFO
    if args.verbose >= 2:
        log_level = logging.DEBUG
    logging.basicConfig(level=log_level, format="%(levelname)s: %(message)s")

    try:
        if args.command == "detect":
            return _cmd_detect(args)
        elif args.command == "parse":
            return _cmd_parse(args)
        elif args.command == "schema":
            return _cmd_schema(args)
        else:
            parser.error(f"Unknown command: {args.command}")
            return 2
    except LayoutIngestError as e:
        logger.error("Error: %s", e)
        return 1


def _cmd_detect(args: argparse.Namespace) -> int:
    config = load_ingest_config(args.config)
    fmt = detect_layout_format(args.path, prefix_lines=config.prefix_lines)
    sys.stdout.write(f"{fmt.value}\n")
    return 0


def _cmd_parse(args: argparse.Namespace) -> int:
    config = load_ingest_config(args.config)
    geometry = load_layout(args.path, config=config, layout_format=args.format)

    if args.json:
        _emit_json(geometry, args.json)
    else:
        _print_geometry(geometry)
    return 0


def _cmd_schema(args: argparse.Namespace) -> int:
    sys.stdout.write(f"{canonical_json_dumps(GEOMETRY_SCHEMA)}\n")
    return 0


def _emit_json(geometry: Geometry, target: str) -> None:
    """Emit JSON to stdout or file."""
    if target == "-":
        sys.stdout.write(f"{geometry_canonical_json(geometry)}\n")
        return
    write_geometry_json(Path(target), geometry)


def _print_geometry(geometry: Geometry) -> None:
    """Print geometry summary in human-readable format."""
    substrate = geometry.substrate
    print(f"Layout: {geometry.source_path} ({geometry.source_format.value})")
    print(f"  Conductors: {len(geometry.conductors)}")
    print(f"  Ports: {len(geometry.ports)}")
    print("  Bounds: [{:.3f} {:.3f} {:.3f} {:.3f}] mm".format(*geometry.bounds.as_tuple()))
    print(f"  Substrate: er={substrate.er:g} h={substrate.h:g} mm t={substrate.t:g} mm tand={substrate.tand:g}")
    if geometry.warnings:
        print(f"  Warnings: {len(geometry.warnings)}")
        for warning in geometry.warnings:
            print(f"    - {warning}")
