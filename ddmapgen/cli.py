"""
Command Line Interface Module

Parses command-line arguments and runs the `shapes` and `generate` commands.
"""

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import List, Mapping, Optional, Tuple

from .constants import ENV_VERBOSE, MAP_FILE_SUFFIX, VALID_CONNECTIVITY
from .errors import MapGenError

logger = logging.getLogger(__name__)

LOG_LEVELS = {
    "error": logging.ERROR,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
    "trace": logging.DEBUG,
}


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-i", "--input",
        required=True,
        help="Input floor plan image (PNG, JPEG, BMP, GIF, TIFF)"
    )

    parser.add_argument(
        "--config",
        help="YAML settings file (default: $DDMAPGEN_CONFIG)"
    )

    tuning = parser.add_argument_group("pipeline options")

    tuning.add_argument(
        "--tolerance",
        type=float,
        help="Simplification tolerance in pixels"
    )

    tuning.add_argument(
        "--min-region",
        type=int,
        help="Regions smaller than this many pixels merge into background"
    )

    tuning.add_argument(
        "--scale",
        type=float,
        help="Source pixels per map grid cell"
    )

    tuning.add_argument(
        "--connectivity",
        type=int,
        choices=VALID_CONNECTIVITY,
        help="Pixel connectivity for regions"
    )

    tuning.add_argument(
        "--workers",
        type=int,
        help="Worker threads for per-region tracing"
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Verbose output"
    )

    parser.add_argument(
        "--log-level",
        choices=sorted(LOG_LEVELS),
        help="Log level (default: info, or $DDMAPGEN_VERBOSE)"
    )


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser for the converter."""
    parser = argparse.ArgumentParser(
        prog="ddmapgen",
        description="Convert raster dungeon floor plans to DungeonDraft maps",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  ddmapgen shapes -i dungeon.png
  ddmapgen shapes -i dungeon.png --render
  ddmapgen generate -i dungeon.png -o dungeon.dungeondraft_map
  ddmapgen generate -i dungeon.png -o out/dungeon.dungeondraft_map --scale 64 -v
        """
    )

    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")
    subparsers.required = True

    shapes = subparsers.add_parser("shapes", help="Preview detected shapes")
    _add_common_arguments(shapes)
    shapes.add_argument(
        "--render",
        nargs="?",
        const="",
        default=None,
        metavar="PATH",
        help="Also write an annotated image (default: <image>.shapes.png)"
    )

    generate = subparsers.add_parser("generate", help="Generate a .dungeondraft_map file")
    _add_common_arguments(generate)
    generate.add_argument(
        "-o", "--output",
        required=True,
        help=f"Output map file ({MAP_FILE_SUFFIX})"
    )
    generate.add_argument(
        "--no-backup",
        action="store_true",
        help="Do not back up an existing output file"
    )

    return parser


def validate_args(args: argparse.Namespace) -> Tuple[bool, str]:
    """
    Validate parsed arguments.

    Args:
        args: Parsed arguments

    Returns:
        Tuple of (is_valid, error_message)
    """
    input_path = Path(args.input)
    if not input_path.exists():
        return False, f"Input file not found: {args.input}"

    if args.command == "generate":
        output_path = Path(args.output)
        if output_path.suffix.lower() != MAP_FILE_SUFFIX:
            return False, f"Output file must end with {MAP_FILE_SUFFIX}: {args.output}"

        try:
            output_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            return False, f"Cannot create output directory: {e}"

    if args.workers is not None and args.workers < 1:
        return False, f"Workers must be at least 1: {args.workers}"

    return True, ""


def parse_args(args: Optional[List[str]] = None) -> argparse.Namespace:
    """
    Parse and validate command-line arguments.

    Args:
        args: Optional list of arguments (uses sys.argv if None)

    Returns:
        Parsed and validated arguments
    """
    parser = create_parser()
    parsed = parser.parse_args(args)

    is_valid, error_msg = validate_args(parsed)
    if not is_valid:
        parser.error(error_msg)

    return parsed


def resolve_log_level(args: argparse.Namespace, environ: Optional[Mapping[str, str]] = None) -> int:
    """--verbose wins, then --log-level, then DDMAPGEN_VERBOSE, then INFO."""
    environ = os.environ if environ is None else environ
    if args.verbose:
        return logging.DEBUG
    name = args.log_level or environ.get(ENV_VERBOSE, "").strip().lower()
    return LOG_LEVELS.get(name, logging.INFO)


def setup_logging(level: int) -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
        stream=sys.stderr,
    )


def build_config(args: argparse.Namespace):
    """Effective configuration: settings file, environment, then flags."""
    from .config import load_config

    return load_config(
        args.config,
        overrides={
            "simplify_tolerance": args.tolerance,
            "min_region_pixels": args.min_region,
            "scale": args.scale,
            "connectivity": args.connectivity,
            "workers": args.workers,
        },
    )


def run_shapes_command(args: argparse.Namespace) -> int:
    from .output.preview import format_shape_summary, render_shapes
    from .pipeline import find_shapes

    result = find_shapes(args.input, build_config(args))

    for line in format_shape_summary(result.shapes):
        print(line)
    for warning in result.warnings:
        print(f"Warning: {warning}", file=sys.stderr)

    if args.render is not None and result.shapes:
        path = render_shapes(result.grid, result.shapes, args.render or None)
        print(f"Shapes image: {path}")

    return 0


def run_generate_command(args: argparse.Namespace) -> int:
    from .pipeline import generate_map

    result = generate_map(
        args.input, args.output, build_config(args), backup=not args.no_backup
    )

    counts = result.document.role_counts()
    summary = ", ".join(f"{count} {role}" for role, count in counts.items() if count)
    print(f"Wrote {result.output_path}: {len(result.document.shapes)} shapes ({summary})")
    for warning in result.warnings:
        print(f"Warning: {warning}", file=sys.stderr)

    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for CLI."""
    args = parse_args(argv)
    setup_logging(resolve_log_level(args))

    try:
        if args.command == "shapes":
            return run_shapes_command(args)
        return run_generate_command(args)
    except KeyboardInterrupt:
        print("\nProcessing cancelled by user", file=sys.stderr)
        return 1
    except MapGenError as e:
        print(f"Error {e.describe()}", file=sys.stderr)
        if args.verbose:
            import traceback
            traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())
