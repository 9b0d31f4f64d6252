"""
Entry point for the argo_harvester component.
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from .application.exceptions import HarvesterError
from .infrastructure.containers import Container
from .infrastructure.options import build_window

logger = logging.getLogger(__name__)

_FORMATS = ("parquet", "mat")


def setup_logging(level: str):
    """Applies basic logging configuration."""
    logging.basicConfig(level=level)


def resolve_format(output: Path, requested: str = None) -> str:
    """Picks the output format, falling back on the file suffix."""
    if requested:
        return requested
    return "mat" if output.suffix.lower() == ".mat" else "parquet"


async def run_application(args: argparse.Namespace):
    """Wires and runs the application using the DI container."""

    container = Container()
    args.output_format = resolve_format(args.output, args.format)
    container.cli_args.from_dict(vars(args))
    setup_logging(level=container.config().logging.level)

    try:
        # Options are validated before any network activity.
        window = build_window(
            start=args.start,
            end=args.end,
            months=args.months,
            lat=args.lat,
            lon=args.lon,
            min_depth=args.min_depth,
            basins=args.basins,
        )
        harvester_service = container.harvester_service()
        await harvester_service.run(window, args.output)
    except HarvesterError as e:
        logger.error(f"An application error occurred: {e}")
        sys.exit(1)
    finally:
        await container.http_client().aclose()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Download ARGO profiles from the GADR basin inventories."
    )

    parser.add_argument(
        "output",
        type=Path,
        help="Destination file, e.g. profiles.parquet or profiles.mat",
    )

    parser.add_argument(
        "--start",
        required=True,
        help="Start of the time window (ISO 8601), e.g. 2017-12-31",
    )

    parser.add_argument(
        "--end",
        required=True,
        help="End of the time window (ISO 8601), e.g. 2018-02-03T09:18:30",
    )

    parser.add_argument(
        "--months",
        nargs=2,
        type=int,
        metavar=("FIRST", "LAST"),
        help="Limiting months of year, e.g. 7 8 for July to August only.",
    )

    parser.add_argument(
        "--lat",
        nargs=2,
        type=float,
        metavar=("SOUTH", "NORTH"),
        help="Latitude range in degrees north, between -90 and 90.",
    )

    parser.add_argument(
        "--lon",
        nargs=2,
        type=float,
        metavar=("WEST", "EAST"),
        help="Longitude range in degrees east, between -180 and 180.",
    )

    parser.add_argument(
        "--min-depth",
        type=float,
        help="Minimum depth in meters a profile must reach, e.g. 200.",
    )

    parser.add_argument(
        "--basins",
        nargs="+",
        help="Basins to search: atlantic, pacific and/or indian.",
    )

    parser.add_argument(
        "--format",
        choices=_FORMATS,
        help="Output format. Defaults to the output file suffix.",
    )

    return parser


def main():
    cli_args = build_parser().parse_args()
    asyncio.run(run_application(cli_args))


if __name__ == "__main__":
    main()
