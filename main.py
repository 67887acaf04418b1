"""Command line entry point: read or write GPS EXIF metadata."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from collections.abc import Sequence
from pathlib import Path

from geotag.errors import InvalidCoordinatesError, MetadataReadError
from geotag.extractor import extract_exif_metadata
from geotag.files import create_backup, is_supported_image_file
from geotag.writer import write_gps_to_exif
from observability import context, log_exc, setup_logging


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="geotag",
        description="Read GPS and capture time from image EXIF, or write GPS back.",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    read = commands.add_parser("read", help="Print GPS/timestamp metadata as JSON lines.")
    read.add_argument("paths", nargs="+", help="Image files to inspect.")

    write = commands.add_parser("write", help="Write GPS coordinates into an image.")
    write.add_argument("path", help="Source image.")
    write.add_argument("--lat", type=float, required=True, help="Latitude in decimal degrees.")
    write.add_argument("--lon", type=float, required=True, help="Longitude in decimal degrees.")
    write.add_argument("--output", help="Write to this path instead of modifying the source.")
    write.add_argument(
        "--backup",
        action="store_true",
        help="Copy the source to <name>_backup_<timestamp> before writing.",
    )
    return parser.parse_args(list(argv) if argv is not None else None)


def _run_read(paths: Sequence[str]) -> int:
    status = 0
    for raw_path in paths:
        with context(file=raw_path):
            if not is_supported_image_file(raw_path):
                logging.warning("Skipping unsupported file %s", raw_path)
                continue
            try:
                metadata = extract_exif_metadata(raw_path)
            except MetadataReadError as exc:
                log_exc("metadata_read_failed", exc)
                status = 1
                continue
        print(json.dumps(metadata.to_dict(), ensure_ascii=False))
    return status


def _run_write(args: argparse.Namespace) -> int:
    source = Path(args.path)
    with context(file=str(source), target=args.output):
        if args.backup:
            try:
                backup = create_backup(source)
            except MetadataReadError as exc:
                log_exc("backup_failed", exc)
                return 1
            logging.info("Backup created at %s", backup)
        try:
            written = write_gps_to_exif(source, args.lat, args.lon, args.output)
        except InvalidCoordinatesError as exc:
            print(f"geotag: error: {exc}", file=sys.stderr)
            return 2
    return 0 if written else 1


def main(argv: Sequence[str] | None = None) -> int:
    setup_logging()
    args = _parse_args(argv)
    if args.command == "read":
        return _run_read(args.paths)
    return _run_write(args)


if __name__ == "__main__":
    raise SystemExit(main())
