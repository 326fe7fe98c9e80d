#!/usr/bin/env python3
"""
Influx Writer command line

Write a single point:
    influx-writer --url http://localhost:8086 --database metrics \\
        --measurement cpu --tag host=server01 --field usage=0.5 --field cores=8i

Write a file of line protocol (- for stdin):
    influx-writer --url http://localhost:8086 --database metrics --file batch.lp

Connection settings fall back to influx_writer.conf and INFLUX_* variables.
"""

import argparse
import asyncio
import logging
import sys
from typing import List, Optional, Tuple

from influx_writer.client import BatchClient
from influx_writer.config_loader import WriterSettings, load_settings
from influx_writer.errors import ConfigError, InfluxWriterError, ValidationError
from influx_writer.logging_config import setup_logging
from influx_writer.measurement import Point
from influx_writer.protocol.line_protocol_parser import LineProtocolParser

logger = logging.getLogger(__name__)


def _split_assignment(text: str, what: str) -> Tuple[str, str]:
    key, sep, value = text.partition('=')
    if not sep or not key:
        raise ValidationError(f"{what} must look like key=value, got {text!r}")
    return key, value


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="influx-writer",
        description="Write measurements to InfluxDB using line protocol"
    )
    parser.add_argument("--config", default=None, help="TOML config file (default: influx_writer.conf)")
    parser.add_argument("--url", default=None, help="InfluxDB base URL")
    parser.add_argument("--database", default=None, help="Target database")
    parser.add_argument("--precision", default=None, help="Timestamp precision (ns, u, ms, s, m, h)")
    parser.add_argument("--log-level", default=None, help="Log level (default: INFO)")
    parser.add_argument("--structured-logs", action="store_true", help="Emit JSON log lines")

    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--measurement", help="Measurement name for a single point")
    source.add_argument("--file", help="Line protocol file to write (- for stdin)")

    parser.add_argument("--tag", action="append", default=[], help="Tag as key=value (repeatable)")
    parser.add_argument(
        "--field", action="append", default=[],
        help="Field as key=value using line protocol literals: 3i, 2.5, true, \"text\" (repeatable)"
    )
    parser.add_argument("--timestamp", type=int, default=None, help="Integer epoch timestamp")
    return parser


def build_point(args: argparse.Namespace) -> Point:
    point = Point(args.measurement)
    for text in args.tag:
        point.tag(*_split_assignment(text, "Tag"))
    for text in args.field:
        key, value = _split_assignment(text, "Field")
        point.field(key, LineProtocolParser.parse_field_value(value))
    if args.timestamp is not None:
        point.time(args.timestamp)
    return point


def load_points(path: str) -> List[Point]:
    if path == '-':
        return LineProtocolParser.parse_batch(sys.stdin.read())
    try:
        with open(path, encoding='utf-8') as f:
            return LineProtocolParser.parse_batch(f.read())
    except OSError as e:
        raise ValidationError(f"Unable to read {path}: {e}") from e


async def run(args: argparse.Namespace, settings: WriterSettings) -> int:
    for key in ("url", "database", "precision"):
        value = getattr(args, key)
        if value is not None:
            settings.set("influxdb", key, value)

    client = BatchClient.from_config(settings.client_config())
    points = load_points(args.file) if args.file else [build_point(args)]

    result = await client.add_data(points)
    logger.info(f"Wrote {result.line_count} points to {client.config.database} (HTTP {result.status})")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.file and (args.tag or args.field or args.timestamp is not None):
        parser.error("--tag, --field and --timestamp only apply with --measurement")

    try:
        settings = load_settings(args.config)
    except ConfigError as e:
        setup_logging(level=args.log_level or "INFO", structured=args.structured_logs)
        logger.error(f"Configuration error: {e}")
        return 1

    log_config = settings.get_logging_config()
    setup_logging(
        level=args.log_level or log_config.get("level", "INFO"),
        structured=args.structured_logs or log_config.get("format") == "structured",
        include_trace=log_config.get("include_trace", False)
    )

    try:
        return asyncio.run(run(args, settings))
    except InfluxWriterError as e:
        logger.error(f"Write failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
