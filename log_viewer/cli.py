"""Command-line front end: follow the live log stream in a terminal."""

import argparse
import asyncio
import logging
import signal
import sys

from log_viewer.config import load_config, load_yaml_config
from log_viewer.query import FILTER_TYPES, TIME_RANGES
from log_viewer.renderer import TerminalRenderer
from log_viewer.session import LogViewerSession

logger = logging.getLogger(__name__)


def _parse_filter(value: str) -> tuple[str, str]:
    if "=" not in value:
        raise argparse.ArgumentTypeError(f"expected TYPE=VALUE, got {value!r}")
    type_, label = value.split("=", 1)
    if type_ not in FILTER_TYPES:
        raise argparse.ArgumentTypeError(
            f"unknown filter type {type_!r}, expected one of {', '.join(FILTER_TYPES)}"
        )
    return type_, label


def build_cli_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="log-viewer",
        description="Follow a live log stream merged with historical logs.",
    )
    parser.add_argument("--config", default=None, help="Path to YAML config file")
    parser.add_argument("--api-url", dest="api_base_url", default=None,
                        help="Base URL of the log API (default: http://localhost:8000)")
    parser.add_argument("--ws-url", dest="ws_url", default=None,
                        help="WebSocket URL of the live log stream")
    parser.add_argument("--page-size", type=int, default=None,
                        help="Records per historical page (default: 25)")
    parser.add_argument("--filter", dest="filters", action="append", default=[],
                        type=_parse_filter, metavar="TYPE=VALUE",
                        help="Only show records whose field equals VALUE (repeatable)")
    parser.add_argument("--search", default="",
                        help="Only show records containing this text (case-insensitive)")
    parser.add_argument("--time-range", choices=list(TIME_RANGES), default=None,
                        help="Load every record from this lookback window first")
    parser.add_argument("--no-color", action="store_true", help="Disable ANSI colours")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    return parser


async def run(args) -> int:
    config = load_config(args, load_yaml_config(args.config))
    session = LogViewerSession(config)
    for type_, value in args.filters:
        session.add_predicate(type_, value)
    session.set_keyword(args.search)

    renderer = TerminalRenderer(session, color=not args.no_color)
    renderer.attach()

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop_event.set)

    logger.info("Connecting to %s (api=%s)", config.ws_url, config.api_base_url)
    if args.time_range:
        await session.load_time_range(args.time_range)
    session.start()

    exit_code = 0
    try:
        while not stop_event.is_set():
            if renderer.report_error():
                exit_code = 1
                break
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=0.5)
            except asyncio.TimeoutError:
                pass
    finally:
        renderer.detach()
        await session.close()
        logger.info("Stopped after %d records", renderer.printed)
    return exit_code


def main(argv=None) -> int:
    args = build_cli_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s — %(message)s",
        stream=sys.stderr,
    )
    return asyncio.run(run(args))
