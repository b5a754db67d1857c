#!/usr/bin/env python3
"""
Multi-port serial frame logger.

Reads a JSON channel set, opens every serial port it names and prints each
delimited frame, colorized per port, optionally copying everything to a text
log and an HTML log. Runs until Ctrl+C (or --duration).

Usage examples:
  python spy_logger.py ports.json
  python spy_logger.py ports.json --text-log spy.txt --html-log spy.html
  python spy_logger.py ports.json --duration 30 --no-color
  python spy_logger.py --list-ports
"""

from __future__ import annotations

import argparse
import asyncio
from functools import partial
import glob
import logging
import os
import signal
import sys

import colorama
from serial.tools import list_ports

from serial_spy import __version__
from serial_spy.config import ConfigError, load_channel_settings
from serial_spy.const import CONFIG_ENV_VAR, DEFAULT_CHUNK_SIZE, NAME
from serial_spy.coordinator import SpyCoordinator
from serial_spy.sinks import ConsoleSink, SinkFanout, channel_styles
from serial_spy.transport import SerialTransport

_LOGGER = logging.getLogger(__name__)

CONFIG_HELP = """\
<config.json> is a JSON array of objects, one per serial port, with:
  comPort: tty/COM serial port name (pyserial URLs such as loop:// work too)
  openOptions: an object with
    baudRate (integer), dataBits (5 to 8), parity ("none", "even", "odd",
    "mark", "space") and optionally stopBits (1, 1.5, 2; default 1)
  color: black, red, green, yellow, blue, magenta, cyan, white, blackBright
    (also: gray, grey), redBright, greenBright, yellowBright, blueBright,
    magentaBright, cyanBright, whiteBright
  bgColor: bgBlack, bgRed, bgGreen, ... (same names with a "bg" prefix)
  delimiter: regular expression ending a frame, e.g. "\\n" or "\\r\\n"
  format: hex, ascii, utf8
  stamp: normal (seconds since start), diff (seconds since the previous line
    of any port), time (wall clock), none
  translateCtrl: "yes" to show control characters as \\r, \\n, ^A, ...
    (ignored in hex format)
  filters: optional array of regular expressions; a frame is shown when at
    least one matches
  remanence: optional count of frames still shown after filters stop
    matching (default 0)
  replacements: optional array of {"what": regex, "with": text} applied in
    order to every occurrence; "with" may use \\1 or \\g<name>
  encoding: optional text codec for ascii/utf8 formats
"""


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        prog=NAME,
        description="Log delimited frames from several serial ports at once.",
        epilog=CONFIG_HELP,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    p.add_argument("config", nargs="?", default=os.environ.get(CONFIG_ENV_VAR), help="JSON channel set file")
    p.add_argument("--text-log", dest="text_log", help="Also write a plain text log to this path")
    p.add_argument("--html-log", dest="html_log", help="Also write an HTML log to this path")
    p.add_argument(
        "--duration",
        type=float,
        default=None,
        help="Stop after N seconds (default: run until Ctrl+C)",
    )
    p.add_argument(
        "--chunk",
        type=int,
        default=DEFAULT_CHUNK_SIZE,
        help=f"Maximum bytes per serial read (default: {DEFAULT_CHUNK_SIZE})",
    )
    p.add_argument("--no-color", dest="no_color", action="store_true", help="Disable console colors")
    p.add_argument("--list-ports", dest="list_ports", action="store_true", help="List likely serial ports and exit")
    p.add_argument("-v", "--verbose", action="store_true", help="Debug logging on stderr")
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return p.parse_args(argv)


def _list_candidate_ports() -> list[tuple[str, str]]:
    """Return (device, description) for every port a channel could name in comPort."""
    ports = [(info.device, info.description or "") for info in sorted(list_ports.comports())]

    known = {device for device, _ in ports}
    for pattern in ("/dev/ttyUSB*", "/dev/ttyACM*", "/dev/tty.usbserial*", "/dev/serial/by-id/*"):
        ports.extend((device, "") for device in sorted(glob.glob(pattern)) if device not in known)
    return ports


def _list_ports() -> None:
    ports = _list_candidate_ports()
    if not ports:
        print("No serial ports found. A channel can still use comPort \"loop://\" for a dry run.")
        return

    print("Serial ports usable as comPort:")
    for device, description in ports:
        if description and description != "n/a":
            print(f"- {device}  ({description})")
        else:
            print(f"- {device}")


def _install_stop_handlers(loop: asyncio.AbstractEventLoop, stop_event: asyncio.Event) -> None:
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except (NotImplementedError, RuntimeError):
            # Windows: Ctrl+C cancels the main task instead, shutdown still runs.
            pass


async def run(args: argparse.Namespace, settings: list) -> int:
    console = ConsoleSink(use_color=not args.no_color)
    fanout = SinkFanout.open(
        console,
        text_path=args.text_log,
        html_path=args.html_log,
        styles=channel_styles(settings),
        title=f"{NAME} {args.config}",
    )
    coordinator = SpyCoordinator(
        settings,
        fanout,
        source=args.config,
        transport_factory=partial(SerialTransport, chunk_size=max(1, args.chunk)),
    )

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    _install_stop_handlers(loop, stop_event)
    if args.duration:
        loop.call_later(args.duration, stop_event.set)

    return await coordinator.async_run(stop_event)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    if args.list_ports:
        _list_ports()
        return 0

    if not args.config:
        print(f"{NAME}: a JSON channel set file is required (or set {CONFIG_ENV_VAR}); see --help", file=sys.stderr)
        return 1

    colorama.just_fix_windows_console()
    try:
        settings = load_channel_settings(args.config)
    except ConfigError as exc:
        print(f"{colorama.Fore.RED}{exc}{colorama.Style.RESET_ALL}", file=sys.stderr)
        return 1

    try:
        return asyncio.run(run(args, settings))
    except KeyboardInterrupt:
        print("Interrupted.", file=sys.stderr)
        return 130


if __name__ == "__main__":
    raise SystemExit(main())
