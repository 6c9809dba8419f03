#!/usr/bin/env python3
"""
telemdash — Serial Telemetry Dashboard
=======================================

Launch the application:
    python main.py                          # demo mode (fake device, no hardware)
    python main.py --port /dev/ttyUSB0      # real serial port @ 9600 baud
    python main.py --list-ports --vid 0x2341

Type a command and press Enter to send it to the device. Press the exit key
(default: q) to quit.
"""

import argparse
import curses
import logging
import sys
from dataclasses import replace

import serial

from telemdash.app import Dashboard
from telemdash.config import SETTINGS_FILE, load_config, save_config
from telemdash.events import Events, EventSourceClosed
from telemdash.serial_backend import DEFAULT_BAUDRATE, DemoSerialChannel, SerialChannel, detect_ports
from telemdash.ui import CursesSurface

logger = logging.getLogger("telemdash")


def _configure_logging(log_file: str, verbose: bool) -> None:
    # stdout/stderr belong to curses while the dashboard runs.
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[logging.FileHandler(log_file)],
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="telemdash",
        description="telemdash — terminal dashboard for a serial telemetry device",
    )
    parser.add_argument(
        "--port", "-p",
        default=None,
        help="Serial port (e.g. COM3, /dev/ttyUSB0).  Omit for demo mode.",
    )
    parser.add_argument(
        "--baud", "-b",
        type=int,
        default=DEFAULT_BAUDRATE,
        help=f"Baud rate (default: {DEFAULT_BAUDRATE}).",
    )
    parser.add_argument("--exit-key", default=None, help="Key that quits the dashboard (default: q).")
    parser.add_argument("--tick-interval", type=float, default=None, help="Seconds between redraw ticks.")
    parser.add_argument("--settings", default=SETTINGS_FILE, help=f"Settings file (default: {SETTINGS_FILE}).")
    parser.add_argument("--save-settings", action="store_true", help="Write the effective settings and exit.")
    parser.add_argument("--list-ports", action="store_true", help="List detected serial ports and exit.")
    parser.add_argument("--vid", type=lambda v: int(v, 16), default=None, help="USB VID filter in hex, e.g. 0x2341")
    parser.add_argument("--pid", type=lambda v: int(v, 16), default=None, help="USB PID filter in hex, e.g. 0x0043")
    parser.add_argument("--log-file", default="telemdash_debug.log", help="Debug log path.")
    parser.add_argument("--verbose", "-v", action="store_true", help="Log at DEBUG level.")
    return parser


def main(argv=None) -> int:
    args = _build_parser().parse_args(argv)
    _configure_logging(args.log_file, args.verbose)

    if args.list_ports:
        ports = detect_ports(args.vid, args.pid)
        if not ports:
            print("[WARN] No serial ports detected.")
            return 1
        print("[INFO] Detected ports:")
        for port in ports:
            print(f"  - {port}")
        return 0

    config = load_config(args.settings)
    try:
        if args.exit_key is not None:
            config = replace(config, exit_key=args.exit_key)
        if args.tick_interval is not None:
            config = replace(config, tick_interval=args.tick_interval)
    except ValueError as exc:
        print(f"[ERROR] {exc}")
        return 2

    if args.save_settings:
        save_config(config, args.settings)
        print(f"[telemdash] Settings saved to {args.settings}")
        return 0

    if args.port:
        print(f"[telemdash] Using serial port {args.port} @ {args.baud} baud")
        channel = SerialChannel(port=args.port, baudrate=args.baud)
    else:
        print("[telemdash] No --port given → running in DEMO mode (fake device)")
        channel = DemoSerialChannel(interval=config.tick_interval)

    try:
        channel.open()
    except serial.SerialException as exc:
        print(f"[ERROR] Could not open {args.port}: {exc}")
        logger.error(f"Could not open {args.port}: {exc}")
        return 2

    try:
        with channel, CursesSurface() as surface:
            events = Events.with_config(config, surface.key_source())
            Dashboard(channel, events, surface, config).run()
    except EventSourceClosed as exc:
        logger.error(f"Event source closed: {exc}")
        print(f"[ERROR] Input stopped unexpectedly: {exc}")
        return 1
    except curses.error as exc:
        logger.error(f"Terminal setup failed: {exc}")
        print(f"[ERROR] Could not set up the terminal: {exc}")
        return 1
    except KeyboardInterrupt:
        print("[INFO] Stopped.")
        return 0
    return 0


if __name__ == "__main__":
    sys.exit(main())
