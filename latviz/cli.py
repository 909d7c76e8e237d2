# Copyright 2025 icecake0141
# SPDX-License-Identifier: Apache-2.0
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# This file was created or modified with the assistance of an AI (Large Language Model).
# Review for correctness and security.

"""
Command-line interface for LatViz.

This module contains the main entry point, argument handling and the
render/input loop that runs on the main thread while probers run in the
background.
"""

import argparse
import dataclasses
import logging
import os
import sys
import time
from typing import List, Optional

from latviz.config import DEFAULT_CONFIG_PATH, MonitorConfig, load_config, parse_duration
from latviz.coordinator import Coordinator
from latviz.input_keys import is_quit_key, read_key, terminal_cbreak_mode
from latviz.latency_log import DEFAULT_LOG_PATH, save_latency_log
from latviz.ui_render import (
    VIEWS,
    build_display_lines,
    cycle_view,
    format_summary_lines,
    get_terminal_size,
    prepare_terminal_for_exit,
    render_display,
    reset_render_cache,
)

logger = logging.getLogger(__name__)

LOOP_SLEEP_SECONDS = 0.05

_EPILOG = """\
YAML config example:
  hosts:
    - google.com
    - github.com:443
  interval: 1s
  timeout: 1s
  use_icmp: true

Controls:
  q        Quit (Ctrl-C, SIGINT and SIGTERM also stop cleanly)
  v        Toggle table/graph view

ICMP mode needs raw socket privileges (root or cap_net_raw).
On exit, latency samples are saved to the --output file (default: latency_log.json).
"""


def _configure_logging(log_level: str, log_file: Optional[str]) -> None:
    """Configure logging handlers for CLI execution."""
    handlers: List[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        handlers.insert(0, logging.FileHandler(os.path.expanduser(log_file), encoding="utf-8"))
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(message)s",
        handlers=handlers,
        force=True,
    )


def _duration_arg(value: str) -> float:
    """argparse type for durations such as '500ms' or '2s'."""
    try:
        seconds = parse_duration(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc
    if seconds <= 0:
        raise argparse.ArgumentTypeError(f"duration must be greater than zero, got {value!r}")
    return seconds


def _apply_overrides(config: MonitorConfig, args: argparse.Namespace) -> MonitorConfig:
    """
    Overlay command-line overrides onto the loaded config.

    Only options that were given on the command line (not None) replace the
    config file values.
    """
    overrides = {}
    for field in ("interval", "timeout", "use_icmp"):
        value = getattr(args, field, None)
        if value is not None:
            overrides[field] = value
    if not overrides:
        return config
    return dataclasses.replace(config, **overrides)


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="latviz",
        description="LatViz - Real-time latency and packet loss monitor for multiple hosts",
        epilog=_EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "-c",
        "--config",
        type=str,
        default=DEFAULT_CONFIG_PATH,
        help=f"Path to YAML config file (default: {DEFAULT_CONFIG_PATH})",
    )
    parser.add_argument(
        "-i",
        "--interval",
        type=_duration_arg,
        default=None,
        help="Override the probe interval per host (e.g. 1s, 500ms)",
    )
    parser.add_argument(
        "-t",
        "--timeout",
        type=_duration_arg,
        default=None,
        help="Override the per-probe timeout (e.g. 1s, 800ms)",
    )
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--icmp",
        dest="use_icmp",
        action="store_const",
        const=True,
        default=None,
        help="Probe with ICMP echo (overrides use_icmp)",
    )
    mode.add_argument(
        "--tcp",
        dest="use_icmp",
        action="store_const",
        const=False,
        help="Probe with TCP connect to host:port (overrides use_icmp)",
    )
    parser.add_argument(
        "-o",
        "--output",
        type=str,
        default=DEFAULT_LOG_PATH,
        help=f"Latency log written on exit (default: {DEFAULT_LOG_PATH})",
    )
    parser.add_argument(
        "--view",
        type=str,
        default=VIEWS[0],
        choices=list(VIEWS),
        help="Initial view (table|graph)",
    )
    parser.add_argument(
        "--refresh",
        type=_duration_arg,
        default=1.0,
        help="Screen refresh interval (default: 1s)",
    )
    parser.add_argument(
        "-C",
        "--color",
        action="store_true",
        default=False,
        help="Enable colored output (green=ok, yellow=loss, red=no reply)",
    )
    parser.add_argument(
        "--log-level",
        type=str.upper,
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)",
    )
    parser.add_argument(
        "--log-file",
        type=str,
        default=None,
        help="Optional log file path for persistent logging",
    )
    return parser


def handle_options(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse arguments and load the config file; exits with status 2 on any error."""
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        config = load_config(args.config)
    except ValueError as exc:
        parser.error(str(exc))
    args.monitor_config = _apply_overrides(config, args)
    return args


def _render_snapshot(coordinator: Coordinator, view: str, use_color: bool) -> None:
    term_size = get_terminal_size(fallback=(80, 24))
    lines = build_display_lines(
        coordinator.snapshot(),
        coordinator.config.mode_label,
        view,
        term_size.columns,
        term_size.lines,
        use_color,
    )
    render_display(lines)


def run_monitor_loop(coordinator: Coordinator, args: argparse.Namespace, interactive: bool) -> None:
    """Render snapshots and handle keys until a stop is requested."""
    view = args.view
    use_color = args.color and interactive
    last_render: Optional[float] = None
    with terminal_cbreak_mode():
        while not coordinator.stopped:
            key = read_key()
            if is_quit_key(key):
                coordinator.request_stop("quit key")
                break
            if key == "v":
                view = cycle_view(view)
                reset_render_cache()
                last_render = None
            if interactive:
                now = time.monotonic()
                if last_render is None or now - last_render >= args.refresh:
                    _render_snapshot(coordinator, view, use_color)
                    last_render = now
            coordinator.stop_event.wait(LOOP_SLEEP_SECONDS)


def run(args: argparse.Namespace) -> int:
    """Run the LatViz monitor with parsed arguments."""
    _configure_logging(args.log_level, args.log_file)
    config: MonitorConfig = args.monitor_config
    interactive = sys.stdout.isatty()

    print(
        f"LatViz - Probing {len(config.hosts)} host(s) via {config.mode_label} "
        f"with interval={config.interval}s, timeout={config.timeout}s"
    )
    coordinator = Coordinator(config)
    restore_signals = coordinator.install_signal_handlers()
    try:
        coordinator.start()
        try:
            run_monitor_loop(coordinator, args, interactive)
        except KeyboardInterrupt:
            coordinator.request_stop("keyboard interrupt")
        finally:
            coordinator.request_stop("monitor loop exited")

        logger.debug("Monitor loop finished (%s)", coordinator.stop_reason)
        prepare_terminal_for_exit()
        print("Waiting for probers to finish...")
        final = coordinator.shutdown(persist=lambda snapshot: save_latency_log(snapshot, args.output))
    finally:
        restore_signals()

    for line in format_summary_lines(final):
        print(line)
    return 0


def main(argv: Optional[List[str]] = None) -> None:
    """Main entrypoint for the CLI - parses arguments and runs the application."""
    args = handle_options(argv)
    sys.exit(run(args))
