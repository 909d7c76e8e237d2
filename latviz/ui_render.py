#!/usr/bin/env python3
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
# Review required for correctness, security, and licensing.

"""
LatViz UI Rendering Module

This module turns a Snapshot into terminal lines and paints them. It only ever
reads snapshots, never the live StatsRecords. Two views are available:

  - table: ranked hosts with latency, loss, counters and a sparkline
  - graph: one ASCII latency graph per host with a numbered legend
"""

import os
import re
import sys
from datetime import datetime, timezone, tzinfo
from typing import List, Optional, Sequence, Tuple

from latviz.snapshot import Snapshot
from latviz.stats import RecordView, format_latency_ms

# ANSI and display constants
ANSI_RESET = "\x1b[0m"
ANSI_ESCAPE_RE = re.compile(r"\x1b\[[0-9;]*m")
STATUS_COLORS = {
    "ok": "\x1b[32m",  # Green
    "lossy": "\x1b[33m",  # Yellow
    "down": "\x1b[31m",  # Red
}
VIEWS = ("table", "graph")
HEADER_LINES = 2
SPARK_CHARS = "▁▂▃▄▅▆▇█"

# Global state for rendering
LAST_RENDER_LINES: Optional[List[str]] = None


# ============================================================================
# ANSI/Text Utility Functions
# ============================================================================


def strip_ansi(text: str) -> str:
    """Remove ANSI escape sequences from text."""
    return ANSI_ESCAPE_RE.sub("", text)


def visible_len(text: str) -> int:
    """Get the visible length of text (excluding ANSI codes)."""
    return len(strip_ansi(text))


def truncate_visible(text: str, width: int) -> Tuple[str, int]:
    """
    Truncate text to a visible width, preserving ANSI codes.

    Returns:
        Tuple of (truncated_text, visible_count)
    """
    result = []
    visible_count = 0
    index = 0
    while index < len(text) and visible_count < width:
        if text[index] == "\x1b":
            match = ANSI_ESCAPE_RE.match(text, index)
            if match:
                result.append(match.group(0))
                index = match.end()
                continue
        result.append(text[index])
        index += 1
        visible_count += 1
    truncated = "".join(result)
    if "\x1b[" in truncated and not truncated.endswith(ANSI_RESET):
        truncated += ANSI_RESET
    return truncated, visible_count


def pad_visible(text: str, width: int) -> str:
    """Pad text to a visible width, preserving ANSI codes."""
    truncated, visible_count = truncate_visible(text, width)
    if visible_count < width:
        truncated += " " * (width - visible_count)
    return truncated


def pad_lines(lines: Sequence[str], width: int, height: int) -> List[str]:
    """Pad lines to fill the specified width and height."""
    padded = [pad_visible(line, width) for line in lines[:height]]
    while len(padded) < height:
        padded.append("".ljust(width))
    return padded


def entry_status(entry: RecordView) -> str:
    """Classify a host as 'down' (no reply yet), 'lossy' or 'ok'."""
    if entry.current_latency is None:
        return "down"
    if entry.packet_loss_percent > 0:
        return "lossy"
    return "ok"


def colorize_text(text: str, status: Optional[str], use_color: bool) -> str:
    """Apply color to text based on status."""
    if not use_color or not status:
        return text
    color = STATUS_COLORS.get(status)
    if not color:
        return text
    return f"{color}{text}{ANSI_RESET}"


# ============================================================================
# Layout/Geometry Functions
# ============================================================================


def get_terminal_size(fallback: Tuple[int, int] = (80, 24)) -> os.terminal_size:
    """
    Get the terminal size by directly querying the terminal.

    os.get_terminal_size() is used instead of shutil so the size follows
    terminal resizes rather than COLUMNS/LINES.

    Args:
        fallback: Tuple of (columns, lines) to use if terminal size
                  cannot be determined

    Returns:
        os.terminal_size with columns and lines attributes
    """
    for stream in (sys.stdout, sys.stderr, sys.stdin):
        try:
            if stream.isatty():
                return os.get_terminal_size(stream.fileno())
        except (AttributeError, ValueError, OSError):
            continue
    return os.terminal_size(fallback)


def compute_table_layout(host_labels: Sequence[str], width: int) -> Tuple[int, int]:
    """
    Compute (label_width, sparkline_width) for the table view.

    Fixed columns: rank (4), latency (11), loss (8), sent/recv (12).
    """
    max_host_len = max((len(host) for host in host_labels), default=4)
    label_width = max(4, min(max_host_len, max(10, width // 3)))
    fixed = 4 + label_width + 1 + 11 + 8 + 12
    return label_width, max(0, width - fixed - 1)


# ============================================================================
# Graph Utilities
# ============================================================================


def build_sparkline(rtt_values: Sequence[float], width: Optional[int] = None) -> str:
    """Build a sparkline from RTT values (most recent values win when clipped)."""
    values = list(rtt_values)
    if width is not None:
        if width <= 0:
            return ""
        values = values[-width:]
    if not values:
        return ""
    min_val = min(values)
    max_val = max(values)
    span = max_val - min_val
    if span == 0:
        return SPARK_CHARS[0] * len(values)
    top = len(SPARK_CHARS) - 1
    return "".join(SPARK_CHARS[max(0, min(top, round((value - min_val) / span * top)))] for value in values)


def build_ascii_graph(values: Sequence[Optional[float]], width: int, height: int) -> List[str]:
    """Build an ASCII line graph from values, right-aligned to the newest sample."""
    if width <= 0 or height <= 0:
        return []

    trimmed_values: List[Optional[float]] = list(values[-width:]) if values else []
    if len(trimmed_values) < width:
        padding: List[Optional[float]] = [None] * (width - len(trimmed_values))
        trimmed_values = padding + trimmed_values

    numeric_values = [value for value in trimmed_values if value is not None]
    if not numeric_values:
        return [" " * width for _ in range(height)]

    min_val = min(numeric_values)
    max_val = max(numeric_values)
    span = max_val - min_val
    if span == 0:
        span = 1.0

    grid = [[" " for _ in range(width)] for _ in range(height)]
    for x, value in enumerate(trimmed_values):
        if value is None:
            continue
        scaled = int(round((value - min_val) / span * (height - 1)))
        grid[height - 1 - scaled][x] = "*"

    return ["".join(row) for row in grid]


# ============================================================================
# View Rendering
# ============================================================================


def format_timestamp(now_utc: datetime, display_tz: tzinfo = timezone.utc) -> str:
    """Format a timestamp with timezone label."""
    local = now_utc.astimezone(display_tz)
    return f"{local.strftime('%Y-%m-%d %H:%M:%S')} ({local.tzname() or 'UTC'})"


def build_header_lines(snapshot: Snapshot, mode_label: str, view: str, width: int, display_tz: tzinfo = timezone.utc) -> List[str]:
    """Build the title line and the key help line."""
    taken = datetime.fromtimestamp(snapshot.taken_at, timezone.utc)
    title = f"LatViz - {len(snapshot)} host(s) via {mode_label} - {format_timestamp(taken, display_tz)}"
    help_line = f"[{view}] q: quit  v: toggle table/graph"
    return [pad_visible(title, width), pad_visible(help_line, width)]


def format_table_row(
    rank: int, entry: RecordView, label_width: int, spark_width: int, use_color: bool = False
) -> str:
    """Format one ranked host row."""
    host = entry.host if len(entry.host) <= label_width else entry.host[: max(1, label_width - 1)] + "~"
    latency = format_latency_ms(entry.current_latency)
    counters = f"{entry.received_count}/{entry.sent_count}"
    row = (
        f"{rank:>3} {host:<{label_width}} {latency:>10} {entry.packet_loss_percent:>6.1f}% {counters:>11}"
    )
    if spark_width > 0:
        row += " " + build_sparkline([rtt for _ts, rtt in entry.samples], spark_width)
    return colorize_text(row, entry_status(entry), use_color)


def render_table_view(snapshot: Snapshot, width: int, height: int, use_color: bool = False) -> List[str]:
    """Render the ranked table view body (without the header)."""
    label_width, spark_width = compute_table_layout([entry.host for entry in snapshot], width)
    heading = f"{'#':>3} {'Host':<{label_width}} {'Latency':>10} {'Loss':>7} {'Recv/Sent':>11}"
    if spark_width > 0:
        heading += " History"
    lines = [heading]
    for rank, entry in enumerate(snapshot, start=1):
        lines.append(format_table_row(rank, entry, label_width, spark_width, use_color))
    return pad_lines(lines, width, height)


def render_graph_view(snapshot: Snapshot, width: int, height: int, use_color: bool = False) -> List[str]:
    """Render one stacked latency graph (milliseconds) per host."""
    if not len(snapshot) or height <= 0:
        return pad_lines([], width, height)
    block_height = max(2, height // len(snapshot))
    graph_height = block_height - 1
    lines: List[str] = []
    for rank, entry in enumerate(snapshot, start=1):
        rtts_ms = [rtt * 1000 for _ts, rtt in entry.samples]
        label = f"{rank}. {entry.host} {format_latency_ms(entry.current_latency)} loss {entry.packet_loss_percent:.1f}%"
        if rtts_ms:
            label += f" [{min(rtts_ms):.1f}-{max(rtts_ms):.1f} ms]"
        lines.append(colorize_text(label, entry_status(entry), use_color))
        lines.extend(build_ascii_graph(rtts_ms, width, graph_height))
    return pad_lines(lines, width, height)


def build_display_lines(
    snapshot: Snapshot,
    mode_label: str,
    view: str,
    width: int,
    height: int,
    use_color: bool = False,
    display_tz: tzinfo = timezone.utc,
) -> List[str]:
    """Build the complete screen for a snapshot."""
    body_height = max(0, height - HEADER_LINES)
    if view == "graph":
        body = render_graph_view(snapshot, width, body_height, use_color)
    else:
        body = render_table_view(snapshot, width, body_height, use_color)
    return build_header_lines(snapshot, mode_label, view, width, display_tz)[:height] + body


def render_display(lines: List[str]) -> None:
    """Paint lines to the terminal, rewriting only rows that changed."""
    global LAST_RENDER_LINES
    if not lines:
        return

    if LAST_RENDER_LINES is None:
        sys.stdout.write("\x1b[2J\x1b[H")
        output_chunks = [f"\x1b[{index + 1};1H\x1b[2K{line}" for index, line in enumerate(lines)]
        sys.stdout.write("".join(output_chunks))
        sys.stdout.flush()
        LAST_RENDER_LINES = lines
        return

    max_lines = max(len(LAST_RENDER_LINES), len(lines))
    output_chunks = []
    for index in range(max_lines):
        previous_line = LAST_RENDER_LINES[index] if index < len(LAST_RENDER_LINES) else None
        current_line = lines[index] if index < len(lines) else ""
        if previous_line == current_line and index < len(lines):
            continue
        output_chunks.append(f"\x1b[{index + 1};1H\x1b[2K{current_line}")

    if output_chunks:
        sys.stdout.write("".join(output_chunks))
        sys.stdout.flush()

    LAST_RENDER_LINES = lines


def reset_render_cache() -> None:
    """Force the next render_display() call to repaint the whole screen."""
    global LAST_RENDER_LINES
    LAST_RENDER_LINES = None


def cycle_view(current_view: str) -> str:
    """Cycle between the available views."""
    if current_view not in VIEWS:
        return VIEWS[0]
    return VIEWS[(VIEWS.index(current_view) + 1) % len(VIEWS)]


# ============================================================================
# Terminal Utilities
# ============================================================================


def format_summary_lines(snapshot: Snapshot) -> List[str]:
    """Plain-text summary of a snapshot, printed after the UI closes."""
    lines = ["=" * 60, "SUMMARY", "=" * 60]
    for rank, entry in enumerate(snapshot, start=1):
        status = "OK" if entry.received_count > 0 else "FAILED"
        lines.append(
            f"{rank:>3}. {entry.host:30} {format_latency_ms(entry.current_latency):>10} "
            f"{entry.received_count}/{entry.sent_count} replies ({entry.packet_loss_percent:.1f}% loss) [{status}]"
        )
    return lines


def prepare_terminal_for_exit() -> None:
    """Prepare the terminal for exit by clearing the screen area."""
    if not sys.stdout.isatty():
        return
    term_size = get_terminal_size(fallback=(80, 24))
    sys.stdout.write("\n" * term_size.lines)
    sys.stdout.flush()
