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
# Review for correctness and security.

"""
Unit tests for latviz.ui_render module.
"""

import io
import os
import sys
import unittest
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "../..")))

from latviz import ui_render  # noqa: E402  # pylint: disable=wrong-import-position
from latviz.snapshot import take_snapshot  # noqa: E402  # pylint: disable=wrong-import-position
from latviz.stats import StatsRecord  # noqa: E402  # pylint: disable=wrong-import-position
from latviz.ui_render import (  # noqa: E402  # pylint: disable=wrong-import-position
    SPARK_CHARS,
    build_ascii_graph,
    build_display_lines,
    build_sparkline,
    compute_table_layout,
    cycle_view,
    entry_status,
    format_summary_lines,
    format_timestamp,
    pad_visible,
    render_display,
    reset_render_cache,
    strip_ansi,
    truncate_visible,
    visible_len,
)


def _record(host, rtts=(), failures=0):
    record = StatsRecord(host)
    for index, rtt in enumerate(rtts):
        record.mark_sent()
        record.record_success(rtt, 100.0 + index)
    for _ in range(failures):
        record.mark_sent()
        record.record_failure()
    return record


def _snapshot():
    return take_snapshot(
        [
            _record("slow.example", [0.040, 0.050]),
            _record("fast.example", [0.010, 0.012], failures=1),
            _record("down.example", failures=3),
        ],
        now=0.0,
    )


class TestTextHelpers(unittest.TestCase):
    """Test cases for ANSI-aware text helpers"""

    def test_strip_ansi_and_visible_len(self):
        text = "\x1b[32mok\x1b[0m"
        self.assertEqual(strip_ansi(text), "ok")
        self.assertEqual(visible_len(text), 2)

    def test_truncate_visible_keeps_codes_and_resets(self):
        truncated, count = truncate_visible("\x1b[31mabcdef\x1b[0m", 3)
        self.assertEqual(count, 3)
        self.assertEqual(strip_ansi(truncated), "abc")
        self.assertTrue(truncated.endswith("\x1b[0m"))

    def test_pad_visible(self):
        self.assertEqual(pad_visible("ab", 4), "ab  ")
        self.assertEqual(pad_visible("abcdef", 4), "abcd")


class TestStatusAndLayout(unittest.TestCase):
    """Test cases for status classification and table layout"""

    def test_entry_status(self):
        snapshot = _snapshot()
        self.assertEqual(entry_status(snapshot.get("slow.example")), "ok")
        self.assertEqual(entry_status(snapshot.get("fast.example")), "lossy")
        self.assertEqual(entry_status(snapshot.get("down.example")), "down")

    def test_table_layout_fits_width(self):
        label_width, spark_width = compute_table_layout(["a" * 50], 80)
        self.assertLessEqual(label_width, 26)
        self.assertGreaterEqual(label_width, 10)
        self.assertGreaterEqual(spark_width, 0)

    def test_table_layout_narrow_terminal(self):
        _label_width, spark_width = compute_table_layout(["host"], 20)
        self.assertEqual(spark_width, 0)


class TestGraphs(unittest.TestCase):
    """Test cases for sparkline and ascii graph builders"""

    def test_sparkline_range(self):
        line = build_sparkline([1.0, 2.0, 3.0])
        self.assertEqual(line[0], SPARK_CHARS[0])
        self.assertEqual(line[-1], SPARK_CHARS[-1])
        self.assertEqual(len(line), 3)

    def test_sparkline_flat_and_empty(self):
        self.assertEqual(build_sparkline([5.0, 5.0]), SPARK_CHARS[0] * 2)
        self.assertEqual(build_sparkline([]), "")
        self.assertEqual(build_sparkline([1.0, 2.0], width=0), "")

    def test_sparkline_keeps_newest_values(self):
        self.assertEqual(len(build_sparkline(list(range(20)), width=5)), 5)

    def test_ascii_graph_shape(self):
        lines = build_ascii_graph([1.0, 3.0], width=4, height=3)
        self.assertEqual(lines, ["   *", "    ", "  * "])

    def test_ascii_graph_no_values(self):
        self.assertEqual(build_ascii_graph([], width=3, height=2), ["   ", "   "])
        self.assertEqual(build_ascii_graph([1.0], width=0, height=2), [])


class TestDisplayLines(unittest.TestCase):
    """Test cases for full-screen line building"""

    def test_table_view_ranks_hosts(self):
        lines = build_display_lines(_snapshot(), "TCP", "table", 100, 10)
        self.assertEqual(len(lines), 10)
        self.assertTrue(all(visible_len(line) == 100 for line in lines))
        self.assertIn("LatViz - 3 host(s) via TCP", lines[0])
        self.assertIn("[table]", lines[1])
        body = "\n".join(lines[3:6])
        self.assertLess(body.index("fast.example"), body.index("slow.example"))
        self.assertLess(body.index("slow.example"), body.index("down.example"))
        self.assertIn("n/a", lines[5])
        self.assertIn("33.3%", lines[3])
        self.assertIn("2/3", lines[3])

    def test_table_view_color(self):
        lines = build_display_lines(_snapshot(), "ICMP", "table", 100, 10, use_color=True)
        self.assertIn("\x1b[33m", lines[3])
        self.assertIn("\x1b[32m", lines[4])
        self.assertIn("\x1b[31m", lines[5])

    def test_graph_view(self):
        lines = build_display_lines(_snapshot(), "ICMP", "graph", 60, 20)
        self.assertEqual(len(lines), 20)
        text = "\n".join(lines)
        self.assertIn("1. fast.example", text)
        self.assertIn("3. down.example", text)
        self.assertIn("*", text)

    def test_tiny_terminal(self):
        lines = build_display_lines(_snapshot(), "ICMP", "table", 30, 1)
        self.assertEqual(len(lines), 1)

    def test_timestamp_uses_display_timezone(self):
        tz = timezone(timedelta(hours=9), "JST")
        stamp = format_timestamp(datetime(2025, 1, 1, 0, 0, tzinfo=timezone.utc), tz)
        self.assertEqual(stamp, "2025-01-01 09:00:00 (JST)")


class TestRenderDisplay(unittest.TestCase):
    """Test cases for diff-based painting"""

    def setUp(self):
        reset_render_cache()
        self.addCleanup(reset_render_cache)

    def test_first_render_clears_screen(self):
        with patch("sys.stdout", new_callable=io.StringIO) as stdout:
            render_display(["a", "b"])
        self.assertTrue(stdout.getvalue().startswith("\x1b[2J\x1b[H"))
        self.assertEqual(ui_render.LAST_RENDER_LINES, ["a", "b"])

    def test_second_render_only_changed_rows(self):
        with patch("sys.stdout", new_callable=io.StringIO):
            render_display(["a", "b"])
        with patch("sys.stdout", new_callable=io.StringIO) as stdout:
            render_display(["a", "c"])
        self.assertEqual(stdout.getvalue(), "\x1b[2;1H\x1b[2Kc")

    def test_cycle_view(self):
        self.assertEqual(cycle_view("table"), "graph")
        self.assertEqual(cycle_view("graph"), "table")
        self.assertEqual(cycle_view("unknown"), "table")


class TestSummary(unittest.TestCase):
    """Test cases for the exit summary"""

    def test_summary_lines(self):
        lines = format_summary_lines(_snapshot())
        self.assertEqual(lines[1], "SUMMARY")
        self.assertIn("fast.example", lines[3])
        self.assertIn("[OK]", lines[3])
        self.assertIn("[FAILED]", lines[5])
        self.assertIn("100.0% loss", lines[5])


if __name__ == "__main__":
    unittest.main()
