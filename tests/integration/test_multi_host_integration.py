#!/usr/bin/env python3
# Copyright 2026 icecake0141
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
Realistic multi-host integration tests for LatViz.

This module runs the coordinator with 50-128 simulated hosts and checks that
snapshots stay consistent while probers write concurrently, and that shutdown
produces a complete latency log.
"""

import json
import os
import sys
import tempfile
import threading
import time
import unittest

# Add parent directory to path to import latviz
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "../..")))
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from fakes import ScriptedProbe  # noqa: E402

from latviz.config import MAX_HOST_THREADS, MonitorConfig  # noqa: E402
from latviz.coordinator import Coordinator  # noqa: E402
from latviz.latency_log import save_latency_log  # noqa: E402
from latviz.snapshot import ranking_key  # noqa: E402
from latviz.stats import HISTORY_CAPACITY  # noqa: E402


def _scripted_factory(host, _use_icmp):
    """Give each host a distinct latency; every fifth host drops every other probe."""
    index = int(host.split(".")[0][4:])
    rtt = 0.001 * (index + 1)
    outcomes = [rtt, None] * 1000 if index % 5 == 0 else [rtt]
    return ScriptedProbe(host, outcomes)


def _hosts(count):
    return tuple(f"host{i}.local" for i in range(count))


class TestCoordinator50Hosts(unittest.TestCase):
    """Coordinator tests with 50 simulated hosts."""

    def setUp(self):
        config = MonitorConfig(hosts=_hosts(50), interval=0.001, timeout=0.01, use_icmp=False)
        self.coordinator = Coordinator(config, probe_factory=_scripted_factory)

    def test_snapshots_consistent_under_concurrent_probing(self):
        """Every snapshot taken while probers run satisfies the per-host invariants."""
        violations = []
        self.coordinator.start()
        try:
            deadline = time.monotonic() + 0.5
            while time.monotonic() < deadline:
                snapshot = self.coordinator.snapshot()
                self.assertEqual(len(snapshot), 50)
                keys = [ranking_key(entry) for entry in snapshot]
                if keys != sorted(keys):
                    violations.append(("order", keys))
                for entry in snapshot:
                    if entry.received_count > entry.sent_count:
                        violations.append(("counts", entry))
                    if len(entry.samples) > HISTORY_CAPACITY:
                        violations.append(("history", entry))
                    if not 0.0 <= entry.packet_loss_percent <= 100.0:
                        violations.append(("loss", entry))
                    timestamps = [ts for ts, _rtt in entry.samples]
                    if timestamps != sorted(timestamps):
                        violations.append(("timestamps", entry))
        finally:
            final = self.coordinator.shutdown()

        self.assertEqual(violations, [])
        self.assertEqual(len(final), 50)

    def test_history_reaches_capacity(self):
        """Long-running hosts keep exactly the newest samples."""
        self.coordinator.start()
        try:
            record = self.coordinator.records[1]
            deadline = time.monotonic() + 5.0
            while record.read().received_count <= HISTORY_CAPACITY and time.monotonic() < deadline:
                time.sleep(0.01)
        finally:
            final = self.coordinator.shutdown()

        entry = final.get("host1.local")
        self.assertGreater(entry.received_count, HISTORY_CAPACITY)
        self.assertEqual(len(entry.samples), HISTORY_CAPACITY)

    def test_final_ranking_and_latency_log(self):
        """After shutdown, hosts are ranked by latency and all appear in the log."""
        self.coordinator.start()
        try:
            deadline = time.monotonic() + 5.0
            while time.monotonic() < deadline:
                if all(record.read().received_count > 0 for record in self.coordinator.records):
                    break
                time.sleep(0.01)
        finally:
            with tempfile.TemporaryDirectory() as temp_dir:
                path = os.path.join(temp_dir, "latency_log.json")
                final = self.coordinator.shutdown(persist=lambda snapshot: save_latency_log(snapshot, path))
                with open(path, "r", encoding="utf-8") as fh:
                    data = json.load(fh)

        self.assertEqual([entry.host for entry in final], list(_hosts(50)))
        self.assertEqual(set(data), set(_hosts(50)))
        self.assertTrue(all(sample == "1ms" for sample in data["host0.local"]))
        lossy = final.get("host5.local")
        self.assertGreater(lossy.sent_count, lossy.received_count)

    def test_shutdown_joins_all_threads(self):
        """No prober thread survives shutdown."""
        self.coordinator.start()
        time.sleep(0.05)
        self.coordinator.shutdown()
        alive = [thread.name for thread in threading.enumerate() if thread.name.startswith("latviz-prober")]
        self.assertEqual(alive, [])


class TestCoordinatorMaxHosts(unittest.TestCase):
    """Coordinator at the configured host limit."""

    def test_max_hosts_start_and_stop(self):
        config = MonitorConfig(hosts=_hosts(MAX_HOST_THREADS), interval=0.01, timeout=0.01, use_icmp=False)
        coordinator = Coordinator(config, probe_factory=_scripted_factory)
        start = time.monotonic()
        coordinator.start()
        try:
            deadline = time.monotonic() + 3.0
            while time.monotonic() < deadline:
                if all(record.read().sent_count > 0 for record in coordinator.records):
                    break
                time.sleep(0.01)
        finally:
            final = coordinator.shutdown()
        elapsed = time.monotonic() - start

        self.assertEqual(len(final), MAX_HOST_THREADS)
        self.assertLess(elapsed, 5.0)
        self.assertTrue(all(entry.sent_count >= 1 for entry in final))


if __name__ == "__main__":
    unittest.main()
