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
Snapshot management for LatViz.

This module builds ranked, point-in-time copies of all host statistics for the
renderer and the latency log. Each host is copied under its own lock; there is
no global lock, so a snapshot is consistent per host but not across hosts.
"""

import time
from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

from latviz.stats import RecordView, StatsRecord


@dataclass(frozen=True)
class Snapshot:
    """Immutable ranked view of every host, fastest first."""

    taken_at: float
    hosts: Tuple[RecordView, ...]

    def __iter__(self) -> Iterator[RecordView]:
        return iter(self.hosts)

    def __len__(self) -> int:
        return len(self.hosts)

    def get(self, host: str) -> Optional[RecordView]:
        """Return the entry for a host, or None if it is not part of the snapshot."""
        for entry in self.hosts:
            if entry.host == host:
                return entry
        return None

    def as_latency_log(self) -> Dict[str, List[float]]:
        """Return {host: [rtt seconds, ...]} with the retained samples, oldest first."""
        return {entry.host: [rtt for _timestamp, rtt in entry.samples] for entry in self.hosts}


def ranking_key(entry: RecordView) -> Tuple[int, float]:
    """Sort key: measured hosts by latency, then hosts without any reply."""
    if entry.current_latency is None:
        return (1, 0.0)
    return (0, entry.current_latency)


def take_snapshot(records: Iterable[StatsRecord], now: Optional[float] = None) -> Snapshot:
    """
    Create a ranked snapshot of the given records.

    Args:
        records: StatsRecords in host registration order
        now: Timestamp for the snapshot (default: current time)

    Returns:
        A fresh Snapshot; sorting is stable so equal latencies keep
        registration order
    """
    views = [record.read() for record in records]
    views.sort(key=ranking_key)
    return Snapshot(taken_at=time.time() if now is None else now, hosts=tuple(views))
