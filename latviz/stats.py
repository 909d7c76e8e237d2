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
Per-host latency statistics for LatViz.

This module provides the StatsRecord class that each prober thread updates
after every probe attempt, plus duration formatting helpers shared by the
renderer and the latency log.

Each record is guarded by its own lock. Readers never see live state: they
call ``read()`` which copies every field out under a single lock acquisition.
"""

import threading
import time
from collections import deque
from typing import Deque, NamedTuple, Optional, Tuple

HISTORY_CAPACITY = 50  # Samples retained per host (oldest evicted first)

Sample = Tuple[float, float]  # (wall clock timestamp, rtt seconds)


class RecordView(NamedTuple):
    """Immutable copy of one StatsRecord taken under its lock."""

    host: str
    current_latency: Optional[float]
    packet_loss_percent: float
    sent_count: int
    received_count: int
    samples: Tuple[Sample, ...]


def compute_loss_percent(sent: int, received: int) -> float:
    """
    Compute lifetime packet loss as a percentage.

    Args:
        sent: Number of probe attempts
        received: Number of successful probe attempts

    Returns:
        Loss percentage in [0, 100]; 0.0 when nothing has been sent
    """
    if sent <= 0:
        return 0.0
    return (sent - received) / sent * 100


class StatsRecord:
    """
    Thread-safe latency statistics for a single host.

    Written by exactly one prober, read by the snapshotter. Counters are
    lifetime values; only the sample history is bounded.
    """

    def __init__(self, host: str, capacity: int = HISTORY_CAPACITY) -> None:
        """
        Initialize an empty record.

        Args:
            host: Host identifier as configured (address or address:port)
            capacity: Maximum number of retained samples (default: 50)
        """
        if capacity <= 0:
            raise ValueError("capacity must be a positive integer.")
        self._host = host
        self._lock = threading.Lock()
        self._current_latency: Optional[float] = None
        self._sent = 0
        self._received = 0
        self._loss_percent = 0.0
        self._history: Deque[Sample] = deque(maxlen=capacity)

    @property
    def host(self) -> str:
        return self._host

    @property
    def capacity(self) -> int:
        return self._history.maxlen or 0

    def mark_sent(self) -> int:
        """
        Count a probe attempt that is about to be made.

        Returns:
            The updated sent counter
        """
        with self._lock:
            self._sent += 1
            return self._sent

    def record_success(self, rtt: float, timestamp: Optional[float] = None) -> None:
        """
        Record a successful probe.

        Args:
            rtt: Round-trip time in seconds
            timestamp: Wall clock time of the reply (default: now)

        Raises:
            ValueError: If rtt is negative
            RuntimeError: If there is no outstanding attempt to credit
        """
        if rtt < 0:
            raise ValueError("rtt must not be negative.")
        if timestamp is None:
            timestamp = time.time()
        with self._lock:
            if self._received >= self._sent:
                raise RuntimeError(f"record_success for {self._host} without a matching mark_sent")
            # Keep history ordered even if the wall clock steps backwards.
            if self._history and timestamp < self._history[-1][0]:
                timestamp = self._history[-1][0]
            self._received += 1
            self._history.append((timestamp, rtt))
            self._current_latency = rtt
            self._loss_percent = compute_loss_percent(self._sent, self._received)

    def record_failure(self) -> None:
        """Record a lost probe. The last good latency is kept."""
        with self._lock:
            self._loss_percent = compute_loss_percent(self._sent, self._received)

    def read(self) -> RecordView:
        """Copy out all fields consistently under the record lock."""
        with self._lock:
            return RecordView(
                host=self._host,
                current_latency=self._current_latency,
                packet_loss_percent=self._loss_percent,
                sent_count=self._sent,
                received_count=self._received,
                samples=tuple(self._history),
            )

    def __repr__(self) -> str:
        view = self.read()
        return (
            f"StatsRecord(host={view.host!r}, sent={view.sent_count}, received={view.received_count}, "
            f"loss={view.packet_loss_percent:.1f}%)"
        )


_UNITS = (
    (1_000, "ns"),
    (1_000_000, "µs"),
    (1_000_000_000, "ms"),
)


def _format_fraction(whole: int, remainder: int, divisor: int) -> str:
    """Format whole.remainder without trailing zeros."""
    if remainder == 0:
        return str(whole)
    digits = len(str(divisor)) - 1
    fraction = str(remainder).rjust(digits, "0").rstrip("0")
    return f"{whole}.{fraction}"


def format_duration(seconds: Optional[float]) -> str:
    """
    Format a duration in compact unit notation.

    Examples: ``850µs``, ``12.345ms``, ``1.5s``, ``1m30s``, ``1h2m3.5s``.

    Args:
        seconds: Duration in seconds, or None

    Returns:
        Formatted string ("n/a" for None)
    """
    if seconds is None:
        return "n/a"
    nanos = int(round(seconds * 1_000_000_000))
    if nanos == 0:
        return "0s"
    sign = "-" if nanos < 0 else ""
    nanos = abs(nanos)

    if nanos < 1_000_000_000:
        for limit, unit in _UNITS:
            if nanos < limit:
                divisor = limit // 1_000
                return f"{sign}{_format_fraction(nanos // divisor, nanos % divisor, divisor)}{unit}"

    hours, nanos = divmod(nanos, 3600 * 1_000_000_000)
    minutes, nanos = divmod(nanos, 60 * 1_000_000_000)
    parts = []
    if hours:
        parts.append(f"{hours}h")
    if hours or minutes:
        parts.append(f"{minutes}m")
    parts.append(f"{_format_fraction(nanos // 1_000_000_000, nanos % 1_000_000_000, 1_000_000_000)}s")
    return sign + "".join(parts)


def format_latency_ms(seconds: Optional[float]) -> str:
    """Format a latency as milliseconds with one decimal, or 'n/a'."""
    if seconds is None:
        return "n/a"
    return f"{seconds * 1000:.1f} ms"
