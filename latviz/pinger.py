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
Probe loop for LatViz.

Each monitored host gets one worker thread running probe_host(). The loop
probes, updates the host's StatsRecord, then sleeps for the full interval.
Stopping is cooperative: the stop event is checked before each probe and
before each sleep, never in the middle of a network wait or a sleep.
"""

import logging
import threading
import time
from typing import Callable, Optional

from latviz.probes import HostResolutionError, Probe, ProbeError
from latviz.stats import StatsRecord

logger = logging.getLogger(__name__)


def probe_host(
    record: StatsRecord,
    probe: Probe,
    interval: float,
    timeout: float,
    stop_event: threading.Event,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.time,
) -> int:
    """
    Probe a single host until the stop event is set.

    Args:
        record: StatsRecord owned by this host
        probe: Probe variant to drive (ICMP or TCP)
        interval: Seconds to sleep between attempts
        timeout: Seconds to wait for each probe
        stop_event: Shared stop signal
        sleep: Sleep function (overridable for tests)
        clock: Wall clock used to timestamp samples

    Returns:
        Number of probe attempts made
    """
    try:
        probe.prepare()
    except HostResolutionError as e:
        logger.error("Not probing %s: %s", record.host, e)
        return 0

    attempts = 0
    while not stop_event.is_set():
        record.mark_sent()
        attempts += 1
        try:
            rtt = probe.attempt(timeout)
        except (OSError, ProbeError, ValueError) as e:
            logger.debug("Error probing %s (attempt=%d): %s", record.host, attempts, e)
            rtt = None

        if rtt is not None:
            record.record_success(rtt, clock())
        else:
            record.record_failure()

        if stop_event.is_set():
            break
        sleep(interval)

    return attempts


def worker_probe(
    record: StatsRecord,
    probe: Probe,
    interval: float,
    timeout: float,
    stop_event: threading.Event,
    sleep: Optional[Callable[[float], None]] = None,
) -> int:
    """Thread entry point wrapping probe_host with start/exit logging."""
    logger.debug("Prober for %s started (interval=%.3fs, timeout=%.3fs)", record.host, interval, timeout)
    attempts = probe_host(record, probe, interval, timeout, stop_event, sleep=sleep or time.sleep)
    logger.debug("Prober for %s exited after %d attempt(s)", record.host, attempts)
    return attempts
