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
Lifecycle coordination for LatViz.

The Coordinator owns the per-host StatsRecords, the prober threads and the
shared stop event. Shutdown always follows the same order:

  1. set the stop event (from a signal, the quit key, or the caller)
  2. join every prober thread
  3. take the final snapshot and hand it to the persist callback once
"""

import logging
import signal
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, List, Optional

from latviz.config import MonitorConfig
from latviz.pinger import worker_probe
from latviz.probes import Probe, build_probe
from latviz.snapshot import Snapshot, take_snapshot
from latviz.stats import StatsRecord

logger = logging.getLogger(__name__)

ProbeFactory = Callable[[str, bool], Probe]
PersistCallback = Callable[[Snapshot], object]


class Coordinator:
    """Starts one prober per host and runs the stop/join/flush sequence."""

    def __init__(
        self,
        config: MonitorConfig,
        probe_factory: ProbeFactory = build_probe,
        sleep: Optional[Callable[[float], None]] = None,
    ) -> None:
        """
        Args:
            config: Validated monitor configuration
            probe_factory: Callable building a probe for (host, use_icmp)
            sleep: Sleep function handed to every prober (tests only)
        """
        self.config = config
        self.records: List[StatsRecord] = [StatsRecord(host) for host in config.hosts]
        self.probes: List[Probe] = [probe_factory(host, config.use_icmp) for host in config.hosts]
        self.stop_event = threading.Event()
        self._sleep = sleep
        self._lock = threading.RLock()  # re-entered by signal handlers on the main thread
        self._executor: Optional[ThreadPoolExecutor] = None
        self._futures: List[Future] = []
        self._final_snapshot: Optional[Snapshot] = None
        self.stop_reason: Optional[str] = None

    @property
    def started(self) -> bool:
        return self._executor is not None

    @property
    def stopped(self) -> bool:
        return self.stop_event.is_set()

    def start(self) -> None:
        """Launch one prober thread per configured host."""
        with self._lock:
            if self._executor is not None:
                raise RuntimeError("Coordinator has already been started.")
            self._executor = ThreadPoolExecutor(
                max_workers=len(self.records),
                thread_name_prefix="latviz-prober",
            )
            for record, probe in zip(self.records, self.probes):
                self._futures.append(
                    self._executor.submit(
                        worker_probe,
                        record,
                        probe,
                        self.config.interval,
                        self.config.timeout,
                        self.stop_event,
                        self._sleep,
                    )
                )
        logger.info(
            "Probing %d host(s) via %s every %.3fs (timeout %.3fs)",
            len(self.records),
            self.config.mode_label,
            self.config.interval,
            self.config.timeout,
        )

    def request_stop(self, reason: str = "requested") -> bool:
        """
        Set the stop signal.

        Safe to call from any thread or a signal handler, any number of times.

        Returns:
            True if this call stopped the monitor, False if it was already stopping
        """
        with self._lock:
            if self.stop_event.is_set():
                return False
            self.stop_reason = reason
            self.stop_event.set()
        logger.info("Stopping probers (%s)", reason)
        return True

    def install_signal_handlers(self, signals=(signal.SIGINT, signal.SIGTERM)) -> Callable[[], None]:
        """
        Treat SIGINT/SIGTERM as stop requests.

        Must be called from the main thread.

        Returns:
            Callable restoring the previous handlers
        """
        previous = {}

        def _handle(signum, _frame):
            self.request_stop(f"signal {signal.Signals(signum).name}")

        for signum in signals:
            previous[signum] = signal.signal(signum, _handle)

        def restore() -> None:
            for signum, handler in previous.items():
                signal.signal(signum, handler)

        return restore

    def snapshot(self) -> Snapshot:
        """Return the current ranked snapshot."""
        return take_snapshot(self.records)

    def wait(self, poll: float = 0.5) -> None:
        """Block until a stop is requested."""
        # Short waits keep the main thread responsive to signal handlers.
        while not self.stop_event.wait(poll):
            pass

    def join(self) -> None:
        """Wait for every prober to observe the stop signal and exit."""
        with self._lock:
            executor = self._executor
            futures = list(self._futures)
        if executor is None:
            return
        executor.shutdown(wait=True)
        for future in futures:
            exc = future.exception()
            if exc is not None:
                logger.error("Prober exited with an unexpected error: %s", exc)

    def shutdown(self, persist: Optional[PersistCallback] = None) -> Snapshot:
        """
        Stop, join all probers, then snapshot and persist once.

        Args:
            persist: Callback receiving the final snapshot (e.g. the latency log writer)

        Returns:
            The final snapshot; repeated calls return the same object
        """
        self.request_stop("shutdown")
        self.join()
        with self._lock:
            if self._final_snapshot is not None:
                return self._final_snapshot
            final = take_snapshot(self.records)
            self._final_snapshot = final
        if persist is not None:
            persist(final)
        return final
