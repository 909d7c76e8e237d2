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
Latency log persistence for LatViz.

At shutdown the final snapshot is written as a JSON document mapping each host
to its retained RTT samples, oldest first:

    {
      "google.com": ["12.345ms", "11.8ms"],
      "github.com:443": []
    }
"""

import contextlib
import json
import logging
import os
import tempfile
from typing import Dict, List

from latviz.snapshot import Snapshot
from latviz.stats import format_duration

logger = logging.getLogger(__name__)

DEFAULT_LOG_PATH = "latency_log.json"


def build_latency_log(snapshot: Snapshot) -> Dict[str, List[str]]:
    """Map each host to its formatted RTT samples."""
    return {host: [format_duration(rtt) for rtt in rtts] for host, rtts in snapshot.as_latency_log().items()}


def save_latency_log(snapshot: Snapshot, path: str = DEFAULT_LOG_PATH) -> bool:
    """
    Write the latency log for a snapshot.

    The document is written to a temporary file in the target directory and
    moved into place, so a failed write never leaves a truncated log behind.

    Args:
        snapshot: Final snapshot taken after all probers stopped
        path: Destination file path

    Returns:
        True on success, False if the log could not be written
    """
    path = os.path.expanduser(path)
    directory = os.path.dirname(os.path.abspath(path))
    data = build_latency_log(snapshot)
    tmp_path = None
    try:
        with tempfile.NamedTemporaryFile(
            "w", encoding="utf-8", dir=directory, prefix=".latviz-", suffix=".tmp", delete=False
        ) as fh:
            tmp_path = fh.name
            json.dump(data, fh, indent=2, ensure_ascii=False)
            fh.write("\n")
        os.replace(tmp_path, path)
    except OSError as e:
        logger.error("Log save error for %s: %s", path, e)
        if tmp_path is not None:
            with contextlib.suppress(OSError):
                os.unlink(tmp_path)
        return False
    logger.info("Saved latency log for %d host(s) to %s", len(data), path)
    return True
