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
Config file support for LatViz.

This module loads the YAML configuration describing which hosts to monitor and
how to probe them:

    hosts:
      - google.com
      - github.com:443
    interval: 1s
    timeout: 1s
    use_icmp: true

Durations accept unit suffixes (h, m, s, ms, us/µs, ns) that may be combined
(``1m30s``) or plain numbers interpreted as seconds.
"""

import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Tuple

import yaml

from latviz.probes import split_host_port

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "config.yaml"
MAX_HOST_THREADS = 128  # Hard cap to avoid unbounded thread growth.

_DEFAULTS: Dict[str, Any] = {
    "interval": 1.0,
    "timeout": 1.0,
    "use_icmp": True,
}
_KNOWN_KEYS = frozenset(("hosts", "interval", "timeout", "use_icmp"))

_BOOL_TRUE_VALUES = frozenset(("true", "yes", "1", "on"))
_BOOL_FALSE_VALUES = frozenset(("false", "no", "0", "off"))

_DURATION_UNITS = {
    "h": 3600.0,
    "m": 60.0,
    "s": 1.0,
    "ms": 1e-3,
    "us": 1e-6,
    "µs": 1e-6,
    "μs": 1e-6,
    "ns": 1e-9,
}
_DURATION_PART_RE = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(h|ms|m|s|us|µs|μs|ns)")


@dataclass(frozen=True)
class MonitorConfig:
    """Validated monitor settings. Durations are in seconds."""

    hosts: Tuple[str, ...]
    interval: float
    timeout: float
    use_icmp: bool

    @property
    def mode_label(self) -> str:
        return "ICMP" if self.use_icmp else "TCP"


def parse_duration(value: Any) -> float:
    """
    Parse a duration into seconds.

    Args:
        value: Number of seconds, or a string such as "500ms", "1.5s" or "1m30s"

    Returns:
        Duration in seconds

    Raises:
        ValueError: If the value cannot be parsed
    """
    if isinstance(value, bool):
        raise ValueError(f"Invalid duration {value!r}.")
    if isinstance(value, (int, float)):
        return float(value)
    if not isinstance(value, str):
        raise ValueError(f"Invalid duration {value!r}.")

    text = value.strip()
    if not text:
        raise ValueError("Duration must not be empty.")
    try:
        return float(text)
    except ValueError:
        pass

    sign = 1.0
    if text[0] in "+-":
        sign = -1.0 if text[0] == "-" else 1.0
        text = text[1:]

    total = 0.0
    position = 0
    for match in _DURATION_PART_RE.finditer(text):
        if match.start() != position:
            break
        total += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        position = match.end()
    if position == 0 or position != len(text):
        raise ValueError(f"Invalid duration {value!r}. Use forms like '500ms', '1s' or '1m30s'.")
    return sign * total


def _parse_bool(value: Any) -> bool:
    """Parse a boolean from YAML or a string representation."""
    if isinstance(value, bool):
        return value
    lower = str(value).strip().lower()
    if lower in _BOOL_TRUE_VALUES:
        return True
    if lower in _BOOL_FALSE_VALUES:
        return False
    raise ValueError(f"Cannot parse '{value}' as a boolean. Use true/false, yes/no, 1/0, or on/off.")


def _parse_hosts(raw_hosts: Any, path: str) -> List[str]:
    if raw_hosts is None:
        raise ValueError(f"Config file '{path}' does not list any hosts.")
    if not isinstance(raw_hosts, list):
        raise ValueError(f"The 'hosts' entry in '{path}' must be a YAML list.")
    hosts: List[str] = []
    for entry in raw_hosts:
        host = str(entry).strip() if entry is not None else ""
        if not host:
            raise ValueError(f"Config file '{path}' contains an empty host entry.")
        split_host_port(host)
        hosts.append(host)
    return hosts


def build_config(data: Dict[str, Any], path: str = "<config>") -> MonitorConfig:
    """
    Validate a parsed config mapping.

    Args:
        data: Mapping loaded from YAML
        path: Source path for error messages

    Returns:
        A MonitorConfig

    Raises:
        ValueError: On missing hosts, non-positive durations or bad values
    """
    for key in data:
        if key not in _KNOWN_KEYS:
            logger.warning("Unknown config key '%s' in '%s'; ignoring.", key, path)

    hosts = _parse_hosts(data.get("hosts"), path)
    if len(hosts) > MAX_HOST_THREADS:
        raise ValueError(f"Host count exceeds maximum supported threads ({len(hosts)} > {MAX_HOST_THREADS}).")

    values: Dict[str, Any] = {}
    for key, default in _DEFAULTS.items():
        raw_value = data.get(key)
        if raw_value is None:
            values[key] = default
            continue
        try:
            values[key] = _parse_bool(raw_value) if key == "use_icmp" else parse_duration(raw_value)
        except ValueError as exc:
            raise ValueError(f"Invalid value for config field '{key}' in '{path}': {exc}") from exc

    if values["interval"] <= 0:
        raise ValueError(f"'interval' in '{path}' must be greater than zero.")
    if values["timeout"] <= 0:
        raise ValueError(f"'timeout' in '{path}' must be greater than zero.")

    return MonitorConfig(
        hosts=tuple(hosts),
        interval=values["interval"],
        timeout=values["timeout"],
        use_icmp=values["use_icmp"],
    )


def load_config(path: str = DEFAULT_CONFIG_PATH) -> MonitorConfig:
    """
    Load and validate a YAML config file.

    Uses ``yaml.safe_load`` to prevent arbitrary code execution.

    Args:
        path: Path to the YAML config file

    Returns:
        A MonitorConfig

    Raises:
        ValueError: If the file cannot be read, parsed or validated
    """
    try:
        with open(path, "r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh)
    except yaml.YAMLError as exc:
        raise ValueError(f"Invalid YAML in config file '{path}': {exc}") from exc
    except OSError as exc:
        raise ValueError(f"Cannot read config file '{path}': {exc}") from exc

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file '{path}' must contain a YAML mapping at the top level, got {type(data).__name__}.")

    logger.debug("Loaded config from '%s'.", path)
    return build_config(data, path)
