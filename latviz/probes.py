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
Probe implementations for LatViz.

A probe performs one latency measurement against a host and reports either the
round-trip time in seconds or None when the attempt was lost. Two variants are
provided and selected once at startup:

  - IcmpProbe: ICMP echo request/reply built and matched with scapy.
    Requires raw socket privileges (root or cap_net_raw).
  - TcpProbe: TCP connect to host:port, closed immediately after the handshake.

Both share the same contract so the prober loop does not care which one it is
driving.
"""

import ipaddress
import itertools
import logging
import os
import socket
import time
from typing import Optional, Protocol, Tuple

from scapy.layers.inet import ICMP, IP
from scapy.sendrecv import sr

logger = logging.getLogger(__name__)

DEFAULT_TCP_PORT = 80
ICMP_ECHO_REPLY = 0
ICMP_PAYLOAD = b"PING"


class ProbeError(RuntimeError):
    """Raised when a probe cannot be performed."""

    def __init__(self, message, host=None):
        super().__init__(message)
        self.host = host


class HostResolutionError(ProbeError):
    """Raised when a host name cannot be resolved to an address."""


class Probe(Protocol):
    """Attempt a latency measurement within a timeout."""

    host: str

    def prepare(self) -> None: ...

    def attempt(self, timeout: float) -> Optional[float]: ...


def split_host_port(target: str, default_port: Optional[int] = None) -> Tuple[str, Optional[int]]:
    """
    Split a host identifier into host and optional port.

    Accepts ``host``, ``host:port``, ``[v6addr]:port`` and bare IPv6 addresses.

    Args:
        target: Host identifier from the configuration
        default_port: Port to return when the target has none

    Returns:
        Tuple of (host, port)

    Raises:
        ValueError: If the target is empty or the port is not a valid number
    """
    target = target.strip()
    if not target:
        raise ValueError("host must not be empty.")

    if target.startswith("["):
        end = target.find("]")
        if end == -1:
            raise ValueError(f"Unterminated IPv6 literal in '{target}'.")
        host = target[1:end]
        rest = target[end + 1 :]
        if not rest:
            return host, default_port
        if not rest.startswith(":"):
            raise ValueError(f"Unexpected text after IPv6 literal in '{target}'.")
        return host, _parse_port(rest[1:], target)

    if target.count(":") > 1:
        # Bare IPv6 address without brackets, no port possible
        ipaddress.ip_address(target)
        return target, default_port

    if ":" in target:
        host, port_text = target.rsplit(":", 1)
        if not host:
            raise ValueError(f"Missing host in '{target}'.")
        return host, _parse_port(port_text, target)

    return target, default_port


def _parse_port(port_text: str, target: str) -> int:
    try:
        port = int(port_text)
    except ValueError as exc:
        raise ValueError(f"Invalid port in '{target}'.") from exc
    if not 0 < port <= 65535:
        raise ValueError(f"Port out of range in '{target}'.")
    return port


def resolve_host(host: str) -> str:
    """
    Resolve a host name to an IPv4 address.

    Args:
        host: Host name or IPv4 address

    Returns:
        The first IPv4 address returned by the resolver

    Raises:
        HostResolutionError: If the name cannot be resolved
    """
    try:
        infos = socket.getaddrinfo(host, None, socket.AF_INET, socket.SOCK_RAW)
    except (socket.gaierror, UnicodeError, OSError) as exc:
        raise HostResolutionError(f"Cannot resolve {host}: {exc}", host=host) from exc
    if not infos:
        raise HostResolutionError(f"Cannot resolve {host}: no IPv4 address", host=host)
    return infos[0][4][0]


class IcmpProbe:
    """
    ICMP echo probe for one host.

    Every attempt sends one echo request with the process identifier and the
    next sequence number, then waits for the matching echo reply. Replies are
    matched by scapy on (id, seq); anything else, including ICMP error
    messages, counts as a lost probe.
    """

    def __init__(self, host: str, identifier: Optional[int] = None) -> None:
        """
        Args:
            host: Host identifier; a ':port' suffix is ignored
            identifier: ICMP identifier (default: process id truncated to 16 bits)
        """
        self.host = host
        self.address: Optional[str] = None
        self.identifier = (os.getpid() if identifier is None else identifier) & 0xFFFF
        self._sequences = itertools.count()

    def prepare(self) -> None:
        """Resolve the target address. Raises HostResolutionError on failure."""
        name, _port = split_host_port(self.host)
        self.address = resolve_host(name)
        logger.debug("Resolved %s to %s", self.host, self.address)

    def next_sequence(self) -> int:
        """Return the next ICMP sequence number (uint16 wraparound)."""
        return next(self._sequences) % 65536

    def attempt(self, timeout: float) -> Optional[float]:
        """
        Send one echo request and wait for its reply.

        Args:
            timeout: Seconds to wait for the reply

        Returns:
            RTT in seconds, or None when no matching reply arrived in time
        """
        if self.address is None:
            raise ProbeError(f"{self.host} has not been resolved", host=self.host)
        sequence = self.next_sequence()
        packet = IP(dst=self.address) / ICMP(id=self.identifier, seq=sequence) / ICMP_PAYLOAD
        answered, _unanswered = sr(packet, timeout=timeout, verbose=0)
        for sent, received in answered:
            if not received.haslayer(ICMP) or received[ICMP].type != ICMP_ECHO_REPLY:
                logger.debug("Non-echo reply from %s (seq=%d): %s", self.host, sequence, received.summary())
                continue
            return max(0.0, float(received.time) - float(sent.sent_time))
        return None


class TcpProbe:
    """
    TCP connect probe for one host.

    The RTT is the time needed to complete the TCP handshake. No payload is
    exchanged; the connection is closed as soon as it is established.
    """

    def __init__(self, host: str, default_port: int = DEFAULT_TCP_PORT) -> None:
        """
        Args:
            host: Host identifier, optionally with a ':port' suffix
            default_port: Port used when the identifier has none
        """
        self.host = host
        self.address, port = split_host_port(host, default_port)
        self.port = port if port is not None else default_port

    def prepare(self) -> None:
        """Nothing to prepare; name resolution happens on every attempt."""

    def attempt(self, timeout: float) -> Optional[float]:
        """
        Open and close one TCP connection.

        Args:
            timeout: Seconds allowed for resolution plus the handshake

        Returns:
            Connect time in seconds, or None when the connection failed
        """
        start = time.perf_counter()
        try:
            conn = socket.create_connection((self.address, self.port), timeout=timeout)
        except OSError as e:
            logger.debug("TCP connect to %s failed: %s", self.host, e)
            return None
        rtt = time.perf_counter() - start
        conn.close()
        return rtt


def build_probe(host: str, use_icmp: bool) -> Probe:
    """
    Create the probe variant selected by configuration.

    Args:
        host: Host identifier
        use_icmp: True for ICMP echo, False for TCP connect

    Returns:
        A probe instance for the host
    """
    if use_icmp:
        return IcmpProbe(host)
    return TcpProbe(host)
