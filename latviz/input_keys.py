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
Keyboard input handling for LatViz using the readchar library.

The main loop polls for a key without blocking; readchar decodes whatever is
pending, including multi-byte escape sequences.
"""

import contextlib
import select
import sys
import termios
import tty
from typing import Generator, Optional

import readchar
import readchar.key

CTRL_C = "\x03"
QUIT_KEYS = frozenset(("q", "Q", CTRL_C))


@contextlib.contextmanager
def terminal_cbreak_mode(fd: Optional[int] = None) -> Generator[None, None, None]:
    """Context manager that puts a terminal in cbreak mode and restores it on exit.

    Output post-processing stays enabled so the renderer's newlines keep working,
    while single key presses become readable without Enter.

    Args:
        fd: Terminal file descriptor to configure.  Defaults to ``sys.stdin.fileno()``.
    """
    if fd is None:
        if not sys.stdin.isatty():
            yield
            return
        fd = sys.stdin.fileno()
    try:
        old_settings = termios.tcgetattr(fd)
    except termios.error:
        # Not a real terminal (e.g. a pipe or test mock); skip setup.
        yield
        return
    try:
        tty.setcbreak(fd)
        yield
    finally:
        termios.tcsetattr(fd, termios.TCSADRAIN, old_settings)


def parse_escape_sequence(seq: str) -> Optional[str]:
    """
    Parse ANSI escape sequence to identify arrow keys.

    Args:
        seq: The escape sequence string (without the leading ESC)

    Returns:
        String identifier for arrow keys ('arrow_up', 'arrow_down', etc.)
        or None if sequence is not recognized
    """
    arrow_map = {
        "A": "arrow_up",
        "B": "arrow_down",
        "C": "arrow_right",
        "D": "arrow_left",
    }
    if not seq:
        return None
    if seq[0] in ("[", "O") and seq[-1] in arrow_map:
        return arrow_map[seq[-1]]
    return None


def map_key(key_value: str) -> str:
    """
    Map readchar key constants to LatViz key names.

    Args:
        key_value: The key string returned by readchar.readkey()

    Returns:
        'arrow_up', 'arrow_down', 'arrow_left', 'arrow_right' for arrow keys,
        otherwise the original key value
    """
    key_map = {
        readchar.key.UP: "arrow_up",
        readchar.key.DOWN: "arrow_down",
        readchar.key.LEFT: "arrow_left",
        readchar.key.RIGHT: "arrow_right",
    }
    if key_value in key_map:
        return key_map[key_value]

    # readchar returns full escape sequences such as "\x1b[1;5A" for modified arrows
    if key_value and key_value[0] == "\x1b" and len(key_value) > 1:
        parsed = parse_escape_sequence(key_value[1:])
        if parsed:
            return parsed

    return key_value


def read_key() -> Optional[str]:
    """
    Read one key from stdin if one is waiting.

    Returns:
        The mapped key, or None when stdin is not a TTY or no input is pending
    """
    if not sys.stdin.isatty():
        return None

    ready, _, _ = select.select([sys.stdin], [], [], 0)
    if not ready:
        return None

    try:
        return map_key(readchar.readkey())
    except KeyboardInterrupt:
        # readchar raises on Ctrl-C; report it like any other quit key
        return CTRL_C
    except OSError:
        return None


def is_quit_key(key: Optional[str]) -> bool:
    """Return True for the renderer's quit action."""
    return key in QUIT_KEYS
