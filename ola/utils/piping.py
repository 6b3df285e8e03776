"""ola.utils.piping — Helpers for piped stdin."""

from __future__ import annotations

import logging
import sys
from typing import TextIO

logger = logging.getLogger("ola.utils.piping")


def is_receiving_pipe(stream: TextIO | None = None) -> bool:
    """True when stdin is not attached to a terminal."""
    stream = stream or sys.stdin
    try:
        return not stream.isatty()
    except (AttributeError, ValueError):
        return False


def read_from_stdin(stream: TextIO | None = None) -> str:
    """All of stdin, or an empty string if it cannot be read."""
    stream = stream or sys.stdin
    try:
        return stream.read()
    except (OSError, ValueError) as exc:
        logger.warning("Error reading from stdin: %s", exc)
        return ""
