"""
ola.utils.clipboard — Copy text to the system clipboard.

Shells out to the platform tool: ``pbcopy`` on macOS, ``xclip`` on Linux,
``clip`` on Windows.
"""

from __future__ import annotations

import logging
import subprocess
import sys
from typing import Callable

from ola.core.errors import ClipboardError

logger = logging.getLogger("ola.utils.clipboard")

Runner = Callable[..., subprocess.CompletedProcess]


def clipboard_command(platform: str | None = None) -> list[str]:
    """The copy command for ``platform`` (defaults to the running one)."""
    platform = platform or sys.platform
    if platform == "darwin":
        return ["pbcopy"]
    if platform.startswith("linux"):
        return ["xclip", "-selection", "clipboard"]
    if platform == "win32":
        return ["clip"]
    raise ClipboardError(f"Clipboard functionality not supported on this platform: {platform}")


def copy_to_clipboard(text: str, runner: Runner = subprocess.run) -> None:
    """Pipe ``text`` into the platform clipboard tool; raise ``ClipboardError`` on failure."""
    cmd = clipboard_command()
    try:
        result = runner(cmd, input=text.encode("utf-8"), capture_output=True, timeout=5)
    except FileNotFoundError as exc:
        raise ClipboardError(f"'{cmd[0]}' is not installed") from exc
    except (OSError, subprocess.SubprocessError) as exc:
        raise ClipboardError(f"Clipboard command failed: {exc}") from exc
    if result.returncode != 0:
        raise ClipboardError(f"Clipboard command failed with exit code: {result.returncode}")
    logger.debug("Copied %d chars with %s", len(text), cmd[0])
