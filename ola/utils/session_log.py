"""
ola.utils.session_log — Append-only JSON-lines record of completed calls.

One line per call: ``{timestamp, goals, return_format, warnings, model,
output_length, recursion_wave?}`` for structured prompts and
``{timestamp, prompt, model, output_length}`` for ``non-think``.
"""

from __future__ import annotations

import json
import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Mapping

from ola.core.config import Settings, get_ola_home
from ola.core.errors import LoggingError
from ola.core.models import read_wave_number

logger = logging.getLogger("ola.utils.session_log")


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


class SessionLog:
    """JSON-lines sink.  A relative path is resolved inside the ola home."""

    def __init__(self, path: Path | str, enabled: bool = True) -> None:
        path = Path(path).expanduser()
        self.path = path if path.is_absolute() else get_ola_home() / path
        self.enabled = enabled

    @classmethod
    def from_settings(cls, settings: Settings) -> "SessionLog":
        return cls(settings.behavior.log_file, enabled=settings.behavior.enable_logging)

    def append(self, entry: Mapping[str, Any]) -> None:
        """Write one JSON line; ``LoggingError`` if the file cannot be written."""
        if not self.enabled:
            return
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open("a", encoding="utf-8") as fh:
                fh.write(json.dumps(dict(entry), ensure_ascii=False) + "\n")
        except OSError as exc:
            raise LoggingError(f"Failed to log session to {self.path}: {exc}") from exc

    def record_prompt(
        self,
        goals: str,
        return_format: str,
        warnings: str,
        model: str,
        response: str,
        environ: Mapping[str, str] | None = None,
    ) -> dict[str, Any]:
        entry: dict[str, Any] = {
            "timestamp": _timestamp(),
            "goals": goals,
            "return_format": return_format,
            "warnings": warnings,
            "model": model,
            "output_length": len(response.encode("utf-8")),
        }
        wave = read_wave_number(os.environ if environ is None else environ)
        if wave is not None:
            entry["recursion_wave"] = wave
        self.append(entry)
        return entry

    def record_raw(self, prompt: str, model: str, response: str) -> dict[str, Any]:
        entry = {
            "timestamp": _timestamp(),
            "prompt": prompt,
            "model": model,
            "output_length": len(response.encode("utf-8")),
        }
        self.append(entry)
        return entry

    def read_entries(self) -> list[dict[str, Any]]:
        """Every readable entry, oldest first; corrupt lines are skipped."""
        if not self.path.exists():
            return []
        entries = []
        for line in self.path.read_text(encoding="utf-8").splitlines():
            try:
                entries.append(json.loads(line))
            except json.JSONDecodeError:
                logger.warning("Skipping corrupt session log line: %r", line[:80])
        return entries
