"""
ola.agent.renderer — Rich terminal rendering for ola.

The model's answer is written raw to stdout so it can be piped; everything
else (banners, status lines, warnings, the thinking placeholder) goes to
stderr through ``console``.

Echo sinks passed to the adapters:
  - ``StreamEcho``    forwards every fragment to stdout unchanged
  - ``ThinkingEcho``  hides ``<think>`` blocks behind a rotating placeholder
"""

from __future__ import annotations

import sys
from typing import Any, TextIO

from rich.console import Console
from rich.control import Control, ControlType
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from ola.agent.thinking import SpanKind, ThinkingFilter
from ola.core.config import ThinkingAnimation

# ---------------------------------------------------------------------------
# Ocean palette
# ---------------------------------------------------------------------------

THEME = {
    "primary": "#1E90FF",       # Deep sky blue: borders, headings
    "primary_dim": "#2F4F6F",   # Muted navy: dividers
    "accent": "#40E0D0",        # Turquoise: model names, highlights
    "text_dim": "#7F9FAF",      # Dimmed text
    "success": "#55AA55",
    "warning": "#FF8C00",       # Orange
    "error": "#FF3333",
}

console = Console(stderr=True, highlight=False)
out_console = Console(highlight=False)


def render_error(msg: str) -> None:
    """Show an error message."""
    console.print(f"  [{THEME['error']}]✗[/{THEME['error']}] {escape(msg)}")


def render_warning(msg: str) -> None:
    console.print(f"  [{THEME['warning']}]![/{THEME['warning']}] {escape(msg)}")


def render_success(msg: str) -> None:
    """Show a success message."""
    console.print(f"  [{THEME['success']}]✓[/{THEME['success']}] {escape(msg)}")


def render_info(msg: str) -> None:
    """Show an info message."""
    console.print(f"  [{THEME['text_dim']}]→[/{THEME['text_dim']}] {escape(msg)}")


def render_model_banner(provider: str, model: str, quiet: bool = False) -> None:
    """One line naming the provider and model about to be called."""
    if quiet:
        return
    line = Text()
    line.append("  Provider  ", style=THEME["text_dim"])
    line.append(provider, style=f"bold {THEME['accent']}")
    line.append("  │  ", style=THEME["primary_dim"])
    line.append("Model  ", style=THEME["text_dim"])
    line.append(model, style=f"bold {THEME['accent']}")
    console.print(line)


def render_wave_header(wave: int, max_waves: int, quiet: bool = False) -> None:
    if not quiet:
        console.print(
            f"\n[bold {THEME['primary']}]🌊 Wave {wave + 1}/{max_waves}[/bold {THEME['primary']}]"
        )


def render_iteration_header(iteration: int, max_iterations: int, quiet: bool = False) -> None:
    if not quiet:
        console.print(
            f"\n[bold {THEME['primary']}]🔄 Iteration {iteration}/{max_iterations}"
            f"[/bold {THEME['primary']}]"
        )


def render_panel(title: str, body: str) -> None:
    console.print(
        Panel(
            Text(body),
            border_style=THEME["primary_dim"],
            title=f"[bold {THEME['primary']}]{escape(title)}[/bold {THEME['primary']}]",
            title_align="left",
            padding=(0, 2),
        )
    )


def render_table(title: str, columns: list[str], rows: list[list[Any]]) -> None:
    """Print a table to stdout (listings are command output, not status)."""
    table = Table(title=title, border_style=THEME["primary_dim"])
    for i, col in enumerate(columns):
        table.add_column(col, style=THEME["accent"] if i == 0 else None)
    for row in rows:
        table.add_row(*(Text(str(cell)) for cell in row))
    out_console.print(table)


def ask(prompt: str) -> str:
    """Read one line from the user; EOF counts as an empty answer."""
    try:
        return console.input(f"[{THEME['accent']}]{prompt}[/{THEME['accent']}] ").strip()
    except EOFError:
        return ""


# ---------------------------------------------------------------------------
# Echo sinks
# ---------------------------------------------------------------------------

class StreamEcho:
    """Writes each fragment to ``out`` and flushes immediately."""

    def __init__(self, out: TextIO | None = None) -> None:
        self._out = out or sys.stdout
        self._wrote = False
        self._last = ""

    def __call__(self, fragment: str) -> None:
        self._write(fragment)

    def _write(self, text: str) -> None:
        if not text:
            return
        self._out.write(text)
        self._out.flush()
        self._wrote = True
        self._last = text[-1]

    def finish(self) -> None:
        """Terminate the echoed answer with a newline if it lacks one."""
        if self._wrote and self._last != "\n":
            self._out.write("\n")
            self._out.flush()


class ThinkingEcho(StreamEcho):
    """
    Echo sink that hides ``<think>`` blocks.

    Text outside thinking blocks goes to ``out``.  While a block is open a
    placeholder (one of the configured glyphs plus the configured text) is
    drawn on the side console and advanced one frame per suppressed piece;
    it is erased when the block closes.
    """

    def __init__(
        self,
        animation: ThinkingAnimation | None = None,
        out: TextIO | None = None,
        side: Console | None = None,
    ) -> None:
        super().__init__(out)
        self._animation = animation or ThinkingAnimation()
        self._side = side or console
        self._filter = ThinkingFilter()
        self._frame = 0
        self._showing = False

    @property
    def frames_shown(self) -> int:
        return self._frame

    def __call__(self, fragment: str) -> None:
        self._dispatch(self._filter.feed(fragment))

    def _dispatch(self, spans: list) -> None:
        for span in spans:
            if span.kind == SpanKind.TEXT:
                self._write(span.text)
            elif span.kind in (SpanKind.THINKING_START, SpanKind.THINKING):
                self._tick()
            elif span.kind == SpanKind.THINKING_END:
                self._clear()

    def _tick(self) -> None:
        emojis = self._animation.emojis or ["…"]
        glyph = emojis[self._frame % len(emojis)]
        self._frame += 1
        self._side.control(Control.move_to_column(0), Control((ControlType.ERASE_IN_LINE, 2)))
        self._side.print(f"{glyph}  {self._animation.text}", end="", highlight=False)
        self._showing = True

    def _clear(self) -> None:
        if self._showing:
            self._side.control(Control.move_to_column(0), Control((ControlType.ERASE_IN_LINE, 2)))
            self._showing = False

    def finish(self) -> None:
        self._dispatch(self._filter.flush())
        self._clear()
        super().finish()
