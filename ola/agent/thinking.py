"""
ola.agent.thinking — Detection of ``<think>...</think>`` reasoning blocks.

``ThinkingFilter`` is a pure two-state machine over incrementally arriving
text.  It never touches the terminal: it classifies the input into spans and
leaves presentation to ``ola.agent.renderer``.  Concatenating the text of
every span it emits (including the tag spans) reproduces the input exactly.

``strip_thinking`` is the post-hoc variant applied to a complete response.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import StrEnum

OPEN_TAG = "<think>"
CLOSE_TAG = "</think>"

_THINK_BLOCK = re.compile(r"<think>.*?</think>", re.DOTALL)


class FilterState(StrEnum):
    NORMAL = "normal"
    IN_THINKING = "in_thinking"


class SpanKind(StrEnum):
    TEXT = "text"
    THINKING_START = "thinking_start"
    THINKING = "thinking"
    THINKING_END = "thinking_end"


@dataclass(frozen=True)
class Span:
    """A classified piece of the stream."""
    kind: SpanKind
    text: str = ""


def _partial_tag_suffix(buffer: str, tag: str) -> int:
    """Length of the longest suffix of ``buffer`` that is a proper prefix of ``tag``."""
    for size in range(min(len(tag) - 1, len(buffer)), 0, -1):
        if buffer.endswith(tag[:size]):
            return size
    return 0


class ThinkingFilter:
    """
    Incremental ``<think>`` / ``</think>`` recogniser.

    Feed fragments in arrival order.  Text that might be the start of a tag
    split across fragments is held back (never more than ``len(tag) - 1``
    characters) until the next fragment decides it; call ``flush()`` at end
    of stream to release it.  A block that is never closed keeps the filter
    in ``IN_THINKING`` for the rest of the stream.
    """

    def __init__(self) -> None:
        self.state = FilterState.NORMAL
        self._pending = ""

    @property
    def in_thinking(self) -> bool:
        return self.state == FilterState.IN_THINKING

    def feed(self, fragment: str) -> list[Span]:
        buffer = self._pending + fragment
        self._pending = ""
        spans: list[Span] = []

        while buffer:
            tag = CLOSE_TAG if self.in_thinking else OPEN_TAG
            body_kind = SpanKind.THINKING if self.in_thinking else SpanKind.TEXT
            idx = buffer.find(tag)

            if idx >= 0:
                if idx:
                    spans.append(Span(body_kind, buffer[:idx]))
                if self.in_thinking:
                    spans.append(Span(SpanKind.THINKING_END, tag))
                    self.state = FilterState.NORMAL
                else:
                    spans.append(Span(SpanKind.THINKING_START, tag))
                    self.state = FilterState.IN_THINKING
                buffer = buffer[idx + len(tag):]
                continue

            held = _partial_tag_suffix(buffer, tag)
            ready = buffer[: len(buffer) - held]
            if ready:
                spans.append(Span(body_kind, ready))
            self._pending = buffer[len(buffer) - held:]
            break

        return spans

    def flush(self) -> list[Span]:
        """Release held-back text at end of stream."""
        if not self._pending:
            return []
        kind = SpanKind.THINKING if self.in_thinking else SpanKind.TEXT
        span = Span(kind, self._pending)
        self._pending = ""
        return [span]

    def reset(self) -> None:
        self.state = FilterState.NORMAL
        self._pending = ""


def strip_thinking(text: str) -> str:
    """
    Remove every ``<think>...</think>`` span from a complete response.

    Matching is non-greedy and crosses newlines.  Removal repeats until no
    span is left, so ``strip_thinking(strip_thinking(t)) == strip_thinking(t)``.
    An opening tag with no closing tag is left in place.
    """
    while True:
        stripped = _THINK_BLOCK.sub("", text)
        if stripped == text:
            return stripped
        text = stripped
