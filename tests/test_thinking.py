"""Thinking-block detection, stripping and the hiding echo sink."""

from __future__ import annotations

import io

import pytest
from rich.console import Console

from ola.agent.renderer import StreamEcho, ThinkingEcho
from ola.agent.thinking import (
    FilterState,
    SpanKind,
    ThinkingFilter,
    strip_thinking,
)
from ola.core.config import ThinkingAnimation


def _run(fragments: list[str]) -> tuple[ThinkingFilter, list]:
    f = ThinkingFilter()
    spans = []
    for fragment in fragments:
        spans.extend(f.feed(fragment))
    spans.extend(f.flush())
    return f, spans


def _visible(spans) -> str:
    return "".join(s.text for s in spans if s.kind == SpanKind.TEXT)


class TestThinkingFilter:
    def test_plain_text_passes_through(self):
        _, spans = _run(["hello ", "world"])
        assert _visible(spans) == "hello world"

    def test_block_in_one_fragment(self):
        f, spans = _run(["Hi <think>plan</think>there"])
        assert _visible(spans) == "Hi there"
        assert [s.kind for s in spans] == [
            SpanKind.TEXT,
            SpanKind.THINKING_START,
            SpanKind.THINKING,
            SpanKind.THINKING_END,
            SpanKind.TEXT,
        ]
        assert f.state == FilterState.NORMAL

    @pytest.mark.parametrize(
        "fragments",
        [
            ["<thi", "nk>secret</th", "ink>answer"],
            ["<", "t", "h", "i", "n", "k", ">", "secret", "<", "/think", ">", "answer"],
            ["<think>sec", "ret</think>", "answer"],
        ],
    )
    def test_tags_split_across_fragments(self, fragments):
        _, spans = _run(fragments)
        assert _visible(spans) == "answer"

    def test_span_texts_reproduce_input(self):
        fragments = ["a<th", "ink>b</thi", "nk>c<", "x"]
        _, spans = _run(fragments)
        assert "".join(s.text for s in spans) == "".join(fragments)

    def test_almost_tag_is_released(self):
        _, spans = _run(["value <thin", "g> ok"])
        assert _visible(spans) == "value <thing> ok"

    def test_trailing_partial_tag_flushed_at_end(self):
        _, spans = _run(["ends with <thi"])
        assert _visible(spans) == "ends with <thi"

    def test_unterminated_block_stays_hidden(self):
        f, spans = _run(["shown <think>never closed", " more"])
        assert _visible(spans) == "shown "
        assert f.in_thinking

    def test_reset(self):
        f = ThinkingFilter()
        f.feed("<think>x")
        f.reset()
        assert f.state == FilterState.NORMAL
        assert _visible(f.feed("y")) == "y"


class TestStripThinking:
    def test_removes_blocks_across_newlines(self):
        assert strip_thinking("a<think>\nb\n</think>c<think>d</think>e") == "ace"

    def test_idempotent(self):
        text = "x<think>1</think>y<think>2"
        once = strip_thinking(text)
        assert strip_thinking(once) == once
        assert once == "xy<think>2"

    def test_no_blocks(self):
        assert strip_thinking("nothing to see") == "nothing to see"


class TestEchoSinks:
    def test_stream_echo_adds_final_newline(self):
        out = io.StringIO()
        echo = StreamEcho(out)
        echo("Hi")
        echo.finish()
        assert out.getvalue() == "Hi\n"

    def test_stream_echo_silent_when_nothing_written(self):
        out = io.StringIO()
        StreamEcho(out).finish()
        assert out.getvalue() == ""

    def test_thinking_echo_hides_block(self):
        out = io.StringIO()
        side = Console(file=io.StringIO(), force_terminal=False)
        echo = ThinkingEcho(ThinkingAnimation(emojis=["*"], text="pondering"), out=out, side=side)
        for fragment in ["Sure. <thi", "nk>let me ", "see</think>", " 42"]:
            echo(fragment)
        echo.finish()

        assert out.getvalue() == "Sure.  42\n"
        assert echo.frames_shown >= 2
        assert "pondering" in side.file.getvalue()
