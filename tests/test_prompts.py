"""Prompt assembly: section order, project folding, hints and iteration prompts."""

from __future__ import annotations

from ola.agent.prompts import (
    MAX_FILE_BYTES,
    assemble_prompt,
    assemble_raw_prompt,
    build_iteration_prompt,
    load_hints,
    render_project_section,
    truncate_file_text,
)
from ola.core.config import PromptTemplate
from ola.core.models import ConversationHistory, ProjectContent, ProjectFileContent


def test_structured_prompt_exact():
    assert assemble_prompt("G", "F", "W") == "🏆 Goals: G\n📝 Return Format: F\n⚠️ Warnings: W"


def test_context_and_hints_follow_the_three_lines():
    prompt = assemble_prompt("G", "F", "W", context="C", hints="H")
    assert prompt == (
        "🏆 Goals: G\n📝 Return Format: F\n⚠️ Warnings: W\nContext: C\nHINTS: H"
    )


def test_empty_context_is_omitted():
    assert "Context:" not in assemble_prompt("G", "F", "W", context="")


def test_custom_template():
    template = PromptTemplate(goals_prefix="G> ", return_format_prefix="F> ", warnings_prefix="W> ")
    assert assemble_prompt("a", "b", "c", template=template) == "G> a\nF> b\nW> c"


def test_raw_prompt():
    assert assemble_raw_prompt("just this") == "just this"
    assert assemble_raw_prompt("q", context="ctx") == "q\nContext: ctx"


def test_project_section_between_context_and_hints():
    project = ProjectContent(
        name="demo",
        goals=["ship it"],
        contexts=["python 3"],
        files=[ProjectFileContent(filename="main.py", text="print('x')")],
    )
    prompt = assemble_prompt("G", "F", "W", context="C", project=project, hints="H")
    lines = prompt.split("\n")
    assert lines[3] == "Context: C"
    assert lines[4:] == [
        "Project: demo",
        "Project Goals:",
        "- ship it",
        "Project Contexts:",
        "- python 3",
        "Project Files:",
        "### main.py",
        "```",
        "print('x')",
        "```",
        "HINTS: H",
    ]


def test_empty_project_sections_are_skipped():
    assert render_project_section(ProjectContent(name="bare")) == "Project: bare"


def test_truncate_file_text():
    short = "a" * 10
    assert truncate_file_text(short) == short
    long = "b" * (MAX_FILE_BYTES + 5)
    truncated = truncate_file_text(long)
    assert truncated.startswith("b" * MAX_FILE_BYTES + "\n")
    assert truncated.endswith(f"[truncated: file exceeds {MAX_FILE_BYTES} bytes]")


def test_truncate_never_splits_a_character():
    text = "é" * 10  # two bytes each
    assert truncate_file_text(text, limit=5).startswith("éé\n")


class TestHints:
    def test_local_file_wins(self, tmp_path):
        cwd, home = tmp_path / "cwd", tmp_path / "home"
        (home / ".ola-hints").mkdir(parents=True)
        cwd.mkdir()
        (cwd / ".olaHints").write_text("local", encoding="utf-8")
        (home / ".ola-hints" / "olaHints").write_text("global", encoding="utf-8")
        assert load_hints(cwd, home) == "local"

    def test_global_fallback(self, tmp_path):
        cwd, home = tmp_path / "cwd", tmp_path / "home"
        (home / ".ola-hints").mkdir(parents=True)
        cwd.mkdir()
        (home / ".ola-hints" / "olaHints").write_text("global", encoding="utf-8")
        assert load_hints(cwd, home) == "global"

    def test_absent_or_empty(self, tmp_path):
        assert load_hints(tmp_path, tmp_path) is None
        (tmp_path / ".olaHints").write_text("", encoding="utf-8")
        assert load_hints(tmp_path, tmp_path) is None

    def test_undecodable_bytes_are_replaced(self, tmp_path):
        (tmp_path / ".olaHints").write_bytes(b"keep \xff it short")
        assert load_hints(tmp_path, tmp_path) == "keep \ufffd it short"


class TestIterationPrompt:
    def test_empty_history_leaves_base_unchanged(self):
        assert build_iteration_prompt("base", ConversationHistory()) == "base"

    def test_history_is_listed_in_order(self):
        history = ConversationHistory()
        history.add_response(1, "write a haiku", "first try")
        history.add_feedback(1, "more nature")
        prompt = build_iteration_prompt("base", history)

        assert prompt.startswith("base\n\nPrevious iterations:\n")
        assert "--- Response 1 (goals: write a haiku) ---\nfirst try\nFEEDBACK: more nature" in prompt
        assert prompt.endswith("takes the feedback above into account.")
