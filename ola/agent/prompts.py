"""
ola.agent.prompts — Prompt assembly.

Every function here is pure apart from ``load_hints``, which reads the
hints file.  The structured prompt has a fixed section order::

    {goals_prefix}{goals}
    {return_format_prefix}{return_format}
    {warnings_prefix}{warnings}
    Context: {context}              (optional)
    <project section>               (optional)
    HINTS: {hints}                  (optional)
"""

from __future__ import annotations

import logging
from pathlib import Path

from ola.core.config import PromptTemplate
from ola.core.models import ConversationHistory, ProjectContent

logger = logging.getLogger("ola.prompts")

MAX_FILE_BYTES = 10_000
LOCAL_HINTS_FILE = ".olaHints"
GLOBAL_HINTS_FILE = Path(".ola-hints") / "olaHints"

AUTO_FEEDBACK = (
    "Please improve the previous response. Address anything missing or unclear "
    "and keep to the requested return format."
)


def truncate_file_text(text: str, limit: int = MAX_FILE_BYTES) -> str:
    """Cut ``text`` to ``limit`` UTF-8 bytes and append a notice if it was longer."""
    raw = text.encode("utf-8")
    if len(raw) <= limit:
        return text
    head = raw[:limit].decode("utf-8", errors="ignore")
    return f"{head}\n... [truncated: file exceeds {limit} bytes]"


def render_project_section(project: ProjectContent) -> str:
    lines = [f"Project: {project.name}"]
    if project.goals:
        lines.append("Project Goals:")
        lines.extend(f"- {goal}" for goal in project.goals)
    if project.contexts:
        lines.append("Project Contexts:")
        lines.extend(f"- {ctx}" for ctx in project.contexts)
    if project.files:
        lines.append("Project Files:")
        for f in project.files:
            lines.append(f"### {f.filename}")
            lines.append("```")
            lines.append(truncate_file_text(f.text))
            lines.append("```")
    return "\n".join(lines)


def _append_optional(
    prompt: str,
    context: str | None,
    project: ProjectContent | None,
    hints: str | None,
) -> str:
    if context:
        prompt += f"\nContext: {context}"
    if project is not None:
        prompt += "\n" + render_project_section(project)
    if hints:
        prompt += f"\nHINTS: {hints}"
    return prompt


def assemble_prompt(
    goals: str,
    return_format: str,
    warnings: str,
    context: str | None = None,
    project: ProjectContent | None = None,
    hints: str | None = None,
    template: PromptTemplate | None = None,
) -> str:
    """Build the structured prompt sent in ``prompt`` mode."""
    t = template or PromptTemplate()
    prompt = (
        f"{t.goals_prefix}{goals}\n"
        f"{t.return_format_prefix}{return_format}\n"
        f"{t.warnings_prefix}{warnings}"
    )
    return _append_optional(prompt, context, project, hints)


def assemble_raw_prompt(
    prompt: str,
    context: str | None = None,
    hints: str | None = None,
) -> str:
    """The ``non-think`` variant: the prompt as written plus optional context."""
    return _append_optional(prompt, context, None, hints)


def load_hints(cwd: Path | None = None, home: Path | None = None) -> str | None:
    """
    Read ``./.olaHints``, falling back to ``~/.ola-hints/olaHints``.

    Returns None when neither file exists or the file found is empty.
    """
    local = (cwd or Path.cwd()) / LOCAL_HINTS_FILE
    global_ = (home or Path.home()) / GLOBAL_HINTS_FILE
    for path in (local, global_):
        if path.is_file():
            text = path.read_text(encoding="utf-8", errors="replace")
            logger.debug("Loaded hints from %s", path)
            return text or None
    return None


def build_iteration_prompt(base_prompt: str, history: ConversationHistory) -> str:
    """
    Extend ``base_prompt`` with every earlier round.

    Responses are listed with the goals that produced them; each
    ``FEEDBACK:`` entry follows the response it comments on.
    """
    if not history.entries:
        return base_prompt

    parts = [base_prompt, "", "Previous iterations:"]
    for entry in history.entries:
        if entry.is_feedback:
            parts.append(f"{entry.marker} {entry.text}")
        else:
            parts.append(f"--- Response {entry.iteration} (goals: {entry.marker}) ---")
            parts.append(entry.text)
    parts.append("")
    parts.append("Provide an improved response that takes the feedback above into account.")
    return "\n".join(parts)
