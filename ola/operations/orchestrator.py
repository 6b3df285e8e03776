"""
ola.operations.orchestrator — Drives single, recursive and iterative runs.

Modes:
    SingleShot         assemble → call → log → clipboard
    RecursiveWave      one SingleShot (or feedback session) per process; the
                       next wave is this program re-launched with
                       ``OLA_RECURSION_WAVE`` incremented
    IterativeFeedback  in-process rounds over a growing ConversationHistory,
                       driven by the LangGraph graph in ``state_machine``

Fatal errors propagate to the caller.  Clipboard and session-log failures
are reported as warnings only.  The clipboard receives exactly one copy,
the text of the final call of the run.
"""

from __future__ import annotations

import logging
import subprocess
import sys
from dataclasses import dataclass
from enum import StrEnum
from typing import Callable, Protocol, TextIO

from ola.agent import renderer
from ola.agent.llm import ProviderClient
from ola.agent.prompts import (
    AUTO_FEEDBACK,
    assemble_prompt,
    assemble_raw_prompt,
    build_iteration_prompt,
)
from ola.agent.renderer import StreamEcho, ThinkingEcho
from ola.agent.thinking import strip_thinking
from ola.core.config import Settings
from ola.core.errors import ClipboardError, LoggingError
from ola.core.models import (
    AccumulatedResponse,
    ConversationHistory,
    InvocationRequest,
    ProjectContent,
    PromptRequest,
    RecursionContext,
)
from ola.operations.state_machine import (
    FeedbackGraphState,
    build_feedback_graph,
    recursion_limit_for,
)
from ola.utils.clipboard import copy_to_clipboard
from ola.utils.session_log import SessionLog

logger = logging.getLogger("ola.orchestrator")


# ---------------------------------------------------------------------------
# Feedback sources
# ---------------------------------------------------------------------------

class FeedbackKind(StrEnum):
    AUTO = "auto"
    TEXT = "text"
    GOALS = "goals"
    CONTEXT = "context"
    FINISH = "finish"


@dataclass(frozen=True)
class FeedbackAction:
    kind: FeedbackKind
    text: str = ""


AUTO_ACTION = FeedbackAction(FeedbackKind.AUTO, AUTO_FEEDBACK)


class FeedbackSource(Protocol):
    def next_feedback(self, iteration: int, history: ConversationHistory) -> FeedbackAction:
        ...


class AutoFeedback:
    """Always asks the model to improve its previous answer."""

    def next_feedback(self, iteration: int, history: ConversationHistory) -> FeedbackAction:
        return AUTO_ACTION


class InteractiveFeedback:
    """
    Asks the user what to do between rounds.

    An empty answer, or an empty follow-up, falls back to the automatic
    "please improve" entry.  Anything that is not a menu choice is taken as
    free-text feedback.
    """

    MENU = "[1] feedback  [2] change goals  [3] add context  [4] finish"
    FINISH_WORDS = {"4", "finish", "done", "q", "quit"}

    def __init__(self, ask: Callable[[str], str] = renderer.ask) -> None:
        self._ask = ask

    def next_feedback(self, iteration: int, history: ConversationHistory) -> FeedbackAction:
        renderer.render_info(self.MENU)
        choice = self._ask(f"Iteration {iteration}: choose (Enter to auto-improve):")
        lowered = choice.lower()

        if not choice:
            return AUTO_ACTION
        if lowered in self.FINISH_WORDS:
            return FeedbackAction(FeedbackKind.FINISH)
        follow_ups = {
            "1": (FeedbackKind.TEXT, "Feedback:"),
            "2": (FeedbackKind.GOALS, "New goals:"),
            "3": (FeedbackKind.CONTEXT, "Additional context:"),
        }
        if lowered in follow_ups:
            kind, question = follow_ups[lowered]
            text = self._ask(question)
            return FeedbackAction(kind, text) if text else AUTO_ACTION
        return FeedbackAction(FeedbackKind.TEXT, choice)


# ---------------------------------------------------------------------------
# Recursion arguments
# ---------------------------------------------------------------------------

def wave_arguments(
    request: PromptRequest,
    max_waves: int,
    *,
    clipboard: bool = False,
    quiet: bool = False,
    no_thinking: bool = False,
    iterations: int | None = None,
) -> list[str]:
    """Re-serialise a ``prompt`` invocation for the next wave's command line."""
    args = ["--goals", request.goals, "--format", request.return_format]
    if request.warnings:
        args += ["--warnings", request.warnings]
    if request.context:
        args += ["--context", request.context]
    if clipboard:
        args.append("--clipboard")
    if quiet:
        args.append("--quiet")
    if no_thinking:
        args.append("--no-thinking")
    args += ["--recursion", str(max_waves)]
    if iterations:
        args += ["--iterations", str(iterations)]
    return args


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------

class Orchestrator:
    """
    Runs prompts against one provider client.

    Parameters
    ----------
    client :
        The provider client; never reconfigured during a run.
    model :
        Model identifier sent with every call.
    hide_thinking :
        Hide ``<think>`` blocks while streaming and strip them from the
        returned text.
    clipboard :
        Copy the final response to the clipboard.
    """

    def __init__(
        self,
        client: ProviderClient,
        model: str,
        settings: Settings | None = None,
        *,
        quiet: bool = False,
        hide_thinking: bool = False,
        clipboard: bool = False,
        project: ProjectContent | None = None,
        hints: str | None = None,
        session_log: SessionLog | None = None,
        copier: Callable[[str], None] = copy_to_clipboard,
        runner: Callable[..., subprocess.CompletedProcess] = subprocess.run,
        out: TextIO | None = None,
    ) -> None:
        self.client = client
        self.model = model
        self.settings = settings or Settings()
        self.quiet = quiet
        self.hide_thinking = hide_thinking
        self.clipboard = clipboard
        self.project = project
        self.hints = hints
        self.session_log = session_log or SessionLog.from_settings(self.settings)
        self._copier = copier
        self._runner = runner
        self._out = out

    # ------------------------------------------------------------------
    # Building blocks
    # ------------------------------------------------------------------

    def build_prompt(self, request: PromptRequest) -> str:
        return assemble_prompt(
            request.goals,
            request.return_format,
            request.warnings,
            context=request.context,
            project=self.project,
            hints=self.hints,
            template=self.settings.prompt_template,
        )

    def call(self, prompt: str) -> AccumulatedResponse:
        """One streaming provider call with the configured echo."""
        if self.hide_thinking:
            echo: StreamEcho = ThinkingEcho(self.settings.behavior.thinking_animation, out=self._out)
        else:
            echo = StreamEcho(self._out)
        request = InvocationRequest(prompt=prompt, model=self.model, stream=True)
        response = self.client.invoke(request, on_text=echo)
        echo.finish()
        if self.hide_thinking:
            return AccumulatedResponse(text=strip_thinking(response.text), model=response.model)
        return response

    def _log_prompt(self, request: PromptRequest, text: str) -> None:
        try:
            self.session_log.record_prompt(
                request.goals, request.return_format, request.warnings, self.model, text
            )
        except LoggingError as exc:
            logger.warning("%s", exc)
            renderer.render_warning(str(exc))

    def _copy(self, text: str) -> None:
        if not self.clipboard:
            return
        try:
            self._copier(text)
        except ClipboardError as exc:
            logger.warning("%s", exc)
            renderer.render_error(f"Failed to copy to clipboard: {exc}")
            return
        renderer.render_success("Response copied to clipboard")

    def _banner(self) -> None:
        renderer.render_model_banner(self.client.provider_name.value, self.model, self.quiet)

    # ------------------------------------------------------------------
    # SingleShot
    # ------------------------------------------------------------------

    def run_single(self, request: PromptRequest, copy: bool = True) -> AccumulatedResponse:
        """Assemble, call once, log, then copy if requested."""
        self._banner()
        response = self.call(self.build_prompt(request))
        self._log_prompt(request, response.text)
        if copy:
            self._copy(response.text)
        return response

    def run_raw(self, prompt: str, context: str | None = None) -> AccumulatedResponse:
        """The ``non-think`` flow: the prompt is sent as written."""
        self._banner()
        response = self.call(assemble_raw_prompt(prompt, context=context, hints=self.hints))
        try:
            self.session_log.record_raw(prompt, self.model, response.text)
        except LoggingError as exc:
            logger.warning("%s", exc)
            renderer.render_warning(str(exc))
        self._copy(response.text)
        return response

    # ------------------------------------------------------------------
    # IterativeFeedback
    # ------------------------------------------------------------------

    def run_iterations(
        self,
        request: PromptRequest,
        max_iterations: int,
        feedback: FeedbackSource | None = None,
        copy: bool = True,
    ) -> ConversationHistory:
        """
        Run up to ``max_iterations`` rounds.

        No feedback is collected after the last round, so ``n`` rounds
        leave ``n`` responses and ``n - 1`` feedback entries unless the
        user finishes early.
        """
        history = ConversationHistory()
        source = feedback or AutoFeedback()
        self._banner()

        def invoke_round(state: FeedbackGraphState) -> str:
            iteration = state["iteration"]
            renderer.render_iteration_header(iteration, max_iterations, self.quiet)
            current = request.model_copy(
                update={"goals": state["goals"], "context": state.get("context")}
            )
            prompt = build_iteration_prompt(self.build_prompt(current), history)
            response = self.call(prompt)
            history.add_response(iteration, current.goals, response.text)
            self._log_prompt(current, response.text)
            return response.text

        def collect_feedback(state: FeedbackGraphState) -> FeedbackGraphState:
            iteration = state["iteration"]
            action = source.next_feedback(iteration, history)
            if action.kind == FeedbackKind.FINISH:
                logger.debug("Feedback session finished by user after round %d", iteration)
                return {"finished": True}

            updates: FeedbackGraphState = {"finished": False}
            if action.kind == FeedbackKind.GOALS:
                updates["goals"] = action.text
                note = f"Goals changed to: {action.text}"
            elif action.kind == FeedbackKind.CONTEXT:
                previous = state.get("context")
                updates["context"] = f"{previous}\n{action.text}" if previous else action.text
                note = f"Additional context: {action.text}"
            else:
                note = action.text
            history.add_feedback(iteration, note)
            return updates

        graph = build_feedback_graph(invoke_round, collect_feedback).compile()
        graph.invoke(
            {
                "iteration": 0,
                "max_iterations": max_iterations,
                "finished": False,
                "goals": request.goals,
                "context": request.context,
                "last_text": "",
            },
            config={"recursion_limit": recursion_limit_for(max_iterations)},
        )

        last = history.last_response
        if copy and last is not None:
            self._copy(last.text)
        return history

    # ------------------------------------------------------------------
    # RecursiveWave
    # ------------------------------------------------------------------

    def run_recursive(
        self,
        request: PromptRequest,
        recursion: RecursionContext,
        wave_args: list[str],
        iterations: int | None = None,
        feedback: FeedbackSource | None = None,
    ) -> int:
        """
        Run this process's wave, then launch the next one if any is owed.

        Returns the exit status to surface: 0 for the last wave, otherwise
        the child's status.  A failing call raises before anything is
        spawned.
        """
        renderer.render_wave_header(recursion.wave, recursion.max_waves, self.quiet)
        final = not recursion.should_spawn

        if iterations:
            self.run_iterations(request, iterations, feedback, copy=final)
        else:
            self.run_single(request, copy=final)

        if final:
            if not self.quiet:
                renderer.render_info(f"Reached maximum recursion depth ({recursion.max_waves} waves)")
            return 0
        return self.spawn_next_wave(recursion, wave_args)

    def spawn_next_wave(self, recursion: RecursionContext, wave_args: list[str]) -> int:
        cmd = [sys.executable, "-m", "ola", "prompt", *wave_args]
        wave_label = f"{recursion.next_wave + 1}/{recursion.max_waves}"
        if not self.quiet:
            renderer.render_info(f"Launching recursion wave {wave_label}...")
        logger.debug("Spawning wave %d: %s", recursion.next_wave, cmd)

        try:
            result = self._runner(cmd, env=recursion.child_env())
        except OSError as exc:
            renderer.render_error(f"Failed to launch recursion wave {wave_label}: {exc}")
            return 1

        if result.returncode != 0:
            renderer.render_error(
                f"Recursion wave {wave_label} failed with exit code {result.returncode}"
            )
        return result.returncode
