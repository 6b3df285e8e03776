"""
ola.operations.state_machine — LangGraph state machine for iterative feedback.

Each round invokes the provider once and appends the response to the
conversation history; between rounds a feedback node collects the next
``FEEDBACK:`` entry (or the user's decision to stop).

Graph topology:
    START → invoke ─┬─ (rounds left) → feedback ─┬─ (continue) → invoke
                    └─ (last round)  → END       └─ (finish)   → END
"""

from __future__ import annotations

import logging
from enum import StrEnum
from typing import Callable, TypedDict

from langgraph.graph import END, START, StateGraph

logger = logging.getLogger("ola.state_machine")


class NodeType(StrEnum):
    INVOKE = "invoke"
    FEEDBACK = "feedback"


class FeedbackGraphState(TypedDict, total=False):
    """State flowing through the feedback graph."""
    # Progress
    iteration: int
    max_iterations: int
    finished: bool
    # Prompt inputs that feedback may change
    goals: str
    context: str | None
    # Output
    last_text: str


InvokeRound = Callable[[FeedbackGraphState], str]
CollectFeedback = Callable[[FeedbackGraphState], FeedbackGraphState]


def build_feedback_graph(invoke_round: InvokeRound, collect_feedback: CollectFeedback) -> StateGraph:
    """
    Construct the feedback loop graph.

    ``invoke_round`` performs one provider call for ``state["iteration"]``
    and returns its text.  ``collect_feedback`` returns the state updates
    produced by one feedback step (new goals/context, ``finished``).
    """

    def invoke_node(state: FeedbackGraphState) -> FeedbackGraphState:
        iteration = state.get("iteration", 0) + 1
        text = invoke_round({**state, "iteration": iteration})
        logger.debug("Round %d/%d complete", iteration, state["max_iterations"])
        return {"iteration": iteration, "last_text": text}

    def feedback_node(state: FeedbackGraphState) -> FeedbackGraphState:
        return collect_feedback(state)

    graph = StateGraph(FeedbackGraphState)

    graph.add_node(NodeType.INVOKE.value, invoke_node)
    graph.add_node(NodeType.FEEDBACK.value, feedback_node)

    graph.add_edge(START, NodeType.INVOKE.value)

    def after_invoke(state: FeedbackGraphState) -> str:
        if state["iteration"] >= state["max_iterations"]:
            return END
        return NodeType.FEEDBACK.value

    def after_feedback(state: FeedbackGraphState) -> str:
        return END if state.get("finished") else NodeType.INVOKE.value

    graph.add_conditional_edges(NodeType.INVOKE.value, after_invoke, {
        NodeType.FEEDBACK.value: NodeType.FEEDBACK.value,
        END: END,
    })
    graph.add_conditional_edges(NodeType.FEEDBACK.value, after_feedback, {
        NodeType.INVOKE.value: NodeType.INVOKE.value,
        END: END,
    })

    return graph


def recursion_limit_for(max_iterations: int) -> int:
    """Graph steps needed for ``max_iterations`` rounds, with headroom."""
    return 2 * max_iterations + 5
