"""
LangGraph node implementations for a flow session.

- ingest_user_command_node: apply the latest user command to the flow position
- render_view_node: resolve the current node and render it as a chat message

Flow logic lives in wineflow.state.flow_state; these nodes only translate
between chat text and transitions.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from langchain_core.messages import AIMessage, HumanMessage

from wineflow.engine.flow_engine import AnyNode, resolve_option
from wineflow.engine.flow_schema import FlowGraph, MessageNode, QuestionNode
from wineflow.state.flow_state import (
    FlowState,
    NodeNotFoundError,
    NodeView,
    advance,
    build_view,
    current_node,
    go_back,
    restart,
)
from wineflow.state.session_state import SessionGraphState

logger = logging.getLogger(__name__)

BACK_WORDS = {"b", "back"}
RESTART_WORDS = {"r", "restart", "start again"}
CONTINUE_WORDS = {"", "n", "next", "continue", "ok"}


def _evt(kind: str, **fields: Any) -> dict[str, Any]:
    """Create a structured trace event for watch mode."""
    evt: dict[str, Any] = {"kind": kind}
    evt.update(fields)
    return evt


def _position(state: SessionGraphState) -> FlowState:
    return {"current_node_id": state["current_node_id"], "history": list(state.get("history", []))}


def parse_user_command(text: str, node: AnyNode) -> Optional[tuple[str, Optional[int]]]:
    """
    Interpret user text against the current node.

    Returns:
        ("back", None), ("restart", None), ("continue", None), ("choose", index),
        or None if the text is not a valid command here. Option numbers are
        1-based in the text and 0-based in the result; out-of-range numbers
        return None.
    """
    cleaned = (text or "").strip().lower()

    if cleaned in BACK_WORDS:
        return ("back", None)
    if cleaned in RESTART_WORDS:
        return ("restart", None)

    if isinstance(node, QuestionNode):
        if cleaned.isdigit():
            index = int(cleaned) - 1
            if 0 <= index < len(node.options):
                return ("choose", index)
        return None

    if isinstance(node, MessageNode):
        if cleaned in CONTINUE_WORDS:
            return ("continue", None)
        return None

    return None


def _hint_for(node: AnyNode) -> str:
    if isinstance(node, QuestionNode):
        return f"Pick an option between 1 and {len(node.options)} (or 'b' to go back, 'r' to restart)."
    if isinstance(node, MessageNode):
        return "Press Enter to continue (or 'b' to go back, 'r' to restart)."
    return "Type 'r' to start again or 'b' to go back."


def ingest_user_command_node(state: SessionGraphState, flow_graph: FlowGraph) -> dict[str, Any]:
    """
    Apply the last human message as a navigation command.

    Args:
        state: Current session state
        flow_graph: Graph the session walks

    Returns:
        Updates to state
    """
    messages = state.get("messages", [])
    if not messages or not isinstance(messages[-1], HumanMessage):
        return {}

    user_text = messages[-1].content
    position = _position(state)

    try:
        node = current_node(flow_graph, position)
    except NodeNotFoundError as e:
        logger.error("Cannot ingest command: %s", e)
        return {
            "error": str(e),
            "events": [_evt("node_not_found", node_id=e.node_id)],
        }

    command = parse_user_command(user_text, node)
    if command is None:
        return {
            "notice": f"Sorry, I didn't get '{user_text}'. {_hint_for(node)}",
            "events": [_evt("command_rejected", node_id=node.id, text=user_text)],
        }

    kind, option_index = command
    if kind == "back":
        new_position = go_back(position)
    elif kind == "restart":
        new_position = restart(flow_graph)
    elif kind == "choose":
        new_position = advance(flow_graph, position, resolve_option(node, option_index))
    else:
        new_position = advance(flow_graph, position, node.next_id)

    return {
        "current_node_id": new_position["current_node_id"],
        "history": new_position["history"],
        "notice": None,
        "events": [
            _evt(
                "command_ingested",
                node_id=node.id,
                command=kind,
                option_index=option_index,
                next_node_id=new_position["current_node_id"],
            )
        ],
    }


def format_view(view: NodeView, notice: Optional[str] = None) -> str:
    """Render a NodeView as chat text."""
    lines: list[str] = []
    if notice:
        lines.extend([notice, ""])

    if view["kind"] == "question":
        lines.append(f"Step {view['step_number']} of {view['total_questions']}")
        lines.append(view["text"] or "")
        for i, label in enumerate(view["options"], start=1):
            lines.append(f"  {i}. {label}")
    elif view["kind"] == "message":
        lines.append(view["text"] or "")
    else:
        lines.append("Your perfect match:")
        lines.append(view["display_name"] or "")
        if view["blurb"]:
            lines.append(view["blurb"])
    return "\n".join(lines)


def render_view_node(state: SessionGraphState, flow_graph: FlowGraph) -> dict[str, Any]:
    """
    Resolve the current node and render it.

    A missing node is reported through `error`; the session does not fall back
    to the root.
    """
    if state.get("error"):
        return {}

    try:
        view = build_view(flow_graph, _position(state))
    except NodeNotFoundError as e:
        logger.error("Cannot render: %s", e)
        return {
            "error": str(e),
            "view": None,
            "events": [_evt("node_not_found", node_id=e.node_id)],
        }

    return {
        "view": view,
        "notice": None,
        "messages": [AIMessage(content=format_view(view, state.get("notice")))],
        "events": [
            _evt(
                "view_rendered",
                node_id=view["node_id"],
                node_kind=view["kind"],
                step_number=view["step_number"],
                total_questions=view["total_questions"],
            )
        ],
    }


def should_continue(state: SessionGraphState) -> str:
    """
    Routing function after render.

    Returns:
        "end" on error, "result" when a wine node is shown, otherwise "continue"
    """
    if state.get("error"):
        return "end"

    view = state.get("view")
    if view and view["kind"] == "wine":
        return "result"

    return "continue"
