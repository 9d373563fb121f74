"""
Conversation state for running a flow session through LangGraph.

Holds the flow position (same fields as FlowState) plus the chat transcript
and trace events the CLI renders.
"""

from typing import Annotated, Any, Optional

from typing_extensions import TypedDict

from langgraph.graph import add_messages

from wineflow.engine.flow_schema import FlowGraph
from wineflow.state.flow_state import NodeView, initialize


def add_events(existing: list[dict[str, Any]] | None, new: list[dict[str, Any]] | None) -> list[dict[str, Any]]:
    """Reducer for the append-only trace log."""
    return (existing or []) + (new or [])


class SessionGraphState(TypedDict):
    """
    State for one flow session.

    Fields:
    - messages: Chat transcript (add_messages reducer)
    - events: Trace log (append reducer)
    - current_node_id / history: Flow position, see FlowState
    - view: Last rendered NodeView
    - notice: Feedback for input that did not change position
    - error: Fatal condition (node not found); the session stops
    """

    messages: Annotated[list, add_messages]
    events: Annotated[list[dict[str, Any]], add_events]

    current_node_id: str
    history: list[str]

    view: Optional[NodeView]
    notice: Optional[str]
    error: Optional[str]


def create_initial_state(graph: FlowGraph) -> SessionGraphState:
    """Fresh session positioned at the graph's root."""
    position = initialize(graph)
    return {
        "messages": [],
        "events": [],
        "current_node_id": position["current_node_id"],
        "history": position["history"],
        "view": None,
        "notice": None,
        "error": None,
    }
