"""
LangGraph graph definition for a flow session.

One invoke() is one user turn: apply the user's command, then render the node
the session lands on. The caller appends the next HumanMessage and invokes again.
"""

from typing import Any, Optional

from langgraph.graph import END, StateGraph

from wineflow.engine.flow_schema import FlowGraph
from wineflow.engine.flow_store import get_flow_graph
from wineflow.nodes.session_nodes import (
    ingest_user_command_node,
    render_view_node,
    should_continue,
)
from wineflow.state.session_state import SessionGraphState


def create_session_graph(flow_graph: Optional[FlowGraph] = None):
    """
    Create the session graph.

    Flow:
    1. ingest_user_command: Apply the latest HumanMessage (if any)
    2. render_view: Render the current node as an AIMessage
    3. Route: stop and wait for the user

    Args:
        flow_graph: Graph to walk; defaults to the process-wide graph

    Returns:
        Compiled graph
    """
    flow = flow_graph if flow_graph is not None else get_flow_graph()

    def ingest_user_command(state: SessionGraphState) -> dict[str, Any]:
        return ingest_user_command_node(state, flow)

    def render_view(state: SessionGraphState) -> dict[str, Any]:
        return render_view_node(state, flow)

    builder = StateGraph(SessionGraphState)

    builder.add_node("ingest_user_command", ingest_user_command)
    builder.add_node("render_view", render_view)

    builder.set_entry_point("ingest_user_command")
    builder.add_edge("ingest_user_command", "render_view")

    builder.add_conditional_edges(
        "render_view",
        should_continue,
        {
            "continue": END,  # Wait for the next command
            "result": END,  # Caller runs the recommendation lookup
            "end": END,  # Fatal error
        },
    )

    return builder.compile()
