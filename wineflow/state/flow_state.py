"""
Session state machine for walking a flow graph.

FlowState is a plain value; the transition functions take a state and return a
new one without mutating the input. FlowSession wraps them for callers that
want an object holding the current state.

Forward moves push the node being left onto `history`; back pops it. Advancing
to the terminal sentinel restarts the flow.
"""

from __future__ import annotations

import logging
from typing import Optional

from typing_extensions import TypedDict, assert_never

from wineflow.engine.flow_engine import (
    AnyNode,
    count_questions,
    get_node,
    get_start_id,
    is_terminal,
    resolve_option,
)
from wineflow.engine.flow_schema import FlowError, FlowGraph, MessageNode, QuestionNode, ResultNode

logger = logging.getLogger(__name__)


class NodeNotFoundError(FlowError):
    """The session points at a node id the graph does not contain."""

    def __init__(self, node_id: str):
        self.node_id = node_id
        super().__init__(f"Node not found: '{node_id}'")


class FlowState(TypedDict):
    current_node_id: str
    history: list[str]


class NodeView(TypedDict):
    """Everything the render layer needs for one step."""
    node_id: str
    kind: str
    text: Optional[str]
    options: list[str]
    display_name: Optional[str]
    lookup_key: Optional[str]
    blurb: Optional[str]
    step_number: int
    total_questions: int
    can_go_back: bool


def initialize(graph: FlowGraph) -> FlowState:
    return {"current_node_id": get_start_id(graph), "history": []}


def restart(graph: FlowGraph) -> FlowState:
    return initialize(graph)


def advance(graph: FlowGraph, state: FlowState, target_id: str) -> FlowState:
    """Move to `target_id`, or restart if it is the terminal sentinel."""
    if is_terminal(target_id):
        logger.debug("Terminal reached from %s; restarting", state["current_node_id"])
        return restart(graph)
    return {
        "current_node_id": target_id,
        "history": [*state["history"], state["current_node_id"]],
    }


def go_back(state: FlowState) -> FlowState:
    """Return to the previous node. No-op when history is empty."""
    history = state["history"]
    if not history:
        return {"current_node_id": state["current_node_id"], "history": []}
    return {"current_node_id": history[-1], "history": history[:-1]}


def can_go_back(state: FlowState) -> bool:
    return bool(state["history"])


def current_node(graph: FlowGraph, state: FlowState) -> AnyNode:
    """
    Resolve the current node.

    Raises:
        NodeNotFoundError: If the graph has no node with the current id
    """
    node = get_node(graph, state["current_node_id"])
    if node is None:
        raise NodeNotFoundError(state["current_node_id"])
    return node


def progress(graph: FlowGraph, state: FlowState) -> tuple[int, int]:
    """
    (step_number, total_questions).

    step_number counts question nodes in history, plus one if the current node
    is a question.
    """
    step = sum(1 for node_id in state["history"] if isinstance(get_node(graph, node_id), QuestionNode))
    if isinstance(get_node(graph, state["current_node_id"]), QuestionNode):
        step += 1
    return step, count_questions(graph)


def build_view(graph: FlowGraph, state: FlowState) -> NodeView:
    node = current_node(graph, state)
    step, total = progress(graph, state)
    view: NodeView = {
        "node_id": node.id,
        "kind": node.type,
        "text": None,
        "options": [],
        "display_name": None,
        "lookup_key": None,
        "blurb": None,
        "step_number": step,
        "total_questions": total,
        "can_go_back": can_go_back(state),
    }
    if isinstance(node, QuestionNode):
        view["text"] = node.text
        view["options"] = [option.label for option in node.options]
    elif isinstance(node, MessageNode):
        view["text"] = node.text
    elif isinstance(node, ResultNode):
        view["display_name"] = node.display_name
        view["lookup_key"] = node.lookup_key
        view["blurb"] = node.blurb
    else:
        assert_never(node)
    return view


class FlowSession:
    """Single-user walk through one flow graph."""

    def __init__(self, graph: FlowGraph):
        self.graph = graph
        self._state = initialize(graph)

    @property
    def state(self) -> FlowState:
        return {"current_node_id": self._state["current_node_id"], "history": list(self._state["history"])}

    @property
    def current_node_id(self) -> str:
        return self._state["current_node_id"]

    @property
    def history(self) -> list[str]:
        return list(self._state["history"])

    @property
    def current_node(self) -> AnyNode:
        return current_node(self.graph, self._state)

    @property
    def can_go_back(self) -> bool:
        return can_go_back(self._state)

    @property
    def progress(self) -> tuple[int, int]:
        return progress(self.graph, self._state)

    @property
    def lookup_key(self) -> Optional[str]:
        node = self.current_node
        if isinstance(node, ResultNode):
            return node.lookup_key
        return None

    def view(self) -> NodeView:
        return build_view(self.graph, self._state)

    def advance(self, target_id: str) -> None:
        self._state = advance(self.graph, self._state, target_id)

    def choose(self, option_index: int) -> None:
        """Pick an option of the current question."""
        node = self.current_node
        if not isinstance(node, QuestionNode):
            raise FlowError(f"Node {node.id} is a {node.type}, not a question")
        self.advance(resolve_option(node, option_index))

    def continue_flow(self) -> None:
        """Move past the current message."""
        node = self.current_node
        if not isinstance(node, MessageNode):
            raise FlowError(f"Node {node.id} is a {node.type}, not a message")
        self.advance(node.next_id)

    def back(self) -> None:
        self._state = go_back(self._state)

    def restart(self) -> None:
        self._state = restart(self.graph)
