"""
Pure traversal queries over a validated FlowGraph.

No state, no I/O: every function here only reads the graph it is given.
"""

from __future__ import annotations

from typing import Iterator, Optional

from typing_extensions import assert_never

from wineflow.engine.flow_schema import (
    FlowError,
    FlowGraph,
    MessageNode,
    QuestionNode,
    ResultNode,
)

TERMINAL_ID = "END"

AnyNode = QuestionNode | MessageNode | ResultNode


class OptionIndexError(FlowError, IndexError):
    """Raised when an option index does not match any option of a question."""

    def __init__(self, node_id: str, option_index: int):
        self.node_id = node_id
        self.option_index = option_index
        super().__init__(f"Option index {option_index} out of range for node {node_id}")


def get_node(graph: FlowGraph, node_id: str) -> Optional[AnyNode]:
    """Return the node for `node_id`, or None if the graph has no such node."""
    return graph.nodes.get(node_id)


def get_start_id(graph: FlowGraph) -> str:
    return graph.root_id


def count_questions(graph: FlowGraph) -> int:
    """Number of question nodes; sizes the progress indicator."""
    return sum(1 for node in graph.nodes.values() if isinstance(node, QuestionNode))


def is_terminal(node_id: str) -> bool:
    """True if `node_id` is the terminal sentinel (case-insensitive)."""
    return node_id.upper() == TERMINAL_ID


def resolve_option(node: QuestionNode, option_index: int) -> str:
    """
    Get the nextId of a question's option.

    Raises:
        OptionIndexError: If the index does not correspond to an option
    """
    if not 0 <= option_index < len(node.options):
        raise OptionIndexError(node.id, option_index)
    return node.options[option_index].next_id


def iter_next_ids(node: AnyNode) -> Iterator[tuple[str, str]]:
    """Yield (field, next_id) for every outgoing edge of a node."""
    if isinstance(node, QuestionNode):
        for i, option in enumerate(node.options):
            yield f"options.{i}.nextId", option.next_id
    elif isinstance(node, MessageNode):
        yield "nextId", node.next_id
    elif isinstance(node, ResultNode):
        return
    else:
        assert_never(node)
